"""Rich consoles shared by the CLI layer.

``console`` carries command output (stdout); ``err_console`` carries
progress lines and errors (stderr) so output stays pipeable.
"""
from rich.console import Console

console = Console()
err_console = Console(stderr=True)


def print_raw(text: str):
    """Print text verbatim: no markup, highlighting or wrapping."""
    console.print(text, markup=False, highlight=False, soft_wrap=True)


def status(message: str):
    err_console.print(message)
