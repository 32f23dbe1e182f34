"""Configuration settings for the application."""
import os
from typing import List, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from firedocs.exceptions import ConfigError

# Load environment variables from .env file
load_dotenv()

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING")

# Firebase credentials
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID", "")
FIREBASE_API_KEY = os.getenv("FIREBASE_API_KEY", "")

# Firestore REST settings
FIRESTORE_BASE_URL = os.getenv("FIRESTORE_BASE_URL", "https://firestore.googleapis.com/v1")
FIRESTORE_SCHEMA_SAMPLE_SIZE = int(os.getenv("FIRESTORE_SCHEMA_SAMPLE_SIZE", 50))
FIRESTORE_PAGE_SIZE_CAP = int(os.getenv("FIRESTORE_PAGE_SIZE_CAP", 100))
FIRESTORE_HTTP_TIMEOUT = float(os.getenv("FIRESTORE_HTTP_TIMEOUT", 30.0))

# Collection discovery
DEFAULT_CANDIDATE_COLLECTIONS: Tuple[str, ...] = (
    "users", "posts", "comments", "products", "orders", "customers",
    "articles", "messages", "notifications", "settings", "logs",
    "events", "analytics", "feedback", "reviews", "categories",
)
METADATA_COLLECTION = "_metadata_collections"
FIRESTORE_PARALLEL_DISCOVERY = os.getenv("FIRESTORE_PARALLEL_DISCOVERY", "False").lower() == "true"


def parse_candidate_collections(raw: str) -> List[str]:
    """
    Parse a comma-separated list of collection names.

    Args:
        raw: Value such as ``"users, posts,orders"``

    Returns:
        List of non-empty, stripped collection names
    """
    return [name.strip() for name in raw.split(",") if name.strip()]


FIRESTORE_CANDIDATE_COLLECTIONS: List[str] = (
    parse_candidate_collections(os.getenv("FIRESTORE_CANDIDATE_COLLECTIONS", ""))
    or list(DEFAULT_CANDIDATE_COLLECTIONS)
)


class FirestoreConfig(BaseModel):
    """Connection settings for one Firestore project. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    project_id: str = Field(..., min_length=1, description="Firebase project identifier")
    api_key: str = Field(..., min_length=1, description="Web API key sent as the `key` query parameter")
    base_url: str = Field(FIRESTORE_BASE_URL, description="REST API root")
    timeout: float = Field(FIRESTORE_HTTP_TIMEOUT, gt=0)
    page_size_cap: int = Field(FIRESTORE_PAGE_SIZE_CAP, ge=1)

    @property
    def documents_url(self) -> str:
        """Root of the document tree for the default database."""
        return f"{self.base_url.rstrip('/')}/projects/{self.project_id}/databases/(default)/documents"

    @classmethod
    def from_env(cls) -> "FirestoreConfig":
        """
        Build the configuration from environment variables.

        Raises:
            ConfigError: when FIREBASE_PROJECT_ID or FIREBASE_API_KEY is not set
        """
        project_id = os.getenv("FIREBASE_PROJECT_ID", FIREBASE_PROJECT_ID)
        api_key = os.getenv("FIREBASE_API_KEY", FIREBASE_API_KEY)
        if not project_id:
            raise ConfigError("FIREBASE_PROJECT_ID not set", hint="Add it to your environment or .env file.")
        if not api_key:
            raise ConfigError("FIREBASE_API_KEY not set", hint="Add it to your environment or .env file.")
        return cls(project_id=project_id, api_key=api_key)
