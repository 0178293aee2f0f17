"""
Configuration for the CouchDB SDK.

Uses pydantic-settings for environment variable loading.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    """Client configuration loaded from environment."""

    # CouchDB server
    url: str = Field(default="http://127.0.0.1:5984", description="Base URL of the CouchDB server")

    # HTTP settings
    timeout: float = Field(default=30.0, description="Request timeout in seconds")

    # Compaction
    compact_poll_interval: float = Field(
        default=1.0,
        ge=0,
        description="Seconds between compaction status checks when waiting",
    )

    model_config = {"env_prefix": "COUCHDB_"}
