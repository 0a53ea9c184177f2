"""Configuration module for the notelinks engine."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from notelinks import __version__

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config lives alongside the default database
_USER_ENV = Path.home() / ".notelinks" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

# Suggestion lists beyond this size are never useful in a dropdown
_MAX_SUGGESTION_LIMIT = 100


class NoteLinksConfig(BaseModel):
    """Configuration for the notelinks engine."""

    # Base directory for relative paths
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("NOTELINKS_BASE_DIR", "."))
    )
    # Database used by the SQL-backed note store
    database_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("NOTELINKS_DATABASE_PATH", "data/db/notelinks.db")
        )
    )
    # Maximum number of autocomplete suggestions returned
    suggestion_limit: int = Field(
        default_factory=lambda: int(os.getenv("NOTELINKS_SUGGESTION_LIMIT", "10"))
    )
    # Logging configuration
    log_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("NOTELINKS_LOG_DIR"))
            if os.getenv("NOTELINKS_LOG_DIR")
            else None
        )
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("NOTELINKS_LOG_LEVEL", "INFO").upper()
    )
    version: str = Field(default=__version__)

    @model_validator(mode="after")
    def _validate_limits(self) -> "NoteLinksConfig":
        """Validate numeric settings and the log level name."""
        if self.suggestion_limit < 1:
            raise ValueError("suggestion_limit must be >= 1")
        if self.suggestion_limit > _MAX_SUGGESTION_LIMIT:
            logger.warning(
                "suggestion_limit=%d is unusually large; autocomplete lists "
                "are normally capped at 10",
                self.suggestion_limit,
            )
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {self.log_level}")
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_db_url(self) -> str:
        """Get the database URL for SQLite."""
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path}"

    def get_log_level(self) -> int:
        """Return the numeric logging level."""
        return getattr(logging, self.log_level)


# Create a global config instance
config = NoteLinksConfig()
