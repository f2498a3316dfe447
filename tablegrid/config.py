"""Configuration model for the table grid editor."""

import os
from pathlib import Path

from pydantic import BaseModel, Field


class Config(BaseModel):
    """Configuration for table editing and the backend service."""

    # New tables
    default_rows: int = Field(3, ge=1, description="Rows of a newly inserted table")
    default_cols: int = Field(3, ge=1, description="Columns of a newly inserted table")

    # Subdivision defaults offered when splitting an unmerged cell
    default_split_rows: int = Field(2, ge=1, description="Default row count for a subdivision")
    default_split_cols: int = Field(1, ge=1, description="Default column count for a subdivision")

    # Track sizing
    min_track_percent: float = Field(
        5.0, ge=0.0, lt=100.0, description="Smallest width/height a resize may leave"
    )
    percent_tolerance: float = Field(
        0.01, gt=0.0, description="Allowed drift of width/height sums from 100"
    )

    # Legacy compatibility
    row_local_merge: bool = Field(
        False,
        description="Merge same-row runs into the jagged per-row form used by old documents",
    )

    # Backend
    diagrams_dir: Path = Field(Path.home() / "diagrams", description="Default diagram directory")
    api_host: str = Field("127.0.0.1", description="Backend bind address")
    api_port: int = Field(8765, ge=1, le=65535, description="Backend port")
    log_level: str = Field("INFO", description="Logging level for the backend")

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment variables.

        A .env file is loaded first if present; it does not override
        variables already set in the environment.
        """
        from dotenv import load_dotenv

        load_dotenv()

        return cls(
            default_rows=int(os.getenv("TABLEGRID_DEFAULT_ROWS", "3")),
            default_cols=int(os.getenv("TABLEGRID_DEFAULT_COLS", "3")),
            default_split_rows=int(os.getenv("TABLEGRID_DEFAULT_SPLIT_ROWS", "2")),
            default_split_cols=int(os.getenv("TABLEGRID_DEFAULT_SPLIT_COLS", "1")),
            min_track_percent=float(os.getenv("TABLEGRID_MIN_TRACK_PERCENT", "5.0")),
            percent_tolerance=float(os.getenv("TABLEGRID_PERCENT_TOLERANCE", "0.01")),
            row_local_merge=os.getenv("TABLEGRID_ROW_LOCAL_MERGE", "false").lower() == "true",
            diagrams_dir=Path(os.getenv("TABLEGRID_DIAGRAMS_DIR", str(Path.home() / "diagrams"))),
            api_host=os.getenv("TABLEGRID_API_HOST", "127.0.0.1"),
            api_port=int(os.getenv("TABLEGRID_API_PORT", "8765")),
            log_level=os.getenv("TABLEGRID_LOG_LEVEL", "INFO").upper(),
        )


_config: Config | None = None


def get_config() -> Config:
    """Return the process-wide config, loading it from the environment once."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def set_config(config: Config | None) -> None:
    """Replace the process-wide config (None forces a reload on next access)."""
    global _config
    _config = config
