"""Environment-driven configuration for the image upload service."""

from pathlib import Path
from typing import Annotated, Any, List, Optional

from pydantic import PositiveInt, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent

DEFAULT_UPLOAD_DIR = BASE_DIR / "uploads"
DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024
DEFAULT_POOL_SIZE = 10
DEFAULT_CORS_ORIGINS = ["http://localhost:5174"]


class Settings(BaseSettings):
    """Runtime settings, read from environment variables of the same name.

    Attributes:
        database_dir: Directory holding `app.db` (DATABASE_DIR). Required before
            the database can be opened; see `AsyncDatabaseInitializer`.
        upload_dir: Directory where uploaded image files are written.
        max_upload_bytes: Largest accepted upload, in bytes.
        db_pool_size: Maximum number of concurrently checked-out connections.
        cors_origins: Origins allowed to call the API, comma separated in the env.
        log_level: Root logging level name.
        host: Bind address used when run as a script.
        port: Bind port used when run as a script.
    """

    database_dir: Optional[Path] = None
    upload_dir: Path = DEFAULT_UPLOAD_DIR
    max_upload_bytes: PositiveInt = DEFAULT_MAX_UPLOAD_BYTES
    db_pool_size: PositiveInt = DEFAULT_POOL_SIZE
    cors_origins: Annotated[List[str], NoDecode] = DEFAULT_CORS_ORIGINS
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: PositiveInt = 5000

    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @field_validator("database_dir", mode="before")
    @classmethod
    def _blank_database_dir(cls, value: Any) -> Any:
        if isinstance(value, str):
            return Path(value.strip()).expanduser() if value.strip() else None
        return value

    @field_validator("upload_dir", mode="before")
    @classmethod
    def _blank_upload_dir(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_UPLOAD_DIR
        if isinstance(value, str):
            return Path(value.strip()).expanduser()
        return value

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper() or "INFO"
        return value
