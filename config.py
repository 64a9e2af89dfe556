"""Configuration settings for postvault."""
import json
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from errors import ContentIOError, DecodeError

DEFAULT_CONFIG_FILE = Path("website.json")


class UserConfig(BaseModel):
    key: str
    group: str


class Settings(BaseSettings):
    """Build settings, read from a JSON file and POSTVAULT_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="POSTVAULT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_path: Path = Path("website.db")
    posts_path: Path = Path("posts")
    files_path: Path = Path("files")

    # Relative to each post directory
    post_content_path: str = "index.md"
    post_metadata_path: str = "metadata.json"
    post_assets_path: str = "assets"
    post_public_photos_path: str = "photos"
    post_private_photos_path: str = "private"

    photo_max_preview_size: int = Field(default=512, gt=0)
    photo_quality: int = Field(default=85, ge=0, le=100)
    photos_per_page: int = Field(default=24, gt=0)

    # Threads used for photo transforms; 1 keeps the build fully sequential
    build_workers: int = Field(default=1, ge=1)

    users: list[UserConfig] = Field(default_factory=list)


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """Load settings from a JSON config file; environment variables fill the rest.

    With no path, website.json in the working directory is used when it exists.
    """
    if path is None:
        if not DEFAULT_CONFIG_FILE.exists():
            return Settings()
        path = DEFAULT_CONFIG_FILE
    path = Path(path)
    try:
        values = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ContentIOError(f"failed to read configuration file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise DecodeError(f"failed to decode configuration file {path}: {exc}") from exc
    if not isinstance(values, dict):
        raise DecodeError(f"configuration file {path} must hold a JSON object")
    try:
        return Settings(**values)
    except ValidationError as exc:
        raise DecodeError(f"invalid configuration in {path}: {exc}") from exc
