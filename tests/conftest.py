"""Shared pytest fixtures for postvault tests."""
import io
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional

import pytest
from PIL import Image

from config import Settings
from database import Store
from models import Photo


def create_test_image(
    width: int = 200, height: int = 100, color: str = "red", format: str = "PNG"
) -> bytes:
    """Create a small test image with some detail so JPEG sizes differ by dimension."""
    img = Image.new("RGB", (width, height), color=color)
    for x in range(0, width, 7):
        for y in range(0, height, 5):
            img.putpixel((x, y), ((x * 3) % 256, (y * 5) % 256, (x + y) % 256))
    buffer = io.BytesIO()
    img.save(buffer, format=format)
    return buffer.getvalue()


@pytest.fixture
def store(tmp_path: Path) -> Store:
    """A store backed by a fresh SQLite file."""
    return Store.open(tmp_path / "test.db")


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    posts = tmp_path / "content" / "posts"
    files = tmp_path / "content" / "files"
    posts.mkdir(parents=True)
    files.mkdir(parents=True)
    return Settings(
        database_path=tmp_path / "test.db",
        posts_path=posts,
        files_path=files,
        photo_max_preview_size=64,
        photo_quality=80,
    )


MakePost = Callable[..., Path]
MakePhoto = Callable[..., Photo]


@pytest.fixture
def make_post(settings: Settings) -> MakePost:
    """Factory fixture writing a post directory into the content tree."""

    def _make(
        name: str,
        *,
        metadata: Optional[dict[str, Any]] = None,
        body: str = "Some *markdown* text.",
        photos: Optional[dict[str, bytes]] = None,
        private: Optional[dict[str, bytes]] = None,
        assets: Optional[dict[str, bytes]] = None,
    ) -> Path:
        post_dir = settings.posts_path / name
        post_dir.mkdir()
        (post_dir / settings.post_content_path).write_text(body, encoding="utf-8")
        meta = metadata or {"title": name.title(), "date": "2024-01-01", "tags": []}
        (post_dir / settings.post_metadata_path).write_text(json.dumps(meta), encoding="utf-8")
        for subdir, items in (
            (settings.post_public_photos_path, photos),
            (settings.post_private_photos_path, private),
            (settings.post_assets_path, assets),
        ):
            if items is None:
                continue
            (post_dir / subdir).mkdir()
            for filename, data in items.items():
                (post_dir / subdir / filename).write_bytes(data)
        return post_dir

    return _make


@pytest.fixture
def make_photo() -> MakePhoto:
    """Factory fixture for Photo rows with placeholder renditions."""

    def _make(
        photo_id: str,
        *,
        source_path: Optional[str] = None,
        source_time: int = 1_700_000_000,
        is_private: bool = False,
        mark: bool = True,
    ) -> Photo:
        return Photo(
            id=photo_id,
            mark=mark,
            is_private=is_private,
            source_path=source_path or f"posts/p/photos/{photo_id}.jpg",
            source_time=source_time,
            image_large_jpg=b"large-" + photo_id.encode(),
            image_small_jpg=b"small-" + photo_id.encode(),
        )

    return _make
