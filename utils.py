"""Identifier and path helpers."""
import hashlib
import secrets
from pathlib import Path
from typing import Iterable


def source_key(path: Path) -> str:
    """Normalize a filesystem path into the string stored as a photo's source path."""
    return Path(path).as_posix()


def derive_id(path: str) -> str:
    """Derive a stable 16-digit hex id from a normalized path string."""
    return hashlib.sha256(path.encode("utf-8")).hexdigest()[:16]


def generate_id() -> str:
    """Generate a random 64-bit id formatted as 16 hex digits."""
    return f"{secrets.randbits(64):016x}"


def normalize_tag(tag: str) -> str:
    return tag.lower().replace(" ", "_")


def normalize_tags(tags: Iterable[str]) -> list[str]:
    return [normalize_tag(t) for t in tags]


def iter_entries(directory: Path) -> list[Path]:
    """List a directory's entries in name order, or nothing when it is absent."""
    if not directory.is_dir():
        return []
    try:
        return sorted(directory.iterdir(), key=lambda p: p.name)
    except OSError:
        return []
