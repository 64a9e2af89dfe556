"""Tests for post sidecar metadata."""
import json
from pathlib import Path

import pytest

from errors import ContentIOError, DecodeError, MetadataError
from metadata import MetadataRepository
from models import PostMetadata


@pytest.fixture
def repo() -> MetadataRepository:
    return MetadataRepository()


def write_json(path: Path, data: object) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestLoad:
    def test_full_sidecar(self, repo: MetadataRepository, tmp_path: Path) -> None:
        path = write_json(
            tmp_path / "metadata.json",
            {
                "id": "0123456789abcdef",
                "title": "Hello",
                "description": "First post",
                "date": "2024-01-01",
                "tags": ["A b", "c"],
                "permalink": "hello",
            },
        )
        meta = repo.load(path)
        assert meta.id == "0123456789abcdef"
        assert meta.title == "Hello"
        assert meta.description == "First post"
        assert meta.tags == ["A b", "c"]
        assert meta.permalink == "hello"

    def test_optional_fields_default(self, repo: MetadataRepository, tmp_path: Path) -> None:
        path = write_json(tmp_path / "metadata.json", {"title": "Hello", "date": "2024-01-01"})
        meta = repo.load(path)
        assert meta.id is None
        assert meta.description is None
        assert meta.permalink is None
        assert meta.tags == []

    def test_missing_file(self, repo: MetadataRepository, tmp_path: Path) -> None:
        with pytest.raises(ContentIOError):
            repo.load(tmp_path / "metadata.json")

    def test_invalid_json(self, repo: MetadataRepository, tmp_path: Path) -> None:
        path = tmp_path / "metadata.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(MetadataError):
            repo.load(path)

    def test_missing_title(self, repo: MetadataRepository, tmp_path: Path) -> None:
        path = write_json(tmp_path / "metadata.json", {"date": "2024-01-01"})
        with pytest.raises(DecodeError):
            repo.load(path)

    def test_invalid_utf8(self, repo: MetadataRepository, tmp_path: Path) -> None:
        path = tmp_path / "metadata.json"
        path.write_bytes(b'{"title": "\xff\xfe", "date": "2024-01-01"}')
        with pytest.raises(MetadataError):
            repo.load(path)


class TestSave:
    def test_writes_four_space_indent(self, repo: MetadataRepository, tmp_path: Path) -> None:
        path = tmp_path / "metadata.json"
        repo.save(path, PostMetadata(id="00000000000000ff", title="Hello", date="2024-01-01"))
        text = path.read_text(encoding="utf-8")
        assert '\n    "id": "00000000000000ff",' in text
        assert json.loads(text)["id"] == "00000000000000ff"

    def test_field_order(self, repo: MetadataRepository, tmp_path: Path) -> None:
        path = tmp_path / "metadata.json"
        repo.save(path, PostMetadata(title="Hello", date="2024-01-01", tags=["x"]))
        keys = list(json.loads(path.read_text(encoding="utf-8")))
        assert keys == ["id", "title", "description", "date", "tags", "permalink"]

    def test_round_trip(self, repo: MetadataRepository, tmp_path: Path) -> None:
        path = tmp_path / "metadata.json"
        meta = PostMetadata(
            id="abcdef0123456789",
            title="Ünïcode",
            description=None,
            date="2023-12-31",
            tags=["one", "Two Words"],
            permalink="uni",
        )
        repo.save(path, meta)
        assert repo.load(path) == meta
        assert not (tmp_path / "metadata.json.tmp").exists()
