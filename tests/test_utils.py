"""Tests for identifier and path helpers."""
import re
from pathlib import Path

from utils import derive_id, generate_id, iter_entries, normalize_tag, normalize_tags, source_key

HEX16 = re.compile(r"^[0-9a-f]{16}$")


class TestDeriveId:
    def test_fixed_width_lowercase_hex(self) -> None:
        assert HEX16.match(derive_id("posts/p1/photos/a.jpg"))

    def test_deterministic(self) -> None:
        assert derive_id("posts/p1/photos/a.jpg") == derive_id("posts/p1/photos/a.jpg")

    def test_known_value(self) -> None:
        # sha256("") starts with e3b0c44298fc1c14
        assert derive_id("") == "e3b0c44298fc1c14"

    def test_distinct_paths_distinct_ids(self) -> None:
        ids = {derive_id(f"posts/p/photos/{i}.jpg") for i in range(1000)}
        assert len(ids) == 1000


class TestGenerateId:
    def test_format(self) -> None:
        for _ in range(50):
            assert HEX16.match(generate_id())

    def test_not_repeated(self) -> None:
        assert len({generate_id() for _ in range(100)}) == 100


class TestTags:
    def test_lowercase_and_underscores(self) -> None:
        assert normalize_tag("A b") == "a_b"
        assert normalize_tag("Road Trip 2024") == "road_trip_2024"

    def test_keeps_order(self) -> None:
        assert normalize_tags(["Zeta", "alpha", "Mid Point"]) == ["zeta", "alpha", "mid_point"]


def test_source_key_uses_forward_slashes() -> None:
    assert source_key(Path("posts") / "p1" / "photos" / "a.jpg") == "posts/p1/photos/a.jpg"


class TestIterEntries:
    def test_missing_directory_is_empty(self, tmp_path: Path) -> None:
        assert iter_entries(tmp_path / "nope") == []

    def test_file_is_not_a_directory(self, tmp_path: Path) -> None:
        f = tmp_path / "f.txt"
        f.write_text("x")
        assert iter_entries(f) == []

    def test_sorted_by_name(self, tmp_path: Path) -> None:
        for name in ("c", "a", "b"):
            (tmp_path / name).write_text(name)
        assert [p.name for p in iter_entries(tmp_path)] == ["a", "b", "c"]
