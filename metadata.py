"""Reading and writing post sidecar metadata."""
import json
import os
from pathlib import Path

from pydantic import ValidationError

from errors import ContentIOError, MetadataError
from models import PostMetadata


class MetadataRepository:
    """Loads and saves the JSON sidecar that sits next to each post's content."""

    indent = 4

    def load(self, path: Path) -> PostMetadata:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ContentIOError(f"failed to read metadata file {path}: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise MetadataError(f"{path} is not valid UTF-8") from exc
        try:
            return PostMetadata.model_validate_json(text)
        except ValidationError as exc:
            raise MetadataError(f"invalid metadata in {path}: {exc}") from exc

    def save(self, path: Path, metadata: PostMetadata) -> None:
        """Write metadata back pretty-printed; the file is swapped in atomically."""
        payload = json.dumps(metadata.model_dump(), ensure_ascii=False, indent=self.indent)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as handle:
                handle.write(payload + "\n")
                handle.flush()
                os.fsync(handle.fileno())
            tmp_path.replace(path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise ContentIOError(f"failed to write metadata file {path}: {exc}") from exc
