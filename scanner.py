"""Content tree reconciliation.

A rebuild clears the regenerable tables (posts, tags, assets, files, users),
walks the content tree once re-inserting them, and keeps photos across runs
with a mark and sweep: every photo starts the pass unmarked, each photo seen on
disk is either marked (unchanged) or re-rendered and inserted marked, and the
photos still unmarked at the end are deleted.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Callable, Optional, Union

import imaging
from config import Settings
from database import Store
from errors import ConstraintError, ContentIOError, DecodeError
from metadata import MetadataRepository
from models import Photo, Post
from utils import derive_id, generate_id, iter_entries, normalize_tags, source_key

logger = logging.getLogger(__name__)

Transform = Callable[[bytes, int, int], imaging.Renditions]

# Failures that skip one item instead of aborting the rebuild
ITEM_ERRORS = (DecodeError, ContentIOError)


@dataclass
class ScanStats:
    posts: int = 0
    skipped_posts: int = 0
    files: int = 0
    assets: int = 0
    users: int = 0
    photos_added: int = 0
    photos_updated: int = 0
    photos_unchanged: int = 0
    photos_failed: int = 0
    photos_removed: int = 0

    def merge(self, other: "ScanStats") -> None:
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class PhotoJob:
    """A photo that needs rendering, and the stale row it replaces if any."""
    path: Path
    source_path: str
    source_time: int
    is_private: bool
    stale: Optional[Photo] = None


def list_root(path: Path) -> list[Path]:
    """List a required root directory; failure here is fatal."""
    if not path.is_dir():
        raise ContentIOError(f"not a directory: {path}")
    try:
        return sorted(path.iterdir(), key=lambda p: p.name)
    except OSError as exc:
        raise ContentIOError(f"failed to read directory {path}: {exc}") from exc


def read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise ContentIOError(f"failed to read {path}: {exc}") from exc


class Reconciler:
    """Rebuilds the store so that it mirrors the content tree."""

    def __init__(
        self,
        store: Store,
        settings: Settings,
        metadata: Optional[MetadataRepository] = None,
        transform: Transform = imaging.transform,
    ):
        self.store = store
        self.settings = settings
        self.metadata = metadata or MetadataRepository()
        self.transform = transform
        self.stats = ScanStats()

    def rebuild(self) -> ScanStats:
        """Run one full build over the content tree. Returns build stats."""
        cfg = self.settings
        post_dirs = list_root(cfg.posts_path)
        categories = list_root(cfg.files_path)
        self.stats = ScanStats()

        with self.store.transaction() as tx:
            tx.delete_all_posts()
            tx.delete_all_assets()
            tx.delete_all_files()
            tx.delete_all_users()
            tx.unmark_all_photos()

        self._build_users()
        self._build_files(categories)

        for post_dir in post_dirs:
            if not post_dir.is_dir():
                logger.debug("ignoring %s, not a post directory", post_dir)
                continue
            try:
                self.stats.merge(self._build_post(post_dir))
            except (*ITEM_ERRORS, ConstraintError) as exc:
                self.stats.skipped_posts += 1
                logger.warning("skipping post %s: %s", post_dir.name, exc)

        self.stats.photos_removed = self.store.delete_unmarked_photos()
        logger.info(
            "build done: %d posts (%d skipped), %d files, %d photos removed",
            self.stats.posts,
            self.stats.skipped_posts,
            self.stats.files,
            self.stats.photos_removed,
        )
        return self.stats

    def _build_users(self) -> None:
        for user in self.settings.users:
            try:
                self.store.insert_user(derive_id(user.key), user.group)
            except ConstraintError:
                logger.warning("skipping duplicate user key in group %s", user.group)
                continue
            self.stats.users += 1

    def _build_files(self, categories: list[Path]) -> None:
        for category in categories:
            if not category.is_dir():
                continue
            for entry in iter_entries(category):
                if not entry.is_file():
                    continue
                try:
                    data = read_bytes(entry)
                except ContentIOError as exc:
                    logger.warning("skipping file: %s", exc)
                    continue
                self.store.insert_file(entry.name, category.name, data)
                self.stats.files += 1

    def _build_post(self, post_dir: Path) -> ScanStats:
        """Insert one post with its tags, assets and photos in a single transaction."""
        cfg = self.settings
        stats = ScanStats(posts=1)
        logger.info("loading post %s", post_dir.name)

        content_path = post_dir / cfg.post_content_path
        try:
            source = content_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ContentIOError(f"failed to read {content_path}: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise DecodeError(f"{content_path} is not valid UTF-8") from exc

        metadata_path = post_dir / cfg.post_metadata_path
        meta = self.metadata.load(metadata_path)
        if meta.id is None:
            meta.id = generate_id()
            self.metadata.save(metadata_path, meta)
            logger.info("assigned id %s to post %s", meta.id, post_dir.name)
        post_id = meta.id

        with self.store.transaction() as tx:
            tx.insert_post(
                Post(
                    id=post_id,
                    title=meta.title,
                    description=meta.description,
                    date=meta.date,
                    permalink=meta.permalink,
                    source=source,
                )
            )
            tx.replace_tags(post_id, normalize_tags(meta.tags))

            for asset_path in iter_entries(post_dir / cfg.post_assets_path):
                if not asset_path.is_file():
                    continue
                try:
                    data = read_bytes(asset_path)
                except ContentIOError as exc:
                    logger.warning("skipping asset: %s", exc)
                    continue
                asset = tx.insert_asset(asset_path.name, data)
                tx.link_post_asset(post_id, asset.id)
                stats.assets += 1

            photos = [
                (path, False) for path in iter_entries(post_dir / cfg.post_public_photos_path)
            ] + [
                (path, True) for path in iter_entries(post_dir / cfg.post_private_photos_path)
            ]
            self._sync_photos(tx, post_id, photos, stats)

        return stats

    def _sync_photos(
        self,
        tx: Store,
        post_id: str,
        photos: list[tuple[Path, bool]],
        stats: ScanStats,
    ) -> None:
        jobs = []
        for path, is_private in photos:
            if not path.is_file():
                continue
            try:
                job = self._check_photo(tx, path, is_private)
            except ContentIOError as exc:
                stats.photos_failed += 1
                logger.warning("skipping photo: %s", exc)
                continue
            if isinstance(job, Photo):
                tx.link_post_photo(post_id, job.id)
                stats.photos_unchanged += 1
            else:
                jobs.append(job)

        for job, outcome in zip(jobs, self._render_all(jobs)):
            if isinstance(outcome, Exception):
                stats.photos_failed += 1
                logger.warning("skipping photo %s: %s", job.source_path, outcome)
                continue
            photo = self._store_photo(tx, job, outcome)
            tx.link_post_photo(post_id, photo.id)
            if job.stale is None:
                stats.photos_added += 1
            else:
                stats.photos_updated += 1

    def _check_photo(self, tx: Store, path: Path, is_private: bool) -> Union[Photo, PhotoJob]:
        """Mark and return the stored photo if it is current, else describe the render needed."""
        try:
            source_time = int(path.stat().st_mtime)
        except OSError as exc:
            raise ContentIOError(f"failed to stat {path}: {exc}") from exc
        key = source_key(path)

        existing = tx.find_photo_by_path(key)
        if existing is not None and existing.source_time >= source_time:
            logger.debug("photo %s is up to date", key)
            tx.mark_photo(existing.id)
            return existing
        if existing is not None:
            logger.debug("photo %s is outdated", key)
        else:
            logger.debug("photo %s is new", key)
        return PhotoJob(path, key, source_time, is_private, stale=existing)

    def _render(self, job: PhotoJob) -> imaging.Renditions:
        return self.transform(
            read_bytes(job.path),
            self.settings.photo_max_preview_size,
            self.settings.photo_quality,
        )

    def _render_all(self, jobs: list[PhotoJob]) -> list:
        """Render every job, in a thread pool when build_workers > 1.

        Each result is either the renditions or the item-level error that stopped them.
        """
        workers = self.settings.build_workers
        if workers > 1 and len(jobs) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = [pool.submit(self._render, job) for job in jobs]
            return [self._outcome(f.result) for f in futures]
        return [self._outcome(lambda job=job: self._render(job)) for job in jobs]

    @staticmethod
    def _outcome(fn: Callable[[], imaging.Renditions]):
        try:
            return fn()
        except ITEM_ERRORS as exc:
            return exc

    def _store_photo(self, tx: Store, job: PhotoJob, renditions: imaging.Renditions) -> Photo:
        if job.stale is not None:
            tx.delete_photo(job.stale.id)
        return tx.insert_photo(
            Photo(
                id=derive_id(job.source_path),
                mark=True,
                is_private=job.is_private,
                source_path=job.source_path,
                source_time=job.source_time,
                image_large_jpg=renditions.large,
                image_small_jpg=renditions.small,
            )
        )
