"""Database configuration and the Store, the only reader and writer of persisted state."""
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, NamedTuple, Optional, Union

from sqlalchemy import delete, event, func, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import defer
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

from errors import ConstraintError, NotFoundError, StoreError
from models import Asset, File, Photo, Post, PostAsset, PostPhoto, PostTag, User

RENDITION_COLUMNS = {"large": Photo.image_large_jpg, "small": Photo.image_small_jpg}

# Listings and lookups leave the rendition blobs unloaded
WITHOUT_RENDITIONS = (defer(Photo.image_large_jpg), defer(Photo.image_small_jpg))


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


def create_db_engine(db_path: Union[str, Path]) -> Engine:
    """Create a SQLite engine; ":memory:" gives a single shared in-memory database."""
    if str(db_path) == ":memory:":
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(
            f"sqlite:///{db_path}", connect_args={"check_same_thread": False}
        )
    event.listen(engine, "connect", _enable_foreign_keys)
    return engine


def init_db(engine: Engine) -> None:
    """Initialize database tables."""
    try:
        SQLModel.metadata.create_all(engine)
    except SQLAlchemyError as exc:
        raise StoreError(f"failed to create tables: {exc}") from exc


class PhotoPage(NamedTuple):
    items: list[Photo]
    hidden_count: int
    total: int


class Store:
    """Typed access to posts, tags, photos, assets, files and users.

    Every call runs in its own session and commits on return. Calls made through
    the store yielded by ``transaction()`` share one session and commit together.
    """

    def __init__(self, engine: Engine, session: Optional[Session] = None):
        self.engine = engine
        self._session = session

    @classmethod
    def open(cls, db_path: Union[str, Path]) -> "Store":
        engine = create_db_engine(db_path)
        init_db(engine)
        return cls(engine)

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        try:
            if self._session is not None:
                yield self._session
                self._session.flush()
            else:
                with Session(self.engine, expire_on_commit=False) as s:
                    yield s
                    s.commit()
        except IntegrityError as exc:
            raise ConstraintError(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    @contextmanager
    def transaction(self) -> Iterator["Store"]:
        """Group several calls into one commit; any exception rolls them all back."""
        if self._session is not None:
            yield self
            return
        try:
            with Session(self.engine, expire_on_commit=False) as s:
                yield Store(self.engine, session=s)
                s.commit()
        except IntegrityError as exc:
            raise ConstraintError(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    # Posts and tags

    def insert_post(self, post: Post) -> Post:
        with self._session_scope() as s:
            s.add(post)
        return post

    def find_post_by_id(self, post_id: str) -> Optional[Post]:
        with self._session_scope() as s:
            return s.get(Post, post_id)

    def find_post_by_permalink(self, permalink: str) -> Optional[Post]:
        with self._session_scope() as s:
            return s.exec(select(Post).where(Post.permalink == permalink)).first()

    def get_post(self, post_id: str) -> Post:
        post = self.find_post_by_id(post_id)
        if post is None:
            raise NotFoundError(f"post {post_id} not found")
        return post

    def list_posts(self, limit: Optional[int] = None) -> list[Post]:
        with self._session_scope() as s:
            stmt = select(Post).order_by(Post.date.desc())
            if limit is not None:
                stmt = stmt.limit(limit)
            return list(s.exec(stmt).all())

    def replace_tags(self, post_id: str, tags: list[str]) -> None:
        """Replace a post's whole tag set."""
        with self._session_scope() as s:
            s.execute(delete(PostTag).where(PostTag.post_id == post_id))
            for tag in tags:
                s.add(PostTag(post_id=post_id, tag=tag))

    def get_tags(self, post_id: str) -> list[str]:
        with self._session_scope() as s:
            stmt = select(PostTag.tag).where(PostTag.post_id == post_id).order_by(PostTag.id)
            return list(s.exec(stmt).all())

    def delete_all_posts(self) -> None:
        """Delete every post; tags and post associations go with them."""
        with self._session_scope() as s:
            s.execute(delete(Post))

    # Photos

    def insert_photo(self, photo: Photo) -> Photo:
        with self._session_scope() as s:
            s.add(photo)
        return photo

    def find_photo_by_path(self, source_path: str) -> Optional[Photo]:
        with self._session_scope() as s:
            stmt = (
                select(Photo)
                .options(*WITHOUT_RENDITIONS)
                .where(Photo.source_path == source_path)
            )
            return s.exec(stmt).first()

    def find_photo_by_id(self, photo_id: str) -> Optional[Photo]:
        with self._session_scope() as s:
            stmt = select(Photo).options(*WITHOUT_RENDITIONS).where(Photo.id == photo_id)
            return s.exec(stmt).first()

    def get_photo_data(self, photo_id: str, size: str = "large") -> bytes:
        """Return the JPEG bytes of a photo's large or small rendition."""
        if size not in RENDITION_COLUMNS:
            raise ValueError(f"unknown rendition size: {size}")
        with self._session_scope() as s:
            data = s.exec(
                select(RENDITION_COLUMNS[size]).where(Photo.id == photo_id)
            ).first()
        if data is None:
            raise NotFoundError(f"photo {photo_id} not found")
        return data

    def list_photos(
        self,
        post_id: Optional[str] = None,
        include_private: bool = False,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> PhotoPage:
        """List photos newest post first, then newest photo first.

        Private photos are left out unless include_private is set; hidden_count
        reports how many were left out.
        """
        with self._session_scope() as s:
            stmt = (
                select(Photo)
                .options(*WITHOUT_RENDITIONS)
                .join(PostPhoto, PostPhoto.photo_id == Photo.id)
                .join(Post, Post.id == PostPhoto.post_id)
            )
            count_stmt = (
                select(func.count())
                .select_from(Photo)
                .join(PostPhoto, PostPhoto.photo_id == Photo.id)
            )
            if post_id is not None:
                stmt = stmt.where(PostPhoto.post_id == post_id)
                count_stmt = count_stmt.where(PostPhoto.post_id == post_id)

            hidden_count = 0
            if not include_private:
                hidden_count = s.exec(count_stmt.where(Photo.is_private == True)).one()  # noqa: E712
                stmt = stmt.where(Photo.is_private == False)  # noqa: E712
                count_stmt = count_stmt.where(Photo.is_private == False)  # noqa: E712
            total = s.exec(count_stmt).one()

            stmt = stmt.order_by(Post.date.desc(), Photo.source_time.desc()).offset(offset)
            if limit is not None:
                stmt = stmt.limit(limit)
            return PhotoPage(list(s.exec(stmt).all()), hidden_count, total)

    def get_post_for_photo(self, photo_id: str) -> Optional[Post]:
        with self._session_scope() as s:
            stmt = (
                select(Post)
                .join(PostPhoto, PostPhoto.post_id == Post.id)
                .where(PostPhoto.photo_id == photo_id)
            )
            return s.exec(stmt).first()

    def link_post_photo(self, post_id: str, photo_id: str) -> None:
        with self._session_scope() as s:
            s.add(PostPhoto(post_id=post_id, photo_id=photo_id))

    def delete_photo(self, photo_id: str) -> None:
        with self._session_scope() as s:
            photo = s.get(Photo, photo_id)
            if photo is not None:
                s.delete(photo)
                s.flush()

    def mark_photo(self, photo_id: str) -> None:
        with self._session_scope() as s:
            s.execute(update(Photo).where(Photo.id == photo_id).values(mark=True))

    def unmark_all_photos(self) -> None:
        with self._session_scope() as s:
            s.execute(update(Photo).values(mark=False))

    def delete_unmarked_photos(self) -> int:
        """Delete every photo not marked since the last unmark; returns how many."""
        with self._session_scope() as s:
            result = s.execute(delete(Photo).where(Photo.mark == False))  # noqa: E712
            return result.rowcount

    # Assets

    def insert_asset(self, name: str, data: bytes) -> Asset:
        asset = Asset(name=name, data=data)
        with self._session_scope() as s:
            s.add(asset)
            s.flush()
        return asset

    def link_post_asset(self, post_id: str, asset_id: int) -> None:
        with self._session_scope() as s:
            s.add(PostAsset(post_id=post_id, asset_id=asset_id))

    def find_asset(self, post_id: str, name: str) -> Optional[Asset]:
        with self._session_scope() as s:
            stmt = (
                select(Asset)
                .join(PostAsset, PostAsset.asset_id == Asset.id)
                .where(PostAsset.post_id == post_id, Asset.name == name)
            )
            return s.exec(stmt).first()

    def delete_all_assets(self) -> None:
        with self._session_scope() as s:
            s.execute(delete(Asset))

    # Files

    def insert_file(self, name: str, path: str, data: bytes) -> File:
        file = File(name=name, path=path, data=data)
        with self._session_scope() as s:
            s.add(file)
            s.flush()
        return file

    def find_file(self, path: str, name: str) -> Optional[File]:
        with self._session_scope() as s:
            return s.exec(select(File).where(File.path == path, File.name == name)).first()

    def delete_all_files(self) -> None:
        with self._session_scope() as s:
            s.execute(delete(File))

    # Users

    def insert_user(self, key_hash: str, group_name: str) -> User:
        user = User(key_hash=key_hash, group_name=group_name)
        with self._session_scope() as s:
            s.add(user)
        return user

    def find_user_by_key_hash(self, key_hash: str) -> Optional[User]:
        with self._session_scope() as s:
            return s.get(User, key_hash)

    def delete_all_users(self) -> None:
        with self._session_scope() as s:
            s.execute(delete(User))

    def count(self, model: type[SQLModel]) -> int:
        """Count the rows of one table."""
        with self._session_scope() as s:
            return s.exec(select(func.count()).select_from(model)).one()
