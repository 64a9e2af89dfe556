"""Database models for postvault."""
from typing import Optional

from sqlmodel import Field, SQLModel


class Post(SQLModel, table=True):
    """A post, rebuilt from its directory on every build."""
    __tablename__ = "posts"

    id: str = Field(primary_key=True)
    title: str
    description: Optional[str] = None
    date: str = Field(index=True)
    permalink: Optional[str] = Field(default=None, unique=True)
    source: str = Field(description="Raw content body")


class PostTag(SQLModel, table=True):
    __tablename__ = "posts_tags"

    id: Optional[int] = Field(default=None, primary_key=True)
    post_id: str = Field(foreign_key="posts.id", ondelete="CASCADE", index=True)
    tag: str


class Photo(SQLModel, table=True):
    """A photo and its two JPEG renditions, reused across builds while unchanged."""
    __tablename__ = "photos"

    id: str = Field(primary_key=True)
    mark: bool = True
    is_private: bool = False
    source_path: str = Field(index=True, unique=True)
    source_time: int = Field(description="Source modification time, seconds")
    image_large_jpg: bytes
    image_small_jpg: bytes


class PostPhoto(SQLModel, table=True):
    __tablename__ = "posts_photos"

    post_id: str = Field(foreign_key="posts.id", ondelete="CASCADE", primary_key=True)
    photo_id: str = Field(foreign_key="photos.id", ondelete="CASCADE", primary_key=True)


class Asset(SQLModel, table=True):
    __tablename__ = "assets"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    data: bytes


class PostAsset(SQLModel, table=True):
    __tablename__ = "posts_assets"

    post_id: str = Field(foreign_key="posts.id", ondelete="CASCADE", primary_key=True)
    asset_id: int = Field(foreign_key="assets.id", ondelete="CASCADE", primary_key=True)


class File(SQLModel, table=True):
    """A static file; path is the name of the category directory holding it."""
    __tablename__ = "files"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    path: str = Field(index=True)
    data: bytes


class User(SQLModel, table=True):
    __tablename__ = "users"

    key_hash: str = Field(primary_key=True)
    group_name: str


class PostMetadata(SQLModel):
    """Contents of a post's JSON sidecar."""
    id: Optional[str] = None
    title: str
    description: Optional[str] = None
    date: str
    tags: list[str] = Field(default_factory=list)
    permalink: Optional[str] = None
