"""SQLAlchemy ORM models for SpotLink."""

from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import JSON, BigInteger, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Hey future me - ONE table for artists, albums, tracks and folders. The hierarchy
# is parent_id (track -> album -> artist -> root folder), NOT a foreign key: remote
# items can point at parents that a library cleanup already deleted, and the
# federation layer copes with that by re-materializing.
# Ids are String(36) UUIDs like everywhere else in the codebase.
class CatalogItemModel(Base):
    """SQLAlchemy model for CatalogEntity."""

    __tablename__ = "catalog_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    sort_name: Mapped[str | None] = mapped_column(String(512), nullable=True)
    parent_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    owner_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    service_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    # "spotify:<kind>:<id>" for remote items, the lossless remote reference
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    path: Mapped[str | None] = mapped_column(Text, nullable=True)
    provider_ids: Mapped[dict[str, str]] = mapped_column(
        JSON, nullable=False, default=dict, server_default="{}"
    )
    home_page_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    genres: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list, server_default="[]"
    )
    primary_image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    primary_image_width: Mapped[int | None] = mapped_column(Integer, nullable=True)
    primary_image_height: Mapped[int | None] = mapped_column(Integer, nullable=True)
    thumb_image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    thumb_image_width: Mapped[int | None] = mapped_column(Integer, nullable=True)
    thumb_image_height: Mapped[int | None] = mapped_column(Integer, nullable=True)
    production_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    run_time_ticks: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    index_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    parent_index_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    artists: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list, server_default="[]"
    )
    album_artists: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list, server_default="[]"
    )
    # [{"item_id": "...", "external_id": "spotify:track:..."}, ...]
    linked_children: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list, server_default="[]"
    )
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        Index("ix_catalog_items_name_lower", func.lower(name)),
        Index("ix_catalog_items_kind_sort", "kind", "sort_name"),
    )


class UserModel(Base):
    """SQLAlchemy model for User and the stored Spotify credentials."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    username: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    # "clientId:clientSecret"
    spotify_api_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    spotify_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    spotify_web_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    spotify_refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    spotify_market: Mapped[str | None] = mapped_column(String(8), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )


class UserItemDataModel(Base):
    """Per-user state (favorite flag, play count) for a catalog item."""

    __tablename__ = "user_item_data"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    item_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("catalog_items.id", ondelete="CASCADE"), primary_key=True
    )
    is_favorite: Mapped[bool] = mapped_column(
        sa.Boolean(), nullable=False, default=False, server_default="0"
    )
    play_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    __table_args__ = (Index("ix_user_item_data_favorite", "user_id", "is_favorite"),)
