"""SQLAlchemy repository implementations."""

import dataclasses
import logging
from typing import Any
from uuid import UUID

from sqlalchemy import Select, delete, func, or_, select
from sqlalchemy.orm import aliased

from spotlink.domain.entities import (
    CatalogEntity,
    CatalogQuery,
    ItemCounts,
    ItemKind,
    LinkedChild,
    MediaType,
    QueryResult,
    User,
    UserItemData,
)
from spotlink.domain.ports import ICatalogRepository, IUserDataRepository, IUserRepository
from spotlink.domain.value_objects import ImageRef
from spotlink.infrastructure.persistence.database import Database
from spotlink.infrastructure.persistence.models import (
    CatalogItemModel,
    UserItemDataModel,
    UserModel,
)

logger = logging.getLogger(__name__)

# Ancestor scoping follows parent_id at most this many levels up
# (track -> album -> artist -> folder).
MAX_ANCESTOR_DEPTH = 3


def _ids(values: list[UUID]) -> list[str]:
    return [str(value) for value in values]


def _uuid(value: str | None) -> UUID | None:
    return UUID(value) if value else None


def _image(url: str | None, width: int | None, height: int | None) -> ImageRef | None:
    if not url:
        return None
    return ImageRef(url=url, width=width, height=height)


def model_to_entity(model: CatalogItemModel) -> CatalogEntity:
    """Convert ORM row to domain entity."""
    return CatalogEntity(
        id=UUID(model.id),
        kind=ItemKind(model.kind),
        name=model.name,
        sort_name=model.sort_name,
        parent_id=_uuid(model.parent_id),
        owner_id=_uuid(model.owner_id),
        service_name=model.service_name,
        external_id=model.external_id,
        path=model.path,
        provider_ids=dict(model.provider_ids or {}),
        home_page_url=model.home_page_url,
        genres=list(model.genres or []),
        primary_image=_image(
            model.primary_image_url, model.primary_image_width, model.primary_image_height
        ),
        thumb_image=_image(
            model.thumb_image_url, model.thumb_image_width, model.thumb_image_height
        ),
        production_year=model.production_year,
        run_time_ticks=model.run_time_ticks,
        index_number=model.index_number,
        parent_index_number=model.parent_index_number,
        artists=list(model.artists or []),
        album_artists=list(model.album_artists or []),
        linked_children=[
            LinkedChild(item_id=UUID(child["item_id"]), external_id=child.get("external_id"))
            for child in (model.linked_children or [])
        ],
    )


def apply_entity(model: CatalogItemModel, item: CatalogEntity) -> None:
    """Copy every entity field onto the ORM row."""
    model.kind = item.kind.value
    model.name = item.name
    model.sort_name = item.sort_name
    model.parent_id = str(item.parent_id) if item.parent_id else None
    model.owner_id = str(item.owner_id) if item.owner_id else None
    model.service_name = item.service_name
    model.external_id = item.external_id
    model.path = item.path
    model.provider_ids = dict(item.provider_ids)
    model.home_page_url = item.home_page_url
    model.genres = list(item.genres)
    model.primary_image_url = item.primary_image.url if item.primary_image else None
    model.primary_image_width = item.primary_image.width if item.primary_image else None
    model.primary_image_height = item.primary_image.height if item.primary_image else None
    model.thumb_image_url = item.thumb_image.url if item.thumb_image else None
    model.thumb_image_width = item.thumb_image.width if item.thumb_image else None
    model.thumb_image_height = item.thumb_image.height if item.thumb_image else None
    model.production_year = item.production_year
    model.run_time_ticks = item.run_time_ticks
    model.index_number = item.index_number
    model.parent_index_number = item.parent_index_number
    model.artists = list(item.artists)
    model.album_artists = list(item.album_artists)
    model.linked_children = [
        {"item_id": str(child.item_id), "external_id": child.external_id}
        for child in item.linked_children
    ]


class SqlCatalogRepository(ICatalogRepository):
    """SQLAlchemy implementation of the catalog backing store.

    Hey future me - unlike request-scoped repos, this one is long-lived (the
    federated catalog holds on to it for the whole process), so every call opens
    its own short transaction via Database.session_scope().
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    async def save_item(self, item: CatalogEntity) -> None:
        await self.save_items([item])

    async def save_items(self, items: list[CatalogEntity]) -> None:
        async with self.db.session_scope() as session:
            for item in items:
                model = await session.get(CatalogItemModel, str(item.id))
                if model is None:
                    model = CatalogItemModel(id=str(item.id))
                    session.add(model)
                apply_entity(model, item)

    async def retrieve_item(self, item_id: UUID) -> CatalogEntity | None:
        async with self.db.session_scope() as session:
            model = await session.get(CatalogItemModel, str(item_id))
            return model_to_entity(model) if model else None

    async def delete_item(self, item_id: UUID) -> None:
        async with self.db.session_scope() as session:
            await session.execute(
                delete(CatalogItemModel).where(CatalogItemModel.id == str(item_id))
            )

    async def get_items(self, query: CatalogQuery) -> QueryResult[CatalogEntity]:
        async with self.db.session_scope() as session:
            total = await session.scalar(self._count_stmt(query)) or 0
            rows = await session.scalars(self._paged(self._filtered(query), query))
            return QueryResult(
                items=[model_to_entity(model) for model in rows],
                total_record_count=total,
                start_index=query.start_index or 0,
            )

    async def get_item_list(self, query: CatalogQuery) -> list[CatalogEntity]:
        async with self.db.session_scope() as session:
            rows = await session.scalars(self._paged(self._filtered(query), query))
            return [model_to_entity(model) for model in rows]

    async def get_item_ids(self, query: CatalogQuery) -> list[UUID]:
        stmt = self._filtered(query).with_only_columns(CatalogItemModel.id)
        async with self.db.session_scope() as session:
            rows = await session.scalars(self._paged(stmt, query))
            return [UUID(value) for value in rows]

    async def get_count(self, query: CatalogQuery) -> int:
        async with self.db.session_scope() as session:
            return await session.scalar(self._count_stmt(query)) or 0

    async def get_artists(
        self, query: CatalogQuery
    ) -> QueryResult[tuple[CatalogEntity, ItemCounts]]:
        return await self._artists(query, album_artists_only=False)

    async def get_album_artists(
        self, query: CatalogQuery
    ) -> QueryResult[tuple[CatalogEntity, ItemCounts]]:
        return await self._artists(query, album_artists_only=True)

    async def get_all_artists(
        self, query: CatalogQuery
    ) -> QueryResult[tuple[CatalogEntity, ItemCounts]]:
        return await self._artists(query, album_artists_only=False)

    async def get_genre_names(self) -> list[str]:
        async with self.db.session_scope() as session:
            rows = await session.scalars(select(CatalogItemModel.genres))
            return sorted({genre for genres in rows for genre in (genres or [])})

    async def get_all_artist_names(self) -> list[str]:
        stmt = (
            select(CatalogItemModel.name)
            .where(CatalogItemModel.kind == ItemKind.ARTIST.value)
            .distinct()
            .order_by(CatalogItemModel.name)
        )
        async with self.db.session_scope() as session:
            return list(await session.scalars(stmt))

    # Hey future me - artist counts are two correlated subqueries: albums directly
    # below the artist, and tracks below those albums. Fine for a few thousand
    # artists, rethink it if this ever shows up in a profile.
    async def _artists(
        self, query: CatalogQuery, album_artists_only: bool
    ) -> QueryResult[tuple[CatalogEntity, ItemCounts]]:
        artist_query = dataclasses.replace(
            query, include_item_types=[ItemKind.ARTIST], media_types=[]
        )
        stmt = self._filtered(artist_query)

        album = aliased(CatalogItemModel)
        track = aliased(CatalogItemModel)
        album_count = (
            select(func.count(album.id))
            .where(album.parent_id == CatalogItemModel.id, album.kind == ItemKind.ALBUM.value)
            .correlate(CatalogItemModel)
            .scalar_subquery()
        )
        song_count = (
            select(func.count(track.id))
            .select_from(track.join(album, track.parent_id == album.id))
            .where(
                track.kind == ItemKind.AUDIO.value,
                album.kind == ItemKind.ALBUM.value,
                album.parent_id == CatalogItemModel.id,
            )
            .correlate(CatalogItemModel)
            .scalar_subquery()
        )
        if album_artists_only:
            stmt = stmt.where(album_count > 0)

        async with self.db.session_scope() as session:
            total = await session.scalar(
                select(func.count()).select_from(stmt.order_by(None).subquery())
            )
            rows = await session.execute(
                self._paged(stmt.add_columns(album_count, song_count), artist_query)
            )
            items = [
                (
                    model_to_entity(model),
                    ItemCounts(artist_count=1, album_count=albums or 0, song_count=songs or 0),
                )
                for model, albums, songs in rows
            ]
        return QueryResult(
            items=items, total_record_count=total or 0, start_index=query.start_index or 0
        )

    def _filtered(self, query: CatalogQuery) -> Select[Any]:
        item = CatalogItemModel
        stmt = select(item)

        kinds = [kind.value for kind in query.include_item_types]
        if MediaType.AUDIO in query.media_types and ItemKind.AUDIO.value not in kinds:
            kinds.append(ItemKind.AUDIO.value)
        if kinds:
            stmt = stmt.where(item.kind.in_(kinds))

        if query.parent_id:
            stmt = stmt.where(item.parent_id == str(query.parent_id))
        if query.ancestor_ids:
            stmt = stmt.where(self._below(_ids(query.ancestor_ids)))
        artist_ids = _ids([*query.artist_ids, *query.album_artist_ids])
        if artist_ids:
            stmt = stmt.where(self._below(artist_ids))
        if query.top_parent_ids:
            top_ids = _ids(query.top_parent_ids)
            stmt = stmt.where(or_(item.id.in_(top_ids), self._below(top_ids)))

        if query.search_term:
            stmt = stmt.where(func.lower(item.name).contains(query.search_term.lower()))
        if query.name:
            stmt = stmt.where(item.name == query.name)

        if query.is_favorite is not None and query.user is not None:
            favorites = select(UserItemDataModel.item_id).where(
                UserItemDataModel.user_id == str(query.user.id),
                UserItemDataModel.is_favorite.is_(True),
            )
            if query.is_favorite:
                stmt = stmt.where(item.id.in_(favorites))
            else:
                stmt = stmt.where(item.id.not_in(favorites))

        return stmt.order_by(
            func.coalesce(item.sort_name, item.name), item.parent_index_number, item.index_number
        )

    @staticmethod
    def _below(ancestor_ids: list[str]) -> Any:
        """Condition: some ancestor within MAX_ANCESTOR_DEPTH levels is in ancestor_ids."""
        conditions = []
        level_ids: Any = ancestor_ids
        for _ in range(MAX_ANCESTOR_DEPTH):
            conditions.append(CatalogItemModel.parent_id.in_(level_ids))
            parent = aliased(CatalogItemModel)
            level_ids = select(parent.id).where(parent.parent_id.in_(level_ids))
        return or_(*conditions)

    def _count_stmt(self, query: CatalogQuery) -> Select[Any]:
        filtered = self._filtered(query).order_by(None).subquery()
        return select(func.count()).select_from(filtered)

    @staticmethod
    def _paged(stmt: Select[Any], query: CatalogQuery) -> Select[Any]:
        if query.start_index:
            stmt = stmt.offset(query.start_index)
        if query.limit is not None:
            stmt = stmt.limit(query.limit)
        return stmt


class UserRepository(IUserRepository):
    """SQLAlchemy implementation of the user repository."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def get(self, user_id: UUID) -> User | None:
        async with self.db.session_scope() as session:
            model = await session.get(UserModel, str(user_id))
            return self._to_entity(model) if model else None

    async def add(self, user: User) -> None:
        async with self.db.session_scope() as session:
            model = UserModel(id=str(user.id), username=user.username)
            self._apply(model, user)
            session.add(model)

    async def update(self, user: User) -> None:
        async with self.db.session_scope() as session:
            model = await session.get(UserModel, str(user.id))
            if model is None:
                logger.warning("Tried to update unknown user %s", user.id)
                return
            self._apply(model, user)

    async def list_with_spotify_credentials(self) -> list[User]:
        stmt = select(UserModel).where(
            or_(
                UserModel.spotify_api_key.is_not(None),
                UserModel.spotify_web_token.is_not(None),
            )
        )
        async with self.db.session_scope() as session:
            rows = await session.scalars(stmt)
            return [self._to_entity(model) for model in rows]

    @staticmethod
    def _apply(model: UserModel, user: User) -> None:
        model.username = user.username
        model.spotify_api_key = user.spotify_api_key
        model.spotify_token = user.spotify_token
        model.spotify_web_token = user.spotify_web_token
        model.spotify_refresh_token = user.spotify_refresh_token
        model.spotify_market = user.spotify_market

    @staticmethod
    def _to_entity(model: UserModel) -> User:
        return User(
            id=UUID(model.id),
            username=model.username,
            spotify_api_key=model.spotify_api_key,
            spotify_token=model.spotify_token,
            spotify_web_token=model.spotify_web_token,
            spotify_refresh_token=model.spotify_refresh_token,
            spotify_market=model.spotify_market,
        )


class UserDataRepository(IUserDataRepository):
    """SQLAlchemy implementation of per-user item state."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def get(self, user_id: UUID, item_id: UUID) -> UserItemData | None:
        async with self.db.session_scope() as session:
            model = await session.get(UserItemDataModel, (str(user_id), str(item_id)))
            if model is None:
                return None
            return UserItemData(
                user_id=user_id,
                item_id=item_id,
                is_favorite=model.is_favorite,
                play_count=model.play_count,
            )

    async def save(self, data: UserItemData) -> None:
        async with self.db.session_scope() as session:
            model = await session.get(
                UserItemDataModel, (str(data.user_id), str(data.item_id))
            )
            if model is None:
                model = UserItemDataModel(user_id=str(data.user_id), item_id=str(data.item_id))
                session.add(model)
            model.is_favorite = data.is_favorite
            model.play_count = data.play_count
