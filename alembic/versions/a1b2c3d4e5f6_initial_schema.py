"""initial schema: catalog items, users, per-user item data

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-17 09:00:00.000000

Hey future me - catalog_items holds BOTH local and Spotify-materialized items.
parent_id is not a foreign key: remote items may point at parents that were
cleaned up and get re-materialized on the next query.
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a1b2c3d4e5f6"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "catalog_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("name", sa.String(512), nullable=False),
        sa.Column("sort_name", sa.String(512), nullable=True),
        sa.Column("parent_id", sa.String(36), nullable=True),
        sa.Column("owner_id", sa.String(36), nullable=True),
        sa.Column("service_name", sa.String(50), nullable=True),
        sa.Column("external_id", sa.String(255), nullable=True),
        sa.Column("path", sa.Text(), nullable=True),
        sa.Column("provider_ids", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("home_page_url", sa.String(512), nullable=True),
        sa.Column("genres", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("primary_image_url", sa.String(512), nullable=True),
        sa.Column("primary_image_width", sa.Integer(), nullable=True),
        sa.Column("primary_image_height", sa.Integer(), nullable=True),
        sa.Column("thumb_image_url", sa.String(512), nullable=True),
        sa.Column("thumb_image_width", sa.Integer(), nullable=True),
        sa.Column("thumb_image_height", sa.Integer(), nullable=True),
        sa.Column("production_year", sa.Integer(), nullable=True),
        sa.Column("run_time_ticks", sa.BigInteger(), nullable=True),
        sa.Column("index_number", sa.Integer(), nullable=True),
        sa.Column("parent_index_number", sa.Integer(), nullable=True),
        sa.Column("artists", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("album_artists", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("linked_children", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_catalog_items_kind", "catalog_items", ["kind"])
    op.create_index("ix_catalog_items_parent_id", "catalog_items", ["parent_id"])
    op.create_index("ix_catalog_items_external_id", "catalog_items", ["external_id"])
    op.create_index("ix_catalog_items_kind_sort", "catalog_items", ["kind", "sort_name"])
    op.create_index(
        "ix_catalog_items_name_lower", "catalog_items", [sa.text("lower(name)")]
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("username", sa.String(255), nullable=False, unique=True),
        sa.Column("spotify_api_key", sa.String(255), nullable=True),
        sa.Column("spotify_token", sa.Text(), nullable=True),
        sa.Column("spotify_web_token", sa.Text(), nullable=True),
        sa.Column("spotify_refresh_token", sa.Text(), nullable=True),
        sa.Column("spotify_market", sa.String(8), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "user_item_data",
        sa.Column(
            "user_id",
            sa.String(36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "item_id",
            sa.String(36),
            sa.ForeignKey("catalog_items.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("is_favorite", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("play_count", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index(
        "ix_user_item_data_favorite", "user_item_data", ["user_id", "is_favorite"]
    )


def downgrade() -> None:
    op.drop_index("ix_user_item_data_favorite", table_name="user_item_data")
    op.drop_table("user_item_data")
    op.drop_table("users")
    op.drop_index("ix_catalog_items_name_lower", table_name="catalog_items")
    op.drop_index("ix_catalog_items_kind_sort", table_name="catalog_items")
    op.drop_index("ix_catalog_items_external_id", table_name="catalog_items")
    op.drop_index("ix_catalog_items_parent_id", table_name="catalog_items")
    op.drop_index("ix_catalog_items_kind", table_name="catalog_items")
    op.drop_table("catalog_items")
