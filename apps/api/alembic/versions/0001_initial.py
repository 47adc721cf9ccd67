"""users, tracks and track likes

Revision ID: 0001
Revises:
Create Date: 2026-10-17 12:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TRACK_SEARCH_DOCUMENT = (
    "to_tsvector('english', coalesce(title, '') || ' ' || coalesce(description, ''))"
)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="user"),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False),
        sa.CheckConstraint("role in ('user','moderator','admin')", name="ck_users_role"),
    )
    op.create_table(
        "tracks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "owner_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("genre", sa.String(length=100), nullable=True),
        sa.Column("audio_file", sa.Text(), nullable=False),
        sa.Column("background_image", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="draft"),
        sa.Column("published_at", sa.DateTime(timezone=False), nullable=True),
        sa.Column("plays", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False),
        sa.CheckConstraint("status in ('draft','published')", name="ck_tracks_status"),
        sa.CheckConstraint("plays >= 0", name="ck_tracks_plays"),
    )
    op.create_index("ix_tracks_owner_created", "tracks", ["owner_id", "created_at"])
    op.create_index("ix_tracks_status_published", "tracks", ["status", "published_at"])
    op.create_index(
        "ix_tracks_search",
        "tracks",
        [sa.text(TRACK_SEARCH_DOCUMENT)],
        postgresql_using="gin",
    )
    op.create_table(
        "track_likes",
        sa.Column(
            "track_id",
            sa.Uuid(),
            sa.ForeignKey("tracks.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("track_likes")
    op.drop_index("ix_tracks_search", table_name="tracks")
    op.drop_index("ix_tracks_status_published", table_name="tracks")
    op.drop_index("ix_tracks_owner_created", table_name="tracks")
    op.drop_table("tracks")
    op.drop_table("users")
