"""Add book_tags join table

Revision ID: 002_book_tags
Revises: 001_books_init
Create Date: 2026-10-19

Every column of book_tags is part of its primary key, so saving an existing
tag is a no-op rather than an update.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "002_book_tags"
down_revision = "001_books_init"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "book_tags",
        sa.Column("book_id", sa.Integer(), nullable=False),
        sa.Column("tag", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("book_id", "tag", name="pk_book_tags"),
    )


def downgrade() -> None:
    op.drop_table("book_tags")
