"""Initial schema baseline

Revision ID: 001
Revises:
Create Date: 2026-10-18

Creates the articles, article_categorizations, sources and fetch_run_logs
tables. Databases created with init_db() already have this schema; mark them
with:
    alembic stamp 001
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # articles table
    op.create_table(
        "articles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("link", sa.Text(), nullable=False),
        sa.Column("guid", sa.Text(), nullable=True),
        sa.Column("source_name", sa.Text(), nullable=False),
        sa.Column("published_date", sa.Integer(), nullable=True),
        sa.Column("description_snippet", sa.Text(), nullable=True),
        sa.Column("categories", sa.Text(), nullable=True),
        sa.Column("fetched_at", sa.Integer(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, default=False),
        sa.Column("is_starred", sa.Boolean(), nullable=False, default=False),
        sa.Column("is_hidden", sa.Boolean(), nullable=False, default=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("link"),
        sa.UniqueConstraint("guid"),
    )
    op.create_index("idx_articles_source_name", "articles", ["source_name"])
    op.create_index("idx_articles_published_date", "articles", ["published_date"])
    op.create_index("idx_articles_is_hidden", "articles", ["is_hidden"])

    # article_categorizations table
    op.create_table(
        "article_categorizations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("article_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("news_category", sa.Text(), nullable=True),
        sa.Column("tech_category", sa.Text(), nullable=True),
        sa.Column("rationale", sa.Text(), nullable=True),
        sa.Column("categorized_at", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("article_id"),
    )

    # sources table
    op.create_table(
        "sources",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("type", sa.String(8), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, default=True),
        sa.Column("scraping_config", sa.Text(), nullable=True),
        sa.Column("last_fetched_at", sa.Integer(), nullable=True),
        sa.Column("last_status", sa.Text(), nullable=True),
        sa.Column("last_fetch_message", sa.Text(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("url"),
    )
    op.create_index("idx_sources_is_enabled", "sources", ["is_enabled"])

    # fetch_run_logs table
    op.create_table(
        "fetch_run_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("start_time", sa.Integer(), nullable=False),
        sa.Column("end_time", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("total_sources_attempted", sa.Integer(), nullable=True, default=0),
        sa.Column("total_sources_successfully_processed", sa.Integer(), nullable=True, default=0),
        sa.Column("total_sources_failed_with_error", sa.Integer(), nullable=True, default=0),
        sa.Column("total_new_articles_added_across_all_sources", sa.Integer(), nullable=True, default=0),
        sa.Column("orchestration_errors", sa.Text(), nullable=True),
        sa.Column("source_summaries", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_fetch_run_logs_start_time", "fetch_run_logs", ["start_time"])
    op.create_index("idx_fetch_run_logs_status", "fetch_run_logs", ["status"])


def downgrade() -> None:
    op.drop_index("idx_fetch_run_logs_status", table_name="fetch_run_logs")
    op.drop_index("idx_fetch_run_logs_start_time", table_name="fetch_run_logs")
    op.drop_table("fetch_run_logs")
    op.drop_index("idx_sources_is_enabled", table_name="sources")
    op.drop_table("sources")
    op.drop_table("article_categorizations")
    op.drop_index("idx_articles_is_hidden", table_name="articles")
    op.drop_index("idx_articles_published_date", table_name="articles")
    op.drop_index("idx_articles_source_name", table_name="articles")
    op.drop_table("articles")
