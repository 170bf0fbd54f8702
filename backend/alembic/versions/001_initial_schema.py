"""Initial schema: campaign hierarchy, daily metrics, alerts, change sets, uploads.

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk():
    return sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False)


def _fk(name: str, target: str, nullable: bool = False):
    return sa.Column(
        name, postgresql.UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete="CASCADE"), nullable=nullable,
    )


def _daily_metrics():
    return [
        sa.Column("impressions", sa.BigInteger(), nullable=True, server_default="0"),
        sa.Column("clicks", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("cost", sa.Float(), nullable=True, server_default="0"),
        sa.Column("sales", sa.Float(), nullable=True, server_default="0"),
        sa.Column("orders", sa.Integer(), nullable=True, server_default="0"),
    ]


def upgrade() -> None:
    conn = op.get_bind()
    insp = sa.inspect(conn)
    existing = insp.get_table_names()

    if "campaigns" in existing:
        return  # Already applied (e.g. from create_all)

    op.create_table(
        "campaigns",
        _uuid_pk(),
        sa.Column("amazon_campaign_id", sa.String(255), nullable=False),
        sa.Column("campaign_name", sa.String(512), nullable=False),
        sa.Column("portfolio", sa.String(255), nullable=True),
        sa.Column("campaign_type", sa.String(100), nullable=True, server_default="SPONSORED_PRODUCTS"),
        sa.Column("targeting_type", sa.String(50), nullable=True),
        sa.Column("bidding_strategy", sa.String(100), nullable=True),
        sa.Column("state", sa.String(50), nullable=True, server_default="ENABLED"),
        sa.Column("daily_budget", sa.Float(), nullable=True, server_default="0"),
        sa.Column("target_acos", sa.Float(), nullable=True),
        sa.Column("target_roas", sa.Float(), nullable=True),
        sa.Column("tos_modifier", sa.Integer(), nullable=True),
        sa.Column("ros_modifier", sa.Integer(), nullable=True),
        sa.Column("pdp_modifier", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("amazon_campaign_id"),
    )
    op.create_index("ix_campaigns_state", "campaigns", ["state"])
    op.create_index("ix_campaigns_campaign_type", "campaigns", ["campaign_type"])
    op.create_index("ix_campaigns_portfolio", "campaigns", ["portfolio"])

    op.create_table(
        "ad_groups",
        _uuid_pk(),
        _fk("campaign_id", "campaigns.id"),
        sa.Column("amazon_ad_group_id", sa.String(255), nullable=False),
        sa.Column("ad_group_name", sa.String(512), nullable=True),
        sa.Column("default_bid", sa.Float(), nullable=True, server_default="1"),
        sa.Column("state", sa.String(50), nullable=True, server_default="ENABLED"),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("amazon_ad_group_id"),
    )
    op.create_index("ix_ad_groups_campaign_id", "ad_groups", ["campaign_id"])

    op.create_table(
        "keywords",
        _uuid_pk(),
        _fk("ad_group_id", "ad_groups.id"),
        sa.Column("amazon_keyword_id", sa.String(255), nullable=False),
        sa.Column("keyword_text", sa.Text(), nullable=False),
        sa.Column("match_type", sa.String(50), nullable=False),
        sa.Column("bid", sa.Float(), nullable=True, server_default="0"),
        sa.Column("state", sa.String(50), nullable=True, server_default="ENABLED"),
        sa.Column("syntax_group", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("amazon_keyword_id"),
    )
    op.create_index("ix_keywords_ad_group_id", "keywords", ["ad_group_id"])
    op.create_index("ix_keywords_syntax_group", "keywords", ["syntax_group"])
    op.create_index("ix_keywords_match_type", "keywords", ["match_type"])

    op.create_table(
        "keyword_metrics",
        _uuid_pk(),
        _fk("keyword_id", "keywords.id"),
        sa.Column("date", sa.Date(), nullable=False),
        *_daily_metrics(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("keyword_id", "date", name="uq_keyword_metric_per_day"),
    )
    op.create_index("ix_keyword_metrics_date", "keyword_metrics", ["date"])

    op.create_table(
        "campaign_metrics",
        _uuid_pk(),
        _fk("campaign_id", "campaigns.id"),
        sa.Column("date", sa.Date(), nullable=False),
        *_daily_metrics(),
        sa.Column("units", sa.Integer(), nullable=True, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("campaign_id", "date", name="uq_campaign_metric_per_day"),
    )
    op.create_index("ix_campaign_metrics_date", "campaign_metrics", ["date"])

    op.create_table(
        "search_terms",
        _uuid_pk(),
        _fk("keyword_id", "keywords.id"),
        _fk("campaign_id", "campaigns.id", nullable=True),
        _fk("ad_group_id", "ad_groups.id", nullable=True),
        sa.Column("search_term", sa.Text(), nullable=False),
        sa.Column("syntax_group", sa.String(255), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        *_daily_metrics(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_search_terms_keyword_id", "search_terms", ["keyword_id"])
    op.create_index("ix_search_terms_syntax_group", "search_terms", ["syntax_group"])
    op.create_index("ix_search_terms_date", "search_terms", ["date"])

    op.create_table(
        "budget_snapshots",
        _uuid_pk(),
        _fk("campaign_id", "campaigns.id"),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("daily_budget", sa.Float(), nullable=True, server_default="0"),
        sa.Column("spend", sa.Float(), nullable=True, server_default="0"),
        sa.Column("pace_percentage", sa.Float(), nullable=True, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_budget_snapshots_campaign_date", "budget_snapshots", ["campaign_id", "date"])

    op.create_table(
        "alerts",
        _uuid_pk(),
        _fk("campaign_id", "campaigns.id", nullable=True),
        sa.Column("alert_type", sa.String(50), nullable=False),
        sa.Column("severity", sa.String(20), nullable=True, server_default="WARNING"),
        sa.Column("title", sa.String(512), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("is_resolved", sa.Boolean(), nullable=True, server_default=sa.text("false")),
        sa.Column("triggered_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_alerts_type_resolved", "alerts", ["alert_type", "is_resolved"])
    op.create_index("ix_alerts_triggered_at", "alerts", ["triggered_at"])

    op.create_table(
        "change_sets",
        _uuid_pk(),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=True, server_default="DRAFT"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("exported_at", sa.DateTime(), nullable=True),
        sa.Column("applied_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_change_sets_status", "change_sets", ["status"])
    op.create_index("ix_change_sets_created_at", "change_sets", ["created_at"])

    op.create_table(
        "change_set_items",
        _uuid_pk(),
        _fk("change_set_id", "change_sets.id"),
        sa.Column("position", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("entity_type", sa.String(20), nullable=False),
        sa.Column("entity_id", sa.String(255), nullable=False),
        sa.Column("entity_name", sa.String(512), nullable=False),
        sa.Column("campaign_name", sa.String(512), nullable=True),
        sa.Column("ad_group_name", sa.String(512), nullable=True),
        sa.Column("amazon_campaign_id", sa.String(255), nullable=True),
        sa.Column("amazon_ad_group_id", sa.String(255), nullable=True),
        sa.Column("amazon_keyword_id", sa.String(255), nullable=True),
        sa.Column("match_type", sa.String(50), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=False),
        sa.Column("previous_values", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_change_set_items_change_set_id", "change_set_items", ["change_set_id"])
    op.create_index("ix_change_set_items_entity", "change_set_items", ["entity_type", "entity_id"])

    op.create_table(
        "report_uploads",
        _uuid_pk(),
        sa.Column("file_name", sa.String(512), nullable=False),
        sa.Column("report_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(20), nullable=True, server_default="PROCESSING"),
        sa.Column("campaign_count", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("keyword_count", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("search_term_count", sa.Integer(), nullable=True, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "activity_log",
        _uuid_pk(),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("entity_type", sa.String(50), nullable=True),
        sa.Column("entity_id", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=True, server_default="success"),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_activity_log_category", "activity_log", ["category"])
    op.create_index("ix_activity_log_action", "activity_log", ["action"])
    op.create_index("ix_activity_log_created_at", "activity_log", ["created_at"])
    op.create_index("ix_activity_log_entity", "activity_log", ["entity_type", "entity_id"])


def downgrade() -> None:
    for table in (
        "activity_log", "report_uploads", "change_set_items", "change_sets",
        "alerts", "budget_snapshots", "search_terms", "campaign_metrics",
        "keyword_metrics", "keywords", "ad_groups", "campaigns",
    ):
        op.drop_table(table)
