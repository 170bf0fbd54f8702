"""
PPC Dashboard — Database Models
Campaign hierarchy (campaign → ad group → keyword → search term), daily
metrics, alerts, report uploads and the change-set approval workflow.
"""

import uuid
import enum
from datetime import date, datetime, timezone
from sqlalchemy import (
    String, Text, Float, Integer, BigInteger, Boolean, Date, DateTime,
    JSON, ForeignKey, Index, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID
from ppc_dashboard.database import Base


def _utcnow() -> datetime:
    """Naive UTC now — matches DB columns (TIMESTAMP WITHOUT TIME ZONE)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class ChangeSetStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    EXPORTED = "EXPORTED"
    APPLIED = "APPLIED"
    FAILED = "FAILED"


class EntityType(str, enum.Enum):
    CAMPAIGN = "CAMPAIGN"
    KEYWORD = "KEYWORD"


class EntityState(str, enum.Enum):
    ENABLED = "ENABLED"
    PAUSED = "PAUSED"
    ARCHIVED = "ARCHIVED"


class AlertType(str, enum.Enum):
    HIGH_ACOS = "HIGH_ACOS"
    LOW_ROAS = "LOW_ROAS"
    BUDGET_PACING = "BUDGET_PACING"
    BUDGET_EXCEEDED = "BUDGET_EXCEEDED"


class AlertSeverity(str, enum.Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class UploadStatus(str, enum.Enum):
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# ══════════════════════════════════════════════════════════════════════
#  CAMPAIGNS
# ══════════════════════════════════════════════════════════════════════

class Campaign(Base):
    """Sponsored Products campaign, from a bulk upload or API sync."""
    __tablename__ = "campaigns"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    amazon_campaign_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    campaign_name: Mapped[str] = mapped_column(String(512), nullable=False)
    portfolio: Mapped[str] = mapped_column(String(255), nullable=True)
    campaign_type: Mapped[str] = mapped_column(String(100), default="SPONSORED_PRODUCTS")
    targeting_type: Mapped[str] = mapped_column(String(50), nullable=True)  # AUTO / MANUAL
    bidding_strategy: Mapped[str] = mapped_column(String(100), nullable=True)
    state: Mapped[str] = mapped_column(String(50), default=EntityState.ENABLED.value)
    daily_budget: Mapped[float] = mapped_column(Float, default=0.0)
    target_acos: Mapped[float] = mapped_column(Float, nullable=True)
    target_roas: Mapped[float] = mapped_column(Float, nullable=True)
    # Placement bid adjustments, percent (0-900)
    tos_modifier: Mapped[int] = mapped_column(Integer, nullable=True)
    ros_modifier: Mapped[int] = mapped_column(Integer, nullable=True)
    pdp_modifier: Mapped[int] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    # Relationships
    ad_groups: Mapped[list["AdGroup"]] = relationship("AdGroup", back_populates="campaign", cascade="all, delete-orphan")
    metrics: Mapped[list["CampaignMetric"]] = relationship("CampaignMetric", back_populates="campaign", cascade="all, delete-orphan")
    budget_snapshots: Mapped[list["BudgetSnapshot"]] = relationship("BudgetSnapshot", back_populates="campaign", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_campaigns_state", "state"),
        Index("ix_campaigns_campaign_type", "campaign_type"),
        Index("ix_campaigns_portfolio", "portfolio"),
    )


# ══════════════════════════════════════════════════════════════════════
#  AD GROUPS
# ══════════════════════════════════════════════════════════════════════

class AdGroup(Base):
    __tablename__ = "ad_groups"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campaign_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)
    amazon_ad_group_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    ad_group_name: Mapped[str] = mapped_column(String(512), nullable=True)
    default_bid: Mapped[float] = mapped_column(Float, default=1.0)
    state: Mapped[str] = mapped_column(String(50), default=EntityState.ENABLED.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    # Relationships
    campaign: Mapped["Campaign"] = relationship("Campaign", back_populates="ad_groups")
    keywords: Mapped[list["Keyword"]] = relationship("Keyword", back_populates="ad_group", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_ad_groups_campaign_id", "campaign_id"),
    )


# ══════════════════════════════════════════════════════════════════════
#  KEYWORDS — labelled with a syntax group at ingestion time
# ══════════════════════════════════════════════════════════════════════

class Keyword(Base):
    __tablename__ = "keywords"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    ad_group_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("ad_groups.id", ondelete="CASCADE"), nullable=False)
    amazon_keyword_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    keyword_text: Mapped[str] = mapped_column(Text, nullable=False)
    match_type: Mapped[str] = mapped_column(String(50), nullable=False)  # BROAD, PHRASE, EXACT
    bid: Mapped[float] = mapped_column(Float, default=0.0)
    state: Mapped[str] = mapped_column(String(50), default=EntityState.ENABLED.value)
    syntax_group: Mapped[str] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    # Relationships
    ad_group: Mapped["AdGroup"] = relationship("AdGroup", back_populates="keywords")
    metrics: Mapped[list["KeywordMetric"]] = relationship("KeywordMetric", back_populates="keyword", cascade="all, delete-orphan")
    search_terms: Mapped[list["SearchTerm"]] = relationship("SearchTerm", back_populates="keyword", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_keywords_ad_group_id", "ad_group_id"),
        Index("ix_keywords_syntax_group", "syntax_group"),
        Index("ix_keywords_match_type", "match_type"),
    )


# ══════════════════════════════════════════════════════════════════════
#  DAILY METRICS
# ══════════════════════════════════════════════════════════════════════

class KeywordMetric(Base):
    __tablename__ = "keyword_metrics"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    keyword_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("keywords.id", ondelete="CASCADE"), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    impressions: Mapped[int] = mapped_column(BigInteger, default=0)
    clicks: Mapped[int] = mapped_column(Integer, default=0)
    cost: Mapped[float] = mapped_column(Float, default=0.0)
    sales: Mapped[float] = mapped_column(Float, default=0.0)
    orders: Mapped[int] = mapped_column(Integer, default=0)

    keyword: Mapped["Keyword"] = relationship("Keyword", back_populates="metrics")

    __table_args__ = (
        UniqueConstraint("keyword_id", "date", name="uq_keyword_metric_per_day"),
        Index("ix_keyword_metrics_date", "date"),
    )


class CampaignMetric(Base):
    __tablename__ = "campaign_metrics"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campaign_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    impressions: Mapped[int] = mapped_column(BigInteger, default=0)
    clicks: Mapped[int] = mapped_column(Integer, default=0)
    cost: Mapped[float] = mapped_column(Float, default=0.0)
    sales: Mapped[float] = mapped_column(Float, default=0.0)
    orders: Mapped[int] = mapped_column(Integer, default=0)
    units: Mapped[int] = mapped_column(Integer, default=0)

    campaign: Mapped["Campaign"] = relationship("Campaign", back_populates="metrics")

    __table_args__ = (
        UniqueConstraint("campaign_id", "date", name="uq_campaign_metric_per_day"),
        Index("ix_campaign_metrics_date", "date"),
    )


class SearchTerm(Base):
    """Customer search term that triggered a keyword, with daily metrics."""
    __tablename__ = "search_terms"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    keyword_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("keywords.id", ondelete="CASCADE"), nullable=False)
    campaign_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=True)
    ad_group_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("ad_groups.id", ondelete="CASCADE"), nullable=True)
    search_term: Mapped[str] = mapped_column(Text, nullable=False)
    syntax_group: Mapped[str] = mapped_column(String(255), nullable=True)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    impressions: Mapped[int] = mapped_column(BigInteger, default=0)
    clicks: Mapped[int] = mapped_column(Integer, default=0)
    cost: Mapped[float] = mapped_column(Float, default=0.0)
    sales: Mapped[float] = mapped_column(Float, default=0.0)
    orders: Mapped[int] = mapped_column(Integer, default=0)

    keyword: Mapped["Keyword"] = relationship("Keyword", back_populates="search_terms")

    __table_args__ = (
        Index("ix_search_terms_keyword_id", "keyword_id"),
        Index("ix_search_terms_syntax_group", "syntax_group"),
        Index("ix_search_terms_date", "date"),
    )


class BudgetSnapshot(Base):
    """Point-in-time budget consumption for pacing views and alerts."""
    __tablename__ = "budget_snapshots"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campaign_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    daily_budget: Mapped[float] = mapped_column(Float, default=0.0)
    spend: Mapped[float] = mapped_column(Float, default=0.0)
    pace_percentage: Mapped[float] = mapped_column(Float, default=0.0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    campaign: Mapped["Campaign"] = relationship("Campaign", back_populates="budget_snapshots")

    __table_args__ = (
        Index("ix_budget_snapshots_campaign_date", "campaign_id", "date"),
    )


# ══════════════════════════════════════════════════════════════════════
#  ALERTS
# ══════════════════════════════════════════════════════════════════════

class Alert(Base):
    __tablename__ = "alerts"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campaign_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=True)
    alert_type: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), default=AlertSeverity.WARNING.value)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict] = mapped_column(JSON, nullable=True)
    is_resolved: Mapped[bool] = mapped_column(Boolean, default=False)
    triggered_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    resolved_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_alerts_type_resolved", "alert_type", "is_resolved"),
        Index("ix_alerts_triggered_at", "triggered_at"),
    )


# ══════════════════════════════════════════════════════════════════════
#  CHANGE SETS — Batches of proposed campaign/keyword edits
# ══════════════════════════════════════════════════════════════════════

class ChangeSet(Base):
    """
    A batch of proposed edits. Lifecycle: DRAFT → EXPORTED → APPLIED,
    or DRAFT/EXPORTED → FAILED. Only DRAFT sets may be deleted.
    """
    __tablename__ = "change_sets"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=ChangeSetStatus.DRAFT.value)
    error_message: Mapped[str] = mapped_column(Text, nullable=True)
    exported_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    applied_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    items: Mapped[list["ChangeSetItem"]] = relationship(
        "ChangeSetItem",
        back_populates="change_set",
        cascade="all, delete-orphan",
        order_by="ChangeSetItem.position",
    )

    __table_args__ = (
        Index("ix_change_sets_status", "status"),
        Index("ix_change_sets_created_at", "created_at"),
    )


class ChangeSetItem(Base):
    __tablename__ = "change_set_items"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    change_set_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("change_sets.id", ondelete="CASCADE"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0)
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)  # CAMPAIGN / KEYWORD
    entity_id: Mapped[str] = mapped_column(String(255), nullable=False)  # internal id of the target row
    entity_name: Mapped[str] = mapped_column(String(512), nullable=False)
    campaign_name: Mapped[str] = mapped_column(String(512), nullable=True)
    ad_group_name: Mapped[str] = mapped_column(String(512), nullable=True)
    amazon_campaign_id: Mapped[str] = mapped_column(String(255), nullable=True)
    amazon_ad_group_id: Mapped[str] = mapped_column(String(255), nullable=True)
    amazon_keyword_id: Mapped[str] = mapped_column(String(255), nullable=True)
    match_type: Mapped[str] = mapped_column(String(50), nullable=True)
    changes: Mapped[dict] = mapped_column(JSON, nullable=False)
    previous_values: Mapped[dict] = mapped_column(JSON, nullable=True)

    change_set: Mapped["ChangeSet"] = relationship("ChangeSet", back_populates="items")

    __table_args__ = (
        Index("ix_change_set_items_change_set_id", "change_set_id"),
        Index("ix_change_set_items_entity", "entity_type", "entity_id"),
    )


# ══════════════════════════════════════════════════════════════════════
#  REPORT UPLOADS — One row per ingested bulk report
# ══════════════════════════════════════════════════════════════════════

class ReportUpload(Base):
    __tablename__ = "report_uploads"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    file_name: Mapped[str] = mapped_column(String(512), nullable=False)
    report_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=UploadStatus.PROCESSING.value)
    campaign_count: Mapped[int] = mapped_column(Integer, default=0)
    keyword_count: Mapped[int] = mapped_column(Integer, default=0)
    search_term_count: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)


# ══════════════════════════════════════════════════════════════════════
#  ACTIVITY LOG — Audit trail
# ══════════════════════════════════════════════════════════════════════

class ActivityLog(Base):
    """Logs all actions taken in the system for audit trail."""
    __tablename__ = "activity_log"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)  # change_sets, reports, alerts
    description: Mapped[str] = mapped_column(Text, nullable=True)
    details: Mapped[dict] = mapped_column(JSON, nullable=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=True)
    entity_id: Mapped[str] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="success")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (
        Index("ix_activity_log_category", "category"),
        Index("ix_activity_log_action", "action"),
        Index("ix_activity_log_created_at", "created_at"),
        Index("ix_activity_log_entity", "entity_type", "entity_id"),
    )
