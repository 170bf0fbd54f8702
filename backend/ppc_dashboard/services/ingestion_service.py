"""
Ingestion Service — Stores a parsed Sponsored Products bulk report.

Each ingest replaces the previous dataset: existing campaigns are deleted
(children go with them via ON DELETE CASCADE) and the report's campaigns,
ad groups, keywords, placement modifiers and search terms are inserted
fresh. Keyword and search-term text is labelled with the syntax classifier
on the way in. Rows whose parent isn't in the report are skipped.
"""

import logging
from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from ppc_dashboard.config import get_settings
from ppc_dashboard.models import (
    AdGroup, Campaign, CampaignMetric, Keyword, KeywordMetric, ReportUpload,
    SearchTerm, UploadStatus,
)
from ppc_dashboard.services.syntax_classifier import classify

logger = logging.getLogger(__name__)

PLACEMENT_COLUMNS = {
    "TOP_OF_SEARCH": "tos_modifier",
    "REST_OF_SEARCH": "ros_modifier",
    "PRODUCT_PAGES": "pdp_modifier",
}


# ── Parsed report shape ───────────────────────────────────────────────

class _ParsedRow(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class _Metrics(_ParsedRow):
    impressions: int = 0
    clicks: int = 0
    spend: float = 0.0
    sales: float = 0.0
    orders: int = 0
    units: int = 0


class ParsedCampaign(_Metrics):
    amazon_campaign_id: str
    name: str
    portfolio: Optional[str] = None
    daily_budget: float = 0.0
    bidding_strategy: Optional[str] = None
    targeting_type: Optional[str] = None
    state: str = "enabled"


class ParsedAdGroup(_ParsedRow):
    amazon_ad_group_id: str
    amazon_campaign_id: str
    name: str
    default_bid: float = 0.0
    state: str = "enabled"


class ParsedKeyword(_Metrics):
    amazon_keyword_id: str
    amazon_campaign_id: str
    amazon_ad_group_id: str
    keyword_text: str
    match_type: str
    bid: float = 0.0
    state: str = "enabled"


class ParsedPlacement(_ParsedRow):
    amazon_campaign_id: str
    placement: str
    percentage: int = 0


class ParsedSearchTerm(_Metrics):
    amazon_campaign_id: str
    amazon_ad_group_id: str
    amazon_keyword_id: str
    search_term: str


class ParsedReport(_ParsedRow):
    """Output of the bulk-report parser, one list per sheet."""
    report_date: Optional[date] = None
    campaigns: list[ParsedCampaign] = Field(default_factory=list)
    ad_groups: list[ParsedAdGroup] = Field(default_factory=list)
    keywords: list[ParsedKeyword] = Field(default_factory=list)
    placements: list[ParsedPlacement] = Field(default_factory=list)
    search_terms: list[ParsedSearchTerm] = Field(default_factory=list)

    @property
    def row_count(self) -> int:
        return (len(self.campaigns) + len(self.ad_groups) + len(self.keywords)
                + len(self.placements) + len(self.search_terms))


class ReportTooLargeError(ValueError):
    pass


def is_negative_match(match_type: str) -> bool:
    return "negative" in (match_type or "").lower()


# ── Ingestion ─────────────────────────────────────────────────────────

async def store_report(db: AsyncSession, report: ParsedReport, report_date: date) -> dict:
    """Replace stored campaign data with ``report``. Returns per-entity counts."""
    await db.execute(delete(Campaign))

    campaigns: dict[str, Campaign] = {}
    for c in report.campaigns:
        campaign = Campaign(
            amazon_campaign_id=c.amazon_campaign_id,
            campaign_name=c.name,
            portfolio=c.portfolio,
            targeting_type=c.targeting_type or "MANUAL",
            bidding_strategy=c.bidding_strategy,
            state=c.state.upper(),
            daily_budget=c.daily_budget,
        )
        campaign.metrics.append(CampaignMetric(
            date=report_date,
            impressions=c.impressions,
            clicks=c.clicks,
            cost=c.spend,
            sales=c.sales,
            orders=c.orders,
            units=c.units,
        ))
        campaigns[c.amazon_campaign_id] = campaign
    db.add_all(campaigns.values())

    ad_groups: dict[str, AdGroup] = {}
    for ag in report.ad_groups:
        campaign = campaigns.get(ag.amazon_campaign_id)
        if campaign is None:
            continue
        ad_group = AdGroup(
            amazon_ad_group_id=ag.amazon_ad_group_id,
            ad_group_name=ag.name,
            default_bid=ag.default_bid or 1.0,
            state=ag.state.upper(),
        )
        campaign.ad_groups.append(ad_group)
        ad_groups[ag.amazon_ad_group_id] = ad_group

    keywords: dict[str, Keyword] = {}
    skipped_negative = 0
    for kw in report.keywords:
        if is_negative_match(kw.match_type):
            skipped_negative += 1
            continue
        ad_group = ad_groups.get(kw.amazon_ad_group_id)
        if ad_group is None:
            continue
        keyword = Keyword(
            amazon_keyword_id=kw.amazon_keyword_id,
            keyword_text=kw.keyword_text,
            match_type=kw.match_type.upper(),
            bid=kw.bid,
            state=kw.state.upper(),
            syntax_group=classify(kw.keyword_text),
        )
        keyword.metrics.append(KeywordMetric(
            date=report_date,
            impressions=kw.impressions,
            clicks=kw.clicks,
            cost=kw.spend,
            sales=kw.sales,
            orders=kw.orders,
        ))
        ad_group.keywords.append(keyword)
        keywords[kw.amazon_keyword_id] = keyword

    placements = 0
    for p in report.placements:
        campaign = campaigns.get(p.amazon_campaign_id)
        column = PLACEMENT_COLUMNS.get(p.placement)
        if campaign is None or column is None:
            continue
        setattr(campaign, column, p.percentage)
        placements += 1

    # Search terms reference campaign/ad-group ids directly, so parents need primary keys
    await db.flush()

    search_terms = 0
    for st in report.search_terms:
        keyword = keywords.get(st.amazon_keyword_id)
        if keyword is None:
            continue
        campaign = campaigns.get(st.amazon_campaign_id)
        ad_group = ad_groups.get(st.amazon_ad_group_id)
        db.add(SearchTerm(
            keyword_id=keyword.id,
            campaign_id=campaign.id if campaign else None,
            ad_group_id=ad_group.id if ad_group else None,
            search_term=st.search_term,
            syntax_group=classify(st.search_term),
            date=report_date,
            impressions=st.impressions,
            clicks=st.clicks,
            cost=st.spend,
            sales=st.sales,
            orders=st.orders,
        ))
        search_terms += 1

    await db.flush()

    if skipped_negative:
        logger.info(f"Ingestion skipped {skipped_negative} negative keywords")

    return {
        "campaigns": len(campaigns),
        "ad_groups": len(ad_groups),
        "keywords": len(keywords),
        "placements": placements,
        "search_terms": search_terms,
    }


async def ingest_report(
    db: AsyncSession,
    report: ParsedReport,
    file_name: str,
) -> tuple[ReportUpload, dict]:
    """
    Record a ReportUpload and store the report inside a savepoint. A failure
    rolls back the partial dataset but keeps the upload row, marked FAILED.
    """
    settings = get_settings()
    if report.row_count > settings.max_upload_rows:
        raise ReportTooLargeError(
            f"Report has {report.row_count} rows; the limit is {settings.max_upload_rows}."
        )

    report_date = report.report_date or date.today()
    upload = ReportUpload(
        file_name=file_name,
        report_date=report_date,
        status=UploadStatus.PROCESSING.value,
    )
    db.add(upload)
    await db.flush()

    logger.info(
        f"Ingesting {file_name}: {len(report.campaigns)} campaigns, "
        f"{len(report.keywords)} keywords, {len(report.search_terms)} search terms"
    )

    try:
        async with db.begin_nested():
            counts = await store_report(db, report, report_date)
    except Exception as e:
        logger.error(f"Ingestion of {file_name} failed: {e}", exc_info=True)
        upload.status = UploadStatus.FAILED.value
        upload.error_message = str(e)[:2000]
        return upload, {}

    upload.status = UploadStatus.COMPLETED.value
    upload.campaign_count = counts["campaigns"]
    upload.keyword_count = counts["keywords"]
    upload.search_term_count = counts["search_terms"]
    logger.info(f"Ingestion of {file_name} completed: {counts}")
    return upload, counts
