"""
Tests for the parsed bulk-report shape and ingestion helpers.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from ppc_dashboard.config import Settings
from ppc_dashboard.models import UploadStatus
from ppc_dashboard.services.ingestion_service import (
    ParsedReport,
    ReportTooLargeError,
    ingest_report,
    is_negative_match,
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


def test_parsed_report_accepts_camel_case():
    report = ParsedReport.model_validate({
        "reportDate": "2026-03-15",
        "campaigns": [{
            "amazonCampaignId": "111", "name": "SP - Bamboo", "dailyBudget": 25,
            "impressions": 100, "clicks": 4, "spend": 3.5, "sales": 20, "orders": 1,
        }],
        "keywords": [{
            "amazonKeywordId": "333", "amazonCampaignId": "111", "amazonAdGroupId": "222",
            "keywordText": "bamboo sheets queen", "matchType": "EXACT", "bid": 0.85,
        }],
    })
    assert report.report_date.isoformat() == "2026-03-15"
    assert report.campaigns[0].daily_budget == 25.0
    assert report.keywords[0].keyword_text == "bamboo sheets queen"
    assert report.ad_groups == []
    assert report.row_count == 2


def test_negative_match_types():
    assert is_negative_match("NEGATIVE_EXACT")
    assert is_negative_match("Negative Phrase")
    assert not is_negative_match("EXACT")
    assert not is_negative_match("")


@pytest.mark.anyio
async def test_oversized_report_is_rejected_before_writing():
    report = ParsedReport(campaigns=[
        {"amazonCampaignId": str(i), "name": f"c{i}"} for i in range(3)
    ])
    db = MagicMock()
    db.flush = AsyncMock()

    with patch("ppc_dashboard.services.ingestion_service.get_settings",
               return_value=Settings(max_upload_rows=2)):
        with pytest.raises(ReportTooLargeError):
            await ingest_report(db, report, "big.xlsx")
    db.add.assert_not_called()


@pytest.mark.anyio
async def test_failed_store_marks_upload_failed():
    db = MagicMock()
    db.flush = AsyncMock()
    nested = MagicMock()
    nested.__aenter__ = AsyncMock(return_value=None)
    nested.__aexit__ = AsyncMock(return_value=False)
    db.begin_nested = MagicMock(return_value=nested)

    with patch("ppc_dashboard.services.ingestion_service.store_report",
               new_callable=AsyncMock, side_effect=RuntimeError("duplicate key")):
        upload, counts = await ingest_report(db, ParsedReport(), "report.xlsx")

    assert counts == {}
    assert upload.status == UploadStatus.FAILED.value
    assert "duplicate key" in upload.error_message


@pytest.mark.anyio
async def test_successful_store_records_counts():
    db = MagicMock()
    db.flush = AsyncMock()
    nested = MagicMock()
    nested.__aenter__ = AsyncMock(return_value=None)
    nested.__aexit__ = AsyncMock(return_value=False)
    db.begin_nested = MagicMock(return_value=nested)
    counts = {"campaigns": 2, "ad_groups": 3, "keywords": 10, "placements": 1, "search_terms": 40}

    with patch("ppc_dashboard.services.ingestion_service.store_report",
               new_callable=AsyncMock, return_value=counts):
        upload, result = await ingest_report(db, ParsedReport(), "report.xlsx")

    assert result == counts
    assert upload.status == UploadStatus.COMPLETED.value
    assert upload.keyword_count == 10
    assert upload.search_term_count == 40
