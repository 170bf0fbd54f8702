"""
Bulksheet Service — Renders change-set items as Sponsored Products
bulk-upload rows ("Operation = Update") and writes them to an XLSX
workbook the advertising console accepts.
"""

import io
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

logger = logging.getLogger(__name__)

SHEET_NAME = "Sponsored Products Campaigns"

BULKSHEET_HEADERS = [
    "Product", "Entity", "Operation", "Campaign Id", "Ad Group Id",
    "Portfolio Id", "Ad Id (Read only)", "Keyword Id (Read only)",
    "Product Targeting Id (Read only)", "Campaign Name", "Ad Group Name",
    "Start Date", "End Date", "Targeting Type", "State", "Daily Budget",
    "SKU", "ASIN", "Ad Group Default Bid", "Bid", "Keyword Text",
    "Match Type", "Bidding Strategy", "Placement", "Percentage",
    "Product Targeting Expression",
]

# changes key → Placement column text, in output order
MODIFIER_PLACEMENTS = (
    ("tosModifier", "Placement Top"),
    ("rosModifier", "Placement Rest Of Search"),
    ("pdpModifier", "Placement Product Page"),
)


@dataclass
class ExportableItem:
    """The fields of a change-set item the bulksheet needs."""
    entity_type: str
    entity_name: str
    changes: dict = field(default_factory=dict)
    amazon_campaign_id: Optional[str] = None
    amazon_ad_group_id: Optional[str] = None
    amazon_keyword_id: Optional[str] = None
    campaign_name: Optional[str] = None
    ad_group_name: Optional[str] = None
    match_type: Optional[str] = None


def format_cell(value: Any) -> str:
    """Render a change value as bulksheet text: 10.0 → "10", 1.5 → "1.5"."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def capitalize_match_type(match_type: str) -> str:
    return match_type[:1].upper() + match_type[1:].lower()


def _empty_row() -> dict[str, str]:
    row = {h: "" for h in BULKSHEET_HEADERS}
    row["Product"] = "Sponsored Products"
    row["Operation"] = "Update"
    return row


def _campaign_rows(item: Any) -> list[dict[str, str]]:
    changes = item.changes or {}
    rows = []

    if changes.get("budget") is not None or changes.get("state") is not None:
        row = _empty_row()
        row["Entity"] = "Campaign"
        row["Campaign Id"] = item.amazon_campaign_id or ""
        row["Campaign Name"] = item.entity_name
        if changes.get("budget") is not None:
            row["Daily Budget"] = format_cell(changes["budget"])
        if changes.get("state") is not None:
            row["State"] = changes["state"]
        rows.append(row)

    for key, placement in MODIFIER_PLACEMENTS:
        if changes.get(key) is None:
            continue
        row = _empty_row()
        row["Entity"] = "Bidding Adjustment"
        row["Campaign Id"] = item.amazon_campaign_id or ""
        row["Campaign Name"] = item.entity_name
        row["Placement"] = placement
        row["Percentage"] = format_cell(changes[key])
        rows.append(row)

    return rows


def _keyword_row(item: Any) -> dict[str, str]:
    changes = item.changes or {}
    row = _empty_row()
    row["Entity"] = "Keyword"
    row["Campaign Id"] = item.amazon_campaign_id or ""
    row["Ad Group Id"] = item.amazon_ad_group_id or ""
    row["Keyword Id (Read only)"] = item.amazon_keyword_id or ""
    row["Campaign Name"] = item.campaign_name or ""
    row["Ad Group Name"] = item.ad_group_name or ""
    row["Keyword Text"] = item.entity_name
    if item.match_type:
        row["Match Type"] = capitalize_match_type(item.match_type)
    if changes.get("bid") is not None:
        row["Bid"] = format_cell(changes["bid"])
    if changes.get("state") is not None:
        row["State"] = changes["state"]
    return row


def generate_bulksheet_rows(items: Iterable[Any]) -> list[dict[str, str]]:
    """
    One row per mutation. Accepts ExportableItem or ChangeSetItem rows.
    Columns that don't apply to a row are left blank.
    """
    rows: list[dict[str, str]] = []
    for item in items:
        if item.entity_type == "CAMPAIGN":
            rows.extend(_campaign_rows(item))
        elif item.entity_type == "KEYWORD":
            rows.append(_keyword_row(item))
    return rows


def generate_bulksheet_xlsx(items: Iterable[Any]) -> bytes:
    """Write the bulksheet rows to an in-memory XLSX workbook."""
    rows = generate_bulksheet_rows(items)

    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_NAME
    ws.append(BULKSHEET_HEADERS)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append([row[h] for h in BULKSHEET_HEADERS])

    for col_idx, header in enumerate(BULKSHEET_HEADERS, 1):
        ws.column_dimensions[get_column_letter(col_idx)].width = max(len(header), 15)

    buffer = io.BytesIO()
    wb.save(buffer)
    logger.info(f"Generated bulksheet with {len(rows)} rows")
    return buffer.getvalue()
