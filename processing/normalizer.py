"""
Record Normalizer

Coerces raw CSV cell values into the typed records used by every resolver.
Normalization happens once, at the boundary. Nothing here raises: missing,
blank, or unparsable values resolve to the documented default.
"""

import math
import re
from collections.abc import Mapping as MappingABC
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from config.logging import logger
from processing.models import UNKNOWN, Company, Deal


# Column names used by the CRM exports
DEAL_ID = "Record ID"
DEAL_NAME = "Deal Name"
DEAL_BUDGET = "Budget"
DEAL_AMOUNT = "Amount"
DEAL_BRAND = "Campaign Brand"
DEAL_STAGE = "Deal Stage"
DEAL_PIPELINE = "Pipeline"
DEAL_CLOSE_DATE = "Close Date"
DEAL_CREATE_DATE = "Create Date"
DEAL_CLOSED_WON = "Is Closed Won"
DEAL_PRIMARY_COMPANY = "Associated Company IDs (Primary)"
DEAL_ASSOCIATED_COMPANY = "Associated Company"

COMPANY_ID = "Record ID"
COMPANY_NAME = "Company name"
COMPANY_DOMAIN = "Company Domain Name"
COMPANY_REVENUE = "Total Revenue"

TRUE_VALUES = {"true", "yes", "y", "1"}

# Amounts must keep cents within the default 28-digit decimal context
MAX_AMOUNT_EXPONENT = 25

DATE_FORMATS = ["%Y-%m-%d", "%m/%d/%Y", "%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S"]


def parse_amount(value: Any) -> Decimal:
    """Parse a money value to Decimal, 0 when absent, unparsable or out of range."""
    if value is None or isinstance(value, bool):
        return Decimal("0")

    try:
        if isinstance(value, float):
            if not math.isfinite(value):
                return Decimal("0")
            amount = Decimal(str(value))
        elif isinstance(value, (int, Decimal)):
            amount = Decimal(value)
        else:
            # Handle string amounts with currency symbols
            cleaned = str(value).replace("$", "").replace(",", "").strip()
            if not cleaned:
                return Decimal("0")
            amount = Decimal(cleaned)
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")

    if not amount.is_finite() or amount.adjusted() > MAX_AMOUNT_EXPONENT:
        return Decimal("0")
    return amount


def parse_text(value: Any, default: str = "") -> str:
    """Trimmed string value, or the default when blank."""
    if value is None:
        return default
    text = str(value).strip()
    return text if text else default


def parse_identifier(value: Any) -> Optional[str]:
    """
    Render an identifier as a string for stringwise comparison.

    CSV type drift turns "10" into 10 or 10.0; all three compare equal here.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        if value.is_integer():
            return str(int(value))
    text = str(value).strip()
    return text or None


def parse_bool(value: Any) -> bool:
    """Interpret a boolean-ish cell."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUE_VALUES


def split_multi(value: Any) -> tuple[str, ...]:
    """Split a semicolon-delimited field into trimmed, non-empty segments."""
    if not isinstance(value, str):
        return ()
    return tuple(part.strip() for part in value.split(";") if part.strip())


def parse_date(value: Any) -> Optional[date]:
    """Parse date string from export data."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        return None

    date_str = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(date_str, fmt).date()
        except ValueError:
            continue

    # ISO timestamps with fractional seconds or offsets
    match = re.match(r"^(\d{4}-\d{2}-\d{2})[T ]", date_str)
    if match:
        try:
            return datetime.strptime(match.group(1), "%Y-%m-%d").date()
        except ValueError:
            return None
    return None


def _clean_row(row: Any) -> dict:
    """
    Row as a dict with trimmed header names.

    Headers that collide after trimming keep the first non-blank value.
    """
    if not isinstance(row, MappingABC):
        logger.warning(f"Skipping fields of non-mapping row: {type(row).__name__}")
        return {}

    fields = {}
    for key, value in row.items():
        if key is None:
            continue
        name = str(key).strip()
        if name not in fields:
            fields[name] = value
            continue
        logger.warning(f"Duplicate column header after trimming: {name!r}")
        if _is_blank(fields[name]) and not _is_blank(value):
            fields[name] = value
    return fields


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def normalize_deal(row: Any) -> Deal:
    """Build a Deal from a raw export row."""
    fields = _clean_row(row)
    campaign_brand = parse_text(fields.get(DEAL_BRAND))
    associated = parse_text(fields.get(DEAL_ASSOCIATED_COMPANY))

    return Deal(
        record_id=parse_identifier(fields.get(DEAL_ID)) or "",
        name=parse_text(fields.get(DEAL_NAME), "Unnamed Deal"),
        budget=parse_amount(fields.get(DEAL_BUDGET)),
        amount=parse_amount(fields.get(DEAL_AMOUNT)),
        stage=parse_text(fields.get(DEAL_STAGE), UNKNOWN),
        pipeline=parse_text(fields.get(DEAL_PIPELINE), UNKNOWN),
        campaign_brand=campaign_brand,
        brands=split_multi(campaign_brand),
        primary_company_id=parse_identifier(fields.get(DEAL_PRIMARY_COMPANY)),
        associated_company=associated,
        associated_companies=split_multi(associated),
        close_date=parse_date(fields.get(DEAL_CLOSE_DATE)),
        create_date=parse_date(fields.get(DEAL_CREATE_DATE)),
        is_closed_won=parse_bool(fields.get(DEAL_CLOSED_WON)),
    )


def normalize_company(row: Any) -> Company:
    """Build a Company from a raw export row."""
    fields = _clean_row(row)
    domain = parse_text(fields.get(COMPANY_DOMAIN))

    return Company(
        record_id=parse_identifier(fields.get(COMPANY_ID)) or "",
        name=parse_text(fields.get(COMPANY_NAME), "Unnamed Company"),
        domain=domain or None,
        total_revenue=parse_amount(fields.get(COMPANY_REVENUE)),
    )


def normalize_deals(rows) -> list[Deal]:
    deals = [normalize_deal(row) for row in rows]
    logger.debug(f"Normalized {len(deals)} deals")
    return deals


def normalize_companies(rows) -> list[Company]:
    companies = [normalize_company(row) for row in rows]
    logger.debug(f"Normalized {len(companies)} companies")
    return companies
