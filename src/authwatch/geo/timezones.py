"""UTC offset lookup for timezone consistency checks.

IANA names are resolved through zoneinfo at the instant of the sample,
so DST is accounted for. Common abbreviations and fixed "UTC+H[:MM]"
notations are resolved from a static table because zoneinfo does not
know them.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


ABBREVIATION_OFFSETS = {
    "UTC": 0.0,
    "GMT": 0.0,
    "Z": 0.0,
    "WET": 0.0,
    "BST": 1.0,
    "CET": 1.0,
    "CEST": 2.0,
    "EET": 2.0,
    "EEST": 3.0,
    "MSK": 3.0,
    "IST": 5.5,
    "PKT": 5.0,
    "ICT": 7.0,
    "HKT": 8.0,
    "SGT": 8.0,
    "AWST": 8.0,
    "JST": 9.0,
    "KST": 9.0,
    "ACST": 9.5,
    "AEST": 10.0,
    "AEDT": 11.0,
    "NZST": 12.0,
    "NZDT": 13.0,
    "AST": -4.0,
    "EST": -5.0,
    "EDT": -4.0,
    "CST": -6.0,
    "CDT": -5.0,
    "MST": -7.0,
    "MDT": -6.0,
    "PST": -8.0,
    "PDT": -7.0,
    "AKST": -9.0,
    "AKDT": -8.0,
    "HST": -10.0,
}

_FIXED_OFFSET = re.compile(r"^(?:UTC|GMT)?\s*([+-])(\d{1,2})(?::?(\d{2}))?$", re.IGNORECASE)


def utc_offset_hours(tz_name: str, at_ms: int) -> Optional[float]:
    """UTC offset of a zone at a given instant.
    
    Args:
        tz_name: IANA zone name, abbreviation, or UTC+H[:MM] notation
        at_ms: Instant in epoch milliseconds
        
    Returns:
        Offset in hours, or None if the zone is unknown
    """
    if not tz_name:
        return None
    
    name = tz_name.strip()
    upper = name.upper()
    if upper in ABBREVIATION_OFFSETS:
        return ABBREVIATION_OFFSETS[upper]
    
    match = _FIXED_OFFSET.match(name)
    if match:
        sign, hours, minutes = match.groups()
        offset = int(hours) + int(minutes or 0) / 60.0
        return -offset if sign == "-" else offset
    
    try:
        zone = ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.debug(f"Unknown timezone: {tz_name}")
        return None
    
    instant = datetime.fromtimestamp(at_ms / 1000.0, tz=timezone.utc)
    offset = zone.utcoffset(instant)
    if offset is None:
        return None
    return offset.total_seconds() / 3600.0
