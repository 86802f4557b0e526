"""
Shared helpers: identifiers, phone numbers, delivery fees, pagination
"""
import math
import re
import secrets
import string
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.config.constants import PROVIDER_MTN, PROVIDER_AIRTEL


_ALPHABET = string.ascii_uppercase + string.digits


def _base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_ALPHABET[rem] if rem >= 10 else str(rem))
    return "".join(reversed(digits)) or "0"


def _random_code(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


# ========================================
# IDENTIFIERS
# ========================================

def generate_order_number() -> str:
    """AS-<base36 ms timestamp>-<4 random chars>"""
    timestamp = _base36(int(time.time() * 1000))
    return f"AS-{timestamp}-{_random_code(4)}"


def generate_tracking_number() -> str:
    """TRK<YYYYMMDD><6 random chars>"""
    date_part = datetime.now(timezone.utc).strftime("%Y%m%d")
    return f"TRK{date_part}{_random_code(6)}"


def generate_transaction_ref() -> str:
    """Globally unique webhook correlation id, 24 chars (providers accept 8-36)"""
    return f"TXN-{uuid.uuid4().hex[:20].upper()}"


# ========================================
# PHONE NUMBERS
# ========================================

def format_phone_number(phone: Optional[str]) -> Optional[str]:
    """
    Normalise a Ugandan number to +256XXXXXXXXX.

    Accepts 0772123456, 772123456, 256772123456, +256 772 123 456.
    Returns None when the number cannot be normalised.
    """
    if not phone:
        return None

    cleaned = re.sub(r"\D", "", phone)

    if cleaned.startswith("256"):
        cleaned = cleaned[3:]
    elif cleaned.startswith("0"):
        cleaned = cleaned[1:]

    if len(cleaned) != 9:
        return None

    return f"+256{cleaned}"


def get_mobile_money_provider(phone: Optional[str]) -> Optional[str]:
    """MTN_UGANDA / AIRTEL_UGANDA from the network prefix, None if unknown"""
    formatted = format_phone_number(phone)
    if not formatted:
        return None

    prefix = formatted[4:6]
    if prefix in settings.MTN_PREFIXES:
        return PROVIDER_MTN
    if prefix in settings.AIRTEL_PREFIXES:
        return PROVIDER_AIRTEL
    return None


# ========================================
# DELIVERY FEES
# ========================================

def calculate_delivery_fee(from_region: Optional[str], to_region: Optional[str]) -> int:
    """Fee between two regions; the pair key is symmetric (sorted 'A-B')"""
    if from_region == to_region:
        return settings.SAME_REGION_DELIVERY_FEE

    key = "-".join(sorted([from_region or "", to_region or ""]))
    return settings.REGION_DELIVERY_FEES.get(key, settings.DEFAULT_DELIVERY_FEE)


def calculate_order_delivery_fee(farmer_regions: List[Optional[str]], buyer_region: Optional[str]) -> int:
    """Summed once per distinct farmer region, not per item"""
    distinct_regions = list(dict.fromkeys(farmer_regions))
    return sum(calculate_delivery_fee(region, buyer_region) for region in distinct_regions)


# ========================================
# PAGINATION
# ========================================

def paginate(page: Any = 1, limit: Any = None) -> Dict[str, int]:
    try:
        page_num = max(1, int(page))
    except (TypeError, ValueError):
        page_num = 1

    try:
        limit_num = int(limit) if limit is not None else settings.DEFAULT_PAGE_SIZE
    except (TypeError, ValueError):
        limit_num = settings.DEFAULT_PAGE_SIZE
    limit_num = min(max(1, limit_num), settings.MAX_PAGE_SIZE)

    return {
        "page": page_num,
        "limit": limit_num,
        "offset": (page_num - 1) * limit_num,
    }


def pagination_response(data: List[Any], total: int, page: int, limit: int) -> Dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "data": data,
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": total_pages,
            "hasMore": page < total_pages,
            "hasPrevious": page > 1,
        },
    }
