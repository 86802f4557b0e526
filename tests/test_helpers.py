import re

import pytest

from app.utils.helpers import (
    format_phone_number,
    get_mobile_money_provider,
    calculate_delivery_fee,
    calculate_order_delivery_fee,
    generate_order_number,
    generate_tracking_number,
    generate_transaction_ref,
    paginate,
    pagination_response,
)


class TestPhoneNumbers:
    @pytest.mark.parametrize("raw", [
        "0772123456",
        "772123456",
        "256772123456",
        "+256772123456",
        "+256 772 123 456",
        "0772-123-456",
    ])
    def test_formats_to_international(self, raw):
        assert format_phone_number(raw) == "+256772123456"

    @pytest.mark.parametrize("raw", [None, "", "12345", "07721234567", "+254712345678"])
    def test_rejects_unparseable_numbers(self, raw):
        assert format_phone_number(raw) is None

    def test_detects_network_from_prefix(self):
        assert get_mobile_money_provider("0772123456") == "MTN_UGANDA"
        assert get_mobile_money_provider("0781234567") == "MTN_UGANDA"
        assert get_mobile_money_provider("0761234567") == "MTN_UGANDA"
        assert get_mobile_money_provider("0701234567") == "AIRTEL_UGANDA"
        assert get_mobile_money_provider("0751234567") == "AIRTEL_UGANDA"
        assert get_mobile_money_provider("0741234567") == "AIRTEL_UGANDA"

    def test_unknown_prefix_has_no_provider(self):
        assert get_mobile_money_provider("0391234567") is None


class TestDeliveryFees:
    def test_same_region(self):
        assert calculate_delivery_fee("Central", "Central") == 5000

    def test_pair_is_symmetric(self):
        assert calculate_delivery_fee("Central", "Western") == 12000
        assert calculate_delivery_fee("Western", "Central") == 12000
        assert calculate_delivery_fee("Northern", "Western") == 18000

    def test_unlisted_pair_uses_default(self):
        assert calculate_delivery_fee("Central", "Kigezi") == 15000

    def test_order_fee_counts_each_farmer_region_once(self):
        # two Central farmers and one Western farmer, buyer in Central
        fee = calculate_order_delivery_fee(["Central", "Central", "Western"], "Central")
        assert fee == 5000 + 12000


class TestIdentifiers:
    def test_order_number_format(self):
        assert re.fullmatch(r"AS-[0-9A-Z]+-[0-9A-Z]{4}", generate_order_number())

    def test_tracking_number_format(self):
        assert re.fullmatch(r"TRK\d{8}[0-9A-Z]{6}", generate_tracking_number())

    def test_transaction_ref_is_unique_and_within_provider_limits(self):
        refs = {generate_transaction_ref() for _ in range(200)}
        assert len(refs) == 200
        for ref in refs:
            assert ref.startswith("TXN-")
            assert 8 <= len(ref) <= 36


class TestPagination:
    def test_defaults(self):
        assert paginate() == {"page": 1, "limit": 20, "offset": 0}

    def test_limit_is_capped(self):
        assert paginate(2, 500) == {"page": 2, "limit": 100, "offset": 100}

    def test_garbage_falls_back_to_defaults(self):
        assert paginate("abc", "xyz") == {"page": 1, "limit": 20, "offset": 0}
        assert paginate(0, 0)["page"] == 1

    def test_response_shape(self):
        result = pagination_response(["a", "b"], total=45, page=2, limit=20)
        assert result["data"] == ["a", "b"]
        assert result["pagination"] == {
            "total": 45,
            "page": 2,
            "limit": 20,
            "totalPages": 3,
            "hasMore": True,
            "hasPrevious": True,
        }
