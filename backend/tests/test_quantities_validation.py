"""
Input validation tests: quantity parsing and the payload policy layer.

Verifies:
- Quantities are exact thousandths; floats, strings and Decimals agree
- Non-numeric, non-finite, over-precise and boolean input is rejected
- Payload policy rejects unknown fields and enforces column metadata
"""

from decimal import Decimal

import pytest

from garment_ledger.errors import ValidationError
from garment_ledger.models import Employee, StockItem
from garment_ledger.quantities import area_milli, from_milli, to_milli, to_positive_milli
from garment_ledger.validation import (
    EMPLOYEE_CREATE_POLICY,
    STOCK_ITEM_PATCH_POLICY,
    check_request_fields,
    coerce_int,
    validate_payload,
)


class TestToMilli:

    @pytest.mark.parametrize("value", [12.5, "12.5", Decimal("12.5"), " 12.500 "])
    def test_equivalent_inputs(self, value):
        assert to_milli(value) == 12_500

    def test_float_noise_is_not_carried(self):
        assert to_milli(0.1) == 100
        assert to_milli(0.1) + to_milli(0.2) == to_milli(0.3)

    @pytest.mark.parametrize("value", [None, True, False, "", "abc", [], {}])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValidationError):
            to_milli(value)

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), "Infinity"])
    def test_rejects_non_finite(self, value):
        with pytest.raises(ValidationError):
            to_milli(value)

    def test_rejects_more_than_three_decimals(self):
        with pytest.raises(ValidationError, match="3 decimal places"):
            to_milli("1.0005")

    def test_rejects_out_of_range(self):
        with pytest.raises(ValidationError, match="out of range"):
            to_milli(10 ** 16)

    @pytest.mark.parametrize("value", [0, -1, "-0.5"])
    def test_positive_rejects_zero_and_negative(self, value):
        with pytest.raises(ValidationError, match="> 0"):
            to_positive_milli(value)


def test_from_milli_returns_int_when_whole():
    assert from_milli(20_000) == 20
    assert isinstance(from_milli(20_000), int)
    assert from_milli(12_500) == 12.5
    assert from_milli(None) is None


def test_area_milli():
    # 1.5 x 0.8 x 10 = 12 square units
    assert area_milli(1_500, 800, 10) == 12_000


def test_area_milli_rejects_sub_thousandth_result():
    # 0.001 x 0.001 = 0.000001, not representable
    with pytest.raises(ValidationError):
        area_milli(1, 1, 1)


class TestCoerceInt:

    def test_accepts_ints_and_digit_strings(self):
        assert coerce_int(7, "n") == 7
        assert coerce_int(" 42 ", "n") == 42

    @pytest.mark.parametrize("value", [1.0, "1.5", "1e3", True, "", None])
    def test_rejects_everything_else(self, value):
        with pytest.raises(ValidationError):
            coerce_int(value, "n")


class TestValidatePayload:

    def test_item_patch_maps_min_threshold_to_milli(self):
        patch = validate_payload(
            model=StockItem,
            payload={"name": "  Linen  ", "min_threshold": 7.5},
            policy=STOCK_ITEM_PATCH_POLICY,
            partial=True,
        )
        assert patch == {"name": "Linen", "min_threshold_milli": 7_500}

    @pytest.mark.parametrize("field", ["quantity", "quantity_milli", "status", "id", "version_id"])
    def test_item_patch_rejects_non_writable_fields(self, field):
        with pytest.raises(ValidationError, match="Field not allowed"):
            validate_payload(model=StockItem, payload={field: 1}, policy=STOCK_ITEM_PATCH_POLICY, partial=True)

    def test_item_patch_rejects_negative_threshold(self):
        with pytest.raises(ValidationError):
            validate_payload(
                model=StockItem,
                payload={"min_threshold": -1},
                policy=STOCK_ITEM_PATCH_POLICY,
                partial=True,
            )

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError, match="cannot be blank"):
            validate_payload(model=StockItem, payload={"name": "   "}, policy=STOCK_ITEM_PATCH_POLICY, partial=True)

    def test_string_length_enforced(self):
        with pytest.raises(ValidationError, match="max length"):
            validate_payload(model=StockItem, payload={"color": "x" * 65}, policy=STOCK_ITEM_PATCH_POLICY, partial=True)

    def test_employee_create_requires_name(self):
        with pytest.raises(ValidationError, match="Missing required fields: name"):
            validate_payload(model=Employee, payload={"role": "tailor"}, policy=EMPLOYEE_CREATE_POLICY, partial=False)


class TestCheckRequestFields:

    def test_unknown_field(self):
        with pytest.raises(ValidationError, match="Field not allowed: bogus"):
            check_request_fields({"item_id": "A", "bogus": 1}, allowed={"item_id"})

    def test_missing_field(self):
        with pytest.raises(ValidationError, match="Missing required fields: amount"):
            check_request_fields({"item_id": "A"}, allowed={"item_id", "amount"}, required={"item_id", "amount"})

    def test_non_object_payload(self):
        with pytest.raises(ValidationError, match="Invalid JSON payload"):
            check_request_fields([1, 2], allowed=set())
