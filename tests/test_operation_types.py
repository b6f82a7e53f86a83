"""Tests for operation types and cost estimates."""

from datetime import datetime, timedelta, timezone

import pytest

from budgetbite.exceptions import UnknownOperationType
from budgetbite.models import OperationType
from budgetbite.services.cost_tracker import estimate_cost_cents, period_of


def test_parse_enum_values():
    """Test canonical names parse."""
    assert OperationType.parse("chat") == OperationType.CHAT
    assert OperationType.parse("scan_image") == OperationType.SCAN_IMAGE
    assert OperationType.parse("body_scan") == OperationType.BODY_SCAN


def test_parse_legacy_names():
    """Test the short names older clients send."""
    assert OperationType.parse("scan") == OperationType.SCAN_IMAGE
    assert OperationType.parse("shopping") == OperationType.SHOPPING_LIST


def test_parse_is_case_insensitive():
    """Test parsing ignores case and surrounding whitespace."""
    assert OperationType.parse(" CHAT ") == OperationType.CHAT


def test_parse_member_passthrough():
    """Test an enum member is returned unchanged."""
    assert OperationType.parse(OperationType.CHAT) is OperationType.CHAT


def test_unknown_operation_type_rejected():
    """Test a typo does not create a new category."""
    with pytest.raises(UnknownOperationType) as exc_info:
        OperationType.parse("shoping_list")

    assert exc_info.value.value == "shoping_list"


def test_default_cost_estimates():
    """Test the per-operation cost table."""
    assert estimate_cost_cents(OperationType.CHAT) == 2
    assert estimate_cost_cents(OperationType.SCAN_IMAGE) == 8
    assert estimate_cost_cents("shopping") == 3
    assert estimate_cost_cents(OperationType.BODY_SCAN) == 8


def test_period_of_uses_utc():
    """Test local times are converted to UTC before picking the month."""
    local = timezone(timedelta(hours=-5))
    moment = datetime(2026, 10, 31, 21, 0, tzinfo=local)  # 02:00 UTC on Nov 1

    assert period_of(moment) == (2026, 11)
