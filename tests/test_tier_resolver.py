"""Tests for ceiling resolution."""

from budgetbite.services import TierCeilingResolver


async def test_default_without_tier_lookup():
    """Test every user gets the default without a subscription lookup."""
    resolver = TierCeilingResolver(default_cents=200)

    assert await resolver.ceiling_for("user-1") == 200


async def test_ceiling_from_tier():
    """Test a known tier maps to its ceiling."""
    async def tier_of(user_id: str) -> str | None:
        return "family"

    resolver = TierCeilingResolver(tier_of, tiers={"family": 400}, default_cents=200)

    assert await resolver.ceiling_for("user-1") == 400


async def test_unknown_tier_falls_back_to_default():
    """Test an unrecognised tier gets the default."""
    async def tier_of(user_id: str) -> str | None:
        return "platinum"

    resolver = TierCeilingResolver(tier_of, tiers={"family": 400}, default_cents=200)

    assert await resolver.ceiling_for("user-1") == 200


async def test_missing_tier_falls_back_to_default():
    """Test users without a subscription get the default."""
    async def tier_of(user_id: str) -> str | None:
        return None

    resolver = TierCeilingResolver(tier_of, tiers={"family": 400}, default_cents=150)

    assert await resolver.ceiling_for("user-1") == 150


async def test_caller_tier_wins_over_lookup():
    """Test a tier supplied by the caller skips the subscription lookup."""
    async def tier_of(user_id: str) -> str | None:
        raise AssertionError("lookup not expected")

    resolver = TierCeilingResolver(tier_of, tiers={"family": 400}, default_cents=200)

    assert await resolver.ceiling_for("user-1", "family") == 400
