"""Tests for notification tiers."""

from carenudge.engine.tiers import TierConfig, TierProfileRegistry


def test_default_category_mapping():
    registry = TierProfileRegistry()

    assert registry.resolve_tier_for_category("medications").id == "T1"
    assert registry.resolve_tier_for_category("appointments").id == "T2"
    assert registry.resolve_tier_for_category("important_dates").id == "T3"
    assert registry.resolve_tier_for_category("Medications").id == "T1"


def test_resolve_accepts_tier_ids_and_falls_back():
    registry = TierProfileRegistry()

    assert registry.resolve_tier_for_category("T2").id == "T2"
    assert registry.resolve_tier_for_category("gardening").id == "T3"
    assert registry.resolve_tier_for_category(None).id == "T3"


def test_overrides_only_accept_valid_tiers():
    config = TierConfig()
    merged = config.update({"appointments": "t1", "other": "T9"})

    assert merged["appointments"] == "T1"
    assert merged["other"] == "T3"


def test_config_from_string():
    config = TierConfig.from_string("important_dates=T2, other = T1,bogus")
    registry = TierProfileRegistry(config)

    assert registry.resolve_tier_for_category("important_dates").id == "T2"
    assert registry.resolve_tier_for_category("unknown").id == "T1"
    assert TierConfig.from_string("").snapshot() == TierConfig().snapshot()


def test_separate_configs_do_not_leak():
    """Each registry owns its mapping."""
    first = TierProfileRegistry(TierConfig({"other": "T1"}))
    second = TierProfileRegistry()

    assert first.is_tier_one("other")
    assert not second.is_tier_one("other")


def test_attach_tier_to_content_does_not_mutate_input():
    registry = TierProfileRegistry()
    content = {"title": "Pills", "data": {"reminder_id": 1}}

    decorated = registry.attach_tier_to_content(content, "T1")

    assert content == {"title": "Pills", "data": {"reminder_id": 1}}
    assert decorated["data"]["tier"] == "T1"
    assert decorated["data"]["vibration"] == [500, 200, 500]
    assert decorated["data"]["priority"] == "max"
    assert decorated["data"]["full_screen"] is True
    assert decorated["sound"] == "alarm"
    assert decorated["platform_hints"]["android"]["recommended_channel_id"] == "carenudge_t1"
    assert decorated["platform_hints"]["ios"]["interruption_level"] == "time-sensitive"


def test_attach_tier_keeps_explicit_sound():
    registry = TierProfileRegistry()
    decorated = registry.attach_tier_to_content({"sound": "custom.wav"}, registry.get_tier_profile("T3"))

    assert decorated["sound"] == "custom.wav"
    assert decorated["data"]["vibration"] == []
    assert decorated["platform_hints"]["ios"]["interruption_level"] == "passive"
