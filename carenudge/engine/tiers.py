"""Notification intensity tiers and category mapping."""

import copy
import logging
from typing import Dict

from carenudge.utils.constants import (
    DEFAULT_CATEGORY_TIERS,
    IOS_INTERRUPTION_LEVELS,
    TIER_PROFILES,
    TierProfile,
)

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = "other"


class TierConfig:
    """Category -> tier id mapping, owned by whoever builds the engine."""

    def __init__(self, overrides: Dict[str, str] | None = None):
        self._category_map: Dict[str, str] = dict(DEFAULT_CATEGORY_TIERS)
        if overrides:
            self.update(overrides)

    def update(self, overrides: Dict[str, str]) -> Dict[str, str]:
        """Merge overrides in; entries naming an unknown tier are ignored."""
        for category, tier_id in overrides.items():
            tier_id = str(tier_id).strip().upper()
            if tier_id not in TIER_PROFILES:
                logger.warning(f"Ignoring tier override {category}={tier_id}: unknown tier")
                continue
            self._category_map[str(category).strip().lower()] = tier_id
        return self.snapshot()

    def tier_id_for(self, category: str) -> str:
        return self._category_map.get(category, self._category_map[FALLBACK_CATEGORY])

    def snapshot(self) -> Dict[str, str]:
        return dict(self._category_map)

    @classmethod
    def from_string(cls, text: str) -> "TierConfig":
        """Build from "medications=T1,other=T2" (empty string -> defaults)."""
        overrides = {}
        for item in text.split(","):
            if "=" not in item:
                continue
            category, tier_id = item.split("=", 1)
            overrides[category.strip()] = tier_id.strip()
        return cls(overrides)


class TierProfileRegistry:
    """Resolves categories to tier profiles and decorates notification content."""

    def __init__(self, config: TierConfig | None = None):
        self.config = config or TierConfig()

    def get_tier_profile(self, tier_id: str | None) -> TierProfile | None:
        if not tier_id:
            return None
        return TIER_PROFILES.get(tier_id)

    def all_tier_profiles(self) -> Dict[str, TierProfile]:
        return dict(TIER_PROFILES)

    def category_map(self) -> Dict[str, str]:
        return self.config.snapshot()

    def set_category_tier_map(self, overrides: Dict[str, str]) -> Dict[str, str]:
        return self.config.update(overrides)

    def resolve_tier_for_category(self, category_or_tier_id: str | None) -> TierProfile:
        """Accept a tier id ("T1") or a category; always returns a profile."""
        if not category_or_tier_id:
            return TIER_PROFILES[self.config.tier_id_for(FALLBACK_CATEGORY)]

        value = str(category_or_tier_id).strip()
        if value in TIER_PROFILES:
            return TIER_PROFILES[value]

        return TIER_PROFILES[self.config.tier_id_for(value.lower())]

    def attach_tier_to_content(self, content: dict | None, tier: TierProfile | str | None) -> dict:
        """Return a copy of content carrying the tier's delivery hints.

        An explicit sound on the content is kept.
        """
        decorated = copy.deepcopy(content) if content else {}
        profile = self.get_tier_profile(tier) if isinstance(tier, str) else tier
        if profile is None:
            return decorated

        data = decorated.setdefault("data", {})
        data["tier"] = profile.id
        data["vibration"] = list(profile.vibration_pattern)
        data["priority"] = profile.priority
        data["full_screen"] = profile.full_screen_intent

        if not decorated.get("sound") and profile.sound:
            decorated["sound"] = profile.sound

        decorated["platform_hints"] = {
            "android": {
                "recommended_channel_id": f"carenudge_{profile.id.lower()}",
                "importance_hint": profile.priority,
                "full_screen_intent": profile.full_screen_intent,
            },
            "ios": {
                "interruption_level": IOS_INTERRUPTION_LEVELS.get(profile.id, "passive"),
            },
        }
        return decorated

    def is_tier_one(self, category: str | None) -> bool:
        return self.resolve_tier_for_category(category).id == "T1"
