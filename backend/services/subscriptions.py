"""
Subscription tiers, add-ons and feature gating.

Billing is simulated: a tier change is a column update. What matters here is
which features a tier unlocks and how many listings it may generate per month.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

# Feature flags
DESCRIPTION = "description"
COMPLIANCE_CHECK = "compliance_check"
SOCIAL_CAPTIONS = "social_captions"
HASHTAGS = "hashtags"
SEO_ANALYSIS = "seo_analysis"
AI_COMPLIANCE = "ai_compliance"
CSV_EXPORT = "csv_export"
VIDEO_SCRIPT = "video_script"
WHITE_LABEL = "white_label"

@dataclass(frozen=True)
class Tier:
    name: str
    label: str
    monthly_price_cents: int
    listing_limit: Optional[int]  # None = unlimited
    features: FrozenSet[str]
    description: str

@dataclass(frozen=True)
class AddOn:
    code: str
    label: str
    monthly_price_cents: int
    features: FrozenSet[str]

_FREE_FEATURES = frozenset({DESCRIPTION, COMPLIANCE_CHECK, SOCIAL_CAPTIONS})
_BASIC_FEATURES = _FREE_FEATURES | {HASHTAGS}
_PRO_FEATURES = _BASIC_FEATURES | {SEO_ANALYSIS, AI_COMPLIANCE, CSV_EXPORT}
_BUSINESS_FEATURES = _PRO_FEATURES | {VIDEO_SCRIPT, WHITE_LABEL}

TIERS: Dict[str, Tier] = {
    "free": Tier("free", "Free", 0, 5, _FREE_FEATURES,
                 "Basic features for individual agents"),
    "basic": Tier("basic", "Basic", 1999, 10, _BASIC_FEATURES,
                  "More listings and hashtag generation"),
    "pro": Tier("pro", "Pro", 4999, 50, _PRO_FEATURES,
                "Advanced compliance checking, SEO analysis and exports"),
    "business": Tier("business", "Business", 9999, None, _BUSINESS_FEATURES,
                     "Unlimited listings, video scripts and white-label output"),
}

ADDONS: Dict[str, AddOn] = {
    "SEO_OPTIMIZATION": AddOn("SEO_OPTIMIZATION", "SEO Optimization", 999, frozenset({SEO_ANALYSIS})),
    "SOCIAL_MEDIA": AddOn("SOCIAL_MEDIA", "Social Media Pack", 999, frozenset({SOCIAL_CAPTIONS, HASHTAGS})),
    "VIDEO_SCRIPT": AddOn("VIDEO_SCRIPT", "Video Scripts", 1999, frozenset({VIDEO_SCRIPT})),
}

ADDON_ELIGIBLE_TIERS = frozenset({"basic", "pro"})

def get_tier(name: str) -> Tier:
    tier = TIERS.get((name or "").strip().lower())
    if tier is None:
        raise ValueError(f"Unknown subscription tier: {name}")
    return tier

def list_plans() -> Dict[str, List[Dict[str, Any]]]:
    tiers = [
        {
            "name": t.name,
            "label": t.label,
            "monthly_price_cents": t.monthly_price_cents,
            "listing_limit": t.listing_limit,
            "features": sorted(t.features),
            "description": t.description,
        }
        for t in TIERS.values()
    ]
    addons = [
        {
            "code": a.code,
            "label": a.label,
            "monthly_price_cents": a.monthly_price_cents,
            "features": sorted(a.features),
            "eligible_tiers": sorted(ADDON_ELIGIBLE_TIERS),
        }
        for a in ADDONS.values()
    ]
    return {"tiers": tiers, "addons": addons}

def effective_features(tier_name: str, addons: Iterable[str] = ()) -> FrozenSet[str]:
    features = set(get_tier(tier_name).features)
    for code in addons or ():
        addon = ADDONS.get(code)
        if addon:
            features |= addon.features
    return frozenset(features)

def has_feature(user: Dict[str, Any], feature: str) -> bool:
    return feature in effective_features(user.get("subscription_tier", "free"), user.get("addons") or [])

def is_premium(user: Dict[str, Any]) -> bool:
    return user.get("subscription_tier", "free") != "free"

def current_month(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime("%Y-%m")

def usage(user: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Listings used this month, the tier's limit, and what remains (None = unlimited)."""
    month = current_month(now)
    used = user.get("listings_this_month") or 0
    if user.get("quota_month") != month:
        used = 0
    limit = get_tier(user.get("subscription_tier", "free")).listing_limit
    return {
        "month": month,
        "used": used,
        "limit": limit,
        "remaining": None if limit is None else max(0, limit - used),
    }

def can_generate(user: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    remaining = usage(user, now)["remaining"]
    return remaining is None or remaining > 0

def check_addon(tier_name: str, code: str) -> AddOn:
    """Validate an add-on purchase. Raises ValueError (unknown) or PermissionError (tier not eligible)."""
    addon = ADDONS.get(code)
    if addon is None:
        raise ValueError(f"Unknown add-on: {code}")
    tier = get_tier(tier_name)
    if tier.name not in ADDON_ELIGIBLE_TIERS:
        raise PermissionError(f"Add-ons are not available on the {tier.label} plan")
    return addon

def subscription_summary(user: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    tier = get_tier(user.get("subscription_tier", "free"))
    return {
        "tier": tier.name,
        "label": tier.label,
        "is_premium": is_premium(user),
        "monthly_price_cents": tier.monthly_price_cents,
        "addons": list(user.get("addons") or []),
        "features": sorted(effective_features(tier.name, user.get("addons") or [])),
        "usage": usage(user, now),
    }
