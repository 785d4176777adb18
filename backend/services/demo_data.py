"""
Static/demo mode data.

Used when no LLM key is configured (or DEMO_MODE=true) and by the API client
when the backend cannot be reached.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List

from services.copywriter import GeneratedCopy, ListingDraft, suggest_title, truncate_caption

DEMO_WARNING = "Demo mode: AI review skipped, no LLM backend configured."

MOCK_USER = {
    "id": 1,
    "email": "demo@example.com",
    "name": "Demo User",
    "role": "agent",
    "subscription_tier": "pro",
    "addons": [],
    "listings_this_month": 3,
}

def _days_ago(days: int) -> str:
    return (datetime.now() - timedelta(days=days)).isoformat()

def mock_listings() -> List[Dict[str, Any]]:
    return [
        {
            "id": 101,
            "user_id": 1,
            "title": "Modern 3 Bedroom House in Portland",
            "property_type": "house",
            "bedrooms": 3,
            "bathrooms": 2,
            "square_feet": 2100,
            "price": 675000,
            "location": "Portland, OR",
            "features": ["Open floor plan", "Hardwood floors", "Stainless steel appliances", "Large backyard"],
            "tone": "modern",
            "status": "published",
            "description": (
                "This stunning modern home offers 3 spacious bedrooms and 2 contemporary bathrooms spread "
                "across 2,100 square feet of thoughtfully designed living space. The open floor plan creates "
                "a seamless flow between living areas, while hardwood floors add warmth throughout. The kitchen "
                "features stainless steel appliances. Step outside to a large backyard with room for outdoor "
                "dining. Located in a Portland neighborhood with easy access to shopping, dining, and parks."
            ),
            "social_media": {
                "instagram": "Just listed in Portland! 🏡✨ Modern 3-bed, 2-bath with hardwood floors and a huge backyard.",
                "facebook": "Open concept living, stainless appliances and a big backyard in this modern Portland home.",
                "tiktok": "Portland modern done right 🏡 #PortlandRealEstate #JustListed",
            },
            "hashtags": ["#PortlandRealEstate", "#DreamHome", "#ModernLiving", "#JustListed"],
            "video_script": None,
            "created_at": _days_ago(2),
        },
        {
            "id": 102,
            "user_id": 1,
            "title": "Downtown Luxury Condo with City Views",
            "property_type": "condo",
            "bedrooms": 2,
            "bathrooms": 2,
            "square_feet": 1500,
            "price": 899000,
            "location": "Downtown Seattle, WA",
            "features": ["Floor-to-ceiling windows", "Quartz countertops", "Spa-inspired bathrooms", "24-hour concierge"],
            "tone": "luxury",
            "status": "published",
            "description": (
                "Downtown living in this 2-bedroom, 2-bathroom condominium offering 1,500 square feet of "
                "refined space. Floor-to-ceiling windows frame city views and fill the interior with natural "
                "light. The kitchen features quartz countertops and premium appliances, and both bathrooms are "
                "spa-inspired. The building offers 24-hour concierge service."
            ),
            "social_media": {
                "instagram": "City views from every window 🌇 2-bed, 2-bath downtown condo with quartz and concierge.",
                "facebook": "Floor-to-ceiling windows, spa-style baths and 24/7 concierge in this downtown condo.",
                "tiktok": "Wait for the view 🌃 #LuxuryCondo #CityViews",
            },
            "hashtags": ["#SeattleRealEstate", "#LuxuryCondo", "#DowntownLiving", "#CityViews"],
            "video_script": (
                "SHOT: Drone approach to the building with the skyline behind it\n"
                "VOICEOVER: Welcome to downtown living at its best.\n"
                "SHOT: Slow pan across the floor-to-ceiling windows\n"
                "VOICEOVER: Two bedrooms, two baths, and views from every room.\n"
                "VOICEOVER: Schedule a tour to see it in person."
            ),
            "created_at": _days_ago(7),
        },
        {
            "id": 103,
            "user_id": 1,
            "title": "Charming Cottage with Garden",
            "property_type": "house",
            "bedrooms": 2,
            "bathrooms": 1,
            "square_feet": 950,
            "price": 389000,
            "location": "Bellevue, WA",
            "features": ["Brick fireplace", "Garden with mature trees", "Built-in bookshelves", "Updated kitchen"],
            "tone": "cozy",
            "status": "draft",
            "description": (
                "Welcome to this 2-bedroom, 1-bathroom cottage with 950 square feet of living space. A brick "
                "fireplace anchors the living room, built-in bookshelves add character and storage, and the "
                "kitchen has been updated. Outside, a garden with mature trees offers a quiet retreat."
            ),
            "social_media": None,
            "hashtags": None,
            "video_script": None,
            "created_at": _days_ago(14),
        },
    ]

def demo_listing_copy(draft: ListingDraft, include_social: bool = True, include_hashtags: bool = True,
                      include_video: bool = False) -> GeneratedCopy:
    """Deterministic copy built from the draft, so generation works without an LLM."""
    where = f" in {draft.location}" if draft.location else ""
    size = f" with {draft.square_feet:,} square feet" if draft.square_feet else ""
    features = ", ".join(f.lower() for f in draft.features[:5])
    description = (
        f"Welcome to this {draft.bedrooms}-bedroom, {draft.bathrooms:g}-bathroom {draft.property_type}{where}{size}."
    )
    if features:
        description += f" Highlights include {features}."
    if draft.additional_notes:
        description += f" {draft.additional_notes.strip()}"
    description += " Schedule a tour to see it in person."

    copy = GeneratedCopy(description=description)
    title = draft.title or suggest_title(draft)
    if include_social:
        copy.social_media = {
            "instagram": truncate_caption(f"Just listed: {title} ✨"),
            "facebook": truncate_caption(f"{title}. {draft.bedrooms} bed, {draft.bathrooms:g} bath. Message us for a tour!"),
            "tiktok": truncate_caption(f"Tour this {draft.property_type}{where} 🏡 #JustListed"),
        }
    if include_hashtags:
        place = "".join(ch for ch in (draft.location or "").split(",")[0].title() if ch.isalnum())
        tags = ["#JustListed", "#RealEstate", f"#{draft.property_type.title().replace(' ', '')}ForSale"]
        if place:
            tags.insert(0, f"#{place}RealEstate")
        copy.hashtags = tags
    if include_video:
        copy.video_script = (
            f"SHOT: Exterior of the {draft.property_type}\n"
            f"VOICEOVER: {description}\n"
            "VOICEOVER: Schedule a tour to see it in person."
        )
    return copy
