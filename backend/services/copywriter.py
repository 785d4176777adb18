"""
Listing copy generation: description, social captions, hashtags and video script.

Prompt building and reply parsing live here; the HTTP layer only decides which
pieces a user's tier is allowed to request.
"""
import re
import concurrent.futures
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional
import logging

from services.llm import chat_raw

logger = logging.getLogger(__name__)

CAPTION_MAX_CHARS = 150
MAX_HASHTAGS = 30
DEFAULT_CAPTION = "Check out this amazing property! ✨"
SOCIAL_PLATFORMS = ("instagram", "facebook", "tiktok")

TEMPLATE_GUIDELINES = {
    "standard": "Standard Listing (200-300 words): Perfect for Zillow, Realtor.com, and Redfin-style descriptions.",
    "short": "Short Listing (100-150 words): Ideal for social media captions, MLS listings, and quick property overviews.",
    "luxury": "Luxury Home (300-350 words): For high-end properties with premium features and amenities.",
    "investment": "Investment Property: Focuses on ROI, rental income, and investment potential.",
    "new_construction": "New Construction: Highlights builder features, warranties, and modern amenities.",
    "55_plus": "55+ Community: Emphasizes lifestyle, amenities, and low-maintenance living.",
    "vacation_rental": "Vacation Rental: Perfect for short-term rentals, highlighting getaway features.",
    "fixer_upper": "Fixer-Upper/Foreclosure: Focuses on potential, investment opportunity, and value.",
}

STYLE_GUIDELINES = {
    "professional": "Standard Professional: Clear, concise, informative, and engaging.",
    "luxury": "Luxury & High-End: Elegant, sophisticated, upscale language.",
    "investor": "Investor-Friendly: Direct, ROI-focused, clear financial value.",
    "casual": "Casual & Friendly: Conversational, engaging, warm tone.",
    "seo": "SEO-Optimized: Keyword-rich, designed for ranking in searches.",
    "storytelling": "Storytelling / Lifestyle: Emotional, immersive, paints a picture.",
    "social": "Social Media Style: Short, punchy, high-energy, with emojis.",
}

DESCRIPTION_SYSTEM = (
    "You are a professional real estate copywriter who creates engaging property listings. "
    "You adapt your writing style and format based on the specified template and style guidelines. "
    "You never use language that could discriminate against a protected class under the Fair Housing Act."
)
HASHTAG_SYSTEM = "You are a social media expert who creates relevant hashtags for real estate content."
SOCIAL_SYSTEM = (
    "You are a social media expert who creates concise, engaging real estate content. "
    f"Keep all captions under {CAPTION_MAX_CHARS} characters and adapt your tone to match the specified writing style."
)
VIDEO_SYSTEM = "You are a real estate video producer who writes short walkthrough scripts."

@dataclass
class ListingDraft:
    property_type: str
    bedrooms: int
    bathrooms: float
    square_feet: Optional[int] = None
    price: Optional[int] = None
    location: str = ""
    features: List[str] = field(default_factory=list)
    additional_notes: str = ""
    template: str = "standard"
    style: str = "professional"
    title: Optional[str] = None

@dataclass
class GeneratedCopy:
    description: str
    social_media: Optional[Dict[str, str]] = None
    hashtags: Optional[List[str]] = None
    video_script: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

def _format_number(value: Optional[float]) -> str:
    if value is None:
        return "unknown"
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,}"

def _style_block() -> str:
    return "\n".join(f"- {text}" for text in STYLE_GUIDELINES.values())

def suggest_title(draft: ListingDraft) -> str:
    """Fallback title when the agent did not write one."""
    beds = "Studio" if not draft.bedrooms else f"{draft.bedrooms} Bed"
    title = f"{beds} {draft.property_type.strip().title()}"
    if draft.location:
        title += f" in {draft.location.strip()}"
    return title

def build_description_prompt(draft: ListingDraft) -> str:
    template = draft.template if draft.template in TEMPLATE_GUIDELINES else "standard"
    style = draft.style if draft.style in STYLE_GUIDELINES else "professional"
    features = ", ".join(draft.features) if draft.features else "None provided"
    price = f"${_format_number(draft.price)}" if draft.price else "Not disclosed"
    template_block = "\n".join(f"- {text}" for text in TEMPLATE_GUIDELINES.values())

    return f"""
Create a detailed and engaging property listing for a {_format_number(draft.bedrooms)} bed, {_format_number(draft.bathrooms)} bath {draft.property_type} in {draft.location or "an undisclosed location"}.
Key features: {features}.
Square footage: {_format_number(draft.square_feet)}.
Price: {price}.
Additional notes: {draft.additional_notes or "None"}.

Template: {TEMPLATE_GUIDELINES[template]}
Writing Style: {STYLE_GUIDELINES[style]}

TEMPLATE GUIDELINES:
{template_block}

WRITING STYLE GUIDELINES:
{_style_block()}

Describe the property, not the people who should live there. No steering; no terms implying a protected class.
Replace subjective school/safety claims with neutral proximity phrasing ("near local schools", "close to parks").
Return only the listing text.
""".strip()

def build_hashtag_prompt(draft: ListingDraft) -> str:
    return f"""
Generate 10 relevant real estate hashtags for a {draft.property_type} in {draft.location or "this area"}.
Include a mix of property-specific, location-specific, and general real estate hashtags.
Return one hashtag per line with no commentary.
""".strip()

def build_social_prompt(description: str, style: str) -> str:
    style_text = STYLE_GUIDELINES.get(style, STYLE_GUIDELINES["professional"])
    return f"""
Create three short and engaging social media captions for this property. Each caption should be under {CAPTION_MAX_CHARS} characters.
Property: {description}

Writing Style: {style_text}

WRITING STYLE GUIDELINES:
{_style_block()}

Format your response exactly like this (keep the labels):
Instagram: [Short caption with emojis - max {CAPTION_MAX_CHARS} chars]
Facebook: [Engaging caption with key features - max {CAPTION_MAX_CHARS} chars]
TikTok: [Trendy caption with hashtags - max {CAPTION_MAX_CHARS} chars]
""".strip()

def build_video_script_prompt(description: str, draft: ListingDraft) -> str:
    return f"""
Write a 45-60 second walkthrough video script for this {draft.property_type}.
Property: {description}

Structure: opening hook, 3-5 key features, one neighborhood beat, soft call to action
("Schedule a tour to see it in person."). Mark each camera shot on its own line as "SHOT: ..."
and each spoken line as "VOICEOVER: ...". Short sentences. No phone numbers.
""".strip()

def truncate_caption(caption: str, limit: int = CAPTION_MAX_CHARS) -> str:
    if len(caption) > limit:
        return caption[:limit - 3] + "..."
    return caption

def parse_social_captions(text: str) -> Dict[str, str]:
    """
    Pull `Instagram:`/`Facebook:`/`TikTok:` lines out of a reply.
    Missing platforms fall back to the Instagram caption.
    """
    captions = {platform: "" for platform in SOCIAL_PLATFORMS}
    for line in (text or "").splitlines():
        line = line.strip().lstrip("-*• ").strip()
        lowered = line.lower()
        for platform in SOCIAL_PLATFORMS:
            prefix = f"{platform}:"
            if lowered.startswith(prefix):
                captions[platform] = line[len(prefix):].strip(" *")
                break

    instagram = truncate_caption(captions["instagram"] or DEFAULT_CAPTION)
    return {
        "instagram": instagram,
        "facebook": truncate_caption(captions["facebook"] or instagram),
        "tiktok": truncate_caption(captions["tiktok"] or instagram),
    }

_NUMBERING_RE = re.compile(r"^(?:\d+[.)]|[-*•])\s*")

def parse_hashtags(text: str) -> List[str]:
    """One #tag per token; numbering and bullets stripped, duplicates dropped."""
    tags: List[str] = []
    seen = set()
    for line in (text or "").splitlines():
        line = _NUMBERING_RE.sub("", line.strip())
        for token in re.split(r"[\s,]+", line):
            token = token.strip().strip(".;:")
            body = token.lstrip("#")
            if not body or not re.search(r"\w", body):
                continue
            tag = f"#{body}"
            key = tag.lower()
            if key in seen:
                continue
            seen.add(key)
            tags.append(tag)
    return tags[:MAX_HASHTAGS]

def generate_listing_copy(
    client: Any,
    model: str,
    draft: ListingDraft,
    include_social: bool = True,
    include_hashtags: bool = True,
    include_video: bool = False,
) -> GeneratedCopy:
    """
    Run the generation prompts. Description and hashtags go out together;
    captions and the video script need the description first.
    """
    with concurrent.futures.ThreadPoolExecutor(max_workers=2) as executor:
        description_future = executor.submit(
            chat_raw, client, model, DESCRIPTION_SYSTEM, build_description_prompt(draft),
            0.7, 500,
        )
        hashtag_future = None
        if include_hashtags:
            hashtag_future = executor.submit(
                chat_raw, client, model, HASHTAG_SYSTEM, build_hashtag_prompt(draft),
                0.7, 100,
            )
        description = description_future.result().strip()
        hashtags_raw = hashtag_future.result() if hashtag_future else None

    if not description:
        raise ValueError("No content in response")

    copy = GeneratedCopy(description=description)
    if hashtags_raw is not None:
        copy.hashtags = parse_hashtags(hashtags_raw)

    if include_social:
        social_raw = chat_raw(client, model, SOCIAL_SYSTEM, build_social_prompt(description, draft.style), 0.7, 300)
        copy.social_media = parse_social_captions(social_raw)

    if include_video:
        script = chat_raw(client, model, VIDEO_SYSTEM, build_video_script_prompt(description, draft), 0.7, 700)
        copy.video_script = script.strip() or None

    logger.info(
        f"Generated copy: {len(description)} chars, "
        f"{len(copy.hashtags or [])} hashtags, social={include_social}, video={include_video}"
    )
    return copy
