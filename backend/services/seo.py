"""
SEO scoring for listing text: a keyword/length analyzer plus optional LLM metrics.
"""
import math
import re
from collections import Counter
from typing import Any, Dict, List, Optional
import logging

from services.llm import chat_raw, coerce_json_list

logger = logging.getLogger(__name__)

TITLE_MIN_CHARS = 30
TITLE_MAX_CHARS = 70
DESCRIPTION_MIN_CHARS = 250
MIN_PROPERTY_KEYWORDS = 5
MIN_LOCATION_KEYWORDS = 3
TOP_KEYWORDS = 10

PROPERTY_KEYWORDS = [
    "property", "home", "house", "real estate", "apartment", "condo", "townhouse",
    "bedroom", "bathroom", "kitchen", "living room", "garage", "backyard", "patio",
    "hardwood floors", "stainless steel", "granite countertops", "updated", "renovated",
    "spacious", "cozy", "modern", "open concept", "view", "walkable", "commute",
]

LOCATION_KEYWORDS = [
    "neighborhood", "community", "school district", "shopping", "restaurant",
    "park", "transit", "highway", "downtown", "suburb", "urban", "rural",
]

STOP_WORDS = {
    "a", "an", "the", "and", "or", "but", "is", "are", "was", "were", "be", "been",
    "being", "in", "on", "at", "to", "for", "with", "by", "about", "like", "through",
    "over", "before", "after", "between", "under", "above", "these", "those", "this",
    "that", "of", "from", "as", "into", "during", "including", "until", "against",
    "among", "throughout", "despite", "towards", "upon", "concerning",
}

_PUNCTUATION_RE = re.compile(r"[.,/#!$%^&*;:{}=\-_`~()]")

SEO_SYSTEM = "You are an SEO expert who analyzes real estate listings for optimization opportunities."

def extract_keywords(content: str, top_n: int = TOP_KEYWORDS) -> List[str]:
    """Most frequent content words (len > 3, not stop words); ties keep first appearance."""
    words = _PUNCTUATION_RE.sub("", content.lower()).split()
    counts = Counter(w for w in words if len(w) > 3 and w not in STOP_WORDS)
    return [word for word, _ in counts.most_common(top_n)]

def analyze_seo(
    text: str,
    title: str,
    location: str = "",
    image_descriptions: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Score a listing for search visibility.

    Starts at 100 and subtracts for short/long titles, thin descriptions,
    missing property or location vocabulary, an unmentioned location, and
    images without alt text. Returns score, keywords, suggestions, improved_text.
    """
    suggestions: List[Dict[str, str]] = []
    score = 100
    full_content = f"{title} {text}".lower()
    location = (location or "").strip()

    keywords = extract_keywords(full_content)

    if len(title) < TITLE_MIN_CHARS:
        suggestions.append({
            "category": "title",
            "issue": "Title is too short",
            "suggestion": "Increase title length to 50-60 characters with descriptive keywords about the property",
        })
        score -= 10
    elif len(title) > TITLE_MAX_CHARS:
        suggestions.append({
            "category": "title",
            "issue": "Title is too long",
            "suggestion": "Reduce title length to 50-60 characters while keeping key property information",
        })
        score -= 5

    if len(text) < DESCRIPTION_MIN_CHARS:
        suggestions.append({
            "category": "description",
            "issue": "Description is too short",
            "suggestion": f"Expand your description to at least {DESCRIPTION_MIN_CHARS} characters with detailed property information",
        })
        score -= 15

    property_found = [k for k in PROPERTY_KEYWORDS if k in full_content]
    if len(property_found) < MIN_PROPERTY_KEYWORDS:
        suggestions.append({
            "category": "keywords",
            "issue": "Not enough property-specific keywords",
            "suggestion": f"Include more property-specific keywords such as: {', '.join(PROPERTY_KEYWORDS[:8])}",
        })
        score -= 10

    location_found = [k for k in LOCATION_KEYWORDS if k in full_content]
    if len(location_found) < MIN_LOCATION_KEYWORDS:
        suggestions.append({
            "category": "location",
            "issue": "Not enough location-specific information",
            "suggestion": f"Include more location details such as: {', '.join(LOCATION_KEYWORDS[:5])}",
        })
        score -= 10

    location_missing = bool(location) and location.lower() not in full_content
    if location_missing:
        suggestions.append({
            "category": "location",
            "issue": "Specific location not mentioned",
            "suggestion": f'Include the specific location "{location}" in your description',
        })
        score -= 15

    if not [d for d in (image_descriptions or []) if d and d.strip()]:
        suggestions.append({
            "category": "images",
            "issue": "Missing image descriptions",
            "suggestion": "Add descriptive alt text to all property images to improve SEO",
        })
        score -= 10

    score = max(0, score)

    improved_text = text
    if len(text) < DESCRIPTION_MIN_CHARS:
        noun = property_found[0] if property_found else "property"
        where = f" is located in {location} and" if location else ""
        improved_text += f" This {noun}{where} offers convenient access to local amenities."
    if location_missing:
        improved_text = f"Located in {location}, this property features {improved_text}"

    return {
        "score": score,
        "keywords": keywords,
        "suggestions": suggestions,
        "improved_text": improved_text if suggestions else None,
    }

def build_seo_prompt(title: str, description: str) -> str:
    return f"""
Analyze the following property listing for SEO optimization:

Title: {title}
Description: {description}

Evaluate the following metrics and provide specific suggestions for improvement:
1. Title Length (max 60 characters)
2. Description Length (optimal 150-160 characters)
3. Keyword Usage (natural integration of key terms)
4. Readability (clear, engaging language)
5. Call-to-Action (clear next steps)

Format the response as a JSON array of objects with these properties:
{{
  "name": "string",
  "score": number,
  "maxScore": number,
  "suggestions": string[]
}}
""".strip()

def _as_number(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    # json.loads accepts NaN and Infinity
    return number if math.isfinite(number) else default

def parse_seo_metrics(raw: str) -> List[Dict[str, Any]]:
    metrics = []
    for item in coerce_json_list(raw, keys=("metrics", "items", "results"), item_key="name"):
        if not isinstance(item, dict) or not item.get("name"):
            continue
        max_score = _as_number(item.get("maxScore", item.get("max_score")), 10.0)
        if max_score <= 0:
            max_score = 10.0
        score = min(max(_as_number(item.get("score"), 0.0), 0.0), max_score)
        suggestions = item.get("suggestions") or []
        if isinstance(suggestions, str):
            suggestions = [suggestions]
        metrics.append({
            "name": str(item["name"]).strip(),
            "score": score,
            "max_score": max_score,
            "suggestions": [str(s).strip() for s in suggestions if str(s).strip()],
        })
    return metrics

def analyze_with_llm(client: Any, model: str, title: str, description: str) -> List[Dict[str, Any]]:
    raw = chat_raw(client, model, SEO_SYSTEM, build_seo_prompt(title, description), temperature=0.3, max_tokens=500)
    return parse_seo_metrics(raw)
