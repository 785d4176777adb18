from services.seo import analyze_seo, analyze_with_llm, extract_keywords, parse_seo_metrics, SEO_SYSTEM
from conftest import FakeOpenAI

GOOD_TITLE = "Spacious Modern Home in Austin with Backyard"
GOOD_TEXT = (
    "This spacious modern home features a renovated kitchen, hardwood floors, and a large backyard "
    "with patio. The neighborhood is close to shopping, a community park, and downtown transit options. "
    "Every bedroom has great natural light, and the bathroom was recently updated for a fresh feel."
)

def test_well_optimized_listing_scores_100():
    result = analyze_seo(GOOD_TEXT, GOOD_TITLE, "Austin", ["Front of the house at dusk"])
    assert result["score"] == 100
    assert result["suggestions"] == []
    assert result["improved_text"] is None

def test_thin_listing_collects_every_penalty():
    result = analyze_seo("Nice place.", "Home", "Austin")
    assert result["score"] == 30
    categories = [s["category"] for s in result["suggestions"]]
    assert categories == ["title", "description", "keywords", "location", "location", "images"]
    assert result["improved_text"] == (
        "Located in Austin, this property features Nice place. "
        "This home is located in Austin and offers convenient access to local amenities."
    )

def test_long_title_penalty():
    title = "Spacious Modern Home in Austin with Backyard, Patio, Garage and Mountain Views"
    result = analyze_seo(GOOD_TEXT, title, "Austin", ["Kitchen"])
    assert len(title) > 70
    assert result["score"] == 95
    assert result["suggestions"][0]["issue"] == "Title is too long"

def test_blank_image_descriptions_do_not_count():
    result = analyze_seo(GOOD_TEXT, GOOD_TITLE, "Austin", ["", "   "])
    assert result["score"] == 90
    assert result["suggestions"][0]["category"] == "images"

def test_location_match_is_case_insensitive():
    result = analyze_seo(GOOD_TEXT, GOOD_TITLE, "AUSTIN", ["Porch"])
    assert result["score"] == 100

def test_score_never_negative():
    result = analyze_seo("", "", "Nowhere")
    assert result["score"] == 30
    result = analyze_seo("", "x" * 80, "Nowhere")
    assert result["score"] >= 0

def test_extract_keywords():
    assert extract_keywords("Kitchen kitchen KITCHEN, the patio; patio and a den!") == ["kitchen", "patio"]
    assert extract_keywords("") == []

def test_parse_seo_metrics_coerces_fields():
    raw = """
Sure! Here is the analysis:
[
  {"name": "Title Length", "score": "7", "maxScore": 10, "suggestions": "Shorten the title"},
  {"name": "Readability", "score": -3, "max_score": 0, "suggestions": ["", "Use shorter sentences"]},
  {"score": 5},
  "noise"
]
"""
    assert parse_seo_metrics(raw) == [
        {"name": "Title Length", "score": 7.0, "max_score": 10.0, "suggestions": ["Shorten the title"]},
        {"name": "Readability", "score": 0.0, "max_score": 10.0, "suggestions": ["Use shorter sentences"]},
    ]

def test_parse_seo_metrics_wrapped_object():
    raw = '{"metrics": [{"name": "Call-to-Action", "score": 4, "maxScore": 5, "suggestions": []}]}'
    assert parse_seo_metrics(raw) == [
        {"name": "Call-to-Action", "score": 4.0, "max_score": 5.0, "suggestions": []},
    ]

def test_parse_seo_metrics_non_finite_numbers():
    raw = """[
  {"name": "Readability", "score": NaN, "maxScore": 10},
  {"name": "Keywords", "score": 4, "maxScore": Infinity},
  {"name": "Title", "score": "inf", "maxScore": "-Infinity"}
]"""
    assert parse_seo_metrics(raw) == [
        {"name": "Readability", "score": 0.0, "max_score": 10.0, "suggestions": []},
        {"name": "Keywords", "score": 4.0, "max_score": 10.0, "suggestions": []},
        {"name": "Title", "score": 0.0, "max_score": 10.0, "suggestions": []},
    ]

def test_parse_seo_metrics_garbage():
    assert parse_seo_metrics("I could not analyze this listing.") == []

def test_analyze_with_llm():
    fake = FakeOpenAI()
    metrics = analyze_with_llm(fake, "gpt-4o", "Home", "Nice place.")
    assert metrics[0]["score"] == 10.0
    assert fake.calls[0]["messages"][0]["content"] == SEO_SYSTEM
    assert "Title: Home" in fake.calls[0]["messages"][1]["content"]
