import pytest

from services.copywriter import (
    DEFAULT_CAPTION,
    DESCRIPTION_SYSTEM,
    HASHTAG_SYSTEM,
    SOCIAL_SYSTEM,
    VIDEO_SYSTEM,
    ListingDraft,
    build_description_prompt,
    build_hashtag_prompt,
    generate_listing_copy,
    parse_hashtags,
    parse_social_captions,
    suggest_title,
    truncate_caption,
)
from conftest import FakeOpenAI

def make_draft(**overrides):
    values = dict(
        property_type="house",
        bedrooms=3,
        bathrooms=2.5,
        square_feet=1850,
        price=540000,
        location="Portland, OR",
        features=["Hardwood floors", "Updated kitchen"],
    )
    values.update(overrides)
    return ListingDraft(**values)

def test_suggest_title():
    assert suggest_title(make_draft()) == "3 Bed House in Portland, OR"
    assert suggest_title(make_draft(bedrooms=0, property_type="condo", location="")) == "Studio Condo"

def test_description_prompt_contents():
    prompt = build_description_prompt(make_draft(template="luxury", style="storytelling"))
    assert "3 bed, 2.5 bath house in Portland, OR" in prompt
    assert "Key features: Hardwood floors, Updated kitchen." in prompt
    assert "Square footage: 1,850." in prompt
    assert "Price: $540,000." in prompt
    assert "Template: Luxury Home" in prompt
    assert "Writing Style: Storytelling / Lifestyle" in prompt

def test_description_prompt_defaults():
    prompt = build_description_prompt(make_draft(template="castle", style="pirate", price=None, features=[]))
    assert "Template: Standard Listing" in prompt
    assert "Writing Style: Standard Professional" in prompt
    assert "Price: Not disclosed." in prompt
    assert "Key features: None provided." in prompt

def test_hashtag_prompt_mentions_location():
    assert "house in Portland, OR" in build_hashtag_prompt(make_draft())

def test_truncate_caption():
    assert truncate_caption("short") == "short"
    long_caption = "x" * 200
    truncated = truncate_caption(long_caption)
    assert len(truncated) == 150
    assert truncated.endswith("...")

def test_parse_social_captions():
    text = (
        "Here are your captions:\n"
        "- **Instagram:** Sunny and bright ☀️\n"
        "FACEBOOK: Three bedrooms and a big yard\n"
        "TikTok: " + "y" * 200
    )
    captions = parse_social_captions(text)
    assert captions["instagram"] == "Sunny and bright ☀️"
    assert captions["facebook"] == "Three bedrooms and a big yard"
    assert len(captions["tiktok"]) == 150

def test_parse_social_captions_fallbacks():
    assert parse_social_captions("") == {
        "instagram": DEFAULT_CAPTION,
        "facebook": DEFAULT_CAPTION,
        "tiktok": DEFAULT_CAPTION,
    }
    captions = parse_social_captions("Instagram: Only this one")
    assert captions["facebook"] == "Only this one"
    assert captions["tiktok"] == "Only this one"

def test_parse_hashtags():
    text = "1. #PortlandHomes\n2) RealEstate, #realestate\n- #Dream-Home\n• ### \n3. #JustListed."
    assert parse_hashtags(text) == ["#PortlandHomes", "#RealEstate", "#Dream-Home", "#JustListed"]

def test_parse_hashtags_caps_at_30():
    text = " ".join(f"#tag{i}" for i in range(50))
    tags = parse_hashtags(text)
    assert len(tags) == 30
    assert tags[0] == "#tag0"

def test_generate_listing_copy_all_parts():
    fake = FakeOpenAI()
    copy = generate_listing_copy(fake, "gpt-4o", make_draft(), include_video=True)

    assert copy.description.startswith("Bright 3 bedroom house")
    assert copy.hashtags == ["#PortlandHomes", "#JustListed", "#DreamHome"]
    assert copy.social_media["facebook"] == "Hardwood floors and a big backyard"
    assert copy.video_script == "SHOT: Front porch\nVOICEOVER: Welcome home."

    systems = fake.systems_called()
    assert sorted(systems) == sorted([DESCRIPTION_SYSTEM, HASHTAG_SYSTEM, SOCIAL_SYSTEM, VIDEO_SYSTEM])
    description_call = next(c for c in fake.calls if c["messages"][0]["content"] == DESCRIPTION_SYSTEM)
    assert description_call["max_tokens"] == 500
    assert description_call["temperature"] == 0.7

    # Captions are written from the generated description
    social_call = next(c for c in fake.calls if c["messages"][0]["content"] == SOCIAL_SYSTEM)
    assert copy.description in social_call["messages"][1]["content"]

def test_generate_listing_copy_only_description():
    fake = FakeOpenAI()
    copy = generate_listing_copy(fake, "gpt-4o", make_draft(), include_social=False, include_hashtags=False)
    assert fake.systems_called() == [DESCRIPTION_SYSTEM]
    assert copy.to_dict() == {
        "description": copy.description,
        "social_media": None,
        "hashtags": None,
        "video_script": None,
    }

def test_generate_listing_copy_empty_description():
    fake = FakeOpenAI({DESCRIPTION_SYSTEM: ""})
    with pytest.raises(ValueError, match="No content in response"):
        generate_listing_copy(fake, "gpt-4o", make_draft())
