from services.compliance import (
    check_compliance,
    check_with_llm,
    find_issues,
    parse_ai_issues,
    COMPLIANCE_SYSTEM,
    PROHIBITED_TERMS,
    TERM_REPLACEMENTS,
)
from conftest import FakeOpenAI

def test_clean_text_scores_100():
    result = check_compliance("Three bedrooms, two baths, updated kitchen and a fenced backyard.")
    assert result == {"score": 100, "is_compliant": True, "issues": [], "improved_text": None}

def test_high_severity_term():
    result = check_compliance("Quiet unit, adults only.")
    assert result["score"] == 80
    issue = result["issues"][0]
    assert issue["type"] == "familial_status"
    assert issue["severity"] == "high"
    assert issue["text"] == "adults only"
    assert issue["suggestion"] == "property features include"
    assert issue["position"] == len("Quiet unit, ")

def test_matching_is_case_insensitive_and_word_bounded():
    assert [i.text for i in find_issues("ADULTS ONLY building")] == ["adults only"]
    # "nativeness" is not the word "native"
    assert find_issues("Nativeness of the garden plants") == []

def test_longer_phrase_claims_the_span():
    issues = find_issues("Perfect for young professionals.")
    assert [(i.type, i.text) for i in issues] == [("familial_status", "perfect for young professionals")]

    issues = find_issues("Walking distance to church and shops.")
    assert [(i.type, i.text) for i in issues] == [("religion", "walking distance to church")]

def test_each_term_reported_once():
    issues = find_issues("Exclusive. Truly exclusive. Exclusive!")
    assert len(issues) == 1
    assert issues[0].severity == "low"

def test_issues_sorted_by_position():
    issues = find_issues("Ideal for singles, no children, near synagogue.")
    assert [i.text for i in issues] == ["ideal for singles", "no children", "near synagogue"]

def test_score_threshold_and_floor():
    result = check_compliance("No children. Adults only. White neighborhood. Christian. Male only. Foreigners.")
    # 3 high (-60) and 3 medium (-30)
    assert result["score"] == 10
    assert result["is_compliant"] is False

    result = check_compliance(
        "No children, adults only, white neighborhood, bachelor, mature couple, couples only."
    )
    assert result["score"] == 0

def test_score_of_70_is_compliant():
    result = check_compliance("Great home, adults only, walking distance to church.")
    assert result["score"] == 70
    assert result["is_compliant"] is True

def test_improved_text_replaces_and_removes():
    result = check_compliance("Great home, adults only, walking distance to church.")
    assert result["improved_text"] == "Great home, property features include, near places of worship."

    # No neutral wording for "temple", so it is dropped
    result = check_compliance("Sunny unit near temple.")
    assert result["improved_text"] == "Sunny unit near."

def test_parse_ai_issues_variants():
    raw = '[{"type": "ERROR", "message": " Bad phrase ", "suggestion": "Fix it"}, {"type": "note", "message": "Hmm"}]'
    assert parse_ai_issues(raw) == [
        {"type": "error", "message": "Bad phrase", "suggestion": "Fix it"},
        {"type": "warning", "message": "Hmm", "suggestion": ""},
    ]

    wrapped = 'Here you go: {"issues": [{"type": "warning", "message": "Steering"}]}'
    assert parse_ai_issues(wrapped)[0]["message"] == "Steering"

    single = '{"type": "error", "message": "One problem", "suggestion": "x"}'
    assert parse_ai_issues(single) == [{"type": "error", "message": "One problem", "suggestion": "x"}]

def test_parse_ai_issues_unusable():
    assert parse_ai_issues("No issues found.") == []
    assert parse_ai_issues('[{"type": "error"}, "text", 3]') == []
    assert parse_ai_issues("[]") == []

def test_check_with_llm_uses_low_temperature():
    fake = FakeOpenAI()
    issues = check_with_llm(fake, "gpt-4o", "Spacious home.")
    assert issues[0]["message"] == "Implies a preferred buyer"
    call = fake.calls[0]
    assert call["messages"][0]["content"] == COMPLIANCE_SYSTEM
    assert "Spacious home." in call["messages"][1]["content"]
    assert call["temperature"] == 0.3
    assert call["max_tokens"] == 500

def test_every_replacement_is_for_a_flagged_term():
    flagged = {term for terms in PROHIBITED_TERMS.values() for term in terms}
    assert set(TERM_REPLACEMENTS) <= flagged

def test_christian_community_rewritten_from_flagged_word():
    result = check_compliance("Quiet christian community near the park.")
    assert [issue["text"] for issue in result["issues"]] == ["christian"]
    assert result["improved_text"] == "Quiet community near the park."
