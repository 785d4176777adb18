"""
Fair Housing compliance checks for listing text.

Two layers:
- a term linter that flags known discriminatory or steering phrases and scores the text
- an LLM review that returns free-form issues (best effort, [] when the reply is unusable)
"""
import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Tuple
import logging

from services.llm import chat_raw, coerce_json_list

logger = logging.getLogger(__name__)

COMPLIANT_THRESHOLD = 70

SEVERITY_PENALTY = {"high": 20, "medium": 10, "low": 5}
SEVERITY_RANK = {"high": 0, "medium": 1, "low": 2}

PROHIBITED_TERMS = {
    "familial_status": [
        "bachelor", "mature couple", "no children", "adults only", "perfect for young professionals",
        "ideal for singles", "not suitable for children", "adult living", "couples only",
        "empty nesters", "mature person", "mature individual",
    ],
    "race": [
        "white neighborhood", "asian", "black", "hispanic", "integrated", "traditional neighborhood",
        "ethnic", "exclusive neighborhood", "private community", "culturally homogeneous",
    ],
    "religion": [
        "christian", "jewish", "catholic", "muslim", "close to church", "near synagogue", "temple",
        "preferred religion", "religious community", "god-fearing", "walking distance to church",
    ],
    "sex": [
        "male only", "female preferred", "gentlemen", "bachelorette",
        "male roommate wanted", "female tenant", "perfect for businessmen",
    ],
    "disability": [
        "no wheelchairs", "able-bodied", "walking distance", "not for handicapped", "not ada accessible",
        "must be able to climb stairs", "no mental illness", "no service animals",
    ],
    "national_origin": [
        "american only", "foreigners", "immigrants", "english speaking only", "native",
        "no foreigners", "citizens only", "green card", "non-citizens",
    ],
    # Phrases the copy prompt is told to avoid; they describe buyers instead of the property.
    "steering": [
        "perfect for", "ideal for", "suited for",
        "exclusive", "private", "traditional", "family-friendly",
    ],
}

CATEGORY_SEVERITY = {
    "familial_status": "high",
    "race": "high",
    "religion": "medium",
    "sex": "medium",
    "disability": "medium",
    "national_origin": "medium",
    "steering": "low",
}

CATEGORY_LABELS = {
    "familial_status": "familial status",
    "race": "race",
    "religion": "religion",
    "sex": "sex",
    "disability": "disability",
    "national_origin": "national origin",
    "steering": "steering",
}

TERM_REPLACEMENTS = {
    "bachelor": "studio apartment",
    "mature couple": "residents",
    "no children": "property amenities include",
    "adults only": "property features include",
    "white neighborhood": "neighborhood",
    "integrated": "diverse area",
    "close to church": "near places of worship",
    "near synagogue": "near places of worship",
    "walking distance to church": "near places of worship",
    "walking distance": "short distance",
    "no wheelchairs": "property features include",
    "male only": "roommate",
    "family-friendly": "spacious",
    "exclusive neighborhood": "neighborhood",
    "private community": "community",
    "traditional neighborhood": "neighborhood",
}

AI_ISSUE_TYPES = ("warning", "error")

COMPLIANCE_SYSTEM = "You are a Fair Housing compliance expert who analyzes property listings for potential violations."

@dataclass
class ComplianceIssue:
    type: str
    severity: str
    text: str
    suggestion: str
    position: int

def _term_pattern(term: str) -> re.Pattern:
    return re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)

def _ordered_terms() -> List[Tuple[str, str, str]]:
    """(category, severity, term), most severe and longest first. Each term appears once."""
    seen = set()
    ordered = []
    for category, terms in PROHIBITED_TERMS.items():
        severity = CATEGORY_SEVERITY[category]
        for term in terms:
            if term in seen:
                continue
            seen.add(term)
            ordered.append((category, severity, term))
    ordered.sort(key=lambda item: (SEVERITY_RANK[item[1]], -len(item[2])))
    return ordered

_TERMS = _ordered_terms()

def find_issues(text: str) -> List[ComplianceIssue]:
    """Scan text for prohibited terms. A match inside an already-reported longer match is skipped."""
    issues: List[ComplianceIssue] = []
    claimed: List[Tuple[int, int]] = []

    for category, severity, term in _TERMS:
        spans = [m.span() for m in _term_pattern(term).finditer(text or "")]
        free = [s for s in spans if not any(s[0] >= c[0] and s[1] <= c[1] for c in claimed)]
        if not free:
            continue
        claimed.extend(free)
        issues.append(ComplianceIssue(
            type=category,
            severity=severity,
            text=term,
            suggestion=TERM_REPLACEMENTS.get(term)
            or f"Remove or replace terms related to {CATEGORY_LABELS[category]}",
            position=free[0][0],
        ))

    issues.sort(key=lambda issue: issue.position)
    return issues

def score_issues(issues: List[ComplianceIssue]) -> int:
    score = 100 - sum(SEVERITY_PENALTY[issue.severity] for issue in issues)
    return max(0, score)

def improve_text(text: str, issues: List[ComplianceIssue]) -> str:
    """Swap flagged terms for neutral wording (or drop them) and tidy whitespace."""
    improved = text
    # Longest first so a long phrase is rewritten before any shorter term inside it
    for issue in sorted(issues, key=lambda i: -len(i.text)):
        replacement = TERM_REPLACEMENTS.get(issue.text, "")
        improved = _term_pattern(issue.text).sub(replacement, improved)
    improved = re.sub(r"[ \t]{2,}", " ", improved)
    improved = re.sub(r"\s+([.,;:!?])", r"\1", improved)
    return improved.strip()

def check_compliance(text: str) -> Dict[str, Any]:
    """
    Lint listing text for Fair Housing issues.

    Returns a dict with score (0-100), is_compliant (score >= 70), issues, and
    improved_text (None when nothing was flagged).
    """
    issues = find_issues(text)
    score = score_issues(issues)
    result = {
        "score": score,
        "is_compliant": score >= COMPLIANT_THRESHOLD,
        "issues": [asdict(issue) for issue in issues],
        "improved_text": improve_text(text, issues) if issues else None,
    }
    if issues:
        logger.info(f"Compliance lint: score={score}, {len(issues)} issue(s)")
    return result

def build_compliance_prompt(text: str) -> str:
    return f"""
Analyze the following property listing for Fair Housing compliance issues.
Check for any discriminatory language or content that violates Fair Housing laws.
Focus on protected classes: race, color, religion, sex, disability, familial status, and national origin.

Listing text:
{text}

For each issue found, provide:
1. The type of issue (warning or error)
2. A clear message explaining the problem
3. A specific suggestion for how to fix it

Format the response as a JSON array of objects with these properties:
{{
  "type": "warning" | "error",
  "message": "string",
  "suggestion": "string"
}}
Return [] if there are no issues.
""".strip()

def parse_ai_issues(raw: str) -> List[Dict[str, str]]:
    issues = []
    for item in coerce_json_list(raw, keys=("issues", "violations", "items"), item_key="message"):
        if not isinstance(item, dict):
            continue
        message = str(item.get("message") or "").strip()
        if not message:
            continue
        issue_type = str(item.get("type") or "").strip().lower()
        issues.append({
            "type": issue_type if issue_type in AI_ISSUE_TYPES else "warning",
            "message": message,
            "suggestion": str(item.get("suggestion") or "").strip(),
        })
    return issues

def check_with_llm(client: Any, model: str, text: str) -> List[Dict[str, str]]:
    raw = chat_raw(client, model, COMPLIANCE_SYSTEM, build_compliance_prompt(text), temperature=0.3, max_tokens=500)
    return parse_ai_issues(raw)
