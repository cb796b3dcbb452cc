# app/utils/scoring.py
"""
Deterministic derivation rules shared by the models and routes:
lead score, spam heuristics, slugs, excerpts and reading time.
"""
import math
import re
from typing import Iterable, Optional

# ================================
# LEAD SCORING
# ================================

HEALTHCARE_INDUSTRIES = {"healthcare", "hospital", "clinic", "imaging_center"}

COMPANY_SIZE_POINTS = {
    "enterprise_1000_plus": 15,
    "large_201_1000": 10,
    "medium_51_200": 5,
}

BUDGET_POINTS = {
    "500k_1m": 20,
    "over_1m": 20,
    "100k_500k": 15,
    "50k_100k": 10,
}

TIMELINE_POINTS = {
    "immediate": 15,
    "within_month": 15,
    "within_quarter": 10,
}

REFERRAL_SOURCES = {"referral", "partner"}

def _value(field) -> Optional[str]:
    # Enum members and raw strings are both accepted
    return getattr(field, "value", field)

def calculate_lead_score(
    industry=None,
    company_size=None,
    budget=None,
    timeline=None,
    source=None,
    phone: Optional[str] = None,
    website: Optional[str] = None,
) -> int:
    """Weighted sum of categorical lead attributes, capped at 100."""
    score = 0

    if _value(industry) in HEALTHCARE_INDUSTRIES:
        score += 20
    score += COMPANY_SIZE_POINTS.get(_value(company_size), 0)
    score += BUDGET_POINTS.get(_value(budget), 0)
    score += TIMELINE_POINTS.get(_value(timeline), 0)
    if _value(source) in REFERRAL_SOURCES:
        score += 10
    if phone:
        score += 5
    if website:
        score += 5

    return min(score, 100)

# ================================
# SPAM HEURISTICS
# ================================

SPAM_KEYWORDS = ["viagra", "casino", "lottery", "winner", "congratulations"]
SPAM_PHRASES = SPAM_KEYWORDS + ["click here", "free money"]
SPAM_THRESHOLD = 50

def calculate_spam_score(message: Optional[str]) -> int:
    """Percentage of spam keywords present in the message, 0-100."""
    if not message:
        return 0
    words = message.lower().split()
    matches = sum(1 for keyword in SPAM_KEYWORDS if any(keyword in word for word in words))
    return min(round(matches / len(SPAM_KEYWORDS) * 100), 100)

def is_spam_score(score: Optional[int]) -> bool:
    return (score or 0) >= SPAM_THRESHOLD

def detect_spam(message: Optional[str], subject: Optional[str] = None) -> bool:
    """Submission-level check: phrases, link stuffing, or shouting."""
    text = f"{subject or ''} {message or ''}".strip()
    if not text:
        return False
    lowered = text.lower()

    if any(phrase in lowered for phrase in SPAM_PHRASES):
        return True

    if len(re.findall(r"https?://", lowered)) > 3:
        return True

    letters = [c for c in text if c.isalpha()]
    if letters:
        upper_ratio = sum(1 for c in letters if c.isupper()) / len(letters)
        if upper_ratio > 0.5:
            return True

    return False

# ================================
# CONTACT PRIORITY
# ================================

INQUIRY_PRIORITY = {
    "technical_support": "high",
    "complaint": "high",
    "demo_request": "medium",
    "service_request": "medium",
    "partnership": "medium",
    "pricing": "low",
    "general_inquiry": "low",
}

def priority_for_inquiry(inquiry_type) -> str:
    return INQUIRY_PRIORITY.get(_value(inquiry_type), "low")

# ================================
# CONTENT DERIVATION
# ================================

WORDS_PER_MINUTE = 200
EXCERPT_LENGTH = 200

def slugify(title: str) -> str:
    slug = title.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")

def strip_tags(html: str) -> str:
    return re.sub(r"<[^>]*>", "", html or "")

def build_excerpt(content: Optional[str], length: int = EXCERPT_LENGTH) -> Optional[str]:
    if not content:
        return None
    text = strip_tags(content)
    return text[:length] + ("..." if len(text) > length else "")

def reading_time(content: Optional[str]) -> int:
    """Minutes to read at 200 words per minute."""
    words = len(strip_tags(content or "").split())
    return math.ceil(words / WORDS_PER_MINUTE)

def normalize_tags(tags: Optional[Iterable[str]]) -> list:
    if not tags:
        return []
    return [tag.strip().lower() for tag in tags if tag and tag.strip()]
