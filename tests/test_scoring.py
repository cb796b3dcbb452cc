from app.models.all_models import Budget, CompanySize, Industry, LeadSource, Timeline
from app.utils.scoring import (
    build_excerpt,
    calculate_lead_score,
    calculate_spam_score,
    detect_spam,
    is_spam_score,
    normalize_tags,
    priority_for_inquiry,
    reading_time,
    slugify,
)


def test_lead_score_sums_every_factor():
    score = calculate_lead_score(
        industry=Industry.HEALTHCARE,
        company_size=CompanySize.ENTERPRISE,
        budget=Budget.OVER_1M,
        timeline=Timeline.IMMEDIATE,
        source=LeadSource.REFERRAL,
        phone="+15551234567",
        website="https://radiology.example.org",
    )
    assert score == 90


def test_lead_score_accepts_raw_strings():
    assert calculate_lead_score(industry="clinic", company_size="medium_51_200", timeline="within_quarter") == 35


def test_lead_score_for_unremarkable_lead_is_zero():
    assert calculate_lead_score(industry="insurance", company_size="startup", budget="not_specified") == 0


def test_spam_score_is_keyword_percentage():
    assert calculate_spam_score("You are a WINNER of our casino lottery") == 60
    assert calculate_spam_score("Please send pricing for overnight CT reads") == 0
    assert calculate_spam_score(None) == 0


def test_spam_threshold_is_fifty():
    assert is_spam_score(50)
    assert not is_spam_score(40)
    assert not is_spam_score(None)


def test_detect_spam_phrases_links_and_shouting():
    assert detect_spam("Click here to claim free money")
    assert detect_spam("see http://a.io http://b.io http://c.io http://d.io")
    assert detect_spam("PLEASE CALL ME BACK RIGHT NOW", subject="URGENT")
    assert not detect_spam("We would like a demo of your AI triage for our imaging center.")


def test_priority_for_inquiry():
    assert priority_for_inquiry("technical_support") == "high"
    assert priority_for_inquiry("demo_request") == "medium"
    assert priority_for_inquiry("media_inquiry") == "low"


def test_slugify():
    assert slugify("  AI-Assisted  Reporting: 24/7! ") == "ai-assisted-reporting-247"
    assert slugify("Chest -- CT") == "chest-ct"


def test_excerpt_strips_markup_and_truncates():
    excerpt = build_excerpt("<p>" + "a" * 300 + "</p>")
    assert excerpt == "a" * 200 + "..."
    assert build_excerpt("<p>Hello world</p>") == "Hello world"
    assert build_excerpt(None) is None


def test_reading_time_rounds_up():
    assert reading_time(" ".join(["word"] * 201)) == 2
    assert reading_time("<p>short</p>") == 1
    assert reading_time("") == 0


def test_normalize_tags():
    assert normalize_tags([" MRI ", "", "Neuro"]) == ["mri", "neuro"]
    assert normalize_tags(None) == []
