from __future__ import annotations

from datetime import datetime, timezone

from app.services.graph.records import ContactRecord, NetworkSnapshot
from app.services.opportunities.network_gaps import (
    MAX_RANKED_GAPS,
    analyze_network_gaps,
    company_size_coverage,
    company_size_gaps,
    coverage_ratio,
    detect_network_gaps,
    extract_functions,
    industry_coverage,
    normalize_role,
    normalize_seniority,
)

NOW = datetime(2026, 5, 6, 12, 0, tzinfo=timezone.utc)


def _contacts(count: int, **overrides) -> list[ContactRecord]:
    return [
        ContactRecord(contact_id=f"c-{index}", account_id="acct-1", company="Acme Tech", **overrides)
        for index in range(count)
    ]


def test_coverage_ratio_is_capped_and_tolerates_empty_benchmark() -> None:
    assert coverage_ratio(1, 4) == 0.25
    assert coverage_ratio(10, 2) == 1.0
    assert coverage_ratio(0, 0) == 1.0


def test_adding_a_contact_never_lowers_industry_coverage() -> None:
    contacts = _contacts(10)
    before = industry_coverage(contacts)

    after = industry_coverage(contacts + [ContactRecord(contact_id="bank", account_id="acct-1", company="First Bank")])

    assert before["finance"] == 0.0
    assert after["finance"] == 1.0
    assert all(after[name] >= before[name] for name in before)


def test_large_company_contacts_close_the_large_company_gap() -> None:
    contacts = [ContactRecord(contact_id=f"s-{index}", account_id="acct-1", company="Smallco") for index in range(4)]
    large = [
        ContactRecord(contact_id=f"l-{index}", account_id="acct-1", company=company)
        for index, company in enumerate(["Walmart", "ExxonMobil", "Siemens Group", "Toyota Motor"])
    ]

    before = company_size_coverage(contacts)
    after = company_size_coverage(contacts + large)

    assert before["large"] == 0.0
    assert after["large"] == 1.0
    assert "large" in {gap.category for gap in company_size_gaps(contacts)}
    assert "large" not in {gap.category for gap in company_size_gaps(contacts + large)}


def test_titles_match_keywords_at_word_starts() -> None:
    assert normalize_role("Sales Director") == "sales"
    assert normalize_role("CTO") == "cto"
    assert normalize_role("Gardener") == "other"
    assert normalize_seniority("Sales Director") == "senior"
    assert normalize_seniority("Co-Founder") == "executive"
    assert normalize_seniority("Gardener") == "mid"


def test_extract_functions_uses_whole_words_for_short_keywords() -> None:
    assert extract_functions("Senior PM, UX") == ["product", "design"]
    assert extract_functions("Shipment clerk") == ["general"]
    assert extract_functions(None) == ["general"]


def test_inactive_contacts_do_not_count_toward_coverage() -> None:
    contacts = _contacts(4) + [
        ContactRecord(contact_id="bank", account_id="acct-1", company="First Bank", status="ARCHIVED")
    ]

    result = analyze_network_gaps(NetworkSnapshot.build("acct-1", contacts, []), now=NOW)

    assert result.coverage["industry"]["finance"] == 0.0
    assert result.coverage["industry"]["technology"] == 1.0


def test_analysis_ranks_gaps_and_summarises_health() -> None:
    contacts = _contacts(6, position="Software Engineer", city="Austin", state="TX")

    result = analyze_network_gaps(NetworkSnapshot.build("acct-1", contacts, []), now=NOW)
    payload = result.as_dict()

    assert 0 < result.total_gaps <= MAX_RANKED_GAPS
    scores = [gap.rank_score for gap in result.gaps]
    assert scores == sorted(scores, reverse=True)
    assert result.critical_gaps == sum(1 for gap in result.gaps if gap.importance > 0.7)
    assert set(payload) == {
        "overall_score",
        "total_gaps",
        "critical_gaps",
        "network_health",
        "gaps",
        "recommendations",
        "coverage",
    }
    assert set(payload["network_health"]) == {"diversity", "reach", "influence", "activity"}
    assert set(payload["coverage"]) == {
        "industry",
        "role",
        "seniority",
        "geography",
        "function",
        "company_size",
        "diversity",
    }
    assert 0 <= result.overall_score <= 100
    assert len(result.recommendations) <= 5
    assert all(gap.category != "technology" for gap in result.gaps if gap.dimension == "industry")


def test_detector_returns_top_gaps_as_candidates() -> None:
    found = detect_network_gaps(NetworkSnapshot.build("acct-1", _contacts(3), []), now=NOW, limit=2)

    assert len(found) == 2
    assert all(item.engine == "network_gap" for item in found)
