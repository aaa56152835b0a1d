from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.services.graph.records import ContactRecord, NetworkSnapshot, days_between
from app.services.graph.store import GraphStore
from app.services.opportunities.business_match import estimate_company_size
from app.services.opportunities.candidates import GapCandidate, NetworkGap, RemediationSuggestion
from app.services.text import mentions_any

MAX_RANKED_GAPS = 20
CRITICAL_IMPORTANCE = 0.7
ACTIVE_WINDOW_DAYS = 90

# Checked in order; the first keyword group found in the company name decides.
INDUSTRY_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("technology", ("tech", "software")),
    ("finance", ("finance", "bank")),
    ("healthcare", ("health", "medical")),
    ("consulting", ("consult",)),
    ("marketing", ("market", "advertis")),
    ("education", ("educat", "school")),
    ("retail", ("retail", "store")),
    ("manufacturing", ("manufactur",)),
    ("media", ("media", "news")),
    ("legal", ("legal", "law")),
)
INDUSTRY_IMPORTANCE: dict[str, float] = {
    "technology": 0.9,
    "finance": 0.8,
    "healthcare": 0.7,
    "consulting": 0.8,
    "marketing": 0.6,
    "education": 0.5,
    "manufacturing": 0.6,
    "retail": 0.5,
    "media": 0.6,
    "legal": 0.7,
}

ROLE_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("ceo", ("ceo", "chief executive")),
    ("cto", ("cto", "chief technology")),
    ("cfo", ("cfo", "chief financial")),
    ("cmo", ("cmo", "chief marketing")),
    ("sales", ("sales",)),
    ("marketing", ("marketing",)),
    ("engineering", ("engineer",)),
    ("product", ("product",)),
    ("operations", ("operations",)),
    ("finance", ("finance",)),
    ("hr", ("hr", "human resources")),
    ("business_development", ("business development",)),
)
ROLE_IMPORTANCE: dict[str, float] = {
    "ceo": 1.0,
    "cto": 0.9,
    "cfo": 0.8,
    "cmo": 0.8,
    "sales": 0.8,
    "marketing": 0.7,
    "engineering": 0.7,
    "product": 0.8,
    "operations": 0.6,
    "finance": 0.6,
    "hr": 0.5,
    "business_development": 0.8,
}

SENIORITY_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("executive", ("ceo", "president", "founder", "chief")),
    ("senior", ("vp", "vice president", "director", "head")),
    ("mid", ("manager", "lead", "principal", "senior")),
    ("junior", ("junior", "associate", "intern")),
)
SENIORITY_DISTRIBUTION: dict[str, float] = {"executive": 0.20, "senior": 0.30, "mid": 0.35, "junior": 0.15}

MARKET_IMPORTANCE: dict[str, float] = {
    "New York, NY": 1.0,
    "Los Angeles, CA": 0.8,
    "San Francisco, CA": 0.9,
    "Chicago, IL": 0.7,
    "Boston, MA": 0.8,
    "Austin, TX": 0.7,
    "Seattle, WA": 0.8,
    "Miami, FL": 0.6,
}

FUNCTION_KEYWORDS: dict[str, tuple[str, ...]] = {
    "sales": ("sales", "account manager", "business development"),
    "marketing": ("marketing", "brand", "communications"),
    "engineering": ("engineer", "developer", "architect"),
    "product": ("product", "pm"),
    "design": ("design", "ux", "ui"),
    "operations": ("operations", "ops"),
    "finance": ("finance", "accounting", "controller"),
    "legal": ("legal", "counsel", "attorney"),
    "hr": ("hr", "human resources", "people"),
    "strategy": ("strategy", "strategic"),
    "consulting": ("consultant", "consulting"),
    "research": ("research", "analyst"),
}
FUNCTION_IMPORTANCE: dict[str, float] = {
    "sales": 0.9,
    "marketing": 0.8,
    "engineering": 0.8,
    "product": 0.9,
    "design": 0.6,
    "operations": 0.7,
    "finance": 0.7,
    "legal": 0.6,
    "hr": 0.5,
    "strategy": 0.8,
    "consulting": 0.7,
    "research": 0.6,
}

COMPANY_SIZE_DISTRIBUTION: dict[str, float] = {
    "startup": 0.15,
    "small": 0.20,
    "medium": 0.25,
    "large": 0.25,
    "enterprise": 0.15,
}

DEFAULT_IMPORTANCE = 0.5


@dataclass(frozen=True)
class DimensionRule:
    """Expected share of the network per category and the coverage below which a gap is reported."""

    expected_share: float
    threshold: float


DIMENSION_RULES: dict[str, DimensionRule] = {
    "industry": DimensionRule(expected_share=0.05, threshold=0.5),
    "role": DimensionRule(expected_share=0.03, threshold=0.6),
    "seniority": DimensionRule(expected_share=0.0, threshold=0.5),
    "geography": DimensionRule(expected_share=0.05, threshold=0.3),
    "function": DimensionRule(expected_share=0.04, threshold=0.4),
    "company_size": DimensionRule(expected_share=0.0, threshold=0.4),
    "diversity": DimensionRule(expected_share=0.1, threshold=0.6),
}


@dataclass(frozen=True)
class NetworkAnalysisResult:
    overall_score: int
    health: dict[str, float]
    gaps: tuple[NetworkGap, ...] = ()
    recommendations: tuple[str, ...] = ()
    coverage: dict[str, dict[str, float]] = field(default_factory=dict)

    @property
    def total_gaps(self) -> int:
        return len(self.gaps)

    @property
    def critical_gaps(self) -> int:
        return sum(1 for gap in self.gaps if gap.importance > CRITICAL_IMPORTANCE)

    def as_dict(self) -> dict:
        return {
            "overall_score": self.overall_score,
            "total_gaps": self.total_gaps,
            "critical_gaps": self.critical_gaps,
            "network_health": dict(self.health),
            "gaps": [gap.as_dict() for gap in self.gaps],
            "recommendations": list(self.recommendations),
            "coverage": {key: dict(value) for key, value in self.coverage.items()},
        }


def _first_match(
    text: str, rules: tuple[tuple[str, tuple[str, ...]], ...], default: str, *, whole_words: bool = False
) -> str:
    for label, keywords in rules:
        if mentions_any(text, keywords) if whole_words else any(keyword in text for keyword in keywords):
            return label
    return default


def normalize_industry(company: str | None) -> str:
    return _first_match((company or "").lower(), INDUSTRY_RULES, "other")


def normalize_role(position: str | None) -> str:
    return _first_match((position or "").lower(), ROLE_RULES, "other", whole_words=True)


def normalize_seniority(position: str | None) -> str:
    return _first_match((position or "").lower(), SENIORITY_RULES, "mid", whole_words=True)


def extract_functions(position: str | None) -> list[str]:
    title = (position or "").lower()
    # "pm", "ui" and "ops" are short enough to need whole-word matching.
    words = set(title.replace("/", " ").replace(",", " ").split())
    found = [
        name
        for name, keywords in FUNCTION_KEYWORDS.items()
        if any((keyword in words) if len(keyword) <= 3 else (keyword in title) for keyword in keywords)
    ]
    return found or ["general"]


def market_label(contact: ContactRecord) -> str | None:
    if not contact.city or not contact.state:
        return None
    return f"{contact.city.strip()}, {contact.state.strip()}"


def coverage_ratio(actual: float, expected: float) -> float:
    """Share of the benchmark reached, capped at 1."""
    if expected <= 0:
        return 1.0
    return min(1.0, actual / expected)


def expected_count(total: int, share: float) -> float:
    return max(1.0, total * share)


def _gap_priority(coverage: float, high: int, mid: int, low: int) -> int:
    if coverage < 0.2:
        return high
    if coverage < 0.4:
        return mid
    return low


def _title(label: str) -> str:
    return label.replace("_", " ").title()


def industry_coverage(contacts: list[ContactRecord]) -> dict[str, float]:
    counts = Counter(normalize_industry(contact.company) for contact in contacts if contact.company)
    expected = expected_count(len(contacts), DIMENSION_RULES["industry"].expected_share)
    return {industry: coverage_ratio(counts.get(industry, 0), expected) for industry in INDUSTRY_IMPORTANCE}


def role_coverage(contacts: list[ContactRecord]) -> dict[str, float]:
    counts = Counter(normalize_role(contact.position) for contact in contacts if contact.position)
    expected = expected_count(len(contacts), DIMENSION_RULES["role"].expected_share)
    return {role: coverage_ratio(counts.get(role, 0), expected) for role in ROLE_IMPORTANCE}


def seniority_coverage(contacts: list[ContactRecord]) -> dict[str, float]:
    counts = Counter(normalize_seniority(contact.position) for contact in contacts if contact.position)
    total = max(1, len(contacts))
    return {
        level: coverage_ratio(counts.get(level, 0) / total, share) for level, share in SENIORITY_DISTRIBUTION.items()
    }


def geography_coverage(contacts: list[ContactRecord]) -> dict[str, float]:
    counts = Counter(label for label in (market_label(contact) for contact in contacts) if label)
    expected = expected_count(len(contacts), DIMENSION_RULES["geography"].expected_share)
    return {market: coverage_ratio(counts.get(market, 0), expected) for market in MARKET_IMPORTANCE}


def function_coverage(contacts: list[ContactRecord]) -> dict[str, float]:
    counts: Counter[str] = Counter()
    for contact in contacts:
        if contact.position:
            counts.update(extract_functions(contact.position))
    expected = expected_count(len(contacts), DIMENSION_RULES["function"].expected_share)
    return {name: coverage_ratio(counts.get(name, 0), expected) for name in FUNCTION_IMPORTANCE}


def company_size_coverage(contacts: list[ContactRecord]) -> dict[str, float]:
    counts = Counter(estimate_company_size(contact.company) for contact in contacts if contact.company)
    total = max(1, len(contacts))
    return {
        size: coverage_ratio(counts.get(size, 0) / total, share) for size, share in COMPANY_SIZE_DISTRIBUTION.items()
    }


def diversity_coverage(contacts: list[ContactRecord]) -> float:
    industries = {normalize_industry(contact.company) for contact in contacts if contact.company}
    return coverage_ratio(len(industries), expected_count(len(contacts), DIMENSION_RULES["diversity"].expected_share))


def _count_gap(
    dimension: str,
    category: str,
    *,
    title: str,
    description: str,
    importance: float,
    coverage: float,
    expected: float,
    count: int,
    priority: int,
    suggestion: RemediationSuggestion,
) -> NetworkGap:
    return NetworkGap(
        dimension=dimension,
        category=category,
        title=title,
        description=description,
        importance=importance,
        current_coverage=round(coverage, 4),
        target_coverage=DIMENSION_RULES[dimension].threshold,
        priority=priority,
        gap_size=max(0, math.ceil(expected - count)),
        suggestions=(suggestion,),
    )


def industry_gaps(contacts: list[ContactRecord]) -> list[NetworkGap]:
    counts = Counter(normalize_industry(contact.company) for contact in contacts if contact.company)
    expected = expected_count(len(contacts), DIMENSION_RULES["industry"].expected_share)
    gaps: list[NetworkGap] = []
    for industry, coverage in industry_coverage(contacts).items():
        if coverage >= DIMENSION_RULES["industry"].threshold:
            continue
        count = counts.get(industry, 0)
        gaps.append(
            _count_gap(
                "industry",
                industry,
                title=f"{_title(industry)} Industry Gap",
                description=f"Limited connections in the {industry} industry. Current coverage: {count} contacts.",
                importance=INDUSTRY_IMPORTANCE.get(industry, DEFAULT_IMPORTANCE),
                coverage=coverage,
                expected=expected,
                count=count,
                priority=_gap_priority(coverage, 9, 7, 5),
                suggestion=RemediationSuggestion(
                    type="target_industry",
                    title=f"Target {industry} professionals",
                    description=f"Actively network within the {industry} industry to fill this gap.",
                    steps=(
                        f"Join {industry} professional associations",
                        f"Attend {industry}-specific events and conferences",
                        f"Connect with {industry} thought leaders on LinkedIn",
                    ),
                    effort=6,
                    impact=8,
                ),
            )
        )
    return gaps


def role_gaps(contacts: list[ContactRecord]) -> list[NetworkGap]:
    counts = Counter(normalize_role(contact.position) for contact in contacts if contact.position)
    expected = expected_count(len(contacts), DIMENSION_RULES["role"].expected_share)
    gaps: list[NetworkGap] = []
    for role, coverage in role_coverage(contacts).items():
        if coverage >= DIMENSION_RULES["role"].threshold:
            continue
        count = counts.get(role, 0)
        label = role.replace("_", " ")
        gaps.append(
            _count_gap(
                "role",
                role,
                title=f"{label.upper()} Role Gap",
                description=f"Limited connections in {label} roles. Current coverage: {count} contacts.",
                importance=ROLE_IMPORTANCE.get(role, DEFAULT_IMPORTANCE),
                coverage=coverage,
                expected=expected,
                count=count,
                priority=_gap_priority(coverage, 8, 6, 4),
                suggestion=RemediationSuggestion(
                    type="target_role",
                    title=f"Connect with {label} professionals",
                    description=f"Build relationships with {label} professionals across industries.",
                    steps=(
                        f"Search for {label} professionals in your target companies",
                        f"Attend {label}-focused meetups and events",
                        f"Engage with {label} content on professional networks",
                    ),
                    effort=5,
                    impact=7,
                ),
            )
        )
    return gaps


def seniority_gaps(contacts: list[ContactRecord]) -> list[NetworkGap]:
    counts = Counter(normalize_seniority(contact.position) for contact in contacts if contact.position)
    total = len(contacts)
    gaps: list[NetworkGap] = []
    for level, coverage in seniority_coverage(contacts).items():
        if coverage >= DIMENSION_RULES["seniority"].threshold:
            continue
        share = SENIORITY_DISTRIBUTION[level]
        count = counts.get(level, 0)
        current_ratio = count / max(1, total)
        executive = level == "executive"
        gaps.append(
            _count_gap(
                "seniority",
                level,
                title=f"{_title(level)} Level Gap",
                description=(
                    f"Underrepresented {level}-level contacts. Current: {round(current_ratio * 100)}%, "
                    f"target: {round(share * 100)}%."
                ),
                importance=0.9 if executive else (0.7 if level == "senior" else 0.5),
                coverage=coverage,
                expected=round(total * share),
                count=count,
                priority=9 if executive else 6,
                suggestion=RemediationSuggestion(
                    type="target_role",
                    title=f"Increase {level}-level connections",
                    description=f"Focus on building relationships with {level}-level professionals.",
                    steps=(
                        f"Identify {level}-level targets in key companies",
                        f"Attend executive or {level}-focused events",
                        "Seek introductions through existing network",
                    ),
                    effort=8 if executive else 6,
                    impact=9 if executive else 7,
                ),
            )
        )
    return gaps


def geography_gaps(contacts: list[ContactRecord]) -> list[NetworkGap]:
    counts = Counter(label for label in (market_label(contact) for contact in contacts) if label)
    expected = expected_count(len(contacts), DIMENSION_RULES["geography"].expected_share)
    gaps: list[NetworkGap] = []
    for market, coverage in geography_coverage(contacts).items():
        if coverage >= DIMENSION_RULES["geography"].threshold:
            continue
        count = counts.get(market, 0)
        gaps.append(
            _count_gap(
                "geography",
                market,
                title=f"{market} Market Gap",
                description=f"Limited presence in {market} market. Current coverage: {count} contacts.",
                importance=MARKET_IMPORTANCE.get(market, DEFAULT_IMPORTANCE),
                coverage=coverage,
                expected=expected,
                count=count,
                priority=6,
                suggestion=RemediationSuggestion(
                    type="target_location",
                    title=f"Build presence in {market}",
                    description=f"Establish connections in the {market} market.",
                    steps=(
                        f"Join {market} professional groups",
                        f"Attend events when visiting {market}",
                        f"Connect with {market}-based professionals in your industry",
                    ),
                    effort=7,
                    impact=6,
                ),
            )
        )
    return gaps


def function_gaps(contacts: list[ContactRecord]) -> list[NetworkGap]:
    counts: Counter[str] = Counter()
    for contact in contacts:
        if contact.position:
            counts.update(extract_functions(contact.position))
    expected = expected_count(len(contacts), DIMENSION_RULES["function"].expected_share)
    gaps: list[NetworkGap] = []
    for name, coverage in function_coverage(contacts).items():
        if coverage >= DIMENSION_RULES["function"].threshold:
            continue
        count = counts.get(name, 0)
        gaps.append(
            _count_gap(
                "function",
                name,
                title=f"{_title(name)} Function Gap",
                description=f"Limited connections in {name} function. Current coverage: {count} contacts.",
                importance=FUNCTION_IMPORTANCE.get(name, DEFAULT_IMPORTANCE),
                coverage=coverage,
                expected=expected,
                count=count,
                priority=5,
                suggestion=RemediationSuggestion(
                    type="target_role",
                    title=f"Connect with {name} professionals",
                    description=f"Build relationships with {name} experts and practitioners.",
                    steps=(
                        f"Join {name} professional communities",
                        f"Attend {name}-focused conferences",
                        f"Engage with {name} thought leadership content",
                    ),
                    effort=5,
                    impact=6,
                ),
            )
        )
    return gaps


def company_size_gaps(contacts: list[ContactRecord]) -> list[NetworkGap]:
    counts = Counter(estimate_company_size(contact.company) for contact in contacts if contact.company)
    total = len(contacts)
    gaps: list[NetworkGap] = []
    for size, coverage in company_size_coverage(contacts).items():
        if coverage >= DIMENSION_RULES["company_size"].threshold:
            continue
        share = COMPANY_SIZE_DISTRIBUTION[size]
        count = counts.get(size, 0)
        enterprise = size == "enterprise"
        gaps.append(
            _count_gap(
                "company_size",
                size,
                title=f"{_title(size)} Company Gap",
                description=(
                    f"Limited representation from {size} companies. "
                    f"Current: {round(count / max(1, total) * 100)}%, target: {round(share * 100)}%."
                ),
                importance=0.8 if enterprise else 0.6,
                coverage=coverage,
                expected=round(total * share),
                count=count,
                priority=7 if enterprise else 5,
                suggestion=RemediationSuggestion(
                    type="target_company",
                    title=f"Target {size} companies",
                    description=f"Build relationships within {size} companies to balance your network.",
                    steps=(
                        f"Research key {size} companies in your industry",
                        f"Attend {size} company events and meetups",
                        f"Connect with professionals from {size} companies",
                    ),
                    effort=6,
                    impact=7,
                ),
            )
        )
    return gaps


def diversity_gaps(contacts: list[ContactRecord]) -> list[NetworkGap]:
    coverage = diversity_coverage(contacts)
    if coverage >= DIMENSION_RULES["diversity"].threshold:
        return []
    industries = {normalize_industry(contact.company) for contact in contacts if contact.company}
    return [
        _count_gap(
            "diversity",
            "industry_diversity",
            title="Industry Diversity Gap",
            description=f"Network lacks industry diversity. Currently represented in {len(industries)} industries.",
            importance=0.7,
            coverage=coverage,
            expected=round(len(contacts) * DIMENSION_RULES["diversity"].expected_share),
            count=len(industries),
            priority=6,
            suggestion=RemediationSuggestion(
                type="target_industry",
                title="Diversify Industry Connections",
                description="Actively seek connections across different industries to broaden network reach.",
                steps=(
                    "Identify underrepresented industries",
                    "Attend cross-industry events",
                    "Join professional associations in new sectors",
                ),
                effort=6,
                impact=8,
            ),
        )
    ]


def network_metrics(snapshot: NetworkSnapshot, contacts: list[ContactRecord], now: datetime) -> dict[str, float]:
    total = len(contacts)
    companies = {contact.company_lower for contact in contacts if contact.company}
    industry_diversity = min(1.0, len(companies) / max(1.0, total * 0.2))
    locations = {contact.state or contact.country for contact in contacts if contact.state or contact.country}
    geo_diversity = min(1.0, len(locations) / max(1.0, total * 0.1))
    roles = {normalize_role(contact.position) for contact in contacts if contact.position}
    role_diversity = min(1.0, len(roles) / max(1.0, total * 0.15))
    diversity = (industry_diversity + geo_diversity + role_diversity) / 3

    connections = sum(
        snapshot.analytics[contact.contact_id].total_connections
        for contact in contacts
        if contact.contact_id in snapshot.analytics
    )
    reach = min(1.0, connections / (total * 100)) if total else 0.0
    influence = sum(contact.strategic_value or 0 for contact in contacts) / max(1, total) / 100
    active = 0
    for contact in contacts:
        days = days_between(contact.last_contact_date, now)
        if days is not None and days < ACTIVE_WINDOW_DAYS:
            active += 1
    activity = active / max(1, total)

    return {
        "diversity": round(diversity, 2),
        "reach": round(reach, 2),
        "influence": round(influence, 2),
        "activity": round(activity, 2),
    }


def rank_gaps(gaps: list[NetworkGap], *, limit: int = MAX_RANKED_GAPS) -> list[NetworkGap]:
    return sorted(gaps, key=lambda gap: gap.rank_score, reverse=True)[:limit]


def network_recommendations(gaps: list[NetworkGap], metrics: dict[str, float]) -> list[str]:
    recommendations: list[str] = []
    if metrics["diversity"] < 0.5:
        recommendations.append("Focus on diversifying your network across industries and roles")
    if metrics["influence"] < 0.6:
        recommendations.append("Target higher-level executives and industry influencers")
    if metrics["activity"] < 0.4:
        recommendations.append("Increase networking activity and contact frequency")
    recommendations.extend(f"Address {gap.title.lower()} to improve network coverage" for gap in gaps[:3])
    return recommendations[:5]


def overall_network_score(metrics: dict[str, float], gaps: list[NetworkGap]) -> int:
    metrics_score = sum(metrics.values()) / 4
    penalty = min(0.3, len(gaps) * 0.02)
    return max(0, min(100, round((metrics_score - penalty) * 100)))


def analyze_network_gaps(snapshot: NetworkSnapshot, *, now: datetime | None = None) -> NetworkAnalysisResult:
    """Coverage of the account's active contacts across the seven dimensions, with ranked gaps."""
    now = now or datetime.now(timezone.utc)
    contacts = [contact for contact in snapshot.contacts.values() if contact.status == "ACTIVE"]
    metrics = network_metrics(snapshot, contacts, now)

    gaps: list[NetworkGap] = []
    for analyzer in (
        industry_gaps,
        role_gaps,
        seniority_gaps,
        geography_gaps,
        function_gaps,
        company_size_gaps,
        diversity_gaps,
    ):
        gaps.extend(analyzer(contacts))
    ranked = rank_gaps(gaps)

    return NetworkAnalysisResult(
        overall_score=overall_network_score(metrics, ranked),
        health=metrics,
        gaps=tuple(ranked),
        recommendations=tuple(network_recommendations(ranked, metrics)),
        coverage={
            "industry": industry_coverage(contacts),
            "role": role_coverage(contacts),
            "seniority": seniority_coverage(contacts),
            "geography": geography_coverage(contacts),
            "function": function_coverage(contacts),
            "company_size": company_size_coverage(contacts),
            "diversity": {"industries": diversity_coverage(contacts)},
        },
    )


def network_gap_report(db: Session, *, account_id: str, now: datetime | None = None) -> NetworkAnalysisResult:
    snapshot = GraphStore(db).load_snapshot(account_id)
    return analyze_network_gaps(snapshot, now=now)


def detect_network_gaps(
    snapshot: NetworkSnapshot,
    *,
    now: datetime | None = None,
    limit: int = 5,
) -> list[GapCandidate]:
    result = analyze_network_gaps(snapshot, now=now)
    return [GapCandidate(gap=gap) for gap in result.gaps[:limit]]
