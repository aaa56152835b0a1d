from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from app.services.graph.records import AnalyticsRecord, ContactRecord, NetworkSnapshot, days_between
from app.services.opportunities.candidates import BusinessMatchCandidate, ContactRef, SuggestedAction
from app.services.scoring.keywords import COMPANY_GROWTH_KEYWORDS
from app.services.text import mentions_any

MIN_CONFIDENCE = 0.3
STRICT_MIN_CONFIDENCE = 0.4

# Checked in order; the first bucket with a keyword in the company name wins.
COMPANY_SIZE_BUCKETS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("enterprise", ("microsoft", "google", "apple", "amazon", "facebook", "meta", "ibm")),
    (
        "large",
        (
            "walmart",
            "exxon",
            "siemens",
            "toyota",
            "samsung",
            "oracle",
            "cisco",
            "tesla",
            "holdings",
            "group",
            "international",
            "industries",
            "plc",
        ),
    ),
    ("startup", ("startup", "stealth")),
    ("medium", ("inc", "corp", "corporation")),
)
DEFAULT_COMPANY_SIZE = "small"

CLIENT_VALUE_BY_SIZE: dict[str, float] = {
    "startup": 10_000,
    "small": 25_000,
    "medium": 75_000,
    "large": 200_000,
    "enterprise": 500_000,
}
INVESTMENT_ESTIMATED_VALUE = 1_000_000.0

DECISION_POWER: tuple[tuple[tuple[str, ...], float], ...] = (
    (("ceo", "president", "founder"), 1.0),
    (("cto", "cfo", "cmo", "chief"), 0.9),
    (("vp", "vice president"), 0.8),
    (("director", "head"), 0.7),
    (("manager", "lead"), 0.5),
)
DEFAULT_DECISION_POWER = 0.3

SERVICE_INDUSTRIES: tuple[str, ...] = ("technology", "software", "fintech", "healthcare", "consulting")
MARKET_KEYWORDS: tuple[str, ...] = ("tech", "software", "saas", "data", "digital", "marketing", "consulting", "media")
VENDOR_KEYWORDS: tuple[str, ...] = ("agency", "services", "solutions", "consulting", "studio", "labs", "outsourcing")
PARTNERSHIP_ROLE_KEYWORDS: tuple[str, ...] = ("partner", "alliance", "business development", "channel")
INVESTOR_ROLE_KEYWORDS: tuple[str, ...] = ("investor", "venture", "capital", "fund")
INVESTOR_COMPANY_KEYWORDS: tuple[str, ...] = ("capital", "ventures", "partners", "fund")
EARLY_INVESTMENT_STAGES: frozenset[str] = frozenset({"seed", "series_a", "pre_seed"})
HIRING_KEYWORDS: tuple[str, ...] = ("hr", "hiring", "talent", "recruit", "manager", "director", "ceo")
EXPERTISE_KEYWORDS: tuple[str, ...] = (
    "expert",
    "specialist",
    "research",
    "scientist",
    "architect",
    "principal",
    "professor",
    "author",
    "analyst",
    "engineer",
)
EXCHANGE_ROLE_KEYWORDS: tuple[str, ...] = (
    "product",
    "engineering",
    "marketing",
    "sales",
    "design",
    "data",
    "strategy",
    "operations",
)
PROJECT_KEYWORDS: tuple[str, ...] = ("project", "program", "product", "research", "partnership", "innovation")
ADVISOR_KEYWORDS: tuple[str, ...] = ("advisor", "adviser", "consultant", "mentor", "coach")
BOARD_KEYWORDS: tuple[str, ...] = ("board", "chairman", "chair", "trustee", "non-executive")
SPEAKING_KEYWORDS: tuple[str, ...] = (
    "speaker",
    "evangelist",
    "events",
    "community",
    "conference",
    "developer relations",
    "podcast",
    "host",
    "editor",
)
SEASONALITY_BY_INDUSTRY: tuple[tuple[str, str], ...] = (
    ("retail", "Q4 peak season"),
    ("education", "Back-to-school and Q1 budget cycles"),
)
DEFAULT_SEASONALITY = "Q1 and Q3 typically strong"


@dataclass(frozen=True)
class MatchContext:
    now: datetime
    analytics: AnalyticsRecord | None = None

    @property
    def influence(self) -> float:
        return self.analytics.influence_score if self.analytics else 0.0

    @property
    def total_connections(self) -> int:
        return self.analytics.total_connections if self.analytics else 0


def _has_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in text for keyword in keywords)


def estimate_company_size(company: str | None) -> str:
    name = (company or "").lower()
    for size, keywords in COMPANY_SIZE_BUCKETS:
        if _has_any(name, keywords):
            return size
    return DEFAULT_COMPANY_SIZE


def decision_power(position: str | None) -> float:
    title = (position or "").lower()
    for keywords, power in DECISION_POWER:
        if mentions_any(title, keywords):
            return power
    return DEFAULT_DECISION_POWER


def industry_service_alignment(company: str | None) -> float:
    return 0.8 if _has_any((company or "").lower(), SERVICE_INDUSTRIES) else 0.4


def industry_seasonality(company: str | None) -> str:
    if not company:
        return "No specific seasonality"
    name = company.lower()
    for keyword, note in SEASONALITY_BY_INDUSTRY:
        if keyword in name:
            return note
    return DEFAULT_SEASONALITY


def complementary_potential(contact: ContactRecord) -> float:
    score = 0.3
    if "tech" in contact.company_lower and "sales" in contact.position_lower:
        score += 0.3
    if "marketing" in contact.company_lower and "strategy" in contact.position_lower:
        score += 0.2
    if mentions_any(contact.position_lower, PARTNERSHIP_ROLE_KEYWORDS):
        score += 0.3
    return min(1.0, score)


def market_overlap(contact: ContactRecord) -> float:
    hits = sum(1 for keyword in MARKET_KEYWORDS if keyword in contact.company_lower)
    return min(1.0, 0.3 + 0.3 * hits)


def _ref(contact: ContactRecord) -> ContactRef:
    return ContactRef(contact.contact_id, contact.full_name, contact.company, contact.position)


def _days_since_contact(contact: ContactRecord, now: datetime) -> int | None:
    return days_between(contact.last_contact_date, now)


def _candidate(
    contact: ContactRecord,
    archetype: str,
    category: str,
    confidence: float,
    impact: float,
    *,
    timeline: float,
    effort: float,
    evidence: list[str],
    reasoning: str,
    actions: tuple[SuggestedAction, ...] = (),
    estimated_value: float | None = None,
    seasonality: str | None = None,
    deadline: datetime | None = None,
) -> BusinessMatchCandidate:
    return BusinessMatchCandidate(
        contact=_ref(contact),
        archetype=archetype,
        category=category,
        confidence=round(min(1.0, confidence), 4),
        impact=float(min(100.0, impact)),
        effort=float(effort),
        timeline=float(timeline),
        reasoning=reasoning,
        evidence=tuple(evidence),
        actions=actions,
        estimated_value=estimated_value,
        seasonality=seasonality,
        deadline=deadline,
    )


def client_timeline(contact: ContactRecord) -> float:
    opportunity = contact.opportunity_score or 0
    if opportunity > 80:
        return 90.0
    if opportunity > 60:
        return 70.0
    return 50.0


def client_effort(contact: ContactRecord, now: datetime) -> float:
    effort = 60.0
    if contact.kind in ("colleague", "partner"):
        effort -= 20
    days = _days_since_contact(contact, now)
    if days is not None and days < 30:
        effort -= 15
    elif days is None or days > 365:
        effort += 15
    return max(20.0, min(100.0, effort))


def client_actions(contact: ContactRecord, confidence: float, impact: float) -> tuple[SuggestedAction, ...]:
    actions = [
        SuggestedAction(
            action="Research company needs",
            description=f"Research {contact.company or 'the company'}'s current challenges and initiatives",
            priority="HIGH",
            effort=3,
            timeline="immediate",
            requirements=("Company research", "Industry knowledge"),
        )
    ]
    if confidence > 0.6:
        actions.append(
            SuggestedAction(
                action="Schedule discovery call",
                description="Schedule a call to understand their needs and explore opportunities",
                priority="HIGH",
                effort=5,
                timeline="short_term",
                requirements=("Value proposition prepared", "Case studies ready"),
            )
        )
    if impact > 70:
        actions.append(
            SuggestedAction(
                action="Prepare proposal",
                description="Develop a tailored proposal based on their specific needs",
                priority="MEDIUM",
                effort=8,
                timeline="short_term",
                requirements=("Needs assessment completed", "Pricing strategy"),
            )
        )
    return tuple(actions)


def match_client_prospect(contact: ContactRecord, context: MatchContext) -> BusinessMatchCandidate | None:
    if contact.kind == "client":
        return None
    evidence: list[str] = []
    confidence = 0.0
    impact = 0.0

    size = estimate_company_size(contact.company)
    if size in ("enterprise", "large"):
        confidence += 0.3
        impact += 40
        evidence.append("Large company with significant budget potential")
    elif size == "medium":
        confidence += 0.2
        impact += 25
        evidence.append("Medium-sized company with moderate budget")

    power = decision_power(contact.position)
    confidence += power * 0.3
    impact += power * 30
    if power > 0.6:
        evidence.append("High decision-making authority in role")

    if industry_service_alignment(contact.company) > 0.7:
        confidence += 0.2
        impact += 20
        evidence.append("Strong industry-service alignment")

    if (contact.opportunity_score or 0) > 70:
        confidence += 0.15
        evidence.append("High opportunity score indicates readiness")

    if contact.kind == "prospect":
        confidence += 0.1
        evidence.append("Already identified as prospect")
    elif contact.kind in ("colleague", "partner"):
        confidence += 0.05
        evidence.append("Existing professional relationship")

    if confidence < MIN_CONFIDENCE:
        return None
    deadline = context.now + timedelta(days=30) if (contact.opportunity_score or 0) > 90 else None
    return _candidate(
        contact,
        "client_prospect",
        "business_match",
        confidence,
        impact,
        timeline=client_timeline(contact),
        effort=client_effort(contact, context.now),
        evidence=evidence,
        reasoning=(
            f"Client opportunity identified: {', '.join(evidence)}. "
            f"Impact score: {round(min(100.0, impact))}, Confidence: {round(min(1.0, confidence) * 100)}%"
        ),
        actions=client_actions(contact, confidence, impact),
        estimated_value=CLIENT_VALUE_BY_SIZE.get(size, CLIENT_VALUE_BY_SIZE["small"]),
        seasonality=industry_seasonality(contact.company),
        deadline=deadline,
    )


def match_partnership(contact: ContactRecord, context: MatchContext) -> BusinessMatchCandidate | None:
    evidence: list[str] = []
    confidence = 0.0
    impact = 0.0

    complementarity = complementary_potential(contact)
    if complementarity > 0.6:
        confidence += 0.4
        impact += 50
        evidence.append("Strong complementary business potential")

    overlap = market_overlap(contact)
    if overlap > 0.5:
        confidence += 0.2
        impact += 30
        evidence.append("Significant market/customer overlap")

    if context.influence > 0.7:
        confidence += 0.2
        impact += 25
        evidence.append("High network influence for partnership leverage")

    if (contact.strategic_value or 0) > 80:
        confidence += 0.1
        evidence.append("High strategic value contact")

    if confidence < MIN_CONFIDENCE:
        return None
    return _candidate(
        contact,
        "partnership",
        "business_match",
        confidence,
        impact,
        timeline=50,
        effort=70,
        evidence=evidence,
        reasoning=(
            f"Partnership opportunity: {', '.join(evidence)}. Complementarity: {round(complementarity * 100)}%, "
            f"Market overlap: {round(overlap * 100)}%"
        ),
        actions=(
            SuggestedAction(
                action="Explore partnership potential",
                description=f"Discuss potential partnership opportunities with {contact.first_name or contact.full_name}",
                priority="MEDIUM",
                effort=6,
                timeline="short_term",
                requirements=("Partnership framework", "Mutual value proposition"),
            ),
        ),
    )


def match_vendor(contact: ContactRecord, context: MatchContext) -> BusinessMatchCandidate | None:
    if contact.kind == "vendor":
        return None
    evidence: list[str] = []
    confidence = 0.0
    impact = 0.0

    if _has_any(f"{contact.company_lower} {contact.position_lower}", VENDOR_KEYWORDS):
        confidence += 0.4
        impact += 40
        evidence.append("Strong service alignment with our needs")

    if estimate_company_size(contact.company) in ("small", "startup"):
        confidence += 0.2
        impact += 20
        evidence.append("Smaller company likely offers competitive pricing")

    if (contact.strategic_value or 0) > 70:
        confidence += 0.15
        evidence.append("High strategic value indicates quality")

    if confidence < MIN_CONFIDENCE:
        return None
    return _candidate(
        contact,
        "vendor",
        "business_match",
        confidence,
        impact,
        timeline=60,
        effort=40,
        evidence=evidence,
        reasoning=f"Potential vendor opportunity: {', '.join(evidence)}",
        actions=(
            SuggestedAction(
                action="Request capabilities overview",
                description=f"Ask {contact.company or contact.full_name} for service offerings and pricing",
                priority="LOW",
                effort=2,
                timeline="short_term",
                requirements=("List of current service needs",),
            ),
        ),
    )


def match_investment(contact: ContactRecord, context: MatchContext) -> BusinessMatchCandidate | None:
    is_investor = mentions_any(contact.position_lower, INVESTOR_ROLE_KEYWORDS) or _has_any(
        contact.company_lower, INVESTOR_COMPANY_KEYWORDS
    )
    if not is_investor:
        return None

    evidence = ["Contact works in investment/funding role"]
    confidence = 0.3
    impact = 60.0

    stage = (context.analytics.investment_stage or "").lower() if context.analytics else ""
    if stage in EARLY_INVESTMENT_STAGES:
        confidence += 0.2
        evidence.append("Investor stage aligns with growth companies")

    if context.influence > 0.8:
        confidence += 0.2
        impact += 20
        evidence.append("High network influence valuable for funding")

    if confidence < STRICT_MIN_CONFIDENCE:
        return None
    return _candidate(
        contact,
        "investment",
        "strategic_move",
        confidence,
        impact,
        timeline=40,
        effort=80,
        evidence=evidence,
        reasoning=f"Investment opportunity: {', '.join(evidence)}",
        actions=(
            SuggestedAction(
                action="Share company update",
                description="Send a concise progress update with traction metrics",
                priority="MEDIUM",
                effort=4,
                timeline="short_term",
                requirements=("Pitch deck", "Current metrics"),
            ),
        ),
        estimated_value=INVESTMENT_ESTIMATED_VALUE,
        seasonality="Q1 and Q3 typically more active",
    )


def match_job_referral(contact: ContactRecord, context: MatchContext) -> BusinessMatchCandidate | None:
    evidence: list[str] = []
    confidence = 0.0
    impact = 0.0

    if mentions_any(contact.position_lower, HIRING_KEYWORDS):
        confidence += 0.4
        impact += 50
        evidence.append("Contact has hiring influence")

    if _has_any(contact.company_lower, COMPANY_GROWTH_KEYWORDS) or "hiring" in contact.opportunity_flags:
        confidence += 0.2
        impact += 25
        evidence.append("Company showing growth indicators")

    if decision_power(contact.position) >= 0.5:
        confidence += 0.2
        impact += 20
        evidence.append("Good role alignment for potential referrals")

    if confidence < MIN_CONFIDENCE:
        return None
    return _candidate(
        contact,
        "job_referral",
        "business_match",
        confidence,
        impact,
        timeline=70,
        effort=30,
        evidence=evidence,
        reasoning=f"Job referral opportunity: {', '.join(evidence)}",
        actions=(
            SuggestedAction(
                action="Ask about open roles",
                description=f"Check which roles {contact.company or 'their team'} is hiring for",
                priority="MEDIUM",
                effort=2,
                timeline="immediate",
            ),
        ),
    )


def match_knowledge_exchange(contact: ContactRecord, context: MatchContext) -> BusinessMatchCandidate | None:
    evidence: list[str] = []
    confidence = 0.0
    impact = 0.0

    expert = mentions_any(contact.position_lower, EXPERTISE_KEYWORDS)
    if expert:
        confidence += 0.3
        impact += 40
        evidence.append("Contact has valuable expertise")

    if expert and decision_power(contact.position) >= 0.5:
        confidence += 0.3
        impact += 30
        evidence.append("Mutual expertise exchange potential")

    if mentions_any(contact.position_lower, EXCHANGE_ROLE_KEYWORDS):
        confidence += 0.2
        impact += 20
        evidence.append("Complementary professional roles")

    if confidence < STRICT_MIN_CONFIDENCE:
        return None
    return _candidate(
        contact,
        "knowledge_exchange",
        "network_expansion",
        confidence,
        impact,
        timeline=80,
        effort=25,
        evidence=evidence,
        reasoning=f"Knowledge exchange opportunity: {', '.join(evidence)}",
        actions=(
            SuggestedAction(
                action="Propose a knowledge swap",
                description="Offer a 30-minute call to trade lessons on a shared topic",
                priority="LOW",
                effort=2,
                timeline="immediate",
            ),
        ),
    )


def match_collaboration(contact: ContactRecord, context: MatchContext) -> BusinessMatchCandidate | None:
    evidence: list[str] = []
    confidence = 0.0
    impact = 0.0

    if industry_service_alignment(contact.company) > 0.7:
        confidence += 0.4
        impact += 50
        evidence.append("Strong collaboration fit identified")

    if mentions_any(contact.position_lower, PROJECT_KEYWORDS):
        confidence += 0.3
        impact += 30
        evidence.append("Potential for project collaboration")

    if context.total_connections > 100:
        confidence += 0.2
        impact += 20
        evidence.append("Large network for collaboration leverage")

    if confidence < STRICT_MIN_CONFIDENCE:
        return None
    return _candidate(
        contact,
        "collaboration",
        "business_match",
        confidence,
        impact,
        timeline=60,
        effort=50,
        evidence=evidence,
        reasoning=f"Collaboration opportunity: {', '.join(evidence)}",
        actions=(
            SuggestedAction(
                action="Outline a joint initiative",
                description="Draft a one-page outline of a project both sides could contribute to",
                priority="MEDIUM",
                effort=5,
                timeline="short_term",
                requirements=("Shared goals identified",),
            ),
        ),
    )


def match_advisory(contact: ContactRecord, context: MatchContext) -> BusinessMatchCandidate | None:
    evidence: list[str] = []
    confidence = 0.0
    impact = 0.0

    if decision_power(contact.position) >= 0.9:
        confidence += 0.3
        impact += 40
        evidence.append("Senior executive experience")

    if mentions_any(contact.position_lower, ADVISOR_KEYWORDS):
        confidence += 0.3
        impact += 30
        evidence.append("Already acts in an advisory capacity")

    if (contact.strategic_value or 0) > 70:
        confidence += 0.15
        impact += 15
        evidence.append("High strategic value contact")

    if contact.kind == "mentor":
        confidence += 0.1
        evidence.append("Existing mentoring relationship")

    if confidence < MIN_CONFIDENCE:
        return None
    return _candidate(
        contact,
        "advisory",
        "strategic_move",
        confidence,
        impact,
        timeline=50,
        effort=45,
        evidence=evidence,
        reasoning=f"Advisory opportunity: {', '.join(evidence)}",
        actions=(
            SuggestedAction(
                action="Invite to advise",
                description=f"Ask {contact.first_name or contact.full_name} for an informal advisory session",
                priority="MEDIUM",
                effort=3,
                timeline="short_term",
                requirements=("Specific questions prepared",),
            ),
        ),
    )


def match_board_position(contact: ContactRecord, context: MatchContext) -> BusinessMatchCandidate | None:
    evidence: list[str] = []
    confidence = 0.0
    impact = 0.0

    if mentions_any(contact.position_lower, BOARD_KEYWORDS):
        confidence += 0.4
        impact += 50
        evidence.append("Holds or has held board seats")

    if decision_power(contact.position) >= 0.9:
        confidence += 0.2
        impact += 20
        evidence.append("C-level governance experience")

    if context.influence > 0.7:
        confidence += 0.1
        impact += 20
        evidence.append("High network influence")

    if confidence < MIN_CONFIDENCE:
        return None
    return _candidate(
        contact,
        "board_position",
        "strategic_move",
        confidence,
        impact,
        timeline=30,
        effort=75,
        evidence=evidence,
        reasoning=f"Board position opportunity: {', '.join(evidence)}",
        actions=(
            SuggestedAction(
                action="Discuss board openings",
                description="Ask about board or advisory board openings in their portfolio",
                priority="LOW",
                effort=4,
                timeline="long_term",
                requirements=("Board bio", "Governance experience summary"),
            ),
        ),
    )


def match_speaking(contact: ContactRecord, context: MatchContext) -> BusinessMatchCandidate | None:
    evidence: list[str] = []
    confidence = 0.0
    impact = 0.0

    if mentions_any(contact.position_lower, SPEAKING_KEYWORDS):
        confidence += 0.4
        impact += 40
        evidence.append("Role involves events or audiences")

    if context.influence > 0.6:
        confidence += 0.2
        impact += 25
        evidence.append("Influential within the network")

    if context.total_connections > 100:
        confidence += 0.1
        impact += 15
        evidence.append("Large audience reach")

    if confidence < MIN_CONFIDENCE:
        return None
    return _candidate(
        contact,
        "speaking",
        "network_expansion",
        confidence,
        impact,
        timeline=55,
        effort=40,
        evidence=evidence,
        reasoning=f"Speaking opportunity: {', '.join(evidence)}",
        actions=(
            SuggestedAction(
                action="Pitch a talk",
                description="Send a short talk abstract for an upcoming event or podcast",
                priority="MEDIUM",
                effort=4,
                timeline="short_term",
                requirements=("Talk abstract", "Speaker bio"),
            ),
        ),
    )


Archetype = Callable[[ContactRecord, MatchContext], "BusinessMatchCandidate | None"]

ARCHETYPES: tuple[Archetype, ...] = (
    match_client_prospect,
    match_partnership,
    match_vendor,
    match_investment,
    match_job_referral,
    match_knowledge_exchange,
    match_collaboration,
    match_advisory,
    match_board_position,
    match_speaking,
)


def match_contact(
    contact: ContactRecord,
    context: MatchContext,
    *,
    archetypes: tuple[Archetype, ...] = ARCHETYPES,
) -> list[BusinessMatchCandidate]:
    matches = [archetype(contact, context) for archetype in archetypes]
    return [item for item in matches if item is not None and item.confidence >= MIN_CONFIDENCE]


def detect_business_matches(
    snapshot: NetworkSnapshot,
    *,
    now: datetime | None = None,
    limit: int = 50,
    archetypes: tuple[Archetype, ...] = ARCHETYPES,
) -> list[BusinessMatchCandidate]:
    """Score each active contact against every archetype; one contact may match several."""
    now = now or datetime.now(timezone.utc)
    found: list[BusinessMatchCandidate] = []
    for contact in snapshot.contacts.values():
        if contact.status != "ACTIVE":
            continue
        context = MatchContext(now=now, analytics=snapshot.analytics.get(contact.contact_id))
        found.extend(match_contact(contact, context, archetypes=archetypes))

    found.sort(key=lambda item: item.confidence * item.impact * item.timeline, reverse=True)
    return found[:limit]
