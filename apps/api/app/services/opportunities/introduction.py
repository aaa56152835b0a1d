from __future__ import annotations

from datetime import datetime, timedelta, timezone
from itertools import combinations

from app.services.graph.records import ContactRecord, EdgeRecord, NetworkSnapshot
from app.services.opportunities.candidates import ContactRef, IntroductionCandidate, clamp
from app.services.text import mentions, mentions_any

INTRODUCER_KINDS: frozenset[str] = frozenset({"colleague", "client", "partner", "friend", "mentor", "mentee"})
WARM_INTRODUCER_KINDS: frozenset[str] = frozenset({"friend", "colleague"})
STRONG_EDGE_MIN_STRENGTH = 0.6

INDUSTRY_KEYWORDS: tuple[str, ...] = (
    "tech",
    "technology",
    "software",
    "fintech",
    "healthcare",
    "finance",
    "marketing",
    "consulting",
    "education",
    "retail",
    "logistics",
    "manufacturing",
)
COMPLEMENTARY_INDUSTRIES: tuple[tuple[str, str], ...] = (
    ("tech", "marketing"),
    ("software", "consulting"),
    ("finance", "real estate"),
    ("healthcare", "technology"),
    ("education", "technology"),
    ("retail", "logistics"),
)
COMPLEMENTARY_ROLES: tuple[tuple[str, str], ...] = (
    ("sales", "marketing"),
    ("product", "engineering"),
    ("ceo", "cto"),
    ("business development", "operations"),
    ("finance", "accounting"),
    ("designer", "developer"),
    ("consultant", "client"),
)
# Checked in order; the first group with a keyword in the title decides.
SENIORITY_LADDER: tuple[tuple[tuple[str, ...], float], ...] = (
    (("ceo", "president", "founder"), 100),
    (("cto", "cfo", "cmo"), 95),
    (("vp", "vice president"), 85),
    (("director",), 75),
    (("senior", "lead", "principal"), 65),
    (("manager",), 55),
    (("associate",), 40),
    (("junior",), 30),
)
DEFAULT_SENIORITY = 50.0

MIN_MATCH_SCORE = 0.3
MIN_CONFIDENCE = 0.4
RECENT_CONTACT_DAYS = 30
TIMING_SCORE = 0.8


def industry_keywords(company: str, *, keywords: tuple[str, ...] = INDUSTRY_KEYWORDS) -> list[str]:
    return [keyword for keyword in keywords if keyword in company]


def industry_alignment(
    first_company: str,
    second_company: str,
    *,
    pairs: tuple[tuple[str, str], ...] = COMPLEMENTARY_INDUSTRIES,
) -> tuple[bool, bool]:
    """Return ``(same, complementary)`` for two company names."""
    left = first_company.lower()
    right = second_company.lower()
    left_keywords = industry_keywords(left)
    right_keywords = industry_keywords(right)
    same = left in right or right in left or any(keyword in right for keyword in left_keywords)
    complementary = any(
        (first in left_keywords and second in right_keywords) or (second in left_keywords and first in right_keywords)
        for first, second in pairs
    )
    return same, complementary


def complementary_roles(
    first_role: str,
    second_role: str,
    *,
    pairs: tuple[tuple[str, str], ...] = COMPLEMENTARY_ROLES,
) -> tuple[str, str] | None:
    left = first_role.lower()
    right = second_role.lower()
    for first, second in pairs:
        if (mentions(left, first) and mentions(right, second)) or (mentions(left, second) and mentions(right, first)):
            return first, second
    return None


def seniority_score(position: str | None) -> float:
    title = (position or "").lower()
    for keywords, score in SENIORITY_LADDER:
        if mentions_any(title, keywords):
            return float(score)
    return DEFAULT_SENIORITY


def business_match(source: ContactRecord, target: ContactRecord) -> tuple[float, list[str], dict]:
    score = 0.0
    factors: list[str] = []
    criteria = {"industry_alignment": False, "complementary_skills": False, "seniority_balance": False}

    if source.company and target.company:
        same, complementary = industry_alignment(source.company, target.company)
        if complementary:
            score += 0.25
            factors.append(f"Complementary industries: {source.company} & {target.company}")
            criteria["industry_alignment"] = True
        elif same:
            score += 0.15
            factors.append(f"Same industry: {source.company}")
            criteria["industry_alignment"] = True

    if source.position and target.position:
        roles = complementary_roles(source.position, target.position)
        if roles:
            score += 0.3
            factors.append(f"Complementary roles: {roles[0]} and {roles[1]}")
            criteria["complementary_skills"] = True

    gap = abs(seniority_score(source.position) - seniority_score(target.position))
    if 20 < gap < 50:
        score += 0.2
        factors.append("Good seniority balance for mentorship/guidance opportunities")
        criteria["seniority_balance"] = True
    elif gap < 15:
        score += 0.2
        factors.append("Peer-level professionals for collaboration")
        criteria["seniority_balance"] = True

    avg_priority = ((source.priority_score or 0) + (target.priority_score or 0)) / 2
    avg_strategic = ((source.strategic_value or 0) + (target.strategic_value or 0)) / 2
    if avg_priority > 70 or avg_strategic > 70:
        score += 0.15
        factors.append("Both contacts have high strategic value")

    if source.opportunity_score and target.opportunity_score and (
        source.opportunity_score > 70 or target.opportunity_score > 70
    ):
        score += 0.1
        factors.append("High opportunity potential identified")

    return round(score, 4), factors, criteria


def _recently_contacted(contact: ContactRecord, now: datetime) -> bool:
    if contact.last_contact_date is None:
        return False
    return now - contact.last_contact_date < timedelta(days=RECENT_CONTACT_DAYS)


def introduction_impact(source: ContactRecord, target: ContactRecord, match_score: float) -> float:
    avg_strategic = ((source.strategic_value or 0) + (target.strategic_value or 0)) / 2
    avg_priority = ((source.priority_score or 0) + (target.priority_score or 0)) / 2
    return clamp(match_score * 50 + avg_strategic * 0.3 + avg_priority * 0.2)


def introduction_effort(introducer: ContactRecord, source: ContactRecord, target: ContactRecord, now: datetime) -> float:
    effort = 50.0
    if _recently_contacted(source, now):
        effort -= 10
    if _recently_contacted(target, now):
        effort -= 10
    if introducer.kind in WARM_INTRODUCER_KINDS:
        effort -= 15
    return clamp(effort, 10, 100)


def introduction_confidence(match_score: float, strengths: tuple[float, float], impact: float) -> float:
    avg_strength = sum(strengths) / 2
    return min(1.0, match_score * 0.4 + avg_strength * 0.3 + (impact / 100) * 0.2 + TIMING_SCORE * 0.1)


def introduction_type(criteria: dict) -> str:
    if criteria["complementary_skills"]:
        return "partnership"
    if criteria["industry_alignment"]:
        return "business_proposal"
    return "warm_introduction"


def introduction_priority(confidence: float, impact: float) -> str:
    score = confidence * impact
    if score > 80:
        return "high"
    if score > 60:
        return "medium"
    return "low"


def _ref(contact: ContactRecord) -> ContactRef:
    return ContactRef(contact.contact_id, contact.full_name, contact.company, contact.position)


def _strong_neighbours(snapshot: NetworkSnapshot, introducer_id: str) -> list[tuple[ContactRecord, EdgeRecord]]:
    neighbours: list[tuple[ContactRecord, EdgeRecord]] = []
    seen: set[str] = set()
    for edge in snapshot.edges_for(introducer_id):
        if not edge.is_verified or edge.strength < STRONG_EDGE_MIN_STRENGTH:
            continue
        other_id = edge.other(introducer_id)
        other = snapshot.contacts.get(other_id)
        if other is None or other_id in seen:
            continue
        seen.add(other_id)
        neighbours.append((other, edge))
    return neighbours


def detect_introductions(
    snapshot: NetworkSnapshot,
    *,
    now: datetime | None = None,
    limit: int = 50,
) -> list[IntroductionCandidate]:
    """Find A-B, A-C triangles with B and C unconnected and score the B/C business fit."""
    now = now or datetime.now(timezone.utc)
    found: list[IntroductionCandidate] = []

    for introducer in snapshot.contacts.values():
        if introducer.kind not in INTRODUCER_KINDS:
            continue
        for (source, source_edge), (target, target_edge) in combinations(_strong_neighbours(snapshot, introducer.contact_id), 2):
            if snapshot.connected(source.contact_id, target.contact_id):
                continue
            match_score, factors, criteria = business_match(source, target)
            if match_score < MIN_MATCH_SCORE:
                continue

            strengths = (source_edge.strength, target_edge.strength)
            impact = introduction_impact(source, target, match_score)
            effort = introduction_effort(introducer, source, target, now)
            confidence = introduction_confidence(match_score, strengths, impact)
            if confidence < MIN_CONFIDENCE:
                continue

            reasoning = [
                f"Business matching score: {round(match_score * 100)}%",
                f"Potential impact: {round(impact)}/100",
                f"Effort required: {round(effort)}/100",
            ]
            if factors:
                reasoning.append(f"Key factors: {', '.join(factors[:2])}")

            found.append(
                IntroductionCandidate(
                    introducer=_ref(introducer),
                    source=_ref(source),
                    target=_ref(target),
                    intro_type=introduction_type(criteria),
                    match_score=match_score,
                    match_factors=tuple(factors),
                    confidence=round(confidence, 4),
                    impact=round(impact, 2),
                    effort=effort,
                    priority=introduction_priority(confidence, impact),
                    reasoning=". ".join(reasoning),
                    edge_strengths=strengths,
                )
            )

    found.sort(key=lambda item: item.impact * item.confidence, reverse=True)
    return found[:limit]
