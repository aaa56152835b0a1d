from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from app.services.graph.records import ContactRecord, NetworkSnapshot, OutreachRecord, days_between
from app.services.opportunities.candidates import ContactRef, ReconnectionCandidate, clamp

MIN_DORMANT_DAYS = 30
MAX_DORMANT_DAYS = 730
MIN_CONFIDENCE = 0.3
RECENT_UPDATE_DAYS = 60
QUARTER_END_MONTHS = frozenset({3, 6, 9, 12})

RECONNECTION_VALUES: dict[str, float] = {
    "client": 25,
    "partner": 25,
    "colleague": 20,
    "mentor": 30,
    "investor": 25,
    "friend": 20,
    "acquaintance": 10,
    "prospect": 15,
    "vendor": 10,
    "mentee": 20,
    "competitor": 5,
    "family": 15,
}
DEFAULT_RECONNECTION_VALUE = 10.0

RECONNECTION_EFFORTS: dict[str, float] = {
    "client": -10,
    "partner": -10,
    "colleague": -15,
    "mentor": -20,
    "investor": 5,
    "friend": -20,
    "acquaintance": 10,
    "prospect": 15,
    "vendor": 0,
    "mentee": -10,
    "competitor": 20,
    "family": -25,
}

KIND_STRENGTHS: dict[str, float] = {
    "client": 0.8,
    "partner": 0.8,
    "colleague": 0.7,
    "mentor": 0.9,
    "investor": 0.7,
    "friend": 0.9,
    "acquaintance": 0.4,
    "prospect": 0.3,
    "vendor": 0.5,
    "mentee": 0.8,
    "competitor": 0.2,
    "family": 1.0,
}
DEFAULT_KIND_STRENGTH = 0.5


@dataclass(frozen=True)
class OutreachProfile:
    total: int
    response_rate: float
    avg_response_days: float
    preferred_channel: str
    engagement: float

    def as_dict(self) -> dict:
        return {
            "total_outreach": self.total,
            "response_rate": round(self.response_rate, 2),
            "avg_response_days": round(self.avg_response_days, 2),
            "preferred_channel": self.preferred_channel,
            "engagement_score": round(self.engagement, 2),
        }


def _responded(item: OutreachRecord) -> bool:
    return item.responded or item.status == "RESPONDED"


def analyze_outreach(outreach: tuple[OutreachRecord, ...] | list[OutreachRecord]) -> OutreachProfile:
    if not outreach:
        return OutreachProfile(total=0, response_rate=0.0, avg_response_days=0.0, preferred_channel="EMAIL", engagement=0.0)

    responses = [item for item in outreach if _responded(item)]
    response_rate = len(responses) / len(outreach) * 100
    response_days = [
        (item.responded_at - item.sent_at).total_seconds() / 86400
        for item in responses
        if item.responded_at is not None and item.sent_at is not None
    ]
    avg_response_days = sum(response_days) / len(response_days) if response_days else 0.0
    # most_common keeps first-seen order on ties.
    preferred_channel = Counter(item.type for item in outreach).most_common(1)[0][0]
    engagement = min(100.0, response_rate + (20 if responses else 0))
    return OutreachProfile(
        total=len(outreach),
        response_rate=response_rate,
        avg_response_days=avg_response_days,
        preferred_channel=preferred_channel,
        engagement=engagement,
    )


def reconnection_impact(
    contact: ContactRecord,
    days: int,
    influence: float | None,
    *,
    values: dict[str, float] = RECONNECTION_VALUES,
) -> tuple[float, list[str]]:
    score = 0.0
    factors: list[str] = []

    if contact.strategic_value:
        score += contact.strategic_value * 0.5
        if contact.strategic_value > 70:
            factors.append("High strategic value contact")
    if contact.priority_score:
        score += contact.priority_score * 0.3
        if contact.priority_score > 80:
            factors.append("High priority contact")

    kind_value = values.get(contact.kind, DEFAULT_RECONNECTION_VALUE)
    score += kind_value
    if kind_value > 15:
        factors.append("Valuable relationship type")

    if 90 <= days <= 180:
        score += 20
        factors.append("Optimal reconnection timing")
    elif days <= 365:
        score += 10

    if influence is not None and influence > 0.7:
        score += 15
        factors.append("High network influence")

    return clamp(score), factors


def reconnection_effort(
    contact: ContactRecord,
    profile: OutreachProfile,
    *,
    efforts: dict[str, float] = RECONNECTION_EFFORTS,
) -> float:
    effort = 50.0
    if profile.response_rate > 50:
        effort -= 20
    elif profile.response_rate > 20:
        effort -= 10
    elif profile.total > 5 and profile.response_rate == 0:
        effort += 20
    effort += efforts.get(contact.kind, 0.0)
    if 0 < profile.avg_response_days < 2:
        effort -= 10
    return clamp(effort, 10, 100)


def reconnection_urgency(contact: ContactRecord, days: int, now: datetime) -> tuple[float, list[str]]:
    urgency = 0.0
    factors: list[str] = []

    if days > 365:
        urgency += 40
        factors.append("Over 1 year since contact")
    elif days > 180:
        urgency += 30
        factors.append("Over 6 months since contact")
    elif days > 90:
        urgency += 20
        factors.append("Over 3 months since contact")

    opportunity = contact.opportunity_score or 0
    if opportunity > 80:
        urgency += 25
        factors.append("High opportunity score")
    elif opportunity > 60:
        urgency += 15

    if (contact.strategic_value or 0) > 80:
        urgency += 20
        factors.append("High strategic value")

    if contact.updated_at is not None and now - contact.updated_at < timedelta(days=RECENT_UPDATE_DAYS):
        urgency += 15
        factors.append("Recent profile updates")

    return min(100.0, urgency), factors


def reconnection_confidence(
    contact: ContactRecord,
    profile: OutreachProfile,
    days: int,
    *,
    strengths: dict[str, float] = KIND_STRENGTHS,
) -> float:
    confidence = 0.3
    if profile.response_rate > 50:
        confidence += 0.4
    elif profile.response_rate > 20:
        confidence += 0.2
    elif profile.total == 0:
        confidence += 0.1

    confidence += strengths.get(contact.kind, DEFAULT_KIND_STRENGTH) * 0.3

    if 90 <= days <= 365:
        confidence += 0.2
    elif days <= 90:
        confidence -= 0.1

    if (contact.strategic_value or 0) > 70:
        confidence += 0.1
    return max(0.0, min(1.0, confidence))


def suggest_approach(contact: ContactRecord, profile: OutreachProfile, days: int) -> dict:
    method = "EMAIL"
    tone = "PROFESSIONAL"
    if profile.preferred_channel == "LINKEDIN":
        method = "LINKEDIN"
    elif contact.kind == "friend":
        method = "PHONE"
        tone = "PERSONAL"
    elif contact.kind == "colleague" and days < 180:
        tone = "CASUAL"

    if days > 365:
        context, reason = "Long-term reconnection", "Annual catch-up and relationship maintenance"
    elif days > 180:
        context, reason = "Periodic check-in", "Quarterly relationship maintenance"
    else:
        context, reason = "Timely follow-up", "Natural conversation continuation"

    if "sales" in contact.position_lower:
        context += " with business focus"
    elif contact.kind in ("mentor", "mentee"):
        context += " with guidance/advice angle"
        tone = "PERSONAL"

    return {"method": method, "tone": tone, "context": context, "reason": reason}


def reconnection_message(contact: ContactRecord, approach: dict, days: int) -> str:
    name = contact.first_name or contact.full_name
    if days > 365:
        timeframe = "over a year"
    elif days > 180:
        timeframe = "several months"
    else:
        timeframe = "a while"

    if approach["tone"] == "PERSONAL":
        parts = [f"Hi {name}, I was thinking about you and realized it's been {timeframe} since we last connected."]
    elif approach["tone"] == "CASUAL":
        parts = [f"Hi {name}, Hope you're doing well! It's been {timeframe} since we last caught up."]
    else:
        parts = [f"Dear {name}, I hope this message finds you well. It's been {timeframe} since our last conversation."]

    if contact.company:
        parts.append(f"I'd love to hear how things are going at {contact.company}")
    if contact.kind == "mentor":
        parts.append("and would appreciate any insights you might have on my current projects.")
    elif contact.kind == "mentee":
        parts.append("and see how I might be able to support your current initiatives.")
    else:
        parts.append("and explore opportunities for collaboration.")

    if approach["method"] == "EMAIL":
        parts.append("Would you be open to a brief call or coffee in the coming weeks?")
    elif approach["method"] == "LINKEDIN":
        parts.append("Would love to reconnect and hear about your latest projects.")
    else:
        parts.append("Let me know if you'd like to catch up soon.")
    return " ".join(parts)


def optimal_timing(days: int, now: datetime) -> dict:
    """Suggest a send date: weekdays only, and never in the last week of a quarter."""
    reasons: list[str] = []
    if 90 <= days <= 180:
        reasons.append("Optimal reconnection window (3-6 months)")
    elif 180 < days <= 365:
        reasons.append("Good timing for annual catch-up")
    elif days > 365:
        reasons.append("Long overdue reconnection")

    suggested = now
    if now.weekday() >= 5:
        suggested = now + timedelta(days=7 - now.weekday())
        reasons.append("Scheduled for weekday contact")

    if now.month in QUARTER_END_MONTHS:
        next_month = now.replace(day=1, month=now.month % 12 + 1, year=now.year + (1 if now.month == 12 else 0))
        if next_month - now < timedelta(days=7):
            suggested = now.replace(year=next_month.year, month=next_month.month, day=5)
            reasons.append("Avoiding end-of-quarter timing")

    return {"suggested_date": suggested, "reasoning": ", ".join(reasons) or "Standard timing"}


def reconnection_priority(confidence: float, impact: float, urgency: float) -> str:
    score = confidence * impact * urgency / 100
    if score > 60 or urgency > 80:
        return "high"
    if score > 30 or urgency > 60:
        return "medium"
    return "low"


def _reasoning(
    contact: ContactRecord,
    days: int,
    profile: OutreachProfile,
    impact_factors: list[str],
    urgency_factors: list[str],
) -> tuple[str, ...]:
    factors = [f"{days} days since last contact"]
    if profile.response_rate > 0:
        factors.append(f"{round(profile.response_rate)}% historical response rate")
    factors.extend(impact_factors)
    factors.extend(urgency_factors)
    if contact.kind:
        factors.append(f"{contact.kind.replace('_', ' ')} relationship")
    return tuple(factors[:5])


def detect_reconnections(
    snapshot: NetworkSnapshot,
    *,
    now: datetime | None = None,
    limit: int = 20,
    min_days: int = MIN_DORMANT_DAYS,
    max_days: int = MAX_DORMANT_DAYS,
    relationship_types: set[str] | None = None,
    min_priority: float | None = None,
) -> list[ReconnectionCandidate]:
    """Dormant contacts worth reaching out to again, with approach, message stub and timing."""
    now = now or datetime.now(timezone.utc)
    found: list[ReconnectionCandidate] = []

    for contact in snapshot.contacts.values():
        if contact.status != "ACTIVE":
            continue
        days = days_between(contact.last_contact_date, now)
        if days is None or days < min_days or days > max_days:
            continue
        if relationship_types and contact.kind not in relationship_types:
            continue
        if min_priority is not None and (contact.priority_score or 0) < min_priority:
            continue

        profile = analyze_outreach(snapshot.outreach_for(contact.contact_id))
        analytics = snapshot.analytics.get(contact.contact_id)
        impact, impact_factors = reconnection_impact(contact, days, analytics.influence_score if analytics else None)
        effort = reconnection_effort(contact, profile)
        urgency, urgency_factors = reconnection_urgency(contact, days, now)
        confidence = reconnection_confidence(contact, profile, days)
        if confidence < MIN_CONFIDENCE:
            continue

        approach = suggest_approach(contact, profile, days)
        found.append(
            ReconnectionCandidate(
                contact=ContactRef(contact.contact_id, contact.full_name, contact.company, contact.position),
                relationship_type=contact.relationship_type,
                days_since_contact=days,
                confidence=round(confidence, 4),
                impact=round(impact, 2),
                effort=effort,
                urgency=urgency,
                priority=reconnection_priority(confidence, impact, urgency),
                approach=approach,
                message=reconnection_message(contact, approach, days),
                timing=optimal_timing(days, now),
                engagement=profile.as_dict(),
                reasoning=_reasoning(contact, days, profile, impact_factors, urgency_factors),
            )
        )

    found.sort(key=lambda item: item.urgency * item.impact * item.confidence, reverse=True)
    return found[:limit]
