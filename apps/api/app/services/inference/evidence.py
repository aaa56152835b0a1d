from __future__ import annotations

import re
from dataclasses import dataclass, field

from app.services.graph.records import ContactRecord
from app.services.text import mentions

COMPANY_SUFFIXES: tuple[str, ...] = ("inc", "corp", "corporation", "llc", "ltd", "limited")

GENERIC_EMAIL_DOMAINS: frozenset[str] = frozenset(
    {
        "gmail.com",
        "yahoo.com",
        "hotmail.com",
        "outlook.com",
        "aol.com",
        "icloud.com",
        "live.com",
        "msn.com",
        "comcast.net",
        "verizon.net",
    }
)

ROLE_KEYWORDS: tuple[str, ...] = (
    "director",
    "manager",
    "senior",
    "junior",
    "lead",
    "head",
    "chief",
    "engineer",
    "developer",
    "designer",
    "analyst",
    "consultant",
    "sales",
    "marketing",
    "product",
    "finance",
    "operations",
    "hr",
    "vp",
    "president",
    "ceo",
    "cto",
    "cfo",
    "cmo",
    "coo",
)

BUYER_KEYWORDS: tuple[str, ...] = ("buyer", "procurement", "purchasing")
SELLER_KEYWORDS: tuple[str, ...] = ("sales", "account", "business development")

EVIDENCE_SCORES: dict[str, float] = {
    "same_company": 0.8,
    "related_companies": 0.4,
    "same_email_domain": 0.7,
    "same_location": 0.3,
    "same_state": 0.1,
    "both_on_linkedin": 0.1,
}
SIMILAR_ROLE_WEIGHT = 0.4
SIMILAR_ROLE_THRESHOLD = 0.5
MUTUAL_CONNECTION_STEP = 0.2
MUTUAL_CONNECTION_CAP = 0.6

_SUFFIX_PATTERNS = [re.compile(rf"\s*{suffix}\.?$") for suffix in COMPANY_SUFFIXES]


@dataclass(frozen=True)
class Evidence:
    type: str
    score: float
    details: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {"type": self.type, "score": round(self.score, 4), "details": dict(self.details)}


def clean_company_name(company: str) -> str:
    cleaned = company.lower().strip()
    for pattern in _SUFFIX_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    return cleaned


def companies_related(first: str, second: str) -> bool:
    left = first.lower()
    right = second.lower()
    if left in right or right in left:
        return True
    return clean_company_name(left) == clean_company_name(right)


def email_domain(email: str | None) -> str | None:
    if not email or "@" not in email:
        return None
    domain = email.rsplit("@", 1)[1].strip().lower()
    return domain or None


def role_keywords(role: str, *, keywords: tuple[str, ...] = ROLE_KEYWORDS) -> list[str]:
    lowered = role.lower()
    return [keyword for keyword in keywords if mentions(lowered, keyword)]


def role_similarity(first: str, second: str, *, keywords: tuple[str, ...] = ROLE_KEYWORDS) -> float:
    left = first.lower()
    right = second.lower()
    if left == right:
        return 1.0
    left_keywords = role_keywords(left, keywords=keywords)
    shared = [keyword for keyword in left_keywords if mentions(right, keyword)]
    total = max(len(left_keywords), len(role_keywords(right, keywords=keywords)))
    return len(shared) / max(1, total)


def is_buyer_seller_pair(
    first_position: str | None,
    second_position: str | None,
    *,
    buyer_keywords: tuple[str, ...] = BUYER_KEYWORDS,
    seller_keywords: tuple[str, ...] = SELLER_KEYWORDS,
) -> bool:
    left = (first_position or "").lower()
    right = (second_position or "").lower()
    has_buyer = any(mentions(left, keyword) or mentions(right, keyword) for keyword in buyer_keywords)
    has_seller = any(mentions(left, keyword) or mentions(right, keyword) for keyword in seller_keywords)
    return has_buyer and has_seller


def collect_evidence(
    contact: ContactRecord,
    candidate: ContactRecord,
    mutual_count: int,
    *,
    scores: dict[str, float] = EVIDENCE_SCORES,
    generic_domains: frozenset[str] = GENERIC_EMAIL_DOMAINS,
) -> list[Evidence]:
    evidence: list[Evidence] = []

    if contact.company and candidate.company:
        if contact.company.lower() == candidate.company.lower():
            evidence.append(Evidence("same_company", scores["same_company"], {"company": contact.company}))
        elif companies_related(contact.company, candidate.company):
            evidence.append(
                Evidence(
                    "related_companies",
                    scores["related_companies"],
                    {"company1": contact.company, "company2": candidate.company},
                )
            )

    domain = email_domain(contact.email)
    if domain and domain == email_domain(candidate.email) and domain not in generic_domains:
        evidence.append(Evidence("same_email_domain", scores["same_email_domain"], {"domain": domain}))

    if contact.city and contact.state and candidate.city and candidate.state:
        same_state = contact.state.lower() == candidate.state.lower()
        if same_state and contact.city.lower() == candidate.city.lower():
            evidence.append(
                Evidence("same_location", scores["same_location"], {"city": contact.city, "state": contact.state})
            )
        elif same_state:
            evidence.append(Evidence("same_state", scores["same_state"], {"state": contact.state}))

    if contact.position and candidate.position:
        similarity = role_similarity(contact.position, candidate.position)
        if similarity > SIMILAR_ROLE_THRESHOLD:
            evidence.append(
                Evidence(
                    "similar_roles",
                    similarity * SIMILAR_ROLE_WEIGHT,
                    {"position1": contact.position, "position2": candidate.position, "similarity": similarity},
                )
            )

    if contact.linkedin_url and candidate.linkedin_url:
        evidence.append(Evidence("both_on_linkedin", scores["both_on_linkedin"], {}))

    if mutual_count > 0:
        evidence.append(
            Evidence(
                "mutual_connections",
                min(MUTUAL_CONNECTION_CAP, mutual_count * MUTUAL_CONNECTION_STEP),
                {"count": mutual_count},
            )
        )

    return evidence


def evidence_confidence(evidence: list[Evidence]) -> float:
    if not evidence:
        return 0.0
    mean = sum(item.score for item in evidence) / len(evidence)
    return max(0.0, min(1.0, mean))


def infer_relationship_type(evidence: list[Evidence], contact: ContactRecord, candidate: ContactRecord) -> str:
    for item in evidence:
        if item.type == "same_company":
            return "colleague"
        if item.type == "related_companies":
            return "client" if is_buyer_seller_pair(contact.position, candidate.position) else "partner"
        if item.type == "same_email_domain":
            return "colleague"
        if item.type == "mutual_connections":
            return "acquaintance" if item.details.get("count", 0) >= 3 else "prospect"
        if item.type == "similar_roles":
            return "acquaintance"
    return "prospect"
