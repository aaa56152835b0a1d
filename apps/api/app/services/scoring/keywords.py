from __future__ import annotations

# Static lookup tables consumed by the contact scoring functions. Each scoring function takes
# its table as a keyword argument defaulting to the map below, so tables can be tuned or
# swapped in tests without touching the formulas.

RELATIONSHIP_KIND_SCORES: dict[str, float] = {
    "client": 90,
    "partner": 85,
    "colleague": 75,
    "mentor": 95,
    "investor": 90,
    "friend": 70,
    "acquaintance": 60,
    "prospect": 80,
    "vendor": 65,
    "mentee": 70,
    "competitor": 40,
    "family": 30,
}
DEFAULT_RELATIONSHIP_KIND_SCORE = 50.0

INDUSTRY_KEYWORDS: tuple[str, ...] = (
    "technology",
    "software",
    "ai",
    "data",
    "digital",
    "startup",
    "venture",
    "marketing",
    "sales",
    "business development",
    "strategy",
    "consulting",
)

# Order matters: the first keyword found in the title wins.
SENIORITY_SCORES: dict[str, float] = {
    "ceo": 100,
    "president": 95,
    "founder": 95,
    "owner": 90,
    "cto": 95,
    "cfo": 95,
    "cmo": 95,
    "coo": 95,
    "vp": 85,
    "vice president": 85,
    "svp": 90,
    "director": 75,
    "head": 75,
    "chief": 80,
    "senior": 65,
    "lead": 60,
    "principal": 70,
    "manager": 55,
    "supervisor": 50,
    "associate": 40,
    "junior": 30,
    "intern": 20,
}
DEFAULT_SENIORITY_SCORE = 45.0

COMPANY_SIZE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "large": ("microsoft", "google", "apple", "amazon", "facebook", "meta", "tesla"),
    "medium": ("inc", "corp", "corporation", "ltd", "llc"),
}
COMPANY_SIZE_SCORES: dict[str, float] = {"large": 90, "medium": 60, "small": 40}

HIGH_VALUE_TIERS: frozenset[str] = frozenset({"TIER_1", "TIER_2"})

POSITIVE_CAMPAIGN_STATUSES: frozenset[str] = frozenset({"RESPONDED", "INTERESTED", "CONVERTED"})

TRENDING_INDUSTRY_KEYWORDS: tuple[str, ...] = (
    "ai",
    "artificial intelligence",
    "machine learning",
    "blockchain",
    "crypto",
    "fintech",
)
ROLE_EXPANSION_KEYWORDS: tuple[str, ...] = ("manager", "director", "lead", "senior", "principal")
COMPANY_GROWTH_KEYWORDS: tuple[str, ...] = ("startup", "venture", "series", "funding", "ipo")

PRIORITY_WEIGHTS: dict[str, float] = {
    "network_position": 0.25,
    "relationship_strength": 0.25,
    "professional_relevance": 0.20,
    "mutual_connections": 0.15,
    "engagement_patterns": 0.10,
    "opportunity_indicators": 0.05,
}
OPPORTUNITY_WEIGHTS: dict[str, float] = {
    "opportunity_indicators": 0.35,
    "relationship_strength": 0.25,
    "engagement_patterns": 0.20,
    "professional_relevance": 0.20,
}
STRATEGIC_WEIGHTS: dict[str, float] = {
    "network_position": 0.40,
    "mutual_connections": 0.25,
    "professional_relevance": 0.25,
    "opportunity_indicators": 0.10,
}
