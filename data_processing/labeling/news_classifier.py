"""
Data Processing - News and Policy Classifier.

============================================================
RESPONSIBILITY
============================================================
Classifies a raw news article once, at ingestion time.

- Event type (first match over a fixed priority order)
- Country and region (first match, fallback global)
- Source type
- Affected coins (fallback BTC) and sectors
- Impact level from ordered rules

============================================================
DESIGN PRINCIPLES
============================================================
- Keyword tables are DATA: ordered (predicate, result) pairs
  evaluated first-match-wins
- Case-insensitive substring matching
- An article matching nothing is "news", never an error
- Stored classifications are never re-evaluated

============================================================
EVENT TYPE PRIORITY
============================================================
hack > etf > cbdc > enforcement > legislation > regulation >
partnership > adoption > news (fallback)

============================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar


T = TypeVar("T")


# ============================================================
# ENUMERATIONS
# ============================================================


class EventType(str, Enum):
    REGULATION = "regulation"
    LEGISLATION = "legislation"
    ENFORCEMENT = "enforcement"
    STATEMENT = "statement"
    NEWS = "news"
    ETF = "etf"
    CBDC = "cbdc"
    HACK = "hack"
    PARTNERSHIP = "partnership"
    ADOPTION = "adoption"


class SourceType(str, Enum):
    GOVERNMENT = "government"
    CENTRAL_BANK = "central_bank"
    REGULATOR = "regulator"
    MEDIA = "media"
    COMPANY = "company"
    EXCHANGE = "exchange"
    PROTOCOL = "protocol"


class Region(str, Enum):
    NORTH_AMERICA = "north_america"
    EUROPE = "europe"
    ASIA = "asia"
    MIDDLE_EAST = "middle_east"
    LATAM = "latam"
    AFRICA = "africa"
    GLOBAL = "global"


class ImpactLevel(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# Types stored even when their impact is low
RELEVANT_EVENT_TYPES = frozenset({
    EventType.REGULATION,
    EventType.LEGISLATION,
    EventType.ENFORCEMENT,
    EventType.ETF,
    EventType.CBDC,
    EventType.HACK,
})

REGULATORY_EVENT_TYPES = frozenset({
    EventType.REGULATION,
    EventType.LEGISLATION,
    EventType.ENFORCEMENT,
})

IMPORTANCE_SCORES = {
    ImpactLevel.CRITICAL: 100,
    ImpactLevel.HIGH: 75,
    ImpactLevel.MEDIUM: 50,
    ImpactLevel.LOW: 25,
}


# ============================================================
# KEYWORD TABLES
# ============================================================

# Priority order, highest first
EVENT_TYPE_KEYWORDS: Tuple[Tuple[EventType, Tuple[str, ...]], ...] = (
    (EventType.HACK, (
        "hack", "hacked", "exploit", "breach", "stolen", "drained", "vulnerability",
        "attack", "compromised", "security incident",
    )),
    (EventType.ETF, (
        "etf", "spot etf", "bitcoin etf", "ethereum etf", "approval", "reject",
        "application", "blackrock", "fidelity", "grayscale", "ark", "invesco",
    )),
    (EventType.CBDC, (
        "cbdc", "digital dollar", "digital euro", "digital yuan", "e-cny",
        "digital currency", "central bank", "fed", "ecb", "boe", "pboc",
    )),
    (EventType.ENFORCEMENT, (
        "sec", "cftc", "doj", "lawsuit", "fine", "penalty", "enforcement", "action",
        "charges", "investigation", "subpoena", "settlement", "sued",
    )),
    (EventType.LEGISLATION, (
        "bill", "law", "act", "legislation", "congress", "senate", "house",
        "parliament", "passed", "proposed", "amendment", "vote", "lawmakers",
    )),
    (EventType.REGULATION, (
        "regulation", "regulatory", "framework", "compliance", "license", "licensing",
        "rules", "guidelines", "requirements", "oversight", "supervision",
    )),
    (EventType.PARTNERSHIP, (
        "partnership", "partners", "collaboration", "integration", "launches",
        "expands", "announces", "deal", "agreement", "alliance",
    )),
    (EventType.ADOPTION, (
        "accepts", "payment", "merchant", "adoption", "mainstream", "retail",
        "institutional", "custody", "treasury", "reserve", "legal tender",
    )),
)

# (keyword, country, region); first match wins
COUNTRY_KEYWORDS: Tuple[Tuple[str, str, Region], ...] = (
    ("us", "United States", Region.NORTH_AMERICA),
    ("usa", "United States", Region.NORTH_AMERICA),
    ("united states", "United States", Region.NORTH_AMERICA),
    ("america", "United States", Region.NORTH_AMERICA),
    ("sec", "United States", Region.NORTH_AMERICA),
    ("cftc", "United States", Region.NORTH_AMERICA),
    ("fed", "United States", Region.NORTH_AMERICA),
    ("uk", "United Kingdom", Region.EUROPE),
    ("britain", "United Kingdom", Region.EUROPE),
    ("fca", "United Kingdom", Region.EUROPE),
    ("eu", "European Union", Region.EUROPE),
    ("europe", "European Union", Region.EUROPE),
    ("mica", "European Union", Region.EUROPE),
    ("china", "China", Region.ASIA),
    ("chinese", "China", Region.ASIA),
    ("pboc", "China", Region.ASIA),
    ("japan", "Japan", Region.ASIA),
    ("fsa", "Japan", Region.ASIA),
    ("korea", "South Korea", Region.ASIA),
    ("singapore", "Singapore", Region.ASIA),
    ("mas", "Singapore", Region.ASIA),
    ("hong kong", "Hong Kong", Region.ASIA),
    ("india", "India", Region.ASIA),
    ("australia", "Australia", Region.ASIA),
    ("uae", "UAE", Region.MIDDLE_EAST),
    ("dubai", "UAE", Region.MIDDLE_EAST),
    ("brazil", "Brazil", Region.LATAM),
    ("argentina", "Argentina", Region.LATAM),
    ("el salvador", "El Salvador", Region.LATAM),
    ("nigeria", "Nigeria", Region.AFRICA),
    ("south africa", "South Africa", Region.AFRICA),
)

COIN_PATTERNS: Tuple[Tuple[str, str], ...] = (
    ("bitcoin", "BTC"),
    ("btc", "BTC"),
    ("ethereum", "ETH"),
    ("eth", "ETH"),
    ("ripple", "XRP"),
    ("xrp", "XRP"),
    ("solana", "SOL"),
    ("sol", "SOL"),
    ("cardano", "ADA"),
    ("tether", "USDT"),
    ("usdt", "USDT"),
    ("usdc", "USDC"),
    ("binance", "BNB"),
    ("bnb", "BNB"),
)

AFFECTED_SECTORS: Tuple[str, ...] = (
    "defi", "stablecoin", "exchange", "custody", "lending", "staking",
    "nft", "derivatives", "mining", "payments", "privacy",
)

FALLBACK_COIN = "BTC"


# ============================================================
# RULE TABLES
# ============================================================


@dataclass(frozen=True)
class ImpactContext:
    """Inputs to the impact rules."""
    event_type: EventType
    sentiment: float
    affected_coins: Sequence[str]


ImpactRule = Tuple[Callable[[ImpactContext], bool], ImpactLevel]

IMPACT_RULES: Tuple[ImpactRule, ...] = (
    (lambda c: c.event_type == EventType.HACK and abs(c.sentiment) > 50, ImpactLevel.CRITICAL),
    (lambda c: c.event_type == EventType.ENFORCEMENT and len(c.affected_coins) > 2, ImpactLevel.CRITICAL),
    (lambda c: c.event_type == EventType.LEGISLATION and abs(c.sentiment) > 60, ImpactLevel.CRITICAL),
    (lambda c: c.event_type == EventType.ETF, ImpactLevel.HIGH),
    (lambda c: c.event_type == EventType.ENFORCEMENT, ImpactLevel.HIGH),
    (lambda c: c.event_type == EventType.REGULATION and abs(c.sentiment) > 40, ImpactLevel.HIGH),
    (lambda c: c.event_type == EventType.REGULATION, ImpactLevel.MEDIUM),
    (lambda c: c.event_type == EventType.LEGISLATION, ImpactLevel.MEDIUM),
    (lambda c: c.event_type == EventType.CBDC, ImpactLevel.MEDIUM),
)


@dataclass(frozen=True)
class SourceContext:
    """Inputs to the source-type rules (both lowercased)."""
    source: str
    text: str


SOURCE_TYPE_RULES: Tuple[Tuple[Callable[[SourceContext], bool], SourceType], ...] = (
    (
        lambda c: any(k in c.source for k in ("sec", "cftc", "fca")) or "official" in c.text,
        SourceType.REGULATOR,
    ),
    (
        lambda c: "fed" in c.source or "central bank" in c.source or "treasury" in c.text,
        SourceType.CENTRAL_BANK,
    ),
    (
        lambda c: "government" in c.text or "ministry" in c.text,
        SourceType.GOVERNMENT,
    ),
    (
        lambda c: any(k in c.source for k in ("binance", "coinbase", "kraken")),
        SourceType.EXCHANGE,
    ),
)


def first_match(
    rules: Sequence[Tuple[Callable[..., bool], T]],
    subject: object,
    default: T,
) -> T:
    """Evaluate (predicate, result) pairs in order; first true predicate wins."""
    for predicate, result in rules:
        if predicate(subject):
            return result
    return default


# ============================================================
# CLASSIFICATION FUNCTIONS
# ============================================================


def classify_event_type(text: str) -> EventType:
    """Event type of an article, falling back to news."""
    lower_text = text.lower()
    rules = [
        (lambda t, keywords=keywords: any(k in t for k in keywords), event_type)
        for event_type, keywords in EVENT_TYPE_KEYWORDS
    ]
    return first_match(rules, lower_text, EventType.NEWS)


def detect_location(text: str) -> Tuple[Optional[str], Region]:
    """(country, region); (None, global) when no keyword matches."""
    lower_text = text.lower()
    for keyword, country, region in COUNTRY_KEYWORDS:
        if keyword in lower_text:
            return country, region
    return None, Region.GLOBAL


def detect_source_type(source_name: str, text: str) -> SourceType:
    context = SourceContext(source=(source_name or "").lower(), text=text.lower())
    return first_match(SOURCE_TYPE_RULES, context, SourceType.MEDIA)


def extract_affected_coins(text: str) -> List[str]:
    """Coin symbols mentioned in the text, BTC when none."""
    lower_text = text.lower()
    coins: List[str] = []
    for pattern, symbol in COIN_PATTERNS:
        if pattern in lower_text and symbol not in coins:
            coins.append(symbol)
    return coins or [FALLBACK_COIN]


def extract_affected_sectors(text: str) -> List[str]:
    lower_text = text.lower()
    return [sector for sector in AFFECTED_SECTORS if sector in lower_text]


def calculate_impact_level(
    event_type: EventType,
    sentiment: float,
    affected_coins: Sequence[str],
) -> ImpactLevel:
    """Impact level from the ordered rules, low when none applies."""
    context = ImpactContext(
        event_type=event_type,
        sentiment=sentiment,
        affected_coins=affected_coins,
    )
    return first_match(IMPACT_RULES, context, ImpactLevel.LOW)


# ============================================================
# COMBINED RESULT
# ============================================================


@dataclass(frozen=True)
class NewsClassification:
    """Everything derived from one article's text."""
    event_type: EventType
    source_type: SourceType
    region: Region
    country: Optional[str]
    impact_level: ImpactLevel
    sentiment_impact: int
    affected_coins: List[str] = field(default_factory=list)
    affected_sectors: List[str] = field(default_factory=list)

    @property
    def is_relevant(self) -> bool:
        """Policy-related or high impact; only these are stored."""
        return (
            self.event_type in RELEVANT_EVENT_TYPES
            or self.impact_level in (ImpactLevel.CRITICAL, ImpactLevel.HIGH)
        )

    @property
    def importance_score(self) -> int:
        return IMPORTANCE_SCORES[self.impact_level]


class NewsClassifier:
    """
    Classifies article text into a NewsClassification.

    Usage:
        classifier = NewsClassifier()
        result = classifier.classify(
            text="SEC files lawsuit against exchange",
            source_name="Reuters",
            sentiment=-0.6,
        )
    """

    def classify(self, text: str, source_name: str, sentiment: float) -> NewsClassification:
        """
        Classify one article.

        Args:
            text: Title and body joined
            source_name: Publisher or platform name
            sentiment: Text sentiment in [-1, 1]
        """
        sentiment_impact = max(-100, min(100, round(sentiment * 100)))

        event_type = classify_event_type(text)
        country, region = detect_location(text)
        coins = extract_affected_coins(text)

        return NewsClassification(
            event_type=event_type,
            source_type=detect_source_type(source_name, text),
            region=region,
            country=country,
            impact_level=calculate_impact_level(event_type, sentiment_impact, coins),
            sentiment_impact=sentiment_impact,
            affected_coins=coins,
            affected_sectors=extract_affected_sectors(text),
        )


__all__ = [
    "EventType",
    "SourceType",
    "Region",
    "ImpactLevel",
    "RELEVANT_EVENT_TYPES",
    "REGULATORY_EVENT_TYPES",
    "IMPORTANCE_SCORES",
    "EVENT_TYPE_KEYWORDS",
    "COUNTRY_KEYWORDS",
    "COIN_PATTERNS",
    "AFFECTED_SECTORS",
    "IMPACT_RULES",
    "SOURCE_TYPE_RULES",
    "first_match",
    "classify_event_type",
    "detect_location",
    "detect_source_type",
    "extract_affected_coins",
    "extract_affected_sectors",
    "calculate_impact_level",
    "NewsClassification",
    "NewsClassifier",
]
