"""Constants used throughout the training feedback loop."""

from enum import Enum


class CorrectionKind(str, Enum):
    """Which field of an extracted line item a human corrected."""

    DESCRIPTION = "description"
    CATEGORY = "category"
    PRICE = "price"
    EXCLUSION_FLAG = "exclusion_flag"
    QUANTITY = "quantity"
    UNIT = "unit"


class RefinementKind(str, Enum):
    """Kind of rule a discovered pattern turns into."""

    TERMINOLOGY = "terminology"
    CATEGORY_RULE = "category_rule"
    EXTRACTION_RULE = "extraction_rule"


class ModerationState(str, Enum):
    """Moderation state of a contribution."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ConfidenceBand(str, Enum):
    """Band a raw confidence score falls into."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Trade categories known to the bid comparison product
TRADE_CATEGORIES = [
    "Electrical",
    "Plumbing",
    "HVAC",
    "Mechanical",
    "Fire Protection",
    "Roofing",
    "Concrete",
    "Masonry",
    "Steel/Structural",
    "Drywall/Framing",
    "Painting",
    "Flooring",
    "Millwork/Casework",
    "Glass/Glazing",
    "Landscaping",
    "Sitework/Earthwork",
    "Demolition",
    "Insulation",
    "Waterproofing",
    "Other",
]

# Price magnitude buckets as (lower bound inclusive, label), ascending
PRICE_BUCKETS: list[tuple[float, str]] = [
    (float("-inf"), "<500"),
    (500, "500-1K"),
    (1_000, "1K-5K"),
    (5_000, "5K-10K"),
    (10_000, "10K-25K"),
    (25_000, "25K-50K"),
    (50_000, "50K-100K"),
    (100_000, "100K-250K"),
    (250_000, "250K-500K"),
    (500_000, "500K-1M"),
    (1_000_000, ">1M"),
]

# Redaction placeholders
PLACEHOLDER_CONTRACTOR = "[CONTRACTOR]"
PLACEHOLDER_PHONE = "[PHONE]"
PLACEHOLDER_EMAIL = "[EMAIL]"
PLACEHOLDER_ADDRESS = "[ADDRESS]"
PLACEHOLDER_PROJECT_ID = "[PROJECT_ID]"
PLACEHOLDER_DATE = "[DATE]"
PLACEHOLDER_NAME = "[NAME]"

# Field limits
RAW_TEXT_SNIPPET_MAX_CHARS = 500
EMBEDDING_CONTEXT_MAX_CHARS = 200
PATTERN_KEY_MAX_CHARS = 50

# Prompt block limits
MAX_PROMPT_EXAMPLES = 5
MAX_TERMINOLOGY_PATTERNS = 5
MAX_CATEGORY_PATTERNS = 5
MAX_EXTRACTION_PATTERNS = 3
