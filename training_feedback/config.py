"""Configuration settings for the training feedback loop."""

import os
import re
from re import Pattern

from .constants import (
    PLACEHOLDER_ADDRESS,
    PLACEHOLDER_CONTRACTOR,
    PLACEHOLDER_DATE,
    PLACEHOLDER_EMAIL,
    PLACEHOLDER_NAME,
    PLACEHOLDER_PHONE,
    PLACEHOLDER_PROJECT_ID,
)

# Embedding provider configuration
MODEL_CONFIG: dict[str, str | int] = {
    "embedding_model": "text-embedding-3-small",
    "embedding_dimensions": 1536,
    "max_chars": 8000,  # ~2000 tokens
}

# Pattern mining
PATTERN_CONFIG: dict[str, int] = {
    "auto_promote_threshold": 10,
    "active_pattern_limit": 10,
}

# Confidence threshold calibration
CALIBRATION_CONFIG: dict[str, float | int] = {
    "default_low_threshold": 0.6,
    "default_medium_threshold": 0.8,
    "min_corrections": 200,
    "medium_margin": 0.1,  # medium sits this far above the avg corrected confidence
    "band_gap": 0.2,  # low sits this far below medium
    "min_low_threshold": 0.4,
    "max_medium_threshold": 0.95,
}

# Embedding indexer / retriever
INDEXER_CONFIG: dict[str, int | float] = {
    "batch_size": 100,
    "high_quality_score": 0.8,
    "default_retrieval_k": 5,
}

# Quality score weights (sum to 1.0)
QUALITY_WEIGHTS: dict[str, float] = {
    "clarity": 0.3,
    "completeness": 0.25,
    "consistency": 0.25,
    "specificity": 0.2,
}

# PII detection patterns, applied in this order.
# Each entry is (name, pattern, placeholder). The currency detector has no
# fixed placeholder: matches are replaced by their magnitude bucket.
ORGANIZATION_PATTERN: Pattern = re.compile(
    r"\b(?:[A-Z][a-z]+\s)+"
    r"(?:Inc|LLC|Corp|Co|Ltd|Company|Construction|Electric|Electrical|Plumbing|"
    r"Mechanical|Contractors?|Services?|Solutions?|Industries|Industry|"
    r"Enterprises?|Group|Associates?|Partners?)\b\.?"
)

CURRENCY_PATTERN: Pattern = re.compile(r"\$\s?\d+(?:,\d{3})*(?:\.\d+)?")

PHONE_PATTERN: Pattern = re.compile(
    r"(?<![\w$])(?:\+\d{1,2}\s?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}\b"
)

EMAIL_PATTERN: Pattern = re.compile(
    r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"
)

ADDRESS_PATTERN: Pattern = re.compile(
    r"\b\d+\s+(?:[A-Z][a-z]+\s+){1,2}"
    r"(?:St|Street|Ave|Avenue|Blvd|Boulevard|Rd|Road|Dr|Drive|Lane|Ln|Way|"
    r"Court|Ct|Place|Pl|Circle|Cir|Pkwy|Parkway)\b\.?"
)

PROJECT_ID_PATTERN: Pattern = re.compile(
    r"\b(?:Project|Job|PO|RFQ|Bid|Quote|Proposal|Estimate|Contract)"
    r"\s*[#:]?\s*[\w-]*\d[\w-]*",
    re.IGNORECASE,
)

SPELLED_DATE_PATTERN: Pattern = re.compile(
    r"\b(?:January|February|March|April|May|June|July|August|September|"
    r"October|November|December)\s+\d{1,2},?\s+\d{4}\b",
    re.IGNORECASE,
)

NUMERIC_DATE_PATTERN: Pattern = re.compile(r"\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b")

# Capitalized two/three word tokens following a lowercase word
PERSON_NAME_PATTERN: Pattern = re.compile(
    r"(?<=[a-z]\s)(?:[A-Z][a-z]+\s){1,2}[A-Z][a-z]+(?=\s|$|,|\.)"
)

PII_DETECTORS: list[tuple[str, Pattern, str | None]] = [
    ("organization", ORGANIZATION_PATTERN, PLACEHOLDER_CONTRACTOR),
    ("currency", CURRENCY_PATTERN, None),
    ("phone", PHONE_PATTERN, PLACEHOLDER_PHONE),
    ("email", EMAIL_PATTERN, PLACEHOLDER_EMAIL),
    ("address", ADDRESS_PATTERN, PLACEHOLDER_ADDRESS),
    ("project_id", PROJECT_ID_PATTERN, PLACEHOLDER_PROJECT_ID),
    ("spelled_date", SPELLED_DATE_PATTERN, PLACEHOLDER_DATE),
    ("numeric_date", NUMERIC_DATE_PATTERN, PLACEHOLDER_DATE),
    ("person_name", PERSON_NAME_PATTERN, PLACEHOLDER_NAME),
]

# Database
DEFAULT_DATABASE_URL = "sqlite:///training_feedback.db"

# Logging configuration
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVEL = "INFO"


def get_database_url() -> str:
    """Return the database URL from the environment, or the local default."""
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def get_detectors_file() -> str | None:
    """Return the path of a JSON file overriding the PII detectors, if set."""
    return os.getenv("PII_DETECTORS_FILE") or None
