"""Domain normalization, validity and candidate hygiene rules."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from app.models.prospect import Candidate

INVALID_DOMAIN_TOKENS = frozenset({"n/a", "na", "unknown", "not found", "none", "n"})

AGGREGATOR_DOMAINS = (
    "linkedin.com",
    "facebook.com",
    "twitter.com",
    "instagram.com",
    "clutch.co",
    "yelp.com",
    "trustpilot.com",
    "ricsfirms.com",
    "wikipedia.org",
    "crunchbase.com",
    "comparemymove.com",
    "propertyinspect.com",
    "rocketreach.co",
    "zoominfo.com",
    "bloomberg.com",
    "indeed.com",
    "glassdoor.com",
)

_MARKDOWN_LINK = re.compile(r"\[[^\]]*\]\(([^)\s]+)\)")
_LEADING_PREFIX = re.compile(r"^(https?://|www\.)", re.IGNORECASE)
_PATH_SPLIT = re.compile(r"[/?#]")
_TRAILING_PORTS = re.compile(r"(:\d+)+$")
_HOSTNAME = re.compile(r"[\w-]+(\.[\w-]+)+")

_IMPLAUSIBLE_NAME_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^\d+\s+(types|ways|best|top|great)\b",
        r"^(best|top)\s+\d+",
        r"\d+\s+best\b",
        r"^the\s+best\b",
        r"^the\s+\d+",
        r"what\s+(are|is)\s+the\b",
        r"\s+in\s+\w+,?\s+\w+$",
        r"(directory|list|guide|review)",
    )
)

_TITLE_SEPARATORS = re.compile(r"\s*[-|\u2013\u2014:]\s*")
_TITLE_NOISE = re.compile(r"competitor|alternative|\bvs\b", re.IGNORECASE)


def normalize_domain(raw: str | None) -> str:
    """Reduce a markdown link, URL or bare host to a lower-cased bare domain.

    Returns "" when nothing usable remains. Applying it twice gives the same result.
    """
    value = (raw or "").strip()
    match = _MARKDOWN_LINK.search(value)
    if match:
        value = match.group(1)
    value = value.strip().lower()
    while True:
        stripped = _LEADING_PREFIX.sub("", value).strip()
        if stripped == value:
            break
        value = stripped
    host = _PATH_SPLIT.split(value, maxsplit=1)[0].strip()
    return _TRAILING_PORTS.sub("", host).strip()


def is_invalid_domain(domain: str | None) -> bool:
    """Placeholders, bare words and anything that is not a dotted hostname are invalid."""
    value = (domain or "").strip().lower()
    if value in INVALID_DOMAIN_TOKENS or len(value) < 3:
        return True
    return _HOSTNAME.fullmatch(value) is None


def hostname_from_url(url: str | None) -> str:
    return normalize_domain(url)


def is_aggregator_domain(domain: str) -> bool:
    value = normalize_domain(domain)
    return any(value == blocked or value.endswith(f".{blocked}") for blocked in AGGREGATOR_DOMAINS)


def is_plausible_company_name(name: str | None) -> bool:
    """Reject article, list and directory titles masquerading as company names."""
    value = (name or "").strip()
    if not value:
        return False
    return not any(pattern.search(value) for pattern in _IMPLAUSIBLE_NAME_PATTERNS)


def company_name_from_title(title: str | None) -> str | None:
    """Best-effort company name from a search result title ("Acme - Pricing" -> "Acme")."""
    head = _TITLE_SEPARATORS.split((title or "").strip(), maxsplit=1)[0].strip()
    if len(head) <= 3 or _TITLE_NOISE.search(head):
        return None
    return head


def dedupe_candidates(
    candidates: Sequence[Candidate],
    existing_domains: Iterable[str] = (),
) -> list[Candidate]:
    """Keep one candidate per normalized domain, preferring the higher confidence.

    Ties keep the first candidate seen and output order follows first occurrence.
    Domains in `existing_domains` are dropped entirely.
    """
    excluded = {normalize_domain(domain) for domain in existing_domains}
    kept: dict[str, Candidate] = {}
    for candidate in candidates:
        key = normalize_domain(candidate.domain)
        if key in excluded:
            continue
        current = kept.get(key)
        if current is None:
            kept[key] = candidate
        elif candidate.confidence > current.confidence:
            kept[key] = candidate
    return list(kept.values())
