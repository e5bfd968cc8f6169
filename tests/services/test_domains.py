import pytest

from app.models.prospect import Candidate
from app.services.discovery.domains import (
    company_name_from_title,
    dedupe_candidates,
    is_aggregator_domain,
    is_invalid_domain,
    is_plausible_company_name,
    normalize_domain,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("[Acme](https://www.Acme.com/about)", "acme.com"),
        ("https://https://www.globex.io", "globex.io"),
        ("  WWW.Initech.com/path?q=1#top ", "initech.com"),
        ("http://hooli.xyz", "hooli.xyz"),
        ("umbrella.co.uk", "umbrella.co.uk"),
        ("https://acme.com:8443/login", "acme.com"),
        ("acme.com :80", "acme.com"),
        (None, ""),
        ("", ""),
    ],
)
def test_normalize_domain(raw, expected):
    assert normalize_domain(raw) == expected


@pytest.mark.parametrize(
    "raw",
    ["[Acme](https://www.acme.com)", "https://www.www.example.org/x", "Sub.Domain.COM", "n/a", "acme.com:80:90"],
)
def test_normalize_domain_is_idempotent(raw):
    once = normalize_domain(raw)
    assert normalize_domain(once) == once


@pytest.mark.parametrize(
    "domain", ["N/A", "unknown", "none", "ab", "acme", "", None, "[bravo.io]", "acme.com:abc", "acme .com", "acme."]
)
def test_invalid_domains(domain):
    assert is_invalid_domain(domain)


def test_valid_domain_is_not_invalid():
    assert not is_invalid_domain("acme.com")


@pytest.mark.parametrize(
    "name",
    [
        "Top 10 CRM Tools 2024",
        "Best 5 Billing Platforms",
        "10 Ways To Automate Billing",
        "The Best SaaS Companies",
        "What are the leading CRMs",
        "Plumbers in London, UK",
        "SaaS Vendor Directory",
        "",
    ],
)
def test_implausible_company_names_are_rejected(name):
    assert not is_plausible_company_name(name)


@pytest.mark.parametrize("name", ["Acme Corp", "Globex", "Initech Billing"])
def test_plausible_company_names_pass(name):
    assert is_plausible_company_name(name)


def test_aggregator_domains_include_subdomains():
    assert is_aggregator_domain("https://uk.linkedin.com/company/acme")
    assert is_aggregator_domain("crunchbase.com")
    assert not is_aggregator_domain("acme.com")


@pytest.mark.parametrize(
    ("title", "expected"),
    [
        ("Acme - Pricing", "Acme"),
        ("Globex | Billing software", "Globex"),
        ("HubSpot Alternatives: 9 picks", None),
        ("Acme vs Globex", None),
        ("IBM | Home", None),
        ("", None),
    ],
)
def test_company_name_from_title(title, expected):
    assert company_name_from_title(title) == expected


def test_dedupe_keeps_higher_confidence_at_first_position():
    candidates = [
        Candidate(name="Acme", domain="acme.com", confidence=50),
        Candidate(name="Globex", domain="globex.io", confidence=60),
        Candidate(name="Acme Inc", domain="acme.com", confidence=80),
    ]

    result = dedupe_candidates(candidates)

    assert [c.name for c in result] == ["Acme Inc", "Globex"]


def test_dedupe_tie_keeps_first_seen():
    candidates = [
        Candidate(name="First", domain="acme.com", confidence=70),
        Candidate(name="Second", domain="acme.com", confidence=70),
    ]

    assert [c.name for c in dedupe_candidates(candidates)] == ["First"]


def test_dedupe_drops_existing_domains_and_is_idempotent():
    candidates = [
        Candidate(name="Acme", domain="acme.com", confidence=50),
        Candidate(name="Globex", domain="globex.io", confidence=60),
    ]

    once = dedupe_candidates(candidates, existing_domains=["https://www.acme.com"])
    twice = dedupe_candidates(once, existing_domains=["acme.com"])

    assert [c.domain for c in once] == ["globex.io"]
    assert twice == once
