import asyncio

import pytest

from app.models.prospect import Company, ProspectSource
from app.models.requests import ImportedProspect
from app.services.prospect_io import (
    ImportFormatError,
    export_csv,
    import_prospects,
    parse_csv,
    parse_markdown_table,
    parse_prospects,
)
from app.services.repositories import InMemoryProspectRepository

MARKDOWN_TABLE = """
| Name | Domain | Based on | Confidence | ICP Fit |
|------|--------|----------|------------|---------|
| Acme | [acme.com](https://www.acme.com) | seed.com | 85% | 90/100 |
| Globex | https://globex.io/about | | n/a | 120 |
| | missing-name.com | | | |
"""


def test_parse_markdown_table_normalizes_domains_and_numbers():
    prospects = parse_markdown_table(MARKDOWN_TABLE)

    assert [p.name for p in prospects] == ["Acme", "Globex"]
    acme, globex = prospects
    assert acme.domain == "acme.com"
    assert acme.source_customer_domain == "seed.com"
    assert acme.confidence == 85
    assert acme.icp_score == 90
    assert globex.domain == "globex.io"
    assert globex.source_customer_domain is None
    assert globex.confidence is None
    assert globex.icp_score == 100


def test_markdown_table_requires_name_and_domain_columns():
    table = "| Company | Website |\n|---|---|\n| Acme | acme.com |"

    with pytest.raises(ImportFormatError):
        parse_markdown_table(table)


def test_markdown_table_requires_a_data_row():
    with pytest.raises(ImportFormatError):
        parse_markdown_table("| Name | Domain |\n|---|---|")


def test_parse_csv_accepts_flexible_headers():
    text = "Company Name,Website,Source Customer,ICP Score\nInitech,www.initech.com,seed.com,77\n,,,\n"

    prospects = parse_csv(text)

    assert len(prospects) == 1
    assert prospects[0].name == "Initech"
    assert prospects[0].domain == "initech.com"
    assert prospects[0].source_customer_domain == "seed.com"
    assert prospects[0].icp_score == 77


def test_parse_prospects_detects_format():
    assert parse_prospects(MARKDOWN_TABLE.strip())[0].name == "Acme"
    assert parse_prospects("name,domain\nHooli,hooli.xyz")[0].domain == "hooli.xyz"


def test_import_applies_defaults_and_skips_owned_or_repeated_domains():
    repository = InMemoryProspectRepository()
    asyncio.run(
        repository.insert_company(
            "owner-1", Company(name="Acme", domain="acme.com", icp_score=80, confidence=80)
        )
    )
    rows = [
        ImportedProspect(name="Acme again", domain="https://acme.com"),
        ImportedProspect(name="Globex", domain="globex.io"),
        ImportedProspect(name="Globex dup", domain="www.globex.io"),
        ImportedProspect(name="Broken", domain="n/a"),
    ]

    report = asyncio.run(import_prospects(repository, "owner-1", rows))

    assert [c.domain for c in report.imported] == ["globex.io"]
    assert report.skipped == ["acme.com", "globex.io"]
    assert len(report.errors) == 1
    imported = report.imported[0]
    assert imported.source is ProspectSource.IMPORTED
    assert imported.icp_score == 70
    assert imported.confidence == 70
    assert imported.rationale == "Imported from external source"
    assert imported.evidence[0].url == "globex.io"
    assert report.to_wire()["imported"] == 1


def test_export_csv_quotes_every_field():
    company = Company(
        id=1,
        name='Acme "Labs"',
        domain="acme.com",
        source=ProspectSource.IMPORTED,
        icp_score=70,
        confidence=65,
        rationale="Fits, mostly",
    )

    lines = export_csv([company]).splitlines()

    assert lines[0] == (
        '"Name","Domain","Source","Source Customer Domain","ICP Score","Confidence","Status","Rationale"'
    )
    assert lines[1] == '"Acme ""Labs""","acme.com","imported","","70","65","New","Fits, mostly"'
