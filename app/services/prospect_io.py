"""Bulk import parsing (markdown table or CSV) and CSV export of prospects."""

from __future__ import annotations

import csv
import io
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from app.models.prospect import Company, Evidence, ProspectSource
from app.models.requests import ImportedProspect
from app.observability.metrics import metrics
from app.services.discovery.domains import is_invalid_domain, normalize_domain
from app.services.repositories import DuplicateDomainError, PersistenceError, ProspectRepository

logger = logging.getLogger(__name__)

DEFAULT_IMPORT_SCORE = 70
DEFAULT_IMPORT_CONFIDENCE = 70
IMPORT_RATIONALE = "Imported from external source"
IMPORT_EVIDENCE_SNIPPET = "External import - pending analysis"

EXPORT_HEADERS = (
    "Name",
    "Domain",
    "Source",
    "Source Customer Domain",
    "ICP Score",
    "Confidence",
    "Status",
    "Rationale",
)

_LEADING_INT = re.compile(r"^\s*(-?\d+)")


class ImportFormatError(ValueError):
    """Raised when pasted or uploaded text cannot be read as a prospect table."""


def _leading_int(value: str | None) -> int | None:
    match = _LEADING_INT.match(value or "")
    if not match:
        return None
    return max(0, min(100, int(match.group(1))))


def _build(name: str, domain_raw: str, based_on: str | None, confidence: str | None, icp: str | None):
    name = (name or "").strip()
    domain = normalize_domain(domain_raw)
    if not name or not domain:
        return None
    return ImportedProspect(
        name=name,
        domain=domain,
        source_customer_domain=(based_on or "").strip() or None,
        confidence=_leading_int(confidence),
        icp_score=_leading_int(icp),
    )


def _table_cells(line: str) -> list[str]:
    return [cell.strip() for cell in line.split("|")[1:-1]]


def parse_markdown_table(text: str) -> list[ImportedProspect]:
    """Parse `| Name | Domain | Based on | Confidence | ICP Fit |` tables."""
    if not text or not text.strip():
        return []
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if len(lines) < 3:
        raise ImportFormatError("Invalid table format: needs at least header, separator, and one data row")
    header = lines[0]
    if not (header.startswith("|") and header.endswith("|")):
        raise ImportFormatError("Invalid table format: header must start and end with |")

    headers = [cell.lower() for cell in _table_cells(header)]

    def _index(predicate) -> int:
        return next((i for i, h in enumerate(headers) if predicate(h)), -1)

    name_idx = _index(lambda h: h == "name")
    domain_idx = _index(lambda h: h == "domain")
    based_idx = _index(lambda h: "based" in h)
    confidence_idx = _index(lambda h: h == "confidence")
    icp_idx = _index(lambda h: "icp" in h or "fit" in h or "score" in h)
    if name_idx == -1 or domain_idx == -1:
        raise ImportFormatError('Table must have "Name" and "Domain" columns')

    def _cell(cells: list[str], index: int) -> str | None:
        return cells[index] if 0 <= index < len(cells) else None

    prospects: list[ImportedProspect] = []
    for line in lines[2:]:
        if not (line.startswith("|") and line.endswith("|")):
            continue
        cells = _table_cells(line)
        if len(cells) < 2:
            continue
        prospect = _build(
            _cell(cells, name_idx) or "",
            _cell(cells, domain_idx) or "",
            _cell(cells, based_idx),
            _cell(cells, confidence_idx),
            _cell(cells, icp_idx),
        )
        if prospect:
            prospects.append(prospect)
    return prospects


def parse_csv(text: str) -> list[ImportedProspect]:
    """Parse CSV with flexible headers (name/company, domain/website/url, ...)."""
    reader = csv.DictReader(io.StringIO(text or ""))
    if reader.fieldnames is None:
        return []
    prospects: list[ImportedProspect] = []
    for raw_row in reader:
        row = {
            key.strip().lower(): (value or "") for key, value in raw_row.items() if key is not None
        }
        if not any(value.strip() for value in row.values()):
            continue
        prospect = _build(
            row.get("name") or row.get("company") or row.get("company name") or "",
            row.get("domain") or row.get("website") or row.get("url") or "",
            row.get("based on") or row.get("source") or row.get("source customer"),
            row.get("confidence"),
            row.get("icp fit") or row.get("icp score") or row.get("icpscore"),
        )
        if prospect:
            prospects.append(prospect)
    return prospects


def parse_prospects(text: str) -> list[ImportedProspect]:
    """Detect markdown tables by a leading pipe; everything else is read as CSV."""
    if (text or "").lstrip().startswith("|"):
        return parse_markdown_table(text)
    return parse_csv(text)


def imported_company(prospect: ImportedProspect) -> Company:
    domain = normalize_domain(prospect.domain)
    return Company(
        name=prospect.name.strip(),
        domain=domain,
        source=ProspectSource.IMPORTED,
        source_customer_domain=prospect.source_customer_domain,
        icp_score=prospect.icp_score if prospect.icp_score is not None else DEFAULT_IMPORT_SCORE,
        confidence=prospect.confidence if prospect.confidence is not None else DEFAULT_IMPORT_CONFIDENCE,
        rationale=IMPORT_RATIONALE,
        evidence=[Evidence(url=domain, snippet=IMPORT_EVIDENCE_SNIPPET)],
    )


@dataclass
class ImportReport:
    imported: list[Company] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_wire(self) -> dict:
        return {
            "imported": len(self.imported),
            "skipped": len(self.skipped),
            "skippedDomains": list(self.skipped),
            "errors": list(self.errors),
            "prospects": [company.to_wire() for company in self.imported],
        }


async def import_prospects(
    repository: ProspectRepository,
    owner_id: str,
    prospects: Sequence[ImportedProspect],
) -> ImportReport:
    """Persist imported prospects; owned or repeated domains are skipped, not failed."""
    report = ImportReport()
    seen = {domain.strip().lower() for domain in await repository.list_domains(owner_id)}
    for prospect in prospects:
        company = imported_company(prospect)
        if is_invalid_domain(company.domain):
            report.errors.append(f"{prospect.name}: invalid domain {prospect.domain!r}")
            continue
        if company.domain in seen:
            report.skipped.append(company.domain)
            continue
        try:
            stored = await repository.insert_company(owner_id, company)
        except DuplicateDomainError:
            report.skipped.append(company.domain)
            continue
        except PersistenceError as exc:
            report.errors.append(f"{prospect.name}: {exc}")
            continue
        seen.add(company.domain)
        report.imported.append(stored)

    metrics.increment("import.prospects_imported", len(report.imported))
    logger.info(
        "import.completed",
        extra={
            "owner_id": owner_id,
            "imported": len(report.imported),
            "skipped": len(report.skipped),
            "errors": len(report.errors),
        },
    )
    return report


def export_csv(companies: Sequence[Company]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    for company in companies:
        writer.writerow(
            [
                company.name,
                company.domain,
                company.source.value,
                company.source_customer_domain or "",
                company.icp_score,
                company.confidence,
                company.status.value,
                company.rationale,
            ]
        )
    return buffer.getvalue()
