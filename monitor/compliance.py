"""Per-package compliance flags (Staff RFB, CESMPS, OHS measures)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Mapping, Optional, Sequence, Tuple

from monitor.config import COMPLIANCE_HEADERS
from monitor.normalize import NO, UNKNOWN, YES, Row, YesNo, first_present, normalize_yes_no
from monitor.sheets import Worksheet


logger = logging.getLogger(__name__)

ComplianceStatus = Literal["COMPLIANT", "NON_COMPLIANT", "UNKNOWN"]
COMPLIANT: ComplianceStatus = "COMPLIANT"
NON_COMPLIANT: ComplianceStatus = "NON_COMPLIANT"
STATUS_UNKNOWN: ComplianceStatus = "UNKNOWN"

NOT_AVAILABLE_ISSUE = "Compliance data not available"
ALL_BLANK_ISSUE = "All compliance fields are blank"

# field -> (issue when unknown, issue when "No")
_ISSUE_TEXT: Dict[str, Tuple[str, str]] = {
    "staff_rfb": ("Staff RFB status unknown", "Staff RFB not submitted"),
    "cesmps_submitted": ("CESMPS submission status unknown", "CESMPS not submitted"),
    "ohs_measures": ("OHS measures status unknown", "OHS measures not in place"),
}
FIELDS: Tuple[str, ...] = tuple(_ISSUE_TEXT.keys())


@dataclass(frozen=True)
class ComplianceRecord:
    staff_rfb: YesNo = UNKNOWN
    cesmps_submitted: YesNo = UNKNOWN
    ohs_measures: YesNo = UNKNOWN
    status: ComplianceStatus = STATUS_UNKNOWN
    issues: Tuple[str, ...] = field(default_factory=tuple)


def unavailable_compliance() -> ComplianceRecord:
    return ComplianceRecord(issues=(NOT_AVAILABLE_ISSUE,))


def evaluate_compliance(staff_rfb: object, cesmps_submitted: object, ohs_measures: object) -> ComplianceRecord:
    """Normalize the three raw flags and derive status plus one issue per non-Yes flag."""
    values = {
        "staff_rfb": normalize_yes_no(staff_rfb),
        "cesmps_submitted": normalize_yes_no(cesmps_submitted),
        "ohs_measures": normalize_yes_no(ohs_measures),
    }
    if all(v == UNKNOWN for v in values.values()):
        return ComplianceRecord(**values, status=STATUS_UNKNOWN, issues=(ALL_BLANK_ISSUE,))

    issues: List[str] = []
    for name in FIELDS:
        value = values[name]
        if value == YES:
            continue
        unknown_text, no_text = _ISSUE_TEXT[name]
        issues.append(no_text if value == NO else unknown_text)

    status = COMPLIANT if not issues else NON_COMPLIANT
    return ComplianceRecord(**values, status=status, issues=tuple(issues))


def compliance_from_row(
    row: Optional[Row],
    headers: Optional[Mapping[str, Sequence[str]]] = None,
) -> ComplianceRecord:
    if row is None:
        return unavailable_compliance()
    headers = headers or COMPLIANCE_HEADERS
    raw = {name: first_present(row, headers.get(name, ())) for name in FIELDS}
    return evaluate_compliance(raw["staff_rfb"], raw["cesmps_submitted"], raw["ohs_measures"])


def extract_compliance(
    sheet: Optional[Worksheet],
    headers: Optional[Mapping[str, Sequence[str]]] = None,
    *,
    rows: Optional[Sequence[Row]] = None,
) -> ComplianceRecord:
    """Compliance for one package, read from the first data row of ``sheet``.

    ``rows`` may carry the already-built ``sheet.records()`` to avoid a second pass.
    """
    if sheet is None:
        return unavailable_compliance()
    if rows is None:
        rows = sheet.records()
    if not rows:
        logger.warning("No data row found in worksheet %r for compliance", sheet.name)
        return unavailable_compliance()
    return compliance_from_row(rows[0], headers)
