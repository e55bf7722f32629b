# ============================================================================
# src/clinical_extraction/fhir_utils/validation_engine.py
# ============================================================================
"""
Validation & Scoring Engine

Pure function from an ExtractedRecord to a ValidationReport:

- resource tree: one Bundle node holding a typed node per resource
- validation issues: error / warning / info with resource path, profile
  path, short message, UI fix hint and full message
- compliance checklist
- per-type resource breakdown and total
- health score: 100 - 20*errors - 5*warnings - 1*info, floored at 0

No state, no I/O; safe to call repeatedly and concurrently.
"""

import re
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Any, Optional

from ..core.record import ExtractedRecord, Medication

logger = logging.getLogger(__name__)

SEVERITY_PENALTIES = {"error": 20, "warning": 5, "info": 1}

RESOURCE_TYPES = [
    "Patient", "Encounter", "Condition", "Procedure",
    "MedicationRequest", "Observation", "Practitioner", "Organization",
]

# Timing coding patterns accepted by the compliance profile
_DASH_SCHEDULE = re.compile(r"[\dO0]-[\dO0]-[\dO0]")
_VOLUME_SPLIT = re.compile(r"\d+ML-\d+ML-\d+ML")
_TIMING_TOKEN = re.compile(r"\b(?:OD|BD|TDS|QDS|SOS|STAT|Q\d{1,2}H)\b")

TIMING_EXEMPT_NAMES = {"iv fluids"}


class NodeStatus(str, Enum):
    PASS = "pass"
    WARNING = "warning"
    FAIL = "fail"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class TreeNode:
    type: str
    id: str
    status: NodeStatus = NodeStatus.PASS
    label: Optional[str] = None
    resource_count: Optional[int] = None
    children: List["TreeNode"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type, "id": self.id, "status": self.status.value}
        if self.label is not None:
            data["label"] = self.label
        if self.resource_count is not None:
            data["resourceCount"] = self.resource_count
        if self.children:
            data["children"] = [c.to_dict() for c in self.children]
        return data


@dataclass
class ValidationIssue:
    severity: Severity
    path: str
    fhir_path: str
    message: str
    fix_field: str
    full_message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.value,
            "path": self.path,
            "fhirPath": self.fhir_path,
            "message": self.message,
            "fixField": self.fix_field,
            "fullMessage": self.full_message,
        }


@dataclass
class ComplianceItem:
    label: str
    status: NodeStatus

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "status": self.status.value}


@dataclass
class ValidationReport:
    resource_tree: List[TreeNode] = field(default_factory=list)
    validation_issues: List[ValidationIssue] = field(default_factory=list)
    compliance_items: List[ComplianceItem] = field(default_factory=list)
    resource_breakdown: List[Dict[str, Any]] = field(default_factory=list)
    total_resources: int = 0
    health_score: int = 0

    def count(self, severity: Severity) -> int:
        return sum(1 for i in self.validation_issues if i.severity == severity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resourceTree": [n.to_dict() for n in self.resource_tree],
            "validationIssues": [i.to_dict() for i in self.validation_issues],
            "complianceItems": [c.to_dict() for c in self.compliance_items],
            "resourceBreakdown": list(self.resource_breakdown),
            "totalResources": self.total_resources,
            "healthScore": self.health_score,
        }


def compute_health_score(issues: List[ValidationIssue]) -> int:
    """100 minus 20 per error, 5 per warning, 1 per info; never below 0."""
    penalty = sum(SEVERITY_PENALTIES[Severity(i.severity).value] for i in issues)
    return max(0, 100 - penalty)


def has_coded_timing(dosage: str) -> bool:
    """
    True when dosage carries a timing pattern the profile can code.

    Accepted: a d-d-d schedule ("1-0-1"), a volume split
    ("10ML-10ML-10ML"), or a frequency abbreviation that accompanies a
    dose ("500MG BD"). A bare abbreviation such as "OD" is plain-text
    timing and is not accepted.
    """
    upper = (dosage or "").upper()
    if _DASH_SCHEDULE.search(upper) or _VOLUME_SPLIT.search(upper):
        return True
    if _TIMING_TOKEN.search(upper):
        remainder = _TIMING_TOKEN.sub("", upper)
        return bool(re.sub(r"[\s,./;:\-]+", "", remainder))
    return False


def _timing_exempt(med: Medication) -> bool:
    return not med.dosage.strip() or med.name.strip().lower() in TIMING_EXEMPT_NAMES


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "", text.lower())


class _ReportBuilder:
    def __init__(self):
        self.children: List[TreeNode] = []
        self.issues: List[ValidationIssue] = []
        self.compliance: List[ComplianceItem] = []
        self.breakdown: Dict[str, int] = {t: 0 for t in RESOURCE_TYPES}

    def resource(self, rtype: str, rid: str, label: str, status: NodeStatus = NodeStatus.PASS) -> None:
        self.breakdown[rtype] += 1
        self.children.append(TreeNode(type=rtype, id=rid, label=label, status=status))

    def issue(self, severity: Severity, path: str, fhir_path: str, message: str, fix_field: str, full: str) -> None:
        self.issues.append(ValidationIssue(severity, path, fhir_path, message, fix_field, full))

    def check(self, label: str, status: NodeStatus) -> None:
        self.compliance.append(ComplianceItem(label, status))

    def report(self) -> ValidationReport:
        total = sum(self.breakdown.values())
        has_error = any(i.severity == Severity.ERROR for i in self.issues)
        root = TreeNode(
            type="Bundle",
            id="Transaction",
            status=NodeStatus.FAIL if has_error else NodeStatus.PASS,
            resource_count=total,
            children=self.children,
        )
        return ValidationReport(
            resource_tree=[root],
            validation_issues=self.issues,
            compliance_items=self.compliance,
            resource_breakdown=[{"type": t, "count": c} for t, c in self.breakdown.items() if c > 0],
            total_resources=total,
            health_score=compute_health_score(self.issues),
        )


def build_validation_report(record: Optional[ExtractedRecord]) -> ValidationReport:
    """
    Score an extracted record against the compliance profile.

    Args:
        record: Finalised ExtractedRecord, or None

    Returns:
        ValidationReport; an all-zero empty report for None
    """
    if record is None:
        return ValidationReport()

    b = _ReportBuilder()
    patient = record.patient

    # Patient
    if patient.name:
        slug = _slug(patient.name)
        patient_id = f"patient-{slug}-001" if slug else "patient-001"
        b.resource("Patient", patient_id, patient.name)
        b.check("Patient resource present and valid", NodeStatus.PASS)
    else:
        b.check("Patient resource present and valid", NodeStatus.FAIL)
        b.issue(
            Severity.ERROR, "Patient/patient-001", "Patient.name",
            "Patient name is missing", "Demographics",
            "Patient resource must have a valid name.",
        )

    # Encounter / Organization
    if patient.hospital or patient.admission or patient.discharge:
        b.resource("Encounter", "enc-admit-001", "Hospital Admission")
        b.check("Encounter resource with valid period", NodeStatus.PASS)
    if patient.hospital:
        b.resource("Organization", "org-hospital-001", patient.hospital)

    # Practitioner
    if patient.attending:
        b.resource("Practitioner", "pract-attending-001", patient.attending)
        b.check("Practitioner resources with valid NMC identifiers", NodeStatus.PASS)
    else:
        b.check("Practitioner resources", NodeStatus.PASS)

    # Conditions
    all_coded = True
    for i, dx in enumerate(record.diagnoses, start=1):
        rid = f"cond-dx-{i}"
        if dx.icd:
            b.resource("Condition", rid, dx.name)
            continue
        all_coded = False
        b.resource("Condition", rid, dx.name, NodeStatus.WARNING)
        b.issue(
            Severity.WARNING, f"Condition/{rid}", "Condition.code",
            f"Missing ICD-10 code for '{dx.name}'", "Diagnoses",
            f"Condition '{dx.name}' is missing a standard ICD-10 code. "
            "It is recommended to include standard terminology.",
        )
    b.check("All Conditions have ICD-10 codes", NodeStatus.PASS if all_coded else NodeStatus.WARNING)

    # Procedures
    for i, proc in enumerate(record.procedures, start=1):
        b.resource("Procedure", f"proc-{i}", proc.name)

    # Medications
    timing_flagged = False
    for i, med in enumerate(record.medications, start=1):
        first_word = med.name.split(" ")[0].lower() if med.name else "med"
        rid = f"med-{first_word}-{i}"
        coded = has_coded_timing(med.dosage) or _timing_exempt(med)
        b.resource("MedicationRequest", rid, med.name, NodeStatus.PASS if coded else NodeStatus.WARNING)
        if coded:
            continue
        timing_flagged = True
        b.issue(
            Severity.WARNING, f"MedicationRequest/{rid}", "dosageInstruction.timing.code",
            f"Timing code format unrecognized - plain text value '{med.dosage}' used", "Medications",
            f"The dosage '{med.dosage}' is not mapped to a standard SNOMED CT timing code "
            "or recognized prescription pattern.",
        )
    b.check("MedicationRequest resources reference valid medications", NodeStatus.PASS)
    if timing_flagged:
        b.check(
            "MedicationRequest.dosageInstruction.timing - resource missing coded timing value",
            NodeStatus.WARNING,
        )

    # Observations: labs then vitals
    all_loinc = True
    for i, lab in enumerate(record.lab_values, start=1):
        rid = f"obs-lab-{i}"
        if lab.loinc:
            b.resource("Observation", rid, lab.test)
            continue
        all_loinc = False
        b.resource("Observation", rid, lab.test, NodeStatus.WARNING)
        b.issue(
            Severity.INFO, f"Observation/{rid}", "Observation.code",
            f"Missing LOINC code for '{lab.test}'", "Investigations",
            f"Laboratory observation '{lab.test}' lacks a standard LOINC code.",
        )
    for i, vital in enumerate(record.vitals, start=1):
        b.resource("Observation", f"obs-vital-{i}", vital.name)

    b.check("All Observations have LOINC codes", NodeStatus.PASS if all_loinc else NodeStatus.WARNING)
    b.check("Bundle.identifier present and unique", NodeStatus.PASS)

    report = b.report()
    logger.info(
        f"Validation: {report.total_resources} resources, "
        f"{report.count(Severity.ERROR)} errors, {report.count(Severity.WARNING)} warnings, "
        f"{report.count(Severity.INFO)} info, health {report.health_score}"
    )
    return report
