# ============================================================================
# FILE: tests/unit/test_validation_engine.py
# ============================================================================
"""
Tests for the validation and scoring engine
"""

import copy
from dataclasses import replace

import pytest

from clinical_extraction.core.record import (
    ExtractedRecord,
    PatientInfo,
    Diagnosis,
    Medication,
    LabValue,
    Procedure,
)
from clinical_extraction.fhir_utils.validation_engine import (
    NodeStatus,
    Severity,
    ValidationIssue,
    build_validation_report,
    compute_health_score,
    has_coded_timing,
)


def _issue(severity):
    return ValidationIssue(severity, "Patient/p", "Patient.name", "m", "Demographics", "full")


def _item(report, label):
    return next(c for c in report.compliance_items if c.label == label)


@pytest.fixture
def dolo_record():
    return ExtractedRecord(
        patient=PatientInfo(name="Asha Rao", hospital="District Hospital", admission="01/01/2024"),
        medications=[Medication("Dolo 650", "OD", "PO", 80)],
    )


# ============================================================================
# FULLY CODED RECORD
# ============================================================================

class TestCodedRecord:
    def test_no_issues(self, coded_record):
        report = build_validation_report(coded_record)
        assert report.validation_issues == []
        assert report.health_score == 100

    def test_resource_breakdown(self, coded_record):
        report = build_validation_report(coded_record)
        assert report.resource_breakdown == [
            {"type": "Patient", "count": 1},
            {"type": "Encounter", "count": 1},
            {"type": "Condition", "count": 4},
            {"type": "MedicationRequest", "count": 6},
            {"type": "Observation", "count": 12},
            {"type": "Practitioner", "count": 1},
            {"type": "Organization", "count": 1},
        ]
        assert report.total_resources == 26

    def test_resource_tree(self, coded_record):
        report = build_validation_report(coded_record)
        root = report.resource_tree[0]

        assert (root.type, root.id, root.status) == ("Bundle", "Transaction", NodeStatus.PASS)
        assert root.resource_count == 26
        ids = [c.id for c in root.children]
        assert ids[0] == "patient-rameshkumar-001"
        assert "med-metformin-1" in ids
        assert "obs-vital-2" in ids
        assert all(c.status == NodeStatus.PASS for c in root.children)

    def test_compliance_all_pass(self, coded_record):
        report = build_validation_report(coded_record)
        assert all(c.status == NodeStatus.PASS for c in report.compliance_items)
        labels = [c.label for c in report.compliance_items]
        assert "Practitioner resources with valid NMC identifiers" in labels
        assert labels[-1] == "Bundle.identifier present and unique"

    def test_serialized_shape(self, coded_record):
        data = build_validation_report(coded_record).to_dict()
        assert set(data) == {
            "resourceTree", "validationIssues", "complianceItems",
            "resourceBreakdown", "totalResources", "healthScore",
        }
        assert data["resourceTree"][0]["resourceCount"] == 26
        assert data["resourceTree"][0]["children"][0]["label"] == "Ramesh Kumar"


# ============================================================================
# FINDINGS
# ============================================================================

class TestFindings:
    def test_plain_text_timing_is_one_warning(self, dolo_record):
        report = build_validation_report(dolo_record)

        assert report.health_score == 95
        assert len(report.validation_issues) == 1
        issue = report.validation_issues[0]
        assert issue.severity == Severity.WARNING
        assert issue.path == "MedicationRequest/med-dolo-1"
        assert issue.fix_field == "Medications"
        assert "'OD'" in issue.message

        node = next(c for c in report.resource_tree[0].children if c.id == "med-dolo-1")
        assert node.status == NodeStatus.WARNING
        timing = _item(report, "MedicationRequest.dosageInstruction.timing - resource missing coded timing value")
        assert timing.status == NodeStatus.WARNING

    def test_missing_patient_name_is_error(self, coded_record):
        record = replace(coded_record, patient=replace(coded_record.patient, name=""))
        report = build_validation_report(record)

        assert report.health_score == 80
        issue = report.validation_issues[0]
        assert (issue.severity, issue.path, issue.fhir_path) == (Severity.ERROR, "Patient/patient-001", "Patient.name")
        assert report.resource_tree[0].status == NodeStatus.FAIL
        assert _item(report, "Patient resource present and valid").status == NodeStatus.FAIL
        assert report.total_resources == 25

    def test_missing_icd_is_warning(self):
        record = ExtractedRecord(
            patient=PatientInfo(name="Asha Rao"),
            diagnoses=[Diagnosis("Dengue Fever")],
        )
        report = build_validation_report(record)

        assert report.health_score == 95
        assert report.validation_issues[0].fhir_path == "Condition.code"
        assert _item(report, "All Conditions have ICD-10 codes").status == NodeStatus.WARNING

    def test_missing_loinc_is_info(self):
        record = ExtractedRecord(
            patient=PatientInfo(name="Asha Rao"),
            lab_values=[LabValue("Serum Sodium", "134", "mmol/L")],
        )
        report = build_validation_report(record)

        assert report.health_score == 99
        assert report.count(Severity.INFO) == 1
        assert report.resource_tree[0].status == NodeStatus.PASS

    def test_exempt_medications(self):
        record = ExtractedRecord(
            patient=PatientInfo(name="Asha Rao"),
            medications=[Medication("IV Fluids", "NS 100ML/HR", "IV"), Medication("Vitamin C", "", "PO")],
        )
        report = build_validation_report(record)

        assert report.validation_issues == []
        assert all(c.status == NodeStatus.PASS for c in report.resource_tree[0].children)

    def test_no_encounter_without_context(self):
        report = build_validation_report(ExtractedRecord(patient=PatientInfo(name="Asha Rao")))
        assert report.resource_breakdown == [{"type": "Patient", "count": 1}]
        assert _item(report, "Practitioner resources").status == NodeStatus.PASS

    def test_procedures_counted(self):
        record = ExtractedRecord(
            patient=PatientInfo(name="Asha Rao"),
            procedures=[Procedure("Laparoscopic Cholecystectomy")],
        )
        report = build_validation_report(record)
        assert {"type": "Procedure", "count": 1} in report.resource_breakdown
        assert report.resource_tree[0].children[1].id == "proc-1"


def test_none_record_gives_empty_report():
    report = build_validation_report(None)
    assert report.total_resources == 0
    assert report.health_score == 0
    assert report.resource_tree == []


def test_report_is_pure(coded_record):
    snapshot = copy.deepcopy(coded_record)
    first = build_validation_report(coded_record).to_dict()
    second = build_validation_report(coded_record).to_dict()

    assert first == second
    assert coded_record == snapshot


# ============================================================================
# TIMING CODES
# ============================================================================

@pytest.mark.parametrize("dosage,expected", [
    ("500MG 1-0-1", True),
    ("10-0-8 U", True),
    ("1-O-1", True),
    ("2ML-2ML-2ML", True),
    ("1G IV BD", True),
    ("650MG TDS", True),
    ("40MG Q8H", True),
    ("OD", False),
    ("BD", False),
    ("once daily", False),
    ("", False),
])
def test_has_coded_timing(dosage, expected):
    assert has_coded_timing(dosage) is expected


# ============================================================================
# HEALTH SCORE
# ============================================================================

def test_health_score_weights():
    assert compute_health_score([]) == 100
    assert compute_health_score([_issue(Severity.ERROR)]) == 80
    assert compute_health_score([_issue(Severity.WARNING)]) == 95
    assert compute_health_score([_issue(Severity.INFO)]) == 99


def test_health_score_floored_at_zero():
    assert compute_health_score([_issue(Severity.ERROR)] * 6) == 0


def test_health_score_monotonic():
    issues = []
    previous = compute_health_score(issues)
    for severity in [Severity.INFO, Severity.WARNING, Severity.ERROR] * 3:
        issues.append(_issue(severity))
        score = compute_health_score(issues)
        assert score <= previous
        previous = score
