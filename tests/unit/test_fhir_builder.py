# ============================================================================
# FILE: tests/unit/test_fhir_builder.py
# ============================================================================
"""
Unit tests for FHIR Bundle Builder
"""

from collections import Counter

import pytest

from clinical_extraction.core.record import (
    ExtractedRecord,
    PatientInfo,
    LabValue,
    Procedure,
)
from clinical_extraction.fhir_utils.builder import FHIRBundleBuilder, _parse_date_to_fhir


@pytest.fixture
def builder():
    return FHIRBundleBuilder()


@pytest.fixture
def bundle_dict(builder, coded_record):
    return builder.to_dict(coded_record)


def _resources(bundle, resource_type):
    return [e["resource"] for e in bundle["entry"] if e["resource"]["resourceType"] == resource_type]


def test_bundle_is_collection(bundle_dict):
    assert bundle_dict["resourceType"] == "Bundle"
    assert bundle_dict["type"] == "collection"
    assert bundle_dict["identifier"]["value"].startswith("urn:uuid:")


def test_one_entry_per_resource(bundle_dict):
    counts = Counter(e["resource"]["resourceType"] for e in bundle_dict["entry"])
    assert sum(counts.values()) == 26
    assert counts == {
        "Patient": 1, "Organization": 1, "Practitioner": 1, "Encounter": 1,
        "Condition": 4, "MedicationRequest": 6, "Observation": 12,
    }


def test_patient_resource(bundle_dict):
    patient = _resources(bundle_dict, "Patient")[0]
    assert patient["name"][0]["family"] == "Kumar"
    assert patient["name"][0]["given"] == ["Ramesh"]
    assert patient["gender"] == "male"


def test_references_point_at_patient(bundle_dict):
    patient_url = bundle_dict["entry"][0]["fullUrl"]
    for condition in _resources(bundle_dict, "Condition"):
        assert condition["subject"]["reference"] == patient_url


def test_condition_codings(bundle_dict):
    condition = _resources(bundle_dict, "Condition")[1]
    systems = {c["system"]: c["code"] for c in condition["code"]["coding"]}
    assert systems["http://hl7.org/fhir/sid/icd-10"] == "I10"
    assert systems["http://snomed.info/sct"] == "38341003"


def test_medication_request_route(bundle_dict):
    metformin = _resources(bundle_dict, "MedicationRequest")[0]
    assert metformin["medication"]["concept"]["text"] == "Metformin"
    assert metformin["dosageInstruction"][0]["text"] == "500MG 1-0-1"
    assert metformin["dosageInstruction"][0]["route"]["coding"][0]["code"] == "26643006"


def test_encounter_period(bundle_dict):
    encounter = _resources(bundle_dict, "Encounter")[0]
    assert encounter["actualPeriod"]["start"] == "2024-03-02"
    assert encounter["actualPeriod"]["end"] == "2024-03-08"
    assert encounter["status"] == "completed"


def test_lab_observation_interpretation(builder):
    record = ExtractedRecord(
        patient=PatientInfo(name="Asha Rao", sex="F"),
        lab_values=[LabValue("TSH", "6.2", "uIU/mL", "0.4-4.0", "H", "3016-3")],
        procedures=[Procedure("Upper GI Endoscopy", findings="Mild gastritis")],
    )
    bundle = builder.to_dict(record)

    obs = _resources(bundle, "Observation")[0]
    assert obs["valueString"] == "6.2 uIU/mL"
    assert obs["interpretation"][0]["coding"][0]["code"] == "H"
    assert obs["referenceRange"][0]["text"] == "0.4-4.0"
    assert _resources(bundle, "Procedure")[0]["note"][0]["text"] == "Mild gastritis"


def test_no_encounter_without_context(builder):
    bundle = builder.to_dict(ExtractedRecord(patient=PatientInfo(name="Asha")))
    assert [e["resource"]["resourceType"] for e in bundle["entry"]] == ["Patient"]
    assert bundle["entry"][0]["resource"]["name"][0]["family"] == "Asha"


@pytest.mark.parametrize("value,expected", [
    ("02/03/2024", "2024-03-02"),
    ("2024-03-02", "2024-03-02"),
    ("02-03-2024", "2024-03-02"),
    ("sometime in March", None),
    ("", None),
])
def test_parse_date_to_fhir(value, expected):
    assert _parse_date_to_fhir(value) == expected
