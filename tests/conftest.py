# ============================================================================
# FILE: tests/conftest.py
# ============================================================================
"""
Pytest configuration and shared fixtures for testing.

Inference calls never leave the process: FakeLLMClient replays scripted
responses and records the prompts it was given.
"""

import json
from typing import Any, Dict, List, Optional

import pytest

from clinical_extraction.core.record import (
    ExtractedRecord,
    PatientInfo,
    Diagnosis,
    Medication,
    Vital,
    LabValue,
)
from clinical_extraction.llm.base import BaseLLMClient, BackendType
from clinical_extraction.sections.section_detector import extract_clinical_sections
from clinical_extraction.utils.exceptions import InferenceConnectionError


class FakeLLMClient(BaseLLMClient):
    """
    Scripted inference client.

    responses:     texts returned by successive generate() calls
    stream_chunks: chunks yielded by generate_stream()
    models:        list returned by list_models(), or an exception to raise
    fail_on_call:  1-based call number that raises `error` instead
    """

    def __init__(
        self,
        responses: Optional[List[str]] = None,
        stream_chunks: Optional[List[str]] = None,
        models: Any = None,
        fail_on_call: Optional[int] = None,
        error: Optional[Exception] = None,
    ):
        super().__init__({"ollama_model": "fake-model"})
        self.responses = list(responses or [])
        self.stream_chunks = list(stream_chunks or [])
        self.models = [] if models is None else models
        self.fail_on_call = fail_on_call
        self.error = error or InferenceConnectionError("Cannot connect to inference service")
        self.prompts: List[str] = []
        self.requested_models: List[Optional[str]] = []

    @property
    def backend_type(self) -> BackendType:
        return BackendType.OLLAMA

    @property
    def model_name(self) -> str:
        return "fake-model"

    def _record_call(self, prompt: str, model: Optional[str]) -> None:
        self.prompts.append(prompt)
        self.requested_models.append(model)
        if self.fail_on_call == len(self.prompts):
            raise self.error

    async def generate(self, prompt, options=None, model=None) -> Dict[str, Any]:
        self._record_call(prompt, model)
        text = self.responses.pop(0) if self.responses else ""
        return {
            "text": text,
            "prompt_tokens": 0,
            "generated_tokens": 0,
            "model": model or self.model_name,
            "inference_time": 0.0,
        }

    async def generate_stream(self, prompt, options=None, model=None):
        self._record_call(prompt, model)
        for chunk in self.stream_chunks:
            yield chunk

    async def list_models(self) -> List[str]:
        if isinstance(self.models, Exception):
            raise self.models
        return list(self.models)

    async def health_check(self) -> Dict[str, Any]:
        return {"healthy": True, "backend": "ollama", "model": self.model_name, "details": "fake"}


@pytest.fixture
def fake_client_cls():
    """The scripted client class, for tests that build their own script."""
    return FakeLLMClient


@pytest.fixture
def sample_discharge_text():
    """Discharge summary with admission vitals at the top and discharge vitals at the bottom"""
    return """CITY GENERAL HOSPITAL
DISCHARGE SUMMARY
Patient Name: Ramesh Kumar   Age: 58   Sex: M
ABHA: 91-1234-5678-9012   Blood Group: B+   Ward: 7A
DOA: 02/03/2024   DOD: 08-03-2024
Consultant: Dr. Anil Mehta

VITALS: PR: 110/min BP: 160/100 mmHg TEMP: 101 F RR: 24/min SPO2: 92%

DIAGNOSIS: T2DM with Systemic Hypertension
CHIEF COMPLAINT: Fever and cough for 5 days
PAST HISTORY: K/C/O hypertension for 10 years

TREATMENT:
INJ. TAXIM 1G IV BD
TAB. METFORMIN 500MG 1-0-1
TAB. AMLONG 5MG OD
INJ. H INSULATARD 10-0-8 U
IV FLUIDS NS 100ML/HR

CONDITION AT DISCHARGE: Stable
VITALS AT DISCHARGE: PR: 88/min BP: 130/80 mmHg TEMP: 98.6 F RR: 18/min SPO2: 98% on RA

FOLLOW UP: Review after 1 week in medicine OPD
"""


@pytest.fixture
def sample_sections(sample_discharge_text):
    return extract_clinical_sections(sample_discharge_text)


@pytest.fixture
def multipass_responses():
    """Scripted responses for the three passes over sample_discharge_text"""
    pass1 = {
        "patient": {
            "name": "Ramesh Kumar", "age": "58", "sex": "M",
            "identifier": "91-1234-5678-9012", "bloodGroup": "B+",
            "hospital": "City General Hospital", "ward": "7A",
            "admission": "", "discharge": "N/A",
            "attending": "Dr. Anil Mehta", "chiefComplaint": "Fever and cough",
        },
        "diagnoses": [
            {"name": "T2DM", "icd": "", "snomed": "", "confidence": 90},
            {"name": "Systemic Hypertension", "icd": "I10", "snomed": "38341003", "confidence": 88},
        ],
        "vitals": [{"name": "PR (Pulse Rate)", "value": "200 /min", "confidence": 99}],
        "overallConfidence": 85,
    }
    pass2 = [
        {"name": "Taxim", "dosage": "1G IV BD", "route": "PO", "confidence": 90},
        {"name": "Metformin", "dosage": "500MG 1-0-1", "route": "IV", "confidence": 92},
        {"name": "Amlong", "dosage": "5MG OD", "route": "PO"},
    ]
    pass3 = {
        "procedures": [],
        "labValues": [
            {"test": "HbA1c", "value": "8.2", "unit": "%", "ref": "4-5.6", "status": "H", "loinc": "4548-4"},
            {"test": "Serum Creatinine", "value": "AS ENCLOSED", "unit": "", "ref": "", "status": "N", "loinc": ""},
        ],
        "dischargeInstructions": [{"label": "Diet", "value": "Diabetic diet", "confidence": 80}],
        "followUp": [{"label": "OPD", "value": "Review after 1 week", "confidence": 80}],
        "overallConfidence": 80,
    }
    return [
        json.dumps(pass1),
        "```json\n" + json.dumps(pass2) + "\n```",
        "Here is the extracted data:\n" + json.dumps(pass3),
    ]


@pytest.fixture
def coded_record():
    """Record where every diagnosis, medication timing and lab is coded"""
    return ExtractedRecord(
        patient=PatientInfo(
            name="Ramesh Kumar", age="58", sex="M", hospital="City General Hospital",
            admission="02/03/2024", discharge="08/03/2024", attending="Dr. Anil Mehta",
        ),
        diagnoses=[
            Diagnosis("Type 2 Diabetes Mellitus", "E11.9", "44054006", 90),
            Diagnosis("Systemic Hypertension", "I10", "38341003", 88),
            Diagnosis("Pneumonia", "J18.9", "233604007", 85),
            Diagnosis("Anaemia", "D64.9", "271737000", 80),
        ],
        medications=[
            Medication("Metformin", "500MG 1-0-1", "PO", 92),
            Medication("Taxim", "1G IV BD", "IV", 90),
            Medication("Amlong", "5MG OD", "PO", 85),
            Medication("Insulatard", "10-0-8 U", "SC", 88),
            Medication("Duolin", "2ML-2ML-2ML", "INH", 80),
            Medication("Pantoprazole", "40MG 1-0-0", "IV", 85),
        ],
        vitals=[Vital("PR (Pulse Rate)", "88 /MIN"), Vital("BP (Blood Pressure)", "130/80 MMHG")],
        lab_values=[
            LabValue(f"Test {i}", str(i), "mg/dL", "", "N", f"{1000 + i}-{i % 10}")
            for i in range(10)
        ],
    )
