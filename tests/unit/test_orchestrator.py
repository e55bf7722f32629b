# ============================================================================
# FILE: tests/unit/test_orchestrator.py
# ============================================================================
"""
Unit tests for the extraction orchestrator
"""

import json
import logging

import pytest

from clinical_extraction.core.json_parser import ParseStatus
from clinical_extraction.core.orchestrator import ExtractionOrchestrator, ExtractionStage
from clinical_extraction.core.progress import ProgressChannel, TOKEN_STAGE
from clinical_extraction.sections.section_detector import extract_clinical_sections
from clinical_extraction.utils.exceptions import InferenceConnectionError, InferenceTimeoutError


SHORT_NOTE = (
    "PATIENT: Sita Devi, 45 years, female. Admitted with high grade fever and body ache "
    "for three days. Given TAB PARACETAMOL 650MG TDS and oral fluids. Improved and sent home. "
    "Review in OPD after 5 days. BP: 120/80 PR: 76"
)

SINGLE_PASS_RESPONSE = json.dumps({
    "patient": {"name": "Sita Devi", "age": "45", "sex": "F"},
    "diagnoses": [{"name": "Fever", "icd": "", "snomed": ""}],
    "medications": [{"name": "Paracetamol", "dosage": "650MG TDS", "route": "oral"}],
    "vitals": [{"name": "Temperature", "value": "104 F"}],
    "labValues": [],
    "procedures": [],
    "dischargeInstructions": [],
    "followUp": [{"label": "OPD", "value": "Review after 5 days"}],
    "overallConfidence": 75,
})

LAB_REPORT = (
    "CITY DIAGNOSTICS LAB\nPATIENT: Meena Sharma  Age: 39  Sex: F\nHAEMATOLOGY REPORT\n"
    "Hemoglobin 9.8 g/dL (12-15) LOW\nTSH 6.2 uIU/mL (0.4-4.0) HIGH\n"
    "Serum creatinine: as attached\nEnd of report"
)

LAB_RESPONSE = json.dumps({
    "patient": {"name": "Meena Sharma", "age": "39", "sex": "F"},
    "diagnoses": [],
    "medications": [],
    "labValues": [
        {"test": "Hemoglobin", "value": "9.8", "unit": "g/dL", "ref": "12-15", "status": "L", "loinc": "718-7"},
        {"test": "TSH", "value": "6.2", "unit": "uIU/mL", "ref": "0.4-4.0", "status": "High", "loinc": "3016-3"},
        {"test": "Serum Creatinine", "value": "As attached"},
    ],
    "procedures": [],
    "dischargeInstructions": [],
    "followUp": [],
    "overallConfidence": 88,
})


def _chunks(text, size=12):
    return [text[i:i + size] for i in range(0, len(text), size)]


# ============================================================================
# MULTI-PASS
# ============================================================================

@pytest.mark.asyncio
async def test_multi_pass_extraction(fake_client_cls, multipass_responses, sample_sections):
    client = fake_client_cls(responses=multipass_responses)
    orchestrator = ExtractionOrchestrator(client)

    record = await orchestrator.extract_with_sections(sample_sections)

    assert len(client.prompts) == 3
    assert orchestrator.stage == ExtractionStage.DONE
    assert [p.status for p in orchestrator.passes] == [ParseStatus.PARSED] * 3

    assert record.patient.name == "Ramesh Kumar"
    assert record.patient.admission == "02/03/2024"
    assert record.patient.discharge == "08/03/2024"
    assert [d.name for d in record.diagnoses] == ["Type 2 Diabetes Mellitus", "Systemic Hypertension"]
    assert [(m.name, m.route) for m in record.medications] == [
        ("Taxim", "IV"), ("Metformin", "PO"), ("Amlong", "PO"),
        ("Insulatard", "SC"), ("IV Fluids", "IV"),
    ]
    assert [l.test for l in record.lab_values] == ["HbA1c"]
    assert record.discharge_instructions[0].value == "Diabetic diet"
    assert record.overall_confidence == 81


@pytest.mark.asyncio
async def test_model_vitals_never_used(fake_client_cls, multipass_responses, sample_sections):
    client = fake_client_cls(responses=multipass_responses)
    record = await ExtractionOrchestrator(client).extract_with_sections(sample_sections)

    values = {v.name: v.value for v in record.vitals}
    assert values["PR (Pulse Rate)"] == "88 /MIN"
    assert all(v.confidence == 95 for v in record.vitals)


@pytest.mark.asyncio
async def test_section_text_routed_to_passes(fake_client_cls, multipass_responses, sample_sections):
    client = fake_client_cls(responses=multipass_responses)
    await ExtractionOrchestrator(client).extract_with_sections(sample_sections)

    pass1, pass2, pass3 = client.prompts
    assert "T2DM with Systemic Hypertension" in pass1
    assert "INJ. TAXIM 1G IV BD" in pass2
    assert "Review after 1 week" in pass3
    assert '"vitals"' in pass1


@pytest.mark.asyncio
async def test_model_identifier_passed_through(fake_client_cls, multipass_responses, sample_sections):
    client = fake_client_cls(responses=multipass_responses)
    await ExtractionOrchestrator(client, model="llama3.1:8b").extract_with_sections(sample_sections)
    assert client.requested_models == ["llama3.1:8b"] * 3


@pytest.mark.asyncio
async def test_stage_progress_in_order(fake_client_cls, multipass_responses, sample_sections):
    client = fake_client_cls(responses=multipass_responses)
    progress = ProgressChannel()
    await ExtractionOrchestrator(client, progress=progress).extract_with_sections(sample_sections)

    assert [e.stage for e in progress.events()] == [
        ExtractionStage.PATIENT_AND_DIAGNOSES.value,
        ExtractionStage.MEDICATIONS.value,
        ExtractionStage.PROCEDURES_AND_DISCHARGE.value,
        ExtractionStage.DETERMINISTIC_MERGE.value,
        ExtractionStage.DONE.value,
    ]


@pytest.mark.asyncio
async def test_unparseable_pass_degrades_to_empty(fake_client_cls, sample_sections):
    """A garbled response empties that pass; the run still completes"""
    client = fake_client_cls(responses=["Sorry, I cannot do that.", "[]", "{}"])
    orchestrator = ExtractionOrchestrator(client)

    record = await orchestrator.extract_with_sections(sample_sections)

    assert orchestrator.passes[0].status == ParseStatus.FAILED
    assert orchestrator.stage == ExtractionStage.DONE
    assert record.patient.name == ""
    assert record.diagnoses == []
    assert record.patient.admission == "02/03/2024"
    assert [m.name for m in record.medications] == ["Insulatard", "IV Fluids"]


@pytest.mark.asyncio
async def test_transport_failure_aborts(fake_client_cls, multipass_responses, sample_sections):
    client = fake_client_cls(responses=multipass_responses, fail_on_call=2)
    progress = ProgressChannel()
    orchestrator = ExtractionOrchestrator(client, progress=progress)

    with pytest.raises(InferenceConnectionError):
        await orchestrator.extract_with_sections(sample_sections)

    assert len(client.prompts) == 2
    assert orchestrator.stage == ExtractionStage.FAILED
    assert progress.last.stage == ExtractionStage.FAILED.value


@pytest.mark.asyncio
async def test_log_records_carry_stage(fake_client_cls, multipass_responses, sample_sections, caplog):
    caplog.set_level(logging.INFO, logger="ExtractionOrchestrator")
    client = fake_client_cls(responses=multipass_responses)

    await ExtractionOrchestrator(client).extract_with_sections(sample_sections)

    stages = {getattr(r, "stage", None) for r in caplog.records}
    assert ExtractionStage.MEDICATIONS.value in stages
    assert ExtractionStage.DONE.value in stages
    pass_names = [r.pass_name for r in caplog.records if hasattr(r, "pass_name")]
    assert pass_names == [
        ExtractionStage.PATIENT_AND_DIAGNOSES.value,
        ExtractionStage.MEDICATIONS.value,
        ExtractionStage.PROCEDURES_AND_DISCHARGE.value,
    ]


@pytest.mark.asyncio
async def test_unparseable_pass_warning_carries_pass_name(fake_client_cls, sample_sections, caplog):
    caplog.set_level(logging.INFO, logger="ExtractionOrchestrator")
    client = fake_client_cls(responses=["Sorry, I cannot do that.", "[]", "{}"])

    await ExtractionOrchestrator(client).extract_with_sections(sample_sections)

    warnings = [r for r in caplog.records if r.name == "ExtractionOrchestrator" and r.levelno == logging.WARNING]
    assert warnings[0].pass_name == ExtractionStage.PATIENT_AND_DIAGNOSES.value
    assert warnings[0].stage == ExtractionStage.PATIENT_AND_DIAGNOSES.value


@pytest.mark.asyncio
async def test_abort_logged_with_failed_stage(fake_client_cls, multipass_responses, sample_sections, caplog):
    client = fake_client_cls(responses=multipass_responses, fail_on_call=2)

    with pytest.raises(InferenceConnectionError):
        await ExtractionOrchestrator(client).extract_with_sections(sample_sections)

    errors = [r for r in caplog.records if r.name == "ExtractionOrchestrator" and r.levelno == logging.ERROR]
    assert errors[-1].stage == ExtractionStage.FAILED.value
    assert errors[-1].pass_name == ExtractionStage.MEDICATIONS.value


# ============================================================================
# SINGLE-PASS (STREAMING)
# ============================================================================

@pytest.mark.asyncio
async def test_single_pass_streaming(fake_client_cls):
    client = fake_client_cls(stream_chunks=_chunks(SINGLE_PASS_RESPONSE))
    orchestrator = ExtractionOrchestrator(client)

    record = await orchestrator.extract_single_pass(SHORT_NOTE)

    assert orchestrator.stage == ExtractionStage.DONE
    assert record.patient.name == "Sita Devi"
    assert [(m.name, m.route) for m in record.medications] == [("Paracetamol", "PO")]
    assert {v.name: v.value for v in record.vitals} == {
        "PR (Pulse Rate)": "76",
        "BP (Blood Pressure)": "120/80",
    }


@pytest.mark.asyncio
async def test_single_pass_token_progress_coalesced(fake_client_cls):
    client = fake_client_cls(stream_chunks=_chunks(SINGLE_PASS_RESPONSE))
    progress = ProgressChannel(min_interval=0.5, clock=lambda: 0.0)

    await ExtractionOrchestrator(client, progress=progress).extract_single_pass(SHORT_NOTE)

    tokens = [e for e in progress.events() if e.stage == TOKEN_STAGE]
    assert len(tokens) == 1
    assert progress.last.stage == ExtractionStage.DONE.value


@pytest.mark.asyncio
async def test_single_pass_truncated_stream_repaired(fake_client_cls):
    truncated = SINGLE_PASS_RESPONSE[:SINGLE_PASS_RESPONSE.index('"procedures"') + 20]
    client = fake_client_cls(stream_chunks=_chunks(truncated))
    orchestrator = ExtractionOrchestrator(client)

    record = await orchestrator.extract_single_pass(SHORT_NOTE)

    assert orchestrator.passes[0].status == ParseStatus.REPAIRED
    assert record.patient.name == "Sita Devi"
    assert record.follow_up == []


@pytest.mark.asyncio
async def test_single_pass_stream_failure(fake_client_cls):
    client = fake_client_cls(fail_on_call=1, error=InferenceTimeoutError("stream timed out"))
    orchestrator = ExtractionOrchestrator(client)

    with pytest.raises(InferenceTimeoutError):
        await orchestrator.extract_single_pass(SHORT_NOTE)
    assert orchestrator.stage == ExtractionStage.FAILED


# ============================================================================
# DIAGNOSTIC REPORT
# ============================================================================

@pytest.mark.asyncio
async def test_diagnostic_report(fake_client_cls):
    client = fake_client_cls(responses=[LAB_RESPONSE])
    orchestrator = ExtractionOrchestrator(client)

    record = await orchestrator.extract_diagnostic_report(LAB_REPORT, extract_clinical_sections(LAB_REPORT))

    assert len(client.prompts) == 1
    assert "Hemoglobin 9.8" in client.prompts[0]
    assert record.patient.name == "Meena Sharma"
    assert [(l.test, l.status) for l in record.lab_values] == [("Hemoglobin", "L"), ("TSH", "H")]
    assert record.vitals == []
