# ============================================================================
# FILE: tests/unit/test_json_parser.py
# ============================================================================
"""
Unit tests for the lenient structured-output parser
"""

import json

from clinical_extraction.core.json_parser import (
    ParseStatus,
    REPAIRED_CONFIDENCE,
    parse_json_object,
    parse_json_array,
    strip_fences,
)


def test_plain_object_parsed():
    result = parse_json_object('{"patient": {"name": "Ramesh"}, "diagnoses": []}')
    assert result.status == ParseStatus.PARSED
    assert result.ok
    assert result.data["patient"]["name"] == "Ramesh"
    assert result.defaulted_fields == []


def test_fenced_object_with_preamble():
    text = 'Sure! Here is the JSON:\n```json\n{"diagnoses": [{"name": "T2DM"}]}\n```\nLet me know.'
    result = parse_json_object(text)
    assert result.status == ParseStatus.PARSED
    assert result.data["diagnoses"][0]["name"] == "T2DM"


def test_truncated_object_reclosed_with_defaults():
    """Cut off mid-procedures: earlier fields survive, later ones default"""
    text = (
        '{"patient":{"name":"Ramesh"},"diagnoses":[{"name":"T2DM"}],'
        '"medications":[{"name":"Metformin","dosage":"1-0-1"}],"labValues":[],'
        '"procedures":[{"name":"Lapar'
    )
    result = parse_json_object(text)

    assert result.status == ParseStatus.REPAIRED
    assert result.defaulted_fields == ["procedures", "dischargeInstructions", "followUp"]
    assert result.data["medications"][0]["name"] == "Metformin"
    assert result.data["procedures"] == []
    assert result.data["followUp"] == []
    assert result.data["overallConfidence"] == REPAIRED_CONFIDENCE


def test_truncated_after_patient_defaults_patient_fields_pass():
    text = '{"patient":{"name":"Ramesh","age":"58"},"diagnoses":[{"name":"T2D'
    result = parse_json_object(text, ("patient", "diagnoses"))
    assert result.status == ParseStatus.REPAIRED
    assert result.data["patient"]["name"] == "Ramesh"
    assert result.data["diagnoses"] == []
    assert result.defaulted_fields == ["diagnoses"]


def test_no_json_fails():
    result = parse_json_object("I am unable to extract data from this document.")
    assert result.status == ParseStatus.FAILED
    assert not result.ok
    assert result.data is None
    assert result.error


def test_array_parsed():
    result = parse_json_array('```json\n[{"name": "Taxim", "dosage": "1G BD"}]\n```')
    assert result.status == ParseStatus.PARSED
    assert result.data == [{"name": "Taxim", "dosage": "1G BD"}]


def test_array_wrapped_in_object_unwrapped():
    result = parse_json_array(json.dumps({"medications": [{"name": "Taxim"}]}))
    assert result.ok
    assert result.data == [{"name": "Taxim"}]


def test_truncated_array_repaired():
    result = parse_json_array('[{"name":"Taxim","dosage":"1G"},{"name":"Metfor')
    assert result.status == ParseStatus.REPAIRED
    assert result.data[0] == {"name": "Taxim", "dosage": "1G"}


def test_array_without_json_fails():
    result = parse_json_array("No medications were found.")
    assert result.status == ParseStatus.FAILED
    assert result.data is None


def test_strip_fences():
    assert strip_fences("```json\n{}\n```") == "{}"
    assert strip_fences(None) == ""
