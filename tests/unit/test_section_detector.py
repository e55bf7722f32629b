# ============================================================================
# FILE: tests/unit/test_section_detector.py
# ============================================================================
"""
Unit tests for section detection and the input-quality gate
"""

from clinical_extraction.sections.section_detector import (
    ClinicalSections,
    HEADER_CHARS,
    SECTION_RULES,
    extract_clinical_sections,
    assess_text_quality,
    count_usable_chars,
    has_clinical_content,
)


def test_diagnosis_window(sample_sections):
    """Diagnosis window runs from its marker to the next end marker"""
    assert sample_sections.diagnosis.startswith("DIAGNOSIS:")
    assert "T2DM" in sample_sections.diagnosis
    assert "CHIEF COMPLAINT" not in sample_sections.diagnosis


def test_medication_window(sample_sections):
    assert sample_sections.medications.startswith("TREATMENT:")
    assert "INSULATARD" in sample_sections.medications
    assert "IV FLUIDS" in sample_sections.medications
    assert "CONDITION AT DISCHARGE" not in sample_sections.medications


def test_follow_up_and_discharge_windows(sample_sections):
    assert sample_sections.follow_up.startswith("FOLLOW UP")
    assert sample_sections.discharge.startswith("CONDITION AT DISCHARGE")
    assert "FOLLOW UP" not in sample_sections.discharge


def test_vitals_window_includes_discharge_condition(sample_sections):
    assert "VITALS: PR: 110" in sample_sections.vitals
    assert "VITALS AT DISCHARGE" in sample_sections.vitals


def test_header_and_raw(sample_discharge_text, sample_sections):
    assert sample_sections.raw == sample_discharge_text
    assert sample_sections.header == sample_discharge_text[:HEADER_CHARS]


def test_missing_section_is_empty(sample_sections):
    assert sample_sections.procedures == ""
    assert sample_sections.investigations == ""


def test_windows_are_substrings_of_source(sample_discharge_text, sample_sections):
    for name, value in sample_sections.to_dict().items():
        if name == "vitals":
            continue
        assert value in sample_discharge_text, name


def test_windows_stay_substrings_with_expanding_characters():
    """Upper-casing "ß" to "SS" must not shift the cut points."""
    text = (
        "Patient: Herr Großmann-Weißbach, Straße 12\n"
        "DIAGNOSIS: Acute gastritis\n"
        "BRIEF HISTORY: epigastric pain for two days\n"
    )
    sections = extract_clinical_sections(text)
    assert sections.diagnosis == "DIAGNOSIS: Acute gastritis"
    for name, value in sections.to_dict().items():
        if name == "vitals":
            continue
        assert value in text, name


def test_window_capped_at_max_length():
    text = "DIAGNOSIS: " + "x" * 2000
    sections = extract_clinical_sections(text)
    assert len(sections.diagnosis) <= SECTION_RULES["diagnosis"].max_len


def test_empty_input():
    sections = extract_clinical_sections("")
    assert sections == ClinicalSections()


def test_quality_gate_accepts_discharge_summary(sample_discharge_text):
    quality = assess_text_quality(sample_discharge_text)
    assert quality.is_usable is True
    assert quality.reason == "OK"


def test_quality_gate_rejects_short_text():
    quality = assess_text_quality("DISCHARGE   \x0c\x0c  ")
    assert quality.is_usable is False
    assert quality.reason.startswith("Insufficient text")
    assert quality.char_count == len("DISCHARGE")


def test_quality_gate_rejects_non_clinical_text():
    quality = assess_text_quality("lorem ipsum dolor sit amet " * 10)
    assert quality.is_usable is False
    assert quality.reason == "No clinical content markers found"


def test_usable_char_helpers():
    assert count_usable_chars("  a \n\n b  ") == 3
    assert has_clinical_content("k/c/o diabetes") is True
    assert has_clinical_content("grocery list") is False
