# ============================================================================
# src/clinical_extraction/llm/prompts.py
# ============================================================================
"""
Extraction Prompt Templates

One template per extraction pass:
- patient demographics + diagnoses
- medications (returns a bare JSON array)
- procedures, investigations, discharge condition, follow-up
- single-pass fallback (whole record)
- diagnostic / lab report

Every template demands "" / [] instead of guesses, keeps letterhead text
out of the patient name, and tells the model not to return vitals
(vitals are parsed from the text separately).
"""

from typing import Dict, List
from enum import Enum
from dataclasses import dataclass


class PromptTask(Enum):
    """Extraction passes"""
    PATIENT_AND_DIAGNOSES = "patient_and_diagnoses"
    MEDICATIONS = "medications"
    PROCEDURES_AND_DISCHARGE = "procedures_and_discharge"
    SINGLE_PASS = "single_pass"
    DIAGNOSTIC_REPORT = "diagnostic_report"


@dataclass
class PromptTemplate:
    """Prompt template"""
    name: str
    task: PromptTask
    template: str
    description: str
    required_fields: List[str]

    def format(self, **kwargs) -> str:
        """
        Format template with provided values.

        Args:
            **kwargs: Template variables

        Returns:
            Formatted prompt

        Raises:
            ValueError: a required field is missing
        """
        missing = [f for f in self.required_fields if f not in kwargs]
        if missing:
            raise ValueError(f"Missing required fields: {missing}")

        return self.template.format(**kwargs)


_PATIENT_SCHEMA = (
    '"patient":{{"name":"","age":"","sex":"","identifier":"","bloodGroup":"","hospital":"",'
    '"ward":"","admission":"","discharge":"","attending":"","chiefComplaint":""}}'
)

_NO_VITALS = (
    'IMPORTANT: Do NOT include a "vitals" field in your JSON response. '
    'Vitals are extracted separately by a dedicated parser.'
)


class ExtractionPrompts:
    """
    Collection of extraction prompt templates.
    """

    PATIENT_AND_DIAGNOSES = PromptTemplate(
        name="patient_and_diagnoses",
        task=PromptTask.PATIENT_AND_DIAGNOSES,
        template="""Extract patient demographics and diagnoses from this hospital discharge summary.

CRITICAL ACCURACY RULES:
- ONLY extract data that is EXPLICITLY WRITTEN in the text below
- If a field is not present, blank, redacted, or unclear, return EMPTY STRING ""
- NEVER guess, infer, or fabricate any value
- Do NOT fill in blood group, patient ID, ward etc. unless they are clearly written

PATIENT NAME RULE:
- Hospital forms OFTEN leave the patient name BLANK or REDACTED
- If the NAME cell is empty, contains only dashes, or shows a signature mark, set name to ""
- NEVER put hospital name, department name, or letterhead text into the "name" field
- Only set name if you see a real personal name in the PATIENT NAME row

HEADER (letterhead + patient info table):
{header}

DIAGNOSIS:
{diagnosis}

COMORBIDITIES / PAST HISTORY / K/C/O:
{comorbidities}

CHIEF COMPLAINT:
{chief_complaint}

EXTRACTION RULES:
- hospital: full institution name from letterhead top lines; "" if not found
- name: personal name only; "" if blank, redacted or unclear
- age, sex: exact text; "" if not found
- identifier: patient ID / health ID exactly as written; "" if not found (do NOT fabricate a number)
- bloodGroup: "" if not explicitly written
- ward: "" if not found
- admission: DOA value in DD/MM/YYYY; "" if not found
- discharge: DOD value in DD/MM/YYYY; "" if not found
- attending: consultant/doctor name without degrees or titles; "" if not found
- chiefComplaint: main complaint text; "" if not found
- diagnoses: ALL diagnoses as separate entries, primary diagnosis plus every comorbidity
- Use FULL canonical names: "Type 2 Diabetes Mellitus" not "Diabetes", "Systemic Hypertension" not "HTN"
- ICD: CHOLELITHIASIS=K80.20, T2DM=E11.9, SYSTEMIC HYPERTENSION=I10
- confidence: 95=exact text copied verbatim, 80=clearly present, 60=inferred from context

Return ONLY JSON, no markdown, no explanation:
{{""" + _PATIENT_SCHEMA + ""","diagnoses":[{{"name":"","icd":"","snomed":"","confidence":0}}],"overallConfidence":0}}

""" + _NO_VITALS,
        description="Pass 1: demographics and diagnoses from header/diagnosis windows",
        required_fields=["header", "diagnosis", "comorbidities", "chief_complaint"],
    )

    MEDICATIONS = PromptTemplate(
        name="medications",
        task=PromptTask.MEDICATIONS,
        template="""You are extracting medications from a hospital discharge summary. Extract EVERY drug listed.

CRITICAL: Only extract drugs that are EXPLICITLY listed in the text. Do NOT add any drug that is not written below. If a dosage or route is unclear, use empty string "".

TREATMENT TEXT:
{medications}

MANDATORY EXTRACTION RULES:
1. Extract ALL lines that contain a drug or fluid, for example:
   "IV FLUIDS" -> {{"name":"IV Fluids","dosage":"","route":"IV"}}
   "INJ. TAXIM 1G IV BD" -> {{"name":"Taxim","dosage":"1G IV BD","route":"IV"}}
   "INJ. METRO 500MG IV TDS" -> {{"name":"Metro","dosage":"500MG IV TDS","route":"IV"}}
   "INJ. TRAMADOL 50MG IM BD" -> {{"name":"Tramadol","dosage":"50MG BD","route":"IM"}}
   "INJ. H INSULATARD 0-0-8 U S/C" -> {{"name":"Insulatard","dosage":"0-0-8 U","route":"SC"}}
   "INJ. H ACTRAPID 8-8-6 U S/C" -> {{"name":"Actrapid","dosage":"8-8-6 U","route":"SC"}}
   "TAB. METFORMIN 500MG 1-0-1" -> {{"name":"Metformin","dosage":"500MG 1-0-1","route":"PO"}}
   "TAB. AMLONG 10MG 1-0-0" -> {{"name":"Amlong","dosage":"10MG 1-0-0","route":"PO"}}
   "NEB DUOLIN Q8H" -> {{"name":"Duolin","dosage":"Q8H","route":"INH"}}
   "NEB FORACORT 0.5MG Q12H" -> {{"name":"Foracort","dosage":"0.5MG Q12H","route":"INH"}}
   "SYP. SUCRALFATE 10ML-10ML-10ML" -> {{"name":"Sucralfate","dosage":"10ML-10ML-10ML","route":"PO"}}

2. ROUTE IS DETERMINED BY DRUG TYPE, do NOT infer route from adjacent lines:
   - TAB. / CAP. / SYP. -> ALWAYS "PO"
   - NEB -> ALWAYS "INH"
   - INJ. with S/C -> ALWAYS "SC" (insulin)
   - INJ. with IM -> ALWAYS "IM"
   - INJ. with IV -> ALWAYS "IV"

3. Do NOT skip any drug line. Do NOT merge entries.
4. If dosage/route is not clear from text, use empty string ""
5. Do NOT invent or guess any medication not present in the text

Return ONLY a JSON array. No wrapper object. No markdown. No explanation:
[{{"name":"","dosage":"","route":"","confidence":0}}]""",
        description="Pass 2: medication list from the treatment window",
        required_fields=["medications"],
    )

    PROCEDURES_AND_DISCHARGE = PromptTemplate(
        name="procedures_and_discharge",
        task=PromptTask.PROCEDURES_AND_DISCHARGE,
        template="""Extract procedures, investigations, discharge condition and follow-up from this discharge summary.

CRITICAL ACCURACY RULES:
- ONLY extract data that is EXPLICITLY WRITTEN in the text below
- If a section is empty or says "AS ENCLOSED" or "NIL", return empty array []
- NEVER guess or fabricate any value. If data is not present, return empty string or empty array.

PROCEDURES:
{procedures}

INVESTIGATIONS:
{investigations}

DISCHARGE / CONDITION AT DISCHARGE:
{discharge}

FOLLOW UP / ADVICE:
{follow_up}

RULES:
- procedures: name only. SNOMED 73761001 = Laparoscopic Cholecystectomy. Return [] if none found.
- labValues: ONLY if actual numeric values are present inline. "AS ENCLOSED", "ATTACHED" or blank -> []
- dischargeInstructions: condition at discharge, dietary advice, wound care. Only if explicitly mentioned.
- followUp: review date, OPD, repeat tests. Only if explicitly mentioned.
- For ALL fields: if data is not present, return "" for strings and [] for arrays

Return ONLY JSON, no markdown:
{{"procedures":[{{"name":"","snomed":"","day":"","findings":"","confidence":0}}],"labValues":[{{"test":"","value":"","unit":"","ref":"","status":"N","loinc":"","confidence":0}}],"dischargeInstructions":[{{"label":"","value":"","confidence":0}}],"followUp":[{{"label":"","value":"","confidence":0}}],"overallConfidence":0}}

""" + _NO_VITALS,
        description="Pass 3: procedures, labs, discharge instructions, follow-up",
        required_fields=["procedures", "investigations", "discharge", "follow_up"],
    )

    SINGLE_PASS = PromptTemplate(
        name="single_pass",
        task=PromptTask.SINGLE_PASS,
        template="""Extract clinical data from this hospital discharge summary. Return ONLY valid JSON.

CRITICAL ACCURACY RULES:
- ONLY extract data that is EXPLICITLY WRITTEN in the text
- If a field is not present, return EMPTY STRING ""
- If a list section has no data, return EMPTY ARRAY []
- NEVER guess, infer, or fabricate any value

PATIENT NAME: "" if blank/redacted. NEVER use the hospital name.
DIAGNOSIS: ALL diagnoses with full canonical names. Only diagnoses explicitly stated.
MEDICATIONS: every drug explicitly listed. TAB/CAP/SYP=PO, NEB=INH, S/C=SC, INJ+IV=IV, INJ+IM=IM.
DATES: DOA=admission, DOD=discharge, DD/MM/YYYY. "" if not found.
LAB VALUES: only if actual inline numbers exist; "AS ENCLOSED" -> [].
bloodGroup, identifier, ward: "" if not explicitly written.

TEXT: {text}

""" + _NO_VITALS + """

JSON: {{""" + _PATIENT_SCHEMA + ""","diagnoses":[],"medications":[],"labValues":[],"procedures":[],"dischargeInstructions":[],"followUp":[],"overallConfidence":0}}""",
        description="Single-pass fallback over the whole document",
        required_fields=["text"],
    )

    DIAGNOSTIC_REPORT = PromptTemplate(
        name="diagnostic_report",
        task=PromptTask.DIAGNOSTIC_REPORT,
        template="""Extract clinical data from this diagnostic / lab report. Return ONLY valid JSON.

CRITICAL ACCURACY RULES:
- ONLY extract data that is EXPLICITLY WRITTEN in the text
- If a field is not present, return EMPTY STRING ""
- If a list section has no data, return EMPTY ARRAY []
- NEVER guess, infer, or fabricate any value

PATIENT NAME: "" if blank/redacted. NEVER use the hospital or laboratory name.
LAB VALUES: Extract ALL lab tests as objects. Each test needs a "test" name, "value" (result), "unit" (if present) and "ref" (biological reference interval if present). If status (H/L/N) is not explicitly flagged, use "N". Keep tests under their panels (e.g. Lipid Profile, Liver Function Test).
DATES: Put the collection date in "admission" and the reporting date in "discharge".

TEXT: {text}

""" + _NO_VITALS + """

JSON: {{""" + _PATIENT_SCHEMA + ""","diagnoses":[],"medications":[],"labValues":[{{"test":"","value":"","unit":"","ref":"","status":"N","loinc":"","confidence":0}}],"procedures":[],"dischargeInstructions":[],"followUp":[],"overallConfidence":0}}""",
        description="Single pass over a lab / imaging report",
        required_fields=["text"],
    )

    @classmethod
    def all(cls) -> Dict[str, PromptTemplate]:
        return {
            t.name: t for t in (
                cls.PATIENT_AND_DIAGNOSES,
                cls.MEDICATIONS,
                cls.PROCEDURES_AND_DISCHARGE,
                cls.SINGLE_PASS,
                cls.DIAGNOSTIC_REPORT,
            )
        }


def get_prompt(name: str) -> PromptTemplate:
    """Look up a template by name; raises KeyError for unknown names."""
    return ExtractionPrompts.all()[name]
