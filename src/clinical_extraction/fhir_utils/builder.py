# ============================================================================
# src/clinical_extraction/fhir_utils/builder.py
# ============================================================================
"""
FHIR Bundle Builder

Maps a finalised ExtractedRecord into fhir.resources objects inside a
collection Bundle:

- Patient (name, gender, identifier), Organization, Practitioner
- Encounter with the admission/discharge period
- Condition per diagnosis (ICD-10 + SNOMED codings)
- MedicationRequest per medication (text dosage, route)
- Observation per lab (LOINC, interpretation) and per vital
- Procedure per procedure (SNOMED)

Independent of the validation engine: the bundle is an export format,
the engine scores the record itself.
"""

from typing import Dict, Any, List, Optional
from datetime import datetime, timezone
from uuid import uuid4
import json
import logging

from fhir.resources.bundle import Bundle, BundleEntry
from fhir.resources.patient import Patient
from fhir.resources.practitioner import Practitioner
from fhir.resources.organization import Organization
from fhir.resources.encounter import Encounter, EncounterParticipant
from fhir.resources.condition import Condition
from fhir.resources.procedure import Procedure
from fhir.resources.medicationrequest import MedicationRequest
from fhir.resources.observation import Observation, ObservationReferenceRange
from fhir.resources.humanname import HumanName
from fhir.resources.codeableconcept import CodeableConcept
from fhir.resources.codeablereference import CodeableReference
from fhir.resources.coding import Coding
from fhir.resources.reference import Reference
from fhir.resources.identifier import Identifier
from fhir.resources.period import Period
from fhir.resources.meta import Meta
from fhir.resources.dosage import Dosage
from fhir.resources.annotation import Annotation

from ..core.record import (
    ExtractedRecord, PatientInfo, Diagnosis, Medication, Vital, LabValue,
)
from ..core.record import Procedure as ProcedureRecord

logger = logging.getLogger(__name__)

ICD10_SYSTEM = "http://hl7.org/fhir/sid/icd-10"
SNOMED_SYSTEM = "http://snomed.info/sct"
LOINC_SYSTEM = "http://loinc.org"
OBS_CATEGORY_SYSTEM = "http://terminology.hl7.org/CodeSystem/observation-category"
CONDITION_CLINICAL_SYSTEM = "http://terminology.hl7.org/CodeSystem/condition-clinical"
INTERPRETATION_SYSTEM = "http://terminology.hl7.org/CodeSystem/v3-ObservationInterpretation"
ACT_CODE_SYSTEM = "http://terminology.hl7.org/CodeSystem/v3-ActCode"
ABHA_SYSTEM = "https://healthid.abdm.gov.in"

# SNOMED route-of-administration concepts
ROUTE_SNOMED = {
    "PO": ("26643006", "Oral route"),
    "IV": ("47625008", "Intravenous route"),
    "IM": ("78421000", "Intramuscular route"),
    "SC": ("34206005", "Subcutaneous route"),
    "INH": ("18679011000001101", "Inhalation"),
}

INTERPRETATION_CODES = {"H": "High", "L": "Low", "N": "Normal"}

GENDER_MAP = {
    "m": "male", "male": "male",
    "f": "female", "female": "female",
    "o": "other", "other": "other",
}


def _human_name(name: str) -> HumanName:
    parts = name.split()
    return HumanName(
        family=parts[-1] if len(parts) > 1 else parts[0],
        given=parts[:-1] if len(parts) > 1 else [],
        text=name,
    )


def _parse_date_to_fhir(date_str: str) -> Optional[str]:
    """DD/MM/YYYY (or ISO) → YYYY-MM-DD; None when unparseable."""
    if not date_str:
        return None
    for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y"):
        try:
            return datetime.strptime(date_str.strip(), fmt).strftime("%Y-%m-%d")
        except ValueError:
            continue
    logger.debug(f"Could not parse date: {date_str}")
    return None


class FHIRBundleBuilder:
    """
    Builds a FHIR collection Bundle from an ExtractedRecord.

    Every resource gets a fresh uuid and a urn:uuid fullUrl; intra-bundle
    references use those urns.
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    def build(self, record: ExtractedRecord) -> Bundle:
        entries: List[BundleEntry] = []

        def add(resource) -> Reference:
            entries.append(BundleEntry(fullUrl=f"urn:uuid:{resource.id}", resource=resource))
            return Reference(reference=f"urn:uuid:{resource.id}")

        patient_ref = add(self._create_patient(record.patient))

        org_ref = None
        if record.patient.hospital:
            org_ref = add(Organization(id=str(uuid4()), name=record.patient.hospital))

        pract_ref = None
        if record.patient.attending:
            pract_ref = add(Practitioner(
                id=str(uuid4()), name=[_human_name(record.patient.attending)]
            ))

        encounter_ref = None
        encounter = self._create_encounter(record.patient, patient_ref, org_ref, pract_ref)
        if encounter is not None:
            encounter_ref = add(encounter)

        for dx in record.diagnoses:
            add(self._create_condition(dx, patient_ref, encounter_ref))
        for proc in record.procedures:
            add(self._create_procedure(proc, patient_ref, encounter_ref))
        for med in record.medications:
            add(self._create_medication_request(med, patient_ref, encounter_ref, pract_ref))
        for lab in record.lab_values:
            add(self._create_lab_observation(lab, patient_ref, encounter_ref))
        for vital in record.vitals:
            add(self._create_vital_observation(vital, patient_ref, encounter_ref))

        now = datetime.now(timezone.utc).isoformat()
        bundle = Bundle(
            id=str(uuid4()),
            type="collection",
            identifier=Identifier(system="urn:ietf:rfc:3986", value=f"urn:uuid:{uuid4()}"),
            timestamp=now,
            entry=entries,
        )
        bundle.meta = Meta(
            lastUpdated=now,
            profile=["http://hl7.org/fhir/StructureDefinition/Bundle"],
        )

        self.logger.info(f"Built FHIR bundle: {len(entries)} entries")
        return bundle

    def to_dict(self, record: ExtractedRecord) -> Dict[str, Any]:
        """Build and serialise to a JSON-compatible dict."""
        return json.loads(self.build(record).model_dump_json())

    # ========================================================================
    # RESOURCE CREATORS
    # ========================================================================

    def _create_patient(self, info: PatientInfo) -> Patient:
        data: Dict[str, Any] = {"id": str(uuid4())}
        if info.name:
            data["name"] = [_human_name(info.name)]
        gender = GENDER_MAP.get(info.sex.strip().lower())
        if gender:
            data["gender"] = gender
        if info.identifier:
            data["identifier"] = [Identifier(
                system=ABHA_SYSTEM,
                type=CodeableConcept(text="ABHA"),
                value=info.identifier,
            )]
        return Patient(**data)

    def _create_encounter(
        self,
        info: PatientInfo,
        patient_ref: Reference,
        org_ref: Optional[Reference],
        pract_ref: Optional[Reference],
    ) -> Optional[Encounter]:
        if not (info.hospital or info.admission or info.discharge):
            return None

        data: Dict[str, Any] = {
            "id": str(uuid4()),
            "status": "completed",
            "subject": patient_ref,
            "type": [CodeableConcept(
                coding=[Coding(system=ACT_CODE_SYSTEM, code="IMP", display="inpatient encounter")],
                text="Hospital Admission",
            )],
        }
        start = _parse_date_to_fhir(info.admission)
        end = _parse_date_to_fhir(info.discharge)
        if start or end:
            data["actualPeriod"] = Period(start=start, end=end)
        if org_ref is not None:
            data["serviceProvider"] = org_ref
        if pract_ref is not None:
            data["participant"] = [EncounterParticipant(actor=pract_ref)]
        return Encounter(**data)

    def _create_condition(
        self, dx: Diagnosis, patient_ref: Reference, encounter_ref: Optional[Reference]
    ) -> Condition:
        codings = []
        if dx.icd:
            codings.append(Coding(system=ICD10_SYSTEM, code=dx.icd, display=dx.name))
        if dx.snomed:
            codings.append(Coding(system=SNOMED_SYSTEM, code=dx.snomed, display=dx.name))

        condition = Condition(
            id=str(uuid4()),
            clinicalStatus=CodeableConcept(coding=[Coding(
                system=CONDITION_CLINICAL_SYSTEM, code="active"
            )]),
            code=CodeableConcept(coding=codings or None, text=dx.name),
            subject=patient_ref,
        )
        if encounter_ref is not None:
            condition.encounter = encounter_ref
        return condition

    def _create_procedure(
        self, proc: ProcedureRecord, patient_ref: Reference, encounter_ref: Optional[Reference]
    ) -> Procedure:
        code = CodeableConcept(
            coding=[Coding(system=SNOMED_SYSTEM, code=proc.snomed, display=proc.name)] if proc.snomed else None,
            text=proc.name,
        )
        procedure = Procedure(
            id=str(uuid4()), status="completed", code=code, subject=patient_ref
        )
        if encounter_ref is not None:
            procedure.encounter = encounter_ref
        if proc.findings:
            procedure.note = [Annotation(text=proc.findings)]
        return procedure

    def _create_medication_request(
        self,
        med: Medication,
        patient_ref: Reference,
        encounter_ref: Optional[Reference],
        pract_ref: Optional[Reference],
    ) -> MedicationRequest:
        dosage: Dict[str, Any] = {"text": med.dosage or med.name}
        route = ROUTE_SNOMED.get(med.route)
        if route:
            dosage["route"] = CodeableConcept(
                coding=[Coding(system=SNOMED_SYSTEM, code=route[0], display=route[1])],
                text=med.route,
            )

        request = MedicationRequest(
            id=str(uuid4()),
            status="active",
            intent="order",
            medication=CodeableReference(concept=CodeableConcept(text=med.name)),
            subject=patient_ref,
            dosageInstruction=[Dosage(**dosage)],
        )
        if encounter_ref is not None:
            request.encounter = encounter_ref
        if pract_ref is not None:
            request.requester = pract_ref
        return request

    def _observation_category(self, code: str, display: str) -> List[CodeableConcept]:
        return [CodeableConcept(coding=[Coding(
            system=OBS_CATEGORY_SYSTEM, code=code, display=display
        )])]

    def _create_lab_observation(
        self, lab: LabValue, patient_ref: Reference, encounter_ref: Optional[Reference]
    ) -> Observation:
        code = CodeableConcept(
            coding=[Coding(system=LOINC_SYSTEM, code=lab.loinc, display=lab.test)] if lab.loinc else None,
            text=lab.test,
        )
        value = f"{lab.value} {lab.unit}".strip()
        observation = Observation(
            id=str(uuid4()),
            status="final",
            category=self._observation_category("laboratory", "Laboratory"),
            code=code,
            subject=patient_ref,
            valueString=value or None,
        )
        if encounter_ref is not None:
            observation.encounter = encounter_ref
        if lab.ref:
            observation.referenceRange = [ObservationReferenceRange(text=lab.ref)]
        flag = INTERPRETATION_CODES.get(lab.status)
        if flag:
            observation.interpretation = [CodeableConcept(coding=[Coding(
                system=INTERPRETATION_SYSTEM, code=lab.status, display=flag
            )])]
        return observation

    def _create_vital_observation(
        self, vital: Vital, patient_ref: Reference, encounter_ref: Optional[Reference]
    ) -> Observation:
        observation = Observation(
            id=str(uuid4()),
            status="final",
            category=self._observation_category("vital-signs", "Vital Signs"),
            code=CodeableConcept(text=vital.name),
            subject=patient_ref,
            valueString=vital.value,
        )
        if encounter_ref is not None:
            observation.encounter = encounter_ref
        return observation
