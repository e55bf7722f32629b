# ============================================================================
# src/clinical_extraction/core/record.py
# ============================================================================
"""
Canonical Extracted Record

Typed shape of a clinical record after sanitisation. Every string field
is either a real extracted value or "" (never a placeholder token), and
every confidence is an int in [0, 100].

to_dict() produces the camelCase interchange shape consumed by the
validation engine, exporters and the sanitizer itself, so
sanitize_extracted(record.to_dict()) == record.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Any


@dataclass
class PatientInfo:
    name: str = ""
    age: str = ""
    sex: str = ""
    identifier: str = ""
    blood_group: str = ""
    hospital: str = ""
    ward: str = ""
    admission: str = ""
    discharge: str = ""
    attending: str = ""
    chief_complaint: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "age": self.age,
            "sex": self.sex,
            "identifier": self.identifier,
            "bloodGroup": self.blood_group,
            "hospital": self.hospital,
            "ward": self.ward,
            "admission": self.admission,
            "discharge": self.discharge,
            "attending": self.attending,
            "chiefComplaint": self.chief_complaint,
        }


@dataclass
class Diagnosis:
    name: str
    icd: str = ""
    snomed: str = ""
    confidence: int = 70

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "icd": self.icd, "snomed": self.snomed, "confidence": self.confidence}


@dataclass
class Medication:
    name: str
    dosage: str = ""
    route: str = "PO"  # PO | IV | IM | SC | INH | unspecified
    confidence: int = 70

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "dosage": self.dosage, "route": self.route, "confidence": self.confidence}


@dataclass
class Vital:
    name: str
    value: str
    confidence: int = 95

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "value": self.value, "confidence": self.confidence}


@dataclass
class LabValue:
    test: str
    value: str
    unit: str = ""
    ref: str = ""
    status: str = "N"  # H | L | N
    loinc: str = ""
    confidence: int = 70

    def to_dict(self) -> Dict[str, Any]:
        return {
            "test": self.test,
            "value": self.value,
            "unit": self.unit,
            "ref": self.ref,
            "status": self.status,
            "loinc": self.loinc,
            "confidence": self.confidence,
        }


@dataclass
class Procedure:
    name: str
    snomed: str = ""
    day: str = ""
    findings: str = ""
    confidence: int = 70

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "snomed": self.snomed,
            "day": self.day,
            "findings": self.findings,
            "confidence": self.confidence,
        }


@dataclass
class LabeledItem:
    """Discharge instruction or follow-up entry."""
    label: str
    value: str
    confidence: int = 70

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "value": self.value, "confidence": self.confidence}


@dataclass
class ExtractedRecord:
    patient: PatientInfo = field(default_factory=PatientInfo)
    diagnoses: List[Diagnosis] = field(default_factory=list)
    medications: List[Medication] = field(default_factory=list)
    vitals: List[Vital] = field(default_factory=list)
    lab_values: List[LabValue] = field(default_factory=list)
    procedures: List[Procedure] = field(default_factory=list)
    discharge_instructions: List[LabeledItem] = field(default_factory=list)
    follow_up: List[LabeledItem] = field(default_factory=list)
    overall_confidence: int = 70

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patient": self.patient.to_dict(),
            "diagnoses": [d.to_dict() for d in self.diagnoses],
            "medications": [m.to_dict() for m in self.medications],
            "vitals": [v.to_dict() for v in self.vitals],
            "labValues": [l.to_dict() for l in self.lab_values],
            "procedures": [p.to_dict() for p in self.procedures],
            "dischargeInstructions": [d.to_dict() for d in self.discharge_instructions],
            "followUp": [f.to_dict() for f in self.follow_up],
            "overallConfidence": self.overall_confidence,
        }

    def summary(self) -> Dict[str, Any]:
        """Counts for logging."""
        return {
            "name": self.patient.name or "(blank)",
            "hospital": self.patient.hospital,
            "diagnoses": len(self.diagnoses),
            "medications": len(self.medications),
            "vitals": len(self.vitals),
            "labs": len(self.lab_values),
            "procedures": len(self.procedures),
            "instructions": len(self.discharge_instructions),
            "follow_up": len(self.follow_up),
        }
