# ============================================================================
# src/clinical_extraction/core/orchestrator.py
# ============================================================================
"""
Extraction Orchestrator

Drives the language-model passes over one document and reconciles their
output with the deterministic layer.

Multi-pass protocol (sections carry enough structure):
    Pass 1  patient demographics + diagnoses
    Pass 2  medications (bare JSON array)
    Pass 3  procedures, labs, discharge instructions, follow-up
    Merge   vitals/dates/cross-validation/routes/must-capture drugs

Single-pass fallback (streaming) and the diagnostic-report path make one
call over the whole text and then run the same deterministic merge.

Passes run strictly in sequence. A transport failure on any call aborts
the whole orchestration; a response that cannot be parsed becomes an
empty-but-valid record for that pass.
"""

import time
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, List, Sequence, Dict, Any

from .json_parser import (
    ParseResult,
    ParseStatus,
    parse_json_object,
    parse_json_array,
    PATIENT_AND_DIAGNOSES_FIELDS,
    PROCEDURES_AND_DISCHARGE_FIELDS,
    FULL_RECORD_FIELDS,
)
from .merger import compute_overall_confidence, finalize_record
from .progress import ProgressChannel
from .record import ExtractedRecord
from .sanitizer import sanitize_extracted, sanitize_medications
from ..config.extraction_config import ExtractionSettings
from ..llm.base import BaseLLMClient, GenerationOptions
from ..llm.prompts import ExtractionPrompts
from ..sections.section_detector import ClinicalSections, extract_clinical_sections
from ..utils.exceptions import InferenceServiceError
from ..utils.logging import stage_extra

logger = logging.getLogger(__name__)


class ExtractionStage(Enum):
    SECTIONING_DONE = "sectioning_done"
    PATIENT_AND_DIAGNOSES = "pass1_patient_and_diagnoses"
    MEDICATIONS = "pass2_medications"
    PROCEDURES_AND_DISCHARGE = "pass3_procedures_and_discharge"
    SINGLE_PASS = "single_pass_fallback"
    DIAGNOSTIC_REPORT = "diagnostic_report"
    DETERMINISTIC_MERGE = "deterministic_merge"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PassOutcome:
    """Bookkeeping for one model call."""
    stage: ExtractionStage
    status: ParseStatus
    defaulted_fields: List[str] = field(default_factory=list)
    error: Optional[str] = None
    response_chars: int = 0
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "status": self.status.value,
            "defaulted_fields": self.defaulted_fields,
            "error": self.error,
            "response_chars": self.response_chars,
            "duration_seconds": self.duration_seconds,
        }


def _clip(text: str, budget: int) -> str:
    return (text or "")[:budget]


class ExtractionOrchestrator:
    """
    Runs one document through the extraction passes.

    One instance per document: it keeps the stage and pass outcomes of
    the run it performed, nothing else.
    """

    def __init__(
        self,
        client: BaseLLMClient,
        model: Optional[str] = None,
        settings: Optional[ExtractionSettings] = None,
        options: Optional[GenerationOptions] = None,
        stream_options: Optional[GenerationOptions] = None,
        progress: Optional[ProgressChannel] = None,
    ):
        self.client = client
        self.model = model
        self.settings = settings or ExtractionSettings()
        self.options = options or GenerationOptions.from_config(client.config)
        self.stream_options = stream_options or GenerationOptions.from_config(client.config, streaming=True)
        self.progress = progress
        self.logger = logging.getLogger(self.__class__.__name__)

        self.stage = ExtractionStage.SECTIONING_DONE
        self.passes: List[PassOutcome] = []

    # ------------------------------------------------------------------
    # Stage bookkeeping
    # ------------------------------------------------------------------

    def _enter(self, stage: ExtractionStage, message: str) -> None:
        self.stage = stage
        self.logger.info(message, extra=stage_extra(stage.value))
        if self.progress:
            self.progress.emit(stage.value, message)

    def _fail(self, error: Exception) -> None:
        self.logger.error(
            f"Extraction aborted during {self.stage.value}: {error}",
            extra=stage_extra(ExtractionStage.FAILED.value, self.stage.value),
        )
        self.stage = ExtractionStage.FAILED
        if self.progress:
            self.progress.emit(ExtractionStage.FAILED.value, str(error))

    def _record_pass(self, stage: ExtractionStage, parsed: ParseResult, text: str, started: float) -> None:
        outcome = PassOutcome(
            stage=stage,
            status=parsed.status,
            defaulted_fields=list(parsed.defaulted_fields),
            error=parsed.error,
            response_chars=len(text or ""),
            duration_seconds=time.monotonic() - started,
        )
        self.passes.append(outcome)

        extra = stage_extra(stage.value, stage.value)
        if parsed.status == ParseStatus.FAILED:
            self.logger.warning(f"Unparseable response, using empty defaults ({parsed.error})", extra=extra)
        elif parsed.status == ParseStatus.REPAIRED:
            self.logger.warning(f"Repaired response, defaulted {parsed.defaulted_fields}", extra=extra)
        self.logger.info(
            f"Pass finished: {parsed.status.value}, {outcome.response_chars} chars "
            f"in {outcome.duration_seconds:.2f}s",
            extra=extra,
        )

    async def _call(self, prompt: str) -> str:
        result = await self.client.generate(prompt, options=self.options, model=self.model)
        return result.get("text", "") or ""

    async def _object_pass(
        self,
        stage: ExtractionStage,
        prompt: str,
        field_order: Sequence[str],
    ) -> ExtractedRecord:
        started = time.monotonic()
        text = await self._call(prompt)
        parsed = parse_json_object(text, field_order)
        self._record_pass(stage, parsed, text, started)
        return sanitize_extracted(parsed.data if parsed.ok else {})

    def _merge(
        self,
        record: ExtractedRecord,
        sections: ClinicalSections,
        medication_text: Optional[str] = None,
    ) -> ExtractedRecord:
        self._enter(ExtractionStage.DETERMINISTIC_MERGE, "Applying deterministic corrections & cross-validation...")
        final = finalize_record(
            record,
            sections,
            medication_text=medication_text,
            date_prefix_chars=self.settings.DATE_HEADER_PREFIX_CHARS,
        )
        self._enter(ExtractionStage.DONE, "Extraction complete")
        self.logger.info(f"Extraction summary: {final.summary()}")
        return final

    # ------------------------------------------------------------------
    # Multi-pass
    # ------------------------------------------------------------------

    async def extract_with_sections(self, sections: ClinicalSections) -> ExtractedRecord:
        """
        Run the three-pass protocol over detected sections.

        Args:
            sections: Section windows of the document

        Returns:
            Finalised ExtractedRecord

        Raises:
            InferenceServiceError: any pass failed at the transport level
        """
        s = self.settings
        try:
            self._enter(ExtractionStage.PATIENT_AND_DIAGNOSES,
                        "Pass 1/3 - Extracting patient demographics & diagnoses...")
            pass1 = await self._object_pass(
                ExtractionStage.PATIENT_AND_DIAGNOSES,
                ExtractionPrompts.PATIENT_AND_DIAGNOSES.format(
                    header=_clip(sections.header, s.HEADER_BUDGET),
                    diagnosis=_clip(sections.diagnosis, s.DIAGNOSIS_BUDGET),
                    comorbidities=_clip(sections.comorbidities, s.COMORBIDITIES_BUDGET),
                    chief_complaint=_clip(sections.chief_complaint, s.CHIEF_COMPLAINT_BUDGET),
                ),
                PATIENT_AND_DIAGNOSES_FIELDS,
            )

            self._enter(ExtractionStage.MEDICATIONS, "Pass 2/3 - Extracting medications...")
            medication_text = (
                sections.medications
                if len(sections.medications) > s.MEDICATION_SECTION_MIN_CHARS
                else sections.raw
            )
            started = time.monotonic()
            text = await self._call(
                ExtractionPrompts.MEDICATIONS.format(medications=_clip(medication_text, s.MEDICATIONS_BUDGET))
            )
            parsed = parse_json_array(text)
            self._record_pass(ExtractionStage.MEDICATIONS, parsed, text, started)
            medications = sanitize_medications(parsed.data if parsed.ok else [])

            self._enter(ExtractionStage.PROCEDURES_AND_DISCHARGE,
                        "Pass 3/3 - Extracting procedures & discharge summary...")
            pass3 = await self._object_pass(
                ExtractionStage.PROCEDURES_AND_DISCHARGE,
                ExtractionPrompts.PROCEDURES_AND_DISCHARGE.format(
                    procedures=_clip(sections.procedures, s.PROCEDURES_BUDGET),
                    investigations=_clip(sections.investigations, s.INVESTIGATIONS_BUDGET),
                    discharge=_clip(sections.discharge, s.DISCHARGE_BUDGET),
                    follow_up=_clip(sections.follow_up, s.FOLLOW_UP_BUDGET),
                ),
                PROCEDURES_AND_DISCHARGE_FIELDS,
            )
        except InferenceServiceError as e:
            self._fail(e)
            raise

        merged = ExtractedRecord(
            patient=pass1.patient,
            diagnoses=pass1.diagnoses,
            medications=medications,
            lab_values=pass3.lab_values,
            procedures=pass3.procedures,
            discharge_instructions=pass3.discharge_instructions,
            follow_up=pass3.follow_up,
        )
        final = self._merge(merged, sections, medication_text=medication_text)
        return replace(
            final,
            overall_confidence=compute_overall_confidence(
                pass1.overall_confidence, len(final.medications), pass3.overall_confidence
            ),
        )

    # ------------------------------------------------------------------
    # Single-pass fallback (streaming)
    # ------------------------------------------------------------------

    async def extract_single_pass(
        self,
        text: str,
        sections: Optional[ClinicalSections] = None,
    ) -> ExtractedRecord:
        """
        Extract the whole record in one streamed call.

        Used when section detection found too little structure.
        """
        sections = sections or extract_clinical_sections(text)
        prompt = ExtractionPrompts.SINGLE_PASS.format(text=_clip(text, self.settings.SINGLE_PASS_BUDGET))

        try:
            self._enter(ExtractionStage.SINGLE_PASS, "Single pass - Extracting clinical data...")
            started = time.monotonic()
            chunks: List[str] = []
            received = 0
            async for chunk in self.client.generate_stream(prompt, options=self.stream_options, model=self.model):
                chunks.append(chunk)
                received += len(chunk)
                if self.progress:
                    self.progress.token(received)
        except InferenceServiceError as e:
            self._fail(e)
            raise

        response = "".join(chunks)
        parsed = parse_json_object(response, FULL_RECORD_FIELDS)
        self._record_pass(ExtractionStage.SINGLE_PASS, parsed, response, started)
        record = sanitize_extracted(parsed.data if parsed.ok else {})
        return self._merge(record, sections)

    # ------------------------------------------------------------------
    # Diagnostic / lab report
    # ------------------------------------------------------------------

    async def extract_diagnostic_report(
        self,
        text: str,
        sections: Optional[ClinicalSections] = None,
    ) -> ExtractedRecord:
        """Extract a lab / imaging report in one call."""
        sections = sections or extract_clinical_sections(text)
        try:
            self._enter(ExtractionStage.DIAGNOSTIC_REPORT,
                        "Pass 1/1 - Extracting lab values and patient demographics...")
            record = await self._object_pass(
                ExtractionStage.DIAGNOSTIC_REPORT,
                ExtractionPrompts.DIAGNOSTIC_REPORT.format(
                    text=_clip(text, self.settings.DIAGNOSTIC_REPORT_BUDGET)
                ),
                FULL_RECORD_FIELDS,
            )
        except InferenceServiceError as e:
            self._fail(e)
            raise

        return self._merge(record, sections)
