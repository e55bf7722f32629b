# ============================================================================
# src/clinical_extraction/core/pipeline.py
# ============================================================================
"""
Conversion Pipeline

Document text in, (record, report) out:

    quality gate → section detection → path selection → orchestrator
    → validation report

convert_document() holds no state between calls. ConversionSession is the
caller-owned wrapper for callers that want status, progress, a captured
terminal error and re-validation after manual edits.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any, Sequence

from .orchestrator import ExtractionOrchestrator, PassOutcome
from .progress import ProgressChannel
from .record import ExtractedRecord
from ..config.extraction_config import ExtractionSettings
from ..fhir_utils.validation_engine import ValidationReport, build_validation_report
from ..llm.base import BaseLLMClient
from ..llm.client import discover_model
from ..sections.section_detector import (
    ClinicalSections,
    TextQuality,
    assess_text_quality,
    extract_clinical_sections,
)
from ..utils.exceptions import InputQualityError, InferenceServiceError

logger = logging.getLogger(__name__)

DIAGNOSTIC_DOC_TYPE = "diagnostic"


class ExtractionPath(Enum):
    MULTI_PASS = "multi_pass"
    SINGLE_PASS = "single_pass"
    DIAGNOSTIC_REPORT = "diagnostic_report"


@dataclass
class ConversionResult:
    record: ExtractedRecord
    report: ValidationReport
    path: ExtractionPath
    sections: Optional[ClinicalSections] = None
    quality: Optional[TextQuality] = None
    model: Optional[str] = None
    passes: List[PassOutcome] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record": self.record.to_dict(),
            "report": self.report.to_dict(),
            "path": self.path.value,
            "model": self.model,
            "passes": [p.to_dict() for p in self.passes],
        }


def select_path(
    sections: ClinicalSections,
    doc_type: str = "discharge",
    settings: Optional[ExtractionSettings] = None,
) -> ExtractionPath:
    """
    Choose the extraction path for a document.

    Diagnostic reports always take the one-call report path. Discharge
    summaries use the three-pass protocol when a medication or diagnosis
    window was found, otherwise the streamed single pass over raw text.
    """
    settings = settings or ExtractionSettings()
    if doc_type == DIAGNOSTIC_DOC_TYPE:
        return ExtractionPath.DIAGNOSTIC_REPORT
    if (len(sections.medications) > settings.MULTIPASS_MIN_MEDICATION_CHARS
            or len(sections.diagnosis) > settings.MULTIPASS_MIN_DIAGNOSIS_CHARS):
        return ExtractionPath.MULTI_PASS
    return ExtractionPath.SINGLE_PASS


async def convert_document(
    text: str,
    client: BaseLLMClient,
    doc_type: str = "discharge",
    model: Optional[str] = None,
    progress: Optional[ProgressChannel] = None,
    settings: Optional[ExtractionSettings] = None,
) -> ConversionResult:
    """
    Convert one document into a finalised record and its validation report.

    Args:
        text: Document text (text layer or OCR output)
        client: Inference client
        doc_type: "discharge" or "diagnostic"
        model: Model identifier; None uses the client's default
        progress: Optional progress channel
        settings: Extraction settings override

    Returns:
        ConversionResult

    Raises:
        InputQualityError: text too short or without clinical content;
            raised before any inference call
        InferenceServiceError: a model call failed at the transport level
    """
    settings = settings or ExtractionSettings()

    quality = assess_text_quality(text or "", min_chars=settings.MIN_USABLE_CHARS)
    if not quality.is_usable:
        logger.error(f"Rejected document: {quality.reason}")
        raise InputQualityError(quality.reason, quality.char_count)

    sections = extract_clinical_sections(text)
    path = select_path(sections, doc_type, settings)
    logger.info(f"Document accepted ({quality.char_count} chars), path={path.value}")

    orchestrator = ExtractionOrchestrator(client, model=model, settings=settings, progress=progress)
    if progress:
        progress.emit(orchestrator.stage.value, f"Sections detected, using {path.value} extraction")

    if path == ExtractionPath.DIAGNOSTIC_REPORT:
        record = await orchestrator.extract_diagnostic_report(text, sections)
    elif path == ExtractionPath.MULTI_PASS:
        record = await orchestrator.extract_with_sections(sections)
    else:
        record = await orchestrator.extract_single_pass(text, sections)

    report = build_validation_report(record)
    return ConversionResult(
        record=record,
        report=report,
        path=path,
        sections=sections,
        quality=quality,
        model=model or client.model_name,
        passes=list(orchestrator.passes),
    )


# ============================================================================
# CALLER-OWNED SESSION
# ============================================================================

class ConversionStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


FAILURE_UNREADABLE = "unreadable_document"
FAILURE_SERVICE = "service_unreachable"

FAILURE_MESSAGES = {
    FAILURE_UNREADABLE: (
        "Could not extract readable clinical text from this document ({cause}). "
        "Re-scan the document at a higher quality or upload a copy with a text layer."
    ),
    FAILURE_SERVICE: (
        "The extraction service could not complete the request ({cause}). "
        "Check that the inference service is running, restart it if needed, and retry."
    ),
}


class ConversionSession:
    """
    State for one document conversion, owned by the caller.

    Usage:
        session = ConversionSession(client, doc_type="discharge")
        result = await session.run(text)
        if session.status is ConversionStatus.FAILED:
            show(session.user_message)

    Terminal errors are captured, not raised: session.error holds the
    exception and session.failure_kind classifies it. Anything else is
    re-raised after the session is marked FAILED.
    """

    def __init__(
        self,
        client: BaseLLMClient,
        doc_type: str = "discharge",
        model: Optional[str] = None,
        progress: Optional[ProgressChannel] = None,
        settings: Optional[ExtractionSettings] = None,
        discover: bool = False,
        preferred_models: Optional[Sequence[str]] = None,
    ):
        self.client = client
        self.doc_type = doc_type
        self.model = model
        self.settings = settings or ExtractionSettings()
        self.progress = progress or ProgressChannel(min_interval=self.settings.PROGRESS_MIN_INTERVAL)
        self.discover = discover
        self.preferred_models = preferred_models
        self.logger = logging.getLogger(self.__class__.__name__)

        self.status = ConversionStatus.IDLE
        self.result: Optional[ConversionResult] = None
        self.error: Optional[Exception] = None
        self.failure_kind: Optional[str] = None

    @property
    def record(self) -> Optional[ExtractedRecord]:
        return self.result.record if self.result else None

    @property
    def report(self) -> Optional[ValidationReport]:
        return self.result.report if self.result else None

    @property
    def user_message(self) -> Optional[str]:
        """Operator-facing explanation of the terminal failure, if any."""
        if self.failure_kind is None:
            return None
        cause = self.error.reason if isinstance(self.error, InputQualityError) else str(self.error)
        return FAILURE_MESSAGES[self.failure_kind].format(cause=cause)

    async def run(self, text: str) -> Optional[ConversionResult]:
        """Convert text; returns None on a captured terminal failure."""
        self.status = ConversionStatus.RUNNING
        self.result = None
        self.error = None
        self.failure_kind = None

        try:
            if self.model is None and self.discover:
                self.model = await discover_model(self.client, self.preferred_models)
            self.result = await convert_document(
                text,
                self.client,
                doc_type=self.doc_type,
                model=self.model,
                progress=self.progress,
                settings=self.settings,
            )
        except InputQualityError as e:
            self._capture(e, FAILURE_UNREADABLE)
            return None
        except InferenceServiceError as e:
            self._capture(e, FAILURE_SERVICE)
            return None
        except Exception as e:
            # Unclassified: still terminal, but the caller sees it
            self.error = e
            self.status = ConversionStatus.FAILED
            self.logger.exception(f"Conversion failed unexpectedly: {e}")
            raise

        self.status = ConversionStatus.COMPLETED
        return self.result

    def _capture(self, error: Exception, kind: str) -> None:
        self.error = error
        self.failure_kind = kind
        self.status = ConversionStatus.FAILED
        self.logger.error(f"Conversion failed ({kind}): {error}")

    def update_record(self, record: ExtractedRecord) -> ValidationReport:
        """Replace the record (e.g. after manual review) and re-score it."""
        if self.result is None:
            raise ValueError("No completed conversion to update")
        self.result.record = record
        return self.revalidate()

    def revalidate(self) -> ValidationReport:
        """Build a fresh report from the current record."""
        if self.result is None:
            raise ValueError("No completed conversion to revalidate")
        self.result.report = build_validation_report(self.result.record)
        return self.result.report
