"""
Data Models
===========
Pydantic models for OCR-based multiple-choice question extraction.
All models are serializable to JSON for the report writers.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

OPTION_IDS = ("A", "B", "C", "D")


# ─── Enums ────────────────────────────────────────────────────────────────────


class DiagnosticSeverity(str, Enum):
    """Severity of a diagnostic event."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class DiagnosticType(str, Enum):
    """Kinds of events raised while processing an image."""
    SHORT_QUESTION_TEXT = "short_question_text"
    TOO_FEW_OPTIONS = "too_few_options"
    MISSING_LABELED_OPTIONS = "missing_labeled_options"
    INFERRED_OPTION = "inferred_option"
    SYNTHESIZED_QUESTION_ID = "synthesized_question_id"
    OCR_FAILURE = "ocr_failure"
    PARSE_FAILURE = "parse_failure"
    FILTERED_OUT = "filtered_out"


class ImageStatus(str, Enum):
    """Outcome of processing a single image."""
    EXTRACTED = "extracted"
    FILTERED = "filtered"
    OCR_FAILED = "ocr_failed"
    PARSE_FAILED = "parse_failed"


# ─── Question Models ──────────────────────────────────────────────────────────


class Option(BaseModel):
    """A single lettered answer option."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(pattern=r"^[A-D]$")
    text: str = Field(min_length=1)


class Question(BaseModel):
    """
    A parsed multiple-choice question.

    Built once per image by the text parser and never mutated afterwards.
    Options are kept sorted by id, at most one per letter.
    """
    model_config = ConfigDict(frozen=True)

    question_id: str = Field(min_length=1)
    source_name: str
    question_body: str = ""
    options: tuple[Option, ...] = ()
    raw_text: str = Field(
        default="",
        description="Unmodified OCR output the question was parsed from"
    )

    @field_validator("options")
    @classmethod
    def _check_options(cls, options: tuple[Option, ...]) -> tuple[Option, ...]:
        if len(options) > len(OPTION_IDS):
            raise ValueError(
                f"At most {len(OPTION_IDS)} options allowed, got {len(options)}"
            )
        ids = [opt.id for opt in options]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate option ids: {ids}")
        return tuple(sorted(options, key=lambda o: o.id))

    @computed_field
    @property
    def option_count(self) -> int:
        return len(self.options)

    @computed_field
    @property
    def has_raw_text(self) -> bool:
        return bool(self.raw_text)

    @property
    def option_ids(self) -> list[str]:
        return [opt.id for opt in self.options]


# ─── Diagnostic Model ─────────────────────────────────────────────────────────


class Diagnostic(BaseModel):
    """
    One event in the diagnostic stream.
    Low-confidence parses are reported here rather than raised.
    """
    severity: DiagnosticSeverity
    source_name: str
    type: DiagnosticType
    message: str
    context: Optional[dict] = None


# ─── Batch Models ─────────────────────────────────────────────────────────────


class ImageResult(BaseModel):
    """Result of running OCR + parsing on one image."""
    source_name: str
    image_path: str = ""
    status: ImageStatus
    question: Optional[Question] = None
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == ImageStatus.EXTRACTED


class BatchResult(BaseModel):
    """
    Complete output of a directory run.
    Images appear in the order they were processed.
    """
    directory: str
    images: list[ImageResult] = Field(default_factory=list)
    started_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    finished_at: Optional[str] = None

    @computed_field
    @property
    def total_images(self) -> int:
        return len(self.images)

    @computed_field
    @property
    def extracted_count(self) -> int:
        return sum(1 for r in self.images if r.succeeded)

    @computed_field
    @property
    def failed_count(self) -> int:
        return sum(
            1 for r in self.images
            if r.status in (ImageStatus.OCR_FAILED, ImageStatus.PARSE_FAILED)
        )

    @property
    def questions(self) -> list[Question]:
        return [r.question for r in self.images if r.succeeded and r.question]

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return [d for r in self.images for d in r.diagnostics]
