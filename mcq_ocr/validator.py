"""
Validation Engine
=================
Post-parse confidence checks.

A parsed question is never rejected here. Weak results are reported as
diagnostics so the caller can decide what to keep:
    - Question text empty or shorter than 20 characters
    - Fewer than 2 options

Batch summaries are logged by summarize().
"""

from __future__ import annotations

import logging
from collections import Counter

from .models import (
    BatchResult,
    Diagnostic,
    DiagnosticSeverity,
    DiagnosticType,
    ImageStatus,
    Question,
)

logger = logging.getLogger(__name__)

MIN_QUESTION_TEXT_LENGTH = 20
MIN_CONFIDENT_OPTIONS = 2


class ValidationEngine:
    """
    Flags low-confidence questions and applies the keep/drop policy.
    """

    def __init__(self, min_options: int = 1):
        self.min_options = min_options

    def validate(self, question: Question) -> list[Diagnostic]:
        """
        Check a parsed question for low-confidence content.

        Args:
            question: Question produced by the text parser.

        Returns:
            Warning diagnostics, empty when the question looks complete.
        """
        diagnostics = []
        body = question.question_body

        if len(body) < MIN_QUESTION_TEXT_LENGTH:
            diagnostics.append(Diagnostic(
                severity=DiagnosticSeverity.WARNING,
                source_name=question.source_name,
                type=DiagnosticType.SHORT_QUESTION_TEXT,
                message=(
                    f"Question text too short for "
                    f"{question.source_name}: {body!r}"
                ),
                context={"length": len(body)},
            ))

        if question.option_count < MIN_CONFIDENT_OPTIONS:
            diagnostics.append(Diagnostic(
                severity=DiagnosticSeverity.WARNING,
                source_name=question.source_name,
                type=DiagnosticType.TOO_FEW_OPTIONS,
                message=(
                    f"Only found {question.option_count} options for "
                    f"{question.source_name}"
                ),
                context={"option_count": question.option_count},
            ))

        return diagnostics

    def is_acceptable(self, question: Question) -> bool:
        """Keep questions with a body and at least min_options options."""
        return bool(question.question_body) and (
            question.option_count >= self.min_options
        )

    def summarize(self, result: BatchResult) -> dict[str, int]:
        """Log a batch summary and return counts per image status."""
        status_counts = Counter(r.status.value for r in result.images)
        diagnostic_counts = Counter(d.type.value for d in result.diagnostics)

        logger.info("=" * 60)
        logger.info("EXTRACTION REPORT")
        logger.info("=" * 60)
        logger.info(f"Images Processed: {result.total_images}")
        logger.info(
            f"Questions Extracted: "
            f"{status_counts.get(ImageStatus.EXTRACTED.value, 0)}"
        )
        logger.info(
            f"Filtered (low confidence): "
            f"{status_counts.get(ImageStatus.FILTERED.value, 0)}"
        )
        logger.info(
            f"OCR Failures: {status_counts.get(ImageStatus.OCR_FAILED.value, 0)}"
        )
        logger.info(
            f"Parse Failures: "
            f"{status_counts.get(ImageStatus.PARSE_FAILED.value, 0)}"
        )

        if diagnostic_counts:
            logger.info("Diagnostic Breakdown:")
            for diagnostic_type, count in sorted(diagnostic_counts.items()):
                logger.info(f"  • {diagnostic_type}: {count}")

        logger.info("=" * 60)

        return dict(status_counts)
