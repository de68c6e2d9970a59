"""
Output Formatter
================
Renders extracted questions as:
    - a human-readable text report
    - a JSON document
    - a raw OCR dump for debugging the parser
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Optional, Sequence

from .models import Question

TEXT_REPORT_TITLE = "Multiple Choice Questions Extracted from PNG Images (OCR)"
RAW_REPORT_TITLE = "Raw OCR Text Extracted from PNG Images"
EXTRACTION_METHOD = "OCR (Tesseract v5.x)"

TECHNICAL_NOTES = [
    "Extracted using Tesseract OCR v5.x",
    "Text parsing includes error correction for common OCR artifacts",
    "Questions with insufficient text or options are filtered out",
]

HEAVY_RULE = "=" * 80
LIGHT_RULE = "─" * 40


def _timestamp(generated_on: Optional[str]) -> str:
    return generated_on or datetime.now(timezone.utc).isoformat()


def _header(title: str, questions: Sequence[Question], generated_on: str) -> list[str]:
    return [
        title,
        f"Generated on: {generated_on}",
        f"Total Questions: {len(questions)}",
        HEAVY_RULE,
        "",
    ]


def format_text_report(
    questions: Sequence[Question],
    generated_on: Optional[str] = None,
) -> str:
    """Plain-text report meant to be pasted into a chatbot or read as-is."""
    lines = _header(TEXT_REPORT_TITLE, questions, _timestamp(generated_on))

    for index, q in enumerate(questions, start=1):
        lines += [
            f"QUESTION {index}",
            f"ID: {q.question_id}",
            f"Source: {q.source_name}",
            LIGHT_RULE,
            f"Q: {q.question_body}",
            "",
        ]
        for option in q.options:
            lines += [f"{option.id}) {option.text}", ""]
        lines += [HEAVY_RULE, ""]

    lines += [
        "SUMMARY",
        HEAVY_RULE,
        f"Questions processed: {len(questions)}",
        f"Files processed: {', '.join(q.source_name for q in questions)}",
        "",
        "This text file contains all extracted multiple choice questions using OCR.",
        "Upload this file to an AI chatbot for analysis and processing.",
        "",
        "TECHNICAL NOTES:",
    ]
    lines += [f"- {note}" for note in TECHNICAL_NOTES]

    return "\n".join(lines) + "\n"


def build_json_document(
    questions: Sequence[Question],
    generated_on: Optional[str] = None,
) -> dict:
    """The JSON report as a plain dict (camelCase keys)."""
    return {
        "metadata": {
            "generatedOn": _timestamp(generated_on),
            "totalQuestions": len(questions),
            "extractionMethod": EXTRACTION_METHOD,
            "filesProcessed": [q.source_name for q in questions],
        },
        "questions": [
            {
                "questionNumber": index,
                "questionId": q.question_id,
                "sourceFile": q.source_name,
                "questionText": q.question_body,
                "options": [
                    opt.model_dump(include={"id", "text"}) for opt in q.options
                ],
                "metadata": {
                    "hasRawText": q.has_raw_text,
                    "optionCount": q.option_count,
                },
            }
            for index, q in enumerate(questions, start=1)
        ],
        "technicalNotes": list(TECHNICAL_NOTES),
    }


def format_json_report(
    questions: Sequence[Question],
    generated_on: Optional[str] = None,
) -> str:
    return json.dumps(
        build_json_document(questions, generated_on),
        indent=2,
        ensure_ascii=False,
    )


def format_raw_report(
    questions: Sequence[Question],
    generated_on: Optional[str] = None,
) -> str:
    """Unmodified OCR text per source image."""
    lines = _header(RAW_REPORT_TITLE, questions, _timestamp(generated_on))

    for q in questions:
        lines += [
            f"Source: {q.source_name}",
            LIGHT_RULE,
            q.raw_text,
            HEAVY_RULE,
            "",
        ]

    return "\n".join(lines) + "\n"
