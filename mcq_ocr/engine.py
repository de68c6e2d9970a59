"""
Extraction Engine
=================
Main orchestrator that combines OCR, text parsing, validation and report
writing into a batch pipeline over a directory of PNG screenshots.

Usage:
    engine = ExtractionEngine(config)
    result = engine.process_directory("path/to/screenshots")
    engine.save_outputs(result, "extracted-questions-ocr.txt")

Architecture:
    PNG → TesseractOCR → raw text → MCQTextParser → Question →
    ValidationEngine → BatchResult → formatter (text / JSON / raw dump)

Images are processed one at a time. A failure on one image is recorded
on its ImageResult and the batch moves on.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Protocol

from .formatter import format_json_report, format_raw_report, format_text_report
from .models import (
    BatchResult,
    Diagnostic,
    DiagnosticSeverity,
    DiagnosticType,
    ImageResult,
    ImageStatus,
)
from .ocr import OCRError, TesseractOCR
from .text_parser import MCQTextParser
from .validator import ValidationEngine

logger = logging.getLogger(__name__)

_SEVERITY_LEVELS = {
    DiagnosticSeverity.INFO: logging.INFO,
    DiagnosticSeverity.WARNING: logging.WARNING,
    DiagnosticSeverity.ERROR: logging.ERROR,
}


class TextRecognizer(Protocol):
    def recognize(self, image_path: str) -> str: ...


@dataclass
class ExtractorConfig:
    """Configuration for the extraction engine."""

    # OCR settings
    lang: str = "eng"
    oem: int = 1
    psm: int = 3
    ocr_timeout: float = 60
    tesseract_cmd: Optional[str] = field(
        default_factory=lambda: os.environ.get("TESSERACT_CMD")
    )

    # Keep policy: body must be non-empty and have this many options
    min_options: int = 1

    # Output settings
    save_raw_text: bool = True

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None


def find_png_files(directory: str) -> list[Path]:
    """PNG files (any extension case) directly inside directory, by name."""
    return sorted(
        p for p in Path(directory).iterdir()
        if p.is_file() and p.suffix.lower() == ".png"
    )


class ExtractionEngine:
    """
    Batch MCQ extraction engine.

    Orchestrates per image:
        1. OCR (external Tesseract call)
        2. Text parsing (identifier, body, options)
        3. Validation (low-confidence diagnostics, keep policy)
    """

    def __init__(
        self,
        config: Optional[ExtractorConfig] = None,
        ocr: Optional[TextRecognizer] = None,
        diagnostic_callback: Optional[Callable[[Diagnostic], None]] = None,
    ):
        self.config = config or ExtractorConfig()
        self._setup_logging()

        self.ocr = ocr or TesseractOCR(
            lang=self.config.lang,
            oem=self.config.oem,
            psm=self.config.psm,
            timeout=self.config.ocr_timeout,
            tesseract_cmd=self.config.tesseract_cmd,
        )
        self.validator = ValidationEngine(min_options=self.config.min_options)
        self.parser = MCQTextParser(self.validator)
        self.diagnostic_callback = diagnostic_callback

    def _setup_logging(self):
        """Configure logging based on config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        package_logger = logging.getLogger("mcq_ocr")
        package_logger.setLevel(log_level)

        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        # Console handler, unless the application already configured logging
        if not package_logger.handlers and not logging.getLogger().handlers:
            console = logging.StreamHandler()
            console.setLevel(log_level)
            console.setFormatter(formatter)
            package_logger.addHandler(console)

        # File handler, one per log path
        if self.config.log_file:
            log_path = os.path.abspath(self.config.log_file)
            if any(
                isinstance(h, logging.FileHandler) and h.baseFilename == log_path
                for h in package_logger.handlers
            ):
                return
            log_dir = Path(self.config.log_file).parent
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(
                self.config.log_file, encoding="utf-8"
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            package_logger.addHandler(file_handler)

    def _emit(self, diagnostic: Diagnostic):
        """Log a diagnostic and forward it to the callback."""
        logger.log(
            _SEVERITY_LEVELS[diagnostic.severity],
            diagnostic.message,
            extra={
                "source_name": diagnostic.source_name,
                "diagnostic_type": diagnostic.type.value,
            },
        )
        if self.diagnostic_callback:
            self.diagnostic_callback(diagnostic)

    def _failure(
        self,
        image_path: Path,
        status: ImageStatus,
        diagnostic_type: DiagnosticType,
        error: Exception,
    ) -> ImageResult:
        diagnostic = Diagnostic(
            severity=DiagnosticSeverity.ERROR,
            source_name=image_path.name,
            type=diagnostic_type,
            message=f"Error processing {image_path.name}: {error}",
        )
        self._emit(diagnostic)
        return ImageResult(
            source_name=image_path.name,
            image_path=str(image_path),
            status=status,
            diagnostics=[diagnostic],
            error=str(error),
        )

    def process_image(self, image_path: str) -> ImageResult:
        """
        Run OCR, parsing and validation on a single image.

        Never raises for OCR or parse problems; the outcome is carried
        on the returned ImageResult.
        """
        path = Path(image_path)
        name = path.name
        logger.info(f"Extracting text from: {name}")

        try:
            raw_text = self.ocr.recognize(str(path))
        except Exception as e:
            error = e if isinstance(e, OCRError) else OCRError(path, e)
            return self._failure(path, ImageStatus.OCR_FAILED,
                                 DiagnosticType.OCR_FAILURE, error)

        logger.debug(f"Raw OCR text preview: {raw_text[:100]!r}")

        try:
            outcome = self.parser.parse(raw_text, name)
        except Exception as e:
            logger.debug(f"Parser traceback for {name}", exc_info=True)
            return self._failure(path, ImageStatus.PARSE_FAILED,
                                 DiagnosticType.PARSE_FAILURE, e)

        for diagnostic in outcome.diagnostics:
            self._emit(diagnostic)

        question = outcome.question
        diagnostics = list(outcome.diagnostics)

        if not self.validator.is_acceptable(question):
            filtered = Diagnostic(
                severity=DiagnosticSeverity.WARNING,
                source_name=name,
                type=DiagnosticType.FILTERED_OUT,
                message=(
                    f"Failed to parse MCQ structure from: {name} "
                    f"(raw text sample: {raw_text[:200]!r})"
                ),
            )
            self._emit(filtered)
            diagnostics.append(filtered)
            status = ImageStatus.FILTERED
        else:
            logger.info(
                f"Extracted question: {question.question_id} "
                f"({question.option_count} options: "
                f"{', '.join(question.option_ids)})"
            )
            status = ImageStatus.EXTRACTED

        return ImageResult(
            source_name=name,
            image_path=str(path),
            status=status,
            question=question,
            diagnostics=diagnostics,
        )

    def process_directory(
        self,
        directory: str,
        progress_callback: Optional[Callable[[int, int, str], None]] = None,
    ) -> BatchResult:
        """
        Process every PNG file in a directory.

        Args:
            directory: Directory holding the screenshots.
            progress_callback: Callback(done, total, file_name) after each image.

        Returns:
            BatchResult with one ImageResult per PNG file.

        Raises:
            FileNotFoundError: If the directory doesn't exist.
            NotADirectoryError: If the path is not a directory.
        """
        if not os.path.exists(directory):
            raise FileNotFoundError(f'Directory "{directory}" does not exist.')
        if not os.path.isdir(directory):
            raise NotADirectoryError(f'"{directory}" is not a directory.')

        result = BatchResult(directory=os.path.abspath(directory))
        png_files = find_png_files(directory)

        if not png_files:
            logger.info("No PNG files found in the directory.")
            result.finished_at = datetime.now(timezone.utc).isoformat()
            return result

        logger.info(f"Processing {len(png_files)} PNG files with OCR...")

        for index, png_file in enumerate(png_files, start=1):
            result.images.append(self.process_image(str(png_file)))
            if progress_callback:
                progress_callback(index, len(png_files), png_file.name)

        result.finished_at = datetime.now(timezone.utc).isoformat()
        self.validator.summarize(result)
        return result

    def save_outputs(
        self,
        result: BatchResult,
        output_file: str,
    ) -> dict[str, Path]:
        """
        Write the text report, the JSON document and the raw OCR dump.

        The JSON file sits next to output_file with ".txt" swapped for
        ".json". Nothing is written when no questions were extracted.

        Returns:
            Mapping of artifact kind ("text", "json", "raw") to path.
        """
        questions = result.questions
        if not questions:
            logger.info("No questions were successfully extracted.")
            return {}

        text_path = Path(output_file)
        text_path.parent.mkdir(parents=True, exist_ok=True)
        if text_path.suffix == ".txt":
            json_path = text_path.with_suffix(".json")
        else:
            json_path = text_path.with_name(text_path.name + ".json")

        paths = {"text": text_path, "json": json_path}
        text_path.write_text(format_text_report(questions), encoding="utf-8")
        json_path.write_text(format_json_report(questions), encoding="utf-8")

        if self.config.save_raw_text:
            raw_path = text_path.with_name(f"{text_path.stem}_raw.txt")
            raw_path.write_text(format_raw_report(questions), encoding="utf-8")
            paths["raw"] = raw_path

        for kind, path in paths.items():
            logger.info(f"Saved {kind} output: {path}")

        return paths
