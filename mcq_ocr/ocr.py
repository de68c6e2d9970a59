"""
OCR Engine
==========
Runs Tesseract (through pytesseract) on PNG screenshots and returns the
raw recognized text. Images are opened with Pillow.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

import pytesseract
from PIL import Image

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class OCRError(Exception):
    """OCR failed for a specific image."""

    def __init__(self, image_path: PathLike, cause: Exception):
        self.image_path = str(image_path)
        self.cause = cause
        super().__init__(f"OCR failed for {self.image_path}: {cause}")


class TesseractOCR:
    """
    Thin wrapper around the Tesseract binary.

    Defaults mirror a plain `tesseract img out -l eng --oem 1 --psm 3` run:
    LSTM engine only, fully automatic page segmentation.
    """

    def __init__(
        self,
        lang: str = "eng",
        oem: int = 1,
        psm: int = 3,
        timeout: float = 60,
        tesseract_cmd: Optional[str] = None,
    ):
        self.lang = lang
        self.oem = oem
        self.psm = psm
        self.timeout = timeout

        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    @property
    def config(self) -> str:
        return f"--oem {self.oem} --psm {self.psm}"

    def recognize(self, image_path: PathLike) -> str:
        """
        Extract text from one image.

        Raises:
            OCRError: Tesseract is missing, errored, timed out, or the
                image could not be read.
        """
        logger.debug(f"Running OCR on {image_path} ({self.config})")
        try:
            with Image.open(image_path) as image:
                return pytesseract.image_to_string(
                    image,
                    lang=self.lang,
                    config=self.config,
                    timeout=self.timeout,
                )
        except (pytesseract.TesseractError, RuntimeError, OSError) as e:
            # TesseractNotFoundError and PIL's UnidentifiedImageError are
            # OSError subclasses; timeouts surface as RuntimeError
            raise OCRError(image_path, e) from e

    def version(self) -> str:
        return str(pytesseract.get_tesseract_version())
