"""
MCQ OCR Extractor
=================
Extracts multiple-choice questions from scanned or screenshotted PNG images.

Architecture:
    - OCR Engine: Runs Tesseract on each image and returns raw text
    - Text Normalizer: Flattens OCR text and fixes character confusions
    - Structural Parser: Recovers question id, body and options A-D,
      inferring options whose labels were lost to OCR noise
    - Validation Engine: Flags low-confidence questions
    - Output Formatter: Text report, JSON document and raw OCR dump

Version: 1.0.0
"""

__version__ = "1.0.0"
