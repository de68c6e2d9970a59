"""
MCQ OCR Extractor: Main Entry Point
===================================
Reference batch driver: OCR every PNG in a directory and write the text,
JSON and raw OCR reports.

Usage:
    python main.py                              # ./docs → ./extracted-questions-ocr.txt
    python main.py screenshots out/questions.txt
    python main.py screenshots --psm 6
"""

import argparse
import logging
import sys

from mcq_ocr.engine import ExtractionEngine, ExtractorConfig

logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(levelname)-8s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def main(argv=None, ocr=None) -> int:
    parser = argparse.ArgumentParser(description="MCQ OCR Extractor")
    parser.add_argument("directory", nargs="?", default="./docs",
                        help="Directory of PNG screenshots")
    parser.add_argument("output_file", nargs="?",
                        default="./extracted-questions-ocr.txt",
                        help="Text report path (JSON is written alongside)")
    parser.add_argument("--lang", default="eng", help="OCR language")
    parser.add_argument("--psm", type=int, default=3,
                        help="Tesseract page segmentation mode")
    parser.add_argument("--log-file", default=None, help="Path to log file")
    args = parser.parse_args(argv)

    config = ExtractorConfig(lang=args.lang, psm=args.psm, log_file=args.log_file)
    engine = ExtractionEngine(config, ocr=ocr)

    logger.info(f"Processing PNG files in: {args.directory}")
    try:
        result = engine.process_directory(args.directory)
    except (FileNotFoundError, NotADirectoryError) as e:
        logger.error(str(e))
        return 1

    paths = engine.save_outputs(result, args.output_file)
    if paths:
        logger.info(
            f"Successfully extracted {len(result.questions)} questions using OCR"
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
