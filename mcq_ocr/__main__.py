"""
Module entry point for: python -m mcq_ocr

Allows running the extractor directly as a module:
    python -m mcq_ocr extract <directory> [output_file] [options]
    python -m mcq_ocr parse <text_file>
    python -m mcq_ocr ocr <image_path>
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
