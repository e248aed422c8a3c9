from __future__ import annotations

import argparse


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="reader-service",
        description="Extract, analyze, search and question PDF documents",
    )

    p.add_argument(
        "documents",
        nargs="+",
        metavar="PATH_OR_URI",
        help="Local PDF path, gs://bucket/object.pdf, or gs://bucket/prefix/ to expand",
    )
    p.add_argument("--query", default=None, help="Rank the processed documents against this query")
    p.add_argument("--ask", default=None, metavar="QUESTION", help="Ask this question of every finished document")
    p.add_argument("--images", action="store_true", help="Describe pages that contain images")
    p.add_argument("--force", action="store_true", help="Ignore and replace cached results")
    p.add_argument("--clear-cache", action="store_true", help="Delete every cache entry before processing")
    p.add_argument("--no-ocr", action="store_true", help="Disable OCR (overrides READER_OCR_ENABLED)")
    p.add_argument(
        "--concurrency",
        type=int,
        default=0,
        help="Override READER_MAX_CONCURRENT_DOCUMENTS",
    )
    p.add_argument("--json", action="store_true", help="Print records as JSON")
    p.add_argument("--log-level", default="INFO", help="Python logging level (INFO, DEBUG, ...)")
    return p
