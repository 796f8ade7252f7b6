"""Command-line interface for claim extraction and CSV export.

Provides subcommands for extracting a single claim document to JSON and
for processing folders of documents into a CSV file.
"""

import argparse
import asyncio
import csv
import json
import sys
import time
from pathlib import Path

from claim_ocr.errors import ClaimOCRError
from claim_ocr.export import export_json, save_claim
from claim_ocr.models import CLAIM_FIELDS, ClaimRecord, PipelineResult, ProgressEvent
from claim_ocr.pipeline import ClaimPipeline
from claim_ocr.utils.config import load_config
from claim_ocr.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

MEDIA_TYPES_BY_SUFFIX: dict[str, str] = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
}
_META_COLUMNS = ["filename", "status", "processing_time_s", "error"]
_RECORD_COLUMNS = [
    ClaimRecord.model_fields[name].alias or name for name in CLAIM_FIELDS
]


def media_type_for(path: Path) -> str:
    """Guess a document's media type from its file extension.

    Unknown extensions map to ``application/octet-stream``, which the
    pipeline rejects as unsupported.
    """
    return MEDIA_TYPES_BY_SUFFIX.get(path.suffix.lower(), "application/octet-stream")


def _find_documents(input_dir: Path) -> list[Path]:
    """Find all supported claim documents in a directory.

    Args:
        input_dir: Directory to scan for documents.

    Returns:
        Sorted list of document file paths.
    """
    return sorted(
        p
        for p in input_dir.iterdir()
        if p.is_file() and p.suffix.lower() in MEDIA_TYPES_BY_SUFFIX
    )


def _print_progress(event: ProgressEvent) -> None:
    print(f"  [{event.percent:3d}%] {event.step_label}")


def run_file(
    pipeline: ClaimPipeline, file_path: Path, verbose: bool = False
) -> PipelineResult:
    """Run one document through the pipeline."""
    return asyncio.run(
        pipeline.run(
            file_path.read_bytes(),
            media_type_for(file_path),
            on_progress=_print_progress if verbose else None,
        )
    )


def extract_single(file_path: Path, verbose: bool = False) -> dict[str, object]:
    """Process a single claim document and return structured results.

    Args:
        file_path: Path to the document file.
        verbose: Whether to print stage progress.

    Returns:
        Dictionary with filename, rawText and the camelCase record.
    """
    pipeline = ClaimPipeline(load_config())
    result = run_file(pipeline, file_path, verbose)
    return {"filename": file_path.name, **result.to_dict()}


def process_folder(
    input_dir: Path,
    output_csv: Path,
    verbose: bool = False,
) -> dict[str, int]:
    """Extract claims from every document in a folder into a CSV file.

    Args:
        input_dir: Directory containing claim documents.
        output_csv: Path for the output CSV file.
        verbose: Whether to print per-file progress.

    Returns:
        Summary dict with total, successful, and failed counts.
    """
    pipeline = ClaimPipeline(load_config())

    files = _find_documents(input_dir)
    if not files:
        logger.warning("No documents found in %s", input_dir)
        return {"total": 0, "successful": 0, "failed": 0}

    logger.info("Found %d documents to process", len(files))

    rows: list[dict[str, object]] = []
    successful = 0
    failed = 0

    for i, file_path in enumerate(files, 1):
        if verbose:
            print(f"Processing [{i}/{len(files)}]: {file_path.name}")

        start_time = time.time()
        try:
            result = run_file(pipeline, file_path, verbose)
        except ClaimOCRError as exc:
            logger.error("Failed to process %s: %s", file_path.name, exc.message)
            rows.append(
                {
                    "filename": file_path.name,
                    "status": "failed",
                    "error": f"{exc.kind}: {exc.message}",
                }
            )
            failed += 1
            continue

        rows.append(
            {
                "filename": file_path.name,
                "status": "success",
                "processing_time_s": round(time.time() - start_time, 2),
                "error": None,
                **result.record.to_dict(),
            }
        )
        successful += 1

    _write_csv(rows, output_csv)
    logger.info("Results written to %s", output_csv)

    summary = {"total": len(files), "successful": successful, "failed": failed}
    _print_summary(summary, output_csv)
    return summary


def _write_csv(rows: list[dict[str, object]], output_path: Path) -> None:
    """Write one CSV row per document, claim fields after the meta columns.

    Args:
        rows: Result dictionaries.
        output_path: Path for the output CSV file.
    """
    if not rows:
        return

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(
            f, fieldnames=_META_COLUMNS + _RECORD_COLUMNS, extrasaction="ignore"
        )
        writer.writeheader()
        writer.writerows(rows)


def _print_summary(summary: dict[str, int], output_csv: Path) -> None:
    print(f"\n{'=' * 50}")
    print("Claim Extraction Complete")
    print(f"{'=' * 50}")
    print(f"Total:      {summary['total']}")
    print(f"Successful: {summary['successful']}")
    print(f"Failed:     {summary['failed']}")
    print(f"CSV written: {output_csv}")


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        prog="claim-ocr",
        description="Insurance claim OCR extractor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    single_parser = subparsers.add_parser("extract", help="Extract one claim document")
    single_parser.add_argument("file", type=Path, help="PDF, JPEG or PNG to process")
    single_parser.add_argument("-o", "--output", type=Path, help="Export record as JSON")
    single_parser.add_argument(
        "--save", type=Path, help="Append the record to a saved-claims JSON file"
    )
    single_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Print stage progress"
    )

    batch_parser = subparsers.add_parser("batch", help="Process a folder of documents")
    batch_parser.add_argument(
        "input_dir", type=Path, help="Input directory with documents"
    )
    batch_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("claims.csv"),
        help="Output CSV file (default: claims.csv)",
    )
    batch_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Verbose output"
    )

    args = parser.parse_args(argv)

    setup_logging(load_config().log_level)

    if args.command == "extract":
        if not args.file.exists():
            print(f"Error: {args.file} does not exist", file=sys.stderr)
            sys.exit(1)
        try:
            result = extract_single(args.file, args.verbose)
        except ClaimOCRError as exc:
            print(json.dumps(exc.to_payload(), indent=2), file=sys.stderr)
            sys.exit(2)
        record = ClaimRecord.model_validate(result["record"])
        if args.save:
            save_claim(record, args.save)
        if args.output:
            written = export_json(record, args.output)
            print(f"Output written to {written}")
        else:
            print(json.dumps(result, indent=2))
    elif args.command == "batch":
        if not args.input_dir.is_dir():
            print(f"Error: {args.input_dir} is not a directory", file=sys.stderr)
            sys.exit(1)
        process_folder(args.input_dir, args.output, args.verbose)
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
