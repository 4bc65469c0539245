"""Command-line tool for extracting metadata from a folder of DICOM files.

Every file under the input directory is read into memory and handed to the
batch parser. One row per file (including failures) is written to a CSV or
JSON file in the output directory.
"""

from __future__ import annotations

import argparse  # Parse CLI flags and options
import csv  # Write extracted rows to a CSV file
import json  # Write full records when --format json is used
import logging  # Configure console logging for the library modules
import sys  # Report errors and exit codes
from pathlib import Path  # Handle filesystem paths in a platform-agnostic way
from typing import Any, Dict, Iterable, List, Optional  # Type hints

from dicom_meta_project.src.batch import parse_dicom_files_in_batch
from dicom_meta_project.src.config import load_config
from dicom_meta_project.src.metadata import FileParseResult

CSV_COLUMNS = [
    "source_path",
    "status",
    "error",
    "study_instance_uid",
    "series_instance_uid",
    "sop_instance_uid",
    "patient_id",
    "patient_name",
    "patient_birth_date",
    "study_date",
    "study_description",
    "modality",
    "series_number",
    "series_description",
    "instance_number",
]


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""

    parser = argparse.ArgumentParser(
        description="Extract key metadata from DICOM files and save as CSV or JSON."
    )
    parser.add_argument(
        "--input_dir",
        type=Path,  # Coerce the string into a Path object
        required=True,
        help="Directory containing DICOM files to process.",
    )
    parser.add_argument(
        "--output_dir",
        type=Path,
        required=True,
        help="Directory where the output file will be written.",
    )
    parser.add_argument(
        "--output-name",
        default=None,
        help="Name of the file to create inside the output directory "
        "(default: dicom_metadata.csv or dicom_metadata.json).",
    )
    parser.add_argument(
        "--format",
        choices=("csv", "json"),
        default="csv",
        help="Output format.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional extractor configuration JSON.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    return parser.parse_args(list(argv) if argv is not None else None)  # Allow tests to inject argv


def find_dicom_files(root: Path) -> List[Path]:
    """Return every file under ``root`` in a stable order."""

    # The batch parser decides whether each file is valid DICOM.
    return sorted(path for path in root.rglob("*") if path.is_file())


def _csv_value(value: Any) -> str:
    if value is None:
        return ""
    if hasattr(value, "isoformat"):
        return value.isoformat()  # Dates render as YYYY-MM-DD
    return str(value)


def result_to_row(result: FileParseResult) -> List[str]:
    """Flatten one parse result into a CSV row matching ``CSV_COLUMNS``."""

    row = [str(result.file), result.status, result.error or ""]
    for column in CSV_COLUMNS[3:]:
        value = getattr(result.metadata, column) if result.metadata is not None else None
        row.append(_csv_value(value))
    return row


def result_to_dict(result: FileParseResult) -> Dict[str, Any]:
    return {
        "source_path": str(result.file),
        "status": result.status,
        "error": result.error,
        "metadata": result.metadata.to_dict() if result.metadata is not None else None,
    }


def write_csv(output_path: Path, results: Iterable[FileParseResult]) -> None:
    """Write ``results`` to ``output_path`` in CSV format."""

    with output_path.open("w", newline="", encoding="utf-8") as csvfile:
        writer = csv.writer(csvfile)
        # Emit a stable header row so downstream tools can rely on column names.
        writer.writerow(CSV_COLUMNS)
        for result in results:
            writer.writerow(result_to_row(result))


def write_json(output_path: Path, results: Iterable[FileParseResult]) -> None:
    with output_path.open("w", encoding="utf-8") as f:
        json.dump([result_to_dict(r) for r in results], f, ensure_ascii=False, indent=2)


def run(argv: Iterable[str] | None = None) -> int:
    """Entrypoint for command-line execution."""

    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )

    if not args.input_dir.is_dir():  # Reject missing or non-directory inputs early
        print(f"Input directory does not exist or is not a directory: {args.input_dir}", file=sys.stderr)
        return 1

    config = load_config(args.config)
    args.output_dir.mkdir(parents=True, exist_ok=True)
    output_name: Optional[str] = args.output_name or f"dicom_metadata.{args.format}"
    output_path = args.output_dir / output_name

    files = find_dicom_files(args.input_dir)
    results = parse_dicom_files_in_batch(files, config=config)

    if args.format == "json":
        write_json(output_path, results)
    else:
        write_csv(output_path, results)

    succeeded = sum(1 for r in results if r.ok)
    print(f"Wrote metadata for {succeeded}/{len(results)} files to {output_path}")
    return 0  # Per-file failures are reported in the output, not the exit code


def main() -> None:
    sys.exit(run())  # Delegate to run() so tests can call run() directly


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
