"""Parse a list of uploaded DICOM files, one result per file."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from tqdm import tqdm

from dicom_meta_project.src.config import ExtractorConfig, resolve_config
from dicom_meta_project.src.extractor import parse_dicom_file
from dicom_meta_project.src.metadata import FileParseResult, UploadedFile

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

CANCELLED_MESSAGE = "Cancelled before processing"


def file_name(item: Any) -> str:
    if isinstance(item, UploadedFile):
        return item.name
    if isinstance(item, tuple) and len(item) == 2:
        return str(item[1])
    if isinstance(item, (str, Path)):
        return str(item)
    return str(getattr(item, "name", repr(item)))


def read_file(item: Any) -> Tuple[bytes, str]:
    """Read one batch entry fully into memory and return (data, name).

    Accepts an ``UploadedFile``, a ``(data, name)`` pair, a filesystem path or
    any object with a ``read()`` method.
    """

    if isinstance(item, UploadedFile):
        return item.data, item.name
    if isinstance(item, tuple) and len(item) == 2:
        data, name = item
        return bytes(data), str(name)
    if isinstance(item, (str, Path)):
        return Path(item).read_bytes(), str(item)
    if hasattr(item, "read"):
        return bytes(item.read()), file_name(item)
    raise TypeError(f"Unsupported batch entry: {type(item).__name__}")


def _process_one(
    item: Any, config: ExtractorConfig, cancel_event: Optional[threading.Event]
) -> FileParseResult:
    if cancel_event is not None and cancel_event.is_set():
        return FileParseResult(file=item, metadata=None, status="error", error=CANCELLED_MESSAGE)

    try:
        data, name = read_file(item)
        metadata = parse_dicom_file(data, config=config, name=name)
    except Exception as exc:
        logger.error("Failed to parse %s: %s", file_name(item), exc)
        message = str(exc) or exc.__class__.__name__
        return FileParseResult(file=item, metadata=None, status="error", error=message)

    return FileParseResult(file=item, metadata=metadata, status="success", error=None)


def _iter_results(
    files: Sequence[Any], config: ExtractorConfig, cancel_event: Optional[threading.Event]
) -> Iterable[FileParseResult]:
    if config.parallel:
        with ThreadPoolExecutor(max_workers=config.num_workers) as executor:
            yield from executor.map(lambda item: _process_one(item, config, cancel_event), files)
    else:
        for item in files:
            yield _process_one(item, config, cancel_event)


def parse_dicom_files_in_batch(
    files: Sequence[Any],
    on_progress: Optional[ProgressCallback] = None,
    config: Optional[ExtractorConfig] = None,
    cancel_event: Optional[threading.Event] = None,
) -> List[FileParseResult]:
    """Parse every file in ``files`` and return results in input order.

    A failing file is recorded with ``status="error"`` and never stops the
    batch. ``on_progress(current, total)`` is called after every file. Once
    ``cancel_event`` is set, files that have not started are recorded as
    cancelled errors.
    """

    config = resolve_config(config)
    files = list(files)
    total = len(files)
    results: List[FileParseResult] = []

    with tqdm(total=total, desc="Parsing DICOM", unit="file", disable=not config.show_progress) as progress:
        for result in _iter_results(files, config, cancel_event):
            results.append(result)
            progress.update()
            if on_progress is not None:
                on_progress(len(results), total)

    failed = sum(1 for r in results if not r.ok)
    logger.info("Parsed %d files (%d failed)", total, failed)
    return results


__all__ = ["CANCELLED_MESSAGE", "parse_dicom_files_in_batch", "read_file"]
