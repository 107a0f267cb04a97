"""
Export of batch results as JSON files.

Each successful document becomes `<document name without extension>.json`
holding its pretty-printed model. Failed documents are not exported. When
two documents map to the same path (the same member path in two
archives), later ones get a `-<n>` suffix.
"""

import io
import json
import zipfile
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterable, List, Set

from dsxmeta.contexts.batching.documents import archive_member_name
from dsxmeta.contexts.batching.logger import _log_info
from dsxmeta.contexts.batching.orchestrator import DocumentResult


def export_filename(document_name: str, index: int = 1) -> str:
    """
    Map a document name to its export file name.

    Example:
        >>> export_filename("jobs/LOAD_SALES.dsx")
        'jobs/LOAD_SALES.json'
        >>> export_filename("", 3)
        'file-3.json'
    """
    if not document_name:
        return f"file-{index}.json"
    return str(PurePosixPath(document_name).with_suffix(".json"))


def _unique_path(path: str, taken: Set[str]) -> str:
    """
    Return path, or path with a -<n> suffix when it is already taken.

    Example:
        >>> _unique_path("jobs/LOAD.json", {"jobs/LOAD.json"})
        'jobs/LOAD-2.json'
    """
    original = PurePosixPath(path)
    candidate = path
    suffix = 2
    while candidate in taken:
        candidate = str(original.with_stem(f"{original.stem}-{suffix}"))
        suffix += 1
    taken.add(candidate)
    return candidate


def _render(result: DocumentResult) -> str:
    return json.dumps(result.model.to_dict(), indent=2, ensure_ascii=False)


def build_export_entries(results: Iterable[DocumentResult]) -> List[Dict[str, Any]]:
    """
    Build the file tree of an export: one entry per successful document.

    Returns:
        Dicts with "name" (file name), "path" (path inside the bundle),
        "content" (pretty-printed JSON) and "model" (JSON-ready dict)
    """
    entries = []
    taken: Set[str] = set()
    for index, result in enumerate(results, start=1):
        if not result.success:
            continue
        path = _unique_path(export_filename(result.document_name, index), taken)
        entries.append(
            {
                "name": archive_member_name(path),
                "path": path,
                "content": _render(result),
                "model": result.model.to_dict(),
            }
        )
    return entries


def export_archive_bytes(results: Iterable[DocumentResult]) -> bytes:
    """Build the export bundle in memory and return the zip bytes."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as bundle:
        for entry in build_export_entries(results):
            bundle.writestr(entry["path"], entry["content"])
    return buffer.getvalue()


def write_export_archive(results: Iterable[DocumentResult], destination: Path) -> Path:
    """
    Write the export bundle to disk.

    Args:
        results: Document results (failures are skipped)
        destination: Zip file path (parent directories are created)

    Returns:
        Path to the written bundle
    """
    results = list(results)
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(export_archive_bytes(results))
    _log_info(f"Exported {sum(1 for r in results if r.success)} model(s) to {destination}")
    return destination
