"""
Document intake.

A SourceDocument is one uploaded input: either a DSX text document or a
zip archive of them. Content is held in memory (uploads), read lazily
from a path (CLI), or read lazily from the archive a member came from.
"""

import codecs
import io
import os
import zipfile
import zlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from dsxmeta.contexts.batching.logger import _log_debug
from dsxmeta.contexts.extraction.exceptions import UnreadableDocumentError
from dsxmeta.utils.config import load_yaml_config
from dsxmeta.utils.timestamp import from_epoch

load_dotenv()
BATCH_CONFIG_PATH = Path(os.getenv("DSX_BATCH_CONFIG", Path(__file__).parent / "batch_config.yaml"))

DOCUMENT_EXTENSION = ".dsx"
ARCHIVE_EXTENSION = ".zip"

# Raised by zipfile while opening an archive or inflating a member
ZIP_ERRORS = (
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    zlib.error,
    NotImplementedError,
    RuntimeError,
    OSError,
    EOFError,
)


def load_batch_config(config_path: Optional[Path] = None) -> dict:
    """Load the batch config (defaults to DSX_BATCH_CONFIG or the packaged file)."""
    return load_yaml_config(config_path or BATCH_CONFIG_PATH)


@dataclass(frozen=True)
class SourceDocument:
    """
    One input document.

    Attributes:
        name: Document name (file name, or member path inside an archive)
        modified_at: Modification timestamp (ISO 8601); part of the cache key
        content: In-memory bytes, if any
        path: Filesystem path read when content is None
        archive: Archive this document is a member of; its bytes are
            inflated on read, so one bad member never affects its siblings
    """

    name: str
    modified_at: str
    content: Optional[bytes] = None
    path: Optional[Path] = None
    archive: Optional["SourceDocument"] = field(default=None, repr=False)

    @classmethod
    def from_path(cls, path: Path) -> "SourceDocument":
        """Describe a file on disk without reading it yet."""
        path = Path(path)
        return cls(name=path.name, modified_at=from_epoch(path.stat().st_mtime), path=path)

    def read_bytes(self) -> bytes:
        """
        Return the document bytes.

        Raises:
            UnreadableDocumentError: If the document has no content, the file cannot be
                read, or the archive member cannot be inflated
        """
        if self.content is not None:
            return self.content
        if self.archive is not None:
            return _read_member(self.archive, self.name)
        if self.path is None:
            raise UnreadableDocumentError("Document has no content", document_name=self.name)
        try:
            return self.path.read_bytes()
        except OSError as e:
            raise UnreadableDocumentError(f"Cannot read document: {e}", document_name=self.name) from e

    def is_archive(self, extension: str = ARCHIVE_EXTENSION) -> bool:
        return self.name.lower().endswith(extension)

    def is_job_document(self, extension: str = DOCUMENT_EXTENSION) -> bool:
        return self.name.lower().endswith(extension)

    @property
    def cache_key(self) -> Tuple[str, str]:
        """(name, modification timestamp) identity used by the result cache."""
        return (self.name, self.modified_at)


def _member_modified_at(info: zipfile.ZipInfo) -> str:
    try:
        return datetime(*info.date_time, tzinfo=timezone.utc).isoformat()
    except ValueError:
        # Zip timestamps can be out of range (e.g., all zeros)
        return ""


def expand_archive(document: SourceDocument, extension: str = DOCUMENT_EXTENSION) -> List[SourceDocument]:
    """
    Expand a zip archive into its job documents.

    Only members ending with the document extension are kept; directories
    and other entries are ignored. Member names keep their archive path.
    Member bytes are not inflated here: a corrupt member fails when it is
    read, as its own document.

    Args:
        document: Archive document
        extension: Job document extension (".dsx")

    Returns:
        Member documents in archive order

    Raises:
        UnreadableDocumentError: If the archive itself cannot be opened
    """
    # Snapshot the bytes so members never re-read the archive from disk
    source = SourceDocument(name=document.name, modified_at=document.modified_at, content=document.read_bytes())
    try:
        with zipfile.ZipFile(io.BytesIO(source.content)) as archive:
            infos = archive.infolist()
    except ZIP_ERRORS as e:
        raise UnreadableDocumentError(f"Cannot open archive: {e}", document_name=document.name) from e

    members = []
    for info in infos:
        if info.is_dir():
            continue
        member = SourceDocument(
            name=info.filename,
            modified_at=_member_modified_at(info) or document.modified_at,
            archive=source,
        )
        if member.is_job_document(extension):
            members.append(member)

    _log_debug(f"Expanded {document.name}: {len(members)} job document(s)")
    return members


def _read_member(archive: SourceDocument, member_name: str) -> bytes:
    try:
        with zipfile.ZipFile(io.BytesIO(archive.read_bytes())) as bundle:
            return bundle.read(member_name)
    except ZIP_ERRORS as e:
        raise UnreadableDocumentError(
            f"Cannot read archive member: {e}", document_name=member_name
        ) from e


def decode_document(data: bytes, document_name: Optional[str] = None) -> str:
    """
    Decode document bytes as UTF-8, tolerating a byte-order mark.

    Raises:
        UnreadableDocumentError: If the bytes are not valid UTF-8
    """
    if data.startswith(codecs.BOM_UTF8):
        data = data[len(codecs.BOM_UTF8):]
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise UnreadableDocumentError(
            f"Document is not valid UTF-8 text: {e.reason} at byte {e.start}",
            document_name=document_name,
        ) from e


def archive_member_name(name: str) -> str:
    """Return the base file name of an archive member path."""
    return PurePosixPath(name).name
