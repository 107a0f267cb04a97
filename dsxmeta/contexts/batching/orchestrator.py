"""
Batch orchestration of the extraction pipeline.

Each document moves through

    QUEUED -> EXTRACTING (archives only) -> PARSING -> CACHED | FAILED

Two execution modes share the same per-document pipeline:

- process_documents(): one document at a time, in input order, with a
  progress callback after every (sub-)document
- process_documents_parallel(): a bounded pool of workers draining one
  shared queue; result order is unspecified

Both consult the result cache before parsing and isolate failures: a bad
document becomes a FAILED result and the batch carries on.
"""

import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from dsxmeta.contexts.batching.documents import (
    ARCHIVE_EXTENSION,
    DOCUMENT_EXTENSION,
    ZIP_ERRORS,
    SourceDocument,
    decode_document,
    expand_archive,
    load_batch_config,
)
from dsxmeta.contexts.batching.logger import (
    _log_debug,
    _log_info,
    _log_warning,
    log_batch_summary,
    log_document_result,
)
from dsxmeta.contexts.batching.result_cache import ResultCache
from dsxmeta.contexts.extraction.assembler import assemble_job_metadata
from dsxmeta.contexts.extraction.exceptions import DSXParsingError
from dsxmeta.contexts.extraction.job_data_structure import JobMetadata
from dsxmeta.contexts.extraction.rule_filters import RuleFilter, load_extraction_config
from dsxmeta.contexts.extraction.validator import ValidationResult, validate_job_metadata

DEFAULT_MAX_CONCURRENT = 3
DEFAULT_ARCHIVE_SIZE_ESTIMATE = 5
CANCELLED_ERROR = "Cancelled"


class DocumentStatus(Enum):
    QUEUED = "queued"
    EXTRACTING = "extracting"
    PARSING = "parsing"
    CACHED = "cached"
    FAILED = "failed"


@dataclass(frozen=True)
class DocumentResult:
    """
    Outcome of one job document.

    Attributes:
        document_name: Document (or archive member) name
        status: CACHED on success, FAILED otherwise
        model: Assembled job metadata (success only)
        validation: Advisory validation result (success only)
        error: Failure message (failure only)
        from_cache: True when the result was served from the cache
    """

    document_name: str
    status: DocumentStatus
    model: Optional[JobMetadata] = None
    validation: Optional[ValidationResult] = None
    error: Optional[str] = None
    from_cache: bool = False

    @property
    def success(self) -> bool:
        return self.status is DocumentStatus.CACHED and self.model is not None

    def to_dict(self) -> Dict[str, Any]:
        result = {"document_name": self.document_name, "status": self.status.value}
        if self.model is not None:
            result["model"] = self.model.to_dict()
        if self.validation is not None:
            result["validation"] = self.validation.to_dict()
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass(frozen=True)
class ProcessingProgress:
    total: int
    processed: int
    current_document: str


@dataclass
class BatchResult:
    """Results of a batch, one per job document (or unreadable archive)."""

    results: List[DocumentResult]

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.results if not result.success)

    def models(self) -> List[JobMetadata]:
        """Models of the successful documents."""
        return [result.model for result in self.results if result.success]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "results": [result.to_dict() for result in self.results],
        }


ProgressCallback = Callable[[ProcessingProgress], None]


# =============================================================================
# DEFAULT CACHE
# =============================================================================

_DEFAULT_CACHE: ResultCache = ResultCache()


def default_cache() -> ResultCache:
    """Return the module-level cache used when no cache is injected."""
    return _DEFAULT_CACHE


def clear_parser_cache() -> None:
    """Evict every entry from the default cache."""
    evicted = len(_DEFAULT_CACHE)
    _DEFAULT_CACHE.clear()
    _log_info(f"Cleared parser cache ({evicted} entries)")


# =============================================================================
# PER-DOCUMENT PIPELINE
# =============================================================================


def parse_document(
    document: SourceDocument,
    config: Optional[dict] = None,
    rule_filter: Optional[RuleFilter] = None,
) -> Tuple[JobMetadata, ValidationResult]:
    """
    Run decode -> assemble -> validate on one job document.

    Args:
        document: Job document (not an archive)
        config: Extraction config (loaded when omitted)
        rule_filter: Transform rule filter (built from config when omitted)

    Returns:
        (model, validation)

    Raises:
        DSXParsingError: If the document is unreadable or has no job structure
    """
    text = decode_document(document.read_bytes(), document_name=document.name)
    model = assemble_job_metadata(
        text, rule_filter=rule_filter, config=config, document_name=document.name
    )
    return model, validate_job_metadata(model)


def _failed(document_name: str, error: str) -> DocumentResult:
    return DocumentResult(document_name=document_name, status=DocumentStatus.FAILED, error=error)


def _process_job_document(
    document: SourceDocument,
    cache: ResultCache,
    config: dict,
    rule_filter: RuleFilter,
) -> DocumentResult:
    cached = cache.get(document.cache_key)
    if cached is not None:
        result = replace(cached, from_cache=True)
        log_document_result(result)
        return result

    _log_debug(f"{document.name}: {DocumentStatus.PARSING.value}")
    try:
        model, validation = parse_document(document, config=config, rule_filter=rule_filter)
    except DSXParsingError as e:
        result = _failed(document.name, e.message)
    except ZIP_ERRORS as e:
        result = _failed(document.name, str(e))
    else:
        # Only successes are cached; a concurrent writer may have won the race
        result = cache.put(
            document.cache_key,
            DocumentResult(
                document_name=document.name,
                status=DocumentStatus.CACHED,
                model=model,
                validation=validation,
            ),
        )

    log_document_result(result)
    return result


def _expand(document: SourceDocument, batch_config: dict) -> List[SourceDocument]:
    """Return the job documents an input contributes (itself, or its archive members)."""
    if not document.is_archive(batch_config.get("archive_extension", ARCHIVE_EXTENSION)):
        return [document]
    _log_debug(f"{document.name}: {DocumentStatus.EXTRACTING.value}")
    return expand_archive(document, batch_config.get("document_extension", DOCUMENT_EXTENSION))


def _process_input(
    document: SourceDocument,
    cache: ResultCache,
    config: dict,
    rule_filter: RuleFilter,
    batch_config: dict,
) -> List[DocumentResult]:
    try:
        members = _expand(document, batch_config)
    except DSXParsingError as e:
        result = _failed(document.name, e.message)
        log_document_result(result)
        return [result]
    return [_process_job_document(member, cache, config, rule_filter) for member in members]


def _load_configs(config: Optional[dict], batch_config: Optional[dict]) -> Tuple[dict, RuleFilter, dict]:
    config = load_extraction_config() if config is None else config
    batch_config = load_batch_config() if batch_config is None else batch_config
    return config, RuleFilter.from_rules(config.get("transform_rules", {})), batch_config


# =============================================================================
# EXECUTION MODES
# =============================================================================


def process_documents(
    documents: Iterable[SourceDocument],
    cache: Optional[ResultCache] = None,
    on_progress: Optional[ProgressCallback] = None,
    config: Optional[dict] = None,
    batch_config: Optional[dict] = None,
) -> BatchResult:
    """
    Process documents one at a time, in input order.

    The progress total starts from an estimate (archives count as
    archive_size_estimate documents) and is corrected as soon as an
    archive's real member count is known.

    Args:
        documents: Input documents (job documents and/or archives)
        cache: Result cache (default cache when omitted)
        on_progress: Called after every processed (sub-)document
        config: Extraction config (loaded when omitted)
        batch_config: Batch config (loaded when omitted)

    Returns:
        BatchResult with results in input order
    """
    documents = list(documents)
    cache = default_cache() if cache is None else cache
    config, rule_filter, batch_config = _load_configs(config, batch_config)

    archive_extension = batch_config.get("archive_extension", ARCHIVE_EXTENSION)
    estimate = batch_config.get("archive_size_estimate", DEFAULT_ARCHIVE_SIZE_ESTIMATE)
    total = sum(estimate if d.is_archive(archive_extension) else 1 for d in documents)
    processed = 0
    results: List[DocumentResult] = []

    _log_info(f"Processing {len(documents)} input(s) sequentially")

    def report(document_name: str) -> None:
        if on_progress is not None:
            on_progress(ProcessingProgress(total=total, processed=processed, current_document=document_name))

    for document in documents:
        is_archive = document.is_archive(archive_extension)
        try:
            members = _expand(document, batch_config)
        except DSXParsingError as e:
            result = _failed(document.name, e.message)
            log_document_result(result)
            results.append(result)
            if is_archive:
                total += 1 - estimate
            processed += 1
            report(document.name)
            continue

        if is_archive:
            total += len(members) - estimate

        for member in members:
            results.append(_process_job_document(member, cache, config, rule_filter))
            processed += 1
            report(member.name)

    batch = BatchResult(results)
    log_batch_summary(batch)
    return batch


def process_documents_parallel(
    documents: Iterable[SourceDocument],
    max_concurrent: Optional[int] = None,
    cache: Optional[ResultCache] = None,
    cancel_event: Optional[threading.Event] = None,
    config: Optional[dict] = None,
    batch_config: Optional[dict] = None,
) -> BatchResult:
    """
    Process documents with a bounded pool of workers.

    Workers pull inputs from one shared queue; each worker fully drains an
    input (including archive expansion) before pulling the next. When the
    cancel event is set, inputs not yet pulled are reported as failed with
    "Cancelled". Every input is represented in the result exactly once.

    Args:
        documents: Input documents (job documents and/or archives)
        max_concurrent: Worker count (batch config max_concurrent when omitted)
        cache: Result cache (default cache when omitted)
        cancel_event: Optional event that stops workers from starting new inputs
        config: Extraction config (loaded when omitted)
        batch_config: Batch config (loaded when omitted)

    Returns:
        BatchResult in completion order

    Raises:
        ValueError: If max_concurrent is less than 1
    """
    documents = list(documents)
    cache = default_cache() if cache is None else cache
    config, rule_filter, batch_config = _load_configs(config, batch_config)

    if max_concurrent is None:
        max_concurrent = batch_config.get("max_concurrent", DEFAULT_MAX_CONCURRENT)
    if max_concurrent < 1:
        raise ValueError(f"max_concurrent must be at least 1, got {max_concurrent}")

    work: "queue.Queue[SourceDocument]" = queue.Queue()
    for document in documents:
        work.put(document)

    results: List[DocumentResult] = []
    lock = threading.Lock()

    def worker() -> None:
        while True:
            try:
                document = work.get_nowait()
            except queue.Empty:
                return

            if cancel_event is not None and cancel_event.is_set():
                outcome = [_failed(document.name, CANCELLED_ERROR)]
            else:
                outcome = _process_input(document, cache, config, rule_filter, batch_config)

            with lock:
                results.extend(outcome)
            work.task_done()

    worker_count = max(1, min(max_concurrent, len(documents)))
    _log_info(f"Processing {len(documents)} input(s) with {worker_count} worker(s)")

    with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="dsx-worker") as executor:
        futures = [executor.submit(worker) for _ in range(worker_count)]
        for future in futures:
            future.result()

    if cancel_event is not None and cancel_event.is_set():
        cancelled = sum(1 for result in results if result.error == CANCELLED_ERROR)
        _log_warning(f"Batch cancelled: {cancelled} input(s) not processed")

    batch = BatchResult(results)
    log_batch_summary(batch)
    return batch
