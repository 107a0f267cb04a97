"""
Batching context logger.

Provides logging interface for batching context with automatic [batch] prefix.
All batching modules should import from this module, not from utils.logger directly.
"""

from pathlib import Path

from loguru import logger

from dsxmeta.utils.logger import setup_logger as _setup_logger

CONTEXT_PREFIX = "[batch]"


def setup_batch_logger(log_dir: Path, extra_provenance: dict = None, console_level: str = None) -> Path:
    """
    Setup logger for batching context.

    Args:
        log_dir: Directory for this batch session
        extra_provenance: Additional provenance (e.g., {"Max concurrent": 3})
        console_level: Console threshold override (e.g., "DEBUG" for --verbose)

    Returns:
        Path to log file
    """
    return _setup_logger(
        context_name="batch",
        log_dir=log_dir,
        extra_provenance=extra_provenance,
        console_level=console_level,
    )


# Wrapper functions with automatic [batch] prefix


def _log_info(message: str) -> None:
    """Log info message with [batch] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [batch] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [batch] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [batch] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [batch] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


# High-level batching-specific logging helpers


def log_document_result(result) -> None:
    """
    Log the outcome of one document.

    Args:
        result: DocumentResult from the orchestrator
    """
    if result.success:
        source = " (cached)" if result.from_cache else ""
        issues = len(result.validation.issues) if result.validation else 0
        _log_info(f"✓ {result.document_name}{source}: {issues} issue(s)")
    else:
        _log_error(f"✗ {result.document_name}: {result.error}")


def log_batch_summary(batch) -> None:
    """Log success/failure counts of a finished batch."""
    if batch.failed:
        _log_warning(f"Batch finished: {batch.successful}/{batch.total} succeeded, {batch.failed} failed")
    else:
        _log_success(f"Batch finished: {batch.successful}/{batch.total} succeeded")
