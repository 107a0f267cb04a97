"""
Extraction context logger.

Provides logging interface for extraction context with automatic [extract] prefix.
The log sink is configured by the batch session. All extraction modules
should import from this module, not from utils.logger directly.
"""

from loguru import logger

CONTEXT_PREFIX = "[extract]"


# Wrapper functions with automatic [extract] prefix


def _log_info(message: str) -> None:
    """Log info message with [extract] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [extract] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [extract] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


# High-level extraction-specific logging helpers


def log_stage_tables(stage_ids: dict, stage_types: dict) -> None:
    """Log the size of the two stage lookup tables."""
    _log_debug(f"Stage tables built: {len(stage_ids)} ids, {len(stage_types)} typed stages")


def log_assembly_summary(job) -> None:
    """
    Log entity counts of an assembled job.

    Args:
        job: JobMetadata produced by the assembler
    """
    _log_info(
        f"Assembled {job.name or '<unnamed>'}: "
        f"{len(job.parameters)} parameters, {len(job.sources)} sources, "
        f"{len(job.targets)} targets, {len(job.transforms)} transforms, "
        f"{len(job.lookups)} lookups, {len(job.specialized_stages)} specialized, "
        f"{len(job.flow)} flow edges"
    )


def log_validation_issues(job_name: str, issues: list) -> None:
    """Log advisory validator issues (never fatal)."""
    if not issues:
        _log_debug(f"{job_name}: no structural issues")
        return
    _log_warning(f"{job_name}: {len(issues)} structural issue(s)")
    for issue in issues:
        _log_debug(f"  {issue}")
