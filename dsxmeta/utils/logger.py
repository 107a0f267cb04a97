"""
Logger setup shared by the extraction and batching contexts.

One session writes a DEBUG log file per context and echoes INFO (or the
level named by DSX_CONSOLE_LOG_LEVEL) to the console. Worker threads log
concurrently during parallel batches, so every file line carries the
thread name.

Context-specific wrappers are defined in contexts/{context}/logger.py.
"""

import os
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

load_dotenv()
CONSOLE_LOG_LEVEL = os.getenv("DSX_CONSOLE_LOG_LEVEL", "INFO")

LEVEL_COLORS = {
    "WARNING": "<yellow>",
    "ERROR": "<red>",
    "CRITICAL": "<bold><red>",
}

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <7} | {thread.name: <14} | {message}"
CONSOLE_FORMAT = "{time:HH:mm:ss} | <level>{level: <7}</level> | <level>{message}</level>"


def setup_logger(
    context_name: str,
    log_dir: Path,
    extra_provenance: dict = None,
    console_level: str = None,
) -> Path:
    """
    Configure loguru for one extraction session.

    Replaces any existing sinks with a DEBUG file sink
    `<log_dir>/<context_name>.log` and a colorized console sink, then logs
    the provenance header.

    Args:
        context_name: Context identifier ("extract" or "batch")
        log_dir: Directory for this session (created if missing)
        extra_provenance: Additional key-value pairs for the provenance header
        console_level: Console threshold (defaults to DSX_CONSOLE_LOG_LEVEL, then INFO)

    Returns:
        Path to log file

    Example:
        log_file = setup_logger(
            context_name="batch",
            log_dir=Path("outs/logs/extract_20251114_123456"),
            extra_provenance={"Inputs": 12, "Parallel": 4},
        )
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(exist_ok=True, parents=True)
    log_file = log_dir / f"{context_name}.log"

    logger.remove()
    for level_name, color in LEVEL_COLORS.items():
        logger.level(level_name, color=color)

    logger.add(log_file, format=FILE_FORMAT, level="DEBUG")
    logger.add(
        sys.stdout,
        format=CONSOLE_FORMAT,
        level=(console_level or CONSOLE_LOG_LEVEL).upper(),
        colorize=True,
    )

    log_provenance(extra_provenance)
    return log_file


def _package_version() -> str:
    try:
        return version("dsxmeta")
    except PackageNotFoundError:
        return "unknown (not installed)"


def log_provenance(extra_context: dict = None) -> None:
    """
    Log the session header: command line, working directory, interpreter
    and package version, then any extra key-value pairs.
    """
    logger.info("=" * 80)
    logger.info(f"Command: {' '.join(sys.argv)}")
    logger.info(f"Working directory: {Path.cwd()}")
    logger.info(f"Python: {sys.version.split()[0]}")
    logger.info(f"dsxmeta: {_package_version()}")

    for key, value in (extra_context or {}).items():
        logger.info(f"{key}: {value}")

    logger.info("=" * 80)
