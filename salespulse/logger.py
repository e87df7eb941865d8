"""
Centralized logging for Sales Pulse.
Provides consistent logging across all modules with console + daily file output.

Usage:
    from salespulse.logger import setup_logger
    logger = setup_logger(__name__)
    logger.info("Summary rebuilt")
"""
import logging
import os
import sys
from datetime import datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
LOG_DIR = PROJECT_ROOT / "logs"


def setup_logger(
    name: str,
    level: str = None,
    log_to_file: bool = None,
    log_dir: Path = None,
) -> logging.Logger:
    """
    Configure and return a logger instance.

    Args:
        name: Logger name (typically __name__ from calling module).
        level: Logging level. Defaults to LOG_LEVEL env var, then INFO.
        log_to_file: Also log to a daily file. Defaults to LOG_TO_FILE env var
            (serverless hosts usually have a read-only filesystem).
        log_dir: Directory for log files (default: project_root/logs).

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    level = level or os.getenv("LOG_LEVEL", "INFO")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.DEBUG)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_to_file is None:
        log_to_file = os.getenv("LOG_TO_FILE", "false").lower() == "true"

    if log_to_file:
        target_dir = Path(log_dir) if log_dir else LOG_DIR
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            log_file = target_dir / f"{datetime.now().strftime('%Y%m%d')}_sales_pulse.log"
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning("File logging disabled (%s): %s", target_dir, e)

    # Handlers are attached here; don't double-print through root
    logger.propagate = False
    return logger
