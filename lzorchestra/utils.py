"""
Utility functions for lzorchestra.

Includes logging setup, name casing and console output.
"""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


# Global console for pretty output
console = Console(stderr=True)

# LogRecord extras copied into structured output when present
STRUCTURED_EXTRAS = ("stage", "module_name", "account", "region", "phase")


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "pretty",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Set up logging for an orchestration run.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: "structured" (JSON) or "pretty" (rich console)
        log_file: Optional path to a log file (always structured)

    Returns:
        Configured "lzorchestra" logger
    """
    logger = logging.getLogger("lzorchestra")
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.handlers = []  # Clear existing handlers
    logger.propagate = False

    # Console handler
    if log_format == "pretty":
        console_handler = RichHandler(console=console, rich_tracebacks=True, show_time=False)
    else:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(StructuredFormatter())
    logger.addHandler(console_handler)

    # File handler
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    return logger


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        for key in STRUCTURED_EXTRAS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def pascal_case(value: str) -> str:
    """
    Convert a kebab/snake/space separated name to PascalCase.

    Args:
        value: Name such as "skip-create-organizational-unit"

    Returns:
        PascalCase name (e.g., "SkipCreateOrganizationalUnit")
    """
    words = [w for w in re.split(r"[^A-Za-z0-9]+", value) if w]
    return "".join(w[0].upper() + w[1:].lower() for w in words)


def print_banner(title: str) -> None:
    """Print a banner to console."""
    console.rule(f"[bold blue]{title}[/bold blue]")
