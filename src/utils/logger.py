"""
Logging Configuration
loguru sinks for the console, the application log, errors and the audit trail
"""

from loguru import logger
import sys
from pathlib import Path
from typing import Optional

from src.config.settings import settings

LINE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"
CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
AUDIT_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | user={extra[user_id]} | {extra[action]} {extra[entity]} | {message}"

_configured = False


def _is_audit(record) -> bool:
    return record["extra"].get("AUDIT", False)


def setup_logger():
    """
    Install the sinks once per process and return the shared logger

    Audit records (bound with ``AUDIT=True``) go only to the audit file.

    Returns:
        logger: Configured logger instance
    """
    global _configured
    if _configured:
        return logger

    logger.remove()

    log_dir = Path(settings.LOG_DIRECTORY)
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.add(
        sys.stdout,
        format=CONSOLE_FORMAT,
        level=settings.LOG_LEVEL,
        filter=lambda record: not _is_audit(record),
        colorize=True
    )
    logger.add(
        settings.LOG_FILE,
        format=LINE_FORMAT,
        level=settings.LOG_LEVEL,
        filter=lambda record: not _is_audit(record),
        rotation="10 MB",
        retention="30 days",
        compression="zip"
    )
    logger.add(
        log_dir / "error.log",
        format=LINE_FORMAT,
        level="ERROR",
        rotation="10 MB",
        retention="90 days",
        compression="zip"
    )
    # Append-only copy of the audit_logs table
    logger.add(
        log_dir / "audit.log",
        format=AUDIT_FORMAT,
        filter=_is_audit,
        rotation="10 MB",
        retention="365 days",
        compression="zip"
    )

    _configured = True
    return logger


def log_audit(user_id: int, action: str, entity_type: str, entity_id: Optional[int] = None, note: str = ""):
    """
    Write one line to the audit log file

    Args:
        user_id: Acting user
        action: Audit action value (CREATE, APPROVE, ...)
        entity_type: Model name of the audited entity
        entity_id: Id of the audited entity
        note: Free text appended to the line
    """
    entity = f"{entity_type}#{entity_id}" if entity_id is not None else entity_type
    logger.bind(AUDIT=True, user_id=user_id, action=action, entity=entity).info(note or "-")
