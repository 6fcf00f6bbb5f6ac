from __future__ import annotations

from pathlib import Path
from typing import Any

from loguru import logger


def configure_logging() -> None:
    from emive_portal.core.config import get_settings

    logger.remove()
    log_format = "{time:YYYY-MM-DDTHH:mm:ss.SSSZ} | {level} | {message}\n{exception}"
    logger.add(sink=lambda msg: print(msg, end=""), format=log_format)

    settings = get_settings()
    log_path = settings.audit_log_path
    if log_path:
        log_path = log_path.expanduser()
        if _ensure_log_path(log_path):
            try:
                logger.add(
                    str(log_path),
                    format=log_format,
                    level="INFO",
                    encoding="utf-8",
                    enqueue=True,
                )
            except Exception as exc:  # pragma: no cover - logging setup
                logger.warning(
                    f"AUDIT LOG FILE DISABLED - unable to open file path={log_path} error={exc}"
                )


def _format_meta(meta: dict[str, Any]) -> str:
    return " ".join(f"{key}={meta[key]}" for key in sorted(meta))


def _emit(level: str, message: str, meta: dict[str, Any]) -> None:
    # depth=2 attributes the record to the caller of log_info/log_error
    if meta:
        logger.bind(**meta).opt(depth=2).log(level, f"{message} | {_format_meta(meta)}")
    else:
        logger.opt(depth=2).log(level, message)


def log_error(message: str, **meta) -> None:
    _emit("ERROR", message, meta)


def log_info(message: str, **meta) -> None:
    _emit("INFO", message, meta)


def log_warning(message: str, **meta) -> None:
    _emit("WARNING", message, meta)


def log_debug(message: str, **meta) -> None:
    _emit("DEBUG", message, meta)


def _ensure_log_path(path: Path) -> bool:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.warning(
            f"AUDIT LOG FILE DISABLED - unable to create directory path={path.parent} "
            f"error={exc}"
        )
        return False
    return True


def log_audit_event(
    event_type: str,
    action: str,
    *,
    user_id: int | None = None,
    user_email: str | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    ip_address: str | None = None,
    **extra_meta,
) -> None:
    """
    Write an audit event to the log sinks in a single greppable line.

    Format: ``{event_type} {action} | entity_id=... entity_type=... ip=... user_id=...``

    Args:
        event_type: Category of the event (e.g. "API OPERATION", "STOCK IMPORT")
        action: Specific action performed (e.g. "maintenance.ticket.create")
        user_id: ID of the user performing the action
        user_email: Email of the user performing the action
        entity_type: Type of entity being acted upon (e.g. "project", "customer")
        entity_id: ID of the entity being acted upon
        ip_address: IP address of the client
        **extra_meta: Additional metadata to include in the log entry
    """
    parts = [event_type, action]
    meta: dict[str, Any] = {}

    if user_id is not None:
        meta["user_id"] = user_id
    if user_email:
        meta["user_email"] = user_email
    if entity_type:
        meta["entity_type"] = entity_type
    if entity_id is not None:
        meta["entity_id"] = entity_id
    if ip_address:
        meta["ip"] = ip_address

    meta.update(extra_meta)

    message = " ".join(parts)
    if meta:
        message = f"{message} | {_format_meta(meta)}"
        logger.bind(**meta).info(message)
    else:
        logger.info(message)
