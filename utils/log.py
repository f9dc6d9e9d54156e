import json
import os
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Optional, Dict, Any


def _safe_filename(s: str) -> str:
    return "".join(c if c.isalnum() or c in ("-", "_", ".") else "_" for c in s)


def open_run_logger(run_id: str, base_dir: str = "logs/runs") -> logging.Logger:
    """
    JSON-lines event log of one flow run, written to <base_dir>/<run_id>.jsonl.
    The caller owns the logger and hands it back to close_run_logger.
    """
    run_id_safe = _safe_filename(run_id)
    os.makedirs(base_dir, exist_ok=True)
    path = os.path.join(base_dir, f"{run_id_safe}.jsonl")

    logger = logging.getLogger(f"flow_event.{run_id_safe}")
    logger.setLevel(logging.INFO)
    logger.propagate = False  # events stay out of the console log

    handler = RotatingFileHandler(
        path,
        maxBytes=5 * 1024 * 1024,  # 5MB
        backupCount=10,
        encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    return logger


def close_run_logger(logger: logging.Logger) -> None:
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()


def log_flow_event(
    logger: logging.Logger,
    run_id: str,
    step: str,
    status: str,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    evt: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "run_id": run_id,
        "step": step,
        "status": status,
        "details": details or {},
    }
    logger.info(json.dumps(evt, ensure_ascii=False, default=str))
