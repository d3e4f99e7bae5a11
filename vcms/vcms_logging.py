"""
Purpose: Provide structured logging helpers for the VCMS pipeline.
Description: Defines JSON-style logging utilities for pipeline events, state transitions,
            errors, and end-of-run summaries. Keeps logs consistent across modules.
Key Functions: get_logger, log_event, log_transition, log_error, log_summary

AIDEV-NOTE: Centralize logging; prefer structured fields for easy parsing.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, Optional


# AIDEV-NOTE: Avoid reconfiguring root logger elsewhere; use this factory.

def get_logger(name: str = "vcms") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter("%(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    return logger


def _to_json(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, default=str)


def log_event(logger: logging.Logger, event: str, *, details: Optional[Dict[str, Any]] = None) -> None:
    logger.info(_to_json({
        "type": "event",
        "event": event,
        "details": details or {},
    }))


def log_transition(logger: logging.Logger, media_id: str, state: str, **details: Any) -> None:
    logger.info(_to_json({
        "type": "state",
        "media_id": media_id,
        "state": state,
        "details": details,
    }))


def log_error(logger: logging.Logger, event: str, error: BaseException, **details: Any) -> None:
    logger.error(_to_json({
        "type": "error",
        "event": event,
        "error_type": type(error).__name__,
        "error": str(error),
        "details": details,
    }))


def log_summary(logger: logging.Logger, *, total: int, ok: int, fail: int,
                reasons: Optional[Dict[str, int]] = None) -> None:
    logger.info(_to_json({
        "type": "summary",
        "total": total,
        "ok": ok,
        "fail": fail,
        "reasons": reasons or {},
    }))
