# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import json
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from .errors import ProviderError
from .utils import mask_credential

lib_logger = logging.getLogger("tutor_engine")
failure_logger = logging.getLogger("tutor_engine.failures")


class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "message": record.msg if isinstance(record.msg, dict) else record.getMessage(),
        }
        return json.dumps(log_record, default=str)


def configure_failure_logger(log_dir: str) -> logging.Logger:
    """Sets up a dedicated JSON logger for failed provider attempts."""
    os.makedirs(log_dir, exist_ok=True)
    failure_logger.setLevel(logging.INFO)

    # Failure records carry request context and stay out of the host's logs
    failure_logger.propagate = False

    log_path = os.path.abspath(os.path.join(log_dir, "failures.log"))
    for existing in list(failure_logger.handlers):
        if not isinstance(existing, RotatingFileHandler):
            continue
        if existing.baseFilename == log_path:
            return failure_logger
        # Reconfigured to a new directory
        failure_logger.removeHandler(existing)
        existing.close()

    handler = RotatingFileHandler(
        log_path,
        maxBytes=5 * 1024 * 1024,  # 5 MB
        backupCount=2,
    )
    handler.setFormatter(JsonFormatter())
    failure_logger.addHandler(handler)

    return failure_logger


def log_failure(
    secret: str,
    model: str,
    attempt: int,
    error: ProviderError,
    feature: Optional[str] = None,
) -> None:
    """Logs a structured record for one failed provider attempt."""
    original = error.original_exception
    raw_response = None
    if original is not None and hasattr(original, "response") and hasattr(original.response, "text"):
        raw_response = original.response.text

    log_data = {
        "credential": mask_credential(secret),
        "model": model,
        "feature": feature,
        "attempt_number": attempt,
        "error_kind": error.kind.value,
        "error_type": type(original).__name__ if original is not None else type(error).__name__,
        "error_message": str(error),
        "raw_response": raw_response,
    }
    if failure_logger.handlers:
        failure_logger.error(log_data)
    lib_logger.warning(
        f"Attempt {attempt} failed on {model} with {mask_credential(secret)}: "
        f"{error.kind.value} ({error})"
    )
