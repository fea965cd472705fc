# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import logging

from .client.tutor_client import TutorClient
from .config import Settings
from .errors import (
    AccountUnavailable,
    ConfigurationError,
    InsufficientCredits,
    MalformedResponse,
    ProviderExhausted,
    TutorEngineError,
)

# The host application decides where library logs go
lib_logger = logging.getLogger("tutor_engine")
if not lib_logger.handlers:
    lib_logger.addHandler(logging.NullHandler())

__all__ = [
    "TutorClient",
    "Settings",
    "TutorEngineError",
    "ConfigurationError",
    "InsufficientCredits",
    "AccountUnavailable",
    "ProviderExhausted",
    "MalformedResponse",
]
