# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Process-wide pool of interchangeable provider credentials.

The pool keeps a single rotating cursor shared by every logical request so
that consecutive requests start on different credentials. The cold-start
position is random, which keeps independent client processes sharing the
same key set from all hammering index 0 first.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .errors import ConfigurationError
from .utils import mask_credential

lib_logger = logging.getLogger("tutor_engine")

# Shorter values are placeholders or truncated secrets, never real keys.
MIN_CREDENTIAL_LENGTH = 6


@dataclass(frozen=True)
class Credential:
    """A provider secret plus its position in the pool."""

    index: int
    secret: str = field(repr=False)

    @property
    def display(self) -> str:
        return mask_credential(self.secret, self.index)


class CredentialPool:
    """
    Ordered set of provider credentials with a lock-guarded cursor.

    Raises ConfigurationError when constructed without credentials: an empty
    pool can never serve a request, so it must fail at startup rather than at
    the first call.
    """

    def __init__(self, secrets: Sequence[str], rng: Optional[random.Random] = None):
        usable = [s.strip() for s in secrets if s and len(s.strip()) >= MIN_CREDENTIAL_LENGTH]
        if not usable:
            raise ConfigurationError(
                "No provider credentials configured. Set TUTOR_API_KEYS."
            )
        dropped = len(secrets) - len(usable)
        if dropped:
            lib_logger.warning(f"Ignored {dropped} invalid credential value(s)")

        self._credentials: List[Credential] = [
            Credential(index=i, secret=s) for i, s in enumerate(usable)
        ]
        self._cursor = (rng or random).randrange(len(self._credentials))
        self._lock = asyncio.Lock()
        lib_logger.info(
            f"Credential pool ready with {len(self._credentials)} credential(s), "
            f"starting at {self._credentials[self._cursor].display}"
        )

    def size(self) -> int:
        return len(self._credentials)

    def __len__(self) -> int:
        return len(self._credentials)

    @property
    def cursor(self) -> int:
        """Index of the active credential."""
        return self._cursor

    def get(self, index: int) -> Credential:
        """Returns the credential at ``index``, wrapping around the pool."""
        return self._credentials[index % len(self._credentials)]

    def active(self) -> Credential:
        """Returns the credential at the current cursor."""
        return self._credentials[self._cursor]

    async def rotate(self) -> Credential:
        """Advances the shared cursor and returns the new active credential."""
        async with self._lock:
            self._cursor = (self._cursor + 1) % len(self._credentials)
            credential = self._credentials[self._cursor]
        lib_logger.debug(f"Rotated active credential to {credential.display}")
        return credential
