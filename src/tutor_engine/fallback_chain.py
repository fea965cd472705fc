# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Ordered model fallback chain.

The chain stores the configured priority order (primary first, then static
fallbacks). How far a single request had to fall back is tracked by a
FallbackCursor owned by that request, never by the chain itself.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .errors import ConfigurationError

lib_logger = logging.getLogger("tutor_engine")


@dataclass(frozen=True)
class ModelDescriptor:
    """A model identifier and its fixed position in the chain."""

    name: str
    position: int


class FallbackCursor:
    """Per-request view of a chain; only ever moves forward."""

    def __init__(self, models: Sequence[ModelDescriptor]):
        self._models = models
        self._index = 0

    @property
    def index(self) -> int:
        return self._index

    def active(self) -> ModelDescriptor:
        return self._models[self._index]

    def advance(self) -> Optional[ModelDescriptor]:
        """
        Moves to the next model in priority order.

        Returns:
            The new active model, or None once the chain is exhausted.
        """
        if self._index + 1 >= len(self._models):
            return None
        self._index += 1
        return self._models[self._index]


class ModelFallbackChain:
    """
    Manages the ordered model list for one capability.

    Order matters:
    - The primary model is always first
    - Fallbacks keep their configured relative order
    - Duplicate and blank entries are dropped
    """

    def __init__(self, models: Sequence[str], primary: Optional[str] = None, name: str = "text"):
        self.name = name
        self._models: List[ModelDescriptor] = []
        self._load(models, primary)

    def _load(self, models: Sequence[str], primary: Optional[str]) -> None:
        ordered: List[str] = []
        if primary and primary.strip():
            ordered.append(primary.strip())
        for entry in models:
            if not isinstance(entry, str):
                lib_logger.warning(
                    f"Model entry must be a string, got {type(entry).__name__}: {entry}"
                )
                continue
            entry = entry.strip()
            if entry and entry not in ordered:
                ordered.append(entry)

        if not ordered:
            raise ConfigurationError(f"Model fallback chain '{self.name}' is empty")

        self._models = [
            ModelDescriptor(name=model, position=i) for i, model in enumerate(ordered)
        ]
        lib_logger.info(
            f"Loaded '{self.name}' chain with {len(ordered)} model(s): "
            f"{', '.join(ordered[:3])}{'...' if len(ordered) > 3 else ''}"
        )

    def active(self) -> ModelDescriptor:
        """Returns the configured primary model."""
        return self._models[0]

    def cursor(self) -> FallbackCursor:
        """Starts a new logical request at the primary model."""
        return FallbackCursor(tuple(self._models))

    def set_primary(self, model: str) -> None:
        """Promotes ``model`` to the front, preserving the order of the rest."""
        self._load([m.name for m in self._models], model)

    def get_models(self) -> List[str]:
        return [m.name for m in self._models]

    def __len__(self) -> int:
        return len(self._models)
