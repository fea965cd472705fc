# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .litellm_provider import LiteLLMProvider
from .provider_interface import ProviderAdapter

__all__ = ["LiteLLMProvider", "ProviderAdapter"]
