# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Utility for formatting credential identifiers for display in logs.

Provider secrets must never reach a log line in full. Only the last
6 characters are shown, prefixed with the credential's pool index when known.
"""

from typing import Optional


def mask_credential(secret: str, index: Optional[int] = None) -> str:
    """
    Format a credential for display in logs.

    Examples:
        >>> mask_credential("sk-1234567890abcdef")
        '...abcdef'
        >>> mask_credential("sk-1234567890abcdef", index=2)
        '#2 ...abcdef'
    """
    masked = f"...{secret[-6:]}"
    if index is None:
        return masked
    return f"#{index} {masked}"
