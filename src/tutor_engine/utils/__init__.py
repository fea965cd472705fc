# src/tutor_engine/utils/__init__.py

from .credential_formatter import mask_credential

__all__ = ['mask_credential']
