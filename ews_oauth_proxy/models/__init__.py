"""Domain models."""

from .credential import Credential

__all__ = ["Credential"]
