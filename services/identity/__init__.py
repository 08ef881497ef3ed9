"""Identity Resolution Module"""

from .identity_resolver import normalize_name, resolve_identity

__all__ = ["normalize_name", "resolve_identity"]
