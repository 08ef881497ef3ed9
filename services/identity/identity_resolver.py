"""
Cash-Up Engine - Identity Resolver
==================================
Maps the free-text employee name printed on a transaction report to exactly
one system user.

Two checks, both must pass:
1. exact case-insensitive full-name match in the user directory, unique
2. every token of the stored name appears inside the detected name

The second check tolerates extra tokens in the report (titles, middle
names) but not missing ones. The reverse direction is intentionally not
checked.
"""

import logging
import re

from core.errors import AmbiguousOrNoIdentity, NameMismatch
from data_layer.repository import UserDirectory
from domain.entities import UserRecord

logger = logging.getLogger("cashup.identity")

_WS_RE = re.compile(r"\s+")


def normalize_name(value: str) -> str:
    """Trim, lower-case, collapse whitespace."""
    return _WS_RE.sub(" ", (value or "").strip().lower())


def name_tokens_contained(stored_name: str, detected_name: str) -> bool:
    """True when every token of stored_name is a substring of detected_name."""
    tokens = [t for t in normalize_name(stored_name).split(" ") if t]
    if not tokens:
        return False
    detected = normalize_name(detected_name)
    return all(t in detected for t in tokens)


def resolve_identity(detected_name: str, directory: UserDirectory, date_key: str | None = None) -> UserRecord:
    """
    Resolve a detected report name to a single user.

    Raises:
        AmbiguousOrNoIdentity: zero or several users carry that name
        NameMismatch: the unique match fails the token containment check
    """
    candidates = directory.find_users_by_name(detected_name)
    if len(candidates) != 1:
        logger.info(f"Report name '{detected_name}' matched {len(candidates)} users")
        raise AmbiguousOrNoIdentity(detected_name, len(candidates), date_key)

    user = candidates[0]
    if not name_tokens_contained(user.name, detected_name):
        raise NameMismatch(detected_name, user.name, date_key)

    return user
