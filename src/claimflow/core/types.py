"""Core type definitions shared across all claimflow modules."""

from __future__ import annotations

from enum import StrEnum


class DataClassification(StrEnum):
    """Data classification levels for answer-set fields.

    Sensitive and restricted values (PHI such as member IDs and dates of
    birth) are never written to logs verbatim.
    """

    PUBLIC = "public"
    INTERNAL = "internal"
    SENSITIVE = "sensitive"
    RESTRICTED = "restricted"


REDACTED_CLASSIFICATIONS = frozenset(
    {DataClassification.SENSITIVE, DataClassification.RESTRICTED}
)
