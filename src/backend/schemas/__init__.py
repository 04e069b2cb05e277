"""Schemas module initialization."""

from schemas.results import (
    CreateResult,
    FinalizeResult,
    JoinResult,
    RevealReadiness,
    ThrowResult,
)

__all__ = [
    "CreateResult",
    "JoinResult",
    "ThrowResult",
    "FinalizeResult",
    "RevealReadiness",
]
