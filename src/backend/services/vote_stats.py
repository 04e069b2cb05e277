"""
Vote statistics for a revealed round.

Pure functions over a set of vote values. The two escape cards ("?" and
"☕") count towards the distribution and consensus but not towards the
numeric average or median.
"""

import math
from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol, Union

from models.documents import NON_NUMERIC_VOTES


class HasValue(Protocol):
    value: str


VoteLike = Union[HasValue, dict, str]


@dataclass
class VoteStats:
    """Aggregate statistics for one round."""

    average: float
    median: float
    mode: list[str] = field(default_factory=list)
    distribution: dict[str, int] = field(default_factory=dict)
    consensus: bool = False

    @property
    def total_votes(self) -> int:
        return sum(self.distribution.values())

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "average": self.average,
            "median": self.median,
            "mode": list(self.mode),
            "distribution": dict(self.distribution),
            "consensus": self.consensus,
        }


def _value_of(vote: VoteLike) -> str:
    if isinstance(vote, str):
        return vote
    if isinstance(vote, dict):
        return str(vote["value"])
    return vote.value


def _parse_numeric(value: str) -> Optional[int]:
    if value in NON_NUMERIC_VOTES:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _round_one_decimal(value: float) -> float:
    # Half-up to one decimal place
    return math.floor(value * 10 + 0.5) / 10


def _median(values: list[int]) -> float:
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def calculate_vote_stats(votes: Iterable[VoteLike]) -> Optional[VoteStats]:
    """
    Compute statistics for a round.

    Accepts vote documents, dicts with a "value" key, or bare value strings.

    Returns:
        None for an empty round, otherwise VoteStats. `mode` lists every
        value with the highest count in first-seen order; `consensus` is
        True only when every vote has the same value.
    """
    values = [_value_of(v) for v in votes]
    if not values:
        return None

    # dicts keep insertion order, so the distribution is in first-seen order
    distribution: dict[str, int] = {}
    for value in values:
        distribution[value] = distribution.get(value, 0) + 1

    numeric = [n for n in (_parse_numeric(v) for v in values) if n is not None]

    if not numeric:
        return VoteStats(
            average=0,
            median=0,
            mode=[],
            distribution=distribution,
            consensus=False,
        )

    max_count = max(distribution.values())
    mode = [value for value, count in distribution.items() if count == max_count]
    consensus = len(mode) == 1 and distribution[mode[0]] == len(values)

    return VoteStats(
        average=_round_one_decimal(sum(numeric) / len(numeric)),
        median=_median(numeric),
        mode=mode,
        distribution=distribution,
        consensus=consensus,
    )


def derive_estimate(stats: VoteStats) -> str:
    """
    Final estimate for an issue: the agreed value on consensus, otherwise
    the numeric median rendered without a trailing ".0".
    """
    if stats.consensus:
        return stats.mode[0]
    return format_number(stats.median)


def format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)
