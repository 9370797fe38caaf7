import math
from typing import List, Tuple

from tree_likelihood.errors import DistributionParseError

Couple = Tuple[str, float]


def parse_distribution(serialized: str) -> List[Couple]:
    """
    Parse ``"value:weight,value:weight,..."`` into ordered (value, weight) couples.

    The weight is taken after the last ``:`` so values may themselves contain
    colons. A blank string is an empty distribution.
    """
    if serialized is None or not serialized.strip():
        return []
    couples: List[Couple] = []
    for entry in serialized.split(","):
        if not entry.strip():
            raise DistributionParseError(serialized, "empty entry")
        value, sep, weight = entry.rpartition(":")
        if not sep:
            raise DistributionParseError(serialized, f"entry {entry!r} has no weight")
        try:
            parsed = float(weight)
        except ValueError:
            raise DistributionParseError(
                serialized, f"weight {weight!r} is not a number"
            ) from None
        if not math.isfinite(parsed) or parsed < 0:
            raise DistributionParseError(serialized, f"weight {weight!r} must be finite and >= 0")
        couples.append((value.strip(), parsed))
    return couples


def value_weight(value: str, couples: List[Couple]) -> float:
    return next((w for v, w in couples if v == value), 0.0)
