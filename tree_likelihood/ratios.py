import enum
import math
from typing import NamedTuple

from tree_likelihood.errors import InvalidInputError


class RatioReason(enum.Enum):
    PLAIN = "plain"
    A_SMOOTHED = "a-smoothed"
    B_SMOOTHED = "b-smoothed"
    BOTH_ABSENT = "both-absent"


class RatioOutput(NamedTuple):
    ratio: float
    numerator: float
    denominator: float
    reason: RatioReason


class RatioEstimator:
    """
    Ratio of the weight model A gives a value over the weight model B gives it.

    Zero weights are replaced by an add-one default ``1/(size+1)`` so the ratio
    is never zero or undefined.
    """

    def __init__(self, size_a: int, size_b: int, precision: int = 4):
        if size_a < 0 or size_b < 0:
            raise InvalidInputError(f"Model sizes must be >= 0, got {size_a}, {size_b}")
        self.size_a = size_a
        self.size_b = size_b
        self.precision = precision

    def default_a(self) -> float:
        return 1 / (self.size_a + 1)

    def default_b(self) -> float:
        return 1 / (self.size_b + 1)

    def step(self) -> float:
        return 10 ** -self.precision

    def estimate(self, numerator: float, denominator: float) -> RatioOutput:
        for weight in (numerator, denominator):
            if not math.isfinite(weight) or weight < 0:
                raise InvalidInputError(f"Weights must be finite and >= 0, got {weight}")

        if numerator != 0 and denominator == 0:
            value, reason = numerator / self.default_a(), RatioReason.B_SMOOTHED
        elif numerator == 0 and denominator != 0:
            value, reason = self.default_b() / denominator, RatioReason.A_SMOOTHED
        elif numerator == 0 and denominator == 0:
            # Uses size_a, not size_b: this favours model A when both are silent
            value, reason = self.default_a(), RatioReason.BOTH_ABSENT
        else:
            value, reason = numerator / denominator, RatioReason.PLAIN

        # A ratio never rounds down to zero
        value = max(round(value, self.precision), self.step())
        return RatioOutput(
            ratio=value, numerator=numerator, denominator=denominator, reason=reason
        )

    def ratio(self, numerator: float, denominator: float) -> float:
        return self.estimate(numerator, denominator).ratio
