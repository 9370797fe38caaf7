class LikelihoodError(Exception):
    pass


class InvalidInputError(LikelihoodError, ValueError):
    """Raised when a numeric precondition is violated (empty ratio list, negative weight, NaN result)."""


class DistributionParseError(LikelihoodError, ValueError):
    """Raised when a serialized ``value:weight`` distribution cannot be parsed."""

    def __init__(self, serialized: str, reason: str):
        self.serialized = serialized
        self.reason = reason
        super().__init__(f"Malformed distribution {serialized!r}: {reason}")
