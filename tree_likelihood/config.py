from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, Mapping

from tree_likelihood.errors import InvalidInputError


@dataclass(frozen=True)
class ScoringConfig:
    """
    Settings of one likelihood evaluation.

    ``size_a`` and ``size_b`` are the number of samples each reference model was
    built from; they drive the smoothing of zero weights.
    """

    size_a: int
    size_b: int
    verbose: bool = False
    precision: int = 4
    ignored_fields: FrozenSet[str] = field(default_factory=frozenset)
    unused_node_names: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        if self.size_a < 0 or self.size_b < 0:
            raise InvalidInputError(
                f"Model sizes must be >= 0, got size_a={self.size_a} size_b={self.size_b}"
            )
        if self.precision < 0:
            raise InvalidInputError(f"Precision must be >= 0, got {self.precision}")
        # Accept any iterable of names but store them frozen
        object.__setattr__(self, "ignored_fields", frozenset(self.ignored_fields))
        object.__setattr__(self, "unused_node_names", frozenset(self.unused_node_names))

    @staticmethod
    def from_mapping(settings: Mapping[str, Any]) -> "ScoringConfig":
        def names(key) -> Iterable[str]:
            value = settings.get(key) or ()
            return [value] if isinstance(value, str) else value

        return ScoringConfig(
            size_a=int(settings["size_a"]),
            size_b=int(settings["size_b"]),
            verbose=bool(settings.get("verbose", False)),
            precision=int(settings.get("precision", 4)),
            ignored_fields=frozenset(names("ignored_fields")),
            unused_node_names=frozenset(names("unused_node_names")),
        )
