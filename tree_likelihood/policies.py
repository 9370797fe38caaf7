from typing import Iterable

from tree_likelihood.config import ScoringConfig
from tree_likelihood.tree import ObservedNode


class FieldPolicy:
    """Decides which fields and nodes take part in scoring."""

    def __init__(self, ignored_fields: Iterable[str] = (), unused_node_names: Iterable[str] = ()):
        self.ignored_fields = frozenset(ignored_fields)
        self.unused_node_names = frozenset(unused_node_names)

    @staticmethod
    def from_config(config: ScoringConfig) -> "FieldPolicy":
        return FieldPolicy(config.ignored_fields, config.unused_node_names)

    def is_ignored_field(self, name: str) -> bool:
        return name in self.ignored_fields

    def is_unused_node(self, node: ObservedNode) -> bool:
        return node.name in self.unused_node_names
