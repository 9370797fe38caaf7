from typing import Iterator, List, NamedTuple, Optional, Sequence


class Field(NamedTuple):
    name: str
    value: str


def find_field(name: str, fields: Sequence[Field]) -> Optional[Field]:
    return next(filter(lambda x: x.name == name, fields), None)


class TSharedMethods:
    name: str
    fields: List[Field]
    children: List["TSharedMethods"]
    parent: Optional["TSharedMethods"]

    def _attach(self, children):
        children = list(children)
        for child in children:
            child.parent = self
        return children

    def is_leaf(self) -> bool:
        return len(self.children) == 0

    def __iter__(self) -> Iterator:
        return iter(self.children)

    def get_field_by_name(self, name: str) -> Optional[Field]:
        return find_field(name, self.fields)

    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def sibling_index(self) -> int:
        """Position of this node among its parent's children carrying the same name."""
        if self.parent is None:
            return 0
        same_named = [c for c in self.parent.children if c.name == self.name]
        return next(i for i, c in enumerate(same_named) if c is self)


class ObservedNode(TSharedMethods):
    """A node of the tree being scored: every field holds one observed value."""

    def __repr__(self) -> str:
        return f"ObservedNode(name={self.name}, fields={len(self.fields)}, children={len(self.children)})"

    def __init__(
        self,
        name: str,
        fields: Sequence[Field] = (),
        children: Sequence["ObservedNode"] = (),
        parent: Optional["ObservedNode"] = None,
    ):
        self.name = name
        self.fields = [Field(*f) for f in fields]
        self.parent = parent
        self.children = self._attach(children)


class ReferenceNode(TSharedMethods):
    """
    A node of a reference model tree. Field values are serialized
    distributions, e.g. ``"tcp:12,udp:3"``.
    """

    def __repr__(self) -> str:
        return f"ReferenceNode(name={self.name}, fields={len(self.fields)}, children={len(self.children)})"

    def __init__(
        self,
        name: str,
        fields: Sequence[Field] = (),
        children: Sequence["ReferenceNode"] = (),
        parent: Optional["ReferenceNode"] = None,
    ):
        self.name = name
        self.fields = [Field(*f) for f in fields]
        self.parent = parent
        self.children = self._attach(children)


class Correspondence(NamedTuple):
    a: Optional[ReferenceNode] = None
    b: Optional[ReferenceNode] = None

    def is_null(self) -> bool:
        # A one-sided match cannot be compared, so it counts as no match
        return self.a is None or self.b is None

    @staticmethod
    def absent() -> "Correspondence":
        return Correspondence(a=None, b=None)
