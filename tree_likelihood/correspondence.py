import logging
from abc import ABC, abstractmethod
from typing import Optional

from tree_likelihood.hungarian import assign_partners
from tree_likelihood.similarities import StructuralSimilarity
from tree_likelihood.tree import ObservedNode, ReferenceNode

log = logging.getLogger(__name__)


class CorrespondenceFinder(ABC):
    """Locates, under a reference node, the child matching an observed child."""

    @abstractmethod
    def find(
        self, child: ObservedNode, reference_parent: Optional[ReferenceNode], unused: bool
    ) -> Optional[ReferenceNode]:
        pass


class StructuralCorrespondenceFinder(CorrespondenceFinder):
    """
    Matches children by name.

    While the sibling sequence is intact (``unused`` is False) the k-th observed
    child named ``N`` pairs with the k-th reference child named ``N``. Once an
    earlier sibling was left out, positions are no longer trustworthy and the
    same-named siblings are paired with the reference candidates through a
    Hungarian assignment on :meth:`StructuralSimilarity.node_similarity`.
    """

    def __init__(self, min_score_threshold: float = 0.0):
        self.min_score_threshold = min_score_threshold

    def find(self, child, reference_parent, unused):
        if reference_parent is None:
            return None
        candidates = [c for c in reference_parent.children if c.name == child.name]
        if not candidates:
            return None
        if not unused:
            index = child.sibling_index()
            return candidates[index] if index < len(candidates) else None
        return self._loose_match(child, candidates)

    def _loose_match(self, child, candidates) -> Optional[ReferenceNode]:
        siblings = (
            [c for c in child.parent.children if c.name == child.name]
            if child.parent is not None
            else [child]
        )
        assignment = assign_partners(StructuralSimilarity.node_similarity, siblings, candidates)
        row = next(i for i, s in enumerate(siblings) if s is child)
        col = assignment.partners.get(row)
        if col is None:
            log.debug("No reference partner left for %s", child.name)
            return None
        score = assignment.score_of(row)
        if score < self.min_score_threshold:
            log.info(
                "Rejected correspondence: %s (score=%.3f)", child.name, score
            )
            return None
        return candidates[col]
