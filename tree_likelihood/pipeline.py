import logging
from typing import Optional

from tree_likelihood.config import ScoringConfig
from tree_likelihood.correspondence import CorrespondenceFinder
from tree_likelihood.likelihood import TreeLikelihoodEngine
from tree_likelihood.tracing import TraceSink
from tree_likelihood.tree import Correspondence, ObservedNode, ReferenceNode

log = logging.getLogger(__name__)


def score_tree(
    observed_root: ObservedNode,
    reference_a_root: Optional[ReferenceNode],
    reference_b_root: Optional[ReferenceNode],
    config: ScoringConfig,
    finder: Optional[CorrespondenceFinder] = None,
    sink: Optional[TraceSink] = None,
) -> float:
    engine = TreeLikelihoodEngine(config, finder=finder, sink=sink)
    engine.reset_likelihood()
    engine.compute_likelihood(
        observed_root, Correspondence(a=reference_a_root, b=reference_b_root)
    )
    likelihood = engine.get_likelihood()
    log.info("Likelihood of %s: %.6g (%s)", observed_root.name, likelihood, classify(likelihood))
    return likelihood


def classify(likelihood: float, tolerance: float = 0.0) -> str:
    """``"A"`` when the score favours model A, ``"B"`` when it favours model B."""
    if likelihood > 1 + tolerance:
        return "A"
    if likelihood < 1 - tolerance:
        return "B"
    return "tie"
