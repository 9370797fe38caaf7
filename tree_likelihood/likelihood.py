import logging
import math
from typing import Iterator, List, NamedTuple, Optional

from tree_likelihood.config import ScoringConfig
from tree_likelihood.correspondence import CorrespondenceFinder, StructuralCorrespondenceFinder
from tree_likelihood.distributions import parse_distribution, value_weight
from tree_likelihood.entropy import EntropyWeighter
from tree_likelihood.errors import InvalidInputError
from tree_likelihood.policies import FieldPolicy
from tree_likelihood.ratios import RatioEstimator, RatioOutput
from tree_likelihood.tracing import LoggingTraceSink, TraceSink
from tree_likelihood.tree import Correspondence, Field, ObservedNode

log = logging.getLogger(__name__)


class LikelihoodAccumulator:
    """Running product of the node factors of one evaluation."""

    def __init__(self):
        self.value = 1.0

    def reset(self):
        self.value = 1.0

    def multiply(self, factor: float) -> float:
        value = self.value * factor
        if not math.isfinite(value) or value <= 0:
            raise InvalidInputError(
                f"Running likelihood left (0, inf): {self.value} * {factor} = {value}"
            )
        self.value = value
        return self.value


class NodeScore(NamedTuple):
    factor: float
    entropy: float
    ratios: List[float]


class NodeScorer:
    def __init__(
        self,
        estimator: RatioEstimator,
        policy: FieldPolicy,
        weighter: Optional[EntropyWeighter] = None,
        sink: Optional[TraceSink] = None,
    ):
        self.estimator = estimator
        self.policy = policy
        self.weighter = weighter if weighter is not None else EntropyWeighter()
        self.sink = sink

    def field_ratio(self, node_name: str, field: Field, correspondence: Correspondence) -> RatioOutput:
        field_a = correspondence.a.get_field_by_name(field.name)
        field_b = correspondence.b.get_field_by_name(field.name)
        new = field_a is None or field_b is None
        if new:
            output = self.estimator.estimate(0, 0)
        else:
            output = self.estimator.estimate(
                value_weight(field.value, parse_distribution(field_a.value)),
                value_weight(field.value, parse_distribution(field_b.value)),
            )
        if self.sink is not None:
            self.sink.field(node_name, field.name, output, new)
        return output

    def compute_ratios(self, node: ObservedNode, correspondence: Correspondence) -> List[float]:
        return [
            self.field_ratio(node.name, f, correspondence).ratio
            for f in node.fields
            if not self.policy.is_ignored_field(f.name)
        ]

    def score_node(
        self,
        node: ObservedNode,
        correspondence: Correspondence,
        accumulator: LikelihoodAccumulator,
    ) -> NodeScore:
        matched = not correspondence.is_null()
        if self.sink is not None:
            self.sink.begin_node(node.name, matched)
        ratios = self.compute_ratios(node, correspondence) if matched else []
        if ratios:
            entropy = self.weighter.entropy(ratios)
            factor = self.weighter.weighted_product(ratios)
        else:
            # Nothing comparable: a single smoothed default stands for the node
            entropy = 0.0
            factor = self.estimator.ratio(0, 0)
        likelihood = accumulator.multiply(factor)
        if self.sink is not None:
            self.sink.end_node(node.name, entropy, factor, likelihood)
        return NodeScore(factor=factor, entropy=entropy, ratios=ratios)


class _Frame(NamedTuple):
    children: Iterator[ObservedNode]
    correspondence: Correspondence
    unused: bool = False


class TreeLikelihoodEngine:
    """
    Depth-first walk of an observed tree against two reference trees.

    A node is scored when it is reached as a child of its parent, so the root
    passed to :meth:`compute_likelihood` never contributes a factor. The walk
    keeps its own stack, deep trees do not hit the recursion limit.
    """

    def __init__(
        self,
        config: ScoringConfig,
        finder: Optional[CorrespondenceFinder] = None,
        policy: Optional[FieldPolicy] = None,
        sink: Optional[TraceSink] = None,
        accumulator: Optional[LikelihoodAccumulator] = None,
    ):
        self.config = config
        self.finder = finder if finder is not None else StructuralCorrespondenceFinder()
        self.policy = policy if policy is not None else FieldPolicy.from_config(config)
        if config.verbose and sink is None:
            sink = LoggingTraceSink()
        self.scorer = NodeScorer(
            RatioEstimator(config.size_a, config.size_b, config.precision),
            self.policy,
            sink=sink if config.verbose else None,
        )
        self.accumulator = accumulator if accumulator is not None else LikelihoodAccumulator()

    def reset_likelihood(self):
        self.accumulator.reset()

    def get_likelihood(self) -> float:
        return self.accumulator.value

    def correspond(self, child: ObservedNode, parent: Correspondence, unused: bool) -> Correspondence:
        return Correspondence(
            a=self.finder.find(child, parent.a, unused),
            b=self.finder.find(child, parent.b, unused),
        )

    def compute_likelihood(self, node: ObservedNode, correspondence: Correspondence):
        if node.is_leaf():
            return
        stack = [_Frame(iter(node), correspondence)]
        visited = 0
        while stack:
            frame = stack[-1]
            child = next(frame.children, None)
            if child is None:
                stack.pop()
                continue
            skip = self.policy.is_unused_node(child)
            # Sticky for the rest of this sibling list
            frame = stack[-1] = frame._replace(unused=frame.unused or skip)
            if skip:
                log.debug("Skipping unused node %s", child.name)
                continue
            child_correspondence = self.correspond(child, frame.correspondence, frame.unused)
            self.scorer.score_node(child, child_correspondence, self.accumulator)
            visited += 1
            if not child.is_leaf():
                stack.append(_Frame(iter(child), child_correspondence))
        log.info(
            "Scored %d nodes under %s (likelihood=%.6g)", visited, node.name, self.get_likelihood()
        )
