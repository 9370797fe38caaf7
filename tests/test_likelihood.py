import logging
import math

import pytest

from tree_likelihood.config import ScoringConfig
from tree_likelihood.correspondence import CorrespondenceFinder
from tree_likelihood.entropy import EntropyWeighter
from tree_likelihood.errors import DistributionParseError, InvalidInputError
from tree_likelihood.likelihood import LikelihoodAccumulator, NodeScorer, TreeLikelihoodEngine
from tree_likelihood.pipeline import classify, score_tree
from tree_likelihood.policies import FieldPolicy
from tree_likelihood.ratios import RatioEstimator
from tree_likelihood.tracing import RecordingTraceSink
from tree_likelihood.tree import Correspondence, ObservedNode, ReferenceNode


class RecordingFinder(CorrespondenceFinder):
    """Returns a fixed node for every lookup and remembers the flags it was given."""

    def __init__(self, node=None):
        self.node = node
        self.calls = []

    def find(self, child, reference_parent, unused):
        self.calls.append((child.name, unused))
        return self.node if reference_parent is not None else None


def connection_refs():
    ref_a = ReferenceNode("conn", [("proto", "tcp:3,udp:1"), ("port", "80:2")])
    ref_b = ReferenceNode("conn", [("proto", "tcp:1,udp:3"), ("port", "443:4")])
    return Correspondence(a=ref_a, b=ref_b)


def make_scorer(ignored=()):
    return NodeScorer(RatioEstimator(size_a=4, size_b=4), FieldPolicy(ignored_fields=ignored))


def test_node_factor_combines_field_ratios():
    node = ObservedNode("conn", [("proto", "tcp"), ("port", "80")])
    acc = LikelihoodAccumulator()
    score = make_scorer().score_node(node, connection_refs(), acc)
    assert score.ratios == [3.0, 10.0]
    assert score.factor == pytest.approx(30.0)
    assert score.entropy == pytest.approx(math.log(2))
    assert acc.value == pytest.approx(30.0)


def test_ignored_fields_are_left_out():
    node = ObservedNode("conn", [("id", "17"), ("proto", "udp")])
    score = make_scorer(ignored={"id"}).score_node(node, connection_refs(), LikelihoodAccumulator())
    assert score.ratios == [round(1 / 3, 4)]
    assert score.factor == pytest.approx(0.3333)


def test_new_field_gets_smoothed_default():
    node = ObservedNode("conn", [("proto", "tcp"), ("flags", "SYN")])
    score = make_scorer().score_node(node, connection_refs(), LikelihoodAccumulator())
    assert score.ratios == [3.0, 0.2]


def test_unmatched_node_gets_single_default():
    node = ObservedNode("conn", [("proto", "tcp"), ("port", "80")])
    acc = LikelihoodAccumulator()
    score = make_scorer().score_node(node, Correspondence.absent(), acc)
    assert score.factor == 0.2
    assert score.entropy == 0
    assert acc.value == 0.2


def test_one_sided_match_counts_as_unmatched():
    node = ObservedNode("conn", [("proto", "tcp")])
    refs = connection_refs()
    score = make_scorer().score_node(node, Correspondence(a=refs.a, b=None), LikelihoodAccumulator())
    assert score.factor == 0.2
    assert score.ratios == []


def test_node_without_comparable_fields_gets_default():
    node = ObservedNode("conn", [("id", "17")])
    score = make_scorer(ignored={"id"}).score_node(node, connection_refs(), LikelihoodAccumulator())
    assert score.factor == 0.2
    assert score.entropy == 0


def test_malformed_distribution_propagates():
    node = ObservedNode("conn", [("proto", "tcp")])
    broken = Correspondence(
        a=ReferenceNode("conn", [("proto", "tcp")]), b=ReferenceNode("conn", [("proto", "tcp:1")])
    )
    with pytest.raises(DistributionParseError):
        make_scorer().score_node(node, broken, LikelihoodAccumulator())


def test_root_is_not_scored():
    engine = TreeLikelihoodEngine(ScoringConfig(size_a=1, size_b=1))
    engine.compute_likelihood(ObservedNode("root", [("proto", "tcp")]), Correspondence.absent())
    assert engine.get_likelihood() == 1.0


def test_absent_subtree_contributes_default_at_every_depth():
    config = ScoringConfig(size_a=2, size_b=5)
    grandchild = ObservedNode("g", [("x", "1")], children=[ObservedNode("h")])
    child = ObservedNode("c", [("f1", "a"), ("f2", "b")], children=[grandchild])
    observed = ObservedNode("root", children=[child])
    references = ReferenceNode("root"), ReferenceNode("root")

    likelihood = score_tree(observed, *references, config)
    assert likelihood == pytest.approx(0.3333 ** 3)


def test_reset_makes_evaluations_repeatable():
    refs = connection_refs()
    reference_a = ReferenceNode("session", children=[refs.a])
    reference_b = ReferenceNode("session", children=[refs.b])
    observed = ObservedNode(
        "session",
        children=[ObservedNode("conn", [("proto", "udp"), ("port", "443")]), ObservedNode("dns")],
    )
    engine = TreeLikelihoodEngine(ScoringConfig(size_a=4, size_b=4))
    correspondence = Correspondence(a=reference_a, b=reference_b)

    engine.reset_likelihood()
    engine.compute_likelihood(observed, correspondence)
    first = engine.get_likelihood()
    engine.reset_likelihood()
    engine.compute_likelihood(observed, correspondence)
    assert engine.get_likelihood() == first

    # Without a reset the second run multiplies on top of the first
    engine.compute_likelihood(observed, correspondence)
    assert engine.get_likelihood() == pytest.approx(first * first)


def test_likelihood_stays_below_one_when_model_b_dominates():
    ref_a = ReferenceNode("root", children=[ReferenceNode("n", [("v", "x:1")])])
    ref_b = ReferenceNode("root", children=[ReferenceNode("n", [("v", "x:4")])])
    observed = ObservedNode("root", children=[ObservedNode("n", [("v", "x")])])
    likelihood = score_tree(observed, ref_a, ref_b, ScoringConfig(size_a=3, size_b=3))
    assert 0 < likelihood < 1
    assert likelihood == 0.25
    assert classify(likelihood) == "B"


def test_likelihood_is_one_when_models_agree():
    ref = ReferenceNode("root", children=[ReferenceNode("n", [("v", "x:2")])])
    observed = ObservedNode("root", children=[ObservedNode("n", [("v", "x")])])
    likelihood = score_tree(observed, ref, ref, ScoringConfig(size_a=3, size_b=3))
    assert likelihood == 1.0
    assert classify(likelihood) == "tie"


def test_unused_flag_is_sticky_within_sibling_list():
    config = ScoringConfig(size_a=1, size_b=1, unused_node_names={"padding"})
    finder = RecordingFinder(node=ReferenceNode("any"))
    observed = ObservedNode(
        "root",
        children=[
            ObservedNode("x"),
            ObservedNode("padding", children=[ObservedNode("never")]),
            ObservedNode("y", children=[ObservedNode("z")]),
            ObservedNode("w"),
        ],
    )
    engine = TreeLikelihoodEngine(config, finder=finder)
    engine.compute_likelihood(observed, Correspondence(ReferenceNode("r"), ReferenceNode("r")))

    assert finder.calls == [
        ("x", False), ("x", False),
        ("y", True), ("y", True),
        ("z", False), ("z", False),
        ("w", True), ("w", True),
    ]


def test_unused_nodes_are_not_scored():
    config = ScoringConfig(size_a=1, size_b=1, unused_node_names={"padding"})
    observed = ObservedNode("root", children=[ObservedNode("padding", children=[ObservedNode("c")])])
    assert score_tree(observed, None, None, config) == 1.0


def test_deep_tree_does_not_hit_recursion_limit():
    node = ObservedNode("leaf")
    for _ in range(5000):
        node = ObservedNode("n", children=[node])
    engine = TreeLikelihoodEngine(ScoringConfig(size_a=0, size_b=0))
    engine.compute_likelihood(node, Correspondence.absent())
    # size_a=0 makes the default ratio exactly 1
    assert engine.get_likelihood() == 1.0


def test_separate_engines_do_not_share_state():
    observed = ObservedNode("root", children=[ObservedNode("c")])
    first = TreeLikelihoodEngine(ScoringConfig(size_a=1, size_b=1))
    second = TreeLikelihoodEngine(ScoringConfig(size_a=1, size_b=1))
    first.compute_likelihood(observed, Correspondence.absent())
    assert first.get_likelihood() == 0.5
    assert second.get_likelihood() == 1.0


def test_verbose_trace_is_recorded():
    refs = connection_refs()
    observed = ObservedNode(
        "session",
        children=[ObservedNode("conn", [("proto", "tcp"), ("port", "80")]), ObservedNode("dns")],
    )
    sink = RecordingTraceSink()
    config = ScoringConfig(size_a=4, size_b=4, verbose=True)
    likelihood = score_tree(
        observed,
        ReferenceNode("session", children=[refs.a]),
        ReferenceNode("session", children=[refs.b]),
        config,
        sink=sink,
    )

    factors = sink.node_factors()
    assert factors["node"].tolist() == ["conn", "dns"]
    assert factors["factor"].tolist() == pytest.approx([30.0, 0.2])
    assert factors["likelihood"].iloc[-1] == pytest.approx(likelihood)

    fields = sink.to_frame().query("event == 'field'")
    assert fields["reason"].tolist() == ["plain", "b-smoothed"]


def test_trace_does_not_change_result():
    refs = connection_refs()
    observed = ObservedNode("s", children=[ObservedNode("conn", [("proto", "udp")])])
    args = (observed, ReferenceNode("s", children=[refs.a]), ReferenceNode("s", children=[refs.b]))
    quiet = score_tree(*args, ScoringConfig(size_a=4, size_b=4))
    sink = RecordingTraceSink()
    loud = score_tree(*args, ScoringConfig(size_a=4, size_b=4, verbose=True), sink=sink)
    assert quiet == loud
    assert len(sink.events) > 0


def test_sink_is_silent_without_verbose():
    sink = RecordingTraceSink()
    observed = ObservedNode("root", children=[ObservedNode("c")])
    score_tree(observed, None, None, ScoringConfig(size_a=1, size_b=1), sink=sink)
    assert sink.events == []


def test_scorer_builds_default_weighter():
    first, second = make_scorer(), make_scorer()
    assert isinstance(first.weighter, EntropyWeighter)
    assert first.weighter is not second.weighter


def test_accumulator_rejects_overflow():
    acc = LikelihoodAccumulator()
    acc.multiply(1e200)
    with pytest.raises(InvalidInputError):
        acc.multiply(1e200)
    assert acc.value == 1e200


def test_accumulator_rejects_zero():
    with pytest.raises(InvalidInputError):
        LikelihoodAccumulator().multiply(0.0)


def test_overflowing_tree_fails_loudly():
    ref_a = ReferenceNode(
        "root", children=[ReferenceNode("n", [("v", w)]) for w in ("x:1e200", "x:1e200", "x:1")]
    )
    ref_b = ReferenceNode(
        "root", children=[ReferenceNode("n", [("v", w)]) for w in ("x:1", "x:1", "x:1000000")]
    )
    observed = ObservedNode("root", children=[ObservedNode("n", [("v", "x")]) for _ in range(3)])
    with pytest.raises(InvalidInputError):
        score_tree(observed, ref_a, ref_b, ScoringConfig(size_a=1, size_b=1))


def test_tiny_ratio_keeps_likelihood_positive():
    ref_a = ReferenceNode("root", children=[ReferenceNode("n", [("v", "x:1")])])
    ref_b = ReferenceNode("root", children=[ReferenceNode("n", [("v", "x:100000")])])
    observed = ObservedNode("root", children=[ObservedNode("n", [("v", "x")])])
    likelihood = score_tree(observed, ref_a, ref_b, ScoringConfig(size_a=1, size_b=1))
    assert likelihood == 0.0001
    assert classify(likelihood) == "B"


def test_quiet_run_logs_no_per_field_ratios(caplog):
    refs = connection_refs()
    observed = ObservedNode("s", children=[ObservedNode("conn", [("proto", "tcp"), ("port", "80")])])
    with caplog.at_level(logging.DEBUG):
        score_tree(
            observed,
            ReferenceNode("s", children=[refs.a]),
            ReferenceNode("s", children=[refs.b]),
            ScoringConfig(size_a=4, size_b=4),
        )
    assert not [r for r in caplog.records if "ratio" in r.getMessage()]
