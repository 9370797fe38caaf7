from collections import Counter
from typing import Optional, Sequence

from tree_likelihood.distributions import parse_distribution


class StructuralSimilarity:
    @staticmethod
    def hard_length_similarity(len1: int, len2: int) -> float:
        max_len = min(len1, len2)
        if max_len == 0:
            return 0.0
        return max(0, 1.0 - (abs(len1 - len2) / max_len))

    @staticmethod
    def manage_empty_lists(list1, list2) -> Optional[float]:
        if len(list1) == 0 and len(list2) == 0:
            return 1.0
        if len(list1) == 0 or len(list2) == 0:
            return 0.0
        return None

    @staticmethod
    def counter_similarity(names1: Sequence[str], names2: Sequence[str]) -> float:
        if (out := StructuralSimilarity.manage_empty_lists(names1, names2)) is not None:
            return out
        c1 = Counter(names1)
        c2 = Counter(names2)
        union_sum = sum((c1 | c2).values())
        jaccard_score = sum((c1 & c2).values()) / union_sum
        # Size differences cost more than renamed entries
        structural_penalty = StructuralSimilarity.hard_length_similarity(
            len(names1), len(names2)
        )
        return jaccard_score * structural_penalty ** (1 / 2)

    @staticmethod
    def value_coverage(observed, reference) -> float:
        """Share of the observed field values that the reference distributions know about."""
        checked, known = 0, 0
        for f in observed.fields:
            ref_field = reference.get_field_by_name(f.name)
            if ref_field is None:
                continue
            checked += 1
            known += any(v == f.value for v, _ in parse_distribution(ref_field.value))
        return known / checked if checked else 0.0

    @staticmethod
    def node_similarity(observed, reference) -> float:
        fields = StructuralSimilarity.counter_similarity(
            observed.field_names(), reference.field_names()
        )
        children = StructuralSimilarity.counter_similarity(
            [c.name for c in observed.children], [c.name for c in reference.children]
        )
        coverage = StructuralSimilarity.value_coverage(observed, reference)
        return (2 * fields + children + coverage) / 4
