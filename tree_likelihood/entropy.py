from collections import Counter
from typing import List, Sequence

import numpy as np

from tree_likelihood.errors import InvalidInputError


def _checked(ratios: Sequence[float]) -> np.ndarray:
    if len(ratios) == 0:
        raise InvalidInputError("Cannot weight an empty ratio list")
    values = np.asarray(ratios, dtype=float)
    if not np.all(np.isfinite(values)):
        raise InvalidInputError(f"Ratios must be finite, got {list(ratios)}")
    return values


def _finite(result, what: str):
    if not np.all(np.isfinite(result)):
        raise InvalidInputError(f"{what} is not finite: {result}")
    return result


def _relative_frequencies(values: np.ndarray) -> np.ndarray:
    """Frequency of each element's own value within the list, in input order."""
    occurrences = Counter(values.tolist())
    return np.array([occurrences[v] for v in values.tolist()], dtype=float) / len(values)


class EntropyWeighter:
    """
    Entropy-derived exponents for combining per-field ratios.

    Values repeated across many fields carry little information, so their
    exponent shrinks towards ``1/n``; a ratio whose value is unique keeps a
    larger share of its weight.
    """

    @staticmethod
    def entropy(ratios: Sequence[float]) -> float:
        """Shannon entropy (nats) of the value-frequency distribution of ``ratios``."""
        values = _checked(ratios)
        counts = np.array(list(Counter(values.tolist()).values()), dtype=float)
        x = counts / len(values)
        return _finite(float(-np.sum(x * np.log(x))), "entropy")

    @staticmethod
    def entropies(ratios: Sequence[float]) -> List[float]:
        values = _checked(ratios)
        n = len(values)
        norm = 1.0 if n == 1 else n / np.log(n)
        x = _relative_frequencies(values)
        terms = -norm * x * np.log(x)
        return _finite(terms, "entropy term").tolist()

    @staticmethod
    def exponents(ratios: Sequence[float]) -> List[float]:
        n = len(ratios)
        entropies = np.asarray(EntropyWeighter.entropies(ratios))
        return _finite(((n - 1) * entropies + 1) / n, "exponent").tolist()

    @staticmethod
    def weighted_product(ratios: Sequence[float]) -> float:
        exps = EntropyWeighter.exponents(ratios)
        values = np.asarray(ratios, dtype=float)
        return _finite(float(np.prod(np.power(values, exps))), "attributes likelihood")
