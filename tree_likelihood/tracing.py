import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List

import pandas as pd

from tree_likelihood.ratios import RatioOutput

log = logging.getLogger(__name__)


class TraceSink(ABC):
    """Receives the verbose trace of an evaluation. Never alters the score."""

    @abstractmethod
    def begin_node(self, name: str, matched: bool) -> None:
        pass

    @abstractmethod
    def field(self, node_name: str, field_name: str, output: RatioOutput, new: bool) -> None:
        pass

    @abstractmethod
    def end_node(self, name: str, entropy: float, factor: float, likelihood: float) -> None:
        pass


class LoggingTraceSink(TraceSink):
    def __init__(self, logger: logging.Logger = log, level: int = logging.DEBUG):
        self.logger = logger
        self.level = level

    def begin_node(self, name, matched):
        self.logger.log(self.level, "<%s>%s", name, "" if matched else " (new)")

    def field(self, node_name, field_name, output, new):
        self.logger.log(
            self.level,
            "  %s%s: ratio=%s num=%s den=%s [%s]",
            field_name,
            " (new)" if new else "",
            output.ratio,
            output.numerator,
            output.denominator,
            output.reason.value,
        )

    def end_node(self, name, entropy, factor, likelihood):
        self.logger.log(
            self.level,
            "</%s> entropy=%.4f factor=%.4f likelihood=%.6g",
            name,
            entropy,
            factor,
            likelihood,
        )


class RecordingTraceSink(TraceSink):
    """Keeps every trace event in memory; :meth:`to_frame` tabulates them."""

    COLUMNS = [
        "event", "node", "field", "matched", "ratio", "reason",
        "entropy", "factor", "likelihood",
    ]

    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    def begin_node(self, name, matched):
        self.events.append({"event": "begin", "node": name, "matched": matched})

    def field(self, node_name, field_name, output, new):
        self.events.append(
            {
                "event": "field",
                "node": node_name,
                "field": field_name,
                "matched": not new,
                "ratio": output.ratio,
                "reason": output.reason.value,
            }
        )

    def end_node(self, name, entropy, factor, likelihood):
        self.events.append(
            {
                "event": "end",
                "node": name,
                "entropy": entropy,
                "factor": factor,
                "likelihood": likelihood,
            }
        )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.events, columns=self.COLUMNS)

    def node_factors(self) -> pd.DataFrame:
        return (
            self.to_frame()
            .query("event == 'end'")
            .filter(items=["node", "entropy", "factor", "likelihood"])
            .reset_index(drop=True)
        )
