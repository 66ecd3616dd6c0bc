"""
Probability vector + label set -> ranked predictions.
"""

from __future__ import annotations

from operator import attrgetter
from typing import Iterable, Sequence

from core.models import Prediction, RankedPredictions


def placeholder_label(index: int) -> str:
    return f"Class {index}"


def synthesize_labels(count: int) -> list[str]:
    """Positional labels "Class 0" .. "Class {count-1}"."""
    return [placeholder_label(i) for i in range(count)]


def rank(probabilities: Iterable[float], labels: Sequence[str]) -> RankedPredictions:
    """
    One Prediction per probability, highest first. Equal probabilities keep
    their index order; indices past the end of `labels` (or with an empty
    label) get a "Class i" placeholder.
    """
    predictions = [
        Prediction(
            label=(labels[i] if i < len(labels) else "") or placeholder_label(i),
            probability=float(p),
        )
        for i, p in enumerate(probabilities)
    ]
    # sorted() is stable, reverse=True included
    return tuple(sorted(predictions, key=attrgetter("probability"), reverse=True))
