"""Tests for result ranking and the label catalogue."""

from __future__ import annotations

import pytest

from dermascan.labels import DESCRIPTIONS, LABELS, NO_CONDITION_DESCRIPTION, UNKNOWN_DESCRIPTION, describe
from dermascan.ml.classifier import ModelKind
from dermascan.ml.inference import ProbabilityVector
from dermascan.ml.ranker import rank, top_index


def _vector(*values: float, synthetic: bool = False) -> ProbabilityVector:
    return ProbabilityVector(values=tuple(values), synthetic=synthetic)


class TestTopIndex:
    def test_picks_maximum(self) -> None:
        assert top_index([0.1, 0.7, 0.2]) == (1, 0.7)

    def test_first_maximum_wins_ties(self) -> None:
        assert top_index([0.2, 0.4, 0.1, 0.4, 0.4]) == (1, 0.4)

    def test_all_zero_resolves_to_first(self) -> None:
        assert top_index([0.0, 0.0, 0.0]) == (0, 0.0)

    def test_result_dominates_every_entry(self) -> None:
        values = [0.05, 0.3, 0.02, 0.3, 0.1, 0.0, 0.11, 0.02, 0.05, 0.05]
        index, value = top_index(values)
        assert all(value >= v for v in values)
        assert index == values.index(max(values))


class TestRank:
    def test_label_and_confidence(self) -> None:
        values = [0.0] * 10
        values[3] = 0.82
        result = rank(_vector(*values))
        assert result.label == "Basal Cell Carcinoma"
        assert result.confidence == pytest.approx(82.0)
        assert result.degraded is False
        assert result.model_kind is ModelKind.GRAPH

    def test_confidence_within_percentage_range(self) -> None:
        result = rank(_vector(1.0, *([0.0] * 9)))
        assert result.label == "Eczema"
        assert 0.0 <= result.confidence <= 100.0

    def test_synthetic_vector_is_degraded(self) -> None:
        result = rank(_vector(*([0.5] * 10), synthetic=True))
        assert result.degraded is True

    def test_fallback_model_is_degraded(self) -> None:
        result = rank(_vector(*([0.1] * 10)), model_kind=ModelKind.FALLBACK)
        assert result.degraded is True
        assert result.model_kind is ModelKind.FALLBACK

    def test_length_mismatch_raises(self) -> None:
        with pytest.raises(ValueError, match="does not match"):
            rank(_vector(0.5, 0.5))

    def test_description_follows_label(self) -> None:
        values = [0.0] * 10
        values[9] = 0.9
        assert rank(_vector(*values)).description == DESCRIPTIONS["Warts"]


class TestLabels:
    def test_ten_labels_each_described(self) -> None:
        assert len(LABELS) == 10
        assert set(DESCRIPTIONS) == set(LABELS)

    def test_unknown_label_gets_default(self) -> None:
        assert describe("Sunburn") == UNKNOWN_DESCRIPTION

    @pytest.mark.parametrize("label", [None, ""])
    def test_missing_label(self, label: str | None) -> None:
        assert describe(label) == NO_CONDITION_DESCRIPTION
