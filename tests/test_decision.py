"""
Unit tests for verdict aggregation.
"""
import pytest

from docverify.decision import DecisionEngine
from docverify.models import TemplateMatchResult, TextExtractionResult, clamp_confidence


def template(is_match: bool, confidence: float = 0.8) -> TemplateMatchResult:
    return TemplateMatchResult(is_match=is_match, confidence=confidence, details="")


def text(labels=(), confidence: float = 0.6) -> TextExtractionResult:
    return TextExtractionResult(
        extracted_labels=tuple(labels),
        extracted_data={},
        confidence=confidence,
        details="",
    )


@pytest.mark.parametrize("is_match, labels, expected", [
    (True, ("Name",), True),
    (True, (), False),
    (False, ("Name",), False),
    (False, (), False),
])
def test_validity_truth_table(is_match, labels, expected):
    overall = DecisionEngine().make_decision(template(is_match), text(labels))
    assert overall.is_valid is expected


def test_confidence_is_unweighted_mean():
    overall = DecisionEngine().make_decision(template(True, 0.8), text(("Name",), 0.6))
    assert overall.confidence == pytest.approx(0.7)


def test_confidence_inputs_clamped():
    overall = DecisionEngine().make_decision(template(True, 1.5), text(("Name",), -0.2))
    assert overall.confidence == pytest.approx(0.5)


def test_build_result_shape():
    result = DecisionEngine().build_result(template(True, 1.0), text(("Name",), 1.0))
    as_dict = result.to_dict()

    assert set(as_dict) == {"templateMatch", "textExtraction", "overall"}
    assert as_dict["overall"] == {"isValid": True, "confidence": 1.0}
    assert as_dict["textExtraction"]["extractedLabels"] == ["Name"]


@pytest.mark.parametrize("value, expected", [
    (0.5, 0.5),
    (-1.0, 0.0),
    (2.0, 1.0),
    (float("nan"), 0.0),
    (float("inf"), 0.0),
    ("bogus", 0.0),
])
def test_clamp_confidence(value, expected):
    assert clamp_confidence(value) == expected
