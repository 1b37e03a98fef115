"""
Unit tests for the edge-density quality gate.
"""
import numpy as np
import pytest

from conftest import checkerboard, flat_image
from docverify.exceptions import LowQualityImageError
from docverify.models import PixelBuffer
from docverify.quality import ImageQualityGate, luminance


@pytest.fixture
def gate():
    return ImageQualityGate(analysis_size=400, edge_threshold=30, min_edge_ratio=0.1)


def test_flat_image_always_fails(gate):
    buffer = PixelBuffer(flat_image())
    assert gate.measure(buffer) == 0.0

    with pytest.raises(LowQualityImageError) as exc:
        gate.enforce(buffer)
    assert exc.value.code == "LOW_QUALITY_IMAGE"
    assert exc.value.details["threshold"] == 0.1


def test_checkerboard_always_passes(gate):
    buffer = PixelBuffer(checkerboard(400, cell=1))
    assert gate.measure(buffer) == 1.0
    assert gate.enforce(buffer) == 1.0


def test_large_checkerboard_passes_after_resample(gate):
    # 8px cells on 800x800 become 4px cells on the analysis square
    buffer = PixelBuffer(checkerboard(800, cell=8))
    ratio = gate.measure(buffer)
    assert ratio == pytest.approx(99 / 399, abs=0.01)
    gate.enforce(buffer)


def test_ratio_at_threshold_passes_below_fails():
    gate = ImageQualityGate(analysis_size=11, edge_threshold=30, min_edge_ratio=0.1)

    # One edge per row: 11 edges over 11 * 10 pairs == 0.1
    pixels = np.full((11, 11, 3), 255, dtype=np.uint8)
    pixels[:, 0] = 0
    result = gate.evaluate(PixelBuffer(pixels))
    assert result["edge_ratio"] == 0.1
    assert result["passed"] is True

    pixels[0, 0] = 255
    result = gate.evaluate(PixelBuffer(pixels))
    assert result["edge_ratio"] < 0.1
    assert result["passed"] is False
    assert result["signals"]


def test_small_differences_are_not_edges(gate):
    # Alternating 100/120 columns: difference 20 never exceeds 30
    pixels = np.full((400, 400, 3), 100, dtype=np.uint8)
    pixels[:, ::2] = 120
    assert gate.measure(PixelBuffer(pixels)) == 0.0


def test_grayscale_and_rgba_inputs(gate):
    gray = PixelBuffer(checkerboard(400, cell=1, channels=1))
    rgba = PixelBuffer(checkerboard(400, cell=1, channels=4))
    assert gate.measure(gray) == 1.0
    assert gate.measure(rgba) == 1.0


def test_luminance_weights():
    pixels = np.array([[[255, 0, 0], [0, 255, 0], [0, 0, 255]]], dtype=np.uint8)
    assert luminance(pixels)[0].tolist() == pytest.approx([76.245, 149.685, 29.07])


def test_defaults_come_from_settings():
    gate = ImageQualityGate()
    assert gate.analysis_size == 400
    assert gate.edge_threshold == 30
    assert gate.min_edge_ratio == 0.1
