"""
Pytest Configuration and Fixtures

Shared fixtures and fake engines for the verification pipeline tests.
Run with: pytest -v
"""
import asyncio
import io
import sys
from pathlib import Path
from typing import List, Optional

import numpy as np
import pytest
from PIL import Image

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from docverify.engines import OpenCVEngine
from docverify.models import OCRResult


SAMPLE_ID_TEXT = "Name: John Smith\nDate of Birth\n01/01/1990"


def encode_png(pixels: np.ndarray) -> bytes:
    """Encode a uint8 array as PNG bytes"""
    buf = io.BytesIO()
    Image.fromarray(pixels).save(buf, format="PNG")
    return buf.getvalue()


def checkerboard(size: int = 400, cell: int = 1, channels: int = 3) -> np.ndarray:
    rows, cols = np.indices((size, size))
    board = (((rows // cell) + (cols // cell)) % 2 * 255).astype(np.uint8)
    if channels == 1:
        return board
    return np.repeat(board[:, :, None], channels, axis=2)


def flat_image(width: int = 400, height: int = 400, value: int = 128) -> np.ndarray:
    return np.full((height, width, 3), value, dtype=np.uint8)


def noise_image(width: int, height: int, seed: int) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


class FakeOCREngine:
    """Deterministic OCR stand-in; optionally blocks on `gate` until released."""

    def __init__(self,
                 text: str = SAMPLE_ID_TEXT,
                 confidence: float = 90.0,
                 error: Optional[Exception] = None,
                 gate: Optional[asyncio.Event] = None):
        self.text = text
        self.confidence = confidence
        self.error = error
        self.gate = gate
        self.started = asyncio.Event() if gate is not None else None
        self.calls: List[bytes] = []
        self.terminate_calls = 0
        self._ready = False

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def initialize(self) -> None:
        self._ready = True

    async def recognize(self, image_bytes: bytes) -> OCRResult:
        self.calls.append(image_bytes)
        if self.gate is not None:
            self.started.set()
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return OCRResult(text=self.text, confidence=self.confidence)

    async def terminate(self) -> None:
        self.terminate_calls += 1
        self._ready = False


class FakeCorrelationEngine(OpenCVEngine):
    """OpenCV resize/grayscale with a fixed correlation score or error."""

    def __init__(self, score: float = 0.9, error: Optional[Exception] = None):
        super().__init__()
        self.score = score
        self.error = error
        self.calls = 0

    async def match_template(self, source_gray, template_gray) -> float:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.score


@pytest.fixture
def card_png():
    """A sharp 400x400 card-like image (4px checker cells)."""
    return encode_png(checkerboard(400, cell=4))


@pytest.fixture
def flat_png():
    """A featureless image that must fail the quality gate."""
    return encode_png(flat_image())


@pytest.fixture
def opencv_engine():
    engine = OpenCVEngine()
    asyncio.run(engine.initialize())
    return engine
