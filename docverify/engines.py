"""
External engines used by the pipeline.

The OCR engine and the correlation engine are modelled as capability
interfaces so tests can substitute deterministic fakes. TesseractEngine and
OpenCVEngine are the production implementations.
"""
import asyncio
import io
import logging
from typing import Dict, List, Optional, Protocol, Tuple

import cv2
import numpy as np
import pytesseract
from PIL import Image

from config import settings
from .exceptions import EngineInitializationError, NotInitializedError
from .models import OCRResult

logger = logging.getLogger(__name__)


class OCREngine(Protocol):
    async def initialize(self) -> None: ...

    async def recognize(self, image_bytes: bytes) -> OCRResult: ...

    async def terminate(self) -> None: ...

    @property
    def is_ready(self) -> bool: ...


class CorrelationEngine(Protocol):
    async def initialize(self) -> None: ...

    def resize(self, pixels: np.ndarray, width: int, height: int) -> np.ndarray: ...

    def to_grayscale(self, pixels: np.ndarray) -> np.ndarray: ...

    async def match_template(self, source_gray: np.ndarray, template_gray: np.ndarray) -> float: ...

    @property
    def is_ready(self) -> bool: ...


class TesseractEngine:
    """OCR through the tesseract binary (pytesseract)."""

    def __init__(self, language: Optional[str] = None, tesseract_cmd: Optional[str] = None):
        self.language = language or settings.OCR_LANGUAGE
        self.tesseract_cmd = tesseract_cmd or settings.TESSERACT_CMD
        self._ready = False

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def initialize(self) -> None:
        if self._ready:
            return
        if self.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd
        try:
            version = await asyncio.to_thread(pytesseract.get_tesseract_version)
        except pytesseract.TesseractNotFoundError as e:
            raise EngineInitializationError("tesseract", str(e)) from e
        self._ready = True
        logger.info(f"Tesseract {version} ready (lang={self.language})")

    async def recognize(self, image_bytes: bytes) -> OCRResult:
        if not self._ready:
            raise NotInitializedError("OCR engine not initialized")
        return await asyncio.to_thread(self._recognize, image_bytes)

    def _recognize(self, image_bytes: bytes) -> OCRResult:
        with Image.open(io.BytesIO(image_bytes)) as img:
            data = pytesseract.image_to_data(
                img.convert("RGB"), lang=self.language, output_type=pytesseract.Output.DICT
            )

        # Rebuild text line by line from the word boxes
        lines: Dict[Tuple[int, int, int], List[str]] = {}
        confidences = []
        for i, word in enumerate(data["text"]):
            conf = float(data["conf"][i])
            if not word or not word.strip():
                continue
            key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
            lines.setdefault(key, []).append(word.strip())
            if conf >= 0:
                confidences.append(conf)

        text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))
        confidence = sum(confidences) / len(confidences) if confidences else 0.0
        return OCRResult(text=text, confidence=confidence)

    async def terminate(self) -> None:
        if self._ready:
            self._ready = False
            logger.info("Tesseract engine released")


class OpenCVEngine:
    """Resize, grayscale and normalized cross-correlation through OpenCV."""

    def __init__(self):
        self._ready = False

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def initialize(self) -> None:
        if not self._ready:
            self._ready = True
            logger.info(f"OpenCV {cv2.__version__} ready")

    def resize(self, pixels: np.ndarray, width: int, height: int) -> np.ndarray:
        return cv2.resize(pixels, (width, height), interpolation=cv2.INTER_AREA)

    def to_grayscale(self, pixels: np.ndarray) -> np.ndarray:
        if pixels.ndim == 2:
            return pixels
        if pixels.shape[2] == 1:
            return pixels[:, :, 0]
        code = cv2.COLOR_RGBA2GRAY if pixels.shape[2] == 4 else cv2.COLOR_RGB2GRAY
        return cv2.cvtColor(pixels, code)

    async def match_template(self, source_gray: np.ndarray, template_gray: np.ndarray) -> float:
        if not self._ready:
            raise NotInitializedError("Correlation engine not initialized")
        return await asyncio.to_thread(self._match_template, source_gray, template_gray)

    def _match_template(self, source_gray: np.ndarray, template_gray: np.ndarray) -> float:
        result = cv2.matchTemplate(source_gray, template_gray, cv2.TM_CCOEFF_NORMED)
        _, max_val, _, _ = cv2.minMaxLoc(result)
        return float(max_val)
