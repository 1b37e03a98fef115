import asyncio
import logging
from typing import Optional, Tuple

import numpy as np

from config import settings
from .engines import CorrelationEngine
from .models import PixelBuffer, TemplateMatchResult, clamp_confidence

logger = logging.getLogger(__name__)

FAILED_DETAILS = "Template matching failed due to processing error."


def scaled_size(width: int, height: int, max_side: int) -> Tuple[int, int]:
    """Downscale (width, height) so the longer side is at most max_side, keeping aspect ratio"""
    longest = max(width, height)
    if longest <= max_side:
        return width, height
    scale = max_side / longest
    return max(1, round(width * scale)), max(1, round(height * scale))


class TemplateMatcher:
    """
    Scores how well an ID image matches a reference layout template.

    Both images are downscaled independently to a bounded size, converted to
    grayscale, and correlated at every valid alignment; the best normalized
    cross-correlation is the confidence. Processing errors never propagate:
    they produce a zero-confidence, non-matching result.
    """

    def __init__(self,
                 engine: CorrelationEngine,
                 max_side: Optional[int] = None,
                 threshold: Optional[float] = None):
        self.engine = engine
        self.max_side = max_side or settings.TEMPLATE_MAX_SIDE
        self.threshold = settings.TEMPLATE_MATCH_THRESHOLD if threshold is None else threshold

    def prepare(self, buffer: PixelBuffer) -> np.ndarray:
        """Resize to the working size and reduce to grayscale"""
        if buffer.width == 0 or buffer.height == 0:
            raise ValueError("Image has zero area")
        width, height = scaled_size(buffer.width, buffer.height, self.max_side)
        pixels = buffer.pixels
        if (width, height) != (buffer.width, buffer.height):
            pixels = self.engine.resize(pixels, width, height)
        return self.engine.to_grayscale(pixels)

    async def match(self, source: PixelBuffer, template: PixelBuffer) -> TemplateMatchResult:
        try:
            source_gray = await asyncio.to_thread(self.prepare, source)
            template_gray = await asyncio.to_thread(self.prepare, template)

            if (template_gray.shape[0] > source_gray.shape[0]
                    or template_gray.shape[1] > source_gray.shape[1]):
                raise ValueError(
                    f"Template {template_gray.shape[1]}x{template_gray.shape[0]} larger than "
                    f"source {source_gray.shape[1]}x{source_gray.shape[0]}"
                )

            score = await self.engine.match_template(source_gray, template_gray)
        except Exception:
            logger.exception("Template matching error")
            return TemplateMatchResult(is_match=False, confidence=0.0, details=FAILED_DETAILS)

        confidence = clamp_confidence(score)
        is_match = confidence > self.threshold
        logger.debug(f"Template correlation confidence={confidence:.4f}, match={is_match}")

        verdict = (
            "Documents appear to match the expected layout."
            if is_match else
            "Documents do not match the expected layout pattern."
        )
        details = f"Template matching confidence: {confidence * 100:.1f}%. {verdict}"

        return TemplateMatchResult(is_match=is_match, confidence=confidence, details=details)
