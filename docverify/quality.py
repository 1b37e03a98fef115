import logging
from typing import Any, Dict, Optional

import cv2
import numpy as np

from config import settings
from .exceptions import LowQualityImageError
from .models import PixelBuffer

logger = logging.getLogger(__name__)

# ITU-R BT.601 luma weights for R, G, B
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float64)


def luminance(pixels: np.ndarray) -> np.ndarray:
    """Reduce a 1/3/4 channel buffer to float luminance on a 0-255 scale."""
    if pixels.ndim == 2:
        return pixels.astype(np.float64)
    if pixels.shape[2] == 1:
        return pixels[:, :, 0].astype(np.float64)
    return pixels[:, :, :3].astype(np.float64) @ LUMA_WEIGHTS


class ImageQualityGate:
    """
    Rejects ID images too blurry for reliable matching and OCR.

    The image is resampled to a fixed analysis square and every pair of
    horizontally adjacent samples is compared; a pair whose luminance differs
    by more than the edge threshold counts as an edge. Sharp captures have
    many high-contrast transitions, out-of-focus ones have few.
    """

    def __init__(self,
                 analysis_size: Optional[int] = None,
                 edge_threshold: Optional[float] = None,
                 min_edge_ratio: Optional[float] = None):
        self.analysis_size = analysis_size or settings.QUALITY_ANALYSIS_SIZE
        self.edge_threshold = settings.EDGE_DIFF_THRESHOLD if edge_threshold is None else edge_threshold
        self.min_edge_ratio = settings.MIN_EDGE_RATIO if min_edge_ratio is None else min_edge_ratio

    def resample(self, buffer: PixelBuffer) -> np.ndarray:
        """Stretch the image onto the analysis square"""
        size = self.analysis_size
        if buffer.width == size and buffer.height == size:
            return buffer.pixels
        return cv2.resize(buffer.pixels, (size, size), interpolation=cv2.INTER_AREA)

    def measure(self, buffer: PixelBuffer) -> float:
        """Return the fraction of horizontal neighbour pairs that are edges"""
        gray = luminance(self.resample(buffer))
        diffs = np.abs(gray[:, 1:] - gray[:, :-1])
        if diffs.size == 0:
            return 0.0
        edges = int(np.count_nonzero(diffs > self.edge_threshold))
        return edges / diffs.size

    def evaluate(self, buffer: PixelBuffer) -> Dict[str, Any]:
        """
        Evaluate image sharpness without raising.
        Returns dict with passed, edge_ratio, threshold and signals.
        """
        edge_ratio = self.measure(buffer)
        passed = edge_ratio >= self.min_edge_ratio
        signals = [] if passed else [f"Blur detected (edge_ratio={edge_ratio:.3f})"]

        logger.debug(f"Quality gate: edge_ratio={edge_ratio:.4f}, threshold={self.min_edge_ratio}")

        return {
            "passed": passed,
            "edge_ratio": edge_ratio,
            "threshold": self.min_edge_ratio,
            "signals": signals,
        }

    def enforce(self, buffer: PixelBuffer) -> float:
        """Raise LowQualityImageError unless the image passes; returns the edge ratio"""
        result = self.evaluate(buffer)
        if not result["passed"]:
            logger.warning(result["signals"][0])
            raise LowQualityImageError(result["edge_ratio"], self.min_edge_ratio)
        return result["edge_ratio"]
