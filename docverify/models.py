import math
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Tuple

import numpy as np


def clamp_confidence(value: float) -> float:
    """Clamp a score into [0, 1]; NaN and infinities become 0."""
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(v):
        return 0.0
    return max(0.0, min(1.0, v))


class PipelineState(str, Enum):
    NOT_READY = "not_ready"
    READY = "ready"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class PixelBuffer:
    """Decoded image samples, row-major, shape (height, width, channels)."""
    pixels: np.ndarray

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def channels(self) -> int:
        return 1 if self.pixels.ndim == 2 else int(self.pixels.shape[2])


@dataclass(frozen=True)
class OCRResult:
    text: str
    # Mean recognition confidence on a 0-100 scale
    confidence: float


@dataclass(frozen=True)
class TemplateMatchResult:
    is_match: bool
    confidence: float
    details: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isMatch": self.is_match,
            "confidence": self.confidence,
            "details": self.details,
        }


@dataclass(frozen=True)
class TextExtractionResult:
    extracted_labels: Tuple[str, ...]
    extracted_data: Mapping[str, str]
    confidence: float
    details: str

    def __post_init__(self):
        # Freeze the label->value mapping so the result stays immutable
        object.__setattr__(self, "extracted_data", MappingProxyType(dict(self.extracted_data)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "extractedLabels": list(self.extracted_labels),
            "extractedData": dict(self.extracted_data),
            "confidence": self.confidence,
            "details": self.details,
        }


@dataclass(frozen=True)
class OverallResult:
    is_valid: bool
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {"isValid": self.is_valid, "confidence": self.confidence}


@dataclass(frozen=True)
class VerificationResult:
    template_match: TemplateMatchResult
    text_extraction: TextExtractionResult
    overall: OverallResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "templateMatch": self.template_match.to_dict(),
            "textExtraction": self.text_extraction.to_dict(),
            "overall": self.overall.to_dict(),
        }
