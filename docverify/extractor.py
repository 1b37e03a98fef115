import re
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from config import LABEL_PATTERNS
from .engines import OCREngine
from .models import TextExtractionResult, clamp_confidence

logger = logging.getLogger(__name__)

FAILED_DETAILS = "Text extraction failed due to OCR processing error."

LabelPatterns = Sequence[Tuple[str, Sequence[str]]]


def capture_value(line: str, phrase: str) -> Optional[str]:
    """Return the text following `phrase` (and any ':'/whitespace) on the line"""
    match = re.search(re.escape(phrase) + r"[:\s]*(.*)", line, re.IGNORECASE)
    if not match:
        return None
    value = match.group(1).strip()
    return value or None


def find_labels(text: str,
                label_patterns: LabelPatterns = LABEL_PATTERNS) -> Tuple[List[str], Dict[str, str]]:
    """
    Map OCR text lines onto known document field labels.

    Each non-blank line is scanned against every label in order; the first
    phrase of a label found in the line wins for that label. The value is the
    rest of the line after the phrase, or the next line when nothing follows.
    Later matches of the same label overwrite earlier values.

    Returns (sorted unique labels, label -> value)
    """
    lines = [line for line in text.splitlines() if line.strip()]

    found = set()
    data: Dict[str, str] = {}

    for index, line in enumerate(lines):
        lower_line = line.lower().strip()

        for label, phrases in label_patterns:
            for phrase in phrases:
                if phrase not in lower_line:
                    continue

                found.add(label)
                value = capture_value(line, phrase)
                if value:
                    data[label] = value
                elif index < len(lines) - 1:
                    # Label on one line, value on the next
                    data[label] = lines[index + 1].strip()
                break

    return sorted(found), data


class FieldExtractor:
    """
    Extracts labelled fields from a document image via OCR.
    OCR failures degrade to an empty, zero-confidence result.
    """

    def __init__(self, engine: OCREngine, label_patterns: LabelPatterns = LABEL_PATTERNS):
        self.engine = engine
        self.label_patterns = label_patterns

    async def extract(self, image_bytes: bytes) -> TextExtractionResult:
        try:
            ocr = await self.engine.recognize(image_bytes)
            labels, data = find_labels(ocr.text, self.label_patterns)
            confidence = clamp_confidence(ocr.confidence / 100)
        except Exception:
            logger.exception("Text extraction error")
            return TextExtractionResult(
                extracted_labels=(),
                extracted_data={},
                confidence=0.0,
                details=FAILED_DETAILS,
            )

        logger.debug(f"OCR confidence={ocr.confidence:.1f}, labels={labels}")

        details = (
            f"OCR extracted {len(ocr.text)} characters with {ocr.confidence:.1f}% confidence. "
            f"Found {len(labels)} document field labels with values."
        )

        return TextExtractionResult(
            extracted_labels=tuple(labels),
            extracted_data=data,
            confidence=confidence,
            details=details,
        )
