from .models import (
    OverallResult,
    TemplateMatchResult,
    TextExtractionResult,
    VerificationResult,
    clamp_confidence,
)

class DecisionEngine:
    """
    Combines the layout match and text extraction signals into a verdict.

    A document is valid only when the layout matches the template AND at
    least one field label was read; neither signal alone is sufficient.
    """

    def calculate_confidence(self,
                             template_result: TemplateMatchResult,
                             text_result: TextExtractionResult) -> float:
        """Unweighted mean of the two stage confidences"""
        template_conf = clamp_confidence(template_result.confidence)
        text_conf = clamp_confidence(text_result.confidence)
        return clamp_confidence((template_conf + text_conf) / 2)

    def make_decision(self,
                      template_result: TemplateMatchResult,
                      text_result: TextExtractionResult) -> OverallResult:
        is_valid = bool(template_result.is_match) and len(text_result.extracted_labels) > 0
        return OverallResult(
            is_valid=is_valid,
            confidence=self.calculate_confidence(template_result, text_result),
        )

    def build_result(self,
                     template_result: TemplateMatchResult,
                     text_result: TextExtractionResult) -> VerificationResult:
        return VerificationResult(
            template_match=template_result,
            text_extraction=text_result,
            overall=self.make_decision(template_result, text_result),
        )
