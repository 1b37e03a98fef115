"""
Document Verification Pipeline

This package contains the pipeline that verifies an ID document image
against a reference layout template:
- Image quality gating (edge-density blur check)
- Template matching by normalized cross-correlation
- Field label/value extraction from OCR text
- Final verdict with averaged confidence
"""

from .run_pipeline import VerificationService, run_pipeline
from .models import VerificationResult, PipelineState

__version__ = "1.0.0"

__all__ = ["VerificationService", "run_pipeline", "VerificationResult", "PipelineState"]
