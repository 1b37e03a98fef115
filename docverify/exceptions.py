"""
Verification pipeline exceptions.

Every failure that aborts a verification run is a VerificationError subclass.
The template matcher and field extractor never raise these outward; they
degrade to zero-confidence results instead.

Usage:
    from docverify.exceptions import LowQualityImageError

    raise LowQualityImageError(edge_ratio=0.04, threshold=0.1)
"""
from typing import Optional, Dict, Any


class VerificationError(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "LOW_QUALITY_IMAGE")
        status_code: HTTP status code the outer surface returns
        details: Additional context for debugging
    """
    def __init__(
        self,
        message: str,
        code: str = "VERIFICATION_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API response format."""
        return {
            "status": "error",
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# =============================================================================
# PRECONDITION ERRORS
# =============================================================================

class NotInitializedError(VerificationError):
    """OCR or correlation engine used before initialization."""
    def __init__(self, message: str = "Verification service not initialized"):
        super().__init__(message, code="NOT_INITIALIZED", status_code=503)


class EngineInitializationError(VerificationError):
    """An external engine could not be started."""
    def __init__(self, engine: str, reason: str):
        super().__init__(
            f"Failed to initialize {engine}: {reason}",
            code="ENGINE_INIT_FAILED",
            status_code=503,
            details={"engine": engine}
        )


class MissingInputError(VerificationError):
    """
    One or both input images were not supplied.

    Use for: empty uploads, None sources.
    """
    def __init__(self, missing: list):
        super().__init__(
            f"Missing input image(s): {', '.join(missing)}",
            code="MISSING_INPUT",
            status_code=400,
            details={"missing": list(missing)}
        )


class AlreadyRunningError(VerificationError):
    """A verification run is already in flight."""
    def __init__(self):
        super().__init__(
            "A verification is already running",
            code="ALREADY_RUNNING",
            status_code=409
        )


# =============================================================================
# STAGE ERRORS
# =============================================================================

class DecodeError(VerificationError):
    """
    Image bytes could not be decoded.

    Use for: corrupt uploads, unsupported formats, zero-area images.
    """
    def __init__(self, message: str, source: Optional[str] = None):
        details = {"source": source} if source else {}
        super().__init__(message, code="DECODE_ERROR", status_code=400, details=details)


class LowQualityImageError(VerificationError):
    """The ID image was rejected by the quality gate."""
    def __init__(self, edge_ratio: float, threshold: float):
        super().__init__(
            "Image quality too low: Image appears to be blurry or lacks detail. "
            "Please upload a clearer image.",
            code="LOW_QUALITY_IMAGE",
            status_code=422,
            details={"edge_ratio": round(edge_ratio, 4), "threshold": threshold}
        )


class VerificationCancelledError(VerificationError):
    """The run was cancelled between stages."""
    def __init__(self, stage: str):
        super().__init__(
            f"Verification cancelled before: {stage}",
            code="CANCELLED",
            status_code=499,
            details={"stage": stage}
        )
