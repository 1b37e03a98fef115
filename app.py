from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, File, UploadFile, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docverify import VerificationService, __version__
from docverify.exceptions import VerificationError
from docverify.logging_config import configure_logging
from config import settings

configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON_FORMAT)
logger = logging.getLogger(__name__)

service = VerificationService()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the OCR and correlation engines once; release them on shutdown."""
    logger.info("Starting document verification service...")
    try:
        await service.initialize()
    except VerificationError as e:
        # Keep serving: /health reports not ready and /verify answers 503
        logger.error(f"[{e.code}] {e.message}")

    yield

    logger.info("Shutting down document verification service...")
    await service.cleanup()


app = FastAPI(
    title="Document Verification Service",
    description="Verifies ID document images against a reference layout template and extracts labelled fields",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(VerificationError)
async def verification_error_handler(request: Request, exc: VerificationError):
    """A run that failed to execute, as opposed to a negative verdict."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ------------------------
# Verification API
# ------------------------
@app.post("/verify")
async def verify_document(
    id_image: UploadFile = File(...),
    reference_image: UploadFile = File(...)
):
    """
    Verify an ID document image against a reference template.
    Uploads are held in memory only and never persisted.
    Returns 200 with the verdict for every completed run, valid or not.
    """
    id_bytes = await id_image.read()
    reference_bytes = await reference_image.read()

    result = await service.verify(id_bytes, reference_bytes)
    return result.to_dict()


# ------------------------
# Health Check
# ------------------------
@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": "document-verification",
        "engines_ready": service.is_ready,
        "state": service.state.value
    }


# ------------------------
# Local Dev Entry
# ------------------------
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
