from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    # OCR Engine Configuration
    OCR_LANGUAGE: str = "eng"
    # Path to the tesseract binary; None means look it up on PATH
    TESSERACT_CMD: Optional[str] = None

    # Image Quality Thresholds
    QUALITY_ANALYSIS_SIZE: int = 400
    EDGE_DIFF_THRESHOLD: float = 30
    MIN_EDGE_RATIO: float = 0.1

    # Template Matching
    TEMPLATE_MAX_SIDE: int = 800
    TEMPLATE_MATCH_THRESHOLD: float = 0.3

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON_FORMAT: bool = True

    class Config:
        env_file = ".env"

settings = Settings()

# Known document field labels, in scan order.
# Each label maps to the lowercase phrases that identify it in OCR text;
# the first phrase found on a line wins for that label.
LABEL_PATTERNS = (
    ("Name", ("name", "first name", "last name", "full name")),
    ("Date of Birth", ("date of birth", "dob", "birth date", "born")),
    ("ID Number", ("id number", "license number", "document number", "dl")),
    ("Address", ("address", "street", "residence")),
    ("City", ("city",)),
    ("State", ("state", "province")),
    ("ZIP Code", ("zip", "postal code", "zip code")),
    ("Sex", ("sex", "gender")),
    ("Height", ("height", "ht")),
    ("Weight", ("weight", "wt")),
    ("Issue Date", ("issue date", "issued", "iss")),
    ("Expiration", ("expiration date", "expires", "exp")),
    ("Class", ("class", "license class")),
)
