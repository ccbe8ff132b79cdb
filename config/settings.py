"""
Nutrilabel project settings.

Every threshold, weight and default used by the extraction pipeline lives here.
Timeouts, the log level and Google credentials can be overridden from the environment.
"""

import os
from pathlib import Path

# =============================================================================
# PROJECT PATHS
# =============================================================================
PROJECT_ROOT = Path(__file__).parent.parent
RULES_DIR = PROJECT_ROOT / "nutrilabel" / "parsing" / "rules"
NUTRIENT_RULES_FILE = RULES_DIR / "nutrients.yaml"

# =============================================================================
# LOGGING
# =============================================================================
LOG_LEVEL = os.getenv("NUTRILABEL_LOG_LEVEL", "INFO")

# =============================================================================
# GOOGLE CLOUD VISION API
# =============================================================================
# Path to the service account JSON key
GOOGLE_APPLICATION_CREDENTIALS = os.getenv(
    "GOOGLE_APPLICATION_CREDENTIALS",
    str(PROJECT_ROOT / "config" / "google_credentials.json")
)

# Language hints passed to the recognition engine
OCR_LANGUAGE_HINTS = ["en"]

# Vision only scores words in document mode; plain text detection reports 0.0
UNSCORED_LINE_CONFIDENCE = 0.85

# =============================================================================
# PIPELINE DEFAULTS
# =============================================================================
DEFAULT_PIPELINE_TIMEOUT = float(os.getenv("NUTRILABEL_PIPELINE_TIMEOUT", "30.0"))
DEFAULT_RECOGNITION_TIMEOUT = float(os.getenv("NUTRILABEL_RECOGNITION_TIMEOUT", "20.0"))

DEFAULT_MIN_QUALITY_SCORE = 0.6
DEFAULT_MIN_TEXT_CONFIDENCE = 0.5
DEFAULT_MIN_MATCH_CONFIDENCE = 0.6
DEFAULT_MAX_UNIT_DISTANCE = 3

# Words that help the engine on nutrition panels
NUTRITION_VOCABULARY = frozenset({
    "calories", "protein", "carbohydrate", "carbohydrates", "sodium",
    "cholesterol", "saturated", "trans", "fiber", "sugars", "serving",
    "container", "vitamin", "calcium", "iron", "potassium",
})

# Stage share of total run time, used for progress reporting
STAGE_PROGRESS_WEIGHTS = {
    "assessing_quality": 0.10,
    "recognizing_text": 0.60,
    "parsing_text": 0.20,
    "generating_recommendations": 0.10,
}

# =============================================================================
# IMAGE QUALITY
# =============================================================================
IDEAL_PIXELS = 800 * 600      # full resolution score
MIN_PIXELS = 400 * 300        # resolution check passes from here

BRIGHTNESS_MIN = 80.0         # target luma band
BRIGHTNESS_MAX = 200.0
BRIGHTNESS_PASS_SCORE = 0.5

CONTRAST_TARGET = 50.0        # luma std for full score
CONTRAST_MIN = 20.0

SHARPNESS_TARGET = 300.0      # Laplacian variance for full score
SHARPNESS_MIN = 90.0

QUALITY_WEIGHTS = {
    "resolution": 0.30,
    "brightness": 0.25,
    "contrast": 0.25,
    "sharpness": 0.20,
}

QUALITY_BUCKETS = [
    ("excellent", 0.90),
    ("good", 0.75),
    ("acceptable", 0.55),
    ("poor", 0.30),
]

OCR_SUCCESS_FLOOR = 0.05
OCR_SUCCESS_SPAN = 0.90

# Score reported when quality analysis is switched off
BASIC_ASSESSMENT_SCORE = 0.8

# CLAHE and unsharp mask used before recognition
CLAHE_CLIP_LIMIT = 2.0
CLAHE_TILE_GRID = (8, 8)
SHARPEN_AMOUNT = 0.5

# =============================================================================
# RECOGNITION
# =============================================================================
# Lines whose vertical centres differ by less than this belong to one row
LINE_GROUPING_TOLERANCE = 0.05

# =============================================================================
# PARSING
# =============================================================================
FUZZY_MIN_ALIAS_LENGTH = 5
FUZZY_CHARS_PER_EDIT = 4
FUZZY_MATCH_CEILING = 0.95

AMBIGUITY_STEP = 0.25
UNITLESS_FACTOR = 0.8
NON_ADJACENT_FACTOR = 0.85
ESTIMATED_PENALTY = 0.7
IU_CONVERSION_PENALTY = 0.9
SERVINGS_ONLY_PENALTY = 0.5

KJ_PER_KCAL = 4.184

# IU to canonical unit
IU_FACTORS = {
    "vitamin_a": 0.3,      # mcg RAE
    "vitamin_d": 0.025,    # mcg
    "vitamin_e": 0.67,     # mg
}

# =============================================================================
# CONFIDENCE / SCORING
# =============================================================================
MIN_EXPECTED_FIELDS = 4
USABILITY_THRESHOLD = 0.5

SUCCESS_RATING_THRESHOLDS = [
    ("excellent", 0.8),
    ("good", 0.6),
    ("fair", 0.4),
]

FORMAT_HEADER_SCORE = 0.9
FORMAT_DEFAULT_SCORE = 0.5

# =============================================================================
# RECOMMENDATIONS
# =============================================================================
LOW_FIELD_CONFIDENCE = 0.6
LOW_OCR_CONFIDENCE = 0.7
MANUAL_ENTRY_THRESHOLD = 0.3
POOR_IMAGE_RATINGS = ("poor", "unusable")


# =============================================================================
# CONFIGURATION CHECK
# =============================================================================
def validate_config():
    """Checks that the Google Vision engine can be created."""
    errors = []

    if not GOOGLE_APPLICATION_CREDENTIALS:
        errors.append(
            "GOOGLE_APPLICATION_CREDENTIALS is not set!\n"
            "Point it at the service account JSON key in config/settings.py or the environment."
        )
    elif not Path(GOOGLE_APPLICATION_CREDENTIALS).exists():
        errors.append(
            f"Credentials file not found: {GOOGLE_APPLICATION_CREDENTIALS}"
        )

    if DEFAULT_RECOGNITION_TIMEOUT > DEFAULT_PIPELINE_TIMEOUT:
        errors.append(
            f"Recognition timeout {DEFAULT_RECOGNITION_TIMEOUT}s exceeds "
            f"pipeline timeout {DEFAULT_PIPELINE_TIMEOUT}s"
        )

    if errors:
        raise ValueError("\n".join(errors))

    return True
