"""Settings for the recitation judging engine."""
import os

from dotenv import load_dotenv

load_dotenv()

# Persisted file next to this package unless overridden
DB_PATH = os.getenv(
    "RECITATION_DB_PATH",
    os.path.join(os.path.dirname(__file__), "recitation.sqlite"),
)

# Set to "1" for competition day: drops debug output
PRODUCTION = os.getenv("RECITATION_PRODUCTION", "0") == "1"
LOG_FILE = os.getenv("RECITATION_LOG_FILE") or None

# -----------------------
# Stage scoring rules
# -----------------------
MIN_QUESTIONS = 2
DOUBLE_QUESTION_PARTS_LIMIT = 10  # up to this many parts, two questions per part
TAJWEED_MIN_AGE = 12  # tajweed is scored only above this age

MEMORIZATION_MARKS = 10
PERFORMANCE_MARKS = 1
TAJWEED_MARKS = 2
