import os
from pathlib import Path
from dotenv import load_dotenv

# --- Base Directory ---
BASE_DIR = Path(__file__).resolve().parent.parent

# --- Load Environment Variables ---
load_dotenv(BASE_DIR / ".env")

# --- Store Configuration ---
# "memory" keeps everything in-process; "firestore" talks to the Firestore REST API.
STORE_BACKEND = os.getenv("STORE_BACKEND", "memory")
COLLECTION_NAME = os.getenv("COLLECTION_NAME", "equipment")

# --- Firestore ---
FIRESTORE_PROJECT_ID = os.getenv("FIRESTORE_PROJECT_ID")
FIRESTORE_DATABASE = os.getenv("FIRESTORE_DATABASE", "(default)")
FIRESTORE_API_KEY = os.getenv("FIRESTORE_API_KEY")
FIRESTORE_BASE_URL = os.getenv(
    "FIRESTORE_BASE_URL", "https://firestore.googleapis.com/v1"
)

# The REST API has no push channel, so the live subscription polls.
POLL_INTERVAL_SECONDS = float(os.getenv("POLL_INTERVAL_SECONDS", "2.0"))
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "15"))

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = BASE_DIR / os.getenv("LOG_DIR", "logs")
