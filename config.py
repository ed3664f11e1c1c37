"""
Central configuration — reads from .env file.

Every value is read once at import time. Nothing here is required: the
service starts without any API key and reports the configuration error
on the first /analyze request instead.
"""
import os
from dotenv import load_dotenv

load_dotenv()

# ── Hosted model providers ────────────────────────────────────────────────────
# Google is the primary vendor. GOOGLE_API_KEY is accepted as a fallback name.
GOOGLE_API_KEY: str | None = (
    os.getenv("GOOGLE_GENERATIVE_AI_API_KEY") or os.getenv("GOOGLE_API_KEY") or None
)
# Optional extra vendors, only used if listed in MODEL_CANDIDATES.
OPENAI_API_KEY: str | None    = os.getenv("OPENAI_API_KEY") or None
ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY") or None

# Ordered candidate list, tried first to last until one starts streaming.
# Entries are "vendor/model"; a bare model name means "google/<model>".
#   e.g. MODEL_CANDIDATES=google/gemini-2.5-flash,openai/gpt-4o-mini
DEFAULT_MODEL_CANDIDATES = (
    "google/gemini-2.5-flash",
    "google/gemini-flash-latest",
    "google/gemini-pro-latest",
)
MODEL_CANDIDATES: list[str] = [
    x.strip()
    for x in os.getenv("MODEL_CANDIDATES", ",".join(DEFAULT_MODEL_CANDIDATES)).split(",")
    if x.strip()
]

MAX_OUTPUT_TOKENS: int = int(os.getenv("MAX_OUTPUT_TOKENS", "500"))
TEMPERATURE: float     = float(os.getenv("TEMPERATURE", "0.7"))

# ── Web server ────────────────────────────────────────────────────────────────
HOST: str = os.getenv("HOST", "0.0.0.0")
PORT: int = int(os.getenv("PORT", "8080"))

# Largest accepted request body (both images together, base64 included)
MAX_UPLOAD_MB: int = int(os.getenv("MAX_UPLOAD_MB", "20"))

# ── Storage ───────────────────────────────────────────────────────────────────
# The SQLite file and the log file both live here (mount ./data:/app/data).
DATA_DIR: str = os.getenv("DATA_DIR", "data")

# Upper bound for the background scan write so it can never hang the process
SCAN_WRITE_TIMEOUT: float = float(os.getenv("SCAN_WRITE_TIMEOUT", "10"))

# Keep the uploaded image as a data URI on the scan record.
# Off by default: records carry a placeholder token instead.
STORE_SCAN_IMAGES: bool = os.getenv("STORE_SCAN_IMAGES", "false").lower() == "true"
IMAGE_PLACEHOLDER: str  = "placeholder"

# ── Authentication ────────────────────────────────────────────────────────────
# Session tokens are JWTs issued by the hosted auth provider.
# AUTH_JWT_KEY is an HS* shared secret or an RS*/ES* PEM public key.
# Leave it blank to run without accounts (every request is anonymous).
AUTH_JWT_KEY: str | None = (os.getenv("AUTH_JWT_KEY", "").replace("\\n", "\n").strip() or None)
AUTH_JWT_ALGORITHMS: list[str] = [
    x.strip() for x in os.getenv("AUTH_JWT_ALGORITHMS", "RS256").split(",") if x.strip()
]
AUTH_JWT_ISSUER: str | None   = os.getenv("AUTH_JWT_ISSUER", "").strip() or None
AUTH_JWT_AUDIENCE: str | None = os.getenv("AUTH_JWT_AUDIENCE", "").strip() or None
AUTH_SESSION_COOKIE: str      = os.getenv("AUTH_SESSION_COOKIE", "__session")
