"""
Centralised configuration constants and environment helpers.
"""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# ── API description ──────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
API_SPEC_PATH = os.getenv("API_SPEC_PATH", str(PROJECT_ROOT / "api.yaml"))

# Security scheme names as declared in components.securitySchemes
OAUTH2_SCHEME = "poc_auth"
API_KEY_SCHEME = "api_key"

# ── Ownership conditions ─────────────────────────────────────────────
# Column compared against the principal id for "<action>:<subject>:owner" scopes.
OWNERSHIP_FIELDS = {
    "Offer": "merchantId",
}
DEFAULT_OWNERSHIP_FIELD = "merchantId"

# Reject scopes with an unknown action token instead of falling back to "read".
STRICT_SCOPES = os.getenv("STRICT_SCOPES", "").lower() in {"1", "true", "yes"}

# ── Auth ─────────────────────────────────────────────────────────────
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
JWT_ALGORITHM = "HS256"
TOKEN_EXPIRY_HOURS = 24

API_KEY = os.getenv("CATALOG_API_KEY", "valid_api_key")
API_KEY_HEADERS = ("X-API-Key", "api_key")
API_KEY_PRINCIPAL_ID = "api-key"


def get_env(name: str) -> str:
    """Return an environment variable or exit with an error message."""
    value = os.getenv(name)
    if not value:
        print(f"ERROR: env var {name} is not set", file=sys.stderr)
        sys.exit(1)
    return value
