"""
Authentication for the Flask API: JWT bearer tokens and a static API key.

Successful authentication attaches ``request.principal`` and a freshly built
``request.ability`` before the handler runs.
"""

from datetime import datetime, timedelta
from functools import wraps
from typing import Any, Dict, Iterable, Optional

import jwt
from flask import request, jsonify

from catalog_api.abilities import build_ability
from catalog_api.config import (
    API_KEY, API_KEY_HEADERS, API_KEY_PRINCIPAL_ID, API_KEY_SCHEME,
    JWT_ALGORITHM, OAUTH2_SCHEME, SECRET_KEY, TOKEN_EXPIRY_HOURS,
)
from catalog_api.models import OperationInfo, Principal
from catalog_api.scopes import ScopeCatalog


def generate_token(user_id: str, scopes: Iterable[str], role: Optional[str] = None) -> str:
    """Generate a JWT token granting *scopes* to *user_id*."""
    now = datetime.utcnow()
    payload = {
        "user": {"id": str(user_id), "role": role},
        "scopes": list(scopes),
        "iat": now,
        "exp": now + timedelta(hours=TOKEN_EXPIRY_HOURS),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify a JWT token and return the decoded payload (or None)."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def principal_from_bearer(auth_header: Optional[str], required_scopes: Iterable[str]) -> Optional[Principal]:
    """Principal for an ``Authorization: Bearer`` header holding any of *required_scopes*."""
    if not auth_header or not auth_header.startswith("Bearer "):
        return None

    payload = verify_token(auth_header[len("Bearer "):].strip())
    if not payload:
        return None

    user = payload.get("user") or {}
    scopes = payload.get("scopes")
    if not user.get("id") or not isinstance(scopes, list):
        return None

    required = set(required_scopes)
    if required and not required.intersection(scopes):
        return None

    return Principal(id=str(user["id"]), scopes=tuple(scopes), role=user.get("role"))


def principal_from_api_key(headers, catalog: ScopeCatalog) -> Optional[Principal]:
    """Principal for the static API key; it is granted every ``read:`` scope."""
    api_key = next((headers.get(h) for h in API_KEY_HEADERS if headers.get(h)), None)
    if not api_key or api_key != API_KEY:
        return None
    return Principal(
        id=API_KEY_PRINCIPAL_ID,
        scopes=tuple(catalog.scopes_with_prefix("read:")),
        role="api_key_user",
    )


def authenticate(operation: OperationInfo, catalog: ScopeCatalog) -> Optional[Principal]:
    """Try the operation's security schemes in declaration order."""
    for scheme in operation.schemes:
        principal = None
        if scheme == OAUTH2_SCHEME:
            principal = principal_from_bearer(request.headers.get("Authorization"), operation.scopes)
        elif scheme == API_KEY_SCHEME:
            principal = principal_from_api_key(request.headers, catalog)
        if principal is not None:
            return principal
    return None


def auth_required(operation: OperationInfo, catalog: ScopeCatalog):
    """Decorator that enforces *operation*'s security requirements."""
    def decorator(f):
        if operation.public and not operation.schemes:
            return f

        @wraps(f)
        def decorated(*args, **kwargs):
            principal = authenticate(operation, catalog)
            if principal is None:
                if operation.public:
                    # optional auth: continue anonymously, without an ability
                    return f(*args, **kwargs)
                return jsonify({"error": "Authentication required"}), 401

            request.principal = principal
            request.ability = build_ability(principal, catalog)
            return f(*args, **kwargs)

        return decorated

    return decorator
