#!/usr/bin/env python3
"""
Generate development bearer tokens for the Catalog API.

Usage: python scripts/generate_token.py <user id> <scope> [<scope> ...]
       python scripts/generate_token.py --secret
"""

import secrets
import sys

from catalog_api.api.auth import generate_token


def generate_secret_key() -> str:
    return secrets.token_hex(32)


if __name__ == "__main__":
    args = sys.argv[1:]

    if args == ["--secret"]:
        print(f"JWT_SECRET_KEY={generate_secret_key()}")
        print("Copy the line above to your .env file")
        sys.exit(0)

    if len(args) < 2:
        print("Usage: python scripts/generate_token.py <user id> <scope> [<scope> ...]", file=sys.stderr)
        sys.exit(1)

    user_id, scopes = args[0], args[1:]
    token = generate_token(user_id, scopes)

    print("=" * 70)
    print(f"Bearer token for user {user_id} with scopes {', '.join(scopes)}:")
    print("=" * 70)
    print(f"Bearer {token}")
