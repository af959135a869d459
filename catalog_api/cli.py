"""
Interactive CLI for exploring abilities.
Log in with a bearer token (or a user id plus scopes) and ask permission questions.
"""

from catalog_api.abilities import build_ability, detect_subject_type, permits
from catalog_api.api.auth import verify_token
from catalog_api.config import API_SPEC_PATH, STRICT_SCOPES
from catalog_api.models import Principal
from catalog_api.openapi import load_api_description
from catalog_api.scopes import initialize

HELP = """Commands:
  can <action> <subject>                label check, e.g. can read offers
  can <action> field=value [...]        record check, e.g. can update merchantId=9 price=10
  rules                                 show the resolved rules
  scopes                                show every scope declared by the API
  quit"""


def parse_login(line: str):
    """Return a Principal from a bearer token or '<user id> <scope> [<scope> ...]'."""
    parts = line.split()
    if len(parts) == 1:
        token = parts[0]
        payload = verify_token(token[len("Bearer "):] if token.startswith("Bearer ") else token)
        if not payload or not (payload.get("user") or {}).get("id"):
            raise ValueError("Invalid or expired token.")
        return Principal(id=str(payload["user"]["id"]), scopes=tuple(payload.get("scopes") or []),
                         role=payload["user"].get("role"))
    return Principal(id=parts[0], scopes=tuple(parts[1:]))


def parse_subject(args):
    """A single bare word is a subject label, field=value pairs form a record."""
    if len(args) == 1 and "=" not in args[0]:
        return args[0]
    record = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        if not sep:
            raise ValueError(f"Expected field=value, got '{arg}'.")
        record[key] = value
    return record


def main():
    print("=== Catalog API: ability explorer ===\n")

    catalog = initialize(load_api_description(API_SPEC_PATH), strict=STRICT_SCOPES)

    # ── Login ────────────────────────────────────────────────────────
    try:
        line = input("Enter bearer token, or '<user id> <scopes...>' (or 'quit'): ").strip()
    except (EOFError, KeyboardInterrupt):
        print("\nExiting.")
        return

    if not line or line.lower() in {"quit", "exit"}:
        print("Goodbye.")
        return

    try:
        principal = parse_login(line)
        ability = build_ability(principal, catalog)
    except Exception as e:
        print("\n[ERROR] Login failed.")
        print("Details:", e)
        return

    print(f"\n[auth] Principal: {principal.id} ({len(principal.scopes)} scopes)")
    print(HELP)

    # ── REPL ─────────────────────────────────────────────────────────
    while True:
        try:
            q = input("\n> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nExiting.")
            break

        if not q:
            continue
        if q.lower() in {"quit", "exit"}:
            print("Goodbye.")
            break

        words = q.split()
        if words[0] == "rules":
            for rule in ability.rules:
                print(" ", rule)
        elif words[0] == "scopes":
            for scope, rule in sorted(catalog.rules.items()):
                print(f"  {scope:<28} {rule}")
        elif words[0] == "can" and len(words) >= 3:
            try:
                subject = parse_subject(words[2:])
            except ValueError as e:
                print("[ERROR]", e)
                continue
            if isinstance(subject, dict):
                print(f"[classified as {detect_subject_type(subject)}]")
            print("ALLOWED" if permits(ability, words[1], subject) else "DENIED")
        else:
            print(HELP)


if __name__ == "__main__":
    main()
