"""
Flask application factory and server entry-point.
"""

import os
import sys
import traceback

from flask import Flask
from flask_cors import CORS

from catalog_api.config import API_SPEC_PATH, STRICT_SCOPES, TOKEN_EXPIRY_HOURS
from catalog_api.database import init_engine
from catalog_api.openapi import load_api_description
from catalog_api.scopes import initialize
from catalog_api.api.routes import register_routes


def create_app(engine=None, api_description=None):
    """Build and return a fully configured Flask application."""
    app = Flask(__name__)
    CORS(app)

    # ── Initialise shared resources ──────────────────────────────────
    try:
        if engine is None:
            print("[init] Initializing database connection...")
            engine = init_engine()

        if api_description is None:
            print(f"[init] Loading API description from {API_SPEC_PATH}...")
            api_description = load_api_description(API_SPEC_PATH)

        print("[init] Compiling scope catalog...")
        catalog = initialize(api_description, strict=STRICT_SCOPES)

        print("[init] ✓ API server ready")
    except Exception as e:
        print(f"[FATAL] Failed to initialize: {e}", file=sys.stderr)
        traceback.print_exc()
        sys.exit(1)

    app.config["SCOPE_CATALOG"] = catalog

    # ── Register routes ──────────────────────────────────────────────
    register_routes(app, engine, catalog)

    return app


def main():
    """Run the development server."""
    print("=" * 60)
    print("Catalog API – REST API Server")
    print("=" * 60)

    app = create_app()
    catalog = app.config["SCOPE_CATALOG"]

    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "3000"))
    debug = os.getenv("FLASK_ENV") == "development"

    print(f"\n[server] Starting Flask API on {host}:{port}")
    print(f"[server] Debug mode: {debug}")
    print(f"[server] Token expiry: {TOKEN_EXPIRY_HOURS} hours")
    print(f"[server] Strict scopes: {STRICT_SCOPES}")
    print("\nAPI Endpoints:")
    for op in catalog.operations:
        print(f"  - {op.method.upper():<6} http://{host}:{port}{op.path}  ({op.operation_id})")
    print("\n" + "=" * 60)

    app.run(host=host, port=port, debug=debug, threaded=True)


if __name__ == "__main__":
    main()
