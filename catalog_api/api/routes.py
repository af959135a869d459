"""
Flask route handlers for the catalog REST API.

Every operation declared in the API description is bound by its operationId.
"""

import re
import sys
import traceback

from flask import request, jsonify
from sqlalchemy import text

from catalog_api import database as db
from catalog_api.abilities import has_rule_for, permits
from catalog_api.api.auth import auth_required
from catalog_api.models import Offer, Product, ProductGroup


class PermissionDenied(Exception):
    """The request's ability does not allow the attempted action."""


class NotAuthenticated(Exception):
    """No principal was established for a request that needs one."""


class InvalidPayload(ValueError):
    """Request body is missing or lacks required fields."""


def _request_ability():
    ability = getattr(request, "ability", None)
    if ability is None:
        raise NotAuthenticated()
    return ability


def check_ability(action, subject):
    """Raise PermissionDenied unless the current request may *action* on *subject*."""
    ability = _request_ability()
    if not permits(ability, action, subject):
        raise PermissionDenied(f"{action} on {subject!r}")


def check_may(action, subject):
    """Coarse check before fetching a record: some rule could allow *action*."""
    ability = _request_ability()
    if not has_rule_for(ability, action, subject):
        raise PermissionDenied(f"{action} on {subject}")


def _json_body(*required):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidPayload("Content-Type must be application/json")
    missing = [k for k in required if data.get(k) is None]
    if missing:
        raise InvalidPayload(f"Missing required fields: {', '.join(missing)}")
    return data


def _record_id(raw):
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _offer_from_payload(data, offer_id=None) -> Offer:
    try:
        price = float(data["price"])
    except (TypeError, ValueError):
        raise InvalidPayload("price must be a number")
    return Offer(id=offer_id, productId=data.get("productId"),
                 merchantId=str(data["merchantId"]), price=price)


def _not_found(entity):
    return jsonify({"error": f"{entity} not found"}), 404


def to_flask_rule(path: str) -> str:
    """/offers/{id} → /offers/<id>"""
    return re.sub(r"\{(\w+)\}", r"<\1>", path)


def build_handlers(engine, catalog):
    """Map operationId → view function."""

    # ── Public / product groups ──────────────────────────────────────

    def public_endpoint(**_):
        return jsonify({"message": "This is a public endpoint"})

    def get_product_groups():
        check_ability("read", "ProductGroup")
        return jsonify([g.to_dict() for g in db.list_product_groups(engine)])

    def create_product_group():
        data = _json_body("name")
        group = ProductGroup(id=None, name=data["name"])
        check_ability("create", group)
        return jsonify(db.create_product_group(engine, group).to_dict()), 201

    # ── Products ─────────────────────────────────────────────────────

    def get_products():
        check_ability("read", "Product")
        return jsonify([p.to_dict() for p in db.list_products(engine)])

    def get_product_by_id(id):
        check_may("read", "Product")
        product = db.get_product(engine, _record_id(id))
        if product is None:
            return _not_found("Product")
        check_ability("read", product)
        return jsonify(product.to_dict())

    def create_product():
        data = _json_body("name")
        product = Product(id=None, productGroupId=data.get("productGroupId"), name=data["name"])
        check_ability("create", product)
        return jsonify(db.create_product(engine, product).to_dict()), 201

    def update_product(id):
        check_may("update", "Product")
        existing = db.get_product(engine, _record_id(id))
        if existing is None:
            return _not_found("Product")
        check_ability("update", existing)

        data = _json_body("name")
        product = Product(id=existing.id, productGroupId=data.get("productGroupId"), name=data["name"])
        check_ability("update", product)
        if not db.update_product(engine, product):
            return _not_found("Product")
        return jsonify(product.to_dict())

    def delete_product(id):
        check_may("delete", "Product")
        existing = db.get_product(engine, _record_id(id))
        if existing is None:
            return _not_found("Product")
        check_ability("delete", existing)
        if not db.delete_product(engine, existing.id):
            return _not_found("Product")
        return "", 204

    # ── Offers ───────────────────────────────────────────────────────

    def get_offers():
        check_may("read", "Offer")
        offers = db.list_offers(engine)
        if not permits(request.ability, "read", "Offer"):
            # only ownership-scoped grants: keep the caller's own offers
            offers = [o for o in offers if permits(request.ability, "read", o)]
        return jsonify([o.to_dict() for o in offers])

    def get_offer_by_id(id):
        check_may("read", "Offer")
        offer = db.get_offer(engine, _record_id(id))
        if offer is None:
            return _not_found("Offer")
        check_ability("read", offer)
        return jsonify(offer.to_dict())

    def create_offer():
        data = _json_body("merchantId", "price")
        offer = _offer_from_payload(data)
        check_ability("create", offer)
        return jsonify(db.create_offer(engine, offer).to_dict()), 201

    def update_offer(id):
        check_may("update", "Offer")
        existing = db.get_offer(engine, _record_id(id))
        if existing is None:
            return _not_found("Offer")
        # stored record first, then the record as it would be after the update
        check_ability("update", existing)

        offer = _offer_from_payload(_json_body("merchantId", "price"), offer_id=existing.id)
        check_ability("update", offer)
        if not db.update_offer(engine, offer):
            return _not_found("Offer")
        return jsonify(offer.to_dict())

    def delete_offer(id):
        check_may("delete", "Offer")
        existing = db.get_offer(engine, _record_id(id))
        if existing is None:
            return _not_found("Offer")
        check_ability("delete", existing)
        if not db.delete_offer(engine, existing.id):
            return _not_found("Offer")
        return "", 204

    return {
        "publicEndpoint": public_endpoint,
        "getProductGroups": get_product_groups,
        "createProductGroup": create_product_group,
        "getProducts": get_products,
        "getProductById": get_product_by_id,
        "createProduct": create_product,
        "updateProduct": update_product,
        "deleteProduct": delete_product,
        "getOffers": get_offers,
        "getOfferById": get_offer_by_id,
        "createOffer": create_offer,
        "updateOffer": update_offer,
        "deleteOffer": delete_offer,
    }


def register_routes(app, engine, catalog):
    """Register all API routes on the Flask *app*."""

    # ── Health / info ────────────────────────────────────────────────

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({
            "service": "Catalog API",
            "version": "1.0.0",
            "status": "running",
            "operations": {
                op.operation_id: f"{op.method.upper()} {op.path}" for op in catalog.operations
            },
        })

    @app.route("/health", methods=["GET"])
    def health():
        checks = {"database": False, "scope_catalog": bool(catalog.operations)}
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            checks["database"] = True
        except Exception as e:
            print(f"[WARN] Health check database error: {e}", file=sys.stderr)

        all_healthy = all(checks.values())
        return jsonify({
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": checks,
            "scopes": len(catalog.rules),
        }), 200 if all_healthy else 503

    # ── Catalog operations ───────────────────────────────────────────

    handlers = build_handlers(engine, catalog)
    for op in catalog.operations:
        handler = handlers.get(op.operation_id)
        if handler is None:
            print(f"[WARN] No handler for operation '{op.operation_id}' ({op.method.upper()} {op.path})",
                  file=sys.stderr)
            continue
        app.add_url_rule(
            to_flask_rule(op.path),
            endpoint=op.operation_id,
            view_func=auth_required(op, catalog)(handler),
            methods=[op.method.upper()],
        )

    # ── Error handlers ───────────────────────────────────────────────

    @app.errorhandler(NotAuthenticated)
    def unauthenticated(e):
        return jsonify({"error": "Authentication required"}), 401

    @app.errorhandler(PermissionDenied)
    def forbidden(e):
        return jsonify({"error": "Forbidden"}), 403

    @app.errorhandler(InvalidPayload)
    def bad_request(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Endpoint not found", "message": str(e)}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed", "message": str(e)}), 405

    @app.errorhandler(500)
    def internal_error(e):
        print(f"[ERROR] Internal server error: {e}", file=sys.stderr)
        traceback.print_exc()
        return jsonify({"error": "Internal server error"}), 500
