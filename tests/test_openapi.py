"""
Unit tests for the API description security parser.
"""

import pytest

from catalog_api.config import API_SPEC_PATH
from catalog_api.openapi import load_api_description, parse_security


def _doc(paths, security=None):
    doc = {"openapi": "3.0.3", "paths": paths}
    if security is not None:
        doc["security"] = security
    return doc


def _by_id(operations):
    return {op.operation_id: op for op in operations}


# ── Tests: parse_security ────────────────────────────────────────────

def test_operation_scopes_are_collected():
    doc = _doc({"/offers": {"get": {
        "operationId": "getOffers",
        "security": [{"poc_auth": ["read:offers", "read:offers:owner"]}, {"api_key": []}],
    }}})
    op = parse_security(doc)[0]
    assert op.operation_id == "getOffers"
    assert op.path == "/offers"
    assert op.method == "get"
    assert op.scopes == {"read:offers", "read:offers:owner"}
    assert op.schemes == ("poc_auth", "api_key")
    assert op.public is False


def test_global_security_is_the_fallback():
    doc = _doc(
        {"/products": {"get": {"operationId": "getProducts"}}},
        security=[{"poc_auth": ["read:products"]}],
    )
    op = parse_security(doc)[0]
    assert op.scopes == {"read:products"}
    assert op.schemes == ("poc_auth",)


def test_explicit_empty_security_is_public():
    doc = _doc(
        {"/public": {"get": {"operationId": "publicEndpoint", "security": []}}},
        security=[{"poc_auth": ["read:products"]}],
    )
    op = parse_security(doc)[0]
    assert op.scopes == frozenset()
    assert op.public is True


def test_missing_security_everywhere_is_not_an_error():
    op = parse_security(_doc({"/x": {"post": {"operationId": "x"}}}))[0]
    assert op.scopes == frozenset()
    assert op.schemes == ()


def test_duplicate_scopes_are_collapsed():
    doc = _doc({"/offers": {"get": {
        "operationId": "getOffers",
        "security": [{"poc_auth": ["read:offers", "read:offers"]}, {"poc_auth": ["read:offers"]}],
    }}})
    op = parse_security(doc)[0]
    assert op.scopes == {"read:offers"}
    assert op.schemes == ("poc_auth",)


def test_missing_operation_id_and_path_parameters():
    doc = _doc({"/offers/{id}": {
        "parameters": [{"name": "id", "in": "path"}],
        "DELETE": {"security": [{"poc_auth": ["delete:offers"]}]},
    }})
    ops = parse_security(doc)
    assert len(ops) == 1
    assert ops[0].operation_id == "DELETE_/offers/{id}"
    assert ops[0].method == "delete"


def test_parse_is_idempotent():
    doc = load_api_description(API_SPEC_PATH)
    first = {op.operation_id: op.scopes for op in parse_security(doc)}
    second = {op.operation_id: op.scopes for op in parse_security(doc)}
    assert first == second


# ── Tests: bundled api.yaml ──────────────────────────────────────────

def test_bundled_api_description():
    ops = _by_id(parse_security(load_api_description(API_SPEC_PATH)))
    assert ops["publicEndpoint"].public is True
    assert ops["getProducts"].scopes == {"read:products", "manage:products"}
    assert "read:offers:owner" in ops["getOfferById"].scopes
    assert ops["createOffer"].schemes == ("poc_auth",)


def test_load_api_description_rejects_non_mapping(tmp_path):
    p = tmp_path / "api.yaml"
    p.write_text("- just\n- a list\n")
    with pytest.raises(ValueError, match="not a mapping"):
        load_api_description(str(p))
