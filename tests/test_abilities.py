"""
Unit tests for ability building, subject classification and evaluation.
"""

import pytest

from catalog_api.abilities import (
    MissingPrincipalError,
    build_ability,
    detect_subject_type,
    has_rule_for,
    permits,
)
from catalog_api.models import ACTIONS, ALL, SUBJECTS, Equals, Offer, Principal, Product, ProductGroup, Rule
from catalog_api.scopes import initialize

API = {
    "paths": {
        "/offers": {"get": {
            "operationId": "getOffers",
            "security": [{"poc_auth": ["read:offers", "read:offers:owner", "manage:offers:owner"]}],
        }},
        "/products": {"post": {
            "operationId": "createProduct",
            "security": [{"poc_auth": ["manage:products"]}],
        }},
    },
}


@pytest.fixture(scope="module")
def catalog():
    return initialize(API)


def ability_for(catalog, user_id, *scopes):
    return build_ability(Principal(id=user_id, scopes=scopes), catalog)


# ── Tests: build_ability ─────────────────────────────────────────────

def test_build_requires_principal(catalog):
    with pytest.raises(MissingPrincipalError):
        build_ability(None, catalog)
    with pytest.raises(MissingPrincipalError):
        build_ability(Principal(id="", scopes=("read:offers",)), catalog)


def test_owner_condition_resolves_to_principal_id(catalog):
    ability = ability_for(catalog, "42", "read:offers:owner")
    assert ability.rules == (Rule("read", "Offer", Equals("merchantId", "42")),)


def test_rules_keep_scope_order(catalog):
    ability = ability_for(catalog, "1", "manage:products", "read:offers")
    assert [r.subject for r in ability.rules] == ["Product", "Offer"]


def test_empty_scopes_build_explicit_deny_all(catalog):
    ability = ability_for(catalog, "1")
    assert ability.rules == (Rule("manage", ALL, inverted=True),)


def test_strict_catalog_skips_malformed_scopes(capsys):
    strict = initialize(API, strict=True)
    ability = ability_for(strict, "1", "grant:offers")
    assert ability.rules == (Rule("manage", ALL, inverted=True),)
    assert "grant:offers" in capsys.readouterr().err


# ── Tests: detect_subject_type ───────────────────────────────────────

@pytest.mark.parametrize("record, subject", [
    ({"id": 1, "productId": 2, "merchantId": "9", "price": 10}, "Offer"),
    ({"id": 1, "productGroupId": 2, "name": "Phone"}, "Product"),
    ({"id": 1, "name": "Phones"}, "ProductGroup"),
    ({"id": 1, "merchantId": "9"}, ALL),
    ({}, ALL),
    (None, ALL),
])
def test_classify_field_bags(record, subject):
    assert detect_subject_type(record) == subject


def test_classify_ambiguous_bag_prefers_offer():
    # first matching predicate wins: merchantId+price beats productGroupId+name
    record = {"merchantId": "9", "price": 1, "productGroupId": 3, "name": "x"}
    assert detect_subject_type(record) == "Offer"


def test_classify_uses_record_tag_before_shape():
    assert detect_subject_type(Offer(id=1, productId=1, merchantId="9", price=1.0)) == "Offer"
    assert detect_subject_type(Product(id=1, productGroupId=None, name="x")) == "Product"
    assert detect_subject_type(ProductGroup(id=1, name="x")) == "ProductGroup"
    assert detect_subject_type({"subject_type": "Product", "name": "x"}) == "Product"


def test_classify_untagged_object_by_attributes():
    class Row:
        def __init__(self):
            self.merchantId = "9"
            self.price = 3

    assert detect_subject_type(Row()) == "Offer"


# ── Tests: permits ───────────────────────────────────────────────────

def test_empty_scopes_deny_everything(catalog):
    ability = ability_for(catalog, "1")
    for action in ACTIONS:
        for subject in SUBJECTS:
            assert permits(ability, action, subject) is False


def test_manage_products_scenario(catalog):
    ability = ability_for(catalog, "5", "manage:products")
    assert permits(ability, "create", "Product") is True
    assert permits(ability, "delete", "Product") is True
    assert permits(ability, "delete", "Offer") is False


def test_owner_scenario(catalog):
    ability = ability_for(catalog, "9", "read:offers:owner")
    assert permits(ability, "read", Offer(id=1, productId=1, merchantId="9", price=10)) is True
    assert permits(ability, "read", Offer(id=2, productId=1, merchantId="3", price=10)) is False


def test_owner_condition_on_field_bags(catalog):
    ability = ability_for(catalog, "42", "read:offers:owner")
    assert permits(ability, "read", {"merchantId": "42", "price": 1}) is True
    assert permits(ability, "read", {"merchantId": "7", "price": 1}) is False


def test_label_check_never_satisfies_conditioned_rule(catalog):
    ability = ability_for(catalog, "9", "read:offers:owner")
    assert permits(ability, "read", "Offer") is False
    assert has_rule_for(ability, "read", "Offer") is True


def test_manage_implies_every_action_on_owned_records(catalog):
    ability = ability_for(catalog, "9", "manage:offers:owner")
    own = Offer(id=1, productId=1, merchantId="9", price=1)
    for action in ("create", "read", "update", "delete", "manage"):
        assert permits(ability, action, own) is True
    assert permits(ability, "update", Offer(id=2, productId=1, merchantId="8", price=1)) is False


def test_specific_action_does_not_imply_manage(catalog):
    ability = ability_for(catalog, "1", "read:offers")
    assert permits(ability, "manage", "Offer") is False


def test_subject_all_matches_every_subject(catalog):
    ability = ability_for(catalog, "1", "read:all")
    assert permits(ability, "read", "Offer") is True
    assert permits(ability, "read", ProductGroup(id=1, name="x")) is True
    assert permits(ability, "update", "Offer") is False


def test_labels_accept_aliases(catalog):
    ability = ability_for(catalog, "1", "read:offers")
    assert permits(ability, "read", "offers") is True
    assert permits(ability, "read", "Offer") is True


def test_unknown_action_is_denied(catalog):
    ability = ability_for(catalog, "1", "manage:all")
    assert permits(ability, "publish", "Offer") is False


def test_unclassifiable_record_only_matches_all_rules(catalog):
    ability = ability_for(catalog, "1", "read:offers")
    assert permits(ability, "read", {"id": 3}) is False
    assert permits(ability_for(catalog, "1", "read:all"), "read", {"id": 3}) is True


def test_inverted_rule_is_not_a_veto():
    from catalog_api.models import Ability

    ability = Ability(principal_id="1", rules=(
        Rule("manage", ALL, inverted=True),
        Rule("read", "Offer"),
    ))
    assert permits(ability, "read", "Offer") is True
    assert has_rule_for(ability, "delete", "Offer") is False
