"""
Per-request abilities – building them from granted scopes and evaluating them.
"""

import sys
from typing import Any, List, Mapping

from catalog_api.models import (
    ACTIONS, ALL, MANAGE, SUBJECTS, USER_ID_PLACEHOLDER,
    Ability, Equals, Principal, Rule,
)
from catalog_api.scopes import MalformedScopeError, ScopeCatalog, normalize_subject

_MISSING = object()


class MissingPrincipalError(RuntimeError):
    """An ability was requested without an authenticated principal."""


# ── Builder ──────────────────────────────────────────────────────────

def build_ability(principal: Principal, catalog: ScopeCatalog) -> Ability:
    """Resolve the principal's granted scopes into an Ability."""
    if principal is None or not principal.id:
        raise MissingPrincipalError("Cannot build an ability without an authenticated principal.")

    rules: List[Rule] = []
    for scope in principal.scopes:
        try:
            rule = catalog.rule_for(scope)
        except MalformedScopeError as e:
            print(f"[WARN] Ignoring scope for principal {principal.id}: {e}", file=sys.stderr)
            continue

        cond = rule.condition
        if cond is not None and cond.value == USER_ID_PLACEHOLDER:
            rule = Rule(rule.action, rule.subject, Equals(cond.field, principal.id))
        rules.append(rule)

    if not rules:
        rules.append(Rule(action=MANAGE, subject=ALL, inverted=True))

    return Ability(principal_id=principal.id, rules=tuple(rules))


# ── Classifier ───────────────────────────────────────────────────────

def _fields(value: Any) -> Mapping[str, Any]:
    if isinstance(value, Mapping):
        return value
    return getattr(value, "__dict__", {})


def detect_subject_type(value: Any) -> str:
    """
    Infer the subject type of a record.

    Records carrying a ``subject_type`` tag are trusted. Untagged field bags are
    classified by shape, first match wins: merchantId+price → Offer,
    productGroupId+name → Product, name without productGroupId → ProductGroup.
    """
    if value is None:
        return ALL

    fields = _fields(value)
    tag = getattr(value, "subject_type", None) or fields.get("subject_type")
    if tag in SUBJECTS:
        return tag

    if "merchantId" in fields and "price" in fields:
        return "Offer"
    if "productGroupId" in fields and "name" in fields:
        return "Product"
    if "name" in fields and "productGroupId" not in fields:
        return "ProductGroup"
    return ALL


# ── Evaluator ────────────────────────────────────────────────────────

def _field_value(instance: Any, name: str) -> Any:
    if isinstance(instance, Mapping):
        return instance.get(name, _MISSING)
    return getattr(instance, name, _MISSING)


def _matches(rule: Rule, action: str, subject: str) -> bool:
    return (
        not rule.inverted
        and rule.action in (action, MANAGE)
        and rule.subject in (subject, ALL)
    )


def permits(ability: Ability, action: str, subject: Any) -> bool:
    """
    True if some rule of *ability* allows *action* on *subject*.

    *subject* is either a label ("Offer", "offers", "all", ...) or a record.
    Conditioned rules only ever match records, never bare labels. "cannot"
    rules grant nothing and veto nothing.
    """
    if action not in ACTIONS:
        return False

    if isinstance(subject, str):
        label, instance = normalize_subject(subject), None
    else:
        label, instance = detect_subject_type(subject), subject

    for rule in ability.rules:
        if not _matches(rule, action, label):
            continue
        if rule.condition is None:
            return True
        if instance is not None and _field_value(instance, rule.condition.field) == rule.condition.value:
            return True
    return False


def has_rule_for(ability: Ability, action: str, subject: str) -> bool:
    """True if any rule, conditioned or not, could allow *action* on *subject*."""
    label = normalize_subject(subject)
    return any(_matches(rule, action, label) for rule in ability.rules)
