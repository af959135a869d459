"""
Scope string → permission rule compilation and the process-wide scope catalog.

A scope string has the form ``action:subject[:owner]``. The catalog is built
once at startup with :func:`initialize` and is read-only afterwards.
"""

import sys
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from catalog_api.config import DEFAULT_OWNERSHIP_FIELD, OWNERSHIP_FIELDS
from catalog_api.models import ALL, Equals, OperationInfo, Rule, USER_ID_PLACEHOLDER
from catalog_api.openapi import parse_security

ACTION_MAP = {
    "read": "read",
    "write": "create",
    "update": "update",
    "delete": "delete",
    "manage": "manage",
}

SUBJECT_ALIASES = {
    "offers": "Offer",
    "Offer": "Offer",
    "products": "Product",
    "Product": "Product",
    "product-groups": "ProductGroup",
    "ProductGroup": "ProductGroup",
    "all": ALL,
}

OWNER_MARKER = "owner"


class MalformedScopeError(ValueError):
    """Scope string with an unknown action token (strict mode only)."""


def scope_action(scope: str) -> Optional[str]:
    """Ability action for the scope's action token, or None if the token is unknown."""
    return ACTION_MAP.get(scope.split(":")[0])


def normalize_subject(subject: Optional[str]) -> str:
    """Map a plural/PascalCase subject spelling onto its canonical name."""
    return SUBJECT_ALIASES.get(subject or "", ALL)


def compile_scope(
    scope: str,
    ownership_fields: Optional[Mapping[str, str]] = None,
    strict: bool = False,
) -> Rule:
    """
    Translate one scope string into a Rule.

    Unknown action tokens fall back to ``read`` unless *strict* is set, in which
    case MalformedScopeError is raised. Unknown or missing subjects become ``all``.
    """
    if ownership_fields is None:
        ownership_fields = OWNERSHIP_FIELDS

    parts = scope.split(":")
    action_part = parts[0]
    subject_part = parts[1] if len(parts) > 1 else None
    ownership_part = parts[2] if len(parts) > 2 else None

    action = scope_action(scope)
    if action is None:
        if strict:
            raise MalformedScopeError(f"Unknown action '{action_part}' in scope '{scope}'.")
        action = "read"

    subject = normalize_subject(subject_part)

    condition = None
    if ownership_part == OWNER_MARKER:
        condition = Equals(
            field=ownership_fields.get(subject, DEFAULT_OWNERSHIP_FIELD),
            value=USER_ID_PLACEHOLDER,
        )

    return Rule(action=action, subject=subject, condition=condition)


@dataclass(frozen=True)
class ScopeCatalog:
    """Parsed operations plus the scope → rule mapping derived from them."""
    operations: Tuple[OperationInfo, ...]
    rules: Mapping[str, Rule]
    ownership_fields: Mapping[str, str]
    strict: bool = False

    def rule_for(self, scope: str) -> Rule:
        """Precompiled rule for *scope*, compiling scopes the catalog never declared."""
        rule = self.rules.get(scope)
        if rule is None:
            rule = compile_scope(scope, self.ownership_fields, self.strict)
        return rule

    def operation(self, operation_id: str) -> Optional[OperationInfo]:
        for op in self.operations:
            if op.operation_id == operation_id:
                return op
        return None

    def scopes_with_prefix(self, prefix: str) -> List[str]:
        return sorted(s for s in self.rules if s.startswith(prefix))


def initialize(
    api_description: Dict[str, Any],
    ownership_fields: Optional[Mapping[str, str]] = None,
    strict: bool = False,
) -> ScopeCatalog:
    """Parse *api_description* and compile every declared scope once."""
    fields = dict(OWNERSHIP_FIELDS if ownership_fields is None else ownership_fields)
    operations = parse_security(api_description)

    rules: Dict[str, Rule] = {}
    for op in operations:
        for scope in sorted(op.scopes):
            if scope in rules:
                continue
            if scope_action(scope) is None:
                print(f"[WARN] Scope '{scope}' ({op.operation_id}) has an unknown action token.",
                      file=sys.stderr)
            try:
                rules[scope] = compile_scope(scope, fields, strict)
            except MalformedScopeError:
                continue

    print(f"[init] Scope catalog: {len(operations)} operations, {len(rules)} scopes.")
    return ScopeCatalog(
        operations=tuple(operations),
        rules=MappingProxyType(rules),
        ownership_fields=MappingProxyType(fields),
        strict=strict,
    )
