"""
API description loading and extraction of per-operation security scopes.
"""

from typing import Any, Dict, List

import yaml

from catalog_api.models import OperationInfo

HTTP_METHODS = {"get", "put", "post", "delete", "options", "head", "patch", "trace"}


def load_api_description(path: str) -> Dict[str, Any]:
    """Read an OpenAPI document (YAML or JSON) from *path*."""
    with open(path, "r", encoding="utf-8") as fh:
        doc = yaml.safe_load(fh)
    if not isinstance(doc, dict):
        raise ValueError(f"API description at {path} is not a mapping.")
    return doc


def parse_security(api_description: Dict[str, Any]) -> List[OperationInfo]:
    """
    Return one OperationInfo per operation with the scopes it requires.

    An operation without its own ``security`` block inherits the document-level
    default. An explicit empty list (``security: []``) marks the operation public.
    Scopes are collected from every scheme of every requirement group.
    """
    operations: List[OperationInfo] = []
    default_security = api_description.get("security")

    for path, methods in (api_description.get("paths") or {}).items():
        for method, operation in (methods or {}).items():
            if method.lower() not in HTTP_METHODS or not isinstance(operation, dict):
                continue

            operation_id = operation.get("operationId") or f"{method}_{path}"
            securities = operation.get("security")
            if securities is None:
                securities = default_security
            securities = securities or []

            scopes = set()
            schemes: List[str] = []
            for requirement in securities:
                for scheme, scheme_scopes in (requirement or {}).items():
                    if scheme not in schemes:
                        schemes.append(scheme)
                    scopes.update(scheme_scopes or [])

            operations.append(OperationInfo(
                operation_id=operation_id,
                path=path,
                method=method.lower(),
                scopes=frozenset(scopes),
                schemes=tuple(schemes),
                # {} is an anonymous alternative in OpenAPI
                public=not securities or any(not req for req in securities),
            ))

    return operations
