"""
Domain dataclasses used across the application.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, ClassVar, FrozenSet, Mapping, Optional, Tuple

# ── Actions / subjects ───────────────────────────────────────────────
ACTIONS = ("create", "read", "update", "delete", "manage")
MANAGE = "manage"

ALL = "all"
SUBJECTS = ("ProductGroup", "Product", "Offer", ALL)

# Substituted with the principal id when an ability is built
USER_ID_PLACEHOLDER = "${userId}"


@dataclass(frozen=True)
class Principal:
    """The authenticated caller for one request."""
    id: str
    scopes: Tuple[str, ...] = ()
    role: Optional[str] = None


@dataclass(frozen=True)
class Equals:
    """Ownership condition: instance[field] must equal value."""
    field: str
    value: Any


@dataclass(frozen=True)
class Rule:
    action: str                       # one of ACTIONS
    subject: str                      # one of SUBJECTS
    condition: Optional[Equals] = None
    inverted: bool = False            # "cannot" rule, never grants anything


@dataclass(frozen=True)
class Ability:
    """Resolved rules for a single principal, built per request."""
    principal_id: str
    rules: Tuple[Rule, ...]


@dataclass(frozen=True)
class OperationInfo:
    """Security requirements of one API operation."""
    operation_id: str
    path: str
    method: str
    scopes: FrozenSet[str] = frozenset()
    schemes: Tuple[str, ...] = ()     # accepted security schemes, in order
    public: bool = False              # declared with an explicit empty security list


# ── Catalog records ──────────────────────────────────────────────────

@dataclass
class ProductGroup:
    subject_type: ClassVar[str] = "ProductGroup"

    id: Optional[int]
    name: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ProductGroup":
        return cls(id=row.get("id"), name=row["name"])

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Product:
    subject_type: ClassVar[str] = "Product"

    id: Optional[int]
    productGroupId: Optional[int]
    name: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Product":
        return cls(id=row.get("id"), productGroupId=row.get("productGroupId"), name=row["name"])

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Offer:
    subject_type: ClassVar[str] = "Offer"

    id: Optional[int]
    productId: Optional[int]
    merchantId: Optional[str]
    price: float = field(default=0.0)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Offer":
        # merchantId is compared against string principal ids
        merchant = row.get("merchantId")
        return cls(
            id=row.get("id"),
            productId=row.get("productId"),
            merchantId=str(merchant) if merchant is not None else None,
            price=row.get("price"),
        )

    def to_dict(self) -> dict:
        return asdict(self)
