"""
Database engine initialisation, schema bootstrap and catalog CRUD.
"""

import sys
from typing import List, Optional

from sqlalchemy import create_engine, text

from catalog_api.config import get_env
from catalog_api.models import Offer, Product, ProductGroup

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS ProductGroup (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS Product (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        productGroupId INTEGER,
        name TEXT NOT NULL,
        FOREIGN KEY(productGroupId) REFERENCES ProductGroup(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS Offer (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        productId INTEGER,
        merchantId TEXT,
        price REAL,
        FOREIGN KEY(productId) REFERENCES Product(id)
    )
    """,
]


def init_engine():
    """Create a SQLAlchemy engine and verify the connection."""
    db_uri = get_env("DB_URI")
    engine = create_engine(db_uri, echo=False, future=True)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        print("ERROR: could not connect to DB:", e, file=sys.stderr)
        sys.exit(1)
    print("[init] Connected to DB.")
    return engine


def init_schema(engine) -> None:
    with engine.begin() as conn:
        for stmt in SCHEMA_STATEMENTS:
            conn.execute(text(stmt))
    print("[init] Database schema ready.")


def seed(engine) -> None:
    """Insert a minimal catalog: one group, one product, one offer of merchant 1."""
    with engine.begin() as conn:
        conn.execute(text("INSERT INTO ProductGroup (name) VALUES (:name)"),
                     {"name": "iPhone 15 Pro Max"})
        conn.execute(text("INSERT INTO Product (productGroupId, name) VALUES (:g, :name)"),
                     {"g": 1, "name": "iPhone 15 Pro Max 512GB Red"})
        conn.execute(text("INSERT INTO Offer (productId, merchantId, price) VALUES (:p, :m, :price)"),
                     {"p": 1, "m": "1", "price": 1299.99})
    print("[init] Database seeded.")


# ── Product groups ───────────────────────────────────────────────────

def list_product_groups(engine) -> List[ProductGroup]:
    with engine.connect() as conn:
        rows = conn.execute(text("SELECT * FROM ProductGroup ORDER BY id")).mappings().all()
    return [ProductGroup.from_row(r) for r in rows]


def create_product_group(engine, group: ProductGroup) -> ProductGroup:
    with engine.begin() as conn:
        result = conn.execute(text("INSERT INTO ProductGroup (name) VALUES (:name)"),
                              {"name": group.name})
        new_id = result.lastrowid
    return ProductGroup(id=new_id, name=group.name)


# ── Products ─────────────────────────────────────────────────────────

def list_products(engine) -> List[Product]:
    with engine.connect() as conn:
        rows = conn.execute(text("SELECT * FROM Product ORDER BY id")).mappings().all()
    return [Product.from_row(r) for r in rows]


def get_product(engine, product_id: int) -> Optional[Product]:
    with engine.connect() as conn:
        row = conn.execute(text("SELECT * FROM Product WHERE id = :id"),
                           {"id": product_id}).mappings().first()
    return Product.from_row(row) if row else None


def create_product(engine, product: Product) -> Product:
    with engine.begin() as conn:
        result = conn.execute(
            text("INSERT INTO Product (productGroupId, name) VALUES (:g, :name)"),
            {"g": product.productGroupId, "name": product.name},
        )
        new_id = result.lastrowid
    return Product(id=new_id, productGroupId=product.productGroupId, name=product.name)


def update_product(engine, product: Product) -> bool:
    with engine.begin() as conn:
        result = conn.execute(
            text("UPDATE Product SET productGroupId = :g, name = :name WHERE id = :id"),
            {"g": product.productGroupId, "name": product.name, "id": product.id},
        )
        changed = result.rowcount
    return changed > 0


def delete_product(engine, product_id: int) -> bool:
    with engine.begin() as conn:
        result = conn.execute(text("DELETE FROM Product WHERE id = :id"), {"id": product_id})
        changed = result.rowcount
    return changed > 0


# ── Offers ───────────────────────────────────────────────────────────

def list_offers(engine) -> List[Offer]:
    with engine.connect() as conn:
        rows = conn.execute(text("SELECT * FROM Offer ORDER BY id")).mappings().all()
    return [Offer.from_row(r) for r in rows]


def get_offer(engine, offer_id: int) -> Optional[Offer]:
    with engine.connect() as conn:
        row = conn.execute(text("SELECT * FROM Offer WHERE id = :id"),
                           {"id": offer_id}).mappings().first()
    return Offer.from_row(row) if row else None


def create_offer(engine, offer: Offer) -> Offer:
    with engine.begin() as conn:
        result = conn.execute(
            text("INSERT INTO Offer (productId, merchantId, price) VALUES (:p, :m, :price)"),
            {"p": offer.productId, "m": offer.merchantId, "price": offer.price},
        )
        new_id = result.lastrowid
    return Offer(id=new_id, productId=offer.productId,
                 merchantId=offer.merchantId, price=offer.price)


def update_offer(engine, offer: Offer) -> bool:
    with engine.begin() as conn:
        result = conn.execute(
            text("UPDATE Offer SET productId = :p, merchantId = :m, price = :price WHERE id = :id"),
            {"p": offer.productId, "m": offer.merchantId, "price": offer.price, "id": offer.id},
        )
        changed = result.rowcount
    return changed > 0


def delete_offer(engine, offer_id: int) -> bool:
    with engine.begin() as conn:
        result = conn.execute(text("DELETE FROM Offer WHERE id = :id"), {"id": offer_id})
        changed = result.rowcount
    return changed > 0
