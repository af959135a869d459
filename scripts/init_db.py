#!/usr/bin/env python3
"""
Create the catalog tables in DB_URI and optionally insert sample data.

Usage: python scripts/init_db.py [--seed]
"""

import sys

from catalog_api.database import init_engine, init_schema, seed

if __name__ == "__main__":
    engine = init_engine()
    init_schema(engine)
    if "--seed" in sys.argv[1:]:
        seed(engine)
