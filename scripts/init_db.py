#!/usr/bin/env python3
"""Initialize database tables and install the default catalog and loyalty program"""
import argparse
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from salon import create_app
from salon.extensions import db
from salon.seeding import seed_catalog, seed_loyalty_program


def init_database(replace_catalog: bool = False, with_seed: bool = True):
    app = create_app()
    with app.app_context():
        db.create_all()
        print("Database tables initialized")
        if not with_seed:
            return
        created = seed_catalog(replace=replace_catalog)
        print(f"Catalog: {created} services created")
        program = seed_loyalty_program()
        print(f"Loyalty program: {program.name}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create tables and seed default data")
    parser.add_argument("--replace-catalog", action="store_true", help="Delete the existing catalog first")
    parser.add_argument("--no-seed", action="store_true", help="Only create tables")
    args = parser.parse_args()
    init_database(replace_catalog=args.replace_catalog, with_seed=not args.no_seed)
