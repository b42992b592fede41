#!/usr/bin/env python3
"""Create the first admin staff member"""
import argparse
import getpass
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from salon import create_app
from salon.extensions import db
from salon.seeding import bootstrap_admin


def main():
    parser = argparse.ArgumentParser(description="Create the first admin staff member")
    parser.add_argument("--name", default="Admin", help="Display name")
    parser.add_argument("--email", required=True, help="Login email")
    parser.add_argument("--password", help="Password (prompted when omitted)")
    args = parser.parse_args()

    password = args.password or getpass.getpass("Password: ")
    if len(password) < 6:
        print("Password must be at least 6 characters")
        sys.exit(1)

    app = create_app()
    with app.app_context():
        db.create_all()
        admin = bootstrap_admin(args.name, args.email, password)
        if admin is None:
            print("An admin already exists; nothing changed")
            return
        print(f"Created admin {admin.email} (ID: {admin.staff_id})")


if __name__ == "__main__":
    main()
