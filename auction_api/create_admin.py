"""
Create an admin account.

Usage:
    python -m auction_api.create_admin --username admin --password secret
"""

from __future__ import annotations

import argparse
import sys

from sqlalchemy import select

from .auth import create_admin
from .config import configure_logging
from .db import Base, SessionLocal, engine
from .models import Admin


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create an auction admin account")
    parser.add_argument("--username", required=True)
    parser.add_argument("--password", required=True)
    args = parser.parse_args(argv)

    configure_logging()
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        if db.scalars(select(Admin).where(Admin.username == args.username)).first():
            print(f"Admin {args.username} already exists")
            return 0
        create_admin(db, args.username, args.password)
        print(f"Admin created: {args.username}")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
