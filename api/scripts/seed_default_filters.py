#!/usr/bin/env python3
"""
Seed script to create the default queue filters for existing users.

This script:
1. Finds all active users
2. Skips users who already have personal filters
3. Creates the preset filters (Open Tickets, My Tickets, ...) for everyone else

Usage:
    python scripts/seed_default_filters.py
    # or via docker:
    docker compose run --rm api python scripts/seed_default_filters.py
"""

import sys
import os

# Add parent directory to path so we can import ticketdesk modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ticketdesk.db import SessionLocal
from ticketdesk.filter_service import FilterService
from ticketdesk.models import User
from ticketdesk.taxonomy import load_taxonomy


def seed_default_filters():
    """Create default filters for every active user without personal filters."""
    db = SessionLocal()
    try:
        service = FilterService(db, load_taxonomy())
        users = db.query(User).filter(User.is_active == True).order_by(User.id).all()  # noqa: E712

        print(f"Found {len(users)} active users")

        seeded = 0
        skipped = 0
        for user in users:
            created = service.ensure_presets(user)
            if created:
                seeded += 1
            else:
                skipped += 1

        print("\nSeeding complete!")
        print(f"  - {seeded} users received default filters")
        print(f"  - {skipped} users skipped (already had filters or may not create them)")

    except Exception as e:
        db.rollback()
        print(f"\nError during seeding: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    print("Starting default filter seeding...")
    seed_default_filters()
