"""
Seed script to load sample users, clubs, memberships, and an event for demos.

The app calls seed_if_empty() on startup; it can also be run by hand.

Usage:
  export DATABASE_URL="sqlite:///clubhub.db"  # or your DB string
  python seed.py
"""

import logging
import os

from database import Database
from models import (
    ROLE_ADMIN,
    ROLE_COORDINATOR,
    ROLE_MEMBER,
    ROLE_STUDENT,
    add_membership,
    create_club,
    create_event,
    create_user,
)

logger = logging.getLogger(__name__)


def get_or_create_user(db, name, email, password, role=ROLE_STUDENT):
    rows = db.query("SELECT id FROM users WHERE email = :email", email=email)
    if rows:
        return rows[0]["id"]
    return create_user(db, name, email, password, role=role)["id"]


def get_or_create_club(db, name, description, creator_id):
    rows = db.query("SELECT id FROM clubs WHERE name = :name", name=name)
    if rows:
        return rows[0]["id"]
    return create_club(db, name, description, creator_id)


def ensure_membership(db, user_id, club_id, role=ROLE_MEMBER):
    existing = db.query_one(
        "SELECT id FROM memberships WHERE user_id = :user_id AND club_id = :club_id",
        user_id=user_id,
        club_id=club_id,
    )
    if existing:
        return existing["id"]
    return add_membership(db, user_id, club_id, role)


def get_or_create_event(db, club_id, title, description, event_date):
    rows = db.query(
        "SELECT id FROM events WHERE club_id = :club_id AND title = :title",
        club_id=club_id,
        title=title,
    )
    if rows:
        return rows[0]["id"]
    return create_event(db, club_id, title, description, event_date)


def seed(db):
    # Users (demo creds: admin123 for the admin, student123 for students)
    admin_id = get_or_create_user(db, "Admin User", "admin@college.edu", "admin123", role=ROLE_ADMIN)
    student1_id = get_or_create_user(db, "Student One", "student1@college.edu", "student123")
    student2_id = get_or_create_user(db, "Student Two", "student2@college.edu", "student123")

    # Clubs
    coding_id = get_or_create_club(db, "Coding Club", "A club for coding enthusiasts and programmers", admin_id)
    drama_id = get_or_create_club(db, "Drama Society", "Express yourself through drama and theater", admin_id)

    # Memberships (student1 coordinates Coding Club)
    ensure_membership(db, student1_id, coding_id, ROLE_COORDINATOR)
    ensure_membership(db, student2_id, coding_id, ROLE_MEMBER)
    ensure_membership(db, student2_id, drama_id, ROLE_MEMBER)

    # Events
    get_or_create_event(db, coding_id, "Hackathon 2025", "24-hour coding competition with prizes", "2025-11-15")

    return {"users": [admin_id, student1_id, student2_id], "clubs": [coding_id, drama_id]}


def seed_if_empty(db):
    """Seed only when no user exists yet. Returns True if seeding ran."""
    count = db.query_one("SELECT COUNT(*) AS c FROM users")["c"]
    if count:
        logger.info("Database already contains data. Skipping seed.")
        return False
    logger.info("Seeding database with initial data...")
    seed(db)
    return True


def main():
    db = Database(os.getenv("DATABASE_URL", "sqlite:///clubhub.db"))
    db.init_schema()
    ids = seed(db)

    print("Seed complete.")
    print(f"  Users: {ids['users']}")
    print(f"  Clubs: {ids['clubs']}")
    print("Demo accounts:")
    print("  admin@college.edu / admin123 (admin)")
    print("  student1@college.edu / student123 (Coding Club coordinator)")
    print("  student2@college.edu / student123 (member of Coding Club and Drama Society)")


if __name__ == "__main__":
    main()
