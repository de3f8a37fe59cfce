import logging
from datetime import date

from security import hash_password, verify_password

logger = logging.getLogger(__name__)

ROLE_ADMIN = "admin"
ROLE_STUDENT = "student"
ROLE_MEMBER = "member"
ROLE_COORDINATOR = "coordinator"

USER_ROLES = (ROLE_ADMIN, ROLE_STUDENT)
MEMBERSHIP_ROLES = (ROLE_MEMBER, ROLE_COORDINATOR)


class ClubHubError(Exception):
    """Base class for errors raised by the data layer."""


class ConnectionFailure(ClubHubError):
    pass


class ServiceBusy(ConnectionFailure):
    pass


class NotFound(ClubHubError):
    pass


class AuthenticationFailure(ClubHubError):
    pass


class ValidationError(ClubHubError):
    """Invalid input for a single form field."""

    def __init__(self, field, message):
        super().__init__(message)
        self.field = field
        self.message = message


class ConstraintViolation(ValidationError):
    """A uniqueness or foreign-key constraint rejected the write."""


# Users

def _public_user(row):
    """Session snapshot of a user row (never includes the hash)."""
    return {"id": row["id"], "name": row["name"], "email": row["email"], "role": row["role"]}


def get_user(db, user_id):
    row = db.query_one("SELECT id, name, email, role FROM users WHERE id = :id", id=user_id)
    if row is None:
        raise NotFound(f"User {user_id} not found.")
    return row


def create_user(db, name, email, password, role=ROLE_STUDENT):
    name = (name or "").strip()
    email = (email or "").strip().lower()
    if not name:
        raise ValidationError("name", "Name is required.")
    if not email:
        raise ValidationError("email", "Email is required.")
    if not password:
        raise ValidationError("password", "Password is required.")
    if role not in USER_ROLES:
        raise ValidationError("role", f"Unknown role: {role}")

    if db.query_one("SELECT id FROM users WHERE email = :email", email=email):
        raise ConstraintViolation("email", "Email already registered.")
    try:
        user_id = db.execute(
            "INSERT INTO users (name, email, password_hash, role) VALUES (:name, :email, :hash, :role)",
            name=name,
            email=email,
            hash=hash_password(password),
            role=role,
        )
    except ConstraintViolation:
        raise ConstraintViolation("email", "Email already registered.") from None
    logger.info("Registered user %s (%s)", user_id, role)
    return {"id": user_id, "name": name, "email": email, "role": role}


def authenticate(db, email, password):
    """Return the session snapshot for valid credentials."""
    email = (email or "").strip().lower()
    row = db.query_one("SELECT * FROM users WHERE email = :email", email=email)
    if row is None or not verify_password(password, row["password_hash"]):
        raise AuthenticationFailure("Invalid email and/or password.")
    return _public_user(row)


# Clubs

def list_clubs(db):
    return db.query("SELECT id, name, description, created_by FROM clubs ORDER BY id ASC")


def get_club(db, club_id):
    club = db.query_one("SELECT * FROM clubs WHERE id = :id", id=club_id)
    if club is None:
        raise NotFound(f"Club {club_id} not found.")
    return club


def _validate_club(name, description):
    name = (name or "").strip()
    if not name:
        raise ValidationError("name", "Name is required.")
    return name, (description or "").strip()


def create_club(db, name, description, creator_id):
    name, description = _validate_club(name, description)
    if db.query_one("SELECT id FROM clubs WHERE name = :name", name=name):
        raise ConstraintViolation("name", "A club with this name already exists.")
    try:
        club_id = db.execute(
            "INSERT INTO clubs (name, description, created_by) VALUES (:name, :description, :creator)",
            name=name,
            description=description,
            creator=creator_id,
        )
    except ConstraintViolation:
        raise ConstraintViolation("name", "A club with this name already exists.") from None
    logger.info("Club %s created by user %s", club_id, creator_id)
    return club_id


def update_club(db, club_id, name, description):
    get_club(db, club_id)
    name, description = _validate_club(name, description)
    clash = db.query_one("SELECT id FROM clubs WHERE name = :name AND id != :id", name=name, id=club_id)
    if clash:
        raise ConstraintViolation("name", "A club with this name already exists.")
    try:
        db.execute(
            "UPDATE clubs SET name = :name, description = :description WHERE id = :id",
            name=name,
            description=description,
            id=club_id,
        )
    except ConstraintViolation:
        raise ConstraintViolation("name", "A club with this name already exists.") from None


def delete_club(db, club_id):
    """Delete a club along with its events and memberships."""
    get_club(db, club_id)
    db.execute("DELETE FROM events WHERE club_id = :id", id=club_id)
    db.execute("DELETE FROM memberships WHERE club_id = :id", id=club_id)
    db.execute("DELETE FROM clubs WHERE id = :id", id=club_id)
    logger.info("Club %s deleted", club_id)


# Memberships

def get_membership(db, user_id, club_id):
    if user_id is None:
        return None
    return db.query_one(
        "SELECT * FROM memberships WHERE user_id = :user_id AND club_id = :club_id",
        user_id=user_id,
        club_id=club_id,
    )


def has_club_role(db, user_id, club_id, role):
    membership = get_membership(db, user_id, club_id)
    return membership is not None and membership["role"] == role


def join_club(db, user_id, club_id):
    """Add user to club as a member. Returns False if they already belonged."""
    get_club(db, club_id)
    get_user(db, user_id)
    if get_membership(db, user_id, club_id):
        return False
    try:
        db.execute(
            "INSERT INTO memberships (user_id, club_id, role) VALUES (:user_id, :club_id, :role)",
            user_id=user_id,
            club_id=club_id,
            role=ROLE_MEMBER,
        )
    except ConstraintViolation:
        # Lost a race with a concurrent join for the same pair
        logger.warning("Duplicate join for user %s club %s", user_id, club_id)
        return False
    return True


def leave_club(db, user_id, club_id):
    removed = db.execute(
        "DELETE FROM memberships WHERE user_id = :user_id AND club_id = :club_id",
        user_id=user_id,
        club_id=club_id,
    )
    return removed > 0


def add_membership(db, user_id, club_id, role=ROLE_MEMBER):
    """Insert a membership with an explicit role (seed data only)."""
    if role not in MEMBERSHIP_ROLES:
        raise ValidationError("role", f"Unknown membership role: {role}")
    return db.execute(
        "INSERT INTO memberships (user_id, club_id, role) VALUES (:user_id, :club_id, :role)",
        user_id=user_id,
        club_id=club_id,
        role=role,
    )


def list_members(db, club_id):
    return db.query(
        "SELECT u.id, u.name, u.email, m.role "
        "FROM memberships m JOIN users u ON m.user_id = u.id "
        "WHERE m.club_id = :club_id ORDER BY m.id",
        club_id=club_id,
    )


def list_user_clubs(db, user_id):
    return db.query(
        "SELECT c.id, c.name, c.description, m.role "
        "FROM memberships m JOIN clubs c ON m.club_id = c.id "
        "WHERE m.user_id = :user_id ORDER BY c.id",
        user_id=user_id,
    )


# Events

def create_event(db, club_id, title, description, event_date):
    title = (title or "").strip()
    if not title:
        raise ValidationError("title", "Title is required.")
    event_date = (event_date or "").strip()
    if not event_date:
        raise ValidationError("event_date", "Date is required.")
    try:
        event_date = date.fromisoformat(event_date).isoformat()
    except ValueError:
        raise ValidationError("event_date", "Date must be YYYY-MM-DD.") from None
    get_club(db, club_id)
    event_id = db.execute(
        "INSERT INTO events (club_id, title, description, event_date) "
        "VALUES (:club_id, :title, :description, :event_date)",
        club_id=club_id,
        title=title,
        description=(description or "").strip(),
        event_date=event_date,
    )
    logger.info("Event %s created for club %s", event_id, club_id)
    return event_id


def list_events(db, club_id):
    return db.query(
        "SELECT id, club_id, title, description, event_date FROM events "
        "WHERE club_id = :club_id ORDER BY event_date ASC, id ASC",
        club_id=club_id,
    )
