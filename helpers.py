import secrets
import time
from datetime import date, datetime
from functools import wraps

from flask import abort, current_app, flash, g, redirect, request, session, url_for
from werkzeug.wrappers import Request

from models import ROLE_ADMIN, NotFound, get_club, has_club_role

CSRF_METHODS = ("POST", "PUT", "PATCH", "DELETE")
OVERRIDE_METHODS = ("PUT", "PATCH", "DELETE")


def get_db():
    return current_app.extensions["clubhub_db"]


# Session

def start_session(user):
    """Replace whatever was in the session with an authenticated user snapshot."""
    session.clear()
    session["user"] = user
    session["authenticated_at"] = time.time()
    session.permanent = True


def session_expired(authenticated_at, lifetime, now=None):
    """Expiry is absolute from login, activity does not extend it."""
    if authenticated_at is None:
        return True
    now = time.time() if now is None else now
    return now - authenticated_at >= lifetime.total_seconds()


def load_session_user():
    """Expose the session user on g for this request only."""
    g.user = None
    user = session.get("user")
    if user is None:
        return
    lifetime = current_app.config["PERMANENT_SESSION_LIFETIME"]
    if session_expired(session.get("authenticated_at"), lifetime):
        current_app.logger.info("Session for user %s expired", user.get("id"))
        # Keep the CSRF token so a stale form still reaches the login redirect
        session.pop("user", None)
        session.pop("authenticated_at", None)
        flash("Your session has expired. Please log in again.", "warning")
        return
    g.user = user


# CSRF helpers

def get_csrf_token():
    token = session.get("_csrf_token")
    if not token:
        token = secrets.token_hex(16)
        session["_csrf_token"] = token
    return token


def csrf_protect():
    if not current_app.config.get("CSRF_ENABLED", True):
        return
    if request.method not in CSRF_METHODS:
        return
    token = session.get("_csrf_token")
    if not token:
        # Cookie expired or was never issued: nothing to submit against, start over
        flash("Your session has expired. Please log in again.", "warning")
        return redirect(url_for("login"))
    form_token = request.form.get("_csrf_token")
    if not form_token or not secrets.compare_digest(token, form_token):
        abort(400)


class MethodOverrideMiddleware:
    """Let HTML forms issue PUT/DELETE via POST with ?_method=... or a header."""

    def __init__(self, app):
        self.app = app

    def __call__(self, environ, start_response):
        if environ.get("REQUEST_METHOD") == "POST":
            method = environ.get("HTTP_X_HTTP_METHOD_OVERRIDE") or Request(environ).args.get("_method", "")
            method = method.upper()
            if method in OVERRIDE_METHODS:
                environ["REQUEST_METHOD"] = method
        return self.app(environ, start_response)


# Guards

def login_required(f):
    """
    Decorate routes to require login.
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get("user") is None:
            flash("Please log in first.", "warning")
            return redirect(url_for("login"))
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    """
    Decorate routes to require the admin role. Non-admins go back to the club list.
    """

    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if g.user.get("role") != ROLE_ADMIN:
            flash("Only administrators can do that.", "danger")
            return redirect(url_for("clubs"))
        return f(*args, **kwargs)
    return decorated_function


def club_role_required(role):
    """
    Decorate routes taking a club_id to require the session user to hold role in that club.
    """

    def decorator(f):
        @wraps(f)
        @login_required
        def decorated_function(*args, **kwargs):
            club_id = kwargs["club_id"]
            db = get_db()
            try:
                get_club(db, club_id)
            except NotFound:
                flash("Club not found.", "danger")
                return redirect(url_for("clubs"))
            if not has_club_role(db, g.user["id"], club_id, role):
                flash(f"Only a club {role} can do that.", "danger")
                return redirect(url_for("club_detail", club_id=club_id))
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def format_date(value):
    """Format an ISO date (YYYY-MM-DD) as e.g. "Nov 15, 2025"."""
    if not value:
        return ""
    if isinstance(value, (date, datetime)):
        return value.strftime("%b %d, %Y")
    try:
        return date.fromisoformat(str(value)[:10]).strftime("%b %d, %Y")
    except ValueError:
        return value
