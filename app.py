import logging
import os
from datetime import timedelta
from logging.handlers import RotatingFileHandler

from flask import Flask, flash, g, redirect, render_template, request, session, url_for

import models
from database import Database
from helpers import (
    MethodOverrideMiddleware,
    admin_required,
    club_role_required,
    csrf_protect,
    format_date,
    get_csrf_token,
    get_db,
    load_session_user,
    login_required,
    start_session,
)
from seed import seed_if_empty

# Environment-driven settings
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///clubhub.db")
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
DEBUG_MODE = os.getenv("DEBUG", "False").lower() == "true"
SESSION_COOKIE_SECURE_FLAG = os.getenv("SESSION_COOKIE_SECURE", "False").lower() == "true"
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "0"))
DB_POOL_TIMEOUT = float(os.getenv("DB_POOL_TIMEOUT", "10"))
LOG_FILE = os.getenv("LOG_FILE", "clubhub.log")
SEED_DATA = os.getenv("SEED_DATA", "True").lower() == "true"


def create_app(config=None):
    app = Flask(__name__)

    app.config.update(
        TEMPLATES_AUTO_RELOAD=True,
        PERMANENT_SESSION_LIFETIME=timedelta(hours=24),
        SESSION_REFRESH_EACH_REQUEST=False,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        SESSION_COOKIE_SECURE=SESSION_COOKIE_SECURE_FLAG,
        SECRET_KEY=SECRET_KEY,
        DEBUG=DEBUG_MODE,
        DATABASE_URL=DATABASE_URL,
        DB_POOL_SIZE=DB_POOL_SIZE,
        DB_MAX_OVERFLOW=DB_MAX_OVERFLOW,
        DB_POOL_TIMEOUT=DB_POOL_TIMEOUT,
        LOG_FILE=LOG_FILE,
        SEED_DATA=SEED_DATA,
        CSRF_ENABLED=True,
    )
    if config:
        app.config.update(config)

    # Logging (rotating file) in non-debug environments
    app.logger.setLevel(logging.INFO)
    if not app.config["DEBUG"] and app.config["LOG_FILE"]:
        handler = RotatingFileHandler(app.config["LOG_FILE"], maxBytes=10240, backupCount=10)
        handler.setLevel(logging.INFO)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        app.logger.addHandler(handler)

    db = Database(
        app.config["DATABASE_URL"],
        pool_size=app.config["DB_POOL_SIZE"],
        max_overflow=app.config["DB_MAX_OVERFLOW"],
        pool_timeout=app.config["DB_POOL_TIMEOUT"],
    )
    db.init_schema()
    if app.config["SEED_DATA"] and seed_if_empty(db):
        app.logger.info("Seeded empty database")
    app.extensions["clubhub_db"] = db

    app.wsgi_app = MethodOverrideMiddleware(app.wsgi_app)
    app.before_request(load_session_user)
    app.before_request(csrf_protect)
    app.add_template_filter(format_date, "format_date")

    @app.context_processor
    def inject_globals():
        return {"csrf_token": get_csrf_token(), "current_user": g.get("user")}

    @app.after_request
    def after_request(response):
        """Ensure responses aren't cached"""
        response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
        response.headers["Expires"] = 0
        response.headers["Pragma"] = "no-cache"
        # Secure cookies for production
        if app.config["SESSION_COOKIE_SECURE"]:
            response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains; preload"
        return response

    register_routes(app)
    register_error_handlers(app)
    return app


def register_routes(app):

    @app.route("/")
    def index():
        return redirect(url_for("clubs"))

    # Register
    @app.route("/register", methods=["GET", "POST"])
    def register():
        """Register user"""
        if request.method == "GET":
            return render_template("register.html", form={}, errors={})

        form = request.form
        if form.get("password") != form.get("confirmation"):
            return render_template(
                "register.html", form=form, errors={"confirmation": "Passwords do not match."}
            ), 400
        try:
            user = models.create_user(get_db(), form.get("name"), form.get("email"), form.get("password"))
        except models.ValidationError as e:
            app.logger.info("Registration rejected: %s", e.message)
            return render_template("register.html", form=form, errors={e.field: e.message}), 400

        start_session(user)
        flash("Registered and logged in!", "success")
        return redirect(url_for("clubs"))

    # Login
    @app.route("/login", methods=["GET", "POST"])
    def login():
        """Log user in"""
        if request.method == "GET":
            return render_template("login.html")

        try:
            user = models.authenticate(get_db(), request.form.get("email"), request.form.get("password"))
        except models.AuthenticationFailure as e:
            flash(str(e), "danger")
            return redirect(url_for("login"))

        start_session(user)
        flash("Logged in!", "success")
        return redirect(url_for("clubs"))

    # Logout
    @app.route("/logout", methods=["POST"])
    @login_required
    def logout():
        """Log user out"""
        session.clear()
        flash("Logged out!", "success")
        return redirect(url_for("login"))

    # Clubs list
    @app.route("/clubs")
    def clubs():
        """Show list of clubs"""
        return render_template("clubs.html", clubs=models.list_clubs(get_db()))

    @app.route("/my_clubs")
    @login_required
    def my_clubs():
        clubs = models.list_user_clubs(get_db(), g.user["id"])
        return render_template("clubs.html", clubs=clubs, mine=True)

    # Create Club (admin)
    @app.route("/clubs/new")
    @admin_required
    def new_club():
        return render_template("club_form.html", club={}, errors={})

    @app.route("/clubs", methods=["POST"])
    @admin_required
    def create_club():
        name = request.form.get("name")
        description = request.form.get("description")
        try:
            models.create_club(get_db(), name, description, g.user["id"])
        except models.ValidationError as e:
            club = {"name": name, "description": description}
            return render_template("club_form.html", club=club, errors={e.field: e.message}), 400
        flash("Club created.", "success")
        return redirect(url_for("clubs"))

    # Edit Club (admin)
    @app.route("/clubs/<int:club_id>/edit")
    @admin_required
    def edit_club(club_id):
        club = models.get_club(get_db(), club_id)
        return render_template("club_form.html", club=club, errors={})

    @app.route("/clubs/<int:club_id>", methods=["PUT"])
    @admin_required
    def update_club(club_id):
        name = request.form.get("name")
        description = request.form.get("description")
        try:
            models.update_club(get_db(), club_id, name, description)
        except models.ValidationError as e:
            club = {"id": club_id, "name": name, "description": description}
            return render_template("club_form.html", club=club, errors={e.field: e.message}), 400
        flash("Club updated.", "success")
        return redirect(url_for("club_detail", club_id=club_id))

    # Delete Club (admin)
    @app.route("/clubs/<int:club_id>", methods=["DELETE"])
    @admin_required
    def delete_club(club_id):
        models.delete_club(get_db(), club_id)
        flash("Club deleted.", "success")
        return redirect(url_for("clubs"))

    # Club detail
    @app.route("/clubs/<int:club_id>")
    @login_required
    def club_detail(club_id):
        db = get_db()
        club = models.get_club(db, club_id)
        return render_template(
            "club_detail.html",
            club=club,
            members=models.list_members(db, club_id),
            events=models.list_events(db, club_id),
            membership=models.get_membership(db, g.user["id"], club_id),
        )

    @app.route("/clubs/<int:club_id>/join", methods=["POST"])
    @login_required
    def join_club(club_id):
        if models.join_club(get_db(), g.user["id"], club_id):
            flash("You joined this club!", "success")
        else:
            flash("You are already a member of this club.", "info")
        return redirect(url_for("club_detail", club_id=club_id))

    @app.route("/clubs/<int:club_id>/leave", methods=["DELETE"])
    @login_required
    def leave_club(club_id):
        if models.leave_club(get_db(), g.user["id"], club_id):
            flash("You left the club.", "success")
        else:
            flash("You are not a member of this club.", "info")
        return redirect(url_for("club_detail", club_id=club_id))

    # Create Event (club coordinators)
    @app.route("/clubs/<int:club_id>/events/new")
    @club_role_required(models.ROLE_COORDINATOR)
    def new_event(club_id):
        club = models.get_club(get_db(), club_id)
        return render_template("event_form.html", club=club, form={}, errors={})

    @app.route("/clubs/<int:club_id>/events", methods=["POST"])
    @club_role_required(models.ROLE_COORDINATOR)
    def create_event(club_id):
        db = get_db()
        form = request.form
        try:
            models.create_event(db, club_id, form.get("title"), form.get("description"), form.get("event_date"))
        except models.ValidationError as e:
            club = models.get_club(db, club_id)
            return render_template("event_form.html", club=club, form=form, errors={e.field: e.message}), 400
        flash("Event created.", "success")
        return redirect(url_for("club_detail", club_id=club_id))


def register_error_handlers(app):

    @app.errorhandler(models.NotFound)
    def missing_row(e):
        flash(str(e), "danger")
        return redirect(url_for("clubs"))

    @app.errorhandler(models.ServiceBusy)
    def service_busy(e):
        app.logger.warning("Service busy: %s", e)
        return render_template("error.html", code=503, message=str(e)), 503

    @app.errorhandler(models.ConnectionFailure)
    def database_error(e):
        app.logger.error("Database failure: %s", e, exc_info=e)
        return render_template("error.html", code=500, message="Something went wrong."), 500

    @app.errorhandler(404)
    def not_found_error(e):
        return render_template("error.html", code=404, message="Page not found."), 404

    @app.errorhandler(500)
    def internal_error(e):
        app.logger.exception("Server error: %s", e)
        return render_template("error.html", code=500, message="Something went wrong."), 500


if __name__ == "__main__":
    create_app().run(debug=DEBUG_MODE)
