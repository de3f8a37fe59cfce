import logging
import os

from sqlalchemy import create_engine, event, exc, make_url, text

from models import ConnectionFailure, ConstraintViolation, ServiceBusy

logger = logging.getLogger(__name__)


# Table definitions per dialect (created with IF NOT EXISTS on startup)
SCHEMA = {
    "sqlite": [
        "CREATE TABLE IF NOT EXISTS users ("
        "id INTEGER PRIMARY KEY AUTOINCREMENT, "
        "name TEXT NOT NULL, "
        "email TEXT NOT NULL UNIQUE, "
        "password_hash TEXT NOT NULL, "
        "role TEXT NOT NULL DEFAULT 'student')",
        "CREATE TABLE IF NOT EXISTS clubs ("
        "id INTEGER PRIMARY KEY AUTOINCREMENT, "
        "name TEXT NOT NULL UNIQUE, "
        "description TEXT, "
        "created_by INTEGER, "
        "created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP, "
        "FOREIGN KEY (created_by) REFERENCES users(id) ON DELETE SET NULL)",
        "CREATE TABLE IF NOT EXISTS memberships ("
        "id INTEGER PRIMARY KEY AUTOINCREMENT, "
        "user_id INTEGER NOT NULL, "
        "club_id INTEGER NOT NULL, "
        "role TEXT NOT NULL DEFAULT 'member', "
        "UNIQUE(user_id, club_id), "
        "FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE, "
        "FOREIGN KEY (club_id) REFERENCES clubs(id) ON DELETE CASCADE)",
        "CREATE TABLE IF NOT EXISTS events ("
        "id INTEGER PRIMARY KEY AUTOINCREMENT, "
        "club_id INTEGER NOT NULL, "
        "title TEXT NOT NULL, "
        "description TEXT, "
        "event_date DATE NOT NULL, "
        "FOREIGN KEY (club_id) REFERENCES clubs(id) ON DELETE CASCADE)",
        "CREATE INDEX IF NOT EXISTS idx_memberships_club_id ON memberships(club_id)",
        "CREATE INDEX IF NOT EXISTS idx_events_club_id ON events(club_id)",
    ],
    "mysql": [
        "CREATE TABLE IF NOT EXISTS users ("
        "id INT AUTO_INCREMENT PRIMARY KEY, "
        "name VARCHAR(255) NOT NULL, "
        "email VARCHAR(255) NOT NULL UNIQUE, "
        "password_hash VARCHAR(255) NOT NULL, "
        "role VARCHAR(20) NOT NULL DEFAULT 'student')",
        "CREATE TABLE IF NOT EXISTS clubs ("
        "id INT AUTO_INCREMENT PRIMARY KEY, "
        "name VARCHAR(255) NOT NULL UNIQUE, "
        "description TEXT, "
        "created_by INT NULL, "
        "created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP, "
        "FOREIGN KEY (created_by) REFERENCES users(id) ON DELETE SET NULL)",
        "CREATE TABLE IF NOT EXISTS memberships ("
        "id INT AUTO_INCREMENT PRIMARY KEY, "
        "user_id INT NOT NULL, "
        "club_id INT NOT NULL, "
        "role VARCHAR(20) NOT NULL DEFAULT 'member', "
        "UNIQUE KEY uq_memberships_user_club (user_id, club_id), "
        "FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE, "
        "FOREIGN KEY (club_id) REFERENCES clubs(id) ON DELETE CASCADE)",
        "CREATE TABLE IF NOT EXISTS events ("
        "id INT AUTO_INCREMENT PRIMARY KEY, "
        "club_id INT NOT NULL, "
        "title VARCHAR(255) NOT NULL, "
        "description TEXT, "
        "event_date DATE NOT NULL, "
        "INDEX idx_events_club_id (club_id), "
        "FOREIGN KEY (club_id) REFERENCES clubs(id) ON DELETE CASCADE)",
    ],
}


class Database:
    """Thin query layer over an SQLAlchemy engine.

    Statements take named parameters (``:name``). Every call checks a
    connection out of the pool, runs one statement in its own transaction and
    returns the connection, so callers never hold one across statements.
    """

    def __init__(self, url, pool_size=10, max_overflow=0, pool_timeout=10):
        self.url = url
        options = {}
        parsed = make_url(url)
        in_memory = False
        if parsed.get_backend_name() == "sqlite":
            in_memory = _is_memory_database(parsed.database)
            if not in_memory:
                _ensure_sqlite_dir(parsed.database)
            options["connect_args"] = {"check_same_thread": False}
        # In-memory SQLite gets SingletonThreadPool, which takes no queue options
        if not in_memory:
            options.update(pool_size=pool_size, max_overflow=max_overflow, pool_timeout=pool_timeout)
        self.engine = create_engine(url, **options)
        if self.dialect == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

    @property
    def dialect(self):
        return self.engine.dialect.name

    def query(self, sql, **params):
        """Return all rows as a list of dicts."""
        with self._connect() as connection:
            result = self._run(connection, sql, params)
            rows = [dict(row) for row in result.mappings()]
            connection.commit()
            return rows

    def query_one(self, sql, **params):
        """Return the first row as a dict, or None."""
        rows = self.query(sql, **params)
        return rows[0] if rows else None

    def execute(self, sql, **params):
        """Run a write statement. INSERT returns the new row id, anything else the row count."""
        with self._connect() as connection:
            result = self._run(connection, sql, params)
            outcome = result.lastrowid if sql.lstrip().upper().startswith("INSERT") else result.rowcount
            connection.commit()
            return outcome

    def init_schema(self):
        for statement in SCHEMA.get(self.dialect, SCHEMA["sqlite"]):
            self.execute(statement)

    def dispose(self):
        self.engine.dispose()

    def _connect(self):
        try:
            return self.engine.connect()
        except exc.TimeoutError as e:
            logger.warning("Connection pool exhausted: %s", e)
            raise ServiceBusy("The service is busy. Please try again shortly.") from e
        except exc.OperationalError as e:
            logger.exception("Could not connect to database")
            raise ConnectionFailure("Database unavailable.") from e

    def _run(self, connection, sql, params):
        try:
            return connection.execute(text(sql), params)
        except exc.IntegrityError as e:
            logger.info("Constraint violation: %s", e.orig)
            raise ConstraintViolation(None, str(e.orig)) from e
        except (exc.OperationalError, exc.ProgrammingError) as e:
            logger.exception("Database error running: %s", sql)
            raise ConnectionFailure("Database error.") from e


def _is_memory_database(database):
    return database in (None, "", ":memory:") or database.startswith("file::memory:")


def _ensure_sqlite_dir(path):
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()
