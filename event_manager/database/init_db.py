"""
Create the Event Manager schema and optionally run a smoke test.

Usage:
    python -m event_manager.database.init_db          # create tables
    python -m event_manager.database.init_db --check  # create tables, then CRUD cycle

The smoke test inserts a user, an event and an attendee row, reads them
back through a join, then deletes everything it created.
"""

import sys
import logging
from datetime import datetime, timedelta, timezone

from event_manager.database.db_connection import get_db


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    user_id        SERIAL PRIMARY KEY,
    username       VARCHAR(50)  NOT NULL UNIQUE,
    email          VARCHAR(255) NOT NULL UNIQUE,
    password_hash  TEXT         NOT NULL,
    role           VARCHAR(10)  NOT NULL DEFAULT 'user'
                   CHECK (role IN ('admin', 'user')),
    created_at     TIMESTAMPTZ  NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS events (
    event_id            SERIAL PRIMARY KEY,
    event_name          VARCHAR(200)  NOT NULL,
    location            VARCHAR(255)  NOT NULL,
    mode                VARCHAR(10)   NOT NULL CHECK (mode IN ('online', 'offline')),
    date_time           TIMESTAMPTZ   NOT NULL,
    description         TEXT          NOT NULL,
    event_type          VARCHAR(10)   NOT NULL CHECK (event_type IN ('free', 'paid')),
    price               NUMERIC(10,2) NOT NULL DEFAULT 0 CHECK (price >= 0),
    image               BYTEA         NOT NULL,
    image_content_type  VARCHAR(100)  NOT NULL,
    max_attendees       INTEGER       CHECK (max_attendees IS NULL OR max_attendees > 0),
    status              VARCHAR(10)   NOT NULL DEFAULT 'upcoming'
                        CHECK (status IN ('upcoming', 'ongoing', 'completed', 'cancelled')),
    created_by          INTEGER REFERENCES users(user_id) ON DELETE SET NULL,
    created_at          TIMESTAMPTZ   NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at          TIMESTAMPTZ   NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_events_date_time ON events (date_time);
CREATE INDEX IF NOT EXISTS idx_events_mode ON events (mode);
CREATE INDEX IF NOT EXISTS idx_events_event_type ON events (event_type);

CREATE TABLE IF NOT EXISTS event_attendees (
    event_id   INTEGER NOT NULL REFERENCES events(event_id) ON DELETE CASCADE,
    user_id    INTEGER NOT NULL REFERENCES users(user_id) ON DELETE CASCADE,
    joined_at  TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (event_id, user_id)
);
"""


def init_db() -> None:
    """
    Apply SCHEMA_SQL. Every statement is idempotent, so this is safe to
    run against an existing database.
    """
    conn = get_db()
    try:
        with conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
        logging.info("Schema applied.")
    finally:
        conn.close()


def run_smoke_test() -> bool:
    """
    Full CRUD cycle across users, events and event_attendees.

    Returns:
        bool: True when every step succeeded.
    """
    user_id = None
    event_id = None
    conn = get_db()
    cur = conn.cursor()
    passed = False

    try:
        cur.execute("SELECT NOW();")
        logging.info(f"Connected! Database server time: {cur.fetchone()[0]}")

        cur.execute("""
            INSERT INTO users (username, email, password_hash, role)
            VALUES ('smoke_admin', 'smoke_admin@example.com', 'hashed_pw', 'admin')
            RETURNING user_id;
        """)
        user_id = cur.fetchone()[0]

        when = datetime.now(timezone.utc) + timedelta(days=7)
        cur.execute("""
            INSERT INTO events (event_name, location, mode, date_time, description,
                                event_type, price, image, image_content_type, created_by)
            VALUES ('Smoke Test Event', 'Online', 'online', %s,
                    'A description long enough to be valid.', 'free', 0,
                    %s, 'image/png', %s)
            RETURNING event_id;
        """, (when, b"\x89PNG", user_id))
        event_id = cur.fetchone()[0]

        cur.execute(
            "INSERT INTO event_attendees (event_id, user_id) VALUES (%s, %s);",
            (event_id, user_id),
        )
        conn.commit()

        cur.execute("""
            SELECT e.event_name, u.username, COUNT(a.user_id)
            FROM events e
            JOIN users u ON e.created_by = u.user_id
            LEFT JOIN event_attendees a ON a.event_id = e.event_id
            WHERE e.event_id = %s
            GROUP BY e.event_name, u.username;
        """, (event_id,))
        row = cur.fetchone()
        if not row:
            raise RuntimeError("Failed to retrieve joined data. Relationships may be incorrect.")

        logging.info(f"Found event '{row[0]}' created by {row[1]} with {row[2]} attendee(s)")
        passed = True

    except Exception:
        logging.exception("Database smoke test FAILED")
        conn.rollback()

    finally:
        try:
            if event_id:
                cur.execute("DELETE FROM events WHERE event_id = %s;", (event_id,))
            if user_id:
                cur.execute("DELETE FROM users WHERE user_id = %s;", (user_id,))
            conn.commit()
        except Exception:
            logging.exception("Cleanup FAILED. Database may contain leftover test data")
            conn.rollback()
        finally:
            cur.close()
            conn.close()

    return passed


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(asctime)s - %(message)s")
    init_db()
    if "--check" in sys.argv[1:]:
        sys.exit(0 if run_smoke_test() else 1)
