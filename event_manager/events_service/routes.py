"""
Events service routes: list, read, create, update and delete events,
serve event images, and join/leave an event's attendee list.
"""

import math
import logging
from contextlib import closing
from datetime import datetime, timezone
from typing import Tuple, Dict, Any, Optional

import psycopg2
from flask import Blueprint, request, jsonify, Response, g

from event_manager.database.db_connection import get_db
from event_manager.auth_service.utils import role_required, token_required
from event_manager.events_service.uploads import read_image
from event_manager.errors import (
    APIError,
    Forbidden,
    NotFound,
    ServerError,
    ValidationError,
    register_error_handlers,
)

events_bp = Blueprint("events", __name__)
register_error_handlers(events_bp)

# --- CONSTANTS FOR VALIDATION ---
NAME_MAX_LENGTH = 200
DESCRIPTION_MIN_LENGTH = 20
VALID_MODES = ["online", "offline"]
VALID_EVENT_TYPES = ["free", "paid"]
VALID_STATUSES = ["upcoming", "ongoing", "completed", "cancelled"]
REQUIRED_FIELDS = ["eventName", "location", "mode", "dateTime", "description", "eventType"]

DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100

# Everything but the image bytes; images are served by /<id>/image
EVENT_COLUMNS = """
    e.event_id, e.event_name, e.location, e.mode, e.date_time, e.description,
    e.event_type, e.price, e.max_attendees, e.status, e.created_by,
    e.image_content_type, e.created_at, e.updated_at,
    (SELECT COALESCE(array_agg(a.user_id ORDER BY a.joined_at), '{}')
       FROM event_attendees a WHERE a.event_id = e.event_id) AS attendees
"""


# --- REQUEST LOGGING ---
@events_bp.before_request
def before_request() -> None:
    logging.info(f"[Events] Incoming {request.method} {request.path}")


@events_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Events] Response {response.status}")
    return response


# --- HELPERS ---
def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def parse_dt(val: Optional[str]) -> Optional[datetime]:
    """
    Safely parse an ISO-8601 or datetime-local string to an aware datetime.
    Values without an offset are taken as UTC.

    Args:
        val (str): The date string to parse.

    Returns:
        datetime: The parsed datetime, or None if invalid.
    """
    if not val or not isinstance(val, str):
        return None
    try:
        # Handles 'YYYY-MM-DDTHH:MM' and '...Z' or '...+00:00'
        if val.endswith('Z'):
            val = val[:-1] + '+00:00'
        parsed = datetime.fromisoformat(val)
    except (ValueError, TypeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_future_dt(val: Optional[str]) -> datetime:
    """Parse `val` and insist it is strictly after the current time."""
    parsed = parse_dt(val)
    if not parsed:
        raise ValidationError("Invalid dateTime format. Use ISO-8601.")
    if parsed <= now_utc():
        raise ValidationError("Event date must be in the future")
    return parsed


def parse_price(val: Any) -> float:
    if val is None or str(val).strip() == "":
        return 0.0
    try:
        price = float(val)
    except (TypeError, ValueError):
        raise ValidationError("price must be a number")
    if math.isnan(price) or math.isinf(price) or price < 0:
        raise ValidationError("price must be zero or greater")
    return round(price, 2)


def parse_max_attendees(val: Any) -> Optional[int]:
    if val is None or str(val).strip() in ("", "null"):
        return None
    try:
        count = int(str(val).strip())
    except ValueError:
        raise ValidationError("maxAttendees must be a whole number")
    if count < 1:
        raise ValidationError("Minimum 1 attendee")
    return count


def parse_choice(field: str, val: Any, choices: list) -> str:
    normalized = val.strip().lower() if isinstance(val, str) else ""
    if normalized not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(choices)}")
    return normalized


def clamp_int(val: Optional[str], default: int, minimum: int, maximum: Optional[int] = None) -> int:
    """Parse a query-string integer, falling back to `default` and clamping to range."""
    try:
        number = int(val)
    except (TypeError, ValueError):
        number = default
    number = max(minimum, number)
    if maximum is not None:
        number = min(maximum, number)
    return number


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so user search text matches literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _iso(value: Any) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_event(row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shape an events row into the public JSON the client consumes.

    Args:
        row (dict): A row selected with EVENT_COLUMNS.

    Returns:
        dict: camelCase event fields, without image bytes.
    """
    event_id = row["event_id"]
    price = row.get("price")
    return {
        "id": event_id,
        "eventName": row["event_name"],
        "location": row["location"],
        "mode": row["mode"],
        "dateTime": _iso(row.get("date_time")),
        "description": row["description"],
        "eventType": row["event_type"],
        "price": float(price) if price is not None else 0.0,
        "maxAttendees": row.get("max_attendees"),
        "status": row.get("status") or "upcoming",
        "createdBy": row.get("created_by"),
        "attendees": list(row.get("attendees") or []),
        "imageContentType": row.get("image_content_type"),
        "imageUrl": f"/api/events/{event_id}/image",
        "createdAt": _iso(row.get("created_at")),
        "updatedAt": _iso(row.get("updated_at")),
    }


def fetch_event(cur, event_id: int) -> Optional[Dict[str, Any]]:
    cur.execute(f"SELECT {EVENT_COLUMNS} FROM events e WHERE e.event_id = %s;", (event_id,))
    row = cur.fetchone()
    return dict(row) if row else None


def fetch_owned_event(cur, event_id: int, columns: str = "created_by") -> Dict[str, Any]:
    """
    Load the columns needed for an ownership check and enforce it.

    Raises:
        NotFound: No event with `event_id`.
        Forbidden: The requesting user did not create the event.
    """
    cur.execute(f"SELECT {columns} FROM events WHERE event_id = %s;", (event_id,))
    ev = cur.fetchone()
    if not ev:
        raise NotFound("Event not found")
    if ev["created_by"] != g.current_user["id"]:
        raise Forbidden("Not authorized to modify this event")
    return ev


def form_value(key: str) -> Optional[str]:
    val = request.form.get(key)
    return val.strip() if isinstance(val, str) else val


# --- LIST ---
@events_bp.route("/", methods=["GET"], strict_slashes=False)
def list_events() -> Tuple[Response, int]:
    """
    Return a page of events, soonest first.

    Query parameters:
    - page (int, default 1), limit (int, default 10, max 100)
    - mode: online | offline (case-insensitive)
    - eventType: free | paid (case-insensitive)
    - search: substring matched against name and description

    Returns:
        200: {events, currentPage, totalPages, totalEvents}
        500: Database error.
    """
    page = clamp_int(request.args.get("page"), 1, 1)
    limit = clamp_int(request.args.get("limit"), DEFAULT_PAGE_LIMIT, 1, MAX_PAGE_LIMIT)
    mode = (request.args.get("mode") or "").strip().lower()
    event_type = (request.args.get("eventType") or "").strip().lower()
    search = (request.args.get("search") or "").strip()

    conditions = []
    params: list = []

    if mode:
        conditions.append("e.mode = %s")
        params.append(mode)
    if event_type:
        conditions.append("e.event_type = %s")
        params.append(event_type)
    if search:
        pattern = f"%{escape_like(search)}%"
        conditions.append("(e.event_name ILIKE %s OR e.description ILIKE %s)")
        params.extend([pattern, pattern])

    where_sql = f" WHERE {' AND '.join(conditions)}" if conditions else ""

    try:
        with closing(get_db()) as conn, conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT COUNT(*) AS total FROM events e{where_sql};", params)
                total = cur.fetchone()["total"]

                cur.execute(
                    f"SELECT {EVENT_COLUMNS} FROM events e{where_sql} "
                    f"ORDER BY e.date_time ASC LIMIT %s OFFSET %s;",
                    params + [limit, (page - 1) * limit],
                )
                rows = [serialize_event(dict(r)) for r in cur.fetchall()]
    except Exception:
        logging.exception("Database error listing events")
        raise ServerError("Failed to retrieve events")

    return jsonify({
        "events": rows,
        "currentPage": page,
        "totalPages": math.ceil(total / limit),
        "totalEvents": total,
    }), 200


# --- READ ---
@events_bp.route("/<int:event_id>", methods=["GET"])
def get_event(event_id: int) -> Tuple[Response, int]:
    """
    Get a single event by ID.

    Returns:
        200: {"event": {...}}
        404: Event not found.
    """
    try:
        with closing(get_db()) as conn, conn:
            with conn.cursor() as cur:
                event = fetch_event(cur, event_id)
    except Exception:
        logging.exception(f"Database error getting event {event_id}")
        raise ServerError("Failed to retrieve event")

    if not event:
        raise NotFound("Event not found")

    return jsonify({"event": serialize_event(event)}), 200


@events_bp.route("/<int:event_id>/image", methods=["GET"])
def get_event_image(event_id: int) -> Response:
    """
    Stream the stored image bytes with their original content type.

    Returns:
        200: Raw image bytes.
        404: Event or image not found.
    """
    try:
        with closing(get_db()) as conn, conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT image, image_content_type FROM events WHERE event_id = %s;",
                    (event_id,),
                )
                row = cur.fetchone()
    except Exception:
        logging.exception(f"Database error getting image for event {event_id}")
        raise ServerError("Failed to retrieve image")

    if not row or not row["image"]:
        raise NotFound("Image not found")

    return Response(bytes(row["image"]), mimetype=row["image_content_type"])


# --- CREATE ---
@events_bp.route("/create", methods=["POST"])
@role_required("admin")
def create_event() -> Tuple[Response, int]:
    """
    Create an event from a multipart form with an `image` file part.

    Validations:
    - All of eventName, location, mode, dateTime, description, eventType present.
    - mode / eventType within their enums (case-insensitive).
    - dateTime strictly in the future.
    - description at least 20 characters.
    - price non-negative (forced to 0 for free events).
    - maxAttendees a positive integer when given.
    - image present, an image/* type, at most 5 MiB.

    Returns:
        201: {message, event}
        400: Validation error.
        401/403: Not authenticated / not an admin.
        500: Server error.
    """
    missing = [field for field in REQUIRED_FIELDS if not form_value(field)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    event_name = form_value("eventName")
    if len(event_name) > NAME_MAX_LENGTH:
        raise ValidationError(f"eventName must be {NAME_MAX_LENGTH} characters or less")

    mode = parse_choice("mode", form_value("mode"), VALID_MODES)
    event_type = parse_choice("eventType", form_value("eventType"), VALID_EVENT_TYPES)
    date_time = parse_future_dt(form_value("dateTime"))

    description = form_value("description")
    if len(description) < DESCRIPTION_MIN_LENGTH:
        raise ValidationError(f"Description must be at least {DESCRIPTION_MIN_LENGTH} characters")

    price = parse_price(form_value("price")) if event_type == "paid" else 0.0
    max_attendees = parse_max_attendees(form_value("maxAttendees"))

    image, content_type = read_image(request.files.get("image"))

    sql = """
        INSERT INTO events (
            event_name, location, mode, date_time, description,
            event_type, price, image, image_content_type,
            max_attendees, created_by
        ) VALUES (
            %s, %s, %s, %s, %s,
            %s, %s, %s, %s,
            %s, %s
        )
        RETURNING event_id;
    """

    try:
        with closing(get_db()) as conn, conn:
            with conn.cursor() as cur:
                cur.execute(sql, (
                    event_name, form_value("location"), mode, date_time, description,
                    event_type, price, image, content_type,
                    max_attendees, g.current_user["id"],
                ))
                event_id = cur.fetchone()["event_id"]
                event = fetch_event(cur, event_id)
                conn.commit()
    except Exception:
        logging.exception("Database error creating event")
        raise ServerError("Failed to create event")

    logging.info(f"[Events] Created event {event_id} by user {g.current_user['id']}")

    return jsonify({
        "message": "Event created successfully",
        "event": serialize_event(event),
    }), 201


# --- UPDATE ---
@events_bp.route("/<int:event_id>", methods=["PUT"])
@token_required
def update_event(event_id: int) -> Tuple[Response, int]:
    """
    Partially update an event. Only the creator may update it.

    Accepts multipart or JSON bodies. Only fields present are applied;
    a new `image` file replaces the stored one.

    Returns:
        200: {message, event}
        400: Validation error or nothing to update.
        401: Not authenticated.
        403: Caller is not the creator.
        404: Event not found.
    """
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    data = {k: v.strip() if isinstance(v, str) else v for k, v in data.items()}

    conn = get_db()
    try:
        with conn.cursor() as cur:
            # --- PERMISSION CHECKS FIRST ---
            ev = fetch_owned_event(cur, event_id, "created_by, event_type")

            fields: Dict[str, Any] = {}

            # --- VALIDATION BLOCK ---
            for key, column in (("eventName", "event_name"), ("location", "location"),
                                ("description", "description")):
                if key in data:
                    if not isinstance(data[key], str):
                        raise ValidationError(f"{key} must be a string")
                    if not data[key]:
                        raise ValidationError(f"{key} cannot be empty")
                    fields[column] = data[key]

            if "event_name" in fields and len(fields["event_name"]) > NAME_MAX_LENGTH:
                raise ValidationError(f"eventName must be {NAME_MAX_LENGTH} characters or less")
            if "description" in fields and len(fields["description"]) < DESCRIPTION_MIN_LENGTH:
                raise ValidationError(f"Description must be at least {DESCRIPTION_MIN_LENGTH} characters")

            if "mode" in data:
                fields["mode"] = parse_choice("mode", data["mode"], VALID_MODES)
            if "dateTime" in data:
                fields["date_time"] = parse_future_dt(data["dateTime"])
            if "status" in data:
                fields["status"] = parse_choice("status", data["status"], VALID_STATUSES)
            if "maxAttendees" in data:
                fields["max_attendees"] = parse_max_attendees(data["maxAttendees"])

            # --- PRICE FOLLOWS THE FINAL EVENT TYPE ---
            if "eventType" in data:
                fields["event_type"] = parse_choice("eventType", data["eventType"], VALID_EVENT_TYPES)
            final_type = fields.get("event_type", ev["event_type"])
            if final_type == "free":
                if "event_type" in fields or "price" in data:
                    fields["price"] = 0.0
            elif "price" in data:
                fields["price"] = parse_price(data["price"])

            upload = read_image(request.files.get("image"), required=False)
            if upload:
                fields["image"], fields["image_content_type"] = upload

            if not fields:
                raise ValidationError("No update data provided")

            set_clause = ", ".join(f"{column} = %s" for column in fields)
            set_clause += ", updated_at = CURRENT_TIMESTAMP"
            values = list(fields.values()) + [event_id]

            cur.execute(f"UPDATE events SET {set_clause} WHERE event_id = %s;", values)
            event = fetch_event(cur, event_id)
            conn.commit()

    except psycopg2.Error:
        conn.rollback()
        logging.exception(f"Database error updating event {event_id}")
        raise ServerError("Failed to update event")
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

    return jsonify({
        "message": "Event updated successfully",
        "event": serialize_event(event),
    }), 200


# --- DELETE ---
@events_bp.route("/<int:event_id>", methods=["DELETE"])
@token_required
def delete_event(event_id: int) -> Tuple[Response, int]:
    """
    Delete an event. Only the creator may delete it; attendees cascade.

    Returns:
        200: {message}
        401: Not authenticated.
        403: Caller is not the creator.
        404: Event not found.
    """
    try:
        with closing(get_db()) as conn, conn:
            with conn.cursor() as cur:
                fetch_owned_event(cur, event_id)
                cur.execute("DELETE FROM events WHERE event_id = %s;", (event_id,))
                conn.commit()

                if cur.rowcount == 0:
                    raise NotFound("Event not found or already deleted")
    except APIError:
        raise
    except Exception:
        logging.exception(f"Database error deleting event {event_id}")
        raise ServerError("Failed to delete event")

    return jsonify({"message": "Event deleted successfully"}), 200


# --- ATTENDANCE ---
@events_bp.route("/<int:event_id>/attend", methods=["POST"])
@token_required
def attend_event(event_id: int) -> Tuple[Response, int]:
    """
    Add the current user to an event's attendee list.

    Joining twice is a no-op. Only upcoming events with free capacity
    can be joined.

    Returns:
        200: {message, event}
        400: Event is not upcoming, or is full.
        401: Not authenticated.
        404: Event not found.
    """
    user_id = g.current_user["id"]

    try:
        with closing(get_db()) as conn, conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT e.status, e.max_attendees,
                           (SELECT COUNT(*) FROM event_attendees a
                             WHERE a.event_id = e.event_id) AS attendee_count,
                           EXISTS (SELECT 1 FROM event_attendees a
                                    WHERE a.event_id = e.event_id AND a.user_id = %s) AS attending
                    FROM events e
                    WHERE e.event_id = %s;
                    """,
                    (user_id, event_id),
                )
                ev = cur.fetchone()
                if not ev:
                    raise NotFound("Event not found")

                if not ev["attending"]:
                    if ev["status"] != "upcoming":
                        raise ValidationError("Only upcoming events can be joined")
                    if ev["max_attendees"] is not None and ev["attendee_count"] >= ev["max_attendees"]:
                        raise ValidationError("Event is full")

                    cur.execute(
                        """
                        INSERT INTO event_attendees (event_id, user_id)
                        VALUES (%s, %s)
                        ON CONFLICT (event_id, user_id) DO NOTHING;
                        """,
                        (event_id, user_id),
                    )

                event = fetch_event(cur, event_id)
                conn.commit()
    except APIError:
        raise
    except Exception:
        logging.exception(f"Database error joining event {event_id}")
        raise ServerError("Failed to join event")

    return jsonify({"message": "You are attending this event", "event": serialize_event(event)}), 200


@events_bp.route("/<int:event_id>/attend", methods=["DELETE"])
@token_required
def leave_event(event_id: int) -> Tuple[Response, int]:
    """
    Remove the current user from an event's attendee list.

    Returns:
        200: {message, event}
        401: Not authenticated.
        404: Event not found.
    """
    try:
        with closing(get_db()) as conn, conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM event_attendees WHERE event_id = %s AND user_id = %s;",
                    (event_id, g.current_user["id"]),
                )
                event = fetch_event(cur, event_id)
                if not event:
                    raise NotFound("Event not found")
                conn.commit()
    except APIError:
        raise
    except Exception:
        logging.exception(f"Database error leaving event {event_id}")
        raise ServerError("Failed to leave event")

    return jsonify({"message": "You are no longer attending this event", "event": serialize_event(event)}), 200
