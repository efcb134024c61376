"""
This module defines the PersistenceService for database interactions.

Every public method runs in its own connection and transaction, so the
service can be shared between the asyncio loop and worker threads.
"""

import logging
from datetime import date
from typing import Iterable, List, Optional

from ..clock import local_today
from ..config import (DEFAULT_NOTIFY_OFFSET, DEFAULT_NOTIFY_TIME,
                      EVENT_INSERT_CHUNK_SIZE, WASTE_SCHEDULE_DB_PATH)
from ..database import get_db_connection
from ..models import (LocationBinding, NotificationTask, PickupEvent,
                      Subscriber, WasteType, canonical_waste_type)

logger = logging.getLogger(__name__)

# SQLite allows 999 bound parameters per statement in older builds
MAX_CHUNK_SIZE = 333


def _to_binding(row) -> LocationBinding:
    return LocationBinding(
        id=row["id"],
        chat_id=row["user_id"],
        location_id=row["location_id"],
        notify_time=row["notify_time"],
        notify_offset=row["notify_offset"],
        alias=row["alias"],
    )


class PersistenceService:
    """Handles all database interactions for the application."""

    def __init__(self, db_path: str = WASTE_SCHEDULE_DB_PATH):
        self.db_path = db_path

    def init_db(self) -> None:
        """Initialize SQLite schema if not exists."""
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS user_locations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    location_id TEXT NOT NULL,
                    notify_time TEXT NOT NULL DEFAULT '{DEFAULT_NOTIFY_TIME}',
                    notify_offset INTEGER NOT NULL DEFAULT {DEFAULT_NOTIFY_OFFSET},
                    alias TEXT,
                    FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
                    UNIQUE(user_id, location_id)
                )
                """
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_user_locations_user_id ON user_locations(user_id)"
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_user_locations_notify_time ON user_locations(notify_time)"
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS subscriptions (
                    user_location_id INTEGER NOT NULL,
                    waste_type TEXT NOT NULL,
                    PRIMARY KEY (user_location_id, waste_type),
                    FOREIGN KEY (user_location_id) REFERENCES user_locations(id) ON DELETE CASCADE
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS pickup_events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    location_id TEXT NOT NULL,
                    date DATE NOT NULL,
                    waste_type TEXT NOT NULL,
                    UNIQUE(location_id, date, waste_type)
                )
                """
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_pickup_events_date ON pickup_events(date)"
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
                    level TEXT NOT NULL,
                    message TEXT NOT NULL,
                    logger_name TEXT
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS system_info (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
                """
            )

    # --- Users ---

    def create_user(self, chat_id: int) -> None:
        """Creates a user if it does not exist yet."""
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute(
                "INSERT INTO users (id) VALUES (?) ON CONFLICT(id) DO NOTHING",
                (chat_id,),
            )

    def find_user(self, chat_id: int) -> Optional[Subscriber]:
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute("SELECT id, created_at FROM users WHERE id = ?", (chat_id,))
            row = cur.fetchone()
        return Subscriber(chat_id=row["id"], created_at=row["created_at"]) if row else None

    def delete_user(self, chat_id: int) -> bool:
        """Deletes a user together with its locations and subscriptions."""
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute("DELETE FROM users WHERE id = ?", (chat_id,))
            return cur.rowcount > 0

    # --- Locations ---

    def upsert_user_location(
        self, chat_id: int, location_id: str, alias: Optional[str]
    ) -> int:
        """
        Adds a location for a user, creating the user on first use.

        On conflict only the alias is updated; the notification schedule
        is left as it was. Returns the id of the location row.
        """
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute(
                "INSERT INTO users (id) VALUES (?) ON CONFLICT(id) DO NOTHING",
                (chat_id,),
            )
            cur.execute(
                """
                INSERT INTO user_locations (user_id, location_id, alias) VALUES (?, ?, ?)
                ON CONFLICT(user_id, location_id) DO UPDATE SET alias = excluded.alias
                """,
                (chat_id, location_id, alias),
            )
            cur.execute(
                "SELECT id FROM user_locations WHERE user_id = ? AND location_id = ?",
                (chat_id, location_id),
            )
            return cur.fetchone()["id"]

    def get_user_locations(self, chat_id: int) -> List[LocationBinding]:
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute(
                "SELECT id, user_id, location_id, notify_time, notify_offset, alias "
                "FROM user_locations WHERE user_id = ? ORDER BY id",
                (chat_id,),
            )
            return [_to_binding(row) for row in cur.fetchall()]

    def get_user_location(self, chat_id: int, binding_id: int) -> Optional[LocationBinding]:
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute(
                "SELECT id, user_id, location_id, notify_time, notify_offset, alias "
                "FROM user_locations WHERE user_id = ? AND id = ?",
                (chat_id, binding_id),
            )
            row = cur.fetchone()
        return _to_binding(row) if row else None

    def delete_user_location(self, chat_id: int, alias_or_id: str) -> bool:
        """Deletes a user's location matched by alias or location code."""
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute(
                "DELETE FROM user_locations WHERE user_id = ? AND (alias = ? OR location_id = ?)",
                (chat_id, alias_or_id, alias_or_id),
            )
            return cur.rowcount > 0

    def delete_user_location_by_id(self, chat_id: int, binding_id: int) -> bool:
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute(
                "DELETE FROM user_locations WHERE user_id = ? AND id = ?",
                (chat_id, binding_id),
            )
            return cur.rowcount > 0

    def update_notify_time(self, chat_id: int, binding_id: int, notify_time: str) -> bool:
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute(
                "UPDATE user_locations SET notify_time = ? WHERE user_id = ? AND id = ?",
                (notify_time, chat_id, binding_id),
            )
            return cur.rowcount > 0

    def update_notify_offset(self, chat_id: int, binding_id: int, notify_offset: int) -> bool:
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute(
                "UPDATE user_locations SET notify_offset = ? WHERE user_id = ? AND id = ?",
                (notify_offset, chat_id, binding_id),
            )
            return cur.rowcount > 0

    def get_distinct_location_ids(self) -> List[str]:
        """Returns every location code that at least one user follows."""
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute(
                "SELECT DISTINCT location_id FROM user_locations ORDER BY location_id"
            )
            return [row["location_id"] for row in cur.fetchall()]

    # --- Subscriptions ---

    def add_subscriptions(self, binding_id: int, waste_types: Iterable[WasteType]) -> None:
        with get_db_connection(self.db_path) as (conn, cur):
            cur.executemany(
                "INSERT INTO subscriptions (user_location_id, waste_type) VALUES (?, ?) "
                "ON CONFLICT DO NOTHING",
                [(binding_id, waste_type.value) for waste_type in waste_types],
            )

    def remove_subscription(self, binding_id: int, waste_type: WasteType) -> bool:
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute(
                "DELETE FROM subscriptions WHERE user_location_id = ? AND waste_type = ?",
                (binding_id, waste_type.value),
            )
            return cur.rowcount > 0

    def get_subscriptions(self, binding_id: int) -> List[WasteType]:
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute(
                "SELECT waste_type FROM subscriptions WHERE user_location_id = ? ORDER BY waste_type",
                (binding_id,),
            )
            return [canonical_waste_type(row["waste_type"]) for row in cur.fetchall()]

    # --- Pickup events ---

    def replace_future_events(
        self,
        location_id: str,
        events: Iterable[PickupEvent],
        today: Optional[date] = None,
        chunk_size: int = EVENT_INSERT_CHUNK_SIZE,
    ) -> int:
        """
        Replaces all events of a location dated today or later.

        Events before `today` are history: existing ones are never touched and
        supplied ones are discarded. Deletion and insertion run in a single
        transaction, so a failure leaves the previous events in place.

        Args:
            location_id: The location whose events are replaced.
            events: The freshly fetched events of that location.
            today: The first date considered volatile. Defaults to the local date.
            chunk_size: Number of rows per INSERT statement.

        Returns:
            The number of inserted events.

        Raises:
            ValueError: If an event belongs to another location.
            StoreError: If the transaction failed and was rolled back.
        """
        today = today or local_today()
        chunk_size = max(1, min(chunk_size, MAX_CHUNK_SIZE))
        today_str = today.isoformat()

        rows = []
        for event in events:
            if event.location_id != location_id:
                raise ValueError(
                    f"Event for location {event.location_id} passed to sync of {location_id}"
                )
            if event.date < today:
                logger.debug(f"Discarding past event {event} for location {location_id}.")
                continue
            rows.append((location_id, event.date.isoformat(), event.waste_type.value))
        rows = list(dict.fromkeys(rows))

        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute(
                "DELETE FROM pickup_events WHERE location_id = ? AND date >= ?",
                (location_id, today_str),
            )
            for start in range(0, len(rows), chunk_size):
                chunk = rows[start : start + chunk_size]
                placeholders = ", ".join(["(?, ?, ?)"] * len(chunk))
                cur.execute(
                    f"INSERT INTO pickup_events (location_id, date, waste_type) VALUES {placeholders}",
                    [value for row in chunk for value in row],
                )
        return len(rows)

    def get_events_for_location(self, location_id: str) -> List[PickupEvent]:
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute(
                "SELECT location_id, date, waste_type FROM pickup_events "
                "WHERE location_id = ? ORDER BY date, waste_type",
                (location_id,),
            )
            return [
                PickupEvent(
                    row["location_id"],
                    date.fromisoformat(row["date"]),
                    canonical_waste_type(row["waste_type"]),
                )
                for row in cur.fetchall()
            ]

    def has_future_events(self, location_id: str, today: date) -> bool:
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute(
                "SELECT 1 FROM pickup_events WHERE location_id = ? AND date >= ? LIMIT 1",
                (location_id, today.isoformat()),
            )
            return cur.fetchone() is not None

    def get_next_pickups(self, chat_id: int, today: date) -> List[dict]:
        """
        Retrieves, per location of the user, the subscribed pickups on the
        earliest upcoming date.
        """
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute(
                """
                SELECT ul.id AS binding_id, ul.location_id, ul.alias, e.date, e.waste_type
                FROM user_locations ul
                JOIN subscriptions s ON ul.id = s.user_location_id
                JOIN pickup_events e ON ul.location_id = e.location_id AND s.waste_type = e.waste_type
                WHERE ul.user_id = ?
                  AND e.date = (
                      SELECT MIN(e2.date) FROM pickup_events e2
                      JOIN subscriptions s2 ON s2.waste_type = e2.waste_type
                      WHERE e2.location_id = ul.location_id
                        AND s2.user_location_id = ul.id
                        AND e2.date >= ?
                  )
                ORDER BY ul.id, e.waste_type
                """,
                (chat_id, today.isoformat()),
            )
            return [dict(row) for row in cur.fetchall()]

    # --- Notifications ---

    def get_users_to_notify(
        self, check_time: str, current_date: str, next_date: str
    ) -> List[NotificationTask]:
        """
        Joins locations scheduled at `check_time` with their subscriptions and
        the pickups on their target date: `current_date` for same-day
        locations and `next_date` for day-before locations.
        """
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute(
                """
                SELECT ul.user_id AS chat_id, s.waste_type, ul.alias, ul.location_id, ul.notify_offset
                FROM user_locations ul
                JOIN subscriptions s ON ul.id = s.user_location_id
                JOIN pickup_events e ON ul.location_id = e.location_id AND s.waste_type = e.waste_type
                WHERE ul.notify_time = ?
                  AND (
                       (ul.notify_offset = 0 AND e.date = ?)
                    OR (ul.notify_offset = 1 AND e.date = ?)
                  )
                """,
                (check_time, current_date, next_date),
            )
            return [
                NotificationTask(
                    chat_id=row["chat_id"],
                    waste_type=canonical_waste_type(row["waste_type"]),
                    location_id=row["location_id"],
                    alias=row["alias"],
                    notify_offset=row["notify_offset"],
                )
                for row in cur.fetchall()
            ]

    # --- Operations ---

    def record_system_info(self, key: str, value: str) -> None:
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute(
                "INSERT OR REPLACE INTO system_info (key, value) VALUES (?, ?)",
                (key, value),
            )

    def get_system_info(self, key: str) -> Optional[str]:
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute("SELECT value FROM system_info WHERE key = ?", (key,))
            row = cur.fetchone()
        return row["value"] if row else None

    def get_counts(self, today: date) -> dict:
        """Returns the row counts shown on the dashboard."""
        with get_db_connection(self.db_path) as (conn, cur):
            return {
                "subscribers": cur.execute("SELECT COUNT(*) FROM users").fetchone()[0],
                "locations": cur.execute("SELECT COUNT(*) FROM user_locations").fetchone()[0],
                "distinct_locations": cur.execute(
                    "SELECT COUNT(DISTINCT location_id) FROM user_locations"
                ).fetchone()[0],
                "subscriptions": cur.execute("SELECT COUNT(*) FROM subscriptions").fetchone()[0],
                "upcoming_events": cur.execute(
                    "SELECT COUNT(*) FROM pickup_events WHERE date >= ?",
                    (today.isoformat(),),
                ).fetchone()[0],
            }

    def get_all_logs(self, limit: int = 100) -> List[dict]:
        """Retrieves the latest logs, ordered by timestamp descending."""
        with get_db_connection(self.db_path) as (conn, cur):
            cur.execute(
                "SELECT timestamp, level, message, logger_name FROM logs ORDER BY id DESC LIMIT ?",
                (limit,),
            )
            return [dict(row) for row in cur.fetchall()]
