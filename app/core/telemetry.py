from __future__ import annotations

from pathlib import Path

import duckdb

from app.core.config import get_settings


class TelemetryStore:
    """DuckDB telemetry store holding audit logs and view refresh status"""

    _instance: "TelemetryStore | None" = None

    def __new__(cls) -> "TelemetryStore":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._init_db()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Close the shared connection so the next use reopens from settings"""
        if cls._instance is not None:
            cls._instance._conn.close()
        cls._instance = None

    def _init_db(self) -> None:
        settings = get_settings()
        Path(settings.telemetry_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = duckdb.connect(settings.telemetry_path)
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS logs (
                timestamp TIMESTAMP,
                level VARCHAR,
                event VARCHAR,
                subject_id VARCHAR,
                stage VARCHAR,
                actor VARCHAR,
                error_code VARCHAR,
                message VARCHAR,
                record_count INTEGER
            )
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS view_status (
                view_id VARCHAR,
                last_refresh_at TIMESTAMP,
                last_success_at TIMESTAMP,
                last_status VARCHAR,
                last_error_code VARCHAR,
                record_count INTEGER
            )
            """
        )

    def insert_log(self, record: dict) -> None:
        """Store one log record

        Args:
            record: log record dictionary
        """
        self._conn.execute(
            """
            INSERT INTO logs (timestamp, level, event, subject_id, stage, actor, error_code, message, record_count)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                record.get("timestamp"),
                record.get("level"),
                record.get("event"),
                record.get("subject_id"),
                record.get("stage"),
                record.get("actor"),
                record.get("error_code"),
                record.get("message"),
                record.get("record_count"),
            ],
        )

    def update_status(self, status: dict) -> None:
        """Upsert the refresh status row of one view

        Args:
            status: status record dictionary
        """
        self._conn.execute(
            """
            DELETE FROM view_status WHERE view_id = ?
            """,
            [status.get("view_id")],
        )
        self._conn.execute(
            """
            INSERT INTO view_status (view_id, last_refresh_at, last_success_at, last_status, last_error_code, record_count)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                status.get("view_id"),
                status.get("last_refresh_at"),
                status.get("last_success_at"),
                status.get("last_status"),
                status.get("last_error_code"),
                status.get("record_count"),
            ],
        )

    def query_logs(self, where: str, params: list) -> list[tuple]:
        """Query logs with a WHERE clause

        Args:
            where: SQL WHERE clause
            params: parameter list

        Returns:
            Row list
        """
        query = "SELECT * FROM logs"
        if where:
            query += f" WHERE {where}"
        query += " ORDER BY timestamp"
        return self._conn.execute(query, params).fetchall()

    def query_status(self) -> list[tuple]:
        """Query the refresh status of every view

        Returns:
            Row list
        """
        return self._conn.execute(
            "SELECT * FROM view_status ORDER BY view_id"
        ).fetchall()
