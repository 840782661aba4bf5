from __future__ import annotations

import copy
import threading
from typing import Callable

from app.core.errors import ClinicError
from app.core.events import ChangeBus, ChangeEvent
from app.core.logger import log_event
from app.core.telemetry import TelemetryStore
from app.utils.parsing import utc_timestamp


class LiveView:
    """Cached projection that is fully re-read on every refresh

    A failed refresh keeps the last successful snapshot, so readers never
    see state past the last good read.
    """

    def __init__(
        self,
        view_id: str,
        collections: tuple[str, ...],
        loader: Callable[[], list[dict]],
    ) -> None:
        self.view_id = view_id
        self.collections = collections
        self._loader = loader
        self._records: list[dict] = []
        self._lock = threading.Lock()
        self.refreshed_at: str | None = None

    def refresh(self) -> bool:
        """Re-run the loader

        Returns:
            True when the snapshot was replaced
        """
        started = utc_timestamp()
        try:
            records = self._loader()
        except ClinicError as exc:
            log_event(
                "view_refresh_failed",
                "ERROR",
                self.view_id,
                "refresh",
                exc.message,
                error_code=exc.code,
            )
            TelemetryStore().update_status(
                {
                    "view_id": self.view_id,
                    "last_refresh_at": started,
                    "last_success_at": self.refreshed_at,
                    "last_status": "falha",
                    "last_error_code": exc.code,
                    "record_count": len(self._records),
                }
            )
            return False
        with self._lock:
            self._records = records
            self.refreshed_at = started
        TelemetryStore().update_status(
            {
                "view_id": self.view_id,
                "last_refresh_at": started,
                "last_success_at": started,
                "last_status": "sucesso",
                "last_error_code": None,
                "record_count": len(records),
            }
        )
        return True

    def snapshot(self) -> list[dict]:
        with self._lock:
            return copy.deepcopy(self._records)

    def on_change(self, event: ChangeEvent) -> None:
        if event.collection in self.collections:
            self.refresh()


class ViewRegistry:
    """Open live views, refreshed by change events and by reconciliation"""

    def __init__(self, bus: ChangeBus) -> None:
        self._bus = bus
        self._views: dict[str, LiveView] = {}
        self._unsubscribers: dict[str, Callable[[], None]] = {}
        self._lock = threading.Lock()

    def open(
        self,
        view_id: str,
        collections: tuple[str, ...],
        loader: Callable[[], list[dict]],
    ) -> LiveView:
        """Return the view with this id, creating and loading it if needed"""
        with self._lock:
            view = self._views.get(view_id)
            if view is not None:
                return view
            view = LiveView(view_id, collections, loader)
            self._views[view_id] = view
            self._unsubscribers[view_id] = self._bus.subscribe(view.on_change)
        view.refresh()
        return view

    def close(self, view_id: str) -> None:
        with self._lock:
            self._views.pop(view_id, None)
            unsubscribe = self._unsubscribers.pop(view_id, None)
        if unsubscribe:
            unsubscribe()

    def views(self) -> list[LiveView]:
        with self._lock:
            return list(self._views.values())

    def refresh_all(self) -> int:
        """Re-read every open view

        Returns:
            Number of views refreshed successfully
        """
        return sum(1 for view in self.views() if view.refresh())
