# CRM board — document store client
#
# Talks to crm_server.py over HTTP: GET /api/data, POST /api/data.
# Saves are fire-and-forget: SnapshotSaver keeps only the latest snapshot and
# writes it from a background thread, so the UI never waits on the network.

import logging
import threading
from typing import Optional, Dict, Any, Callable

import requests

from .store import has_required_keys

logger = logging.getLogger(__name__)


class DocumentClient:
    """Whole-document read and overwrite against the CRM server."""

    def __init__(self, base_url: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def data_url(self) -> str:
        return f"{self.base_url}/api/data"

    def fetch(self) -> Dict[str, Any]:
        """GET the document. Raises on network errors or a malformed body."""
        r = self.session.get(self.data_url, timeout=self.timeout)
        r.raise_for_status()
        document = r.json()
        if not has_required_keys(document):
            raise ValueError(f"{self.data_url} returned a document without cards/columns/columnOrder")
        return document

    def push(self, document: Dict[str, Any]) -> bool:
        """POST the document. Never raises; failures are logged."""
        try:
            r = self.session.post(self.data_url, json=document, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Saving board to {self.data_url} failed: {e}")
            return False
        if not r.ok:
            logger.error(f"Saving board to {self.data_url} failed: HTTP {r.status_code} {r.text[:200]}")
            return False
        return True


class SnapshotSaver:
    """
    Background writer for board snapshots.

    submit() never blocks on I/O. Only the newest pending snapshot is written;
    intermediate ones are dropped (each write is a full overwrite anyway).
    A failed write is logged and not retried until the next submit.
    """

    def __init__(self, write: Callable[[Dict[str, Any]], bool]):
        self.write = write
        self._pending: Optional[Dict[str, Any]] = None
        self._cond = threading.Condition()
        self._busy = False
        self._closed = False
        self._thread = threading.Thread(target=self._worker, name="snapshot-saver", daemon=True)
        self._thread.start()

    def submit(self, document: Dict[str, Any]) -> None:
        with self._cond:
            if self._closed:
                logger.warning("Snapshot submitted after saver was closed; dropped")
                return
            self._pending = document
            self._cond.notify_all()

    def _worker(self) -> None:
        while True:
            with self._cond:
                while self._pending is None and not self._closed:
                    self._cond.wait()
                if self._pending is None and self._closed:
                    return
                document, self._pending = self._pending, None
                self._busy = True
            try:
                if not self.write(document):
                    logger.warning("Board snapshot not saved; in-memory state kept")
            except Exception as e:
                logger.error(f"Board snapshot writer crashed: {e}")
            finally:
                with self._cond:
                    self._busy = False
                    self._cond.notify_all()

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait until nothing is pending or being written. False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self._pending is None and not self._busy, timeout)

    def close(self, timeout: Optional[float] = None) -> None:
        """Write whatever is pending, then stop the worker thread."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        self._thread.join(timeout)
