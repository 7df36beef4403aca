"""
Outbound notifications for flagged submissions and issued licenses.

Core operations only publish domain events onto a queue. A dispatcher thread
delivers them through a Notifier, so a failed delivery never reaches the
operation that produced the event.
"""

import queue
import threading
import structlog
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from workledger import config
from workledger.core.errors import NotificationError
from workledger.models.license import License
from workledger.models.similarity import PlagiarismResult
from workledger.models.work import Work

logger = structlog.get_logger()

@dataclass(frozen=True)
class WorkFlagged:
    email: str
    work_title: str
    work_id: Optional[str]
    result: PlagiarismResult
    matched_works: List[Work] = field(default_factory=list)

@dataclass(frozen=True)
class LicenseIssued:
    email: str
    work_title: str
    license: License

DomainEvent = Union[WorkFlagged, LicenseIssued]

class Notifier(Protocol):
    def notify_plagiarism_flagged(self, email: str, work_title: str, work_id: Optional[str],
                                  result: PlagiarismResult, matched_works: List[Work]) -> None:
        ...

    def notify_license_issued(self, email: str, work_title: str, license: License) -> None:
        ...

class LoggingNotifier:
    """Notifier that only records what would have been sent."""

    def notify_plagiarism_flagged(self, email, work_title, work_id, result, matched_works):
        logger.info("Plagiarism alert",
                   email=email, work_title=work_title, work_id=work_id,
                   score=result.score, matched_work_ids=[w.id for w in matched_works])

    def notify_license_issued(self, email, work_title, license):
        logger.info("License issued notification",
                   email=email, work_title=work_title, license_id=license.id)

class WebhookNotifier:
    """POSTs notification payloads to a mail relay endpoint."""

    def __init__(self, endpoint: str, timeout: float = config.NOTIFY_TIMEOUT_SECONDS):
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = requests.Session()

        # Configure retry strategy
        retry_strategy = Retry(
            total=3,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["POST"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        logger.info("Webhook notifier initialized", endpoint=endpoint)

    def notify_plagiarism_flagged(self, email, work_title, work_id, result, matched_works):
        titles = {w.id: w.title for w in matched_works}
        top_matches = result.matches[:3]
        self._post({
            "kind": "plagiarism_flagged",
            "to": email,
            "workTitle": work_title,
            "workId": work_id,
            "score": result.score,
            "similarWorks": [
                {
                    "title": titles.get(m.work_id, m.work_title or "Unknown Work"),
                    "similarity": round(m.similarity * 100),
                }
                for m in top_matches
            ],
            "overlappingPhrases": [p for m in top_matches for p in m.overlapping_phrases[:3]],
        })

    def notify_license_issued(self, email, work_title, license):
        self._post({
            "kind": "license_issued",
            "to": email,
            "workTitle": work_title,
            "licenseId": license.id,
            "authorName": license.author_name or "Not specified",
            "workType": license.work_type or "Not specified",
            "issuedAt": license.issued_at.isoformat(),
        })

    def _post(self, payload: dict) -> None:
        try:
            response = self.session.post(self.endpoint, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise NotificationError(f"Webhook delivery failed: {e}") from e

        logger.info("Notification delivered", kind=payload["kind"], to=payload["to"])

def build_notifier() -> Notifier:
    """Webhook delivery when an endpoint is configured, log-only otherwise."""
    if config.NOTIFY_WEBHOOK_URL:
        return WebhookNotifier(config.NOTIFY_WEBHOOK_URL)
    logger.warning("No notification webhook configured, notifications will only be logged")
    return LoggingNotifier()

class NotificationDispatcher:
    """Outbound event queue plus the worker thread that drains it."""

    def __init__(self, notifier: Optional[Notifier] = None):
        self.notifier = notifier or build_notifier()
        self.events: "queue.Queue[Optional[DomainEvent]]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    def publish(self, event: DomainEvent) -> None:
        """Enqueue an event. Never raises."""
        try:
            self.events.put_nowait(event)
            logger.debug("Event published", event_type=type(event).__name__)
        except Exception as e:
            logger.error("Failed to publish event", event_type=type(event).__name__, error=str(e))

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run, name="notification-dispatcher", daemon=True)
        self._thread.start()
        logger.info("Notification dispatcher started")

    def stop(self, timeout: float = 5.0) -> bool:
        """Ask the worker to exit. Returns False if it is still running after timeout."""
        if self._thread is None:
            return True
        self.events.put(None)
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Notification dispatcher did not stop in time", timeout=timeout)
            return False
        self._thread = None
        logger.info("Notification dispatcher stopped")
        return True

    def drain(self) -> int:
        """Deliver every pending event on the calling thread. Returns how many were handled."""
        handled = 0
        while True:
            try:
                event = self.events.get_nowait()
            except queue.Empty:
                return handled
            if event is not None:
                self.deliver(event)
                handled += 1
            self.events.task_done()

    def deliver(self, event: DomainEvent) -> bool:
        """Hand one event to the notifier, logging and swallowing delivery failures."""
        try:
            if isinstance(event, WorkFlagged):
                self.notifier.notify_plagiarism_flagged(
                    event.email, event.work_title, event.work_id, event.result, event.matched_works)
            elif isinstance(event, LicenseIssued):
                self.notifier.notify_license_issued(event.email, event.work_title, event.license)
            else:
                logger.warning("Unknown event type", event_type=type(event).__name__)
                return False
            return True
        except Exception as e:
            logger.error("Failed to send notification",
                        event_type=type(event).__name__, email=event.email, error=str(e))
            return False

    def _run(self) -> None:
        while True:
            event = self.events.get()
            try:
                if event is None:
                    return
                self.deliver(event)
            finally:
                self.events.task_done()
