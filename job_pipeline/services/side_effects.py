"""
Side-effect dispatcher for the job pipeline
Best-effort fan-out of in-app notifications and emails after successful mutations
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import httpx
from sqlalchemy import select

from ..config import (
    APP_BASE_URL, DISPATCH_TIMEOUT_MS, DISPATCH_WORKER_POOL_SIZE,
    EMAIL_FROM, EMAIL_PROVIDER, EMAIL_WEBHOOK_URL,
)
from ..db import session_scope
from ..models.directory import Organization, User
from ..models.notification import Notification
from . import events
from .events import JobEvent
from .prometheus_metrics import prometheus_metrics

logger = logging.getLogger("side_effects")


def job_link(job_id: int) -> str:
    return f"{APP_BASE_URL}/hub/workflow/jobs/{job_id}"


@dataclass(frozen=True)
class Contact:
    user_id: int
    email: str
    name: str


class ContactDirectory:
    """Resolves notification recipients from the users/organizations tables"""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory

    def get_contacts(self, user_ids: Iterable[int]) -> Dict[int, Contact]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        with session_scope(self.session_factory) as db:
            users = db.execute(select(User).where(User.id.in_(ids))).scalars().all()
            return {u.id: Contact(u.id, u.email, u.display_name) for u in users}

    def client_contact(self, client_id: Optional[int], client_type: Optional[str]) -> Optional[Contact]:
        """Individual clients are users; organizations are reached through their primary contact"""
        if client_id is None:
            return None
        if client_type == "individual":
            return self.get_contacts([client_id]).get(client_id)

        with session_scope(self.session_factory) as db:
            org = db.get(Organization, client_id)
            if org is None or org.primary_contact_id is None:
                return None
            contact_id = org.primary_contact_id
            org_name = org.name
        contact = self.get_contacts([contact_id]).get(contact_id)
        if contact is None:
            return None
        return Contact(contact.user_id, contact.email, org_name)

    def client_name(self, client_id: Optional[int], client_type: Optional[str]) -> str:
        if client_id is None:
            return ""
        with session_scope(self.session_factory) as db:
            if client_type == "individual":
                user = db.get(User, client_id)
                return user.display_name if user else ""
            org = db.get(Organization, client_id)
            return org.name if org else ""


class InAppNotifier:
    """Persists in-app notifications; the insert runs off the event loop"""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory

    def _insert(self, user_id: int, type: str, title: str, message: str, link: Optional[str]):
        with session_scope(self.session_factory) as db:
            db.add(Notification(user_id=user_id, type=type, title=title, message=message, link=link))

    async def notify(self, user_id: int, type: str, title: str, message: str, link: Optional[str] = None):
        await asyncio.to_thread(self._insert, user_id, type, title, message, link)


class ConsoleEmailSender:
    """Logs emails instead of sending them"""

    async def send_template_email(self, recipient: str, template_name: str, data: Dict[str, Any]):
        logger.info("Email (console provider)", extra={
            "component": "email",
            "recipient": recipient,
            "template": template_name,
            "email_from": EMAIL_FROM,
            "data": data,
        })


class WebhookEmailSender:
    """Posts template emails to a mail-service webhook"""

    def __init__(self, url: str, timeout_ms: int = DISPATCH_TIMEOUT_MS):
        self.url = url
        self.timeout = timeout_ms / 1000.0

    async def send_template_email(self, recipient: str, template_name: str, data: Dict[str, Any]):
        payload = {"from": EMAIL_FROM, "to": recipient, "template": template_name, "data": data}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.url, json=payload)
            response.raise_for_status()


def build_email_sender(provider: str = EMAIL_PROVIDER, webhook_url: str = EMAIL_WEBHOOK_URL):
    if provider == "webhook":
        if not webhook_url:
            logger.warning("EMAIL_PROVIDER=webhook without EMAIL_WEBHOOK_URL, using console", extra={
                "component": "email"
            })
            return ConsoleEmailSender()
        return WebhookEmailSender(webhook_url)
    return ConsoleEmailSender()


class SideEffectDispatcher:
    """Unbounded event queue drained by a small worker pool.

    Events are handed over only after the mutation that produced them has
    committed. Nothing here ever reaches the caller: failures are logged and
    counted.
    """

    def __init__(self, notifier=None, email_sender=None, directory: Optional[ContactDirectory] = None,
                 worker_pool_size: int = DISPATCH_WORKER_POOL_SIZE, timeout_ms: int = DISPATCH_TIMEOUT_MS):
        self.notifier = notifier or InAppNotifier()
        self.email_sender = email_sender or build_email_sender()
        self.directory = directory or ContactDirectory()
        self.worker_pool_size = worker_pool_size
        self.timeout_ms = timeout_ms
        self.queue: Optional[asyncio.Queue] = None
        self.workers: List[asyncio.Task] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def initialize(self):
        """Create the queue on the running loop"""
        self._loop = asyncio.get_running_loop()
        self.queue = asyncio.Queue()
        logger.info("Side-effect dispatcher initialized", extra={
            "component": "side_effects",
            "worker_pool_size": self.worker_pool_size,
            "timeout_ms": self.timeout_ms,
        })

    async def start_workers(self):
        if not self.queue:
            raise RuntimeError("Dispatcher not initialized")

        for i in range(self.worker_pool_size):
            self.workers.append(asyncio.create_task(self._worker_loop(i)))

        logger.info("Side-effect workers started", extra={
            "component": "side_effects",
            "worker_count": self.worker_pool_size
        })

    async def stop_workers(self):
        for worker in self.workers:
            worker.cancel()
        if self.workers:
            await asyncio.gather(*self.workers, return_exceptions=True)
        self.workers.clear()
        self.queue = None
        self._loop = None
        logger.info("Side-effect workers stopped", extra={"component": "side_effects"})

    @property
    def running(self) -> bool:
        return self.queue is not None and bool(self.workers)

    def enqueue(self, event: JobEvent) -> bool:
        """Hand an event to the workers from any thread; never blocks, never raises"""
        if not self.queue or self._loop is None or self._loop.is_closed():
            logger.warning("Dispatcher not running, dropping event", extra={
                "component": "side_effects",
                "kind": event.kind,
                "job_id": event.job_id
            })
            prometheus_metrics.increment_side_effect("queue", "dropped")
            return False

        try:
            in_loop = asyncio.get_running_loop() is self._loop
        except RuntimeError:
            in_loop = False

        if in_loop:
            self._put(event)
            return True

        try:
            self._loop.call_soon_threadsafe(self._put, event)
        except RuntimeError as e:
            # Loop closed after the check above
            logger.warning("Dispatcher loop closed, dropping event", extra={
                "component": "side_effects",
                "kind": event.kind,
                "job_id": event.job_id,
                "error": str(e)
            })
            prometheus_metrics.increment_side_effect("queue", "dropped")
            return False
        return True

    def dispatch_all(self, emitted: Iterable[JobEvent]) -> int:
        return sum(1 for event in emitted if self.enqueue(event))

    def _put(self, event: JobEvent):
        if self.queue is None:
            return
        self.queue.put_nowait(event)
        prometheus_metrics.set_side_effect_queue_depth(self.queue.qsize())

    async def drain(self):
        """Wait until every queued event has been handled"""
        if self.queue:
            await self.queue.join()

    async def _worker_loop(self, worker_id: int):
        logger.info("Side-effect worker started", extra={
            "component": "side_effects",
            "worker_id": worker_id
        })

        while True:
            try:
                event = await self.queue.get()
                try:
                    await self.handle(event)
                finally:
                    self.queue.task_done()
                    prometheus_metrics.set_side_effect_queue_depth(self.queue.qsize())
            except asyncio.CancelledError:
                logger.info("Side-effect worker cancelled", extra={
                    "component": "side_effects",
                    "worker_id": worker_id
                })
                break
            except Exception as e:
                logger.error("Side-effect worker loop error", extra={
                    "component": "side_effects",
                    "worker_id": worker_id,
                    "error": str(e)
                })

    async def handle(self, event: JobEvent):
        """Run every delivery for one event under the dispatch timeout"""
        start = time.time()
        try:
            await asyncio.wait_for(self._deliver(event), timeout=self.timeout_ms / 1000.0)
        except asyncio.TimeoutError:
            prometheus_metrics.increment_side_effect("event", "timeout")
            logger.warning("Side-effect event timed out", extra={
                "component": "side_effects",
                "kind": event.kind,
                "job_id": event.job_id,
                "timeout_ms": self.timeout_ms
            })
        except Exception as e:
            prometheus_metrics.increment_side_effect("event", "error")
            logger.error("Side-effect event failed", extra={
                "component": "side_effects",
                "kind": event.kind,
                "job_id": event.job_id,
                "error": str(e)
            })
        else:
            logger.debug("Side-effect event handled", extra={
                "component": "side_effects",
                "kind": event.kind,
                "job_id": event.job_id,
                "latency_ms": round((time.time() - start) * 1000, 2)
            })

    async def _deliver(self, event: JobEvent):
        if event.kind == events.SCHEDULED:
            deliveries = await self._scheduled(event)
        elif event.kind == events.DELIVERED:
            deliveries = await self._delivered(event)
        elif event.kind == events.BILLED:
            deliveries = await self._billed(event)
        else:
            logger.warning("Unknown side-effect event", extra={
                "component": "side_effects", "kind": event.kind
            })
            return

        channels = [channel for channel, _ in deliveries]
        results = await asyncio.gather(*(coro for _, coro in deliveries), return_exceptions=True)
        for channel, outcome in zip(channels, results):
            if isinstance(outcome, Exception):
                prometheus_metrics.increment_side_effect(channel, "error")
                logger.warning("Side-effect delivery failed", extra={
                    "component": "side_effects",
                    "channel": channel,
                    "kind": event.kind,
                    "job_id": event.job_id,
                    "error": str(outcome)
                })
            else:
                prometheus_metrics.increment_side_effect(channel, "sent")

    def _in_app(self, user_id: int, type: str, title: str, message: str, event: JobEvent):
        return ("in_app", self.notifier.notify(user_id, type, title, message, job_link(event.job_id)))

    def _email(self, recipient: str, template_name: str, data: Dict[str, Any]):
        return ("email", self.email_sender.send_template_email(recipient, template_name, data))

    async def _scheduled(self, event: JobEvent) -> List[tuple]:
        pilot_ids = event.data.get("persons_assigned") or []
        scheduled_date = event.data.get("scheduled_date")
        pilots = await asyncio.to_thread(self.directory.get_contacts, pilot_ids)
        client_name = await asyncio.to_thread(self.directory.client_name, event.client_id, event.client_type)

        deliveries = []
        for pilot_id in pilot_ids:
            deliveries.append(self._in_app(
                pilot_id, "job_scheduled", "Job scheduled",
                f"You have been assigned to {event.job_title} on {scheduled_date}", event,
            ))
            pilot = pilots.get(pilot_id)
            if pilot is None:
                continue
            deliveries.append(self._email(pilot.email, "pilot-notification", {
                "pilotName": pilot.name,
                "jobId": event.job_id,
                "jobTitle": event.job_title,
                "clientName": client_name,
                "scheduledDate": scheduled_date,
                "action": "scheduled",
            }))
        return deliveries

    async def _delivered(self, event: JobEvent) -> List[tuple]:
        client = await asyncio.to_thread(self.directory.client_contact, event.client_id, event.client_type)
        if client is None:
            logger.info("No client contact for delivered job", extra={
                "component": "side_effects", "job_id": event.job_id
            })
            return []

        delivered_date = event.data.get("delivered_date")
        return [
            self._in_app(
                client.user_id, "job_delivered", "Job delivered",
                f"{event.job_title} was delivered on {delivered_date}", event,
            ),
            self._email(client.email, "delivery-notification", {
                "clientName": client.name,
                "jobId": event.job_id,
                "jobTitle": event.job_title,
                "deliveryDate": delivered_date,
            }),
        ]

    async def _billed(self, event: JobEvent) -> List[tuple]:
        recipients = [event.created_by]
        if event.client_type == "individual" and event.client_id is not None:
            if event.client_id not in recipients:
                recipients.append(event.client_id)

        message = f"Invoice {event.data.get('invoice_number')} issued for {event.job_title}"
        return [
            self._in_app(user_id, "job_billed", "Job billed", message, event)
            for user_id in recipients
        ]


# Global instance
side_effects = SideEffectDispatcher()
