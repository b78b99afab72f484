import json
import logging
import os
import uuid

import requests
from dateutil.parser import parse as parse_dt
from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone
from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from rentals.models import Rental, Vehicle
from rentals.services.collaborators import MediaStore

from .models import InboundChangeNotification

logger = logging.getLogger(__name__)


# ------------------------------
# Remote media service (HTTP)
# ------------------------------
class RemoteMediaStore(MediaStore):
    """
    Rental videos kept by an external media service.

      GET  {base}/rentals/<id>/media?phase=opening   → [{"file_url": ...}, ...]
      POST {base}/rentals/<id>/media                 → {"file_url": ...}

    Network failures (connection, timeout) are retried with exponential
    backoff; HTTP errors such as validation or quota are raised at once.
    All attempts of one POST carry the same Idempotency-Key header.
    """

    def __init__(self, base_url, session=None, max_retries=None, timeout=None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.max_retries = max_retries or getattr(settings, "RENTALS_MEDIA_UPLOAD_RETRIES", 3)
        self.timeout = timeout or getattr(settings, "RENTALS_MEDIA_TIMEOUT", 30)

    def _url(self, rental_id):
        return f"{self.base_url}/rentals/{rental_id}/media"

    def has_media(self, rental_id, phase: str) -> bool:
        resp = self.session.get(self._url(rental_id), params={"phase": phase}, timeout=self.timeout)
        resp.raise_for_status()
        data = resp.json()
        if isinstance(data, dict):
            data = data.get("items") or []
        return len(data) > 0

    def _send(self, rental_id, **kwargs):
        headers = {"Idempotency-Key": uuid.uuid4().hex}
        # waits 2s, 4s, 8s ... between attempts
        retrying = Retrying(
            retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=2),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                resp = self.session.post(self._url(rental_id), headers=headers, timeout=self.timeout, **kwargs)
                resp.raise_for_status()
                return resp.json()

    def record_media(self, rental_id, phase: str, file_url: str):
        return self._send(rental_id, json={"phase": phase, "file_url": file_url})

    def upload(self, rental_id, phase: str, filename: str, content, content_type="video/mp4") -> str:
        """Upload a recorded video and return its URL."""
        data = self._send(
            rental_id,
            data={"phase": phase},
            files={"file": (filename, content, content_type)},
        )
        return data["file_url"]


# ------------------------------
# External change notifications
# ------------------------------
# Fields another client may overwrite. Bookkeeping (id, version, timestamps)
# stays ours.
_SKIP = {"id", "version", "created_at", "updated_at"}


def _stable_fields(model):
    return {
        f.name: f for f in model._meta.concrete_fields
        if f.name not in _SKIP and not f.is_relation
    }


def _received(value):
    if not value:
        return None
    try:
        dt = parse_dt(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return dt if timezone.is_aware(dt) else timezone.make_aware(dt)


def apply_change_notification(message: dict) -> bool:
    """
    Apply one notification ``{"id", "type", "record", "received"}``.

    The incoming record wins over whatever is stored (last write wins) and
    ``version`` is bumped, so a commit computed from the old record fails
    with StaleWrite. Returns False for a message id already seen.
    """
    mid = message.get("id") or ""
    if not mid:
        raise ValueError("Change notification without id")
    if InboundChangeNotification.objects.filter(message_id=mid).exists():
        return False

    record_type = message.get("type") or InboundChangeNotification.RECORD_RENTAL
    if record_type not in dict(InboundChangeNotification.RECORD_CHOICES):
        raise ValueError(f"Unknown record type {record_type!r}")
    record = message.get("record") or {}
    record_id = record.get("id")
    model = Rental if record_type == InboundChangeNotification.RECORD_RENTAL else Vehicle
    fields = _stable_fields(model)

    changes = {
        name: fields[name].to_python(value)
        for name, value in record.items()
        if name in fields
    }
    if model is Vehicle:
        changes = {k: v for k, v in changes.items() if k in ("status", "current_odometer")}
    else:
        changes["version"] = F("version") + 1

    with transaction.atomic():
        updated = 0
        if record_id is not None and changes:
            updated = model.objects.filter(pk=record_id).update(**changes)
        InboundChangeNotification.objects.create(
            message_id=mid,
            record_type=record_type,
            record_id=record_id,
            received_at=_received(message.get("received")),
            applied=bool(updated),
            payload=record,
        )

    if updated:
        logger.info("Applied %s change %s to %s %s", record_type, mid, model.__name__, record_id)
    else:
        logger.warning("Change %s matched no %s (id=%s)", mid, model.__name__, record_id)
    return True


def read_notification_files(base=None):
    """Notifications dropped as ``*.json`` files; the filename is the fallback id."""
    base = base or settings.RENTALS_NOTIFICATIONS_DIR
    os.makedirs(base, exist_ok=True)
    msgs = []
    for fname in sorted(os.listdir(base)):
        if not fname.lower().endswith(".json"):
            continue
        path = os.path.join(base, fname)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("Skipping unreadable notification %s: %s", fname, exc)
            continue
        data.setdefault("id", fname)
        msgs.append(data)
    return msgs
