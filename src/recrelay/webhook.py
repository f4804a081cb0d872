"""
Agora Cloud Recording webhook (NCS) events: parsing, signature checks and dispatch
"""

import hashlib
import hmac
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from recrelay.dispatcher import BackgroundDispatcher
from recrelay.exceptions import LocatorError, RecrelayError, RelayError, SignatureError
from recrelay.locator import FileLocator
from recrelay.relay import RelayPipeline, RelayResult

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "Agora-Signature"
SIGNATURE_V2_HEADER = "Agora-Signature-V2"


class EventKind(IntEnum):
    RECORDER_STARTED = 40
    FILES_UPLOADED = 31
    FILES_BACKED_UP = 32
    UPLOAD_PROGRESS = 33
    POSTPONED_TRANSCODE_RESULT = 1001
    UNKNOWN = -1

    @classmethod
    def from_code(cls, code: Any) -> "EventKind":
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            return cls.UNKNOWN


@dataclass
class WebhookEvent:
    event_kind: EventKind
    event_type: Any
    session_id: str | None
    channel_id: str | None
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_body(cls, body: Any) -> "WebhookEvent":
        body = body if isinstance(body, dict) else {}
        payload = body.get("payload")
        payload = payload if isinstance(payload, dict) else {}
        sid = payload.get("sid")
        cname = payload.get("cname")
        return cls(
            event_kind=EventKind.from_code(body.get("eventType")),
            event_type=body.get("eventType"),
            session_id=str(sid) if sid else None,
            channel_id=str(cname) if cname else None,
            payload=payload,
        )


def _header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    return value


def verify_signature(raw_body: bytes, headers: Mapping[str, str], secret: str | None) -> bool:
    """
    Check the delivery signature against the shared webhook secret

    Agora signs the raw body with HMAC-SHA256 (Agora-Signature-V2) and
    HMAC-SHA1 (Agora-Signature), both hex encoded.

    Returns:
        True when a signature was verified, False when no secret is configured

    Raises:
        SignatureError: A secret is configured and the signature is missing or wrong
    """
    signature_v2 = _header(headers, SIGNATURE_V2_HEADER)
    signature_v1 = _header(headers, SIGNATURE_HEADER)

    if not signature_v2 and not signature_v1:
        logger.warning("Signature missing from webhook request.")
        if secret:
            raise SignatureError("Signature missing from webhook request")
        return False

    if not secret:
        logger.warning("No webhook secret configured; cannot verify webhook signature.")
        return False

    if signature_v2:
        expected = hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()
        provided = signature_v2
    else:
        expected = hmac.new(secret.encode(), raw_body, hashlib.sha1).hexdigest()
        provided = str(signature_v1)

    # Headers may decode to non-ASCII text; compare as bytes
    provided_bytes = provided.strip().lower().encode("utf-8", "replace")
    if not hmac.compare_digest(expected.encode(), provided_bytes):
        logger.warning("Webhook signature mismatch.")
        raise SignatureError("Webhook signature does not match")
    return True


class WebhookRouter:
    """Dispatch webhook events by kind; completion events trigger a background relay"""

    def __init__(
        self,
        locator: FileLocator,
        pipeline: RelayPipeline,
        dispatcher: BackgroundDispatcher,
    ):
        self.locator = locator
        self.pipeline = pipeline
        self.dispatcher = dispatcher
        # Hint only; the session store stays authoritative
        self.last_started_session_id: str | None = None

    def handle(self, event: WebhookEvent) -> str:
        """Handle one delivery without waiting on any transfer; returns what was done"""
        sid = event.session_id
        logger.info(f"Webhook received. EventType: {event.event_type}, SID: {sid}")

        if event.event_kind is EventKind.RECORDER_STARTED:
            logger.info(f"Recording started for SID: {sid}")
            if sid:
                self.last_started_session_id = sid
            return "recorded"

        if event.event_kind is EventKind.FILES_BACKED_UP:
            logger.info(f"Recording backup complete for SID: {sid}. Scheduling relay.")
            future = self.dispatcher.submit(
                f"relay SID {sid}", self.process_completion, event
            )
            return "relay_scheduled" if future is not None else "relay_rejected"

        if event.event_kind is EventKind.FILES_UPLOADED:
            logger.info(
                f"Files for SID {sid} have been uploaded to the configured third-party storage."
            )
            return "observed"

        if event.event_kind is EventKind.UPLOAD_PROGRESS:
            details = event.payload.get("details") or {}
            progress = details.get("progress") if isinstance(details, dict) else None
            if progress:
                try:
                    percent = float(progress) / 100
                except (TypeError, ValueError):
                    logger.warning(
                        f"Agora upload progress for SID {sid} is not numeric: {progress!r}"
                    )
                else:
                    logger.info(f"Agora upload progress for SID {sid}: {percent:.2f}%")
            return "observed"

        if event.event_kind is EventKind.POSTPONED_TRANSCODE_RESULT:
            logger.info(f"Postponed transcode finished for SID: {sid}.")
            return "observed"

        logger.info(f"Received unhandled eventType: {event.event_type} for SID: {sid}")
        return "unhandled"

    def process_completion(self, event: WebhookEvent) -> RelayResult | None:
        """Locate and relay the recording for a completion event; failures are logged"""
        sid = event.session_id or ""
        try:
            resolved = self.locator.resolve(sid, event.channel_id, event.payload)
        except LocatorError as e:
            logger.error(f"{e.message}. Aborting upload. {e.details}".strip())
            return None

        try:
            return self.pipeline.relay(resolved)
        except RelayError as e:
            logger.error(f"Relay failed for SID {sid}: {e.message} {e.details}".strip())
        except RecrelayError as e:
            logger.error(f"Relay failed for SID {sid}: {e.message}")
        return None
