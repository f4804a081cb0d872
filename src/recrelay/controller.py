"""
Recording session controller: drives start/stop against the vendor API while
keeping at most one active session.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from recrelay.agora_client import (
    MIX_MODE,
    MIX_RECORDING_PROFILE,
    AgoraClient,
    build_storage_config,
)
from recrelay.config import Config
from recrelay.exceptions import ConflictError
from recrelay.session_store import RecordingSession, SessionRegistry, SessionStore
from recrelay.tokens import TokenMinter, subscriber_minter

logger = logging.getLogger(__name__)

StartStatus = Literal["started", "already_in_progress"]


@dataclass
class StartResult:
    status: StartStatus
    message: str
    session: RecordingSession
    vendor_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class StopResult:
    message: str
    session: RecordingSession
    vendor_response: dict[str, Any] = field(default_factory=dict)


class RecordingController:
    """Start and stop cloud recording jobs for the configured channel"""

    def __init__(
        self,
        config: Config,
        client: AgoraClient,
        store: SessionStore,
        registry: SessionRegistry | None = None,
        minter: TokenMinter | None = None,
    ):
        self.config = config
        self.client = client
        self.store = store
        self.registry = registry
        self._minter = minter

    def _mint(self, channel_id: str) -> str:
        if self._minter is None:
            self._minter = subscriber_minter(
                str(self.config.agora_app_id), str(self.config.agora_app_certificate)
            )
        return self._minter(channel_id)

    def start(self, channel_id: str | None = None) -> StartResult:
        """
        Start recording a channel, or report the recording already in progress

        Raises:
            ConfigurationError: Required credentials are missing (no call is made)
            ConflictError: Another channel currently holds the recording slot
            VendorCallError: acquire or start failed; the store stays empty
        """
        self.config.validate()
        channel_id = channel_id or self.config.channel_name

        with self.store.transaction():
            current = self.store.get()
            if current is not None:
                if current.channel_id == channel_id:
                    logger.info("Start command received, but recording is already active.")
                    return StartResult(
                        status="already_in_progress",
                        message="Recording is already in progress.",
                        session=current,
                    )
                raise ConflictError(
                    "Another channel is already being recorded.",
                    details=f"Active channel: {current.channel_id}",
                )

            try:
                session, start_data = self._start_new(channel_id)
                self.store.set(session)
            except Exception:
                # Nothing partial may survive a failed start
                self.store.clear()
                raise

        if self.registry is not None:
            try:
                self.registry.remember(session)
            except OSError as e:
                logger.error(
                    f"Could not persist resource ID for SID {session.session_id}; "
                    f"query fallback will only work while the session is active: {e}"
                )

        logger.info(f"Successfully started recording. SID: {session.session_id}")
        return StartResult(
            status="started",
            message="Recording started.",
            session=session,
            vendor_response=start_data,
        )

    def _start_new(self, channel_id: str) -> tuple[RecordingSession, dict[str, Any]]:
        uid = self.config.recorder_uid
        resource_id = self.client.acquire(channel_id, uid)
        logger.debug(f"Acquired recording resource for channel {channel_id}")

        token = self._mint(channel_id)
        storage_config = build_storage_config(
            bucket=str(self.config.aws_s3_bucket_name),
            region_code=self.config.agora_region_code,
            access_key=str(self.config.aws_access_key_id),
            secret_key=str(self.config.aws_secret_access_key),
        )
        start_data = self.client.start(
            resource_id,
            channel_id,
            uid,
            token,
            storage_config,
            MIX_RECORDING_PROFILE,
            mode=MIX_MODE,
        )
        session = RecordingSession(
            resource_handle=resource_id,
            session_id=str(start_data["sid"]),
            channel_id=channel_id,
        )
        return session, start_data

    def stop(self, channel_id: str | None = None) -> StopResult:
        """
        Stop the active recording; the slot is cleared whether or not the vendor call succeeds

        Raises:
            ConfigurationError: Required credentials are missing (no call is made)
            ConflictError: No active recording for the channel (no call is made)
            VendorCallError: The vendor rejected the stop request
        """
        self.config.validate()
        channel_id = channel_id or self.config.channel_name

        with self.store.transaction():
            current = self.store.get()
            if current is None or current.channel_id != channel_id:
                raise ConflictError("No active recording found to stop.")

            try:
                stop_data = self.client.stop(
                    current.resource_handle,
                    current.session_id,
                    current.channel_id,
                    self.config.recorder_uid,
                    mode=MIX_MODE,
                )
            finally:
                # A stuck session must never block future starts
                self.store.clear()

        logger.info(f"Successfully stopped recording. SID: {current.session_id}")
        return StopResult(message="Recording stopped.", session=current, vendor_response=stop_data)

    def status(self) -> RecordingSession | None:
        return self.store.get()
