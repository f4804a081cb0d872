"""
Relay pipeline: stream a finished recording from the vendor's storage into
the object store without holding the whole file in memory.
"""

import dataclasses
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Protocol

import requests

from recrelay.exceptions import RelayError
from recrelay.locator import ResolvedFile

logger = logging.getLogger(__name__)

MEDIA_CONTENT_TYPE = "video/mp4"
DOWNLOAD_CHUNK_SIZE = 64 * 1024
PROGRESS_STEP_PERCENT = 5
# When the source sends no Content-Length, report every this many bytes instead
UNKNOWN_TOTAL_STEP_BYTES = 5 * 1024 * 1024


@dataclass
class TransferProgress:
    bytes_transferred: int = 0
    total_bytes: int = 0
    last_reported_percent: int = -1

    @property
    def percent(self) -> int | None:
        """Whole percentage transferred, or None when the total is unknown"""
        if self.total_bytes <= 0:
            return None
        return min(100, (self.bytes_transferred * 100) // self.total_bytes)


ProgressCallback = Callable[[TransferProgress], None]


class ProgressTracker:
    """
    Count transferred bytes and report at most once per percentage step.

    With a known total, a report fires when the whole percentage reaches the
    last reported one plus `step_percent`. Without a total, a report fires
    each time another `unknown_step_bytes` have passed.
    """

    def __init__(
        self,
        total_bytes: int,
        on_report: ProgressCallback | None = None,
        step_percent: int = PROGRESS_STEP_PERCENT,
        unknown_step_bytes: int = UNKNOWN_TOTAL_STEP_BYTES,
    ):
        self.progress = TransferProgress(total_bytes=max(0, total_bytes))
        self.on_report = on_report
        self.step_percent = step_percent
        self.unknown_step_bytes = unknown_step_bytes
        self._last_reported_bytes = 0

    def advance(self, nbytes: int) -> TransferProgress | None:
        self.progress.bytes_transferred += nbytes
        percent = self.progress.percent

        if percent is not None:
            if percent < self.progress.last_reported_percent + self.step_percent:
                return None
            self.progress.last_reported_percent = percent
        else:
            next_report_at = self._last_reported_bytes + self.unknown_step_bytes
            if self.progress.bytes_transferred < next_report_at:
                return None
            self._last_reported_bytes = self.progress.bytes_transferred

        snapshot = dataclasses.replace(self.progress)
        if self.on_report is not None:
            self.on_report(snapshot)
        return snapshot


class CountingStream:
    """
    Read-only file-like view over an iterator of byte chunks.

    Bytes are pulled from the source only when the consumer calls `read`, so
    the consumer's pace throttles the download. At most one source chunk is
    held beyond what the current `read` returns.
    """

    def __init__(
        self,
        chunks: Iterable[bytes],
        tracker: ProgressTracker,
        deadline: float | None = None,
    ):
        self._chunks = iter(chunks)
        self._pending = b""
        self.tracker = tracker
        self.deadline = deadline
        self.peak_pending = 0

    def readable(self) -> bool:
        return True

    def _next_chunk(self) -> bytes | None:
        if self.deadline is not None and time.monotonic() > self.deadline:
            raise RelayError(
                "Relay deadline exceeded",
                details=f"{self.tracker.progress.bytes_transferred} bytes transferred",
            )
        for chunk in self._chunks:
            if chunk:
                self.tracker.advance(len(chunk))
                self.peak_pending = max(self.peak_pending, len(chunk))
                return chunk
        return None

    def read(self, size: int | None = -1) -> bytes:
        if size is None or size < 0:
            return b"".join(iter(lambda: self.read(DOWNLOAD_CHUNK_SIZE), b""))

        out = bytearray()
        while len(out) < size:
            if not self._pending:
                chunk = self._next_chunk()
                if chunk is None:
                    break
                self._pending = chunk
            take = size - len(out)
            out += self._pending[:take]
            self._pending = self._pending[take:]
        return bytes(out)


class ObjectStore(Protocol):
    def upload(
        self, path: str, stream: CountingStream, content_type: str, overwrite: bool = True
    ) -> str: ...


@dataclass
class RelayResult:
    session_id: str
    file_name: str
    path: str
    bytes_transferred: int
    total_bytes: int


def destination_path(session_id: str, file_name: str) -> str:
    """
    Deterministic object key so a redelivered webhook overwrites the same object

    The vendor's relative name is kept; empty, "." and ".." segments are dropped
    so the key always stays under the session prefix.
    """
    parts = [p for p in file_name.replace("\\", "/").split("/") if p not in ("", ".", "..")]
    return f"{session_id}/{'/'.join(parts)}"


def log_progress(session_id: str) -> ProgressCallback:
    def _report(progress: TransferProgress) -> None:
        if progress.percent is None:
            logger.info(
                f"Relaying SID {session_id}: {progress.bytes_transferred} bytes (size unknown)"
            )
        else:
            logger.info(
                f"Relaying SID {session_id}: {progress.bytes_transferred} / "
                f"{progress.total_bytes} bytes ({progress.percent}%)"
            )

    return _report


class RelayPipeline:
    """Download from the vendor and upload to the object store as one stream"""

    def __init__(
        self,
        store: ObjectStore,
        *,
        chunk_size: int = DOWNLOAD_CHUNK_SIZE,
        connect_timeout: float = 10,
        read_timeout: float = 60,
        deadline_seconds: float | None = 3600,
        content_type: str = MEDIA_CONTENT_TYPE,
    ):
        self.store = store
        self.chunk_size = chunk_size
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.deadline_seconds = deadline_seconds
        self.content_type = content_type

    def relay(
        self, resolved: ResolvedFile, on_progress: ProgressCallback | None = None
    ) -> RelayResult:
        """
        Stream `resolved` into the object store

        Raises:
            RelayError: Download could not be opened, failed mid-transfer, or upload failed
        """
        sid = resolved.session_id
        logger.info(f"Processing file: {resolved.file_name} for SID: {sid}")

        try:
            response = requests.get(
                resolved.download_url,
                stream=True,
                timeout=(self.connect_timeout, self.read_timeout),
            )
        except requests.exceptions.RequestException as e:
            raise RelayError(
                f"Failed to download file from Agora: {resolved.file_name}",
                details=f"{type(e).__name__}: {e}",
            ) from e

        try:
            if not response.ok:
                raise RelayError(
                    f"Failed to download file from Agora: {resolved.file_name}",
                    details=f"HTTP {response.status_code}",
                )

            try:
                total_size = int(response.headers.get("content-length", 0) or 0)
            except (TypeError, ValueError):
                total_size = 0

            tracker = ProgressTracker(total_size, on_progress or log_progress(sid))
            deadline = (
                time.monotonic() + self.deadline_seconds if self.deadline_seconds else None
            )
            stream = CountingStream(
                response.iter_content(chunk_size=self.chunk_size), tracker, deadline
            )
            path = destination_path(sid, resolved.file_name)

            logger.info(f"Uploading to object store at path: {path}")
            try:
                stored_path = self.store.upload(path, stream, self.content_type, overwrite=True)
            except requests.exceptions.RequestException as e:
                raise RelayError(
                    f"Download interrupted for SID {sid}",
                    details=f"{type(e).__name__}: {e}",
                ) from e
        finally:
            response.close()

        transferred = tracker.progress.bytes_transferred
        logger.info(
            f"Successfully uploaded {resolved.file_name} "
            f"({transferred / (1024 * 1024):.2f} MB) for SID: {sid}. Path: {stored_path}"
        )
        return RelayResult(
            session_id=sid,
            file_name=resolved.file_name,
            path=stored_path,
            bytes_transferred=transferred,
            total_bytes=total_size,
        )
