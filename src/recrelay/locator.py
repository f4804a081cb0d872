"""
Resolve the downloadable media file for a finished recording session
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

from recrelay.agora_client import MIX_MODE, AgoraClient
from recrelay.exceptions import LocatorError, VendorCallError
from recrelay.session_store import SessionRegistry, SessionStore

logger = logging.getLogger(__name__)

MEDIA_EXTENSION = ".mp4"


@dataclass(frozen=True)
class ResolvedFile:
    file_name: str
    download_url: str
    session_id: str


def _entry_name(entry: Any) -> str:
    if not isinstance(entry, dict):
        return ""
    return str(entry.get("fileName") or entry.get("filename") or "")


def select_media_file(
    file_list: list[Any], session_id: str, extension: str = MEDIA_EXTENSION
) -> ResolvedFile:
    """
    Pick the first entry whose name ends with the media extension

    Raises:
        LocatorError: No entry matches, or the match has no download URL
    """
    match = next((entry for entry in file_list if _entry_name(entry).endswith(extension)), None)
    if match is None:
        raise LocatorError(
            f"No {extension} file found for SID: {session_id}",
            details=f"File list: {json.dumps(file_list, default=str)}",
        )

    download_url = match.get("downloadUrl")
    if not download_url:
        raise LocatorError(
            f"The file object for SID {session_id} does not contain a 'downloadUrl'",
            details=f"File object: {json.dumps(match, default=str)}",
        )
    return ResolvedFile(
        file_name=_entry_name(match), download_url=str(download_url), session_id=session_id
    )


class FileLocator:
    """Find the recorded media file from a webhook payload or the vendor query API"""

    def __init__(
        self,
        client: AgoraClient,
        registry: SessionRegistry | None = None,
        store: SessionStore | None = None,
        extension: str = MEDIA_EXTENSION,
        mode: str = MIX_MODE,
    ):
        self.client = client
        self.registry = registry
        self.store = store
        self.extension = extension
        self.mode = mode

    def resolve(
        self, session_id: str, channel_id: str | None, payload: dict[str, Any] | None
    ) -> ResolvedFile:
        if not session_id:
            raise LocatorError("SID missing in payload")

        file_list = self._payload_file_list(payload)
        if not file_list:
            logger.warning(
                f"fileList is empty in the webhook for SID: {session_id}. "
                "Attempting to fetch via Query API."
            )
            file_list = self._query_file_list(session_id, channel_id)

        return select_media_file(file_list, session_id, self.extension)

    @staticmethod
    def _payload_file_list(payload: dict[str, Any] | None) -> list[Any]:
        details = (payload or {}).get("details") or {}
        if not isinstance(details, dict):
            return []
        file_list = details.get("fileList")
        if not file_list:
            return []
        return file_list if isinstance(file_list, list) else [file_list]

    def _resource_handle_for(self, session_id: str) -> str | None:
        if self.registry is not None:
            handle = self.registry.resource_handle_for(session_id)
            if handle:
                return handle
        if self.store is not None:
            current = self.store.get()
            if current is not None and current.session_id == session_id:
                return current.resource_handle
        return None

    def _query_file_list(self, session_id: str, channel_id: str | None) -> list[Any]:
        resource_id = self._resource_handle_for(session_id)
        if not resource_id:
            raise LocatorError(
                f"Could not find resourceId for SID: {session_id}. Cannot query Agora API.",
                details=f"Channel: {channel_id or 'unknown'}",
            )

        logger.info(f"Querying Agora API for file list for SID: {session_id}")
        try:
            file_list = self.client.query_file_list(resource_id, session_id, self.mode)
        except VendorCallError as e:
            raise LocatorError(
                f"Failed to query Agora API for SID: {session_id}",
                details=f"HTTP {e.status_code}: {e.body or e.details}",
            ) from e

        if not file_list:
            raise LocatorError(
                f"Query API response for SID {session_id} did not contain a fileList"
            )
        logger.info(f"Successfully retrieved fileList from Query API for SID: {session_id}")
        return file_list
