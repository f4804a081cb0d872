"""
Tests for FileLocator: webhook payload first, vendor query as fallback
"""

import pytest

from recrelay.exceptions import LocatorError, VendorCallError
from recrelay.locator import FileLocator, select_media_file
from recrelay.session_store import RecordingSession, SessionRegistry, SessionStore

FILE_LIST = [
    {"fileName": "rec.m3u8", "downloadUrl": "https://agora.example/rec.m3u8"},
    {"fileName": "rec.mp4", "downloadUrl": "https://agora.example/rec.mp4"},
]


@pytest.fixture
def registry(tmp_path):
    registry = SessionRegistry(tmp_path / "sessions.json")
    registry.remember(RecordingSession("H1", "S1", "the-main-event-stream"))
    return registry


class TestSelectMediaFile:
    def test_picks_first_mp4(self):
        files = FILE_LIST + [{"fileName": "second.mp4", "downloadUrl": "x"}]
        resolved = select_media_file(files, "S1")
        assert resolved.file_name == "rec.mp4"
        assert resolved.download_url == "https://agora.example/rec.mp4"
        assert resolved.session_id == "S1"

    def test_lowercase_filename_key(self):
        resolved = select_media_file([{"filename": "a.mp4", "downloadUrl": "u"}], "S1")
        assert resolved.file_name == "a.mp4"

    def test_no_mp4(self):
        with pytest.raises(LocatorError, match="No .mp4 file found for SID: S1"):
            select_media_file([{"fileName": "rec.m3u8", "downloadUrl": "u"}], "S1")

    def test_missing_download_url(self):
        with pytest.raises(LocatorError, match="does not contain a 'downloadUrl'"):
            select_media_file([{"fileName": "rec.mp4"}], "S1")


class TestResolve:
    def test_payload_file_list_skips_query(self, mock_client):
        locator = FileLocator(mock_client)
        resolved = locator.resolve("S1", "chan", {"details": {"fileList": FILE_LIST}})
        assert resolved.file_name == "rec.mp4"
        mock_client.query_file_list.assert_not_called()

    def test_empty_payload_falls_back_to_query_once(self, mock_client, registry):
        mock_client.query_file_list.return_value = FILE_LIST
        locator = FileLocator(mock_client, registry=registry)

        resolved = locator.resolve("S1", "chan", {"details": {"fileList": []}})

        assert resolved.download_url == "https://agora.example/rec.mp4"
        mock_client.query_file_list.assert_called_once_with("H1", "S1", "mix")

    def test_active_session_supplies_handle(self, mock_client):
        store = SessionStore()
        store.set(RecordingSession("H9", "S9", "chan"))
        mock_client.query_file_list.return_value = FILE_LIST
        locator = FileLocator(mock_client, store=store)

        locator.resolve("S9", "chan", None)
        mock_client.query_file_list.assert_called_once_with("H9", "S9", "mix")

    def test_active_session_for_other_sid_is_not_used(self, mock_client):
        store = SessionStore()
        store.set(RecordingSession("H9", "S9", "chan"))
        locator = FileLocator(mock_client, store=store)

        with pytest.raises(LocatorError, match="Could not find resourceId for SID: S1"):
            locator.resolve("S1", "chan", {})
        mock_client.query_file_list.assert_not_called()

    def test_missing_sid(self, mock_client):
        with pytest.raises(LocatorError, match="SID missing"):
            FileLocator(mock_client).resolve("", "chan", {"details": {"fileList": FILE_LIST}})

    def test_query_failure(self, mock_client, registry):
        mock_client.query_file_list.side_effect = VendorCallError(
            "Agora Query Error: HTTP 404", operation="query", status_code=404, body={"code": 404}
        )
        locator = FileLocator(mock_client, registry=registry)
        with pytest.raises(LocatorError, match="Failed to query Agora API"):
            locator.resolve("S1", "chan", {})
        assert mock_client.query_file_list.call_count == 1

    def test_query_without_file_list(self, mock_client, registry):
        mock_client.query_file_list.return_value = None
        locator = FileLocator(mock_client, registry=registry)
        with pytest.raises(LocatorError, match="did not contain a fileList"):
            locator.resolve("S1", "chan", {})

    def test_query_result_without_mp4(self, mock_client, registry):
        mock_client.query_file_list.return_value = [{"fileName": "rec.m3u8", "downloadUrl": "u"}]
        locator = FileLocator(mock_client, registry=registry)
        with pytest.raises(LocatorError, match="No .mp4 file found"):
            locator.resolve("S1", "chan", {})
