"""
Agora Cloud Recording RESTful API client with HTTP Basic authentication
"""

import base64
import logging
from typing import Any

import requests

from recrelay.exceptions import VendorCallError

logger = logging.getLogger(__name__)

MIX_MODE = "mix"

# Fixed composite profile: 1080p30 at 6 Mbps, audio and video, high-quality stream
MIX_RECORDING_PROFILE: dict[str, Any] = {
    "channelType": 1,
    "streamTypes": 2,
    "audioProfile": 1,
    "videoStreamType": 0,
    "transcodingConfig": {
        "width": 1920,
        "height": 1080,
        "fps": 30,
        "bitrate": 6000,
    },
    "subscribeVideoUids": [],
    "subscribeAudioUids": [],
}

# storageConfig.vendor value for Amazon S3
STORAGE_VENDOR_AWS_S3 = 1


class AgoraClient:
    """Client for the Agora Cloud Recording API (acquire/start/stop/query)"""

    def __init__(
        self,
        app_id: str,
        customer_id: str,
        customer_secret: str,
        *,
        base_url: str = "https://api.agora.io/v1",
        timeout: float = 30,
        session: requests.Session | None = None,
    ):
        self.app_id = app_id
        self.customer_id = customer_id
        self.customer_secret = customer_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def __repr__(self) -> str:
        """String representation that excludes credentials"""
        return (
            f"AgoraClient("
            f"base_url={self.base_url!r}, "
            f"app_id_set={bool(self.app_id)}, "
            f"customer_id_set={bool(self.customer_id)}"
            f")"
        )

    @property
    def recording_url(self) -> str:
        return f"{self.base_url}/apps/{self.app_id}/cloud_recording"

    def _auth_header(self) -> str:
        credentials = f"{self.customer_id}:{self.customer_secret}"
        return "Basic " + base64.b64encode(credentials.encode()).decode()

    def _make_request(
        self,
        operation: str,
        method: str,
        endpoint: str,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an authenticated request; never retried here, retry policy belongs to callers"""
        url = f"{self.recording_url}/{endpoint.lstrip('/')}"
        headers = {
            "Authorization": self._auth_header(),
            "Accept": "application/json",
        }
        if method.upper() in ("POST", "PUT", "PATCH"):
            headers["Content-Type"] = "application/json"

        try:
            response = self.session.request(
                method, url, headers=headers, json=body, timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            raise VendorCallError(
                f"Agora {operation} timed out",
                operation=operation,
                details=f"No response within {self.timeout} seconds",
            ) from e
        except requests.exceptions.RequestException as e:
            raise VendorCallError(
                f"Agora {operation} request failed",
                operation=operation,
                details=f"{type(e).__name__}: {e}",
            ) from e

        try:
            data: Any = response.json()
        except ValueError:
            data = response.text

        if not response.ok:
            logger.error(f"Agora {operation} failed (HTTP {response.status_code}): {data}")
            raise VendorCallError(
                f"Agora {operation.capitalize()} Error: HTTP {response.status_code}",
                operation=operation,
                status_code=response.status_code,
                body=data,
            )

        if not isinstance(data, dict):
            raise VendorCallError(
                f"Agora {operation} returned an unexpected body",
                operation=operation,
                status_code=response.status_code,
                body=data,
            )
        return data

    def acquire(self, channel_name: str, recorder_uid: str) -> str:
        """Acquire a recording resource and return its resource ID"""
        data = self._make_request(
            "acquire",
            "POST",
            "acquire",
            {"cname": channel_name, "uid": recorder_uid, "clientRequest": {}},
        )
        resource_id = data.get("resourceId")
        if not resource_id:
            raise VendorCallError(
                "Agora acquire response did not contain a resourceId",
                operation="acquire",
                body=data,
            )
        return str(resource_id)

    def start(
        self,
        resource_id: str,
        channel_name: str,
        recorder_uid: str,
        token: str,
        storage_config: dict[str, Any],
        recording_config: dict[str, Any] | None = None,
        mode: str = MIX_MODE,
    ) -> dict[str, Any]:
        """Start a recording job on an acquired resource; the response carries the sid"""
        data = self._make_request(
            "start",
            "POST",
            f"resourceid/{resource_id}/mode/{mode}/start",
            {
                "cname": channel_name,
                "uid": recorder_uid,
                "clientRequest": {
                    "token": token,
                    "storageConfig": storage_config,
                    "recordingConfig": recording_config or MIX_RECORDING_PROFILE,
                },
            },
        )
        if not data.get("sid"):
            raise VendorCallError(
                "Agora start response did not contain a sid",
                operation="start",
                body=data,
            )
        return data

    def stop(
        self,
        resource_id: str,
        sid: str,
        channel_name: str,
        recorder_uid: str,
        mode: str = MIX_MODE,
    ) -> dict[str, Any]:
        """Stop a running recording job"""
        return self._make_request(
            "stop",
            "POST",
            f"resourceid/{resource_id}/sid/{sid}/mode/{mode}/stop",
            {"cname": channel_name, "uid": recorder_uid, "clientRequest": {}},
        )

    def query(self, resource_id: str, sid: str, mode: str = MIX_MODE) -> dict[str, Any]:
        """Query the state of a recording job, including its uploaded file list"""
        return self._make_request(
            "query", "GET", f"resourceid/{resource_id}/sid/{sid}/mode/{mode}/query"
        )

    def query_file_list(self, resource_id: str, sid: str, mode: str = MIX_MODE) -> list[Any] | None:
        """Return serverResponse.fileList from a query, or None when absent"""
        data = self.query(resource_id, sid, mode)
        server_response = data.get("serverResponse") or {}
        file_list = server_response.get("fileList")
        if not file_list:
            return None
        if isinstance(file_list, list):
            return file_list
        return [file_list]


def build_storage_config(
    bucket: str, region_code: int, access_key: str, secret_key: str
) -> dict[str, Any]:
    """storageConfig descriptor telling Agora where to upload recorded files"""
    return {
        "vendor": STORAGE_VENDOR_AWS_S3,
        "region": region_code,
        "bucket": bucket,
        "accessKey": access_key,
        "secretKey": secret_key,
    }
