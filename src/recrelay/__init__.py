"""
recrelay - Agora cloud recording control with streamed relay of finished recordings to S3
"""

try:
    from importlib.metadata import version

    __version__ = version("recrelay")
except Exception:
    # Fallback for editable/uninstalled checkouts
    __version__ = "0.dev0"
__author__ = "recrelay"
__description__ = "Start/stop Agora cloud recordings and relay finished files into S3"

from .agora_client import AgoraClient
from .config import Config
from .controller import RecordingController, StartResult, StopResult
from .dispatcher import BackgroundDispatcher
from .exceptions import (
    ConfigurationError,
    ConflictError,
    LocatorError,
    RecrelayError,
    RelayError,
    SignatureError,
    VendorCallError,
)
from .locator import FileLocator, ResolvedFile
from .logger import setup_logging
from .relay import ProgressTracker, RelayPipeline, RelayResult, TransferProgress
from .session_store import RecordingSession, SessionRegistry, SessionStore
from .webhook import EventKind, WebhookEvent, WebhookRouter

__all__ = [
    "AgoraClient",
    "BackgroundDispatcher",
    "Config",
    "ConfigurationError",
    "ConflictError",
    "EventKind",
    "FileLocator",
    "LocatorError",
    "ProgressTracker",
    "RecordingController",
    "RecordingSession",
    "RecrelayError",
    "RelayError",
    "RelayPipeline",
    "RelayResult",
    "ResolvedFile",
    "SessionRegistry",
    "SessionStore",
    "SignatureError",
    "StartResult",
    "StopResult",
    "TransferProgress",
    "VendorCallError",
    "WebhookEvent",
    "WebhookRouter",
    "setup_logging",
    "__version__",
]
