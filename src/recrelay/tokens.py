"""
Short-lived RTC credentials for the cloud recorder
"""

import time
from collections.abc import Callable

from agora_token_builder.RtcTokenBuilder import Role_Subscriber, RtcTokenBuilder

# Recorder tokens expire one hour after they are minted
RECORDER_TOKEN_TTL_SECONDS = 3600

TokenMinter = Callable[[str], str]


def mint_subscriber_token(
    app_id: str,
    app_certificate: str,
    channel_name: str,
    uid: int = 0,
    ttl_seconds: int = RECORDER_TOKEN_TTL_SECONDS,
    now: float | None = None,
) -> str:
    """
    Build a subscriber-role RTC token scoped to one channel

    Args:
        app_id: Agora app ID
        app_certificate: Agora app certificate used to sign the token
        channel_name: Channel the token grants access to
        uid: Numeric user ID (0 lets any uid join with this token)
        ttl_seconds: Lifetime of the privilege
        now: Override for the current time (seconds since epoch)

    Returns:
        Signed token string
    """
    issued_at = int(now if now is not None else time.time())
    privilege_expires_at = issued_at + ttl_seconds
    return RtcTokenBuilder.buildTokenWithUid(
        app_id, app_certificate, channel_name, uid, Role_Subscriber, privilege_expires_at
    )


def subscriber_minter(app_id: str, app_certificate: str) -> TokenMinter:
    """Bind credentials and return a callable that mints a token for a channel"""

    def _mint(channel_name: str) -> str:
        return mint_subscriber_token(app_id, app_certificate, channel_name)

    return _mint
