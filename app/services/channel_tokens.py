"""Channel token issuer for group practice rooms"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt

logger = logging.getLogger(__name__)

CHANNEL_TOKEN_TYPE = "rtc_channel"
PUBLISHER_ROLE = "publisher"


class ChannelTokenUnavailable(Exception):
    """The issuer has no app id or signing secret configured"""
    pass


class ChannelTokenIssuer:
    """
    Mints short-lived credentials that let one uid publish in one channel.

    Tokens are HS256 JWTs signed with the app secret, so the media service
    holding the same secret can verify them without calling back here.
    """

    algorithm = "HS256"

    def __init__(self, app_id: Optional[str], app_secret: Optional[str], ttl_seconds: int = 3600):
        self.app_id = app_id
        self.app_secret = app_secret
        self.ttl_seconds = ttl_seconds

    @property
    def configured(self) -> bool:
        return bool(self.app_id and self.app_secret)

    def issue(self, channel: str, uid: str) -> Dict[str, Any]:
        if not self.configured:
            raise ChannelTokenUnavailable("CHANNEL_APP_ID or CHANNEL_APP_SECRET is not configured")

        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(seconds=self.ttl_seconds)
        claims = {
            "iss": self.app_id,
            "sub": uid,
            "channel": channel,
            "role": PUBLISHER_ROLE,
            "type": CHANNEL_TOKEN_TYPE,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(claims, self.app_secret, algorithm=self.algorithm)
        logger.info(f"Issued channel token for uid {uid} in {channel}, expires {expires_at.isoformat()}")
        return {"token": token, "expires_at": int(expires_at.timestamp())}

    def decode(self, token: str) -> Dict[str, Any]:
        """Verify a token issued here; raises jose.JWTError when invalid or expired"""
        return jwt.decode(token, self.app_secret, algorithms=[self.algorithm], issuer=self.app_id)
