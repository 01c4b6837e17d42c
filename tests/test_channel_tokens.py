"""Channel token issuer"""
import pytest
from jose import JWTError

from app.services.channel_tokens import ChannelTokenIssuer, ChannelTokenUnavailable


def test_issuer_requires_secret():
    with pytest.raises(ChannelTokenUnavailable):
        ChannelTokenIssuer("practice-app", None).issue("room-1", "u1")


def test_token_signed_with_another_secret_is_rejected():
    token = ChannelTokenIssuer("practice-app", "secret-a").issue("room-1", "u1")["token"]

    with pytest.raises(JWTError):
        ChannelTokenIssuer("practice-app", "secret-b").decode(token)


def test_expired_token_is_rejected():
    token = ChannelTokenIssuer("practice-app", "secret-a", ttl_seconds=-10).issue("room-1", "u1")["token"]

    with pytest.raises(JWTError):
        ChannelTokenIssuer("practice-app", "secret-a").decode(token)
