from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from twilio.base.exceptions import TwilioRestException

from turn import TurnCredentialsError, TurnCredentialsProvider, TurnCredentialsUnavailable

ICE_SERVERS = [
    {"urls": "stun:global.stun.twilio.com:3478"},
    {"urls": "turn:global.turn.twilio.com:3478?transport=udp", "username": "f2b1c0", "credential": "secret-pass"},
]


def fake_token():
    return SimpleNamespace(
        account_sid="AC123",
        date_created=datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc),
        username="f2b1c0",
        password="secret-pass",
        ttl="3600",
        ice_servers=ICE_SERVERS,
    )


class FakeTokens:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return fake_token()


def client_factory(tokens, seen=None):
    def build(account_sid, auth_token):
        if seen is not None:
            seen.append((account_sid, auth_token))
        return SimpleNamespace(tokens=tokens)
    return build


def test_create_token_uses_account_and_ttl(run):
    tokens, seen = FakeTokens(), []
    provider = TurnCredentialsProvider("AC123", "auth", ttl_seconds=3600, client_factory=client_factory(tokens, seen))

    token = run(provider.create_token())

    assert seen == [("AC123", "auth")]
    assert tokens.calls == [{"ttl": 3600}]
    assert token == {
        "accountSid": "AC123",
        "dateCreated": "2026-10-19T12:00:00+00:00",
        "username": "f2b1c0",
        "password": "secret-pass",
        "ttl": "3600",
        "iceServers": ICE_SERVERS,
    }


def test_missing_account_is_unavailable(run):
    tokens = FakeTokens()
    provider = TurnCredentialsProvider(account_sid=None, auth_token=None, client_factory=client_factory(tokens))
    assert provider.configured is False
    with pytest.raises(TurnCredentialsUnavailable):
        run(provider.create_token())
    assert tokens.calls == []


def test_twilio_error_is_wrapped(run):
    error = TwilioRestException(401, "/Accounts/AC123/Tokens.json", msg="Authenticate", code=20003, method="POST")
    provider = TurnCredentialsProvider("AC123", "wrong", client_factory=client_factory(FakeTokens(error)))
    with pytest.raises(TurnCredentialsError):
        run(provider.create_token())


def test_network_error_is_wrapped(run):
    provider = TurnCredentialsProvider(
        "AC123", "auth", client_factory=client_factory(FakeTokens(ConnectionError("connection refused")))
    )
    with pytest.raises(TurnCredentialsError):
        run(provider.create_token())
