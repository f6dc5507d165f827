from typing import Callable, Optional

from starlette.concurrency import run_in_threadpool
from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from constants import TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_TTL_SECONDS
from logging_config import get_logger

logger = get_logger(__name__)


class TurnCredentialsUnavailable(RuntimeError):
    """No relay credential account is configured."""


class TurnCredentialsError(RuntimeError):
    """The credential service could not be reached or refused the request."""


def token_to_dict(token) -> dict:
    """Serialize a Twilio TokenInstance with the keys browser clients read."""
    date_created = getattr(token, "date_created", None)
    return {
        "accountSid": token.account_sid,
        "dateCreated": date_created.isoformat() if date_created else None,
        "username": token.username,
        "password": token.password,
        "ttl": token.ttl,
        "iceServers": token.ice_servers,
    }


class TurnCredentialsProvider:
    """Issues short-lived network traversal tokens through Twilio's Tokens API."""

    def __init__(
        self,
        account_sid: Optional[str] = TWILIO_ACCOUNT_SID,
        auth_token: Optional[str] = TWILIO_AUTH_TOKEN,
        ttl_seconds: int = TWILIO_TTL_SECONDS,
        client_factory: Callable[[str, str], Client] = Client,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.ttl_seconds = ttl_seconds
        self.client_factory = client_factory

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token)

    async def create_token(self) -> dict:
        if not self.configured:
            raise TurnCredentialsUnavailable("TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN are not set")

        client = self.client_factory(self.account_sid, self.auth_token)
        try:
            # The Twilio client is blocking
            token = await run_in_threadpool(client.tokens.create, ttl=self.ttl_seconds)
        except (TwilioException, OSError) as e:
            logger.error(f"Failed to obtain relay credentials: {e}")
            raise TurnCredentialsError(str(e)) from e

        logger.debug(f"Issued relay credentials with {len(token.ice_servers or [])} ice servers")
        return token_to_dict(token)


turn_credentials = TurnCredentialsProvider()
