import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from brazadash import config
from brazadash.errors import UpstreamError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayCredentials:
    publishable_key: str
    secret_key: str


def _connector_token():
    token = os.getenv("STRIPE_CONNECTOR_TOKEN")
    if token:
        return token
    if os.getenv("REPL_IDENTITY"):
        return "repl " + os.getenv("REPL_IDENTITY")
    if os.getenv("WEB_REPL_RENEWAL"):
        return "depl " + os.getenv("WEB_REPL_RENEWAL")
    return None


def fetch_connector_credentials(hostname: str, token: str, environment: str) -> Optional[GatewayCredentials]:
    response = httpx.get(
        f"https://{hostname}/api/v2/connection",
        params={
            "include_secrets": "true",
            "connector_names": "stripe",
            "environment": environment,
        },
        headers={"Accept": "application/json", "X_REPLIT_TOKEN": token},
        timeout=10.0,
    )
    response.raise_for_status()

    items = response.json().get("items") or []
    settings = (items[0].get("settings") or {}) if items else {}
    if settings.get("publishable") and settings.get("secret"):
        return GatewayCredentials(settings["publishable"], settings["secret"])
    return None


def fetch_credentials() -> GatewayCredentials:
    """Resolve Stripe keys from the connector service, else from the environment."""
    hostname = os.getenv("STRIPE_CONNECTOR_HOSTNAME")
    token = _connector_token()

    if hostname and token:
        environment = os.getenv("STRIPE_ENVIRONMENT", "development")
        try:
            creds = fetch_connector_credentials(hostname, token, environment)
            if not creds and environment == "production":
                logger.warning("Production Stripe credentials not found, falling back to development credentials")
                creds = fetch_connector_credentials(hostname, token, "development")
        except httpx.HTTPError as e:
            logger.error(f"Stripe connector unreachable: {e}")
            raise UpstreamError("Payment gateway credentials unavailable") from e
        if not creds:
            raise UpstreamError(f"Stripe connection not found for {environment}")
        return creds

    secret = os.getenv("STRIPE_SECRET_KEY")
    if not secret:
        raise UpstreamError("STRIPE_SECRET_KEY is not set")
    return GatewayCredentials(os.getenv("STRIPE_PUBLISHABLE_KEY", ""), secret)


class CredentialCache:
    """Holds fetched credentials until ``ttl`` seconds have passed.

    There is no explicit invalidation; an expired entry is simply re-fetched.
    Concurrent refreshes are harmless since they return the same keys.
    """

    def __init__(
        self,
        fetcher: Callable[[], GatewayCredentials] = fetch_credentials,
        ttl: float = config.CREDENTIALS_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.fetcher = fetcher
        self.ttl = ttl
        self.clock = clock
        self._credentials: Optional[GatewayCredentials] = None
        self._expires_at = 0.0

    def get(self) -> GatewayCredentials:
        now = self.clock()
        if self._credentials is not None and now < self._expires_at:
            return self._credentials

        self._credentials = self.fetcher()
        self._expires_at = now + self.ttl
        return self._credentials

    def clear(self):
        self._credentials = None
        self._expires_at = 0.0


credential_cache = CredentialCache()


def get_credentials() -> GatewayCredentials:
    return credential_cache.get()
