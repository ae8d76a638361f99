from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Union

from botocore.exceptions import BotoCoreError

from s3heartbeat.auth.federation import exchange_web_identity
from s3heartbeat.config.credential_source import (
    CredentialSource,
    StaticKeyPair,
    Unavailable,
    WebIdentityFederation,
)
from s3heartbeat.config.object_store_config import EndpointConfig
from s3heartbeat.errors import CredentialError, CredentialsUnavailableError
from s3heartbeat.logging_config import get_logger
from s3heartbeat.storage.object_store import ObjectStore

PROBE_LIMIT = 1

logger = get_logger(__name__)

HandleFactory = Callable[[CredentialSource, EndpointConfig], ObjectStore]


def create_handle(source: CredentialSource, endpoint: EndpointConfig) -> ObjectStore:
    """Build a new ObjectStore for the given source, applying the endpoint settings."""
    if isinstance(source, Unavailable):
        raise CredentialsUnavailableError(f"No usable credential source: {source.reason}")

    if isinstance(source, WebIdentityFederation):
        credentials = exchange_web_identity(source, endpoint.region)
        access_key = credentials.access_key_id
        secret_key = credentials.secret_access_key
        session_token: str | None = credentials.session_token
    elif isinstance(source, StaticKeyPair):
        access_key = source.access_key_id
        secret_key = source.secret_access_key
        session_token = None
    else:
        raise CredentialError(f"Unsupported credential source: {type(source).__name__}")

    try:
        store = ObjectStore.connect(endpoint, access_key, secret_key, session_token)
    except (BotoCoreError, ValueError) as e:
        raise CredentialError(f"Could not construct S3 client: {e}") from e
    logger.info(
        "Created S3 client: source=%s region=%s endpoint=%s accelerate=%s",
        type(source).__name__,
        endpoint.region,
        endpoint.endpoint_url or "default",
        endpoint.accelerate,
    )
    return store


@dataclass(frozen=True)
class _Unset:
    pass


@dataclass(frozen=True)
class _Set:
    handle: ObjectStore


_ClientState = Union[_Unset, _Set]


class CredentialClientProvider:
    """
    Hands out an authenticated ObjectStore, re-creating it when it stops working.

    Only federated credentials are probed and replaced. Static keys are assumed
    never to expire, so a static-key handle is reused as-is even if the store
    would reject it; callers see the failure on their own request instead.

    The probe is a one-key listing: any error counts as "not authenticated",
    including transient network errors, so a flaky network can cause extra
    token exchanges.
    """

    def __init__(
        self,
        source: CredentialSource,
        endpoint: EndpointConfig,
        probe_bucket: str,
        handle_factory: HandleFactory = create_handle,
    ):
        self.source = source
        self.endpoint = endpoint
        self.probe_bucket = probe_bucket
        self._handle_factory = handle_factory
        self._state: _ClientState = _Unset()
        self._lock = threading.Lock()

    @property
    def has_client(self) -> bool:
        return isinstance(self._state, _Set)

    def get_client(self) -> ObjectStore:
        with self._lock:
            state = self._state
            if isinstance(state, _Unset):
                logger.info("No S3 client yet, creating one: source=%s", self.source.describe())
                return self._install()
            if isinstance(self.source, WebIdentityFederation) and not self.is_authenticated(state.handle):
                logger.warning("S3 client failed liveness probe, re-authenticating: bucket=%s", self.probe_bucket)
                return self._replace(state.handle)
            return state.handle

    def refresh(self) -> ObjectStore:
        """Unconditionally replace the current handle."""
        with self._lock:
            state = self._state
            if isinstance(state, _Set):
                return self._replace(state.handle)
            return self._install()

    def is_authenticated(self, handle: ObjectStore) -> bool:
        try:
            handle.list_objects(self.probe_bucket, limit=PROBE_LIMIT)
        except Exception:
            logger.info("Liveness probe failed: bucket=%s", self.probe_bucket, exc_info=True)
            return False
        return True

    def close(self) -> None:
        with self._lock:
            state = self._state
            self._state = _Unset()
            if isinstance(state, _Set):
                state.handle.close()
                logger.info("Released S3 client")

    def _replace(self, old: ObjectStore) -> ObjectStore:
        # a failed re-creation leaves the provider Unset, never holding a closed handle
        self._state = _Unset()
        old.close()
        return self._install()

    def _install(self) -> ObjectStore:
        handle = self._handle_factory(self.source, self.endpoint)
        self._state = _Set(handle)
        return handle
