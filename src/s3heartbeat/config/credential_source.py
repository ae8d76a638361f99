from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Union

from s3heartbeat.logging_config import get_logger

ROLE_ARN_ENV = "AWS_ROLE_ARN"
TOKEN_FILE_ENV = "AWS_WEB_IDENTITY_TOKEN_FILE"
SESSION_NAME_ENV = "AWS_ROLE_SESSION_NAME"
ACCESS_KEY_ENV = "AWS_ACCESS_KEY_ID"
SECRET_KEY_ENV = "AWS_SECRET_ACCESS_KEY"
DEFAULT_SESSION_NAME = "s3-heartbeat"

logger = get_logger(__name__)


@dataclass(frozen=True)
class WebIdentityFederation:
    role_arn: str
    token_file: str | None
    session_name: str = DEFAULT_SESSION_NAME

    def describe(self) -> str:
        return f"web identity federation (role={self.role_arn})"


@dataclass(frozen=True)
class StaticKeyPair:
    access_key_id: str
    secret_access_key: str

    def __repr__(self) -> str:
        # keep the secret out of logs and tracebacks
        return f"StaticKeyPair(access_key_id={self.access_key_id!r}, secret_access_key='***')"

    def describe(self) -> str:
        return f"static key pair (access_key_id={self.access_key_id})"


@dataclass(frozen=True)
class Unavailable:
    reason: str = "no credential source configured"

    def describe(self) -> str:
        return f"unavailable ({self.reason})"


CredentialSource = Union[WebIdentityFederation, StaticKeyPair, Unavailable]


def _get(env: Mapping[str, str], name: str) -> str | None:
    value = env.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def resolve_credential_source(env: Mapping[str, str] | None = None) -> CredentialSource:
    """
    Pick the credential source from the environment.

    A role ARN wins over a key pair; a key pair needs both halves. Anything else
    is Unavailable. Nothing here touches the network or the token file.
    """
    env = os.environ if env is None else env

    role_arn = _get(env, ROLE_ARN_ENV)
    if role_arn:
        return WebIdentityFederation(
            role_arn=role_arn,
            token_file=_get(env, TOKEN_FILE_ENV),
            session_name=_get(env, SESSION_NAME_ENV) or DEFAULT_SESSION_NAME,
        )

    access_key = _get(env, ACCESS_KEY_ENV)
    secret_key = _get(env, SECRET_KEY_ENV)
    if access_key and secret_key:
        return StaticKeyPair(access_key_id=access_key, secret_access_key=secret_key)

    if access_key or secret_key:
        logger.warning(
            "Ignoring partial key pair: %s and %s must both be set",
            ACCESS_KEY_ENV,
            SECRET_KEY_ENV,
        )
        return Unavailable(reason=f"only one of {ACCESS_KEY_ENV}/{SECRET_KEY_ENV} is set")
    return Unavailable()
