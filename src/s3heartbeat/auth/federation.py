from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from s3heartbeat.config.credential_source import WebIdentityFederation
from s3heartbeat.errors import CredentialError
from s3heartbeat.logging_config import get_logger

logger = get_logger(__name__)


class FederatedCredentials(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True)
    access_key_id: str = Field(..., alias="AccessKeyId", description="Temporary access key id.")
    secret_access_key: str = Field(..., alias="SecretAccessKey", repr=False, description="Temporary secret key.")
    session_token: str = Field(..., alias="SessionToken", repr=False, description="Session token bound to the keys.")
    expiration: Optional[datetime] = Field(None, alias="Expiration", description="When the credentials stop working.")


def read_web_identity_token(token_file: str | None) -> str:
    if not token_file:
        raise CredentialError("Web identity federation requires a token file, but none is configured.")
    try:
        return Path(token_file).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise CredentialError(f"Cannot read web identity token file {token_file!r}: {e}") from e


def exchange_web_identity(source: WebIdentityFederation, region: str, sts_client=None) -> FederatedCredentials:
    """
    Trade the token file contents for short-lived credentials.

    There is no retry: any failure here fails the caller's get_client().
    An STS client created here is closed before returning.
    """
    token = read_web_identity_token(source.token_file)
    client = sts_client
    logger.info("Assuming role with web identity: role_arn=%s session_name=%s", source.role_arn, source.session_name)
    try:
        if client is None:
            client = boto3.client("sts", region_name=region)
        response = client.assume_role_with_web_identity(
            RoleArn=source.role_arn,
            RoleSessionName=source.session_name,
            WebIdentityToken=token,
        )
    except (ClientError, BotoCoreError, ValueError) as e:
        raise CredentialError(f"AssumeRoleWithWebIdentity failed for role {source.role_arn!r}: {e}") from e
    finally:
        if sts_client is None and client is not None:
            client.close()

    try:
        credentials = FederatedCredentials.model_validate(response.get("Credentials") or {})
    except ValidationError as e:
        raise CredentialError(f"AssumeRoleWithWebIdentity returned malformed credentials: {e}") from e
    logger.info(
        "Obtained federated credentials: access_key_id=%s expiration=%s",
        credentials.access_key_id,
        credentials.expiration,
    )
    return credentials
