from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import boto3
import pytest
from botocore.exceptions import ClientError
from botocore.stub import Stubber

from s3heartbeat.auth.federation import exchange_web_identity, read_web_identity_token
from s3heartbeat.config.credential_source import WebIdentityFederation
from s3heartbeat.errors import CredentialError

ROLE_ARN = "arn:aws:iam::123456789012:role/heartbeat"


@pytest.fixture
def sts_client():
    return boto3.client("sts", region_name="us-west-2")


@pytest.fixture
def token_file(tmp_path):
    path = tmp_path / "token"
    path.write_text("eyJhbGciOi.test-token\n", encoding="utf-8")
    return path


def test_exchange_presents_raw_token_contents(sts_client, token_file):
    source = WebIdentityFederation(role_arn=ROLE_ARN, token_file=str(token_file), session_name="s3-heartbeat")
    expiration = datetime(2030, 1, 1, tzinfo=timezone.utc)
    with Stubber(sts_client) as stub:
        stub.add_response(
            "assume_role_with_web_identity",
            {
                "Credentials": {
                    "AccessKeyId": "ASIAEXAMPLE00000001",
                    "SecretAccessKey": "secret",
                    "SessionToken": "session-token",
                    "Expiration": expiration,
                },
            },
            {
                "RoleArn": ROLE_ARN,
                "RoleSessionName": "s3-heartbeat",
                "WebIdentityToken": "eyJhbGciOi.test-token\n",
            },
        )
        credentials = exchange_web_identity(source, "us-west-2", sts_client=sts_client)
        stub.assert_no_pending_responses()

    assert credentials.access_key_id == "ASIAEXAMPLE00000001"
    assert credentials.secret_access_key == "secret"
    assert credentials.session_token == "session-token"
    assert credentials.expiration == expiration
    assert "secret" not in repr(credentials)


def test_exchange_failure_raises_credential_error(sts_client, token_file):
    source = WebIdentityFederation(role_arn=ROLE_ARN, token_file=str(token_file))
    with Stubber(sts_client) as stub:
        stub.add_client_error(
            "assume_role_with_web_identity",
            service_error_code="InvalidIdentityToken",
            http_status_code=400,
        )
        with pytest.raises(CredentialError, match="InvalidIdentityToken"):
            exchange_web_identity(source, "us-west-2", sts_client=sts_client)


def test_missing_token_file_fails_before_any_call(tmp_path):
    sts_client = boto3.client("sts", region_name="us-west-2")
    source = WebIdentityFederation(role_arn=ROLE_ARN, token_file=str(tmp_path / "missing"))
    with Stubber(sts_client) as stub:
        with pytest.raises(CredentialError, match="Cannot read web identity token file"):
            exchange_web_identity(source, "us-west-2", sts_client=sts_client)
        stub.assert_no_pending_responses()


def test_unset_token_file_is_a_credential_error():
    with pytest.raises(CredentialError, match="token file"):
        read_web_identity_token(None)


def test_undecodable_token_file_is_a_credential_error(tmp_path):
    path = tmp_path / "token"
    path.write_bytes(b"\xff\xfe\x00bad")
    with pytest.raises(CredentialError, match="Cannot read web identity token file"):
        read_web_identity_token(str(path))


def test_invalid_region_is_a_credential_error(token_file):
    source = WebIdentityFederation(role_arn=ROLE_ARN, token_file=str(token_file))
    with pytest.raises(CredentialError):
        exchange_web_identity(source, "not a region!")


def test_owned_sts_client_is_closed(token_file):
    source = WebIdentityFederation(role_arn=ROLE_ARN, token_file=str(token_file))
    sts_client = MagicMock()
    sts_client.assume_role_with_web_identity.return_value = {
        "Credentials": {"AccessKeyId": "ASIA1", "SecretAccessKey": "secret", "SessionToken": "token"},
    }
    with patch("s3heartbeat.auth.federation.boto3.client", return_value=sts_client) as make_client:
        credentials = exchange_web_identity(source, "us-west-2")
    make_client.assert_called_once_with("sts", region_name="us-west-2")
    sts_client.close.assert_called_once_with()
    assert credentials.access_key_id == "ASIA1"


def test_owned_sts_client_is_closed_on_failure(token_file):
    source = WebIdentityFederation(role_arn=ROLE_ARN, token_file=str(token_file))
    sts_client = MagicMock()
    sts_client.assume_role_with_web_identity.side_effect = ClientError(
        {"Error": {"Code": "InvalidIdentityToken", "Message": "bad"}}, "AssumeRoleWithWebIdentity"
    )
    with patch("s3heartbeat.auth.federation.boto3.client", return_value=sts_client):
        with pytest.raises(CredentialError):
            exchange_web_identity(source, "us-west-2")
    sts_client.close.assert_called_once_with()


def test_caller_supplied_sts_client_is_left_open(token_file):
    source = WebIdentityFederation(role_arn=ROLE_ARN, token_file=str(token_file))
    sts_client = MagicMock()
    sts_client.assume_role_with_web_identity.return_value = {
        "Credentials": {"AccessKeyId": "ASIA1", "SecretAccessKey": "secret", "SessionToken": "token"},
    }
    exchange_web_identity(source, "us-west-2", sts_client=sts_client)
    sts_client.close.assert_not_called()
