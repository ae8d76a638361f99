import boto3
import pytest
from botocore.stub import Stubber

from s3heartbeat.storage.object_store import ObjectStore

_AWS_ENV_VARS = (
    "AWS_ROLE_ARN",
    "AWS_WEB_IDENTITY_TOKEN_FILE",
    "AWS_ROLE_SESSION_NAME",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_SESSION_TOKEN",
    "AWS_PROFILE",
    "AWS_S3_ENDPOINT",
    "S3_ACCELERATE",
    "AWS_REGION",
    "AWS_DEFAULT_REGION",
    "AWS_S3_BUCKET_NAME",
    "HEARTBEAT_INTERVAL_SECONDS",
)


@pytest.fixture(autouse=True)
def clean_aws_env(monkeypatch, tmp_path):
    """Keep the developer's real AWS settings out of every test."""
    for name in _AWS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("AWS_CONFIG_FILE", str(tmp_path / "aws-config"))
    monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(tmp_path / "aws-credentials"))
    monkeypatch.setenv("AWS_EC2_METADATA_DISABLED", "true")


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        region_name="us-west-2",
        aws_access_key_id="AKIATESTTESTTEST",
        aws_secret_access_key="abc",
    )


@pytest.fixture
def s3_stub(s3_client):
    with Stubber(s3_client) as stubber:
        yield stubber
        stubber.assert_no_pending_responses()


@pytest.fixture
def store(s3_client, s3_stub):
    return ObjectStore(s3_client)
