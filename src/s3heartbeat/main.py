"""Entry point: run the S3 heartbeat job, or a one-shot bucket/object tutorial."""

from __future__ import annotations

import argparse
import os
import uuid

from s3heartbeat.config.credential_source import Unavailable, resolve_credential_source
from s3heartbeat.config.object_store_config import (
    DEFAULT_BODY,
    HeartbeatConfig,
    endpoint_config_from_env,
    heartbeat_config_from_env,
)
from s3heartbeat.errors import ConfigError
from s3heartbeat.jobs.periodic_object_job import PeriodicObjectJob
from s3heartbeat.logging_config import configure_logging, get_logger
from s3heartbeat.storage.client_provider import CredentialClientProvider
from s3heartbeat.storage.object_store import ObjectStore

TUTORIAL_KEY = "key"

logger = get_logger(__name__)


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"must be an integer, got: {raw!r}") from exc
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got: {value}")
    return value


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Continuously upload and delete a test object to check S3 credentials."
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Create a throwaway bucket, put and delete one object, delete the bucket, then exit.",
    )
    parser.add_argument(
        "--bucket",
        default=None,
        help="Heartbeat bucket (defaults to AWS_S3_BUCKET_NAME).",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between heartbeat runs (defaults to HEARTBEAT_INTERVAL_SECONDS or 60).",
    )
    parser.add_argument(
        "--max-runs",
        type=_positive_int,
        default=None,
        help="Stop after this many runs (default: run until interrupted).",
    )
    return parser.parse_args(argv)


def build_heartbeat_config(args: argparse.Namespace) -> HeartbeatConfig:
    env = dict(os.environ)
    if args.bucket:
        env["AWS_S3_BUCKET_NAME"] = args.bucket
    config = heartbeat_config_from_env(env)
    if args.interval is not None:
        config = HeartbeatConfig(bucket_name=config.bucket_name, interval_seconds=args.interval, body=config.body)
    return config


def build_provider(probe_bucket: str) -> CredentialClientProvider:
    source = resolve_credential_source()
    if isinstance(source, Unavailable):
        raise ConfigError(
            "No credential source found: set AWS_ROLE_ARN (with AWS_WEB_IDENTITY_TOKEN_FILE) "
            f"or AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY ({source.reason})."
        )
    endpoint = endpoint_config_from_env()
    logger.info("Using credentials: %s", source.describe())
    return CredentialClientProvider(source, endpoint, probe_bucket=probe_bucket)


def run_tutorial(store: ObjectStore, bucket: str, region: str, body: bytes, key: str = TUTORIAL_KEY) -> None:
    logger.info("Creating bucket %s...", bucket)
    store.create_bucket(bucket, region)
    logger.info("Bucket %s created successfully!", bucket)
    try:
        logger.info("Creating object %s/%s...", bucket, key)
        store.put_object(bucket, key, body)
        logger.info("Object %s/%s created successfully!", bucket, key)

        logger.info("Deleting object %s/%s...", bucket, key)
        store.delete_object(bucket, key)
        logger.info("Object %s/%s deleted successfully!", bucket, key)
    finally:
        logger.info("Deleting bucket %s...", bucket)
        store.delete_bucket(bucket)
        logger.info("Bucket %s deleted successfully!", bucket)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"), service="s3heartbeat")
    try:
        if args.once:
            bucket = f"bucket-{uuid.uuid4()}"
            provider = build_provider(probe_bucket=bucket)
            try:
                run_tutorial(provider.get_client(), bucket, provider.endpoint.region, DEFAULT_BODY)
            finally:
                provider.close()
            return 0

        config = build_heartbeat_config(args)
        provider = build_provider(probe_bucket=config.bucket_name)
        job = PeriodicObjectJob(provider, config)
        try:
            job.run_forever(max_runs=args.max_runs)
        except KeyboardInterrupt:
            logger.info("Interrupted, stopping heartbeat job")
        finally:
            provider.close()
        return 0
    except ConfigError:
        logger.exception("Invalid configuration")
        return 2
    except Exception:
        logger.exception("Unhandled error in s3heartbeat")
        raise


if __name__ == "__main__":
    raise SystemExit(main())
