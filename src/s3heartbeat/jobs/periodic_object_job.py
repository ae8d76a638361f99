from __future__ import annotations

import enum
import math
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from s3heartbeat.config.object_store_config import HeartbeatConfig
from s3heartbeat.logging_config import get_logger, with_context
from s3heartbeat.storage.client_provider import CredentialClientProvider

logger = get_logger(__name__)


class RunState(enum.Enum):
    AUTHENTICATING = "authenticating"
    UPLOADING = "uploading"
    DELETING = "deleting"


@dataclass(frozen=True)
class ObjectDescriptor:
    bucket: str
    key: str
    body: bytes


@dataclass(frozen=True)
class RunResult:
    descriptor: ObjectDescriptor
    succeeded: bool
    failed_stage: RunState | None = None
    error: BaseException | None = None


def new_object_key() -> str:
    return uuid.uuid4().hex


def run_heartbeat(
    provider: CredentialClientProvider,
    bucket: str,
    body: bytes,
    key_factory: Callable[[], str] = new_object_key,
) -> RunResult:
    """
    Upload a freshly keyed object and delete it again.

    Every failure stops the run and is returned in the RunResult; nothing is
    raised, so a scheduler can call this forever.
    """
    descriptor = ObjectDescriptor(bucket=bucket, key=key_factory(), body=body)
    run_logger = with_context(logger, bucket=descriptor.bucket, key=descriptor.key)
    state = RunState.AUTHENTICATING
    try:
        store = provider.get_client()

        state = RunState.UPLOADING
        run_logger.info("Creating object %s/%s...", descriptor.bucket, descriptor.key)
        store.put_object(descriptor.bucket, descriptor.key, descriptor.body)
        run_logger.info("Object %s/%s created successfully", descriptor.bucket, descriptor.key)

        state = RunState.DELETING
        run_logger.info("Deleting object %s/%s...", descriptor.bucket, descriptor.key)
        store.delete_object(descriptor.bucket, descriptor.key)
        run_logger.info("Object %s/%s deleted successfully", descriptor.bucket, descriptor.key)
    except Exception as exc:
        run_logger.exception("Heartbeat run failed: stage=%s", state.value)
        return RunResult(descriptor=descriptor, succeeded=False, failed_stage=state, error=exc)
    return RunResult(descriptor=descriptor, succeeded=True)


class PeriodicObjectJob:
    """Runs run_heartbeat immediately and then every interval, never overlapping."""

    def __init__(
        self,
        provider: CredentialClientProvider,
        config: HeartbeatConfig,
        key_factory: Callable[[], str] = new_object_key,
        clock: Callable[[], float] = time.monotonic,
        wait: Callable[[float], object] | None = None,
    ):
        self.provider = provider
        self.config = config
        self._key_factory = key_factory
        self._clock = clock
        self._stop_event = threading.Event()
        self._wait = wait or self._stop_event.wait
        self._thread: threading.Thread | None = None
        self.runs = 0
        self.skipped_ticks = 0
        self.last_result: RunResult | None = None

    @property
    def interval_seconds(self) -> float:
        return self.config.interval_seconds

    def run(self) -> RunResult:
        result = run_heartbeat(self.provider, self.config.bucket_name, self.config.body, self._key_factory)
        self.runs += 1
        self.last_result = result
        return result

    def run_forever(self, max_runs: int | None = None) -> None:
        logger.info(
            "Starting heartbeat job: bucket=%s interval_seconds=%s max_runs=%s",
            self.config.bucket_name,
            self.interval_seconds,
            max_runs,
        )
        next_tick = self._clock()
        completed = 0
        while not self._stop_event.is_set() and (max_runs is None or completed < max_runs):
            self.run()
            completed += 1
            if max_runs is not None and completed >= max_runs:
                break

            next_tick += self.interval_seconds
            now = self._clock()
            if now > next_tick:
                missed = math.ceil((now - next_tick) / self.interval_seconds)
                next_tick += missed * self.interval_seconds
                self.skipped_ticks += missed
                logger.warning("Heartbeat run overran its interval, skipping %s tick(s)", missed)
            self._wait(max(0.0, next_tick - now))
        logger.info("Heartbeat job stopped: runs=%s skipped_ticks=%s", self.runs, self.skipped_ticks)

    def start(self, max_runs: int | None = None) -> threading.Thread:
        if self._thread is not None and self._thread.is_alive():
            raise RuntimeError("Heartbeat job is already running.")
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run_forever,
            kwargs={"max_runs": max_runs},
            name="heartbeat-job",
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
