"""Moray store clients -- the bucket/object interface the benchmarks drive.

``MorayBridgeClient`` talks to a long-lived bridge process over a
line-delimited JSON pipe (stdin/stdout). The bridge owns service discovery
and the Fast RPC protocol, so the harness only measures the calls it makes.
``MemoryStoreClient`` keeps everything in-process for dry runs and tests.
"""

from __future__ import annotations

import collections
import copy
import json
import os
import shlex
import shutil
import subprocess
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field


class MorayError(Exception):
    """Base class for errors returned by a Moray store."""


class BucketError(MorayError):
    """Bucket lookup or creation failed."""


class BucketNotFoundError(BucketError):
    """The bucket does not exist."""


class BucketExistsError(BucketError):
    """The bucket already exists."""


class PersistenceError(MorayError):
    """An object create, update or batch update failed."""


# Moray error names that map to a specific exception class on bucket calls.
# Object calls always raise PersistenceError.
_NAMED_ERRORS: dict[str, type[MorayError]] = {
    "BucketNotFoundError": BucketNotFoundError,
    "BucketConflictError": BucketExistsError,
}


# Lines of bridge stderr kept for error messages.
STDERR_TAIL_LINES = 50


@dataclass
class Bucket:
    name: str
    index: dict = field(default_factory=dict)
    created: bool = False  # True when this call created the bucket


class StoreClient(ABC):
    """Abstract bucket/object store.

    Subclasses implement the four primitive calls; the higher-level
    operations the benchmark uses are built on top of them. Moray has no
    separate create and update calls, so both are puts.
    """

    @abstractmethod
    def get_bucket(self, name: str) -> Bucket:
        """Return the bucket or raise ``BucketNotFoundError``."""

    @abstractmethod
    def create_bucket(self, name: str, index: dict) -> None:
        """Create the bucket or raise ``BucketExistsError``."""

    @abstractmethod
    def put_object(self, bucket: str, key: str, value: dict) -> None:
        """Write a single object."""

    @abstractmethod
    def get_object(self, bucket: str, key: str) -> dict | None:
        """Return an object's fields, or None when the key is absent."""

    @abstractmethod
    def batch(self, requests: list[dict]) -> None:
        """Apply a list of ``{"operation": "put", ...}`` requests in one call."""

    def get_or_create_bucket(self, name: str, index: dict | None = None) -> Bucket:
        try:
            return self.get_bucket(name)
        except BucketNotFoundError:
            pass

        index = index or {}
        try:
            self.create_bucket(name, index)
        except BucketExistsError:
            # Lost a race with another creator; the bucket is there now.
            return self.get_bucket(name)
        return Bucket(name=name, index=index, created=True)

    def create_object(self, bucket: str, key: str, fields: dict) -> None:
        self.put_object(bucket, key, fields)

    def update_object(self, bucket: str, key: str, fields: dict) -> None:
        self.put_object(bucket, key, fields)

    def batch_update(self, bucket: str, items: list[tuple[str, dict]]) -> None:
        self.batch([
            {"operation": "put", "bucket": bucket, "key": key, "value": fields}
            for key, fields in items
        ])

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self) -> None:
        pass


# ======================================================================
# Bridge client
# ======================================================================

class MorayBridgeClient(StoreClient):
    """Spawn ``<bridge> --shard N --domain D`` and send requests via stdin."""

    def __init__(
        self,
        shard: int,
        domain: str,
        *,
        command: list[str] | str | None = None,
    ) -> None:
        self.shard = shard
        self.domain = domain
        self._command = self.resolve_command(command)
        self._lock = threading.Lock()

        args = [*self._command, "--shard", str(shard), "--domain", domain]
        try:
            self._proc = subprocess.Popen(
                args,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                bufsize=1,  # line-buffered
            )
        except OSError as e:
            raise MorayError(f"Cannot start Moray bridge {args[0]!r}: {e}") from e

        # The bridge may log on every request; keep the pipe drained so it
        # never blocks on a full stderr buffer.
        self._stderr_tail: collections.deque[str] = collections.deque(maxlen=STDERR_TAIL_LINES)
        self._stderr_thread = threading.Thread(
            target=self._drain_stderr,
            args=(self._proc.stderr,),
            name="moray-bridge-stderr",
            daemon=True,
        )
        self._stderr_thread.start()

    def _drain_stderr(self, stream) -> None:
        for line in stream:
            self._stderr_tail.append(line.rstrip("\n"))

    def _stderr_text(self) -> str:
        self._stderr_thread.join(timeout=1)
        return "\n".join(self._stderr_tail)

    # ------------------------------------------------------------------
    # Command resolution
    # ------------------------------------------------------------------

    @staticmethod
    def resolve_command(explicit: list[str] | str | None) -> list[str]:
        if explicit:
            return shlex.split(explicit) if isinstance(explicit, str) else list(explicit)
        env = os.environ.get("MORAY_BRIDGE")
        if env:
            return shlex.split(env)
        which = shutil.which("moray-bridge")
        if which:
            return [which]
        raise FileNotFoundError(
            "Cannot find a Moray bridge. Set MORAY_BRIDGE, add 'moray-bridge' "
            "to PATH, or pass --bridge."
        )

    # ------------------------------------------------------------------
    # Low-level I/O
    # ------------------------------------------------------------------

    def _read_response(self, error_cls: type[MorayError]) -> str:
        """Read one complete JSON value from stdout.

        Lines are accumulated until they parse, so a bridge that
        pretty-prints its responses still works.
        """
        buf: list[str] = []

        while True:
            line = self._proc.stdout.readline()
            if not line:
                # EOF -- process died
                raise error_cls(f"Moray bridge exited unexpectedly: {self._stderr_text().strip()}")

            if not line.strip():
                continue

            buf.append(line)
            text = "".join(buf)
            try:
                json.loads(text)
                return text
            except json.JSONDecodeError:
                continue

    def _send(self, request: dict, error_cls: type[MorayError]):
        """Send one request and return the unwrapped ``result``."""
        payload = json.dumps(request, separators=(",", ":"))
        with self._lock:
            if self._proc is None or self._proc.poll() is not None:
                raise error_cls("Moray bridge is not running")
            try:
                self._proc.stdin.write(payload + "\n")
                self._proc.stdin.flush()
            except OSError as e:
                raise error_cls(f"Moray bridge write failed: {e}") from e
            raw = self._read_response(error_cls)

        return _unwrap(json.loads(raw), error_cls)

    # ------------------------------------------------------------------
    # Store calls
    # ------------------------------------------------------------------

    def get_bucket(self, name: str) -> Bucket:
        result = self._send({"method": "getBucket", "bucket": name}, BucketError)
        index = result.get("index", {}) if isinstance(result, dict) else {}
        return Bucket(name=name, index=index)

    def create_bucket(self, name: str, index: dict) -> None:
        self._send(
            {"method": "createBucket", "bucket": name, "config": {"index": index}},
            BucketError,
        )

    def put_object(self, bucket: str, key: str, value: dict) -> None:
        self._send(
            {"method": "putObject", "bucket": bucket, "key": key, "value": value},
            PersistenceError,
        )

    def get_object(self, bucket: str, key: str) -> dict | None:
        try:
            result = self._send(
                {"method": "getObject", "bucket": bucket, "key": key},
                PersistenceError,
            )
        except _ObjectNotFound:
            return None
        if isinstance(result, dict):
            return result.get("value", result)
        return None

    def batch(self, requests: list[dict]) -> None:
        self._send({"method": "batch", "requests": requests}, PersistenceError)

    def close(self) -> None:
        if self._proc is None:
            return
        if self._proc.stdin and not self._proc.stdin.closed:
            try:
                self._proc.stdin.close()
            except OSError:
                pass
        try:
            self._proc.wait(timeout=10)
        except subprocess.TimeoutExpired:
            self._proc.kill()
            self._proc.wait()
        self._stderr_thread.join(timeout=1)
        for stream in (self._proc.stdout, self._proc.stderr):
            if stream is not None:
                stream.close()
        self._proc = None


class _ObjectNotFound(PersistenceError):
    """Raised internally for ``ObjectNotFoundError`` so get_object can return None."""


# ======================================================================
# Response unwrapping
# ======================================================================

def _unwrap(value, error_cls: type[MorayError] = MorayError):
    """Return the ``result`` of a bridge response, raising on ``error``."""
    if not isinstance(value, dict):
        return value

    if "error" in value:
        err = value["error"]
        if isinstance(err, dict):
            name = err.get("name", "")
            message = err.get("message", "") or name
        else:
            name = ""
            message = str(err)
        if name == "ObjectNotFoundError":
            raise _ObjectNotFound(message)
        if issubclass(error_cls, BucketError):
            error_cls = _NAMED_ERRORS.get(name, error_cls)
        raise error_cls(message)

    if "result" in value:
        return value["result"]

    # If we don't recognise the shape, return as-is
    return value


# ======================================================================
# In-memory store
# ======================================================================

class MemoryStoreClient(StoreClient):
    """Dict-backed store. ``latency_s`` is slept once per call to stand in
    for a network round trip, so batched calls pay it once per batch."""

    def __init__(self, *, latency_s: float = 0.0) -> None:
        self.latency_s = latency_s
        self._buckets: dict[str, dict] = {}
        self._objects: dict[str, dict[str, dict]] = {}

    def _round_trip(self) -> None:
        if self.latency_s > 0:
            time.sleep(self.latency_s)

    def get_bucket(self, name: str) -> Bucket:
        self._round_trip()
        if name not in self._buckets:
            raise BucketNotFoundError(f"{name} does not exist")
        return Bucket(name=name, index=copy.deepcopy(self._buckets[name]))

    def create_bucket(self, name: str, index: dict) -> None:
        self._round_trip()
        if name in self._buckets:
            raise BucketExistsError(f"{name} already exists")
        self._buckets[name] = copy.deepcopy(index)
        self._objects[name] = {}

    def put_object(self, bucket: str, key: str, value: dict) -> None:
        self._round_trip()
        self._bucket_objects(bucket)[key] = copy.deepcopy(value)

    def get_object(self, bucket: str, key: str) -> dict | None:
        self._round_trip()
        value = self._bucket_objects(bucket).get(key)
        return copy.deepcopy(value) if value is not None else None

    def batch(self, requests: list[dict]) -> None:
        self._round_trip()
        # Validate the whole batch first so a bad request leaves no partial write.
        for req in requests:
            if req.get("operation") != "put":
                raise PersistenceError(f"unsupported batch operation: {req.get('operation')!r}")
            self._bucket_objects(req["bucket"])
        for req in requests:
            self._objects[req["bucket"]][req["key"]] = copy.deepcopy(req["value"])

    def keys(self, bucket: str) -> list[str]:
        return list(self._bucket_objects(bucket))

    def _bucket_objects(self, bucket: str) -> dict[str, dict]:
        try:
            return self._objects[bucket]
        except KeyError:
            raise PersistenceError(f"bucket {bucket} does not exist") from None
