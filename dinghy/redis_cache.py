"""Dependency graph and raw dinghyfile storage kept in Redis."""

from __future__ import annotations

import logging
import signal
import threading
from collections import deque
from collections.abc import Callable, Iterable

import redis

logger = logging.getLogger(__name__)

KEY_PREFIX = "Armory:dinghy"
MAX_MONITOR_FAILURES = 5
SCAN_COUNT = 1000


def compile_key(*args: str) -> str:
    """Join key parts under the dinghy namespace."""
    return f"{KEY_PREFIX}:{':'.join(args)}"


def _text(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else value


def _members(client: redis.Redis, key: str) -> list[str]:
    return sorted(_text(member) for member in client.smembers(key))


def _interrupt_process() -> None:
    signal.raise_signal(signal.SIGINT)


def _find_roots(client: redis.Redis, url: str) -> list[str]:
    roots: list[str] = []
    visited = {url}
    queue = deque([url])
    while queue:
        current = queue.popleft()
        key = compile_key("parents", current)
        try:
            parents = _members(client, key)
        except redis.RedisError as err:
            logger.error("get_roots: reading parents of %s failed: %s", key, err)
            break
        if current != url and not parents:
            roots.append(current)
        for parent in parents:
            if parent not in visited:
                visited.add(parent)
                queue.append(parent)
    return roots


def _read_raw_data(client: redis.Redis, url: str) -> str:
    key = compile_key("rawdata", url)
    try:
        value = client.get(key)
    except redis.RedisError as err:
        logger.error("get_raw_data: reading %s failed: %s", key, err)
        raise
    if value is None:
        logger.error("get_raw_data: no value stored at %s", key)
        raise KeyError(url)
    return _text(value)


class RedisCache:
    """Keeps parent and child sets for every URL, plus raw file contents."""

    def __init__(
        self,
        client: redis.Redis,
        on_failure: Callable[[], None] | None = None,
    ) -> None:
        self.client = client
        self._on_failure = on_failure or _interrupt_process
        self._monitor_stop: threading.Event | None = None
        self._monitor_thread: threading.Thread | None = None

    def set_deps(self, parent: str, deps: Iterable[str]) -> None:
        """Replace the dependencies of ``parent`` with ``deps``."""
        deps = list(deps)
        key = compile_key("children", parent)
        try:
            current = set(_members(self.client, key))
        except redis.RedisError as err:
            logger.error("set_deps: reading members of %s failed: %s", key, err)
            return

        to_delete = sorted(current - set(deps))
        to_add = list(dict.fromkeys(deps))

        self._quietly("child delete deps", self.client.srem, key, to_delete)
        self._quietly("child add deps", self.client.sadd, key, to_add)
        for dep in to_delete:
            self._quietly(
                "delete deps", self.client.srem, compile_key("parents", dep), [parent]
            )
        for dep in to_add:
            self._quietly(
                "add deps", self.client.sadd, compile_key("parents", dep), [parent]
            )

    @staticmethod
    def _quietly(operation: str, command, key: str, values: list[str]) -> None:
        if not values:
            return
        try:
            command(key, *values)
        except redis.RedisError as err:
            logger.debug("set_deps: %s failed: %s", operation, err)

    def get_roots(self, url: str) -> list[str]:
        """Return the URLs with no parents that depend on ``url``."""
        return _find_roots(self.client, url)

    def set_raw_data(self, url: str, raw_data: str) -> None:
        """Store the raw contents of the file at ``url``."""
        key = compile_key("rawdata", url)
        try:
            self.client.set(key, raw_data)
        except redis.RedisError as err:
            logger.error("set_raw_data: setting %s failed: %s", key, err)
            raise

    def get_raw_data(self, url: str) -> str:
        """Return the stored raw contents; raises KeyError when none exist."""
        return _read_raw_data(self.client, url)

    def clear(self) -> None:
        """Remove every parent and child set."""
        for kind in ("children", "parents"):
            try:
                keys = self.client.keys(compile_key(kind, "*"))
                if keys:
                    self.client.delete(*keys)
            except redis.RedisError as err:
                logger.debug("clear: removing %s keys failed: %s", kind, err)

    def get_all_dinghyfiles(self) -> list[str]:
        """Return every URL that has children but no parents of its own."""
        pattern = compile_key("parents", "*")
        child_keys: set[str] = set()
        result: dict[str, None] = {}
        cursor = 0
        while True:
            try:
                cursor, keys = self.client.scan(
                    cursor=cursor, match=pattern, count=SCAN_COUNT
                )
            except redis.RedisError as err:
                logger.error("get_all_dinghyfiles: scanning %s failed: %s", pattern, err)
                return list(result)
            child_keys.update(_text(key) for key in keys)
            if int(cursor) == 0:
                break

        for child_key in sorted(child_keys):
            try:
                parents = _members(self.client, child_key)
            except redis.RedisError:
                continue
            for parent in parents:
                if compile_key("parents", parent) not in child_keys:
                    result[parent] = None
        return list(result)

    def get_children(self, url: str) -> list[str]:
        """Return the direct dependencies of ``url``."""
        key = compile_key("children", url)
        try:
            return _members(self.client, key)
        except redis.RedisError as err:
            logger.error("get_children: reading members of %s failed: %s", key, err)
            return []

    def start_monitor(self, interval: float = 10.0) -> None:
        """Ping Redis every ``interval`` seconds; give up after five failures."""
        if self._monitor_thread is not None and self._monitor_thread.is_alive():
            return
        self._monitor_stop = threading.Event()
        self._monitor_thread = threading.Thread(
            target=self._monitor, args=(interval, self._monitor_stop), daemon=True
        )
        self._monitor_thread.start()

    def stop_monitor(self) -> None:
        """Stop the health monitor if it is running."""
        if self._monitor_stop is not None:
            self._monitor_stop.set()
        if self._monitor_thread is not None:
            self._monitor_thread.join()
        self._monitor_thread = None
        self._monitor_stop = None

    def _monitor(self, interval: float, stop: threading.Event) -> None:
        failures = 0
        while not stop.wait(interval):
            try:
                self.client.ping()
            except redis.RedisError:
                failures += 1
                logger.error(
                    "Redis monitor failed %d times (%d max)",
                    failures,
                    MAX_MONITOR_FAILURES,
                )
                if failures >= MAX_MONITOR_FAILURES:
                    logger.error(
                        "Stopping dinghy because communication with redis failed"
                    )
                    self._on_failure()
                    return
                continue
            failures = 0


class RedisCacheReadOnly:
    """Reads the Redis dependency graph; writes are counted and not applied."""

    def __init__(self, client: redis.Redis) -> None:
        self.client = client
        self.ignored_writes = 0

    def _ignore(self, operation: str, target: str) -> None:
        self.ignored_writes += 1
        logger.debug("read-only mode: %s for %r not applied", operation, target)

    def set_deps(self, parent: str, deps: Iterable[str]) -> None:
        """Leave the graph untouched; the write is only counted."""
        self._ignore("set_deps", parent)

    def get_roots(self, url: str) -> list[str]:
        """Return the URLs with no parents that depend on ``url``."""
        return _find_roots(self.client, url)

    def set_raw_data(self, url: str, raw_data: str) -> None:
        """Leave the stored contents untouched; the write is only counted."""
        self._ignore("set_raw_data", url)

    def get_raw_data(self, url: str) -> str:
        """Return the stored raw contents; raises KeyError when none exist."""
        return _read_raw_data(self.client, url)

    def clear(self) -> None:
        """Leave the graph untouched; the request is only counted."""
        self._ignore("clear", "*")