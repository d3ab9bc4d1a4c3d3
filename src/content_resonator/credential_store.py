"""Durable storage for the single API credential."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import redis
from redis import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class CredentialStore:
    """Persists one named credential slot to JSON and mirrors it into Redis.

    The value is read once at construction time so a restarted process sees
    the last stored key before anything asks for it. Every write hits the
    file immediately; the Redis mirror is best effort.
    """

    def __init__(
        self,
        path: Path,
        *,
        slot: str,
        redis_url: Optional[str] = None,
    ) -> None:
        self._path = path
        self._slot = slot
        self._redis_url = redis_url
        self._redis: Optional[Redis] = None
        self._value = self._load()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def slot(self) -> str:
        return self._slot

    def get_credential(self) -> str:
        return self._value

    def set_credential(self, key: str) -> None:
        """Store ``key`` verbatim. Trimming and emptiness are the caller's job."""

        self._value = key
        record: Dict[str, Any] = {
            "slot": self._slot,
            "credential": key,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with temp_path.open("w", encoding="utf-8") as handle:
            json.dump(record, handle, ensure_ascii=False)
        temp_path.replace(self._path)

        client = self._get_redis()
        if client:
            try:
                client.hset(  # type: ignore[call-overload]
                    "credentials",
                    self._slot,
                    key,
                )
            except RedisError as exc:  # pragma: no cover - best effort
                logger.warning(
                    "Redis persistence failed for slot %s: %s",
                    self._slot,
                    exc,
                )

    def _get_redis(self) -> Optional[Redis]:
        if not self._redis_url:
            return None
        if self._redis is None:
            try:
                self._redis = redis.from_url(  # type: ignore[call-overload]
                    self._redis_url,
                    decode_responses=True,
                )
            except RedisError as exc:  # pragma: no cover - network guarded
                logger.warning("Redis connection failed: %s", exc)
                self._redis = None
        return self._redis

    def _load(self) -> str:
        if self._path.exists():
            try:
                with self._path.open("r", encoding="utf-8") as handle:
                    payload = json.load(handle)
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning(
                    "Credential file %s is unreadable: %s", self._path, exc
                )
            else:
                if isinstance(payload, dict):
                    value = payload.get("credential")
                    if isinstance(value, str):
                        return value

        client = self._get_redis()
        if not client:
            return ""
        try:
            raw_value = client.hget("credentials", self._slot)
        except RedisError as exc:  # pragma: no cover - best effort
            logger.warning(
                "Redis lookup failed for slot %s: %s", self._slot, exc
            )
            return ""
        if raw_value is None:
            return ""
        if isinstance(raw_value, bytes):
            return raw_value.decode("utf-8")
        return str(raw_value)
