"""Quota-bounded key/value persistence over a session-scoped byte store.

Every slot has its own byte quota and all slots share an aggregate quota.
A write that would break either limit is rejected and leaves every slot as
it was.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Protocol

from . import config

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Base class for storage failures that are not quota rejections."""


class SerializationError(StorageError):
    """Raised when a payload cannot be represented as JSON."""


class Slot(str, Enum):
    ENTERPRISE = "enterprise"
    TEMPLATES = "templates"
    CURRENT_INVOICE = "current_invoice"
    PDF_CACHE = "pdf_cache"
    PREFERENCES = "preferences"


DEFAULT_QUOTAS: Dict[Slot, int] = {
    Slot.ENTERPRISE: config.QUOTA_ENTERPRISE,
    Slot.TEMPLATES: config.QUOTA_TEMPLATES,
    Slot.CURRENT_INVOICE: config.QUOTA_CURRENT_INVOICE,
    Slot.PDF_CACHE: config.QUOTA_PDF_CACHE,
    Slot.PREFERENCES: config.QUOTA_PREFERENCES,
}


class _Missing:
    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


class StorageBackend(Protocol):
    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, data: bytes) -> bool:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryStorage:
    """In-process byte store that lives as long as the session object."""

    def __init__(self, fail_writes: bool = False) -> None:
        self._data: Dict[str, bytes] = {}
        self.fail_writes = fail_writes

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def set(self, key: str, data: bytes) -> bool:
        if self.fail_writes:
            return False
        self._data[key] = bytes(data)
        return True

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)


class Rejection(str, Enum):
    QUOTA_EXCEEDED = "quota_exceeded"
    AGGREGATE_QUOTA_EXCEEDED = "aggregate_quota_exceeded"
    STORAGE_FAILURE = "storage_failure"


@dataclass(frozen=True)
class WriteResult:
    ok: bool
    size: int
    reason: Optional[Rejection] = None
    detail: str = ""

    def __bool__(self) -> bool:
        return self.ok


@dataclass(frozen=True)
class UsageInfo:
    size_bytes: int
    quota_bytes: int

    @property
    def percent_used(self) -> float:
        if self.quota_bytes <= 0:
            return 0.0
        return self.size_bytes / self.quota_bytes * 100.0

    @property
    def approaching_limit(self) -> bool:
        return self.percent_used > config.APPROACHING_LIMIT_PERCENT

    @property
    def at_limit(self) -> bool:
        return self.percent_used >= config.AT_LIMIT_PERCENT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sizeBytes": self.size_bytes,
            "quotaBytes": self.quota_bytes,
            "percentUsed": self.percent_used,
            "isApproachingLimit": self.approaching_limit,
            "isAtLimit": self.at_limit,
        }


def serialize(payload: Any) -> bytes:
    try:
        text = json.dumps(payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Payload is not JSON serializable: {exc}") from exc
    return text.encode("utf-8")


class QuotaStore:
    def __init__(
        self,
        backend: StorageBackend,
        quotas: Optional[Mapping[Slot, int]] = None,
        total_quota: Optional[int] = None,
        prefix: str = config.STORAGE_PREFIX,
    ) -> None:
        self.backend = backend
        self.quotas: Dict[Slot, int] = dict(DEFAULT_QUOTAS)
        if quotas:
            self.quotas.update({Slot(slot): int(limit) for slot, limit in quotas.items()})
        self.total_quota = config.QUOTA_TOTAL if total_quota is None else int(total_quota)
        self.prefix = prefix

    def key_for(self, slot: Slot) -> str:
        return f"{self.prefix}_{Slot(slot).value}"

    def _raw(self, slot: Slot) -> Optional[bytes]:
        try:
            return self.backend.get(self.key_for(slot))
        except Exception:
            logger.exception("Reading slot %s from storage failed", Slot(slot).value)
            return None

    def read(self, slot: Slot) -> Any:
        raw = self._raw(slot)
        if raw is None:
            return MISSING
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.error("Slot %s holds undecodable data; treating it as absent", Slot(slot).value)
            return MISSING

    def size(self, slot: Slot) -> int:
        raw = self._raw(slot)
        return 0 if raw is None else len(raw)

    def total_size(self) -> int:
        return sum(self.size(slot) for slot in Slot)

    def write(self, slot: Slot, payload: Any) -> WriteResult:
        slot = Slot(slot)
        data = serialize(payload)
        new_size = len(data)

        quota = self.quotas[slot]
        if new_size > quota:
            detail = f"{slot.value} payload is {new_size} bytes; limit is {quota} bytes."
            logger.warning("Rejected write: %s", detail)
            return WriteResult(False, new_size, Rejection.QUOTA_EXCEEDED, detail)

        projected = self.total_size() - self.size(slot) + new_size
        if projected > self.total_quota:
            detail = f"Total storage would reach {projected} bytes; limit is {self.total_quota} bytes."
            logger.warning("Rejected write to %s: %s", slot.value, detail)
            return WriteResult(False, new_size, Rejection.AGGREGATE_QUOTA_EXCEEDED, detail)

        try:
            stored = self.backend.set(self.key_for(slot), data)
        except Exception:
            logger.exception("Writing slot %s to storage failed", slot.value)
            stored = False
        if not stored:
            return WriteResult(False, new_size, Rejection.STORAGE_FAILURE, "Storage refused the write.")

        return WriteResult(True, new_size)

    def remove(self, slot: Slot) -> None:
        try:
            self.backend.delete(self.key_for(slot))
        except Exception:
            logger.exception("Removing slot %s from storage failed", Slot(slot).value)

    def clear(self) -> None:
        for slot in Slot:
            self.remove(slot)

    def usage(self, slot: Slot) -> UsageInfo:
        return UsageInfo(self.size(slot), self.quotas[Slot(slot)])

    def global_usage(self) -> UsageInfo:
        return UsageInfo(self.total_size(), self.total_quota)

    def export(self) -> str:
        document: Dict[str, Any] = {}
        for slot in Slot:
            value = self.read(slot)
            document[slot.value] = None if value is MISSING else value
        return json.dumps(document, ensure_ascii=False)

    def import_(self, data: str) -> bool:
        """Write every known, non-null slot of an exported document.

        Each slot goes through the usual quota checks; a rejected slot is
        logged and skipped. Returns False only for a malformed document.
        """
        try:
            document = json.loads(data)
        except (TypeError, json.JSONDecodeError):
            logger.error("Storage import failed: document is not valid JSON")
            return False
        if not isinstance(document, dict):
            logger.error("Storage import failed: document root must be an object")
            return False

        known = {slot.value for slot in Slot}
        for key, value in document.items():
            if key not in known or value is None:
                continue
            result = self.write(Slot(key), value)
            if not result:
                logger.warning("Skipped importing %s: %s", key, result.detail)
        return True
