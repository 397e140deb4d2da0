"""Expiring key-value storage for password-reset OTPs.

Entries are keyed by lowercased email. The in-memory store is process-local;
a multi-instance deployment plugs in a shared implementation of OtpStore.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class OtpEntry:
    otp: str
    expires_at: datetime
    attempts: int = 0
    verified: bool = False

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at


class OtpStore(ABC):
    @abstractmethod
    async def get(self, key: str) -> Optional[OtpEntry]:
        ...

    @abstractmethod
    async def set(self, key: str, entry: OtpEntry) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def sweep(self) -> int:
        """Remove expired entries; return how many were removed."""


class InMemoryOtpStore(OtpStore):
    def __init__(self) -> None:
        self._entries: Dict[str, OtpEntry] = {}

    async def get(self, key: str) -> Optional[OtpEntry]:
        return self._entries.get(key.lower())

    async def set(self, key: str, entry: OtpEntry) -> None:
        self._entries[key.lower()] = entry

    async def delete(self, key: str) -> None:
        self._entries.pop(key.lower(), None)

    async def sweep(self) -> int:
        now = datetime.now(timezone.utc)
        expired = [k for k, v in self._entries.items() if v.is_expired(now)]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug("Swept %d expired OTP entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


def new_entry(otp: str, expire_minutes: int) -> OtpEntry:
    return OtpEntry(otp=otp, expires_at=datetime.now(timezone.utc) + timedelta(minutes=expire_minutes))


_otp_store: OtpStore = InMemoryOtpStore()


def get_otp_store() -> OtpStore:
    """FastAPI dependency returning the process-wide store."""
    return _otp_store
