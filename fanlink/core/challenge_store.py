from __future__ import annotations

# wallet sign-in challenge store
import json
import logging
import re
import secrets
import time
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Dict, Optional

from redis import Connection, ConnectionPool, Redis, SSLConnection

from fanlink.core.config import settings
from fanlink.core.errors import (
    ChallengeAlreadyConsumed,
    ChallengeExpired,
    ChallengeNotFound,
)

logger = logging.getLogger(__name__)

NONCE_NUM_BYTES = 32  # 32 bytes = 64 hex characters
REDIS_KEY_PREFIX = "wallet_challenge:"

Clock = Callable[[], float]

_MESSAGE_RE = re.compile(
    r"\ASign this message to link your wallet to (?P<app_name>[^\n]+)\.\n\n"
    r"Wallet: (?P<address>0x[0-9a-f]{40})\n"
    r"Nonce: (?P<nonce>[0-9a-f]{64})\n"
    r"Issued At: (?P<issued_at>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z)\n\n"
    r"This request will expire in \d+ minutes?\.\Z"
)


@dataclass
class Challenge:
    """A single-use sign-in challenge for one address"""

    address: str
    nonce: str
    message: str
    issued_at: int
    expires_at: int
    consumed: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Challenge":
        return cls(
            address=data["address"],
            nonce=data["nonce"],
            message=data["message"],
            issued_at=int(data["issued_at"]),
            expires_at=int(data["expires_at"]),
            consumed=bool(data.get("consumed", False)),
        )


def generate_nonce(num_bytes: int = NONCE_NUM_BYTES) -> str:
    """
    Generate a cryptographically secure random nonce for a challenge.

    Returns:
        Hex-encoded random string (e.g., "a1b2c3d4...")
    """
    if num_bytes < 16:
        num_bytes = NONCE_NUM_BYTES
    return secrets.token_hex(num_bytes)


def format_issued_at(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_challenge_message(
    app_name: str, address: str, nonce: str, issued_at: int, ttl_seconds: int
) -> str:
    """
    Build the human-readable message the wallet is asked to sign.

    The text is fully determined by its inputs so the nonce can be read back
    out of a submitted message with parse_challenge_message().
    """
    minutes = max(ttl_seconds // 60, 1)
    unit = "minute" if minutes == 1 else "minutes"
    return (
        f"Sign this message to link your wallet to {app_name}.\n\n"
        f"Wallet: {address}\n"
        f"Nonce: {nonce}\n"
        f"Issued At: {format_issued_at(issued_at)}\n\n"
        f"This request will expire in {minutes} {unit}."
    )


def parse_challenge_message(message: str) -> Optional[Dict[str, str]]:
    """
    Read the wallet, nonce and issue time back out of a challenge message.

    Returns None when the message is not in the canonical format.
    """
    if not isinstance(message, str):
        return None
    match = _MESSAGE_RE.match(message)
    if match is None:
        return None
    return match.groupdict()


class ChallengeStore:
    """
    In-process challenge store.

    Holds one authoritative record per normalized address: issuing a new
    challenge overwrites the previous one, so a superseded nonce can no
    longer be consumed. Records are dropped once expired.
    """

    def __init__(
        self,
        ttl_seconds: int = settings.CHALLENGE_TTL_SECONDS,
        app_name: str = settings.CHALLENGE_APP_NAME,
        clock: Clock = time.time,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self.app_name = app_name
        self._clock = clock
        self._records: Dict[str, Challenge] = {}
        self._lock = Lock()

    def issue(self, address: str) -> Challenge:
        """Issue a fresh challenge for ``address``, superseding any previous one"""
        address = address.strip().lower()
        nonce = generate_nonce()
        issued_at = int(self._clock())
        challenge = Challenge(
            address=address,
            nonce=nonce,
            message=build_challenge_message(
                self.app_name, address, nonce, issued_at, self.ttl_seconds
            ),
            issued_at=issued_at,
            expires_at=issued_at + self.ttl_seconds,
        )
        self._save(challenge)
        logger.info("challenge issued for %s", _short(address))
        return replace(challenge)

    def consume(self, address: str, nonce: str) -> Challenge:
        """
        Mark the challenge for ``address`` consumed and return it.

        A nonce can be consumed at most once, whatever the caller does with
        the result afterwards.

        Raises:
            ChallengeNotFound: No challenge, or ``nonce`` is not the current one
            ChallengeExpired: The challenge is past its expiry
            ChallengeAlreadyConsumed: The challenge was already used
        """
        address = (address or "").strip().lower()
        challenge = self._consume(address, nonce or "", self._clock())
        logger.info("challenge consumed for %s", _short(address))
        return challenge

    def purge_expired(self) -> int:
        """Drop every expired record, returns the number removed"""
        with self._lock:
            return self._purge_locked(self._clock())

    def _save(self, challenge: Challenge) -> None:
        with self._lock:
            self._purge_locked(self._clock())
            self._records[challenge.address] = challenge

    def _consume(self, address: str, nonce: str, now: float) -> Challenge:
        with self._lock:
            challenge = self._records.get(address)
            if challenge is None or not secrets.compare_digest(
                challenge.nonce.encode(), nonce.encode()
            ):
                raise ChallengeNotFound()
            if now > challenge.expires_at:
                raise ChallengeExpired()
            if challenge.consumed:
                raise ChallengeAlreadyConsumed()
            challenge.consumed = True
            return replace(challenge)

    def _purge_locked(self, now: float) -> int:
        expired = [k for k, c in self._records.items() if now > c.expires_at]
        for key in expired:
            self._records.pop(key, None)
        return len(expired)


# Runs inside Redis so the read-check-mark sequence is a single atomic step.
_CONSUME_SCRIPT = """
local raw = redis.call('GET', KEYS[1])
if not raw then
    return {'not_found'}
end
local record = cjson.decode(raw)
if record['nonce'] ~= ARGV[1] then
    return {'not_found'}
end
if tonumber(ARGV[2]) > tonumber(record['expires_at']) then
    return {'expired'}
end
if record['consumed'] then
    return {'consumed'}
end
record['consumed'] = true
redis.call('SET', KEYS[1], cjson.encode(record), 'KEEPTTL')
return {'ok', raw}
"""


class RedisChallengeStore(ChallengeStore):
    """Challenge store shared by all API processes through Redis"""

    def __init__(self, pool: ConnectionPool, **kwargs):
        super().__init__(**kwargs)
        self.pool = pool
        self._consume_script = None

    @classmethod
    def from_settings(cls, **kwargs) -> "RedisChallengeStore":
        pool = ConnectionPool(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            socket_connect_timeout=1,
            socket_timeout=5,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            connection_class=SSLConnection if settings.REDIS_SSL else Connection,
        )
        return cls(pool, **kwargs)

    def _redis(self) -> Redis:
        return Redis(connection_pool=self.pool)

    def purge_expired(self) -> int:
        # key TTL removes expired records
        return 0

    def _save(self, challenge: Challenge) -> None:
        rc = self._redis()
        try:
            # SET replaces any previous record for the address atomically
            rc.set(
                REDIS_KEY_PREFIX + challenge.address,
                json.dumps(challenge.to_dict()),
                ex=self.ttl_seconds,
            )
        finally:
            rc.close()

    def _consume(self, address: str, nonce: str, now: float) -> Challenge:
        rc = self._redis()
        try:
            if self._consume_script is None:
                self._consume_script = rc.register_script(_CONSUME_SCRIPT)
            result = self._consume_script(
                keys=[REDIS_KEY_PREFIX + address], args=[nonce, now], client=rc
            )
        finally:
            rc.close()

        status = _as_str(result[0])
        if status == "not_found":
            raise ChallengeNotFound()
        if status == "expired":
            raise ChallengeExpired()
        if status == "consumed":
            raise ChallengeAlreadyConsumed()
        challenge = Challenge.from_dict(json.loads(_as_str(result[1])))
        challenge.consumed = True
        return challenge


def _as_str(value) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _short(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}"


def create_challenge_store() -> ChallengeStore:
    """Use Redis when configured, process memory otherwise"""
    if settings.REDIS_HOST is None or settings.REDIS_HOST.strip() == "":
        return ChallengeStore()
    return RedisChallengeStore.from_settings()


# Global singleton instance
challenge_store = create_challenge_store()


def get_challenge_store() -> ChallengeStore:
    return challenge_store
