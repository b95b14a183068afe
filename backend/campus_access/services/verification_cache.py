"""Advisory Redis cache of pass records, keyed by QR string."""
import json
import logging
from typing import Optional

from redis.exceptions import RedisError

from campus_access.services.pass_store import PassRecord

logger = logging.getLogger(__name__)

class VerificationCache:
    """Read-through cache in front of the pass store.

    Never the source of truth: every miss, backend failure or unreadable
    entry is reported as absent and callers fall back to the store. A
    ``None`` client disables caching entirely.
    """

    KEY_PREFIX = 'pass:'

    def __init__(self, client=None):
        self.client = client

    @classmethod
    def key_for(cls, qr_code: str) -> str:
        return f"{cls.KEY_PREFIX}{qr_code}"

    def get(self, qr_code: str) -> Optional[PassRecord]:
        if self.client is None:
            return None

        try:
            raw = self.client.get(self.key_for(qr_code))
        except RedisError as e:
            logger.warning("Pass cache read failed: %s", e)
            return None

        if raw is None:
            return None

        try:
            return PassRecord.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable pass cache entry: %s", e)
            self.delete(qr_code)
            return None

    def set(self, qr_code: str, record: PassRecord, ttl_seconds: int) -> bool:
        if self.client is None:
            return False

        try:
            self.client.setex(self.key_for(qr_code), ttl_seconds, json.dumps(record.to_dict()))
            return True
        except RedisError as e:
            logger.warning("Pass cache write failed: %s", e)
            return False

    def delete(self, qr_code: str) -> bool:
        if self.client is None:
            return False

        try:
            return self.client.delete(self.key_for(qr_code)) > 0
        except RedisError as e:
            logger.warning("Pass cache invalidation failed: %s", e)
            return False
