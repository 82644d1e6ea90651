"""
storage.py

Keeps track of issued challenges and whether they have been solved.
Two backends: an in-memory map for development and Redis for production.
"""

import logging
import threading
import time

import redis

from global_vars import CHALLENGE_STORAGE, CHALLENGE_TTL, REDIS_ADDR, REDIS_PASSWORD

logger = logging.getLogger(__name__)


class ChallengeStorage:
    """
    Interface for challenge stores.
    """
    def store(self, challenge, solved):
        raise NotImplementedError

    def get(self, challenge):
        """
        Returns:
            tuple: (solved, exists)
        """
        raise NotImplementedError

    def purge_expired(self):
        """
        Drop expired entries and return how many were removed.
        """
        return 0

    def close(self):
        pass


class RedisStorage(ChallengeStorage):
    """
    Challenge store on Redis. Keys are `challenge:<token>` holding "0" or
    "1" and expire `ttl` seconds after they were last written.
    """
    def __init__(self, addr=REDIS_ADDR, password=REDIS_PASSWORD, db=0,
                 ttl=CHALLENGE_TTL, client=None):
        """
        Connect and ping the server.

        Args:
            addr (str): "host:port" of the Redis server.
            password (str, optional): Redis password.
            db (int): Database number.
            ttl (int): Seconds before a challenge expires.
            client (redis.Redis, optional): Ready-made client to use instead.

        Raises:
            redis.RedisError: If the server cannot be reached.
        """
        if client is None:
            host, _, port = (addr or "localhost:6379").rpartition(":")
            client = redis.Redis(host=host or "localhost", port=int(port or 6379),
                                 password=password, db=db, decode_responses=True)
        self.client = client
        self.ttl = ttl
        self.client.ping()

    @staticmethod
    def key(challenge):
        return f"challenge:{challenge}"

    def store(self, challenge, solved):
        self.client.set(self.key(challenge), "1" if solved else "0", ex=self.ttl)

    def get(self, challenge):
        val = self.client.get(self.key(challenge))
        if val is None:
            return False, False
        if isinstance(val, bytes):
            val = val.decode()
        return val == "1", True

    def close(self):
        self.client.close()


class LocalMapStorage(ChallengeStorage):
    """
    In-memory challenge store. Entries expire `ttl` seconds after they
    were last written.
    """
    def __init__(self, ttl=CHALLENGE_TTL, clock=time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self.challenges = {}  # challenge -> (solved, expires_at)
        self.lock = threading.RLock()

    def store(self, challenge, solved):
        with self.lock:
            self.challenges[challenge] = (bool(solved), self.clock() + self.ttl)

    def get(self, challenge):
        with self.lock:
            entry = self.challenges.get(challenge)
            if entry is None:
                return False, False
            solved, expires_at = entry
            if self.clock() >= expires_at:
                del self.challenges[challenge]
                return False, False
            return solved, True

    def purge_expired(self):
        with self.lock:
            now = self.clock()
            expired = [c for c, (_, exp) in self.challenges.items() if now >= exp]
            for c in expired:
                del self.challenges[c]
            return len(expired)

    def __len__(self):
        with self.lock:
            return len(self.challenges)

    def close(self):
        with self.lock:
            self.challenges.clear()


def new_challenge_storage(kind=CHALLENGE_STORAGE, ttl=CHALLENGE_TTL,
                          addr=REDIS_ADDR, password=REDIS_PASSWORD):
    """
    Create the challenge store selected by configuration. A Redis store
    that cannot connect falls back to local storage.
    """
    if kind == "redis":
        try:
            store = RedisStorage(addr, password, ttl=ttl)
        except redis.RedisError as e:
            logger.warning("Failed to initialize Redis storage: %s. Falling back to local storage.", e)
        else:
            logger.info("Using Redis storage for challenges")
            return store
    elif kind != "local":
        raise ValueError(f"unknown challenge storage {kind!r}")
    logger.info("Using local map storage for challenges")
    return LocalMapStorage(ttl=ttl)
