import logging
import redis
from data.database import Experiment, Assignment
from config import config

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
EXPERIMENT_CACHE_TTL = 60    # 1 minute, status changes also invalidate
ASSIGNMENT_CACHE_TTL = 300   # assignments never change once made

# --- Valkey/Redis Backend Implementations ---

class _MockValkeyBackend:
    """Simulates the low-level Valkey/Redis client (in-memory)."""
    def __init__(self):
        self._cache = {}

    def get(self, key: str) -> str | None:
        logger.debug("cache mock get: %s", key)
        return self._cache.get(key)

    def set(self, key: str, value: str, ex: int):
        # Expiry is not simulated
        logger.debug("cache mock set: %s", key)
        self._cache[key] = value

    def delete(self, key: str):
        logger.debug("cache mock delete: %s", key)
        self._cache.pop(key, None)

class RealValkeyBackend:
    """Real implementation using redis-py client (compatible with Valkey)."""
    def __init__(self, host: str, port: int, db: int = 0, password: str | None = None):
        try:
            self.client = redis.Redis(
                host=host,
                port=port,
                db=db,
                password=password,
                decode_responses=True,
                socket_timeout=2.0
            )
            self.client.ping()
        except redis.RedisError as e:
            logger.error("Failed to connect to Valkey/Redis: %s", e)
            raise

    def get(self, key: str) -> str | None:
        try:
            logger.debug("cache valkey get: %s", key)
            return self.client.get(key)
        except redis.RedisError as e:
            logger.error("Valkey GET error for key %s: %s", key, e)
            return None

    def set(self, key: str, value: str, ex: int):
        try:
            logger.debug("cache valkey set: %s", key)
            self.client.set(key, value, ex=ex)
        except redis.RedisError as e:
            logger.error("Valkey SET error for key %s: %s", key, e)

    def delete(self, key: str):
        try:
            logger.debug("cache valkey delete: %s", key)
            self.client.delete(key)
        except redis.RedisError as e:
            logger.error("Valkey DELETE error for key %s: %s", key, e)


# --- Dedicated Cache Client Class ---

class CacheClient:
    """High-level client for managing application cache operations."""

    def __init__(self, backend):
        self.backend = backend
        logger.debug("CacheClient backend: %s", self.backend)

    # --- Experiment Caching ---

    def get_experiment(self, experiment_id: str) -> Experiment | None:
        json_str = self.backend.get(f"exp:{experiment_id}")
        if json_str:
            return Experiment.from_json(json_str=json_str)

        return None

    def set_experiment(self, experiment: Experiment):
        json_str = experiment.to_json(exclude_relationships_key=["assignments", "events"])
        self.backend.set(f"exp:{experiment.id}", json_str, ex=EXPERIMENT_CACHE_TTL)
        logger.debug("Experiment %s cached.", experiment.id)

    def invalidate_experiment(self, experiment_id: str):
        self.backend.delete(f"exp:{experiment_id}")
        logger.debug("Experiment %s evicted from cache.", experiment_id)

    # --- Assignment Caching ---

    def get_assignment(self, experiment_id: str, session_id: str) -> Assignment | None:
        json_str = self.backend.get(f"asn:{experiment_id}:{session_id}")
        if json_str:
            return Assignment.from_json(json_str=json_str, include_relationship=False)

        return None

    def set_assignment(self, assignment: Assignment):
        json_str = assignment.to_json(include_relationships=False)
        self.backend.set(f"asn:{assignment.experiment_id}:{assignment.session_id}", json_str, ex=ASSIGNMENT_CACHE_TTL)
        logger.debug("Assignment for session %s (EID %s) cached.",
                     assignment.session_id, assignment.experiment_id)

# --- Initialize Backend and Default Client ---
valkey_host = config.valkey_host
valkey_port = config.valkey_port

if valkey_host:
    logger.info("valkey_host: %s, port: %d", valkey_host, valkey_port)
    try:
        VALKEY_BACKEND = RealValkeyBackend(host=valkey_host, port=valkey_port)
    except redis.RedisError:
        logger.info("Falling back to Mock Valkey Backend due to connection failure.")
        VALKEY_BACKEND = _MockValkeyBackend()
else:
    logger.info("VALKEY_HOST not set. Using Mock Valkey Backend.")
    VALKEY_BACKEND = _MockValkeyBackend()

# Initialize a default client (singleton)
_DEFAULT_CACHE_CLIENT = CacheClient(backend=VALKEY_BACKEND)

def get_cache_client():
    return _DEFAULT_CACHE_CLIENT

def get_mock_cache_client():
    return CacheClient(backend=_MockValkeyBackend())
