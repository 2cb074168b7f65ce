from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from fastapi import Depends, HTTPException, status
from config import config
import hashlib
import logging
import secrets

logger = logging.getLogger(__name__)

# auto_error=False so a missing header gets the same 401 body as a bad token
bearer_scheme = HTTPBearer(auto_error=False)


def _is_known_token(token: str) -> bool:
    # Compare against every configured token so timing does not leak which one matched
    matched = False
    for valid in config.valid_tokens:
        matched |= secrets.compare_digest(token.encode(), valid.encode())
    return matched


def token_fingerprint(token: str) -> str:
    """Short, non-reversible identifier for log lines."""
    return hashlib.sha256(token.encode()).hexdigest()[:8]


def get_current_client(credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme)) -> str:
    """Validates the Bearer token for every secured endpoint and returns a client fingerprint."""
    if credentials is None or credentials.scheme.lower() != "bearer" or not _is_known_token(credentials.credentials):
        logger.info("rejected request with %s credentials", "missing" if credentials is None else "invalid")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing Bearer token.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token_fingerprint(credentials.credentials)
