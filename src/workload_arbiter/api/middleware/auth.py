"""
Bearer-key guard for the routes that change system configuration.

Reads stay open. Mutations (apply, revert, snapshots, focus, feedback)
check the key when WORKLOAD_ARBITER_API_KEY is set:

    curl -X POST -H "Authorization: Bearer $WORKLOAD_ARBITER_API_KEY" \\
        http://127.0.0.1:8000/api/v1/recipes/CS2/apply

Production (WORKLOAD_ARBITER_ENV=production|prod|staging) refuses to start
without a key unless WORKLOAD_ARBITER_AUTH_DISABLED=true.
"""

import hmac
import logging
import os
from dataclasses import dataclass

from fastapi import HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ...config import ENV_PREFIX

logger = logging.getLogger(__name__)

PRODUCTION_ENVS = {"production", "prod", "staging"}
_TRUTHY = {"true", "1", "yes"}

bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthSettings:
    api_key: str | None
    production: bool
    disabled: bool

    @classmethod
    def from_env(cls) -> "AuthSettings":
        return cls(
            api_key=os.environ.get(f"{ENV_PREFIX}API_KEY", "").strip() or None,
            production=os.environ.get(f"{ENV_PREFIX}ENV", "").strip().lower() in PRODUCTION_ENVS,
            disabled=os.environ.get(f"{ENV_PREFIX}AUTH_DISABLED", "").strip().lower() in _TRUTHY,
        )


def check_production_auth(settings: AuthSettings | None = None) -> None:
    """Startup check. Raises RuntimeError for a keyless production deployment."""
    settings = settings or AuthSettings.from_env()
    if settings.api_key is not None:
        return
    if not settings.production:
        logger.info("[Auth] No API key configured; configuration changes are open")
        return
    if not settings.disabled:
        raise RuntimeError(
            f"{ENV_PREFIX}API_KEY must be set in production "
            f"(or set {ENV_PREFIX}AUTH_DISABLED=true to run without one)"
        )
    logger.warning("[Auth] Running in production with authentication disabled")


def _caller(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def verify_api_key(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(bearer),
) -> None:
    """Dependency for mutating routes: 401 without a key, 403 with the wrong one."""
    expected = AuthSettings.from_env().api_key
    if expected is None:
        return
    if credentials is None:
        logger.warning(f"[Auth] {request.url.path}: no key from {_caller(request)}")
        raise HTTPException(status_code=401, detail="Missing API key")
    if not hmac.compare_digest(credentials.credentials.encode(), expected.encode()):
        logger.warning(f"[Auth] {request.url.path}: wrong key from {_caller(request)}")
        raise HTTPException(status_code=403, detail="Invalid API key")
