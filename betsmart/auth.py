"""
API key authentication for the BetSmart API

Callers send their key in the X-API-Key header. Keys are read once at
import from API_KEY_USER1..API_KEY_USER5 and map to user1..user5.
Weight refreshes and other admin routes are limited to ADMIN_USERS.
"""

import os
from typing import Dict

from dotenv import load_dotenv
from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

load_dotenv()

API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)

#: Number of API_KEY_USER<n> slots scanned in the environment.
MAX_API_USERS = 5

#: Accepted only when ENVIRONMENT=development and no keys are configured.
DEV_API_KEY = "dev-key-insecure"
DEV_USER = "dev_user"

ADMIN_USERS = frozenset({"user1", DEV_USER})


def load_api_keys() -> Dict[str, str]:
    """Return {api_key: user_id} from the environment"""
    keys = {
        os.environ[f"API_KEY_USER{n}"]: f"user{n}"
        for n in range(1, MAX_API_USERS + 1)
        if os.getenv(f"API_KEY_USER{n}")
    }
    if keys:
        return keys

    if os.getenv("ENVIRONMENT") == "development":
        return {DEV_API_KEY: DEV_USER}

    raise ValueError(
        "No API keys configured. Set API_KEY_USER1 or run with ENVIRONMENT=development"
    )


VALID_API_KEYS = load_api_keys()


def _reject(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "ApiKey"},
    )


async def verify_api_key(api_key: str = Security(API_KEY_HEADER)) -> str:
    """
    Resolve the X-API-Key header to a user id

    Route usage:
        @app.post("/api/consensus")
        async def consensus(user: str = Depends(verify_api_key)):
            ...
    """
    if not api_key:
        raise _reject("Missing X-API-Key header")

    user = VALID_API_KEYS.get(api_key)
    if user is None:
        raise _reject("Unknown API key")
    return user


async def verify_admin_api_key(user: str = Security(verify_api_key)) -> str:
    if user not in ADMIN_USERS:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"User {user} may not call admin routes",
        )
    return user
