from typing import Optional

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.status import HTTP_401_UNAUTHORIZED

from jotter import dependencies as deps
from jotter.schemas.user import Identity
from jotter.settings import Settings, settings
from jotter.tokens import decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings() -> Settings:
    """Small wrapper to allow dependency overrides in tests."""
    return settings


def _resolve_identity(token: str, users_repo, current_settings: Settings):
    user_id = decode_access_token(token, current_settings)
    if not user_id:
        return None
    user = users_repo.get(user_id)
    if not user:
        return None
    return Identity(
        id=user["_id"], username=user["username"], role=user.get("role", "user")
    )


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    users_repo=Depends(deps.get_users_repo),
    current_settings: Settings = Depends(get_settings),
) -> Identity:
    if credentials is None:
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED,
            detail="No token, authorization denied",
            headers={"WWW-Authenticate": "Bearer"},
        )
    identity = _resolve_identity(credentials.credentials, users_repo, current_settings)
    if identity is None:
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED,
            detail="Token is not valid",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def get_optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    users_repo=Depends(deps.get_users_repo),
    current_settings: Settings = Depends(get_settings),
) -> Optional[Identity]:
    if credentials is None:
        return None
    return _resolve_identity(credentials.credentials, users_repo, current_settings)
