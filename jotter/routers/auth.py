import logging

from fastapi import APIRouter, Depends

from jotter import dependencies as deps
from jotter.errors import ServerError, ServiceError
from jotter.schemas.user import (
    AuthResponse,
    Identity,
    LoginRequest,
    ProfileUpdate,
    RegisterRequest,
    UserResponse,
)
from jotter.security import get_current_identity
from jotter.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(
    request: RegisterRequest,
    service: AuthService = Depends(deps.get_auth_service),
):
    try:
        token, user = service.register(request)
        return {"message": "User registered successfully", "token": token, "user": user}
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error registering user: {e}")
        raise ServerError("Server error")


@router.post("/login", response_model=AuthResponse)
def login(
    request: LoginRequest,
    service: AuthService = Depends(deps.get_auth_service),
):
    try:
        token, user = service.login(request)
        return {"message": "Login successful", "token": token, "user": user}
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during login: {e}")
        raise ServerError("Server error")


@router.get("/me", response_model=UserResponse)
def me(
    identity: Identity = Depends(get_current_identity),
    service: AuthService = Depends(deps.get_auth_service),
):
    try:
        return {"user": service.get_profile(identity)}
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error loading profile {identity.id}: {e}")
        raise ServerError("Server error")


@router.put("/profile", response_model=UserResponse)
def update_profile(
    request: ProfileUpdate,
    identity: Identity = Depends(get_current_identity),
    service: AuthService = Depends(deps.get_auth_service),
):
    try:
        user = service.update_profile(identity, request)
        return {"message": "Profile updated successfully", "user": user}
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error updating profile {identity.id}: {e}")
        raise ServerError("Server error")
