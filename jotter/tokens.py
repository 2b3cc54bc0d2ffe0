from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from jotter.settings import Settings, settings

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(
    user_id: str,
    current_settings: Optional[Settings] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    current_settings = current_settings or settings
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=current_settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return jwt.encode(
        {"sub": user_id, "exp": expire},
        current_settings.JWT_SECRET_KEY,
        algorithm=current_settings.JWT_ALGORITHM,
    )


def decode_access_token(token: str, current_settings: Settings) -> Optional[str]:
    """Return the user id carried by ``token`` or None when it is invalid."""
    try:
        payload = jwt.decode(
            token,
            current_settings.JWT_SECRET_KEY,
            algorithms=[current_settings.JWT_ALGORITHM],
        )
    except JWTError:
        return None
    return payload.get("sub")
