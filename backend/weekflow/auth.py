"""
Firebase authentication for the HTTP layer.

Verifies Firebase ID tokens and turns them into the identity the lifecycle
engine acts for.
"""

import os
from pathlib import Path
from typing import Optional

import firebase_admin
from firebase_admin import auth, credentials, exceptions as firebase_exceptions
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from weekflow.logging_config import get_logger

logger = get_logger(__name__)


def _init_firebase() -> None:
    """Initialize the Admin SDK once, on the first token verification."""
    try:
        firebase_admin.get_app()
        return
    except ValueError:
        pass

    # backend/weekflow/auth.py -> backend/
    backend_dir = Path(__file__).parent.parent

    possible_paths = [
        backend_dir / "serviceAccountKey.json",
        backend_dir / "firebase-service-account.json",
    ]
    possible_paths.extend(backend_dir.glob("*-firebase-adminsdk-*.json"))

    env_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS", "")
    if env_path:
        possible_paths.append(Path(env_path))

    for key_path in possible_paths:
        if key_path.exists() and key_path.is_file():
            firebase_admin.initialize_app(credentials.Certificate(str(key_path)))
            logger.info(f"Firebase Admin SDK initialized with: {key_path.name}")
            return

    logger.warning("No Firebase service account key found, token verification may fail")
    firebase_admin.initialize_app()


security = HTTPBearer(auto_error=False)


class AuthenticatedUser:
    """A verified Firebase user. Doubles as the engine's identity provider."""

    def __init__(self, uid: str, email: str | None, name: str | None):
        self.uid = uid
        self.email = email
        self.name = name

    def current_user_id(self) -> Optional[str]:
        return self.uid

    def __repr__(self):
        return f"AuthenticatedUser(uid={self.uid}, email={self.email})"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> AuthenticatedUser:
    """
    Verify the bearer token and return the authenticated user.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    _init_firebase()
    try:
        decoded_token = auth.verify_id_token(credentials.credentials)
    except auth.ExpiredIdTokenError:
        logger.warning("Expired Firebase token")
        raise _unauthorized("Token has expired")
    except auth.InvalidIdTokenError:
        logger.warning("Invalid Firebase token")
        raise _unauthorized("Invalid authentication token")
    except (ValueError, firebase_exceptions.FirebaseError) as e:
        logger.error(f"Authentication error: {e}")
        raise _unauthorized("Authentication failed")

    user = AuthenticatedUser(
        uid=decoded_token["uid"],
        email=decoded_token.get("email"),
        name=decoded_token.get("name"),
    )
    logger.debug(f"Authenticated user: {user.uid} ({user.email})")
    return user
