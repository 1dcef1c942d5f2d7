import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth as firebase_auth

from .database import init_firebase

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def verify_firebase_token(token: str) -> dict:
    """
    Verify a Firebase ID token with the Admin SDK.
    Raises HTTPException(403) when the token is invalid, expired or revoked.
    """
    init_firebase()
    try:
        decoded_token = firebase_auth.verify_id_token(token)
    except (ValueError, firebase_auth.InvalidIdTokenError, firebase_auth.ExpiredIdTokenError) as e:
        logger.warning(f"⚠️ Token rejected: {type(e).__name__}")
        raise HTTPException(status_code=403, detail="Token inválido o caducado.") from e
    except Exception as e:
        logger.error(f"❌ Token verification failed: {type(e).__name__}: {str(e)}")
        raise HTTPException(status_code=403, detail="Token inválido o caducado.") from e

    logger.debug(f"✅ Token verified for user: {decoded_token.get('email')}")
    return decoded_token


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """Get the caller identity from a Firebase bearer token"""
    if not credentials or not credentials.credentials:
        logger.warning("⚠️ Admin request without bearer token")
        raise HTTPException(status_code=401, detail="No autorizado. Falta token.")

    decoded_token = verify_firebase_token(credentials.credentials)

    # Firebase ID tokens use 'sub' as the user ID claim, not 'uid'
    uid = decoded_token.get("uid") or decoded_token.get("sub") or decoded_token.get("user_id")
    if not uid:
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(decoded_token.keys())}")
        raise HTTPException(status_code=403, detail="Token inválido o caducado.")

    return {"uid": uid, "email": decoded_token.get("email")}
