"""
Caller resolution for request handlers.

Tokens are issued elsewhere; this module only verifies them and turns the
claims into a Caller for the permission checks.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import JWT_ALGORITHM, SECRET_KEY
from .domain.scheduling.permissions import Caller, Role

logger = logging.getLogger(__name__)

# get_current_caller answers missing credentials with 401
security = HTTPBearer(auto_error=False)


def decode_caller_token(token: str) -> Caller:
    """
    Verify a bearer token and build the Caller it describes.

    Expected claims: sub (user id), role, and patient_id for patient tokens.
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"⚠️ Invalid token: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired token") from e

    try:
        user_id = int(payload["sub"])
        role = Role(payload["role"])
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"⚠️ Token missing or malformed claims: {e}")
        raise HTTPException(status_code=401, detail="Invalid token claims") from e

    patient_id = payload.get("patient_id")
    if role == Role.PATIENT and patient_id is None:
        raise HTTPException(status_code=401, detail="Patient token missing patient_id")

    return Caller(user_id=user_id, role=role, patient_id=int(patient_id) if patient_id is not None else None)


async def get_current_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Caller:
    """FastAPI dependency resolving the authenticated caller"""
    if credentials is None:
        raise HTTPException(
            status_code=401, detail="Not authenticated", headers={"WWW-Authenticate": "Bearer"}
        )
    caller = decode_caller_token(credentials.credentials)
    logger.debug(f"✅ Authenticated {caller.role.value} {caller.user_id}")
    return caller
