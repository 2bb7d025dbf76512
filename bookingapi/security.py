import datetime
import logging
from typing import Annotated, Any, Dict, Literal, Optional
from urllib.parse import urlencode

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyCookie
from jose import ExpiredSignatureError, JWTError, jwt

from bookingapi.config import config
from bookingapi.models.booking import Patient

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
SESSION_COOKIE = "patient_session"
session_cookie = APIKeyCookie(name=SESSION_COOKIE, auto_error=False)


def create_unauthorized_exception(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
    )


def session_expire_minutes() -> int:
    return config.SESSION_TTL_MINUTES


def create_session_token(access_token: str) -> str:
    """Wrap the patient's booking API token into a signed session token."""
    logger.debug("Creating patient session token")
    expire = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(
        minutes=session_expire_minutes()
    )
    jwt_data = {"sub": access_token, "exp": expire, "type": "session"}
    return jwt.encode(jwt_data, key=config.SESSION_SECRET_KEY, algorithm=ALGORITHM)


def get_subject_for_token_type(token: str, type: Literal["session"]) -> str:
    try:
        payload = jwt.decode(token, config.SESSION_SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError as e:
        raise create_unauthorized_exception("Session has expired") from e
    except JWTError as e:
        raise create_unauthorized_exception("Invalid session") from e

    subject = payload.get("sub")
    if subject is None:
        raise create_unauthorized_exception("Session is missing 'sub' field")

    token_type = payload.get("type")
    if token_type is None or token_type != type:
        raise create_unauthorized_exception(
            f"Token has incorrect type, expected '{type}'"
        )

    return subject


async def get_optional_patient(
    token: Annotated[Optional[str], Depends(session_cookie)],
) -> Optional[Patient]:
    if not token:
        return None
    try:
        access_token = get_subject_for_token_type(token, "session")
    except HTTPException:
        return None
    return Patient(access_token=access_token)


async def get_current_patient(
    token: Annotated[Optional[str], Depends(session_cookie)],
) -> Patient:
    if not token:
        raise create_unauthorized_exception("Not signed in")
    access_token = get_subject_for_token_type(token, "session")
    return Patient(access_token=access_token)


def authorization_url(state: str) -> str:
    params = {
        "client_id": config.CLIENT_ID,
        "response_type": "code",
        "redirect_uri": config.OAUTH_REDIRECT_URI,
        "state": state,
    }
    params = {key: value for key, value in params.items() if value is not None}
    return f"{config.OAUTH_AUTHORIZE_URL}?{urlencode(params)}"


async def exchange_code_for_token(code: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> Dict[str, Any]:
    """Exchange an OAuth authorization code for the patient's access token."""
    payload = {
        "grant_type": "authorization_code",
        "code": code,
        "client_id": config.CLIENT_ID,
        "client_secret": config.CLIENT_SECRET,
        "redirect_uri": config.OAUTH_REDIRECT_URI,
    }
    async with httpx.AsyncClient(timeout=config.REQUEST_TIMEOUT, transport=transport) as client:
        try:
            response = await client.post(config.OAUTH_TOKEN_URL, data=payload)
        except httpx.HTTPError as e:
            logger.error(f"Token exchange failed: {e}")
            raise create_unauthorized_exception("Could not sign in") from e

    if response.status_code != 200:
        logger.error(f"Token exchange failed with status {response.status_code}")
        raise create_unauthorized_exception("Could not sign in")
    return response.json()
