import logging
import secrets
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import RedirectResponse

from bookingapi.config import config
from bookingapi.models.booking import Patient
from bookingapi.security import (
    SESSION_COOKIE,
    authorization_url,
    create_session_token,
    create_unauthorized_exception,
    exchange_code_for_token,
    get_optional_patient,
    session_expire_minutes,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/login")
async def login():
    return RedirectResponse(authorization_url(state=secrets.token_urlsafe(16)))


@router.get("/callback")
async def oauth_callback(code: str, response: Response):
    token_data = await exchange_code_for_token(code)
    access_token = token_data.get("access_token")
    if not access_token:
        raise create_unauthorized_exception("Could not sign in")

    response.set_cookie(
        key=SESSION_COOKIE,
        value=create_session_token(access_token),
        httponly=True,
        secure=config.ENV_STATE == "prod",
        samesite="lax",
        max_age=session_expire_minutes() * 60,
    )
    logger.info("Patient signed in")
    return {"message": "Signed in"}


@router.post("/sign_out")
async def sign_out(response: Response):
    response.delete_cookie(key=SESSION_COOKIE)
    return {"message": "Signed out"}


@router.get("/access_token")
async def show_access_token(patient: Annotated[Optional[Patient], Depends(get_optional_patient)]):
    if config.ENV_STATE != "dev" or patient is None:
        raise HTTPException(status_code=404, detail="Not found")
    return {"access_token": patient.access_token}
