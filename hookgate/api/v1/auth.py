"""
Demo login endpoint, protected by the gatekeeper gate.

POST /auth/login   Check credentials against the configured demo account
"""

from __future__ import annotations

import secrets

import structlog
from fastapi import APIRouter, Depends, HTTPException

from hookgate.core.config import Settings, get_settings
from hookgate.dispatch.gatekeeper import require_gatekeeper_clearance
from hookgate.schemas.simulator import LoginRequest, LoginResponse

log = structlog.get_logger()

router = APIRouter()


@router.post(
    "/login",
    response_model=LoginResponse,
    dependencies=[Depends(require_gatekeeper_clearance)],
)
async def login(body: LoginRequest, settings: Settings = Depends(get_settings)):
    log.info("auth.login_attempt", email=body.email)
    email_ok = secrets.compare_digest(body.email.encode(), settings.demo_login_email.encode())
    password_ok = secrets.compare_digest(body.password.encode(), settings.demo_login_password.encode())
    if not (email_ok and password_ok):
        raise HTTPException(status_code=401, detail="Invalid Credentials")
    return LoginResponse(token=secrets.token_urlsafe(24), message="Login Successful")
