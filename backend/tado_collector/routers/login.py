"""
Login API Router
================

The two endpoints the login helper needs for the tado device flow.

ALL ENDPOINTS:
-------------
POST /api/login/start            - Get a user code + verification URL
GET  /api/login/poll?code=<code> - Has the user approved yet?

Errors are returned as {"error": "..."} so the helper can show them as-is.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from tado_collector.models import PendingAuthorization

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api/login", tags=["login"])


# =============================================================================
# DEPENDENCY INJECTION
# =============================================================================

_session = None  # This gets set when the app starts


def set_session(session):
    """Called when the app starts to hand us the TadoSession."""
    global _session
    _session = session


def get_session():
    if _session is None:
        raise HTTPException(status_code=503, detail="Server not fully started yet")
    return _session


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/start")
async def start_login(session=Depends(get_session)):
    """
    Start the device flow.

    Returns device_code, user_code, verification_uri, expires_in and
    interval. Show the user_code and URL to the user, then call /poll.
    """
    try:
        authorization = await session.start_device_authorization()
    except Exception as e:
        logger.error(f"Login start failed: {e}")
        return error_response(500, str(e))
    return authorization.model_dump(exclude_none=True)


@router.get("/poll")
async def poll_login(code: Optional[str] = None, session=Depends(get_session)):
    """
    Check whether the user approved the device code yet.

    - Approved: the token set (it is already saved)
    - Not yet: {"error": "authorization_pending"} with status 200
    """
    if not code:
        return error_response(400, "Missing code")

    try:
        result = await session.poll_for_token(code)
    except Exception as e:
        logger.error(f"Login poll failed: {e}")
        return error_response(500, str(e))

    if isinstance(result, PendingAuthorization):
        return result.model_dump()
    return result.model_dump(mode="json", exclude_none=True)
