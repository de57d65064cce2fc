"""Sign-in / sign-out REST endpoints."""

import json
import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from presence.config import LimitsConfig
from presence.errors import ValidationError
from presence.models import ErrorResponse, SigninResponse

logger = logging.getLogger(__name__)

# Rate limiter for session endpoints
limiter = Limiter(key_func=get_remote_address)

router = APIRouter(tags=["session"])

_limits = LimitsConfig()


def configure_limits(limits: LimitsConfig) -> None:
    """Apply an app's rate limit settings to the session endpoints."""
    global _limits
    _limits = limits
    limiter.enabled = limits.enabled


def _signin_limit() -> str:
    return _limits.signin


def _signout_limit() -> str:
    return _limits.signout


async def _read_nick(request: Request) -> Any:
    """Pull ``nick`` from a form or JSON body."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValidationError(f"Request body is not valid JSON: {e}") from e
        return body.get("nick") if isinstance(body, dict) else None

    form = await request.form()
    return form.get("nick")


@router.post("/signin", response_model=SigninResponse, responses={400: {"model": ErrorResponse}})
@limiter.limit(_signin_limit)
async def signin(request: Request) -> SigninResponse:
    """Sign a user in, renaming on collision, and return the other online users."""
    service = request.app.state.presence
    nick, users = service.sign_in(await _read_nick(request))
    return SigninResponse(nick=nick, users=users)


@router.post(
    "/signout", response_class=PlainTextResponse, responses={400: {"model": ErrorResponse}}
)
@limiter.limit(_signout_limit)
async def signout(request: Request) -> str:
    """Sign a user out. Unknown nicks are accepted."""
    service = request.app.state.presence
    service.sign_out(await _read_nick(request))
    return "OK"
