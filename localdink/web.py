"""
HTTP interfaces.

    POST /api/sms/inbound    Twilio webhook (form From/Body), replies in TwiML
    GET  /api/sms/inbound    readiness probe for the webhook URL
    POST /api/game-sessions  create a game and send the invites
    POST /api/chat           organizer's scheduling assistant
    GET  /health

Everything the routes need is passed to create_app; nothing here reads
the environment.
"""

import logging
from datetime import datetime, timezone
from typing import Annotated, Literal

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from twilio.request_validator import RequestValidator
from twilio.twiml.messaging_response import MessagingResponse

from localdink.assistant import SchedulingAssistant
from localdink.domain.store import StoreUnavailableError
from localdink.inbound import InboundSmsHandler
from localdink.sessions import (
    ConcurrentUpdateError,
    CreateSessionRequest,
    SessionService,
    SessionValidationError,
)

log = logging.getLogger(__name__)

TRY_AGAIN = "Something went wrong on our end. Please try again in a minute."
INVALID_PAYLOAD = "Invalid game session payload"


def twiml(message: str) -> Response:
    reply = MessagingResponse()
    reply.message(message)
    return Response(content=str(reply), media_type="text/xml")


class AttendeePayload(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(min_length=1)
    source: Literal["user", "player"]


class CreateSessionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    court_id: str = Field(alias="courtId", min_length=1)
    organizer_id: str = Field(alias="organizerId", min_length=1)
    start_time: str = Field(alias="startTime", min_length=1)
    is_doubles: bool = Field(True, alias="isDoubles")
    duration_minutes: int = Field(120, alias="durationMinutes", gt=0)
    player_ids: list[Annotated[str, Field(min_length=1)]] = Field(default_factory=list, alias="playerIds")
    attendees: list[AttendeePayload] = Field(default_factory=list)
    player_statuses: dict[str, str] = Field(default_factory=dict, alias="playerStatuses")
    min_players: int | None = Field(None, alias="minPlayers", gt=0)
    max_players: int | None = Field(None, alias="maxPlayers", gt=0)
    group_ids: list[str] = Field(default_factory=list, alias="groupIds")
    status: Literal["open", "full", "cancelled", "completed"] = "open"


class ChatPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    organizer_id: str = Field(alias="organizerId", min_length=1)
    message: str = Field(min_length=1)


def _parse_start(value: str) -> datetime | None:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _validation_details(exc: ValidationError) -> list[str]:
    return [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]


def _invalid(details: list[str]) -> JSONResponse:
    return JSONResponse({"success": False, "error": INVALID_PAYLOAD, "details": details}, status_code=400)


def create_app(
    sms_handler: InboundSmsHandler,
    sessions: SessionService,
    assistant: SchedulingAssistant | None = None,
    *,
    auth_token: str | None = None,
    dev_mode: bool = False,
    public_base_url: str | None = None,
) -> FastAPI:
    app = FastAPI(title="LocalDink")
    validator = RequestValidator(auth_token) if auth_token else None

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable(request: Request, exc: StoreUnavailableError):
        log.error("store unavailable on %s: %s", request.url.path, exc)
        return JSONResponse({"success": False, "error": TRY_AGAIN}, status_code=503)

    @app.exception_handler(ConcurrentUpdateError)
    async def concurrent_update(request: Request, exc: ConcurrentUpdateError):
        log.error("gave up on %s: %s", request.url.path, exc)
        return JSONResponse({"success": False, "error": TRY_AGAIN}, status_code=503)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    # -- inbound SMS -----------------------------------------------------------

    def _webhook_url(request: Request) -> str:
        if public_base_url:
            url = public_base_url.rstrip("/") + request.url.path
            return f"{url}?{request.url.query}" if request.url.query else url
        return str(request.url)

    @app.get("/api/sms/inbound")
    async def sms_ready():
        return {"status": "ready", "signatureRequired": not dev_mode}

    @app.post("/api/sms/inbound")
    async def sms_inbound(request: Request):
        form = await request.form()
        params = {k: v for k, v in form.items() if isinstance(v, str)}

        if not dev_mode:
            signature = request.headers.get("X-Twilio-Signature")
            if validator is None or not signature:
                log.warning("inbound SMS rejected: missing %s", "auth token" if validator is None else "signature")
                return Response(status_code=403)
            if not validator.validate(_webhook_url(request), params, signature):
                log.warning("inbound SMS rejected: invalid signature")
                return Response(status_code=403)

        from_number = (params.get("From") or "").strip()
        body = (params.get("Body") or "").strip()
        if not from_number or not body:
            return Response(status_code=400)

        try:
            reply = await sms_handler.handle(from_number, body)
        except (StoreUnavailableError, ConcurrentUpdateError) as exc:
            log.error("inbound SMS from=%s failed: %s", from_number, exc)
            reply = TRY_AGAIN
        return twiml(reply)

    # -- session creation ------------------------------------------------------

    @app.post("/api/game-sessions")
    async def create_game_session(request: Request):
        try:
            raw = await request.json()
        except ValueError:
            return _invalid(["body must be JSON"])
        try:
            payload = CreateSessionPayload.model_validate(raw)
        except ValidationError as exc:
            return _invalid(_validation_details(exc))

        start_time = _parse_start(payload.start_time)
        if start_time is None:
            return _invalid([f"startTime: not an ISO-8601 timestamp: {payload.start_time!r}"])

        request_obj = CreateSessionRequest(
            court_id=payload.court_id,
            organizer_id=payload.organizer_id,
            start_time=start_time,
            is_doubles=payload.is_doubles,
            duration_minutes=payload.duration_minutes,
            attendees=[a.model_dump() for a in payload.attendees],
            player_ids=payload.player_ids,
            player_statuses=payload.player_statuses,
            min_players=payload.min_players,
            max_players=payload.max_players,
            group_ids=payload.group_ids,
            status=payload.status,
        )
        try:
            result = await sessions.create_session(request_obj)
        except SessionValidationError as exc:
            return JSONResponse(
                {"success": False, "error": str(exc), "details": exc.details}, status_code=400
            )

        return {
            "success": True,
            "sessionId": result.session.id,
            "notifiedCount": result.notified_count,
            "notifiedPlayers": result.notified_players,
            "skippedPlayers": result.skipped_players,
        }

    # -- assistant -------------------------------------------------------------

    @app.post("/api/chat")
    async def chat(request: Request):
        if assistant is None:
            return JSONResponse({"success": False, "error": "Assistant is not enabled"}, status_code=404)
        try:
            payload = ChatPayload.model_validate(await request.json())
        except (ValueError, ValidationError) as exc:
            details = _validation_details(exc) if isinstance(exc, ValidationError) else ["body must be JSON"]
            return JSONResponse({"success": False, "error": "Invalid chat payload", "details": details}, status_code=400)

        reply = await assistant.chat(payload.organizer_id, payload.message)
        return {"success": True, "reply": reply.text, "sessionId": reply.session_id}

    return app
