"""HTTP API for WhatsApp group management.

``create_app`` builds the FastAPI application around already-constructed
services (nothing is created here). Every response carries a ``success``
flag; domain errors map to their ``status_code`` and unknown routes get a
JSON 404.
"""

import base64
import binascii
import logging
import time
import traceback
from contextlib import AbstractAsyncContextManager
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from wabridge import __version__
from wabridge.core.services.group_service import GroupService
from wabridge.core.services.whatsapp_service import WhatsAppService
from wabridge.domain.exceptions import InvalidRequestError, WaBridgeError
from wabridge.infrastructure.api.schemas import (
    DescriptionRequest,
    GroupSettingsRequest,
    InviteRequest,
    LoginRequest,
    PictureRequest,
    RenameRequest,
)
from wabridge.infrastructure.config.settings import ServerSettings

logger = logging.getLogger(__name__)

Lifespan = Callable[[FastAPI], AbstractAsyncContextManager]


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, **extra})


def create_router(whatsapp: WhatsAppService, groups: GroupService) -> APIRouter:
    """All ``/api/wa/...`` routes, bound to the given services."""
    router = APIRouter(prefix="/wa")

    @router.post("/login")
    async def login(body: LoginRequest) -> Dict[str, Any]:
        if not body.number:
            raise InvalidRequestError("Phone number is required")
        outcome = await whatsapp.login()
        return {"success": True, **outcome}

    @router.get("/status")
    async def status() -> Dict[str, Any]:
        return {"success": True, **whatsapp.status()}

    @router.get("/groups")
    async def list_groups() -> Dict[str, Any]:
        listing = await whatsapp.get_groups()
        return {"success": True, "groups": [g.to_dict() for g in listing], "count": len(listing)}

    @router.post("/group/settings")
    async def group_settings(body: GroupSettingsRequest) -> Dict[str, Any]:
        if not body.setting or not body.action or body.target in (None, ""):
            raise InvalidRequestError("Setting, action, and target are required")
        results = await groups.apply_setting(body.setting, body.action, str(body.target))
        return {"success": True, "results": [r.to_dict() for r in results], "processed": len(results)}

    @router.post("/group/rename")
    async def rename(body: RenameRequest) -> Dict[str, Any]:
        if not body.group_number or not body.new_name:
            raise InvalidRequestError("Group number and new name are required")
        group = await groups.rename(body.group_number, body.new_name)
        return {
            "success": True,
            "message": f'Group renamed to "{body.new_name}"',
            "groupNumber": body.group_number,
            "oldName": group.name,
            "newName": body.new_name,
        }

    @router.post("/group/description")
    async def description(body: DescriptionRequest) -> Dict[str, Any]:
        if not body.group_number or body.description is None:
            raise InvalidRequestError("Group number and description are required")
        group = await groups.set_description(body.group_number, body.description)
        return {
            "success": True,
            "message": "Group description updated",
            "groupNumber": body.group_number,
            "groupName": group.name,
        }

    @router.post("/group/picture")
    async def picture(body: PictureRequest) -> Dict[str, Any]:
        if not body.group_number:
            raise InvalidRequestError("Group number is required")

        if body.action == "delete":
            group = await groups.remove_picture(body.group_number)
            message = "Group picture removed"
        else:
            image: Optional[bytes] = None
            if body.image_base64:
                try:
                    image = base64.b64decode(body.image_base64, validate=True)
                except (binascii.Error, ValueError):
                    raise InvalidRequestError("imageBase64 is not valid base64") from None
            elif not body.file_url:
                raise InvalidRequestError("Image file or URL is required")
            group = await groups.set_picture(body.group_number, image=image, file_url=body.file_url)
            message = "Group picture updated"

        return {
            "success": True,
            "message": message,
            "groupNumber": body.group_number,
            "groupName": group.name,
        }

    @router.post("/group/invite")
    async def invite(body: InviteRequest) -> Dict[str, Any]:
        if not body.group_number or not body.number:
            raise InvalidRequestError("Group number and phone number are required")
        number = str(body.number)
        group = await groups.invite(body.group_number, number)
        return {
            "success": True,
            "message": f"Successfully invited {number} to group",
            "groupNumber": body.group_number,
            "groupName": group.name,
            "invitedNumber": number,
        }

    @router.get("/group/{group_number}")
    async def group_info(group_number: str) -> Dict[str, Any]:
        try:
            number = int(group_number)
        except ValueError:
            number = 0
        if number <= 0:
            raise InvalidRequestError("Valid group number is required")
        info = await groups.group_info(number)
        return {"success": True, "group": info.to_dict()}

    @router.post("/logout")
    async def logout() -> Dict[str, Any]:
        await whatsapp.disconnect()
        return {"success": True, "message": "Successfully logged out"}

    return router


def create_app(
    whatsapp: WhatsAppService,
    groups: GroupService,
    settings: Optional[ServerSettings] = None,
    lifespan: Optional[Lifespan] = None,
) -> FastAPI:
    """Builds the FastAPI application around the given services."""
    settings = settings or ServerSettings()
    started_at = time.monotonic()
    app = FastAPI(title="wabridge", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        client = request.client.host if request.client else "-"
        logger.info(f"{request.method} {request.url.path} ip={client} ua={request.headers.get('user-agent', '-')}")
        return await call_next(request)

    @app.exception_handler(WaBridgeError)
    async def handle_domain_error(request: Request, exc: WaBridgeError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return _error(exc.status_code, str(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(part) for part in first.get("loc", ())[1:]) or "body"
        return _error(400, f"Invalid request: {field}: {first.get('msg', 'invalid value')}")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return _error(404, "Endpoint not found")
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error: {exc}", exc_info=True)
        extra: Dict[str, Any] = {}
        if settings.is_development:
            extra["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return _error(500, str(exc) or "Internal server error", **extra)

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {
            "status": "OK",
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "uptime": round(time.monotonic() - started_at, 3),
        }

    app.include_router(create_router(whatsapp, groups), prefix="/api")
    return app
