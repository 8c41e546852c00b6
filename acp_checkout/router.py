"""
ACP Checkout Router Factory.

`create_checkout_router()` builds a FastAPI APIRouter from an explicit
dispatch table of the five checkout endpoints, all served by one
`CheckoutSessionService`:

    POST   /checkout_sessions                 create
    GET    /checkout_sessions/{session_id}    read
    POST   /checkout_sessions/{session_id}    update (partial)
    POST   /checkout_sessions/{session_id}/complete
    POST   /checkout_sessions/{session_id}/cancel

Every route uses `CheckoutRoute`, which runs the gate (API version, bearer
token, optional body signature) before the request body is validated, and
turns `ACPCheckoutError`s and body validation failures into an
`ACPErrorResponse` with the matching HTTP status.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Any, Callable, Coroutine, Optional, Type

from fastapi import APIRouter, Depends, Header, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException

from acp_checkout.config import Settings
from acp_checkout.errors import (
    ACPCheckoutError,
    InvalidRequest,
    InvalidSignature,
    Unauthorized,
    UnsupportedApiVersion,
)
from acp_checkout.models import (
    ACPError,
    ACPErrorResponse,
    CheckoutSession,
    CheckoutSessionCreateRequest,
    CheckoutSessionUpdateRequest,
    CompletionResult,
)
from acp_checkout.session import CheckoutSessionService

logger = logging.getLogger(__name__)

SESSION_RESPONSE_EXCLUDE = {"raw_payload", "version"}


def _validate_api_version(settings: Settings, api_version: Optional[str]) -> None:
    if api_version and api_version not in settings.supported_api_versions:
        raise UnsupportedApiVersion(
            f"Unsupported API-Version '{api_version}'",
            param="$.headers.API-Version",
        )


def _validate_bearer_token(settings: Settings, authorization: Optional[str]) -> None:
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthorized(
            "Missing or invalid Authorization header",
            param="$.headers.Authorization",
        )
    token = authorization[7:].strip()
    if not settings.bearer_key or not hmac.compare_digest(
        token.encode("utf-8"), settings.bearer_key.encode("utf-8")
    ):
        raise Unauthorized("Invalid bearer token", param="$.headers.Authorization")


def _verify_signature(settings: Settings, raw_body: bytes, signature: Optional[str]) -> None:
    if not settings.signature_secret:
        return
    if not signature:
        raise InvalidSignature(
            "Missing X-OpenAI-Signature header",
            param="$.headers.X-OpenAI-Signature",
        )
    expected = hmac.new(
        settings.signature_secret.encode("utf-8"), raw_body, hashlib.sha256
    ).hexdigest()
    if not hmac.compare_digest(signature, expected):
        raise InvalidSignature(
            "Invalid X-OpenAI-Signature",
            param="$.headers.X-OpenAI-Signature",
        )


def _param_path(loc: tuple) -> str:
    path = "$"
    for part in loc:
        path += f"[{part}]" if isinstance(part, int) else f".{part}"
    return path


def _invalid_request(exc: RequestValidationError) -> InvalidRequest:
    """Map the first body validation error onto an `InvalidRequest`."""
    first = exc.errors()[0]
    if first.get("type") == "json_invalid":
        return InvalidRequest("Request body must be a valid JSON object.")
    loc = tuple(first.get("loc", ()))
    if loc and loc[0] == "body":
        loc = loc[1:]
    return InvalidRequest(first.get("msg", "Invalid request body"), param=_param_path(loc))


def _apply_common_response_headers(
    response: Response,
    idempotency_key: Optional[str],
    request_id: Optional[str],
) -> None:
    if idempotency_key:
        response.headers["Idempotency-Key"] = idempotency_key
    if request_id:
        response.headers["Request-Id"] = request_id


def _error_response(error: ACPCheckoutError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.body.model_dump())


def _internal_error_response() -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content=ACPErrorResponse(
            error=ACPError(
                type="api_error",
                code="internal_error",
                message="Internal server error",
            )
        ).model_dump(),
    )


@dataclass
class ProtocolHeaders:
    authorization: Optional[str]
    api_version: Optional[str]
    idempotency_key: Optional[str]
    request_id: Optional[str]
    signature: Optional[str]


def _protocol_headers(
    authorization: Optional[str] = Header(None),
    api_version: Optional[str] = Header(None, alias="API-Version"),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    request_id: Optional[str] = Header(None, alias="Request-Id"),
    x_openai_signature: Optional[str] = Header(None, alias="X-OpenAI-Signature"),
) -> ProtocolHeaders:
    return ProtocolHeaders(
        authorization=authorization,
        api_version=api_version,
        idempotency_key=idempotency_key,
        request_id=request_id,
        signature=x_openai_signature,
    )


def _checkout_route_class(settings: Settings, require_auth: bool) -> Type[APIRoute]:
    """Build the route class that gates and error-maps every checkout endpoint."""

    class CheckoutRoute(APIRoute):
        def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
            endpoint_handler = super().get_route_handler()

            async def handler(request: Request) -> Response:
                idempotency_key = request.headers.get("Idempotency-Key")
                request_id = request.headers.get("Request-Id")
                try:
                    _validate_api_version(settings, request.headers.get("API-Version"))
                    if require_auth:
                        _validate_bearer_token(settings, request.headers.get("Authorization"))
                    raw_body = await request.body()
                    _verify_signature(settings, raw_body, request.headers.get("X-OpenAI-Signature"))
                    response = await endpoint_handler(request)
                except RequestValidationError as exc:
                    error = _invalid_request(exc)
                    logger.info(
                        "%s %s rejected: %s (%s)",
                        request.method, request.url.path, error.code, error.param,
                    )
                    response = _error_response(error)
                except ACPCheckoutError as e:
                    logger.info(
                        "%s %s rejected: %s (%s)", request.method, request.url.path, e.code, e.message
                    )
                    response = _error_response(e)
                except StarletteHTTPException:
                    raise
                except Exception:
                    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
                    response = _internal_error_response()
                _apply_common_response_headers(response, idempotency_key, request_id)
                return response

            return handler

    return CheckoutRoute


def create_checkout_router(
    service: CheckoutSessionService,
    settings: Settings,
    prefix: str = "",
    require_auth: bool = True,
) -> APIRouter:
    """
    Create a FastAPI APIRouter with the checkout endpoints wired to `service`.
    """
    router = APIRouter(
        prefix=prefix,
        tags=["ACP Checkout"],
        route_class=_checkout_route_class(settings, require_auth),
    )

    async def create_checkout_session(
        response: Response,
        body: Optional[CheckoutSessionCreateRequest] = None,
        headers: ProtocolHeaders = Depends(_protocol_headers),
    ) -> CheckoutSession:
        session, replayed = await service.create(
            body or CheckoutSessionCreateRequest(),
            headers.idempotency_key,
            headers.request_id,
        )
        if replayed:
            response.status_code = 200
            response.headers["Idempotent-Replayed"] = "true"
        return session

    async def get_checkout_session(
        session_id: str,
        headers: ProtocolHeaders = Depends(_protocol_headers),
    ) -> CheckoutSession:
        return await service.get(session_id)

    async def update_checkout_session(
        session_id: str,
        body: Optional[CheckoutSessionUpdateRequest] = None,
        headers: ProtocolHeaders = Depends(_protocol_headers),
    ) -> CheckoutSession:
        return await service.update(session_id, body or CheckoutSessionUpdateRequest())

    async def complete_checkout_session(
        session_id: str,
        headers: ProtocolHeaders = Depends(_protocol_headers),
    ) -> CompletionResult:
        return await service.complete(session_id)

    async def cancel_checkout_session(
        session_id: str,
        headers: ProtocolHeaders = Depends(_protocol_headers),
    ) -> CompletionResult:
        return await service.cancel(session_id)

    routes = [
        ("POST", "/checkout_sessions", create_checkout_session, 201, CheckoutSession),
        ("GET", "/checkout_sessions/{session_id}", get_checkout_session, 200, CheckoutSession),
        ("POST", "/checkout_sessions/{session_id}", update_checkout_session, 200, CheckoutSession),
        (
            "POST",
            "/checkout_sessions/{session_id}/complete",
            complete_checkout_session,
            200,
            CompletionResult,
        ),
        (
            "POST",
            "/checkout_sessions/{session_id}/cancel",
            cancel_checkout_session,
            200,
            CompletionResult,
        ),
    ]
    for method, path, endpoint, status_code, response_model in routes:
        router.add_api_route(
            path,
            endpoint,
            methods=[method],
            status_code=status_code,
            response_model=response_model,
            response_model_exclude=(
                SESSION_RESPONSE_EXCLUDE if response_model is CheckoutSession else None
            ),
            name=endpoint.__name__,
        )

    return router
