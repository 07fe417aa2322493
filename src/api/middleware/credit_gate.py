"""Credit gating for AI feature endpoints

Wraps a Starlette/FastAPI endpoint so that a request is checked against the
caller's credit ledger before the handler runs, and charged only after the
handler answered with a 2xx status.

    async def draft(request: Request) -> Response:
        ...

    app.add_api_route(
        "/draft",
        with_credit_validation(draft, CreditValidationOptions(feature=AIFeature.DRAFT_MESSAGING)),
        methods=["POST"],
    )

The validated / deducted markers live in the ASGI scope's state, so they are
shared by every Request built from the same scope: a wrapped handler that is
wrapped again is validated once and charged at most once.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union
from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from config import ApplicationConfig
from src.app.services.credit_service import CreditService
from src.domain.base import utc_now
from src.domain.credit_policy import AIFeature

logger = logging.getLogger(__name__)

Handler = Callable[[Request], Awaitable[Response]]

CREDITS_REQUIRED_HEADER = "x-credits-required"
CREDITS_REMAINING_HEADER = "x-credits-remaining"
REQUEST_ID_HEADER = "x-request-id"


@dataclass
class CreditValidationOptions:
    feature: AIFeature
    # JSON body field carrying the user ID; the user ID header is used when unset
    user_id_field: Optional[str] = None
    require_auth: bool = True
    error_message: Optional[str] = None


def _replay_request(request: Request, body: bytes, extra_headers: Optional[Mapping[str, str]] = None) -> Request:
    """
    Build an unconsumed Request over the same scope

    The scope's state dict is shared with the original request.
    """
    request.scope.setdefault("state", {})
    scope = dict(request.scope)

    if extra_headers:
        replaced = {name.lower().encode("latin-1") for name in extra_headers}
        headers = [(k, v) for k, v in request.scope["headers"] if k not in replaced]
        headers.extend(
            (name.lower().encode("latin-1"), str(value).encode("latin-1"))
            for name, value in extra_headers.items()
        )
        scope["headers"] = headers

    sent = False

    async def receive():
        nonlocal sent
        if sent:
            return {"type": "http.disconnect"}
        sent = True
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


async def _extract_user_id(request: Request, body: bytes, options: CreditValidationOptions) -> Optional[str]:
    if options.user_id_field:
        try:
            payload = json.loads(body) if body else {}
        except ValueError as e:
            logger.error(f"Error parsing request body for credit validation: {e}")
            payload = {}
        value = payload.get(options.user_id_field) if isinstance(payload, dict) else None
    else:
        value = request.headers.get(ApplicationConfig.USER_ID_HEADER)

    if value is None or value == "":
        return None
    return str(value)


def _deduction_metadata(request: Request) -> Dict[str, Any]:
    return {
        "request_id": request.headers.get(REQUEST_ID_HEADER),
        "user_agent": request.headers.get("user-agent"),
        "timestamp": utc_now().isoformat(),
    }


def with_credit_validation(
    handler: Handler,
    options: CreditValidationOptions,
    credit_service: Optional[CreditService] = None,
) -> Handler:
    """
    Gate handler behind a credit check for options.feature

    Pre-check (once per request): user ID from the body field or header;
    missing -> 400 (or ungated pass-through when require_auth is False),
    unknown user -> 404, feature not in plan -> 403, balance too low -> 402.
    The handler is never invoked on a rejection.

    Post-check: on a 2xx response, deduct once. A failed deduction is
    logged and the handler's response is returned unchanged.

    Args:
        handler: Endpoint taking a Request
        options: Feature and user ID extraction settings
        credit_service: Service to use; falls back to request.app.state.credit_service
    """
    feature = AIFeature(options.feature)

    async def endpoint(request: Request) -> Response:
        service = credit_service or request.app.state.credit_service
        state = request.state

        body = await request.body()
        user_id = await _extract_user_id(request, body, options)

        if not user_id:
            if options.require_auth:
                return JSONResponse(
                    status_code=400,
                    content={
                        "error": "User ID required for credit validation",
                        "message": "Please provide a valid user ID",
                    },
                )
            return await handler(_replay_request(request, body))

        if getattr(state, "credits_validated", False):
            forwarded = _replay_request(request, body)
        else:
            try:
                validation = await service.validate_credits(user_id, feature)
                has_access = validation is not None and await service.has_feature_access(user_id, feature)
            except Exception as e:
                logger.error(f"Credit validation middleware error for user {user_id}: {e}")
                return JSONResponse(
                    status_code=500,
                    content={
                        "error": "Credit validation failed",
                        "message": "Unable to validate credits for this request",
                    },
                )

            if validation is None:
                return JSONResponse(
                    status_code=404,
                    content={
                        "error": "User not found",
                        "message": f"No user with ID {user_id}",
                    },
                )

            if not has_access:
                return JSONResponse(
                    status_code=403,
                    content={
                        "error": "Feature not available",
                        "message": "This AI feature is not available with your current plan",
                        "feature": feature.value,
                        "upgradeRequired": True,
                    },
                )

            if not validation.can_proceed:
                return JSONResponse(
                    status_code=402,
                    content={
                        "error": "Insufficient credits",
                        "message": options.error_message or validation.message,
                        "credits": {
                            "required": validation.required_credits,
                            "current": validation.current_credits,
                            "remaining": validation.remaining_credits,
                        },
                        "feature": feature.value,
                        "upgradeRequired": True,
                    },
                )

            state.credits_validated = True
            forwarded = _replay_request(
                request,
                body,
                {
                    ApplicationConfig.USER_ID_HEADER: user_id,
                    CREDITS_REQUIRED_HEADER: validation.required_credits,
                    CREDITS_REMAINING_HEADER: validation.remaining_credits,
                },
            )

        response = await handler(forwarded)

        if 200 <= response.status_code < 300 and not getattr(state, "credits_deducted", False):
            state.credits_deducted = True
            try:
                deducted = await service.deduct_credits(user_id, feature, _deduction_metadata(request))
                if not deducted:
                    logger.warning(f"Credits not deducted for user {user_id} after successful {feature.value} request")
            except Exception as e:
                logger.error(f"Error deducting credits after successful request: {e}")

        return response

    endpoint.__name__ = getattr(handler, "__name__", "credit_gated_endpoint")
    endpoint.__doc__ = getattr(handler, "__doc__", None)
    return endpoint


def requires_credits(feature: AIFeature, **options) -> Callable[[Handler], Handler]:
    """Decorator form of with_credit_validation"""
    credit_service = options.pop("credit_service", None)

    def decorator(handler: Handler) -> Handler:
        return with_credit_validation(
            handler, CreditValidationOptions(feature=feature, **options), credit_service
        )

    return decorator


def create_credit_validator(feature: AIFeature) -> Callable[..., Handler]:
    """
    Pre-bind the feature; the returned factory takes the handler and any
    other CreditValidationOptions field as keywords
    """

    def validator(handler: Handler, credit_service: Optional[CreditService] = None, **options) -> Handler:
        return with_credit_validation(
            handler, CreditValidationOptions(feature=feature, **options), credit_service
        )

    return validator


CREDIT_VALIDATORS: Dict[str, Callable[..., Handler]] = {
    feature.value: create_credit_validator(feature)
    for feature in (
        AIFeature.DRAFT_MESSAGING,
        AIFeature.TODO_GENERATION,
        AIFeature.FILE_ANALYSIS,
        AIFeature.MESSAGE_ANALYSIS,
        AIFeature.INTEGRATED_PLANNING,
        AIFeature.BUDGET_GENERATION,
        AIFeature.VIBE_GENERATION,
        AIFeature.VENDOR_SUGGESTIONS,
        AIFeature.FOLLOW_UP_QUESTIONS,
        # planner features
        AIFeature.CLIENT_COMMUNICATION,
        AIFeature.VENDOR_COORDINATION,
        AIFeature.CLIENT_PLANNING,
        AIFeature.VENDOR_ANALYSIS,
        AIFeature.CLIENT_PORTAL_CONTENT,
        AIFeature.BUSINESS_ANALYTICS,
        AIFeature.CLIENT_ONBOARDING,
        AIFeature.VENDOR_CONTRACT_REVIEW,
        AIFeature.CLIENT_TIMELINE_CREATION,
    )
}


def add_credit_info_to_headers(
    response: Response, required: int, remaining: int, user_id: Optional[str] = None
) -> Response:
    response.headers[CREDITS_REQUIRED_HEADER] = str(required)
    response.headers[CREDITS_REMAINING_HEADER] = str(remaining)
    if user_id:
        response.headers[ApplicationConfig.USER_ID_HEADER] = user_id
    return response


def get_credit_info_from_headers(source: Union[Request, Response, Headers, Mapping[str, str]]) -> Dict[str, Any]:
    """Read credit headers from a request, response or header mapping; missing counts read as 0"""
    headers = source.headers if isinstance(source, (Request, Response)) else source

    def as_int(name: str) -> int:
        try:
            return int(headers.get(name) or 0)
        except ValueError:
            return 0

    return {
        "required": as_int(CREDITS_REQUIRED_HEADER),
        "remaining": as_int(CREDITS_REMAINING_HEADER),
        "user_id": headers.get(ApplicationConfig.USER_ID_HEADER) or None,
    }
