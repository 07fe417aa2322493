"""Unit tests for the credit gating wrapper

Tests cover:
- Rejections (400 / 404 / 403 / 402 / 500) never reach the handler
- Successful requests are charged once, after the handler
- Failed handlers are never charged
- Nested gating validates and charges once
"""

import json
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from src.api.middleware import (
    CREDIT_VALIDATORS,
    CreditValidationOptions,
    add_credit_info_to_headers,
    get_credit_info_from_headers,
    requires_credits,
    with_credit_validation,
)
from src.app.use_cases.credits import CreditValidationResultDTO
from src.domain.credit_policy import AIFeature


def validation(required=2, current=15):
    enough = current >= required
    return CreditValidationResultDTO(
        has_enough_credits=enough,
        required_credits=required,
        current_credits=current,
        remaining_credits=max(0, current - required),
        can_proceed=enough,
        message=f"Credits available: {current}" if enough else f"Insufficient credits. Need {required}, have {current}",
    )


@pytest.fixture
def credit_service():
    service = MagicMock()
    service.validate_credits = AsyncMock(return_value=validation())
    service.has_feature_access = AsyncMock(return_value=True)
    service.deduct_credits = AsyncMock(return_value=True)
    return service


@pytest.fixture
def handler_calls():
    return []


@pytest.fixture
def app(credit_service, handler_calls):
    app = FastAPI()
    options = CreditValidationOptions(feature=AIFeature.TODO_GENERATION)

    async def generate(request: Request) -> Response:
        body = await request.body()
        handler_calls.append(
            {
                "body": body,
                "user_id": request.headers.get("x-user-id"),
                "credits": get_credit_info_from_headers(request),
            }
        )
        return JSONResponse({"todos": ["book venue"]})

    async def broken(request: Request) -> Response:
        handler_calls.append({})
        return JSONResponse({"detail": "model unavailable"}, status_code=503)

    app.add_api_route("/generate", with_credit_validation(generate, options, credit_service), methods=["POST"])
    app.add_api_route("/broken", with_credit_validation(broken, options, credit_service), methods=["POST"])
    app.add_api_route(
        "/nested",
        with_credit_validation(with_credit_validation(generate, options, credit_service), options, credit_service),
        methods=["POST"],
    )
    app.add_api_route(
        "/by-body",
        with_credit_validation(
            generate,
            CreditValidationOptions(feature=AIFeature.TODO_GENERATION, user_id_field="userId"),
            credit_service,
        ),
        methods=["POST"],
    )
    app.add_api_route(
        "/optional",
        with_credit_validation(
            generate,
            CreditValidationOptions(feature=AIFeature.TODO_GENERATION, require_auth=False),
            credit_service,
        ),
        methods=["POST"],
    )
    return app


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
class TestCreditGateRejections:

    async def test_missing_user_id_is_400(self, client, credit_service, handler_calls):
        response = await client.post("/generate", json={})

        assert response.status_code == 400
        assert response.json()["error"] == "User ID required for credit validation"
        assert handler_calls == []
        credit_service.validate_credits.assert_not_called()

    async def test_missing_user_id_passes_through_when_auth_optional(self, client, credit_service, handler_calls):
        response = await client.post("/optional", json={"prompt": "hi"})

        assert response.status_code == 200
        assert len(handler_calls) == 1
        credit_service.validate_credits.assert_not_called()
        credit_service.deduct_credits.assert_not_called()

    async def test_unknown_user_is_404(self, client, credit_service, handler_calls):
        credit_service.validate_credits = AsyncMock(return_value=None)

        response = await client.post("/generate", headers={"x-user-id": "ghost"})

        assert response.status_code == 404
        assert response.json()["error"] == "User not found"
        assert handler_calls == []

    async def test_feature_not_in_plan_is_403(self, client, credit_service, handler_calls):
        credit_service.has_feature_access = AsyncMock(return_value=False)

        response = await client.post("/generate", headers={"x-user-id": "user_123"})

        assert response.status_code == 403
        body = response.json()
        assert body["feature"] == "todo_generation"
        assert body["upgradeRequired"] is True
        assert handler_calls == []

    async def test_insufficient_credits_is_402(self, client, credit_service, handler_calls):
        credit_service.validate_credits = AsyncMock(return_value=validation(required=2, current=1))

        response = await client.post("/generate", headers={"x-user-id": "user_123"})

        assert response.status_code == 402
        body = response.json()
        assert body["message"] == "Insufficient credits. Need 2, have 1"
        assert body["credits"] == {"required": 2, "current": 1, "remaining": 0}
        assert handler_calls == []
        credit_service.deduct_credits.assert_not_called()

    async def test_validation_error_is_500(self, client, credit_service, handler_calls):
        credit_service.validate_credits = AsyncMock(side_effect=Exception("db down"))

        response = await client.post("/generate", headers={"x-user-id": "user_123"})

        assert response.status_code == 500
        assert response.json()["error"] == "Credit validation failed"
        assert handler_calls == []


@pytest.mark.asyncio
class TestCreditGateCharging:

    async def test_success_charges_once_after_handler(self, client, credit_service, handler_calls):
        """
        Given: A user with enough credits
        When: The gated handler answers 200
        Then: Handler saw the body and credit headers; one deduction with request metadata
        """
        response = await client.post(
            "/generate",
            json={"prompt": "plan my week"},
            headers={"x-user-id": "user_123", "x-request-id": "req_1", "user-agent": "pytest"},
        )

        assert response.status_code == 200
        assert response.json() == {"todos": ["book venue"]}

        [call] = handler_calls
        assert json.loads(call["body"]) == {"prompt": "plan my week"}
        assert call["user_id"] == "user_123"
        assert call["credits"] == {"required": 2, "remaining": 13, "user_id": "user_123"}

        credit_service.deduct_credits.assert_called_once()
        user_id, feature, metadata = credit_service.deduct_credits.call_args.args
        assert (user_id, feature) == ("user_123", AIFeature.TODO_GENERATION)
        assert metadata["request_id"] == "req_1"
        assert metadata["user_agent"] == "pytest"
        assert "timestamp" in metadata

    async def test_failed_handler_is_not_charged(self, client, credit_service, handler_calls):
        response = await client.post("/broken", headers={"x-user-id": "user_123"})

        assert response.status_code == 503
        assert len(handler_calls) == 1
        credit_service.deduct_credits.assert_not_called()

    async def test_failed_deduction_keeps_response(self, client, credit_service):
        credit_service.deduct_credits = AsyncMock(side_effect=Exception("write conflict"))

        response = await client.post("/generate", headers={"x-user-id": "user_123"})

        assert response.status_code == 200
        assert response.json() == {"todos": ["book venue"]}

    async def test_nested_gate_validates_and_charges_once(self, client, credit_service, handler_calls):
        response = await client.post("/nested", headers={"x-user-id": "user_123"})

        assert response.status_code == 200
        assert len(handler_calls) == 1
        credit_service.validate_credits.assert_called_once()
        credit_service.deduct_credits.assert_called_once()

    async def test_user_id_from_body_field(self, client, credit_service, handler_calls):
        response = await client.post("/by-body", json={"userId": "user_456", "prompt": "x"})

        assert response.status_code == 200
        credit_service.validate_credits.assert_called_once_with("user_456", AIFeature.TODO_GENERATION)
        assert handler_calls[0]["user_id"] == "user_456"


@pytest.mark.asyncio
class TestCreditGateHelpers:

    async def test_falls_back_to_app_state_service(self, credit_service):
        app = FastAPI()
        app.state.credit_service = credit_service

        @requires_credits(AIFeature.DRAFT_MESSAGING)
        async def draft(request: Request) -> Response:
            return JSONResponse({"draft": "Dear vendor"})

        app.add_api_route("/draft", draft, methods=["POST"])

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.post("/draft", headers={"x-user-id": "user_123"})

        assert response.status_code == 200
        credit_service.deduct_credits.assert_called_once()

    async def test_prebuilt_validators(self):
        assert "draft_messaging" in CREDIT_VALIDATORS
        assert "client_timeline_creation" in CREDIT_VALIDATORS
        assert callable(CREDIT_VALIDATORS["todo_generation"])

    async def test_header_helpers(self):
        response = add_credit_info_to_headers(JSONResponse({}), required=3, remaining=9, user_id="user_123")

        assert get_credit_info_from_headers(response) == {"required": 3, "remaining": 9, "user_id": "user_123"}
        assert get_credit_info_from_headers({}) == {"required": 0, "remaining": 0, "user_id": None}
