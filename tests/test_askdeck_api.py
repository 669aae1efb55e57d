from typing import List

from fastapi.testclient import TestClient

from services.askdeck.app.deps import get_gateway
from services.askdeck.app.main import app as default_app
from services.askdeck.app.main import create_app
from shared.models import Blocked, Malformed, Success, TransportError, Unavailable
from shared.settings import Settings

NOT_CONFIGURED = (
    "AI service is not configured correctly on the server. "
    "Check model ID and API key."
)
VALID_BODY = {"message": "What is the capital of France?", "context": "Geography deck"}


class StubGateway:
    """Stands in for CompletionGateway; records prompts, returns a fixed outcome."""

    def __init__(self, outcome, enabled: bool = True) -> None:
        self.outcome = outcome
        self.enabled = enabled
        self.disabled_reason = None if enabled else "stub disabled"
        self.model_name = "stub-model"
        self.prompts: List[str] = []

    async def complete(self, prompt: str):
        self.prompts.append(prompt)
        return self.outcome


def _client(gateway) -> TestClient:
    return TestClient(create_app(settings=Settings(google_api_key=None), gateway=gateway))


def test_success_returns_reply() -> None:
    stub = StubGateway(Success(text="Paris"))
    resp = _client(stub).post("/api/askdeck", json=VALID_BODY)
    assert resp.status_code == 200
    assert resp.json() == {"reply": "Paris"}
    assert stub.prompts == [
        "Geography deck\n\n---\n\n"
        "User Question: What is the capital of France?\n\nAskDeck Response:"
    ]


def test_blocked_returns_500_with_reason() -> None:
    resp = _client(StubGateway(Blocked(reason="SAFETY"))).post(
        "/api/askdeck", json=VALID_BODY
    )
    assert resp.status_code == 500
    assert resp.json() == {"error": "Response blocked: SAFETY"}


def test_transport_error_returns_500_with_message() -> None:
    resp = _client(StubGateway(TransportError(message="ECONNRESET"))).post(
        "/api/askdeck", json=VALID_BODY
    )
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to get response from AI: ECONNRESET"}


def test_malformed_returns_generic_500() -> None:
    resp = _client(StubGateway(Malformed(raw_response={"candidates": []}))).post(
        "/api/askdeck", json=VALID_BODY
    )
    assert resp.status_code == 500
    assert resp.json() == {"error": "AI did not provide a valid response."}


def test_unavailable_outcome_maps_to_configuration_error() -> None:
    resp = _client(StubGateway(Unavailable(reason="gone"))).post(
        "/api/askdeck", json=VALID_BODY
    )
    assert resp.status_code == 500
    assert resp.json() == {"error": NOT_CONFIGURED}


def test_missing_message_returns_400() -> None:
    stub = StubGateway(Success(text="unused"))
    client = _client(stub)
    for body in (
        {"context": "deck"},
        {"message": None, "context": "deck"},
        {"message": "", "context": "deck"},
    ):
        resp = client.post("/api/askdeck", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Message and context are required."}
    assert stub.prompts == []


def test_missing_context_returns_400() -> None:
    client = _client(StubGateway(Success(text="unused")))
    for body in (
        {"message": "q"},
        {"message": "q", "context": None},
        {"message": "q", "context": ""},
    ):
        resp = client.post("/api/askdeck", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Message and context are required."}


def test_unusable_bodies_return_400() -> None:
    client = _client(StubGateway(Success(text="unused")))
    assert client.post("/api/askdeck").status_code == 400
    assert client.post("/api/askdeck", json=["message", "context"]).status_code == 400
    assert (
        client.post("/api/askdeck", json={"message": 42, "context": "deck"}).status_code
        == 400
    )
    resp = client.post(
        "/api/askdeck",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )
    assert resp.status_code == 400


def test_disabled_gateway_returns_configuration_error_before_validation() -> None:
    stub = StubGateway(Success(text="unused"), enabled=False)
    client = _client(stub)
    for body in (VALID_BODY, {}):
        resp = client.post("/api/askdeck", json=body)
        assert resp.status_code == 500
        assert resp.json() == {"error": NOT_CONFIGURED}
    assert stub.prompts == []


def test_health_is_ok_regardless_of_gateway_state() -> None:
    for stub in (StubGateway(Success(text="x")), StubGateway(None, enabled=False)):
        resp = _client(stub).get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert isinstance(data["message"], str) and data["message"]


def test_app_without_key_is_disabled_but_healthy() -> None:
    # No key in the environment (see conftest) -> real gateway is disabled
    client = TestClient(create_app(settings=Settings(google_api_key=None)))
    assert client.get("/api/health").status_code == 200
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/").json() == {"status": "ok", "service": "askdeck"}
    resp = client.post("/api/askdeck", json=VALID_BODY)
    assert resp.status_code == 500
    assert resp.json() == {"error": NOT_CONFIGURED}


def test_dependency_override_replaces_gateway() -> None:
    default_app.dependency_overrides[get_gateway] = lambda: StubGateway(
        Success(text="overridden")
    )
    try:
        resp = TestClient(default_app).post("/api/askdeck", json=VALID_BODY)
        assert resp.status_code == 200
        assert resp.json() == {"reply": "overridden"}
    finally:
        default_app.dependency_overrides.clear()


def test_cors_allows_configured_origin() -> None:
    app = create_app(
        settings=Settings(
            google_api_key=None, cors_allow_origins="http://localhost:5173"
        ),
        gateway=StubGateway(Success(text="x")),
    )
    resp = TestClient(app).options(
        "/api/askdeck",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
        },
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "http://localhost:5173"


def test_non_string_fields_are_rejected_not_coerced() -> None:
    stub = StubGateway(Success(text="unused"))
    client = _client(stub)
    for body in (
        {"message": 42, "context": "deck"},
        {"message": "q", "context": ["slide 1"]},
        {"message": True, "context": {"slide": 1}},
    ):
        resp = client.post("/api/askdeck", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Message and context are required."}
    assert stub.prompts == []
