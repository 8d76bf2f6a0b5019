from __future__ import annotations

from fastapi.testclient import TestClient

from app.core.app_factory import create_app


def test_openapi_documents_bearer_security_and_rate_limits():
    client = TestClient(create_app())

    schema = client.get("/openapi.json").json()

    assert "SessionBearer" in schema["components"]["securitySchemes"]
    assert schema["security"] == [{"SessionBearer": []}]
    assert {t["name"] for t in schema["tags"]} >= {"Auth", "Monitoring", "Health"}

    assert schema["paths"]["/health"]["get"]["security"] == []
    whoami = schema["paths"]["/api/whoami"]["get"]
    assert "429" in whoami["responses"]
