# services/chat/tests/integration/conftest.py
# Integration test fixtures - the real app and middleware, with FakeChatModel
# in place of the provider and FakeGateway in place of the data service

import pytest
from fastapi import Request
from fastapi.testclient import TestClient


@pytest.fixture
def integration_test_client(chat_settings, fake_model, fake_gateway):
    """TestClient over create_app() with the lifespan run; yields (client, fake_model, app)."""
    from chat.app import create_app, get_app_context, get_gateway
    from chat.orchestrator import ConversationOrchestrator
    from libs.budget_shared.context import AppContext

    def override_get_app_context(request: Request):
        # Tenant from the test settings; correlation id still set by the middleware
        return AppContext(
            tenant_id=chat_settings.tenant_id,
            correlation_id=getattr(request.state, "correlation_id", None),
        )

    app = create_app()
    with TestClient(app) as client:
        # Replace what the lifespan built
        app.state.orchestrator = ConversationOrchestrator(
            settings=chat_settings, client=fake_model
        )
        app.dependency_overrides[get_gateway] = lambda: fake_gateway
        app.dependency_overrides[get_app_context] = override_get_app_context
        yield client, fake_model, app
        app.dependency_overrides.clear()
