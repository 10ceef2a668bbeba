# services/chat/tests/unit/conftest.py

# Unit test specific fixtures - the router on a bare app, collaborators faked

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient


@pytest.fixture
def sample_chat_request():
    """Sample chat request data."""
    return {"messages": [{"role": "user", "content": "Which packages are overspent?"}]}


@pytest.fixture
def unit_test_app(chat_settings, fake_model, fake_gateway):
    """Router mounted without lifespan; orchestrator and gateway are test doubles."""
    from chat.app import get_app_context, get_gateway, router
    from chat.orchestrator import ConversationOrchestrator
    from libs.budget_shared.context import AppContext

    test_app = FastAPI(title="Construction Budget Assistant (Test)")
    test_app.include_router(router)
    test_app.state.orchestrator = ConversationOrchestrator(
        settings=chat_settings, client=fake_model
    )

    test_app.dependency_overrides[get_gateway] = lambda: fake_gateway
    test_app.dependency_overrides[get_app_context] = lambda: AppContext(
        tenant_id="org-test", correlation_id="test-corr-789"
    )
    return test_app


@pytest.fixture
def unit_test_client(unit_test_app):
    """TestClient for the bare app."""
    return TestClient(unit_test_app)
