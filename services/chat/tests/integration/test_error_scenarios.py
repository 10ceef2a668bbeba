# services/chat/tests/integration/test_error_scenarios.py
# Integration tests for error handling scenarios

import pytest
from fastapi.testclient import TestClient
from helpers import chat_body, collect_sse_events, event_types, tool_turn
from openai import OpenAIError

GENERIC = "Something went wrong. Please try again."


@pytest.mark.integration
class TestModelErrors:
    """Model provider failures before and after output."""

    """Failures of the model provider."""

    @pytest.mark.parametrize(
        "error",
        [OpenAIError("invalid api key"), TimeoutError("Model request timed out")],
    )
    def test_failure_before_output_is_http_500(
        self, integration_test_client, fake_gateway, error
    ):
        client, fake_model, app = integration_test_client
        fake_model.set_next_output(error)

        response = client.post("/chat/stream", json=chat_body("test"))

        assert response.status_code == 500
        assert response.json()["detail"]["detail"] == GENERIC
        assert "api key" not in response.text
        assert fake_gateway.logged == []

    def test_failure_after_tool_step_ends_stream_with_error(
        self, integration_test_client, fake_gateway
    ):
        client, fake_model, app = integration_test_client
        fake_model.add_multiple_turn_outputs(
            [tool_turn("get_financial_summary"), OpenAIError("rate limited")]
        )

        with client.stream("POST", "/chat/stream", json=chat_body("overview")) as response:
            assert response.status_code == 200
            events = collect_sse_events(response)

        assert event_types(events) == [
            "step", "tool_call", "tool_result", "step", "error", "done",
        ]
        assert events[-2] == {"type": "error", "error": GENERIC}
        # Incomplete turns are not logged
        assert fake_gateway.logged == []


@pytest.mark.integration
class TestToolErrors:
    """Tool failures reported inside the stream."""

    """Tool failures are reported to the model and the turn continues."""

    def test_data_service_error_visible_to_model(self, integration_test_client, fake_gateway):
        client, fake_model, app = integration_test_client
        fake_gateway.errors["budget_by_project"] = "function get_budget_by_project() does not exist"
        fake_model.add_multiple_turn_outputs(
            [tool_turn("get_budget_by_project"), ["The budget data is unavailable right now."]]
        )

        events = collect_sse_events(
            client.post("/chat/stream", json=chat_body("project budgets?"))
        )

        result = next(e for e in events if e["type"] == "tool_result")
        assert result["result"] == {"error": "function get_budget_by_project() does not exist"}
        tool_message = fake_model.last_turn_args["messages"][-1]
        assert tool_message["role"] == "tool"
        assert "does not exist" in tool_message["content"]
        assert events[-2]["reason"] == "stop"
        assert len(fake_gateway.logged) == 1

    def test_invalid_tool_arguments(self, integration_test_client, fake_gateway):
        client, fake_model, app = integration_test_client
        fake_model.add_multiple_turn_outputs(
            [
                tool_turn("get_packages_by_trade", {"trade": "Masonry"}),
                tool_turn("get_packages_by_trade", {"trade_name": "Masonry"}),
                ["Masonry has one package."],
            ]
        )

        events = collect_sse_events(client.post("/chat/stream", json=chat_body("masonry?")))

        first, second = [e["result"] for e in events if e["type"] == "tool_result"]
        assert "error" in first
        assert second["total_packages"] == 1
        assert [c[0] for c in fake_gateway.calls] == ["packages_by_trade"]

    def test_empty_result_is_not_an_error(self, integration_test_client, fake_gateway):
        client, fake_model, app = integration_test_client
        fake_gateway.rows["overspent_packages"] = []
        fake_model.add_multiple_turn_outputs(
            [tool_turn("get_overspent_packages"), ["Nothing is overspent."]]
        )

        events = collect_sse_events(client.post("/chat/stream", json=chat_body("overspent?")))

        result = next(e for e in events if e["type"] == "tool_result")["result"]
        assert result == {
            "message": "No overspent packages found. All packages are within budget."
        }


@pytest.mark.integration
class TestConfigurationErrors:
    """Missing configuration surfaced to the client."""

    def test_missing_data_service_credentials(self, chat_settings, fake_model):
        from chat.app import create_app
        from chat.orchestrator import ConversationOrchestrator

        app = create_app()
        with TestClient(app) as client:
            app.state.orchestrator = ConversationOrchestrator(
                settings=chat_settings, client=fake_model
            )
            response = client.post("/chat/stream", json=chat_body("test"))

        assert response.status_code == 500
        assert response.json()["detail"] == {"error": "Service Error", "detail": GENERIC}
        assert fake_model.calls == []
