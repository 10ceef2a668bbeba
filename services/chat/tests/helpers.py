# services/chat/tests/helpers.py
# Test utilities and helpers

import asyncio
import json
from typing import Any, Dict, List, Optional

from fake_model import FakeToolCall
from libs.budget_shared.errors import GatewayError


class FakeGateway:
    """
    In-memory stand-in for FinancialDataGateway.

    ``rows`` maps query name -> rows returned; ``errors`` maps query name ->
    message raised as GatewayError. Every call is recorded in ``calls``.
    """

    def __init__(
        self,
        projects: Optional[List[Dict[str, str]]] = None,
        rows: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        errors: Optional[Dict[str, str]] = None,
        log_error: Optional[Exception] = None,
    ):
        self.projects = projects or []
        self.rows = rows or {}
        self.errors = errors or {}
        self.log_error = log_error
        self.calls: List[tuple] = []
        self.logged: List[Any] = []

    async def _query(self, name: str, *args) -> List[Dict[str, Any]]:
        self.calls.append((name, *args))
        if name in self.errors:
            raise GatewayError(self.errors[name], status_code=400)
        return list(self.rows.get(name, []))

    async def budget_by_trade(self, tenant_id, project_id=None):
        return await self._query("budget_by_trade", tenant_id, project_id)

    async def budget_by_project(self, tenant_id):
        return await self._query("budget_by_project", tenant_id)

    async def overspent_packages(self, tenant_id, project_id=None):
        return await self._query("overspent_packages", tenant_id, project_id)

    async def financial_summary(self, tenant_id, project_id=None):
        return await self._query("financial_summary", tenant_id, project_id)

    async def packages_by_trade(self, tenant_id, trade_name, project_id=None):
        return await self._query("packages_by_trade", tenant_id, trade_name, project_id)

    async def find_project_id(self, tenant_id, fragment):
        """Case-insensitive substring match, first by name, like the service."""
        self.calls.append(("find_project_id", tenant_id, fragment))
        needle = fragment.strip().lower()
        for project in sorted(self.projects, key=lambda p: p["name"]):
            if needle and needle in project["name"].lower():
                return project["id"]
        return None

    async def append_conversation_log(self, entry):
        if self.log_error is not None:
            raise self.log_error
        self.logged.append(entry)

    async def close(self):
        pass


class BlockingGateway(FakeGateway):
    """FakeGateway whose aggregate queries wait until ``release`` is set."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def _query(self, name: str, *args) -> List[Dict[str, Any]]:
        self.entered.set()
        await self.release.wait()
        return await super()._query(name, *args)


def parse_sse_line(line: str) -> Optional[Dict]:
    """Parse an SSE data line into a dict."""
    if line.startswith("data: "):
        return json.loads(line[6:])
    return None


def collect_sse_events(response) -> List[Dict]:
    """Collect all SSE events from a streaming response."""
    events = []
    for line in response.iter_lines():
        if line and line.startswith("data: "):
            event = parse_sse_line(line)
            if event:
                events.append(event)
                if event.get("type") == "done":
                    break
    return events


async def drain(channel) -> List[Dict]:
    """Read every event from an EventChannel as wire dicts."""
    return [event.to_wire() async for event in channel]


def event_types(events: List[Dict]) -> List[str]:
    return [e["type"] for e in events]


def chat_body(*texts: str) -> Dict:
    """Alternating user/assistant history ending on the latest user turn."""
    roles = ["user", "assistant"]
    return {
        "messages": [
            {"role": roles[i % 2], "content": text} for i, text in enumerate(texts)
        ]
    }


def tool_turn(name: str, args: Optional[Dict] = None, text: Optional[str] = None) -> List:
    """One model turn that (optionally) says something, then calls a tool."""
    turn: List[Any] = [text] if text else []
    turn.append(FakeToolCall(name, args or {}))
    return turn
