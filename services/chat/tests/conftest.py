# services/chat/tests/conftest.py
# Root level fixtures shared by all tests

import os
import sys
from pathlib import Path

import pytest

os.environ["TESTING"] = "true"
# Keep the developer's real credentials out of the test run
for _var in ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY", "OPENROUTER_API_KEY"):
    os.environ.pop(_var, None)


# Set up Python path for testing
def setup_python_path():
    """Set up Python path to allow imports from the service, shared libs and helpers."""
    tests_root = Path(__file__).parent.absolute()
    chat_root = tests_root.parent
    chat_src = chat_root / "src"
    project_root = chat_root.parent.parent.absolute()

    paths_to_add = [str(tests_root), str(chat_src), str(project_root)]
    for path in paths_to_add:
        if path not in sys.path:
            sys.path.insert(0, path)


setup_python_path()

# Import after path setup
from fake_model import FakeChatModel  # noqa: E402
from helpers import FakeGateway  # noqa: E402

# ============== Sample Data ==============

PROJECTS = [
    {"id": "p-001", "name": "Downtown Office Tower"},
    {"id": "p-002", "name": "Riverside Medical Center"},
    {"id": "p-003", "name": "Lakewood Elementary Renovation"},
    {"id": "p-004", "name": "Downtown Parking Garage"},
]


@pytest.fixture
def trade_rows():
    return [
        {
            "trade_name": "Masonry",
            "csi_code": "04",
            "package_count": 3,
            "original_budget": 1500000,
            "approved_changes": 25000.4,
            "revised_budget": 1525000.4,
            "committed": 1400000,
            "invoiced": 900000,
            "paid": 750000,
            "remaining": 125000.4,
        },
        {
            "trade_name": "Electrical",
            "csi_code": "26",
            "package_count": 2,
            "original_budget": 2200000,
            "approved_changes": 0,
            "revised_budget": 2200000,
            "committed": 2350000,
            "invoiced": 1200000,
            "paid": 1000000,
            "remaining": -150000,
        },
    ]


@pytest.fixture
def project_rows():
    return [
        {
            "project_name": "Downtown Office Tower",
            "project_code": "PRJ-001",
            "project_status": "active",
            "original_budget": 28500000,
            "approved_changes": 350000,
            "revised_budget": 28850000,
            "committed": 21000000,
            "invoiced": 14000000,
            "paid": 12500000,
            "remaining": 7850000,
            "pct_spent": 72.8,
        }
    ]


@pytest.fixture
def overspent_rows():
    return [
        {
            "project_name": "Downtown Office Tower",
            "trade_name": "Electrical",
            "package_name": "Electrical Rough-In",
            "revised_budget": 1200000,
            "committed": 1320000,
            "overspent_amount": 120000,
            "overspent_pct": 10.0,
        },
        {
            "project_name": "Riverside Medical Center",
            "trade_name": "HVAC",
            "package_name": "Air Handling Units",
            "revised_budget": 800000,
            "committed": 830500.5,
            "overspent_amount": 30500.5,
            "overspent_pct": 3.81,
        },
    ]


@pytest.fixture
def summary_rows():
    return [
        {
            "total_original_budget": 78700000,
            "total_approved_changes": 1200000,
            "total_revised_budget": 79900000,
            "total_committed": 60000000,
            "total_invoiced": 41000000,
            "total_paid": 38000000,
            "total_remaining": 19900000,
            "pct_committed": 75.1,
            "pct_invoiced": 51.3,
            "pct_paid": 47.6,
            "open_packages": 42,
            "overspent_packages": 2,
        }
    ]


@pytest.fixture
def package_rows():
    return [
        {
            "project_name": "Downtown Office Tower",
            "package_name": "Brick Veneer",
            "description": "Exterior brick veneer, levels 1-4",
            "original_budget": 640000,
            "approved_changes": 15000,
            "revised_budget": 655000,
            "committed": 600000,
            "invoiced": 410000,
            "paid": 380000,
            "remaining": 55000,
            "status": "in_progress",
        }
    ]


# ============== Common Fixtures ==============


@pytest.fixture
def fake_gateway(trade_rows, project_rows, overspent_rows, summary_rows, package_rows):
    """Gateway double preloaded with one result set per query."""
    return FakeGateway(
        projects=PROJECTS,
        rows={
            "budget_by_trade": trade_rows,
            "budget_by_project": project_rows,
            "overspent_packages": overspent_rows,
            "financial_summary": summary_rows,
            "packages_by_trade": package_rows,
        },
    )


@pytest.fixture
def fake_model():
    """Scripted streaming model standing in for the provider."""
    return FakeChatModel()


@pytest.fixture
def test_app_context():
    """Create test AppContext."""
    from libs.budget_shared.context import AppContext

    return AppContext(
        tenant_id="org-test",
        correlation_id="test-corr-789",
        request_id="test-request-123",
    )


@pytest.fixture
def chat_settings():
    """Settings with deterministic values, independent of the environment."""
    from chat.config import ChatConfig

    return ChatConfig(
        _env_file=None,
        openrouter_api_key="test-key",
        agent_model="test/model",
        max_steps=5,
        tenant_id="org-test",
    )
