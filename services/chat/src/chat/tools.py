"""
Tool registry: the named operations the model may call mid-conversation.

Each tool binds validated arguments to exactly one gateway query and shapes
the raw rows into a model-friendly object with display-formatted currency.
Dispatch is a fixed name -> (argument model, handler) mapping; arguments are
validated before any handler runs.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from libs.budget_shared.context import AppContext
from libs.budget_shared.errors import GatewayError, ToolArgumentError
from libs.budget_shared.logging import get_logger
from libs.budget_shared.metrics import Metrics
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .formatting import format_currency, format_percent, to_number
from .gateway import FinancialDataGateway, Row
from .models import ToolResult

logger = get_logger(__name__)

ALL_PROJECTS = "All Projects"

KNOWN_TRADES = [
    "Concrete",
    "Masonry",
    "Metals",
    "Electrical",
    "Plumbing",
    "HVAC",
    "Finishes",
    "Roofing",
    "Fire Protection",
    "Elevators",
]

MONEY_FIELDS = (
    "original_budget",
    "approved_changes",
    "revised_budget",
    "committed",
    "invoiced",
    "paid",
    "remaining",
)

## ARGUMENT SCHEMAS ##


class ToolArgs(BaseModel):
    """Base for tool arguments: no unknown keys, no type coercion."""

    model_config = ConfigDict(extra="forbid", strict=True)


class ProjectFilterArgs(ToolArgs):
    project_name: Optional[str] = Field(
        None,
        description="Optional project name to filter by (e.g. 'Downtown Office Tower'). "
        "Leave empty for all projects.",
    )

    @field_validator("project_name")
    @classmethod
    def blank_is_absent(cls, v):
        if v is not None and not v.strip():
            return None
        return v


class NoArgs(ToolArgs):
    pass


class PackagesByTradeArgs(ProjectFilterArgs):
    trade_name: str = Field(
        ...,
        min_length=1,
        description="The trade name to look up (e.g. 'Masonry', 'Electrical', 'HVAC', 'Concrete')",
    )


## HELPERS ##


async def resolve_project_id(
    gateway: FinancialDataGateway, tenant_id: str, project_name: Optional[str]
) -> Optional[str]:
    """
    Map a free-text project name to an id, or None for "no filter".

    An unmatched name silently falls back to all projects.
    """
    if not project_name:
        return None
    return await gateway.find_project_id(tenant_id, project_name)


def _money(row: Row) -> Dict[str, str]:
    return {field: format_currency(row.get(field)) for field in MONEY_FIELDS}


def _filter_label(args: ProjectFilterArgs) -> str:
    return args.project_name or ALL_PROJECTS


def _check_rows(rows: Any) -> List[Row]:
    """Rows must be a list of JSON objects; anything else is malformed data."""
    if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
        raise ValueError(f"expected a list of rows, got {str(rows)[:80]}")
    return rows


## HANDLERS ##


async def get_budget_by_trade(
    gateway: FinancialDataGateway, ctx: AppContext, args: ProjectFilterArgs
) -> Dict[str, Any]:
    project_id = await resolve_project_id(gateway, ctx.tenant_id, args.project_name)
    rows = _check_rows(await gateway.budget_by_trade(ctx.tenant_id, project_id))
    if not rows:
        return {"message": "No data found."}

    return {
        "trades": [
            {
                "trade": row.get("trade_name"),
                "csi_code": row.get("csi_code"),
                "packages": row.get("package_count"),
                **_money(row),
                "remaining_raw": to_number(row.get("remaining")),
            }
            for row in rows
        ],
        "filter": _filter_label(args),
    }


async def get_budget_by_project(
    gateway: FinancialDataGateway, ctx: AppContext, args: NoArgs
) -> Dict[str, Any]:
    rows = _check_rows(await gateway.budget_by_project(ctx.tenant_id))
    if not rows:
        return {"message": "No projects found."}

    return {
        "projects": [
            {
                "name": row.get("project_name"),
                "code": row.get("project_code"),
                "status": row.get("project_status"),
                **_money(row),
                "pct_committed": format_percent(row.get("pct_spent")),
            }
            for row in rows
        ]
    }


async def get_overspent_packages(
    gateway: FinancialDataGateway, ctx: AppContext, args: ProjectFilterArgs
) -> Dict[str, Any]:
    project_id = await resolve_project_id(gateway, ctx.tenant_id, args.project_name)
    rows = _check_rows(await gateway.overspent_packages(ctx.tenant_id, project_id))
    if not rows:
        return {
            "message": "No overspent packages found. All packages are within budget."
        }

    total = sum(to_number(row.get("overspent_amount")) for row in rows)
    return {
        "overspent_packages": [
            {
                "project": row.get("project_name"),
                "trade": row.get("trade_name"),
                "package": row.get("package_name"),
                "revised_budget": format_currency(row.get("revised_budget")),
                "committed": format_currency(row.get("committed")),
                "overspent_by": format_currency(row.get("overspent_amount")),
                "overspent_pct": format_percent(row.get("overspent_pct")),
            }
            for row in rows
        ],
        "total_overspent": format_currency(total),
        "count": len(rows),
        "filter": _filter_label(args),
    }


async def get_financial_summary(
    gateway: FinancialDataGateway, ctx: AppContext, args: ProjectFilterArgs
) -> Dict[str, Any]:
    project_id = await resolve_project_id(gateway, ctx.tenant_id, args.project_name)
    rows = _check_rows(await gateway.financial_summary(ctx.tenant_id, project_id))
    if not rows:
        return {"message": "No data found."}

    row = rows[0]
    return {
        "summary": {
            **{field: format_currency(row.get(f"total_{field}")) for field in MONEY_FIELDS},
            "pct_committed": format_percent(row.get("pct_committed")),
            "pct_invoiced": format_percent(row.get("pct_invoiced")),
            "pct_paid": format_percent(row.get("pct_paid")),
            "open_packages": row.get("open_packages"),
            "overspent_packages": row.get("overspent_packages"),
        },
        "filter": _filter_label(args),
    }


async def get_packages_by_trade(
    gateway: FinancialDataGateway, ctx: AppContext, args: PackagesByTradeArgs
) -> Dict[str, Any]:
    project_id = await resolve_project_id(gateway, ctx.tenant_id, args.project_name)
    rows = _check_rows(
        await gateway.packages_by_trade(ctx.tenant_id, args.trade_name, project_id)
    )
    if not rows:
        return {
            "message": f'No packages found for trade "{args.trade_name}". '
            f"Check spelling or try: {', '.join(KNOWN_TRADES)}."
        }

    return {
        "trade": args.trade_name,
        "packages": [
            {
                "project": row.get("project_name"),
                "package": row.get("package_name"),
                "description": row.get("description"),
                **_money(row),
                "status": row.get("status"),
            }
            for row in rows
        ],
        "total_packages": len(rows),
        "filter": _filter_label(args),
    }


## REGISTRY ##

Handler = Callable[[FinancialDataGateway, AppContext, Any], Awaitable[Dict[str, Any]]]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    args_model: Type[ToolArgs]
    handler: Handler
    friendly_name: str

    def openai_schema(self) -> Dict[str, Any]:
        """OpenAI function spec generated from the argument model."""
        schema = self.args_model.model_json_schema()
        parameters = {
            "type": "object",
            "properties": schema.get("properties", {}),
            "required": schema.get("required", []),
            "additionalProperties": False,
        }
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            },
        }


TOOLS: Dict[str, ToolSpec] = {
    spec.name: spec
    for spec in (
        ToolSpec(
            name="get_budget_by_trade",
            description="Get remaining budget breakdown by trade (e.g. masonry, electrical). "
            "Shows original budget, changes, committed, invoiced, paid, and remaining amounts. "
            "Use this when the user asks about money remaining for a specific trade or all trades.",
            args_model=ProjectFilterArgs,
            handler=get_budget_by_trade,
            friendly_name="Checking budget by trade",
        ),
        ToolSpec(
            name="get_budget_by_project",
            description="Get remaining budget summary for each project. Shows total budget, "
            "committed, invoiced, paid, remaining, and percent spent. "
            "Use when the user asks about project-level finances.",
            args_model=NoArgs,
            handler=get_budget_by_project,
            friendly_name="Checking budget by project",
        ),
        ToolSpec(
            name="get_overspent_packages",
            description="Find all packages where committed amount exceeds the revised budget "
            "(overspent). Shows the overspent amount and percentage. Use when the user asks "
            "about overspending, over-budget items, or cost overruns.",
            args_model=ProjectFilterArgs,
            handler=get_overspent_packages,
            friendly_name="Looking for overspent packages",
        ),
        ToolSpec(
            name="get_financial_summary",
            description="Get a high-level financial summary showing committed vs invoiced vs "
            "paid vs remaining. Use when the user asks for an overview, total budget status, "
            "or committed vs spent vs remaining.",
            args_model=ProjectFilterArgs,
            handler=get_financial_summary,
            friendly_name="Building financial summary",
        ),
        ToolSpec(
            name="get_packages_by_trade",
            description="Get detailed list of all packages for a specific trade. Shows each "
            "package's budget, committed, invoiced, paid, remaining, and status. Use when the "
            "user wants to drill down into a specific trade like masonry or electrical.",
            args_model=PackagesByTradeArgs,
            handler=get_packages_by_trade,
            friendly_name="Drilling into trade packages",
        ),
    )
}


def tool_schemas() -> List[Dict[str, Any]]:
    """JSON schemas describing the tools exposed to the model."""
    return [spec.openai_schema() for spec in TOOLS.values()]


def get_tool_friendly_name(tool_name: str) -> str:
    """Convert tool names to user-friendly messages."""
    spec = TOOLS.get(tool_name)
    return spec.friendly_name if spec else f"Using {tool_name}"


def parse_arguments(name: str, raw_arguments: Optional[str]) -> ToolArgs:
    """
    Look up a tool and validate its JSON arguments.

    Raises:
        ToolArgumentError: unknown tool, malformed JSON or schema mismatch
    """
    spec = TOOLS.get(name)
    if spec is None:
        raise ToolArgumentError(
            name, f"Unknown tool. Available tools: {', '.join(TOOLS)}"
        )

    try:
        data = json.loads(raw_arguments or "{}")
    except json.JSONDecodeError as e:
        raise ToolArgumentError(name, f"Arguments are not valid JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise ToolArgumentError(name, "Arguments must be a JSON object")

    try:
        return spec.args_model.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
            for err in e.errors()
        )
        raise ToolArgumentError(name, problems) from e


async def execute_tool(
    gateway: FinancialDataGateway,
    ctx: AppContext,
    tool_call_id: str,
    name: str,
    raw_arguments: Optional[str],
) -> ToolResult:
    """
    Validate and run one tool call. Never raises for tool-level failures:
    argument and data-service errors come back as ``{"error": message}``.
    """
    start = time.perf_counter()
    try:
        args = parse_arguments(name, raw_arguments)
        with Metrics.timer("tool_duration_ms", {"tool": name}):
            payload = await TOOLS[name].handler(gateway, ctx, args)
    except ToolArgumentError as e:
        logger.warning(f"Rejected tool call {tool_call_id}: {e}")
        payload = {"error": str(e)}
    except GatewayError as e:
        logger.warning(f"Tool {name} failed: {e.message}")
        payload = {"error": e.message}
    except ValueError as e:
        # Rows the formatter cannot render
        logger.error(f"Tool {name} got malformed data: {e}")
        payload = {"error": f"Malformed data from the data service: {e}"}

    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(f"Tool {name} finished in {duration_ms:.1f}ms", extra=ctx.to_dict())
    return ToolResult(
        tool_call_id=tool_call_id, name=name, payload=payload, duration_ms=duration_ms
    )
