# services/chat/src/chat/app.py

import uuid
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from libs.budget_shared.context import AppContext
from libs.budget_shared.errors import (
    GENERIC_FAILURE_MESSAGE,
    BudgetAssistantError,
    service_error,
    validation_error,
)
from libs.budget_shared.health import format_health_response
from libs.budget_shared.logging import get_logger
from libs.budget_shared.middleware import CorrelationIdMiddleware, MetricsMiddleware
from libs.budget_shared.models import HealthResponse
from starlette.background import BackgroundTask

from .config import config
from .gateway import FinancialDataGateway
from .models import ChatRequest, StreamEvent
from .orchestrator import ConversationOrchestrator, OrchestrationRun
from .prompts.finance_terminology import SAMPLE_QUESTIONS
from .streaming import encode_sse

logger = get_logger(__name__)

VERSION = "0.3.0"

router = APIRouter(tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable Nginx buffering
}

# --- Health Check Endpoint ------------------------------------------------------


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    """Health check; degraded when the data service is not configured."""
    orchestrator: Optional[ConversationOrchestrator] = getattr(
        request.app.state, "orchestrator", None
    )
    details = {
        "service": "chat",
        "model": config.agent_model,
        "max_steps": config.max_steps,
        "data_service_configured": config.data_service_configured,
    }
    if orchestrator is not None:
        details.update(orchestrator.get_health_status())
    return format_health_response(
        details, version=VERSION, required=["data_service_configured"]
    )


@router.get("/sample-questions", response_model=List[str])
async def sample_questions():
    """Starter prompts offered by the chat UI."""
    return SAMPLE_QUESTIONS


# --- Dependencies ---------------------------------------------------------------


def get_orchestrator(request: Request) -> ConversationOrchestrator:
    orch = getattr(request.app.state, "orchestrator", None)
    if orch is None:
        raise HTTPException(status_code=503, detail="Orchestrator not initialized")
    return orch


def get_gateway(request: Request) -> FinancialDataGateway:
    """
    Shared gateway, created on first use.

    Missing data-service credentials fail the request here, before any
    output is streamed.
    """
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        try:
            gateway = FinancialDataGateway.from_config(config)
        except BudgetAssistantError as e:
            logger.error(f"Data service unavailable: {e}")
            raise service_error(GENERIC_FAILURE_MESSAGE)
        request.app.state.gateway = gateway
    return gateway


def get_app_context(request: Request) -> AppContext:
    return AppContext(
        tenant_id=config.tenant_id,
        correlation_id=getattr(request.state, "correlation_id", None),
        request_id=str(uuid.uuid4()),
    )


# --- Streaming Chat Endpoint ----------------------------------------------------


@router.post("/chat/stream")
@router.post("/api/chat")
async def chat_stream(
    req: ChatRequest,
    context: AppContext = Depends(get_app_context),
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
    gateway: FinancialDataGateway = Depends(get_gateway),
):
    """
    Stream the assistant's answer with tool-invocation events via SSE.

    The first event is awaited before the response starts so that a model
    failure on the first call becomes a plain error response instead of a
    partial stream. The conversation log is written by a background task
    after the body has been sent.
    """
    if not any(m.role == "user" for m in req.messages):
        raise validation_error("At least one user message is required", field="messages")

    run = orchestrator.start(req.messages, context, gateway)

    # Hold back step markers until the model has produced its first output
    leading: List[StreamEvent] = []
    event = await run.channel.next_event()
    while event is not None and event.type == "step":
        leading.append(event)
        event = await run.channel.next_event()
    if event is None or event.type == "error":
        run.cancel()
        raise service_error(GENERIC_FAILURE_MESSAGE)
    leading.append(event)

    return StreamingResponse(
        event_generator(run, leading),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
        background=BackgroundTask(orchestrator.persist_log, run.result, context, gateway),
    )


async def event_generator(run: OrchestrationRun, leading: List[StreamEvent]):
    """Drain the orchestration channel in write order, ending with ``done``."""
    try:
        for event in leading:
            yield encode_sse(event)
        async for event in run.channel:
            yield encode_sse(event)
        yield encode_sse(StreamEvent(type="done"))
    finally:
        # Client went away mid-stream: stop issuing model/tool calls
        run.cancel()


# --- Lifespan / Startup & Shutdown ------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    # STARTUP
    app.state.orchestrator = ConversationOrchestrator(settings=config)
    app.state.gateway = None
    if not config.data_service_configured:
        logger.warning(
            "SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not set; chat requests will fail"
        )

    yield  # application is running

    # SHUTDOWN
    if app.state.gateway is not None:
        await app.state.gateway.close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Construction Budget Assistant",
        version=VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(MetricsMiddleware, exclude_paths=["/health"])
    app.add_middleware(CorrelationIdMiddleware)
    # CORS policy
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID"],
    )

    app.include_router(router)
    return app


app = create_app()
