"""Chat service configuration."""

import json
from typing import Annotated, List, Optional

from libs.budget_shared.config import BaseServiceConfig
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import NoDecode

DEMO_ORG_ID = "a1b2c3d4-0000-0000-0000-000000000001"


class ChatConfig(BaseServiceConfig):
    """Chat service specific configuration."""

    port: int = Field(8001, description="HTTP port")

    # Model provider (OpenAI-compatible router)
    openrouter_api_key: str = Field("", description="Model provider API key")
    openrouter_base_url: str = Field("https://openrouter.ai/api/v1")
    agent_model: str = Field("anthropic/claude-sonnet-4")
    max_steps: int = Field(
        5,
        ge=1,
        validation_alias=AliasChoices("agent_max_steps", "max_steps"),
        description="Maximum model round-trips per conversation turn",
    )
    temperature: float = Field(
        0.2, validation_alias=AliasChoices("agent_temperature", "temperature")
    )

    # Financial data service (Supabase). Required only by gateway code paths.
    supabase_url: Optional[str] = Field(None)
    supabase_service_role_key: Optional[str] = Field(None)
    gateway_timeout: float = Field(30.0, description="Data service timeout (s)")
    chat_log_table: str = Field("chat_logs")

    # Stand-in for an authenticated session
    tenant_id: str = Field(
        DEMO_ORG_ID, validation_alias=AliasChoices("demo_org_id", "tenant_id")
    )
    company_name: str = Field("Apex Construction Group")

    # CORS settings
    allowed_origins: Annotated[List[str], NoDecode] = Field(
        default=["http://localhost:3000", "*"],
        validation_alias=AliasChoices("chat_allowed_origins", "allowed_origins"),
    )

    # Prompt template settings
    system_prompt_template: str = Field(
        "system_prompt.j2",
        validation_alias=AliasChoices(
            "chat_system_prompt_template", "system_prompt_template"
        ),
    )
    include_terminology: bool = Field(
        True,
        validation_alias=AliasChoices(
            "chat_include_terminology", "include_terminology"
        ),
    )

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_origins(cls, v):
        if isinstance(v, str):
            # JSON-like string from env var
            if v.startswith("["):
                return json.loads(v)
            # Comma-separated string
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @property
    def data_service_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key)


# Singleton instance
config = ChatConfig()
