import os

from pathlib import Path
from typing import Any, List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Pick up the gateway key from the legacy edge-function variable names."""

        super().model_post_init(__context)

        if not self.llm_api_key:
            fallback = os.getenv("LOVABLE_API_KEY") or os.getenv("AI_GATEWAY_KEY")
            if fallback:
                object.__setattr__(self, "llm_api_key", fallback)

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")
    service_name: str = Field(default="bubbles-engine", description="Service name stamped on every log line")
    log_json: Optional[bool] = Field(default=None, description="Force JSON (true) or console (false) logs; default is console only at DEBUG")

    # W-Chain data sources
    explorer_base_url: str = Field(
        default="https://scan.w-chain.com/api/v2",
        description="Blockscout REST API base URL (primary explorer)",
    )
    graphql_url: str = Field(
        default="https://scan.w-chain.com/api/graphql",
        description="Blockscout GraphQL endpoint (secondary query API)",
    )
    rpc_endpoints: List[str] = Field(
        default_factory=lambda: [
            "https://mainnet-rpc.w-chain.com",
            "https://rpc.w-chain.com",
        ],
        description="Ordered JSON-RPC endpoint candidates",
    )
    oracle_base_url: str = Field(
        default="https://oracle.w-chain.com/api",
        description="W-Chain price oracle base URL",
    )
    wave_base_url: str = Field(
        default="https://wave.w-chain.com/api",
        description="WAVE DEX API base URL",
    )
    coingecko_base_url: str = Field(
        default="https://api.coingecko.com/api/v3",
        description="Coingecko API base URL",
    )
    coingecko_api_key: str = Field(default="", description="Coingecko demo API key")
    coingecko_coin_id: str = Field(default="wadzcoin", description="Coingecko id of WCO")

    # Stores (Supabase PostgREST)
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_service_role_key: str = Field(
        default="",
        description="Supabase service role key",
        validation_alias=AliasChoices("supabase_service_role_key", "SUPABASE_SERVICE_ROLE_KEY", "supabase_key"),
    )

    # Cache Settings
    cache_ttl_seconds: int = Field(default=300, description="Default tool cache TTL in seconds")
    max_cache_size: int = Field(default=1000, description="Maximum tool cache size")

    # LLM Provider Settings
    llm_provider: str = Field(default="gateway", description="Default LLM provider")
    llm_gateway_url: str = Field(
        default="https://ai.gateway.lovable.dev/v1",
        description="OpenAI-compatible chat completions gateway",
    )
    llm_api_key: str = Field(default="", description="Gateway API key")
    llm_fast_model: str = Field(default="google/gemini-2.5-flash", description="Default low-latency model")
    llm_reasoning_model: str = Field(default="google/gemini-2.5-pro", description="Model for reasoning-heavy turns")
    llm_max_tokens: int = Field(default=2000, description="Maximum tokens for LLM response")
    llm_temperature: float = Field(default=0.4, description="LLM temperature setting")
    llm_timeout_seconds: float = Field(default=60.0, description="Timeout for a single model call")

    # Orchestration
    max_tool_rounds: int = Field(default=3, ge=1, description="Maximum model rounds per user turn")
    history_turns: int = Field(default=12, ge=0, description="Prior messages replayed into context")
    tool_result_char_limit: int = Field(default=12000, ge=256, description="Max characters of one tool result fed back")
    tool_timeout_seconds: float = Field(default=30.0, description="Timeout for a single tool call")
    reasoning_length_threshold: int = Field(
        default=280,
        description="Message length above which the reasoning model is preferred",
    )
    enable_intent_shortcuts: bool = Field(default=True, description="Answer simple holder questions without a model call")

    # Tiered resolver
    secondary_page_limit: int = Field(default=5000, description="Addresses requested from the GraphQL tier")
    scan_page_size: int = Field(default=50, description="Items per explorer page in the paginated scan")
    scan_page_delay_seconds: float = Field(default=0.05, description="Delay between explorer pages")
    scan_max_pages: int = Field(default=100, description="Page ceiling for the paginated scan")
    scan_max_records: int = Field(default=5000, description="Record ceiling for the paginated scan")
    scan_rate_limit_delay_seconds: float = Field(default=2.0, description="Wait after an explorer 429")
    scan_rate_limit_retries: int = Field(default=3, description="Retries of a rate-limited page")
    backfill_flagship_wallets: bool = Field(default=True, description="Fetch flagship wallets missing from holder listings")
    http_timeout_seconds: float = Field(default=20.0, description="Timeout for explorer/oracle calls")

    # Endpoint selection / backoff
    endpoint_cache_ttl_seconds: int = Field(default=300, description="How long a verified RPC endpoint is reused")
    endpoint_probe_timeout_seconds: float = Field(default=5.0, description="Timeout of one liveness probe")
    rpc_retry_attempts: int = Field(default=3, ge=1, description="Attempts for RPC reads")
    rpc_retry_initial_delay_seconds: float = Field(default=1.0, description="First backoff delay for RPC reads")

    @property
    def has_llm_key(self) -> bool:
        return bool(self.llm_api_key)

    @property
    def has_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key)


# Global settings instance
settings = Settings()
