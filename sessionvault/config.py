import os

from pathlib import Path
from typing import Any, List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]

# Jupiter aggregator v6, the only program session keys were issued for originally
JUPITER_PROGRAM_ID = "JUP4Fb2cqiRUcaTHdrPC8h2gNsA2ETXiPDD33WcGuJB"

LAMPORTS_PER_SOL = 1_000_000_000


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Pick up the legacy secret name used by older deployments."""

        super().model_post_init(__context)

        if not self.encryption_secret:
            fallback = os.getenv("SESSION_KEY_SALT_SECRET")
            if fallback:
                object.__setattr__(self, "encryption_secret", fallback)

    log_level: str = Field(default="INFO", description="Logging level")

    # Key custody
    master_encryption_key: str = Field(
        default="",
        description="Server-held master secret that session key encryption keys are derived from",
        validation_alias=AliasChoices(
            "master_encryption_key", "MASTER_ENCRYPTION_KEY", "SESSIONVAULT_MASTER_KEY"
        ),
    )
    encryption_secret: str = Field(
        default="",
        description="Secret mixed into the per-principal salt",
        validation_alias=AliasChoices("encryption_secret", "ENCRYPTION_SECRET"),
    )
    scrypt_opslimit: int = Field(
        default=524288,
        ge=32768,
        description="scrypt CPU cost used when deriving per-principal keys",
    )
    scrypt_memlimit: int = Field(
        default=16777216,
        ge=16777216,
        description="scrypt memory cost in bytes used when deriving per-principal keys",
    )

    # Storage
    session_store_backend: str = Field(
        default="memory",
        description="Where requests and sessions live: 'memory' or 'convex'",
    )
    convex_url: str = Field(default="", description="Convex deployment URL")
    convex_deploy_key: str = Field(default="", description="Convex deploy key")
    convex_timeout_seconds: float = Field(default=30.0, description="Convex request timeout")

    # Authorization flow
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Base URL of the page where users approve session key requests",
    )
    default_valid_days: int = Field(default=7, ge=1, description="Default request/session lifetime")
    default_max_transactions: int = Field(default=100, ge=0, description="Default transaction ceiling")
    default_max_amount_sol: float = Field(default=1.0, ge=0, description="Default per-transaction cap in SOL")
    default_allowed_programs: List[str] = Field(
        default_factory=lambda: [JUPITER_PROGRAM_ID],
        description="Program allowlist applied when a request does not name one",
    )

    @property
    def has_master_key(self) -> bool:
        return bool(self.master_encryption_key)

    @property
    def uses_convex(self) -> bool:
        return self.session_store_backend.lower() == "convex"


# Global settings instance
settings = Settings()
