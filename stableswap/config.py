import os

from decimal import Decimal
from pathlib import Path
from typing import Any, List, Literal, Union

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.recovery.errors import ConfigurationError


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Ensure we pick up legacy environment variable aliases."""

        super().model_post_init(__context)

        if not self.solana_private_key:
            fallback = os.getenv("WALLET_PRIVATE_KEY") or os.getenv("SOLANA_SECRET_KEY")
            if fallback:
                object.__setattr__(self, "solana_private_key", fallback.strip())

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Wallet
    solana_private_key: str = Field(
        default="",
        description="Base58 encoded 64-byte Solana secret key used to sign swaps",
        validation_alias=AliasChoices("solana_private_key", "private_key", "SOLANA_PRIVATE_KEY", "PRIVATE_KEY"),
    )

    # Jupiter API
    jup_api_key: str = Field(default="", description="Jupiter API key (x-api-key header)")
    jup_api_url: str = Field(
        default="https://api.jup.ag/swap/v1",
        description="Base URL for the Jupiter quote and swap endpoints",
    )

    # Solana RPC
    rpc_url: str = Field(
        default="https://api.mainnet-beta.solana.com",
        description="Solana JSON-RPC endpoint",
        validation_alias=AliasChoices("rpc_url", "solana_rpc_url", "RPC_URL", "SOLANA_RPC_URL"),
    )
    proxy_url: str = Field(default="", description="Optional HTTP(S) proxy for Jupiter and RPC traffic")
    request_timeout_seconds: float = Field(default=30.0, description="HTTP request timeout")

    # Swap settings
    swap_amount: Decimal = Field(
        default=Decimal("0.001"),
        description="Fixed amount (human units of USDC/USDT) moved by every swap",
    )
    swap_delay_ms: int = Field(
        default=3000,
        ge=0,
        description="Delay between swaps; 3s keeps a 200 swap batch inside the 100 tx / 5 min API limit",
    )
    slippage_bps: int = Field(default=50, description="Slippage tolerance in basis points (50 = 0.5%)")
    priority_fee_lamports: int = Field(
        default=1000,
        description="Fixed priority fee in lamports (0 = let Jupiter pick automatically)",
        validation_alias=AliasChoices("priority_fee_lamports", "priority_fee", "PRIORITY_FEE"),
    )

    # Batch settings
    batch_count: int = Field(default=200, description="Default number of successful swaps per batch")
    max_batch_count: int = Field(default=1000, ge=1, description="Upper clamp for operator supplied batch sizes")
    max_retries: int = Field(default=3, description="Additional attempts per swap slot after the first one fails")

    # Confirmation
    confirmation_policy: Literal["optimistic", "pessimistic"] = Field(
        default="optimistic",
        description="How to treat a confirmation query that errors: optimistic = success, pessimistic = retry",
    )
    confirm_timeout_seconds: float = Field(default=60.0, description="Max seconds to wait for confirmation")

    @property
    def has_wallet_key(self) -> bool:
        return bool(self.solana_private_key)

    @property
    def has_jup_api_key(self) -> bool:
        return bool(self.jup_api_key)

    @property
    def priority_fee(self) -> Union[int, str]:
        """Priority fee value as the Jupiter swap endpoint expects it."""
        return self.priority_fee_lamports if self.priority_fee_lamports > 0 else "auto"

    @property
    def swap_delay_seconds(self) -> float:
        return self.swap_delay_ms / 1000

    def clamp_batch_count(self, count: int | None) -> int:
        """Clamp an operator supplied batch size to 1..max_batch_count."""
        if not count:
            count = self.batch_count
        return min(max(count, 1), self.max_batch_count)

    def validate_for_trading(self) -> List[str]:
        """Return configuration problems that must be fixed before swapping."""
        errors: List[str] = []

        if not self.has_wallet_key:
            errors.append("Missing SOLANA_PRIVATE_KEY or PRIVATE_KEY in .env")
        if not self.has_jup_api_key:
            errors.append("Missing JUP_API_KEY in .env")
        if self.swap_amount <= 0:
            errors.append("SWAP_AMOUNT must be positive")
        if not 0 < self.slippage_bps <= 10_000:
            errors.append("SLIPPAGE_BPS must be between 1 and 10000")
        if self.max_retries < 0:
            errors.append("MAX_RETRIES must not be negative")
        if self.priority_fee_lamports < 0:
            errors.append("PRIORITY_FEE must not be negative")

        return errors

    def require_trading_ready(self) -> None:
        errors = self.validate_for_trading()
        if errors:
            raise ConfigurationError("; ".join(errors), problems=errors)


# Global settings instance
settings = Settings()
