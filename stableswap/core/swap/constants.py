"""Token metadata for the USDC/USDT swap pair on Solana mainnet."""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal
from typing import Dict

NATIVE_SOL_MINT = "So11111111111111111111111111111111111111112"
LAMPORTS_PER_SOL = 1_000_000_000

TOKENS: Dict[str, str] = {
    "USDC": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
    "USDT": "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB",
}

DECIMALS: Dict[str, int] = {
    "USDC": 6,
    "USDT": 6,
}

EXPLORER_TX_URL = "https://solscan.io/tx/{signature}"


def token_decimals(token: str) -> int:
    try:
        return DECIMALS[token]
    except KeyError:
        raise ValueError(f"Unknown token: {token}") from None


def to_base_units(amount: Decimal, token: str) -> int:
    """Convert a human amount to the token's smallest unit, rounding down."""
    scaled = Decimal(amount) * (Decimal(10) ** token_decimals(token))
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def format_amount(amount: int, token: str) -> str:
    decimals = token_decimals(token)
    value = Decimal(amount) / (Decimal(10) ** decimals)
    return f"{value:.{decimals}f} {token}"


def lamports_to_sol(lamports: int) -> Decimal:
    return Decimal(lamports) / Decimal(LAMPORTS_PER_SOL)


def explorer_url(signature: str) -> str:
    return EXPLORER_TX_URL.format(signature=signature)
