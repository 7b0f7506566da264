"""Alternating USDC/USDT swap runner built on Jupiter and Solana RPC."""

__version__ = "0.1.0"
