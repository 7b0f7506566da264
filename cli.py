#!/usr/bin/env python3
"""CLI for running single or batched USDC <-> USDT swaps"""

import argparse
import asyncio
import sys
from typing import Optional

from stableswap.config import settings
from stableswap.core.execution.solana_executor import SolanaExecutorError, get_solana_executor
from stableswap.core.recovery.errors import ConfigurationError, RecoverableError
from stableswap.core.swap.batch import BatchSwapEngine
from stableswap.core.swap.constants import lamports_to_sol
from stableswap.core.swap.executor import SwapExecutor, build_swap_executor
from stableswap.core.swap.models import SwapDirection
from stableswap.logging_config import setup_logging
from stableswap.providers.jupiter import get_jupiter_swap_provider


def print_banner():
    print("=" * 50)
    print("🔄 STABLESWAP - Solana USDC/USDT Swap Tool")
    print("=" * 50)


def print_configuration(count: int, delay_ms: int):
    priority_fee = settings.priority_fee
    priority_display = f"{priority_fee} lamports" if priority_fee != "auto" else "auto"

    print("\n📋 Configuration:")
    print(f"   - Target successful swaps: {count}")
    print(f"   - Delay: {delay_ms}ms")
    print(f"   - Amount per swap: {settings.swap_amount} USDC/USDT")
    print(f"   - Priority fee: {priority_display}")
    print(f"   - Max retries: {settings.max_retries}")
    print(f"   - Slippage: {settings.slippage_bps / 100}%")
    print(f"   - Confirmation policy: {settings.confirmation_policy}")


async def print_balance(executor: SwapExecutor):
    try:
        lamports = await get_solana_executor().get_balance(executor.signer.public_key)
    except SolanaExecutorError as e:
        print(f"⚠️  Could not fetch SOL balance: {e}")
        return
    print(f"💰 SOL Balance: {lamports_to_sol(lamports):.4f} SOL")


def _init_executor() -> Optional[SwapExecutor]:
    try:
        executor = build_swap_executor()
    except ConfigurationError as e:
        print("\n❌ Configuration errors:")
        for problem in e.problems:
            print(f"   - {problem}")
        print("\nPlease check your .env file")
        return None

    print(f"📍 Wallet: {executor.signer.masked_public_key}")
    print(f"🌐 RPC: {settings.rpc_url}")
    if settings.proxy_url:
        print(f"🔒 Using proxy: {settings.proxy_url}")
    return executor


async def cli_single(direction: SwapDirection) -> int:
    executor = _init_executor()
    if executor is None:
        return 1

    await print_balance(executor)
    print(f"\n📌 Mode: Single {direction.value}")
    print(f"💰 Amount: {settings.swap_amount}")

    try:
        result = await executor.execute_swap(direction)
    except RecoverableError as e:
        print(f"\n❌ Swap failed: {e}")
        return 1

    if result.signature:
        print(f"🔗 Signature: {result.signature}")
    print("\n🎉 Done!")
    return 0


async def cli_batch(count: Optional[int], delay_ms: Optional[int], assume_yes: bool) -> int:
    executor = _init_executor()
    if executor is None:
        return 1

    await print_balance(executor)

    count = settings.clamp_batch_count(count)
    delay_ms = settings.swap_delay_ms if delay_ms is None else max(delay_ms, 0)
    print_configuration(count, delay_ms)

    if not assume_yes:
        answer = input("\n🚀 Start batch swaps? (y/N): ").strip().lower()
        if answer != "y":
            print("❌ Cancelled by user")
            return 0

    engine = BatchSwapEngine(executor, price_provider=get_jupiter_swap_provider())
    try:
        await engine.run_batch(count, delay_ms / 1000)
    except ConfigurationError as e:
        print(f"\n❌ Error: {e}")
        return 1

    print("\n📊 Final balance:")
    await print_balance(executor)
    print("\n🎉 All done!")
    return 0


async def cli_balance() -> int:
    executor = _init_executor()
    if executor is None:
        return 1
    await print_balance(executor)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Alternating USDC/USDT swaps via Jupiter")
    subparsers = parser.add_subparsers(dest="command")

    single_parser = subparsers.add_parser("single", help="Execute one swap")
    single_parser.add_argument(
        "direction",
        type=SwapDirection.parse,
        help="USDC_TO_USDT or USDT_TO_USDC",
    )

    batch_parser = subparsers.add_parser("batch", help="Run alternating swaps until a success target is met")
    batch_parser.add_argument("--count", type=int, help=f"Successful swaps to reach (default: {settings.batch_count})")
    batch_parser.add_argument("--delay-ms", type=int, help=f"Delay between swaps (default: {settings.swap_delay_ms})")
    batch_parser.add_argument("--yes", "-y", action="store_true", help="Skip the confirmation prompt")

    subparsers.add_parser("balance", help="Show the wallet's SOL balance")

    return parser


async def main(argv: Optional[list] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    setup_logging(console=True)
    print_banner()

    try:
        if args.command == "single":
            return await cli_single(args.direction)
        if args.command == "batch":
            return await cli_batch(args.count, args.delay_ms, args.yes)
        if args.command == "balance":
            return await cli_balance()
    finally:
        await get_solana_executor().close()

    parser.print_help()
    return 1


def run():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
