"""
CLI Interface for DealerStructure.
Provides command-line access to the options structure engine.
"""

import asyncio
import argparse
import json
import sys
from typing import Optional
from loguru import logger
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

from dealerstructure.config import get_settings
from dealerstructure.engine import StructureEngine
from dealerstructure.models import OptionsStatus, StructureResult
from dealerstructure.utils.logging import setup_logging


console = Console()


def _configure_cli_logging(verbose: bool):
    """Quiet stderr by default; --verbose switches to the full application sinks."""
    if verbose:
        setup_logging(get_settings().model_copy(update={"log_level": "DEBUG"}))
        return

    logger.remove()
    logger.enable("dealerstructure")
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
        level="WARNING"
    )


def _fmt(value: Optional[float], prefix: str = "$", digits: int = 2) -> str:
    return f"{prefix}{value:,.{digits}f}" if value is not None else "N/A"


def print_structure(result: StructureResult, strikes_window: int = 12):
    """Print a structure result as panels and an OI ladder."""
    status_color = "green" if result.options_status == OptionsStatus.OK else "yellow"

    console.print(Panel(f"""
    Ticker: {result.ticker}    Expiration: {result.expiration}    Session: {result.session.value}
    Price: {_fmt(result.underlying_price)} ({result.change_percent:+.2f}%)
    Status: [{status_color}]{result.options_status.value}[/{status_color}]    Grade: {result.source_grade.value}    Cached: {result.cached}

    Max Pain: {_fmt(result.max_pain)}
    Net GEX: {_fmt(result.net_gex, digits=0)} ({result.gex_confidence.value})
    Gamma Flip: {_fmt(result.gamma_flip_level)} [{result.gamma_flip_type.value}]
    Call Wall: {_fmt(result.levels.call_wall)}    Put Floor: {_fmt(result.levels.put_floor)}
    ATM IV: {_fmt(result.atm_iv, prefix='', digits=1)}    P/C Ratio: {_fmt(result.put_call_ratio, prefix='')}
    Gamma Squeeze: {result.is_gamma_squeeze}    Squeeze Risk: {result.squeeze_risk} ({result.squeeze_score})
    """, title="Options Structure", border_style=status_color))

    if result.strikes:
        table = Table(title="Open Interest Ladder", show_header=True, header_style="bold magenta")
        table.add_column("Strike", justify="right", style="cyan")
        table.add_column("Calls OI", justify="right")
        table.add_column("Puts OI", justify="right")

        price = result.underlying_price or 0
        nearest = min(range(len(result.strikes)), key=lambda i: abs(result.strikes[i] - price))
        lo = max(0, nearest - strikes_window // 2)
        for i in range(lo, min(len(result.strikes), lo + strikes_window)):
            calls, puts = result.calls_oi[i], result.puts_oi[i]
            table.add_row(
                f"{result.strikes[i]:,.2f}",
                f"{calls:,.0f}" if calls is not None else "[red]null[/red]",
                f"{puts:,.0f}" if puts is not None else "[red]null[/red]",
            )
        console.print(table)

    diag = result.diagnostics
    console.print(
        f"[dim]pages={diag.pages_fetched} contracts={diag.contracts_fetched} "
        f"attempts={diag.attempts} latency={diag.latency_ms:.0f}ms "
        f"coverage={diag.gamma_coverage:.0%} notes={'; '.join(diag.notes) or '-'}[/dim]"
    )


async def analyze_structure(ticker: str, expiration: Optional[str], as_json: bool):
    """Fetch and print the structure for one ticker."""
    settings = get_settings()
    engine = StructureEngine(settings)

    try:
        if as_json:
            result = await engine.get_structure_data(ticker, expiration)
            print(json.dumps(result.to_dict(), indent=2))
            return

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task(f"Analyzing {ticker}...", total=None)
            result = await engine.get_structure_data(ticker, expiration)
            progress.update(task, description="Analysis complete!")

        print_structure(result)
    finally:
        await engine.close()


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="DealerStructure - Options Structure Analytics Engine"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    structure_parser = subparsers.add_parser("structure", help="Analyze options structure for a ticker")
    structure_parser.add_argument("ticker", help="Underlying symbol")
    structure_parser.add_argument("--expiration", help="Expiration date (YYYY-MM-DD)")
    structure_parser.add_argument("--json", action="store_true", help="Print the raw payload as JSON")

    subparsers.add_parser("status", help="Show engine configuration")

    args = parser.parse_args()
    _configure_cli_logging(args.verbose)

    if args.command == "structure":
        asyncio.run(analyze_structure(args.ticker.upper(), args.expiration, args.json))
    elif args.command == "status":
        settings = get_settings()
        console.print(f"""
    Configuration:
    - Base URL: {settings.massive_base_url}
    - Cache TTL: {settings.structure_cache_ttl}s
    - Chain: {settings.chain_page_limit}/page, max {settings.chain_max_pages} pages
    - Retries: chain {settings.fetch_max_attempts}, spot {settings.spot_max_attempts}, discovery {settings.discovery_max_attempts}
    - Backoff base: {settings.backoff_base_ms}ms
    - Overall timeout: {settings.structure_timeout or 'none'}
        """)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
