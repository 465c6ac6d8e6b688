#!/usr/bin/env python3
"""
Basic usage example for DealerStructure.

Requires MASSIVE_API_KEY in the environment or a .env file.
"""

import asyncio

from dealerstructure import StructureEngine


async def example_single_ticker(engine: StructureEngine):
    """Example: structure for the next weekly expiration."""
    print("\n" + "=" * 50)
    print("Example 1: Next Weekly Structure")
    print("=" * 50)

    result = await engine.get_structure_data("SPY")

    print(f"\nTicker: {result.ticker}  Expiration: {result.expiration}")
    print(f"Status: {result.options_status.value}  Grade: {result.source_grade.value}")
    print(f"Max Pain: {result.max_pain}")
    print(f"Net GEX: {result.net_gex}")
    print(f"Gamma Flip: {result.gamma_flip_level} ({result.gamma_flip_type.value})")
    print(f"Call Wall: {result.levels.call_wall}  Put Floor: {result.levels.put_floor}")

    if result.diagnostics.notes:
        print(f"Notes: {'; '.join(result.diagnostics.notes)}")


async def example_cache(engine: StructureEngine):
    """Example: a second request inside the TTL is served from cache."""
    print("\n" + "=" * 50)
    print("Example 2: Cached Repeat")
    print("=" * 50)

    result = await engine.get_structure_data("SPY")
    print(f"\nCached: {result.cached}")


async def main():
    """Run all examples."""
    print("\n" + "=" * 60)
    print("DealerStructure - Basic Usage Examples")
    print("=" * 60)

    engine = StructureEngine()
    try:
        await example_single_ticker(engine)
        await example_cache(engine)
    finally:
        await engine.close()


if __name__ == "__main__":
    asyncio.run(main())
