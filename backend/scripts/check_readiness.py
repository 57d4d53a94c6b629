#!/usr/bin/env python3
"""Run readiness checks and report pass/fail per item and overall. Exit 0 if all required checks pass, 1 otherwise."""
import asyncio
import sys

from marketplace.infra.db import base
from marketplace.infra.messaging.redis_bus import redis_bus
from marketplace.readiness import is_ready, run_all_checks_async


async def _run():
    await redis_bus.connect()
    try:
        return await run_all_checks_async()
    finally:
        await redis_bus.disconnect()
        if base.engine is not None:
            await base.engine.dispose()


def main() -> int:
    checks = asyncio.run(_run())
    ready, summary = is_ready(checks)
    for name, msg in summary.items():
        status = "OK" if checks[name][0] else "FAIL"
        print(f"  {name}: {status}  {msg}")
    print("")
    if ready:
        print("Readiness: READY (all required checks passed)")
        return 0
    print("Readiness: NOT READY (one or more required checks failed)")
    return 1


if __name__ == "__main__":
    sys.exit(main())
