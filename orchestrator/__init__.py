"""
Orchestrator Package - Cycle Coordination Layer.

============================================================
PACKAGE OVERVIEW
============================================================
Runs the DCA agent: one cycle on demand or on a weekly cron
schedule, with logging set up once at startup.

============================================================
CORE PRINCIPLES
============================================================
1. The orchestrator holds no state across cycles
2. A failure in one symbol never stops another
3. Only an unreachable exchange aborts a cycle
4. No retries; the next scheduled cycle is the retry

============================================================
ARCHITECTURE
============================================================

    +-----------------------------------------------------+
    |                   CycleScheduler                    |
    |   cron + timezone, single-slot trigger guard        |
    +--------------------------+--------------------------+
                               |
    +--------------------------v--------------------------+
    |                   DCAOrchestrator                   |
    |-----------------------------------------------------|
    |  1. ConnectivityCheck    4. Planning                |
    |  2. MomentumCollection   5. PerSymbolExecution      |
    |  3. AccountSnapshot      6. CycleReport             |
    +--------------------------+--------------------------+
                               |
    +--------------------------v--------------------------+
    |      MarketDataGateway (Binance Spot / Mock)        |
    +-----------------------------------------------------+

============================================================
QUICK START
============================================================
Command line usage::

    # Weekly schedule (Friday 21:30 Asia/Shanghai)
    python app.py

    # Single cycle without ordering
    python app.py --once --dry-run

Programmatic usage::

    import asyncio
    from dca import DCAConfig
    from exchange import BinanceSpotAdapter
    from orchestrator import DCAOrchestrator

    async def main():
        config = DCAConfig.from_env().ensure_valid()
        async with BinanceSpotAdapter(config.exchange) as gateway:
            outcome = await DCAOrchestrator(gateway, config).run_cycle()
            print(outcome.to_dict())

    asyncio.run(main())

============================================================
"""

from orchestrator.core import (
    DCAOrchestrator,
    setup_logging,
)
from orchestrator.scheduler import (
    CycleScheduler,
)


__all__ = [
    "DCAOrchestrator",
    "setup_logging",
    "CycleScheduler",
]
