#!/usr/bin/env python3
"""
DCA Agent - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
The one executable entry point for the agent.

- Compatible with PM2 process management
- Can be started, stopped, and restarted safely
- SIGINT/SIGTERM stop the scheduler between cycles

============================================================
USAGE
============================================================
Direct execution:
    python app.py
    python app.py --once --dry-run

With PM2:
    pm2 start app.py --interpreter python --name dca-agent

Environment-based configuration (.env):
    API_KEY=...
    API_SECRET=...
    SYMBOLS=BTCUSDT,ETHUSDT,BNBUSDT
    BASE_USDT=100

============================================================
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.absolute()
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from orchestrator.cli import main


if __name__ == "__main__":
    sys.exit(main())
