#!/usr/bin/env python3
"""
CloudWatch -> Mackerel Relay - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Polls CloudWatch for load balancer and database counters and posts
the latest values to Mackerel as custom host metrics.

- Runs until SIGINT/SIGTERM
- Exits 0 on normal termination

============================================================
USAGE
============================================================
Direct execution:
    python app.py --mackerel-api-key KEY

Environment-based configuration:
    MACKEREL_APIKEY=... AWS_ACCESS_KEY_ID=... AWS_SECRET_ACCESS_KEY=... python app.py

With PM2:
    pm2 start app.py --interpreter python --name cw-relay

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
