"""
Workforce Analytics — Entry Point
===================================

Run: python main.py [--period ID] [--user ID] [--limit N] ...
"""

import os
import sys

from dotenv import load_dotenv

load_dotenv()

from analytics.lib.logger import setup_logger
from analytics.workload_analyzer import main

logger = setup_logger("workforce-analytics")

if __name__ == "__main__":
    logger.info("=" * 60)
    logger.info("  WORKFORCE ANALYTICS — Workload Snapshot")
    logger.info("=" * 60)
    logger.info(f"  Period      : {os.getenv('ANALYTICS_PERIOD_ID', 'all')}")
    logger.info(f"  Raw exports : {os.getenv('ANALYTICS_RAW_DIR', 'data/raw')}")
    logger.info(f"  Output      : {os.getenv('ANALYTICS_PROCESSED_DIR', 'data/processed')}")
    logger.info(f"  Log level   : {os.getenv('LOG_LEVEL', 'INFO')}")
    logger.info("=" * 60)

    sys.exit(main())
