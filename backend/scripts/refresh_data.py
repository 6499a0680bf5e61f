#!/usr/bin/env python3
"""
Script to manually trigger a full data refresh.

This will:
1. Merge the value-ranked and minutes-ranked listings
2. Fetch every player's stats page with adaptive concurrency
3. Publish the dataset if both integrity guards pass
4. Scan market value losers and winners for repeat movers

Usage:
    python3 scripts/refresh_data.py
    python3 scripts/refresh_data.py --parser mypkg.parsers:TransfermarktParser
"""

import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv(Path(__file__).parent.parent / ".env")

# Add src directory to path
backend_dir = Path(__file__).parent.parent
src_dir = backend_dir / "src"
sys.path.insert(0, str(src_dir))

from main import main


if __name__ == "__main__":
    sys.exit(asyncio.run(main(["all", *sys.argv[1:]])))
