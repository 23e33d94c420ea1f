#!/usr/bin/env python3
"""
Update Notice - Entry Point
"""

import sys
from pathlib import Path

# Add src to path
src_dir = Path(__file__).parent / "src"
sys.path.insert(0, str(src_dir))

from update_notice.cli import main

if __name__ == "__main__":
    sys.exit(main())
