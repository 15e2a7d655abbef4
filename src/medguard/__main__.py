#!/usr/bin/env python3
"""
Allow running medguard as a module: python -m medguard
"""

from medguard.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
