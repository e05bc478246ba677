"""
camfetch CLI entry point.

Usage:
    python -m camfetch download --plan plan.json
    python -m camfetch ledger show
"""

from camfetch.cli import main

if __name__ == "__main__":
    main()
