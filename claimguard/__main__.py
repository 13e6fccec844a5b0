"""
Allow running ClaimGuard as a module: ``python -m claimguard``.

This delegates to the CLI entry point so that both
``claimguard`` (console script) and ``python -m claimguard``
behave identically.
"""

import sys

from claimguard.cli import main

if __name__ == "__main__":
    sys.exit(main())
