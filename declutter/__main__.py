"""Entry point for Desktop Declutter.

Usage:
    python -m declutter <command> [options]     see ``--help``
"""

import sys


def main() -> None:
    """Run the command-line interface."""
    from declutter.cli import main as cli_main

    sys.exit(cli_main())


if __name__ == "__main__":
    main()
