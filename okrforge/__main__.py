"""
Entry point for running okrforge as a module.

Usage:
    python -m okrforge analyze "Launch the new mobile app"
    python -m okrforge catalogue

This is equivalent to:
    okrforge-debug [args]
"""

from okrforge.debug import main


if __name__ == "__main__":
    main()
