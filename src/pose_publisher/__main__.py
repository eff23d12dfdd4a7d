"""
Main entry point for running pose-publisher as a module.

    python -m pose_publisher watch

The installed console script does the same:

    pose-publisher watch
"""

from .cli import cli_main

if __name__ == "__main__":
    cli_main()
