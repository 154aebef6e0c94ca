#!/usr/bin/env python3
"""
Main entry point for the toolbridge CLI.

This delegates to the UI layer in toolbridge.ui.cli to keep the
console script mapping stable.
"""

from toolbridge.ui.cli import run as toolbridge


if __name__ == "__main__":
    toolbridge()
