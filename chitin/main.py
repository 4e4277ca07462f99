#!/usr/bin/env python3
"""
Main entry point for the Typer-based Chitin CLI.

This delegates to the UI layer in chitin.ui.cli to keep the
console script mapping stable.
"""

from chitin.ui.cli import run as chitin


if __name__ == "__main__":
    chitin()
