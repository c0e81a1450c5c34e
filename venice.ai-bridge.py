#!/usr/bin/env python

"""
Venice AI Bridge - Browser automation + Local API

Automates the Venice chat web UI via browser and exposes it as:
  - CLI interface for direct prompts
  - HTTP API for integration with other projects

Run with --help for usage.
"""

from venice_ai_bridge.cli import run

if __name__ == "__main__":
    run()
