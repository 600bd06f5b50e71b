#!/usr/bin/env python3
"""
Main entry point for running the app-fair-browser JSON API server.
"""

import os

from app_fair_browser.cli import configure_logging
from app_fair_browser.server import run_server

if __name__ == "__main__":
    configure_logging()
    port = int(os.environ.get('PORT', 8080))
    run_server(port=port)
