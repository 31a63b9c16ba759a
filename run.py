#!/usr/bin/env python3
"""
Installment Lending Engine Entry Point

Restores loans and payment history from the data directory and starts the
FastAPI server (port 8090 by default, see LENDING_API_PORT).
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from lending.api import run_server


if __name__ == "__main__":
    try:
        run_server()
    except KeyboardInterrupt:
        print("\nShutting down lending engine...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
