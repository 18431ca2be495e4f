#!/usr/bin/env python3
"""
PromptLint - Entry Point
Run the Flask application
"""

import os
import sys
import logging

# Add project directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from promptlint.main import create_app

if __name__ == "__main__":
    logging.basicConfig(
        level=os.environ.get("PROMPTLINT_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    app = create_app()

    # Get host and port from environment or use defaults
    host = os.environ.get("PROMPTLINT_HOST", "127.0.0.1")
    port = int(os.environ.get("PROMPTLINT_PORT", "5000"))
    debug = os.environ.get("PROMPTLINT_DEBUG", "false").lower() == "true"

    print(f"\n{'='*50}")
    print("  PromptLint - Prompt Analysis Server")
    print(f"{'='*50}")
    print(f"  Server: http://{host}:{port}")
    print(f"  Debug Mode: {debug}")
    print(f"{'='*50}\n")

    app.run(host=host, port=port, debug=debug, threaded=True)
