#!/usr/bin/env python3
"""Run the spellbee API server."""

import logging
import os

import uvicorn


def main():
    logging.basicConfig(
        level=os.environ.get('SPELLBEE_LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
    port = int(os.environ.get('PORT', 8000))
    print("Starting Spellbee API server...")
    print(f"API documentation available at: http://localhost:{port}/docs")
    uvicorn.run(
        "server.app:app",
        host="0.0.0.0",
        port=port,
        reload=os.environ.get('SPELLBEE_RELOAD', '1') == '1'
    )


if __name__ == "__main__":
    main()
