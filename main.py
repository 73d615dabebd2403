#!/usr/bin/env python3
"""Main entry point for the Debate Battles service."""

import logging
import os
import sys


def setup_logging():
    """Configure logging for the servers."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    # Suppress noisy third-party loggers
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def print_usage():
    """Print usage information for local development."""

    print("Debate Battles")
    print("=" * 40)
    print("Available entry points:")
    print()
    print("🌐 Web Server (API + SSE + WebSocket):")
    print("   python main.py --web")
    print()
    print("⏱️  Battle completion worker:")
    print("   python main.py --worker")
    print()


def start_web_server():
    """Start the FastAPI web server."""

    setup_logging()

    import uvicorn

    port = int(os.environ.get("PORT", 8000))

    print("⚔️  Starting Debate Battles Web Server...")
    print(f"📡 API Documentation: http://localhost:{port}/docs")
    print(f"🔌 WebSocket: ws://localhost:{port}/v1/ws/battle")

    uvicorn.run("web.api:app", host="0.0.0.0", port=port, log_level="info", access_log=True)


def start_worker():
    """Start the standalone battle completion worker."""
    from worker.app import main as worker_main

    worker_main()


def main():
    """Main entry point."""
    # Check for production environment (Railway, Docker, Heroku, etc.)
    is_production = any([
        "RAILWAY_ENVIRONMENT" in os.environ,
        "PORT" in os.environ,
        "DYNO" in os.environ,  # Heroku
        os.environ.get("ENVIRONMENT") == "production"
    ])

    if "--worker" in sys.argv:
        start_worker()
    elif is_production or "--web" in sys.argv:
        start_web_server()
    else:
        print_usage()
        print("💡 Tip: Use 'python main.py --web' to start the server")
        print("🚀 In production, server starts automatically")


if __name__ == "__main__":
    main()
