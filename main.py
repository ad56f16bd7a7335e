#!/usr/bin/env python3
"""
AI Coach Backend launcher
Runs the relay under uvicorn for local development. Managed hosts import
`api:app` directly and never call this.
"""

import logging

import uvicorn

from api import configure_logging
from config import get_settings

logger = logging.getLogger("main")


def main():
    settings = get_settings()
    configure_logging(settings)

    if not settings.start_listener:
        logger.info("APP_ENV=%s: embedded listener disabled, serve api:app from the host", settings.app_env)
        return

    print("@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@")
    print("                                         ")
    print("      AI coach backend launcher           ")
    print("                                         ")
    print("@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@@")
    print("")
    print(f"Local address: http://localhost:{settings.port}")
    print(f"Chat endpoint: POST http://localhost:{settings.port}/api/chat")
    print(f"Health Check:  GET http://localhost:{settings.port}/api/health")
    print("")
    if not settings.api_key:
        print("Warning: DEEPSEEK_API_KEY is not set, copy .env.example to .env and configure it")
        print("")

    uvicorn.run(
        "api:app",
        host=settings.host,
        port=settings.port,
        reload=settings.app_env.lower() in ("dev", "development", "local"),
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
