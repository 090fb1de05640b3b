#!/usr/bin/env python3
"""
Storefront order API - development server
"""
import logging

import uvicorn

from storefront.core.config import get_settings

logger = logging.getLogger("storefront.run")


def main():
    settings = get_settings()
    logger.info(f"Serving on http://{settings.HOST}:{settings.PORT} (docs at /docs)")
    try:
        uvicorn.run(
            "storefront.main:app",
            host=settings.HOST,
            port=settings.PORT,
            reload=settings.DEBUG,
            log_level=settings.LOG_LEVEL.lower(),
        )
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
