"""Run the FastAPI application."""
import sys
import asyncio

# Fix for Windows asyncio subprocess issues with Playwright
# This MUST be set before importing any modules that use Playwright
if sys.platform == 'win32':
    asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "booker.main:app",
        host="0.0.0.0",
        port=8001,
        reload=False,
        log_level="info"
    )
