#!/usr/bin/env python3
"""
Server startup script for Hive Mind.

Loads ``.env`` if present and starts the FastAPI server with uvicorn.
"""

import os

# Set environment variables from .env if it exists
env_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), '.env')
if os.path.exists(env_path):
    from dotenv import load_dotenv
    load_dotenv(env_path)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "hivemind.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", 8000)),
        reload=os.getenv("DEBUG", "false").lower() == "true",
    )
