#!/usr/bin/env python3
"""
Main entry point for the Planning Poker API.
Handles server startup with environment-based configuration.
"""
import uvicorn
from app.config import APP_PORT

if __name__ == "__main__":
    print(f"🚀 Starting Planning Poker API on port {APP_PORT}")
    uvicorn.run(
        "app.poker_api:app",
        host="0.0.0.0",
        port=APP_PORT,
        reload=True,
        log_level="info"
    )
