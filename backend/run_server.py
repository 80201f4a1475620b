#!/usr/bin/env python3
"""
Simple script to run the Battery Builds backend server
"""
import uvicorn
import sys
import os

# Add the backend directory to Python path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core.environment import get_env_int, is_development


if __name__ == "__main__":
    port = get_env_int("PORT", 8000)
    print("Starting Battery Builds Manual J backend...")
    print(f"Server will be available at: http://localhost:{port}")
    print(f"API documentation: http://localhost:{port}/docs")
    print("\nPress Ctrl+C to stop the server\n")

    try:
        uvicorn.run(
            "app.main:create_app",
            factory=True,
            host="0.0.0.0",
            port=port,
            reload=is_development(),
            log_level="info"
        )
    except KeyboardInterrupt:
        print("\nServer stopped")
