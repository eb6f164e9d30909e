#!/usr/bin/env python3
"""
LemonSqueezy Billing API Startup Script

This script starts the FastAPI server for local development.
"""

import sys
from pathlib import Path

import uvicorn


def main():
    """Start the billing API server."""
    print("Starting LemonSqueezy Billing API Server...")
    print("Endpoints:")
    print("   POST /lemonsqueezy                          (webhooks)")
    print("   POST /create-checkout-session")
    print("   GET  /create-portal-link")
    print("   GET  /manual-lemonsqueezy-synchronization")
    print("")
    print("Documentation will be available at:")
    print("   Swagger UI:  http://localhost:8000/docs")
    print("   ReDoc:       http://localhost:8000/redoc")
    print("")

    # Check for environment file
    env_file = Path(".env")
    if not env_file.exists():
        print("WARNING: No .env file found!")
        print("   Create a .env file with these variables:")
        print("   JWT_SECRET=your-secret-key-here")
        print("   LEMONSQUEEZY_API_KEY=your-api-key")
        print("   LEMONSQUEEZY_WEBHOOK_SECRET=your-webhook-signing-secret")
        print("   LEMONSQUEEZY_STORE_ID=your-store-id")
        print("")

    try:
        uvicorn.run(
            "app.main:app",
            host="0.0.0.0",
            port=8000,
            reload=True,
            reload_dirs=["app"],
            log_level="info"
        )
    except KeyboardInterrupt:
        print("\nShutting down billing API server...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
