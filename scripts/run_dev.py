#!/usr/bin/env python3
"""
Development server runner for the WorkLedger API
Includes auto-reload, environment checking and a signed dev token
"""

import os
import sys
import uvicorn
from pathlib import Path

# Add the parent directory to Python path
sys.path.append(str(Path(__file__).parent.parent))

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

def check_environment():
    """Report configuration and warn about insecure defaults."""
    optional_vars = [
        "DATA_DIR",
        "API_HOST",
        "API_PORT",
        "DEBUG",
        "MATCH_THRESHOLD",
        "FLAG_THRESHOLD",
        "NOTIFY_WEBHOOK_URL",
    ]

    if not os.getenv("JWT_SECRET"):
        print("⚠️  JWT_SECRET is not set, using the insecure development default")

    print("\n📋 Configuration:")
    for var in optional_vars:
        print(f"  {var}: {os.getenv(var, 'Not set')}")

def check_data_dir():
    """Make sure the data directory exists and the stored collections load."""
    from workledger.core.errors import PersistenceError
    from workledger.core.storage import LedgerStorage

    try:
        counts = LedgerStorage().load_all()
    except PersistenceError as e:
        print(f"❌ Could not load stored records: {str(e)}")
        return False

    print("✅ Stored records loaded: " + ", ".join(f"{name}={count}" for name, count in counts.items()))
    return True

def print_dev_token():
    """Print a bearer token for a local test author."""
    from workledger.core.auth import get_resolver

    token = get_resolver().create_token(
        {"sub": os.getenv("DEV_USER_ID", "dev-user"), "email": os.getenv("DEV_USER_EMAIL", "dev@example.com")}
    )
    print(f"\n🔑 Dev token: Bearer {token}")

def main():
    """Main entry point for development server."""
    print("📚 WorkLedger - Development Server")
    print("=" * 50)

    check_environment()

    if not check_data_dir():
        sys.exit(1)

    print_dev_token()

    from workledger import config

    print(f"\n🚀 Starting development server...")
    print(f"   Host: {config.API_HOST}")
    print(f"   Port: {config.API_PORT}")
    print(f"   Debug: {config.DEBUG}")
    print(f"   Docs: http://{config.API_HOST}:{config.API_PORT}/docs")
    print("\n⏹️  Press Ctrl+C to stop the server")
    print("=" * 50)

    try:
        uvicorn.run(
            "workledger.main:app",
            host=config.API_HOST,
            port=config.API_PORT,
            reload=config.DEBUG,
            log_level="debug" if config.DEBUG else "info",
            access_log=True,
        )
    except KeyboardInterrupt:
        print("\n🛑 Server stopped by user")
    except Exception as e:
        print(f"\n❌ Server error: {str(e)}")
        sys.exit(1)

if __name__ == "__main__":
    main()
