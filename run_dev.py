#!/usr/bin/env python3
"""Development server runner for sessionbook."""

import os
import sys

from dotenv import load_dotenv


def setup_environment():
    """Load .env and default Flask development settings."""
    if load_dotenv():
        print("✓ Loaded environment from .env")
    else:
        print("⚠️ No .env file found; using defaults")

    os.environ.setdefault('FLASK_APP', 'sessionbook')
    os.environ.setdefault('FLASK_DEBUG', '1')


def run_development_server():
    """Run the Flask development server."""
    from sessionbook import create_app

    app = create_app()

    print("\n" + "=" * 60)
    print("🚀 Starting sessionbook development server")
    print("=" * 60)
    print(f"Database: {app.config['SQLALCHEMY_DATABASE_URI']}")
    print(f"Facility timezone: {app.config['FACILITY_TIMEZONE']}")
    print("\n📱 API root: http://localhost:5000/api/v1")
    print("\n🛠️ To create demo data, run in another terminal:")
    print("   flask seed demo")
    print("   flask schedule list-periods")
    print("\n⏹️ Press Ctrl+C to stop the server")
    print("=" * 60)

    app.run(host='0.0.0.0', port=5000, debug=True, use_reloader=True)


def main():
    setup_environment()
    try:
        run_development_server()
    except KeyboardInterrupt:
        print("\n\n🛑 Development server stopped by user")
    except Exception as e:
        print(f"\n❌ Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
