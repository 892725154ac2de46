"""WSGI entry point: `gunicorn wsgi:app`."""

import os

from app import create_app


app = create_app()

if __name__ == "__main__":
    port = int(os.getenv("PORT", 5000))
    debug = os.getenv("FLASK_ENV", "development") == "development"

    print("=" * 60)
    print("Scorekeeper analytics & leaderboard engine")
    print("=" * 60)
    print(f"Leaderboard: http://localhost:{port}/api/leaderboard")
    print(f"Admin stats: http://localhost:{port}/api/admin/stats")
    print(f"Reporting timezone: {app.config['REPORTING_TIMEZONE']}")
    print("=" * 60)

    app.run(host="0.0.0.0", port=port, debug=debug)
