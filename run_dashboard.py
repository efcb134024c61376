"""
This script runs the Flask web dashboard.
"""

from dashboard.app import run_dashboard
from pickup_notifier.app_factory import create_facade, initialize_app

if __name__ == "__main__":
    initialize_app()
    # Running on 0.0.0.0 makes it accessible from outside the container
    run_dashboard(create_facade(), host="0.0.0.0", port=8080)
