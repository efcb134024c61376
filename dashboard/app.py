"""
This module contains the backend Flask application for the dashboard.
"""

import logging
from datetime import datetime

from flask import Flask, current_app, render_template_string

logger = logging.getLogger(__name__)

app = Flask(__name__)

INDEX_TEMPLATE = """<!doctype html>
<html lang="de">
<head>
  <meta charset="utf-8">
  <title>Pickup Notifier Dashboard</title>
</head>
<body>
  <h1>Pickup Notifier Dashboard</h1>
  {% if error %}
  <p class="error">Error: {{ error }}</p>
  {% endif %}

  <h2>Status</h2>
  <ul>
    <li>Bot started: {{ bot_start_time or "never" }}</li>
    <li>Uptime (hours): {{ uptime_hours if uptime_hours is not none else "N/A" }}</li>
    <li>Subscribers: {{ counts.get("subscribers", 0) }}</li>
    <li>Locations: {{ counts.get("locations", 0) }}</li>
    <li>Distinct locations: {{ counts.get("distinct_locations", 0) }}</li>
    <li>Subscriptions: {{ counts.get("subscriptions", 0) }}</li>
    <li>Upcoming pickups: {{ counts.get("upcoming_events", 0) }}</li>
  </ul>

  <h2>Logs</h2>
  {% if logs %}
  <table>
    <tr><th>Timestamp</th><th>Level</th><th>Logger</th><th>Message</th></tr>
    {% for log in logs %}
    <tr>
      <td>{{ log.timestamp }}</td>
      <td>{{ log.level }}</td>
      <td>{{ log.logger_name }}</td>
      <td>{{ log.message }}</td>
    </tr>
    {% endfor %}
  </table>
  {% else %}
  <p>No logs found.</p>
  {% endif %}
</body>
</html>
"""


def _uptime_hours(bot_start_time):
    if not bot_start_time:
        return None
    try:
        start_time = datetime.fromisoformat(bot_start_time)
    except ValueError:
        logger.warning(f"Invalid bot start time stored: {bot_start_time}")
        return None
    now = datetime.now(start_time.tzinfo) if start_time.tzinfo else datetime.now()
    return round((now - start_time).total_seconds() / 3600, 2)


@app.route("/")
def index():
    """Renders the main dashboard page with counts and logs."""
    facade = current_app.config.get("FACADE")
    if facade is None:
        data = {"error": "Dashboard is not connected to the application."}
    else:
        data = facade.get_dashboard_data()

    return render_template_string(
        INDEX_TEMPLATE,
        error=data.get("error"),
        counts=data.get("counts") or {},
        bot_start_time=data.get("bot_start_time"),
        uptime_hours=_uptime_hours(data.get("bot_start_time")),
        logs=data.get("logs") or [],
    )


def run_dashboard(facade, host: str = "0.0.0.0", port: int = 8080):
    """Serves the dashboard for the given facade."""
    app.config["FACADE"] = facade
    app.run(host=host, port=port)
