#!/usr/bin/env python3
"""
Zone Trainer – Flask Web Interface
----------------------------------
Responsibilities:
- Exposes the drill REST API (routes/drill_bp.py)
- Health endpoint with version and session state
- All state is provided by the DrillService singleton

Notes:
- This file does NOT start the server; use zone_trainer_main.py.
"""

import os
from datetime import datetime, timezone

from flask import Flask, jsonify

from routes.drill_bp import drill_bp
from services.drill_service import get_drill_service
from zone_trainer.zt_version import VERSION

# Track when this process started
START_TIME = datetime.now(timezone.utc).isoformat(timespec="seconds")


def create_app() -> Flask:
    """Build the Flask app with the drill blueprint registered."""
    app = Flask(__name__)
    app.register_blueprint(drill_bp)

    @app.get("/health")
    def health():
        """Health check endpoint - shows version and session state"""
        status = get_drill_service().get_session_status()
        return jsonify({
            'service': 'zone-trainer',
            'version': VERSION,
            'pid': os.getpid(),
            'started_at': START_TIME,
            'uptime': _calculate_uptime(START_TIME),
            'session_state': status['state'],
            'status': 'healthy'
        })

    return app


def _calculate_uptime(start_time_iso: str) -> str:
    """Calculate uptime from ISO timestamp"""
    start = datetime.fromisoformat(start_time_iso)
    delta = datetime.now(timezone.utc) - start
    hours, remainder = divmod(int(delta.total_seconds()), 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours}h {minutes}m {seconds}s"


app = create_app()
