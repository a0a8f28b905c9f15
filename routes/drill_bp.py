#!/usr/bin/env python3
"""
Drill Blueprint - Flask routes for the practice/rally drill
Local control surface over DrillService (one session, loopback host)
"""

import logging

from flask import Blueprint, jsonify, request

from services import drill_service as drill_service_module

# Create blueprint
drill_bp = Blueprint('drill', __name__)
logger = logging.getLogger(__name__)


def _service():
    return drill_service_module.get_drill_service()


def _json_object(default=None):
    """Request body when it is a JSON object, otherwise `default`."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else default


def _respond(result):
    """Map a service result dict to a JSON response + status code."""
    if result.get('success'):
        return jsonify(result)
    if result.get('already_running'):
        return jsonify(result), 409
    return jsonify(result), 400


# ==================== API ROUTES ====================

@drill_bp.route('/api/drill/status')
def get_status():
    """Current session status + display state"""
    try:
        limit = int(request.args.get('logs', 20))
    except ValueError:
        return jsonify({'error': 'logs must be an integer'}), 400
    try:
        status = _service().get_session_status()
        status['logs'] = _service().registry.recent_logs(max(0, limit))
        return jsonify(status)
    except Exception as e:
        logger.exception("Error getting drill status")
        return jsonify({'error': str(e)}), 500


@drill_bp.route('/api/drill/configure', methods=['POST'])
def configure():
    """Apply zones / settings / sequences / court layout (idle only)"""
    data = _json_object()
    if data is None:
        return jsonify({'success': False, 'error': 'JSON object body required'}), 400
    try:
        return _respond(_service().configure(data))
    except Exception as e:
        logger.exception("Error configuring drill")
        return jsonify({'success': False, 'error': str(e)}), 500


@drill_bp.route('/api/drill/start', methods=['POST'])
def start_session():
    """Start a practice or rally session"""
    data = _json_object({})
    try:
        logger.info("API: /api/drill/start mode=%s", data.get('mode'))
        return _respond(_service().start_session(data.get('mode')))
    except Exception as e:
        logger.exception("Error starting drill")
        return jsonify({'success': False, 'error': str(e)}), 500


@drill_bp.route('/api/drill/stop', methods=['POST'])
def stop_session():
    """Stop the session (no-op when idle)"""
    try:
        return _respond(_service().stop_session())
    except Exception as e:
        logger.exception("Error stopping drill")
        return jsonify({'success': False, 'error': str(e)}), 500


@drill_bp.route('/api/drill/mode', methods=['POST'])
def select_mode():
    """Switch practice/rally tab; stops a running session"""
    data = _json_object({})
    if 'mode' not in data:
        return jsonify({'success': False, 'error': 'mode required'}), 400
    try:
        return _respond(_service().select_mode(data['mode']))
    except Exception as e:
        logger.exception("Error selecting drill mode")
        return jsonify({'success': False, 'error': str(e)}), 500


@drill_bp.route('/api/drill/layout', methods=['POST'])
def select_layout():
    """Switch singles/doubles court; stops a running session"""
    data = _json_object({})
    if 'court_layout' not in data:
        return jsonify({'success': False, 'error': 'court_layout required'}), 400
    try:
        return _respond(_service().select_layout(data['court_layout']))
    except Exception as e:
        logger.exception("Error selecting court layout")
        return jsonify({'success': False, 'error': str(e)}), 500


@drill_bp.route('/api/drill/zones/<int:zone>/toggle', methods=['POST'])
def toggle_zone(zone):
    """Enable/disable one zone (idle only)"""
    try:
        return _respond(_service().toggle_zone(zone))
    except Exception as e:
        logger.exception("Error toggling zone %s", zone)
        return jsonify({'success': False, 'error': str(e)}), 500


@drill_bp.route('/api/drill/volume/toggle', methods=['POST'])
def toggle_volume():
    """Mute/unmute announcements"""
    try:
        return _respond(_service().toggle_volume())
    except Exception as e:
        logger.exception("Error toggling volume")
        return jsonify({'success': False, 'error': str(e)}), 500
