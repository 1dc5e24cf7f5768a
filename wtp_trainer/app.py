"""
Trainer API - HTTP JSON and Socket.IO interface to the shared simulation
"""

import os
import json
import uuid
import logging
from datetime import datetime, timezone
from flask import Flask, Response, request, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO, emit

from wtp_trainer import config, __version__
from wtp_trainer.errors import (
    SimulationError, InvalidTransition, OutOfRange, UnknownEntity, ConflictingActivation,
)
from wtp_trainer.history import events_to_csv, alarms_to_csv

logger = logging.getLogger(__name__)

STATUS_CODES = {
    UnknownEntity: 404,
    InvalidTransition: 400,
    OutOfRange: 400,
    ConflictingActivation: 409,
}

TUTORIAL_ACTIONS = ('next', 'back', 'finish', 'exit')


def log_operation(operation, src_ip, action, result, details=None):
    """Log structured JSON operation with correlation ID"""
    now = datetime.now(timezone.utc)
    log_entry = {
        'timestamp': now.isoformat(),
        'correlation_id': uuid.uuid4().hex[:8],
        'src_ip': src_ip,
        'operation': operation,
        'action': action,
        'result': result,
        'details': details or {}
    }

    log_file = os.path.join(config.LOG_DIR, f"{operation}_{now.strftime('%Y%m%d')}.jsonl")
    try:
        os.makedirs(config.LOG_DIR, exist_ok=True)
        with open(log_file, 'a') as f:
            f.write(json.dumps(log_entry, default=str) + '\n')
    except OSError as e:
        logger.error(f"Failed to write log: {e}")


def status_for(error: SimulationError) -> int:
    return STATUS_CODES.get(type(error), 400)


def _src_ip():
    return request.environ.get('HTTP_X_FORWARDED_FOR', request.remote_addr)


def _bad_request(message):
    return jsonify({'error': 'invalid_request', 'message': message}), 400


def _body(*required):
    """JSON object body, or None when malformed / missing required fields"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None
    for key in required:
        if key not in data:
            return None
    return data


def create_app(sim):
    """Build the Flask app and Socket.IO server around one SimulationSession"""
    app = Flask(__name__)
    CORS(app)
    socketio = SocketIO(app, cors_allowed_origins="*", async_mode='threading')

    def broadcast(payload):
        socketio.emit('state:update', payload)

    app.extensions['wtp_unsubscribe'] = sim.broadcaster.subscribe(broadcast)

    @app.errorhandler(SimulationError)
    def handle_simulation_error(e):
        log_operation('api', _src_ip(), request.endpoint, 'error', e.to_dict())
        logger.warning(f"Rejected {request.method} {request.path}: {e.code} {e.message}")
        return jsonify(e.to_dict()), status_for(e)

    # --- LIVE STATE ---

    @app.route('/api/snapshot', methods=['GET'])
    def get_snapshot():
        """Get current process snapshot"""
        snapshot = sim.snapshot
        log_operation('api', _src_ip(), 'snapshot', 'success', {'tick': snapshot.tick})
        return jsonify(snapshot.to_dict())

    # --- COMMANDS ---

    @app.route('/api/command', methods=['POST'])
    def issue_command():
        """Issue an equipment command"""
        data = _body('equipment_id', 'verb')
        if data is None:
            log_operation('api', _src_ip(), 'command', 'error', {'reason': 'invalid_request'})
            return _bad_request('Body must be {equipment_id, verb, params}')
        params = data.get('params') or {}
        if not isinstance(params, dict):
            return _bad_request('params must be an object')

        result = sim.issue_command(data['equipment_id'], data['verb'], params)
        log_operation('api', _src_ip(), 'command', 'success', {
            'equipment_id': result.equipment_id, 'verb': result.command,
            'before': result.before, 'after': result.after,
        })
        return jsonify(result.to_dict())

    @app.route('/api/condition', methods=['POST'])
    def set_condition():
        """Instructor process condition (source water, demand)"""
        data = _body('name', 'value')
        if data is None:
            return _bad_request('Body must be {name, value}')
        before, after, event = sim.set_condition(data['name'], data['value'])
        log_operation('api', _src_ip(), 'condition', 'success', {'name': data['name'], 'value': after})
        return jsonify({'success': True, 'name': data['name'], 'before': before, 'after': after,
                        'event': event.to_dict()})

    @app.route('/api/speed', methods=['POST'])
    def set_speed():
        data = _body('multiplier')
        if data is None:
            return _bad_request('Body must be {multiplier}')
        before, after, _ = sim.set_speed(data['multiplier'])
        log_operation('api', _src_ip(), 'speed', 'success', {'before': before, 'after': after})
        return jsonify({'success': True, 'before': before, 'multiplier': after})

    # --- CATALOGS ---

    @app.route('/api/equipment', methods=['GET'])
    def list_equipment():
        """Equipment units and the commands each accepts"""
        with sim.lock:
            return jsonify(sim.equipment.listing())

    @app.route('/api/tags', methods=['GET'])
    def list_tags():
        snapshot = sim.snapshot
        tags = sim.tags.listing()
        for tag in tags:
            tag['value'] = snapshot.tags.get(tag['tag'])
        return jsonify(tags)

    @app.route('/api/tutorials', methods=['GET'])
    def list_tutorials():
        return jsonify(sim.tutorial.catalog())

    @app.route('/api/scenarios', methods=['GET'])
    def list_scenarios():
        with sim.lock:
            return jsonify(sim.injector.catalog())

    # --- TUTORIAL ---

    @app.route('/api/tutorial', methods=['GET'])
    def get_tutorial():
        return jsonify(sim.tutorial_view())

    @app.route('/api/tutorial/start', methods=['POST'])
    def start_tutorial():
        data = _body('id')
        if data is None:
            return _bad_request('Body must be {id}')
        view = sim.start_tutorial(data['id'])
        log_operation('api', _src_ip(), 'tutorial_start', 'success', {'tutorial': data['id']})
        return jsonify(view)

    @app.route('/api/tutorial/<action>', methods=['POST'])
    def tutorial_action(action):
        if action == 'ui-event':
            data = _body('event_id')
            if data is None:
                return _bad_request('Body must be {event_id}')
            return jsonify(sim.tutorial_ui_event(data['event_id']))
        if action not in TUTORIAL_ACTIONS:
            return jsonify({'error': 'not_found', 'message': f"Unknown tutorial action: {action}"}), 404
        view = sim.tutorial_action(action)
        log_operation('api', _src_ip(), f'tutorial_{action}', 'success', {'step_index': view.get('step_index')})
        return jsonify(view)

    # --- SCENARIO ---

    @app.route('/api/scenario', methods=['GET'])
    def get_scenario():
        return jsonify(sim.scenario_status())

    @app.route('/api/scenario/start', methods=['POST'])
    def start_scenario():
        """Start a scenario"""
        data = _body('id')
        if data is None:
            return _bad_request('Body must be {id}')
        sim.start_scenario(data['id'])
        log_operation('api', _src_ip(), 'scenario_start', 'success', {'scenario': data['id']})
        return jsonify({'success': True, 'scenario': data['id']})

    @app.route('/api/scenario/stop', methods=['POST'])
    def stop_scenario():
        """Stop the active scenario"""
        event = sim.stop_scenario()
        log_operation('api', _src_ip(), 'scenario_stop', 'success', {'was_active': event is not None})
        return jsonify({'success': True, 'stopped': event is not None})

    # --- HISTORY ---

    @app.route('/api/history', methods=['GET'])
    def get_history():
        return jsonify([event.to_dict() for event in sim.history.events()])

    @app.route('/api/history/clear', methods=['POST'])
    def clear_history():
        sim.clear_history()
        log_operation('api', _src_ip(), 'history_clear', 'success', {})
        return jsonify({'success': True})

    @app.route('/api/history/export', methods=['GET'])
    def export_history():
        source = request.args.get('source', 'events')
        if source == 'alarms':
            with sim.lock:
                body = alarms_to_csv(sim.alarms.history())
        elif source == 'events':
            body = events_to_csv(sim.history.events())
        else:
            return _bad_request("source must be 'alarms' or 'events'")
        log_operation('api', _src_ip(), 'history_export', 'success', {'source': source})
        return Response(body, mimetype='text/csv', headers={
            'Content-Disposition': f'attachment; filename={source}.csv'})

    # --- ALARMS ---

    @app.route('/api/alarms', methods=['GET'])
    def get_alarms():
        """Get current alarms"""
        with sim.lock:
            alarm_list = sim.alarms.active_alarms()
        log_operation('api', _src_ip(), 'alarms', 'success', {'alarms_count': len(alarm_list)})
        return jsonify(alarm_list)

    @app.route('/api/alarms/history', methods=['GET'])
    def get_alarm_history():
        with sim.lock:
            return jsonify(sim.alarms.history())

    @app.route('/api/alarm/acknowledge', methods=['POST'])
    def acknowledge_alarm():
        """Acknowledge an alarm by ID"""
        data = _body('id')
        if data is None:
            log_operation('api', _src_ip(), 'alarm_ack', 'error', {'reason': 'invalid_request'})
            return _bad_request('Invalid request - missing id')
        record = sim.acknowledge(data['id'])
        log_operation('api', _src_ip(), 'alarm_ack', 'success', {'alarm_id': data['id']})
        return jsonify({'success': True, 'alarm_id': data['id'], 'alarm': record})

    @app.route('/api/alarms/thresholds', methods=['GET', 'POST'])
    def alarm_thresholds():
        if request.method == 'GET':
            with sim.lock:
                return jsonify(sim.alarms.get_thresholds())
        data = _body('tag', 'levels')
        if data is None:
            return _bad_request('Body must be {tag, levels}')
        levels = sim.set_thresholds(data['tag'], data['levels'])
        log_operation('api', _src_ip(), 'thresholds', 'success', {'tag': data['tag'], 'levels': levels})
        return jsonify({'success': True, 'tag': data['tag'], 'levels': levels})

    # --- TRENDS ---

    @app.route('/api/trends', methods=['GET'])
    def get_trends():
        """Get trend data"""
        result = sim.trends(request.args.get('range', '1h'))
        log_operation('api', _src_ip(), 'trends', 'success', {
            'range': result['range'],
            'points': result['points']
        })
        return jsonify(result)

    # --- SYSTEM ---

    @app.route('/api/reset', methods=['POST'])
    def reset():
        """Reset to default state"""
        sim.reset()
        log_operation('api', _src_ip(), 'reset', 'success', {})
        return jsonify({'success': True})

    @app.route('/', methods=['GET'])
    def root():
        """Root endpoint - API information"""
        return jsonify({
            'service': 'WTP Operator Trainer API',
            'version': __version__,
            'endpoints': {
                'health': '/health',
                'snapshot': '/api/snapshot',
                'command': '/api/command (POST)',
                'condition': '/api/condition (POST)',
                'speed': '/api/speed (POST)',
                'equipment': '/api/equipment',
                'tags': '/api/tags',
                'tutorials': '/api/tutorials',
                'tutorial': '/api/tutorial (GET), /api/tutorial/start|next|back|finish|exit|ui-event (POST)',
                'scenarios': '/api/scenarios',
                'scenario': '/api/scenario (GET), /api/scenario/start|stop (POST)',
                'history': '/api/history, /api/history/clear (POST), /api/history/export?source=alarms|events',
                'alarms': '/api/alarms, /api/alarms/history',
                'alarm_acknowledge': '/api/alarm/acknowledge (POST)',
                'thresholds': '/api/alarms/thresholds (GET/POST)',
                'trends': '/api/trends?range=1h|8h|24h',
                'reset': '/api/reset (POST)',
                'socketio': "events: 'state:update' (server), 'command' (client)",
            }
        })

    @app.route('/health', methods=['GET'])
    def health():
        """Health check"""
        snapshot = sim.snapshot
        return jsonify({
            'status': 'ok',
            'tick': snapshot.tick,
            'speed_multiplier': snapshot.speed_multiplier,
            'scheduler_running': sim.scheduler.running,
            'active_alarms': len(snapshot.alarms),
            'active_scenario': snapshot.active_scenario,
            'tutorial_state': sim.tutorial.state,
            'trend_points': len(sim.trend_history),
        })

    # --- SOCKET.IO ---

    @socketio.on('connect')
    def handle_connect():
        emit('state:update', sim.payload())

    @socketio.on('command')
    def handle_command(data):
        if not isinstance(data, dict) or 'equipment_id' not in data or 'verb' not in data:
            return {'error': 'invalid_request', 'message': 'Body must be {equipment_id, verb, params}'}
        params = data.get('params') or {}
        if not isinstance(params, dict):
            return {'error': 'invalid_request', 'message': 'params must be an object'}
        try:
            result = sim.issue_command(data['equipment_id'], data['verb'], params)
        except SimulationError as e:
            logger.warning(f"Rejected socket command {data}: {e.code} {e.message}")
            return e.to_dict()
        return result.to_dict()

    return app, socketio
