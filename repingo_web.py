#!/usr/bin/env python3
"""
rePINGO Web - JSON API for the game library
Serves the library, the random picker and import/export to a browser front end.
"""

import argparse
import logging
import os
import threading
from typing import Optional

from flask import Flask, jsonify, request, Response

import repingo
from app.errors import (
    EmptyPoolError, EntryNotFoundError, ImportParseError,
    SelectionStateError, ValidationError,
)
from app.models import EntryForm
from app.services import LibraryService

log_level = os.getenv('REPINGO_LOG_LEVEL', 'INFO')
repingo.setup_logging(log_level)
web_logger = logging.getLogger('repingo.web')

app = Flask(__name__)

# Global library instance, created on first use
library: Optional[LibraryService] = None
library_lock = threading.Lock()
config_path = os.getenv('REPINGO_CONFIG', 'config.json')


def get_library() -> LibraryService:
    """Return the shared controller, building it from config on first use."""
    global library
    if library is None:
        library = repingo.build_library(repingo.load_config(config_path))
        web_logger.info("Library loaded (%d games)", len(library.entries))
    return library


def _error(message: str, status: int):
    return jsonify({'error': message}), status


def _json_object():
    """Return the request body as a dict, or ``None`` if it is not a JSON object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    return data if isinstance(data, dict) else None


def _library_view(lib: LibraryService) -> dict:
    selected = lib.selected
    return {
        'games': [entry.to_dict() for entry in lib.ordered()],
        'selected': selected.to_dict() if selected else None,
        'spinning': lib.is_spinning,
    }


@app.route('/api/games', methods=['GET'])
def api_list_games():
    """Return the library in display order plus the current selection."""
    with library_lock:
        return jsonify(_library_view(get_library()))


@app.route('/api/games', methods=['POST'])
def api_add_game():
    """Add a game from a JSON body with wire field names."""
    data = _json_object()
    if data is None:
        return _error('Expected a JSON object', 400)
    with library_lock:
        try:
            entry = get_library().add(EntryForm.from_dict(data))
        except ValidationError as e:
            return jsonify({'error': 'Please fill in all required fields!',
                            'fields': e.fields}), 400
    return jsonify(entry.to_dict()), 201


@app.route('/api/games/<entry_id>', methods=['GET'])
def api_get_game(entry_id):
    with library_lock:
        try:
            entry = get_library().get(entry_id)
        except EntryNotFoundError as e:
            return _error(str(e), 404)
    return jsonify(entry.to_dict())


@app.route('/api/games/<entry_id>', methods=['PUT'])
def api_update_game(entry_id):
    """Replace the editable fields of a game."""
    data = _json_object()
    if data is None:
        return _error('Expected a JSON object', 400)
    with library_lock:
        try:
            entry = get_library().edit(entry_id, EntryForm.from_dict(data))
        except EntryNotFoundError as e:
            return _error(str(e), 404)
        except ValidationError as e:
            return jsonify({'error': 'Please fill in all required fields!',
                            'fields': e.fields}), 400
    return jsonify(entry.to_dict())


@app.route('/api/games/<entry_id>', methods=['DELETE'])
def api_delete_game(entry_id):
    with library_lock:
        try:
            entry = get_library().delete(entry_id)
        except EntryNotFoundError as e:
            return _error(str(e), 404)
    return jsonify({'message': f'Deleted {entry.name}', 'id': entry.id})


@app.route('/api/games/<entry_id>/toggle-played', methods=['POST'])
def api_toggle_played(entry_id):
    with library_lock:
        try:
            entry = get_library().toggle_played(entry_id)
        except EntryNotFoundError as e:
            return _error(str(e), 404)
    return jsonify(entry.to_dict())


@app.route('/api/spin', methods=['POST'])
def api_spin():
    """Pick a random game.

    Optional JSON body: ``{"unplayed_only": true}`` to skip played games.
    """
    data = _json_object()
    if data is None:
        return _error('Expected a JSON object', 400)
    exclude_played = True if data.get('unplayed_only') else None
    with library_lock:
        lib = get_library()
        try:
            winner = lib.spin(exclude_played)
        except EmptyPoolError as e:
            return _error(str(e), 400)
        except SelectionStateError as e:
            return _error(str(e), 409)
    web_logger.info("Spin picked %s", winner.name)
    return jsonify(winner.to_dict())


@app.route('/api/selection', methods=['GET'])
def api_get_selection():
    with library_lock:
        selected = get_library().selected
    return jsonify({'selected': selected.to_dict() if selected else None})


@app.route('/api/selection', methods=['DELETE'])
def api_clear_selection():
    with library_lock:
        get_library().clear_selection()
    return jsonify({'selected': None})


@app.route('/api/stats', methods=['GET'])
def api_stats():
    with library_lock:
        return jsonify(get_library().stats())


@app.route('/api/export', methods=['GET'])
def api_export():
    """Download the library as a JSON attachment."""
    with library_lock:
        lib = get_library()
        body = lib.export_text()
        filename = lib.default_export_filename()
    return Response(
        body.encode('utf-8'),
        mimetype='application/json',
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
    )


@app.route('/api/import', methods=['POST'])
def api_import():
    """Replace the library with an uploaded export document.

    Accepts either a multipart upload in the ``file`` field or a raw JSON body.
    """
    upload = request.files.get('file')
    if upload is not None:
        raw = upload.read()
    else:
        raw = request.get_data()
    try:
        text = raw.decode('utf-8')
    except UnicodeDecodeError:
        return _error('Error importing games. Check that the file has the right format.', 400)
    with library_lock:
        try:
            count = get_library().import_text(text)
        except ImportParseError as e:
            web_logger.warning("Import rejected: %s", e)
            return jsonify({'error': 'Error importing games. Check that the file '
                                     'has the right format.', 'detail': str(e)}), 400
    return jsonify({'message': f'{count} games imported successfully!', 'count': count})


def main():
    """Main entry point for the web API"""
    global config_path
    parser = argparse.ArgumentParser(description='rePINGO Web API')
    parser.add_argument('--config', default=config_path, help='Path to config file')
    parser.add_argument('--host', default='127.0.0.1')
    parser.add_argument('--port', type=int, default=5000)
    args = parser.parse_args()

    config_path = args.config
    with library_lock:
        get_library()

    print("\n" + "="*60)
    print("🎮 rePINGO Web API is starting...")
    print("="*60)
    print(f"\n  http://{args.host}:{args.port}/api/games")
    print("\nPress Ctrl+C to stop the server")
    print("="*60 + "\n")

    try:
        app.run(host=args.host, port=args.port, debug=False)
    except KeyboardInterrupt:
        print("\n🛑 rePINGO Web API stopped\n")


if __name__ == "__main__":
    main()
