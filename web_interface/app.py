"""
Flask web interface for the Handler Editor.

Exposes one editing session over a REST API and pushes preview and session
updates to connected clients over Socket.IO.
"""

from flask import Flask, request, jsonify
from functools import wraps
from flask_cors import CORS
from flask_socketio import SocketIO
from typing import Any, Dict, Optional
import logging
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from handler_editor_core.config import EditorSettings
from handler_editor_core.canvas import EMPTY_CANVAS_MESSAGE
from handler_editor_core.editor import HandlerEditor
from handler_editor_core.editor_session import EVENT_CHANGED, EVENT_LOADED, EVENT_SAVED, EVENT_SELECTION
from handler_editor_core.exceptions import (
    DuplicateNodeIdError, GeneratorError, HandlerEditorError, HandlerStoreError,
    UnknownNodeTypeError, UnsupportedTargetError,
)
from handler_editor_core.models import node_from_dict, node_to_dict, value_from_plain
from handler_editor_core.preview import PreviewState
from handler_editor_core.targets import FRAMEWORK_MAP, LANGUAGES

logger = logging.getLogger(__name__)


def _ok(data: Any = None, status: int = 200):
    return jsonify({'success': True, 'data': data}), status


def _fail(error: Exception, status: int):
    body: Dict[str, Any] = {'success': False, 'error': str(error)}
    details = getattr(error, 'details', None)
    if details:
        body['details'] = details
    return jsonify(body), status


def _error_status(error: HandlerEditorError) -> int:
    if isinstance(error, (UnknownNodeTypeError, UnsupportedTargetError, DuplicateNodeIdError)):
        return 400
    if isinstance(error, GeneratorError):
        return 502
    return 500


def create_app(settings: Optional[EditorSettings] = None,
               editor: Optional[HandlerEditor] = None):
    """Build the Flask app and its Socket.IO server around one editor."""
    settings = settings or (editor.settings if editor is not None else EditorSettings.from_env())
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    editor = editor or HandlerEditor.from_settings(settings)

    app = Flask(__name__)
    app.config['SECRET_KEY'] = os.environ.get('HANDLER_EDITOR_SECRET_KEY', 'handler-editor-secret-key')
    CORS(app)
    socketio = SocketIO(app, cors_allowed_origins="*", async_mode='threading')
    app.extensions['handler_editor'] = editor

    session = editor.session

    def session_state() -> Dict[str, Any]:
        return {
            'docId': session.doc_id,
            'name': session.handler_name,
            'dirty': session.dirty,
            'revision': session.revision,
            'selectedId': session.selected_id,
            'saving': editor.saver.saving,
            'body': [node_to_dict(node) for node in session.body],
            'rows': [row.to_dict() for row in editor.canvas.rows()],
            'emptyMessage': EMPTY_CANVAS_MESSAGE if editor.canvas.empty else None,
        }

    def on_session_event(event: str):
        if event in (EVENT_LOADED, EVENT_CHANGED, EVENT_SAVED):
            socketio.emit('session_changed', {
                'event': event, 'dirty': session.dirty, 'revision': session.revision,
            })
        elif event == EVENT_SELECTION:
            socketio.emit('selection_changed', {'selectedId': session.selected_id})

    def on_preview_update(state: PreviewState):
        payload = state.to_dict()
        payload['source'] = state.source
        socketio.emit('preview_updated', payload)

    session.add_listener(on_session_event)
    editor.add_preview_listener(on_preview_update)

    def requires_handler(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if not session.loaded:
                return _fail(HandlerStoreError("No handler is loaded"), 409)
            return view(*args, **kwargs)
        return wrapper

    @app.errorhandler(HandlerEditorError)
    def handle_editor_error(e):
        logger.warning(f"{request.method} {request.path} failed: {e}")
        return _fail(e, _error_status(e))

    # Handler documents

    @app.route('/api/handlers/load', methods=['POST'])
    def load_handler():
        """Open a handler document for editing."""
        data = request.get_json() or {}
        doc_id = data.get('docId')
        if not doc_id:
            return _fail(ValueError("docId is required"), 400)
        try:
            editor.open(doc_id)
        except HandlerStoreError as e:
            return _fail(e, 404)
        return _ok(session_state())

    @app.route('/api/session', methods=['GET'])
    def get_session():
        """Get the current tree, selection and dirty flag."""
        return _ok(session_state())

    @app.route('/api/handlers/save', methods=['POST'])
    @requires_handler
    def save_handler():
        """Save the handler now."""
        completed = editor.save()
        return _ok({'saved': completed, 'deferred': not completed, 'dirty': session.dirty})

    # Palette and tree edits

    @app.route('/api/palette', methods=['GET'])
    def get_palette():
        """Get the palette, optionally filtered by a search query and tier."""
        query = request.args.get('q', '')
        tier = request.args.get('tier', type=int)
        if query or tier is not None:
            return _ok([d.to_dict() for d in editor.palette.search_nodes(query, tier)])
        return _ok(editor.palette.export_palette())

    @app.route('/api/nodes', methods=['POST'])
    @requires_handler
    def insert_node():
        """Insert a palette node (``type``) or a serialized subtree (``node``)."""
        data = request.get_json() or {}
        parent_id = data.get('parentId')
        before = session.revision
        if data.get('node') is not None:
            node = node_from_dict(data['node'])
            if session.insert(parent_id, node, data.get('index')):
                session.select(node.id)
        else:
            node = editor.canvas.add_from_palette(data.get('type', ''), parent_id)
        inserted = session.revision != before
        return _ok({'node': node_to_dict(node), 'inserted': inserted}, 201 if inserted else 200)

    @app.route('/api/nodes/<node_id>', methods=['DELETE'])
    @requires_handler
    def delete_node(node_id):
        """Remove a node and its subtree."""
        return _ok({'removed': session.remove(node_id)})

    @app.route('/api/nodes/<node_id>', methods=['PATCH'])
    @requires_handler
    def update_node(node_id):
        """Replace one property of a node."""
        data = request.get_json() or {}
        if 'key' not in data:
            return _fail(ValueError("key is required"), 400)
        changed = session.update_property(node_id, data['key'], value_from_plain(data.get('value')))
        return _ok({'updated': changed})

    @app.route('/api/selection', methods=['POST'])
    def select_node():
        """Focus a node, or clear the selection with a null id."""
        data = request.get_json() or {}
        node_id = data.get('nodeId')
        if node_id is None:
            session.clear_selection()
            return _ok({'selectedId': None})
        session.select(node_id)
        return _ok({'selectedId': session.selected_id})

    @app.route('/api/selection', methods=['DELETE'])
    def delete_selection():
        """Delete the focused node."""
        return _ok({'removed': session.delete_selected()})

    # Preview

    @app.route('/api/preview', methods=['GET'])
    def get_preview():
        state = editor.preview.state()
        payload = state.to_dict()
        payload['source'] = state.source
        return _ok(payload)

    @app.route('/api/preview/targets', methods=['GET'])
    def get_targets():
        return _ok({'languages': LANGUAGES, 'frameworks': FRAMEWORK_MAP})

    @app.route('/api/preview/target', methods=['POST'])
    def set_target():
        """Switch the preview language and/or framework."""
        data = request.get_json() or {}
        current = editor.preview.target
        target = editor.set_target(data.get('language', current.language), data.get('framework'))
        return _ok(target.to_dict())

    @app.route('/api/preview/file', methods=['POST'])
    def select_preview_file():
        data = request.get_json() or {}
        if not editor.preview.select_file(data.get('name', '')):
            return _fail(LookupError(f"No preview file named {data.get('name')!r}"), 404)
        return _ok({'selectedFile': data['name']})

    @app.route('/api/preview/retry', methods=['POST'])
    def retry_preview():
        editor.preview.retry()
        return _ok({'scheduled': True})

    # Generation and notifications

    @app.route('/api/generate', methods=['POST'])
    def generate_project():
        """Generate the whole project for the current target."""
        data = request.get_json() or {}
        output_dir = data.get('outputDir')
        if not output_dir:
            return _fail(ValueError("outputDir is required"), 400)
        result = editor.generate_project(output_dir)
        return _ok(result.to_dict())

    @app.route('/api/notifications', methods=['GET'])
    def get_notifications():
        return _ok([toast.to_dict() for toast in editor.notifications.active()])

    @app.route('/api/notifications/<toast_id>', methods=['DELETE'])
    def dismiss_notification(toast_id):
        return _ok({'removed': editor.notifications.remove(toast_id)})

    @app.route('/api/settings', methods=['GET'])
    def get_settings():
        return _ok(editor.settings.to_dict())

    app.extensions['handler_editor_socketio'] = socketio
    return app


if __name__ == '__main__':
    app = create_app()
    socketio = app.extensions['handler_editor_socketio']
    host = os.environ.get('HANDLER_EDITOR_HOST', '127.0.0.1')
    port = int(os.environ.get('HANDLER_EDITOR_PORT', '5002'))
    use_reloader = os.environ.get('HANDLER_EDITOR_RELOADER', '0') == '1'

    print("Starting Handler Editor Web Interface...")
    print(f"Access the interface at: http://localhost:{port}")
    try:
        socketio.run(app, host=host, port=port, use_reloader=use_reloader, allow_unsafe_werkzeug=True)
    finally:
        app.extensions['handler_editor'].close()
