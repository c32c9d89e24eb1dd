"""
Analysis Routes Module
======================
REST and SSE endpoints for video analysis.

Endpoints:
- GET  /api/health                 - Health check
- GET  /api/progress/<session_id>  - Server-Sent Events progress stream
- POST /api/process                - Upload a video and run the pipeline

The session registry and the pipeline are read from app.extensions, where
create_app() stores them.
"""

import json
import os
import traceback
import uuid

from flask import Blueprint, Response, current_app, jsonify, request, stream_with_context
from werkzeug.utils import secure_filename

from .. import __version__
from ..exceptions import InputValidationError, StageExecutionError
from ..logging_config import get_app_logger
from ..models import utc_timestamp
from ..pipeline import AnalysisRequest
from ..utils.video_utils import ensure_dir, remove_path

# Configure logging
logger = get_app_logger("routes")

# Create blueprint
analysis_bp = Blueprint('analysis', __name__)

REGISTRY_KEY = 'session_registry'
PIPELINE_KEY = 'analysis_pipeline'


def _registry():
    return current_app.extensions[REGISTRY_KEY]


def _pipeline():
    return current_app.extensions[PIPELINE_KEY]


def _format_sse(message: dict) -> str:
    return f"data: {json.dumps(message)}\n\n"


@analysis_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint for monitoring."""
    return jsonify({
        'status': 'ok',
        'timestamp': utc_timestamp(),
        'version': __version__,
    }), 200


@analysis_bp.route('/progress/<session_id>', methods=['GET'])
def progress_stream(session_id):
    """
    Stream progress events for one session.

    The first event is {"type": "connected"}; progress events follow until
    processing completes or the client disconnects. A comment line is sent
    as keep-alive when no event arrives for flask.sse_keepalive_seconds.
    """
    registry = _registry()
    channel = registry.subscribe(session_id)
    keepalive = current_app.app_config.flask.sse_keepalive_seconds

    def generate():
        try:
            for message in channel.listen(timeout=keepalive):
                if message is None:
                    yield ": keep-alive\n\n"
                else:
                    yield _format_sse(message)
        finally:
            registry.unsubscribe(session_id, channel)

    return Response(
        stream_with_context(generate()),
        mimetype='text/event-stream',
        headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'},
    )


def _save_upload(upload, upload_dir) -> str:
    """Save an uploaded file under a random name, keeping its extension."""
    ensure_dir(upload_dir)
    ext = secure_filename(os.path.splitext(upload.filename or '')[1]).lower()
    filename = f"{uuid.uuid4().hex}.{ext}" if ext else uuid.uuid4().hex
    filepath = os.path.join(str(upload_dir), filename)
    upload.save(filepath)
    return filepath


@analysis_bp.route('/process', methods=['POST'])
def process_video():
    """
    Run the full analysis on an uploaded video.

    Multipart form:
        video:     The MP4 file
        apiKey:    Inference API key, or "demo"/"test"
        sessionId: Optional session id of an open progress stream
        demoMode:  "true" to force demo mode

    Response JSON:
        The AnalysisResult schema, or {"error": ..., "details"?: ...}
    """
    app_config = current_app.app_config

    # Reading the form may raise 413 before any file is saved
    upload = request.files.get('video')
    form = request.form

    video_path = None
    try:
        display_name = ''
        size_bytes = None
        if upload is not None and upload.filename:
            video_path = _save_upload(upload, app_config.paths.uploads)
            display_name = upload.filename
            size_bytes = os.path.getsize(video_path)

        analysis_request = AnalysisRequest(
            video_path=video_path,
            original_filename=display_name,
            mime_type=upload.mimetype if upload is not None else None,
            size_bytes=size_bytes,
            credential=form.get('apiKey'),
            session_id=form.get('sessionId') or None,
            demo=form.get('demoMode') == 'true',
        )

        logger.info(
            "Processing request received",
            extra={'video_filename': display_name, 'session_id': analysis_request.session_id or ''}
        )

        result = _pipeline().run(analysis_request)
        return jsonify(result.to_dict()), 200

    except InputValidationError as e:
        return jsonify({'error': e.message}), 400

    except StageExecutionError as e:
        body = {'error': e.message or 'An error occurred during processing'}
        if app_config.flask.expose_error_details:
            body['details'] = traceback.format_exc()
        return jsonify(body), 500

    except Exception as e:
        logger.error(f"Error processing video: {str(e)}")
        logger.error(traceback.format_exc())
        if video_path:
            try:
                remove_path(video_path)
            except OSError as cleanup_error:
                logger.error(f"Cleanup error: {cleanup_error}")
        body = {'error': str(e) or 'An error occurred during processing'}
        if app_config.flask.expose_error_details:
            body['details'] = traceback.format_exc()
        return jsonify(body), 500
