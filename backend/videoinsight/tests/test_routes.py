"""
HTTP Route Tests
================
Drives the Flask app through its test client: health check, SSE progress
stream and the multipart processing endpoint.
"""

import io
import json
import os
import sys
import tempfile
from pathlib import Path
from unittest.mock import Mock

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from videoinsight.app import create_app
from videoinsight.config import AppConfig, PathConfig
from videoinsight.exceptions import StageExecutionError
from videoinsight.models import ProgressEvent
from videoinsight.pipeline import SessionRegistry


def create_test_app(base_dir, pipeline=None):
    config = AppConfig(paths=PathConfig(base_dir=Path(base_dir)))
    config.demo.step_delay_seconds = 0
    config.flask.sse_keepalive_seconds = 0.05
    registry = SessionRegistry()
    app = create_app(config_override=config, registry=registry, pipeline=pipeline)
    app.config['TESTING'] = True
    return app, registry


def video_payload(filename='clip.mp4', content_type='video/mp4', content=b"\x00\x00\x00\x18ftypmp42"):
    return (io.BytesIO(content), filename, content_type)


def parse_sse(body):
    """Decode the data events of an SSE body, ignoring comment lines."""
    events = []
    for block in body.split("\n\n"):
        if block.startswith("data: "):
            events.append(json.loads(block[len("data: "):]))
    return events


def test_health_check():
    """Test the health endpoint."""
    with tempfile.TemporaryDirectory() as tmp:
        app, _ = create_test_app(tmp)
        response = app.test_client().get('/api/health')

        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'ok'
        assert data['timestamp'].endswith('Z')
        assert 'version' in data

        print("[PASS] Health check test passed")


def test_progress_stream_connected_then_events():
    """Test that the SSE stream starts with the connected event."""
    with tempfile.TemporaryDirectory() as tmp:
        app, registry = create_test_app(tmp)
        response = app.test_client().get('/api/progress/session_42')

        assert response.status_code == 200
        assert response.mimetype == 'text/event-stream'
        assert response.headers['Cache-Control'] == 'no-cache'
        assert "session_42" in registry

        registry.push("session_42", ProgressEvent(step=0, message="Processing video: a.mp4", progress=5))
        registry.close("session_42")

        events = parse_sse(response.get_data(as_text=True))
        assert events[0] == {'type': 'connected'}
        assert events[1] == {'type': 'progress', 'step': 0, 'message': 'Processing video: a.mp4', 'progress': 5}

        print("[PASS] SSE progress stream test passed")


def test_process_demo_mode():
    """Test the demo path end to end over HTTP."""
    with tempfile.TemporaryDirectory() as tmp:
        app, _ = create_test_app(tmp)
        response = app.test_client().post(
            '/api/process',
            data={'video': video_payload(), 'apiKey': 'demo', 'sessionId': 'session_demo'},
            content_type='multipart/form-data',
        )

        assert response.status_code == 200
        data = response.get_json()
        assert list(data.keys()) == [
            'sessionId', 'metadata', 'transcript', 'sentiment', 'objects_detected', 'qa_pairs'
        ]
        assert data['sessionId'] == 'session_demo'
        assert data['metadata']['demoMode'] is True
        assert data['metadata']['videoFile'] == 'clip.mp4'
        assert list((Path(tmp) / 'uploads').iterdir()) == []

        print("[PASS] Demo process test passed")


def test_process_demo_flag():
    """Test that demoMode=true bypasses credential checks."""
    with tempfile.TemporaryDirectory() as tmp:
        app, _ = create_test_app(tmp)
        response = app.test_client().post(
            '/api/process',
            data={'video': video_payload(), 'demoMode': 'true'},
            content_type='multipart/form-data',
        )

        assert response.status_code == 200
        assert response.get_json()['metadata']['demoMode'] is True

        print("[PASS] Demo flag process test passed")


def test_process_keeps_original_filename():
    """Test that non-ASCII names and spaces are accepted and reported unchanged."""
    with tempfile.TemporaryDirectory() as tmp:
        app, _ = create_test_app(tmp)
        client = app.test_client()

        for filename in ('日本の動画.mp4', 'my clip.mp4'):
            response = client.post(
                '/api/process',
                data={'video': video_payload(filename=filename), 'apiKey': 'demo'},
                content_type='multipart/form-data',
            )

            assert response.status_code == 200, response.get_json()
            assert response.get_json()['metadata']['videoFile'] == filename

        assert list((Path(tmp) / 'uploads').iterdir()) == []

        print("[PASS] Original filename test passed")


def test_process_validation_errors():
    """Test 400 responses for rejected input."""
    with tempfile.TemporaryDirectory() as tmp:
        app, _ = create_test_app(tmp)
        client = app.test_client()

        cases = [
            ({'apiKey': 'demo'}, "No video file uploaded"),
            ({'video': video_payload('clip.mov', 'video/quicktime'), 'apiKey': 'demo'},
             "Only MP4 files are allowed"),
            ({'video': video_payload(), 'apiKey': 'bogus'},
             'Invalid OpenAI API key. Use "demo" for demo mode without API calls.'),
            ({'video': video_payload()},
             'Invalid OpenAI API key. Use "demo" for demo mode without API calls.'),
        ]

        for data, expected in cases:
            response = client.post('/api/process', data=data, content_type='multipart/form-data')
            assert response.status_code == 400, data
            assert response.get_json() == {'error': expected}

        assert list((Path(tmp) / 'uploads').iterdir()) == []

        print("[PASS] Validation error response test passed")


def test_process_file_too_large():
    """Test the 413 response for an oversized upload."""
    with tempfile.TemporaryDirectory() as tmp:
        app, _ = create_test_app(tmp)
        app.config['MAX_CONTENT_LENGTH'] = 1024

        response = app.test_client().post(
            '/api/process',
            data={'video': video_payload(content=b"\x00" * 4096), 'apiKey': 'demo'},
            content_type='multipart/form-data',
        )

        assert response.status_code == 413
        assert response.get_json()['error'].startswith("File too large")

        print("[PASS] File too large test passed")


def test_process_stage_failure():
    """Test the 500 response when a stage fails."""
    with tempfile.TemporaryDirectory() as tmp:
        pipeline = Mock()
        pipeline.run.side_effect = StageExecutionError("transcription", "Transcription service unavailable")
        app, _ = create_test_app(tmp, pipeline=pipeline)

        response = app.test_client().post(
            '/api/process',
            data={'video': video_payload(), 'apiKey': 'sk-test', 'sessionId': 'session_x'},
            content_type='multipart/form-data',
        )

        assert response.status_code == 500
        assert response.get_json() == {'error': 'Transcription service unavailable'}
        request = pipeline.run.call_args.args[0]
        assert request.credential == 'sk-test'
        assert request.session_id == 'session_x'
        assert request.mime_type == 'video/mp4'
        assert request.original_filename == 'clip.mp4'

        print("[PASS] Stage failure response test passed")


def test_unknown_route_returns_json_404():
    """Test the JSON 404 handler."""
    with tempfile.TemporaryDirectory() as tmp:
        app, _ = create_test_app(tmp)
        response = app.test_client().get('/api/unknown')

        assert response.status_code == 404
        assert response.get_json() == {'error': 'Resource not found'}

        print("[PASS] 404 handler test passed")


def run_all_tests():
    """Run all route tests."""
    print("\n" + "="*60)
    print("HTTP ROUTE TESTS")
    print("="*60 + "\n")

    test_health_check()
    test_progress_stream_connected_then_events()
    test_process_demo_mode()
    test_process_demo_flag()
    test_process_keeps_original_filename()
    test_process_validation_errors()
    test_process_file_too_large()
    test_process_stage_failure()
    test_unknown_route_returns_json_404()

    print("\n" + "="*60)
    print("ALL ROUTE TESTS PASSED")
    print("="*60 + "\n")


if __name__ == "__main__":
    run_all_tests()
