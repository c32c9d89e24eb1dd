"""
Video Insight - Analysis Service Application
============================================
Main application entry point that configures Flask and registers blueprints.

This module:
- Creates the Flask application factory
- Injects the session registry and the analysis pipeline
- Registers the analysis blueprint under /api
- Defines JSON error handlers

Route Organization:
- /api/health                -> Health check
- /api/progress/<session_id> -> SSE progress stream
- /api/process               -> Upload + analysis

Run with:
    python -m videoinsight.app
"""

import os

from flask import Flask, jsonify
from dotenv import load_dotenv
from flask_cors import CORS

# Import blueprints
from videoinsight.routes.analysis_routes import analysis_bp, PIPELINE_KEY, REGISTRY_KEY

# Import configuration system
from videoinsight.config import get_config, apply_environment_overrides, load_runtime_config

# Import logging system
from videoinsight.logging_config import get_app_logger

from videoinsight.pipeline import AnalysisPipeline, SessionRegistry

# Load environment variables
load_dotenv()

# Initialize configuration with environment overrides
config = get_config()
apply_environment_overrides(config)

# Configure logging
logger = get_app_logger("app", log_to_file=False)


def create_app(config_override=None, registry=None, pipeline=None):
    """
    Application factory function.

    Creates and configures the Flask application with:
    - CORS support
    - Blueprint registration
    - Directory setup
    - File upload configuration

    Args:
        config_override: Optional AppConfig instance to use instead of global config
        registry: Optional SessionRegistry (a fresh one by default)
        pipeline: Optional AnalysisPipeline (built on the registry by default)

    Returns:
        Configured Flask application instance
    """
    # Use provided config or get global config
    app_config = config_override or get_config()

    app = Flask(__name__)
    CORS(app, origins=app_config.flask.cors_origins)

    # Store config in app for access in routes
    app.app_config = app_config

    # ==========================================================================
    # SHARED SERVICES
    # ==========================================================================

    if registry is None:
        registry = SessionRegistry()
    if pipeline is None:
        pipeline = AnalysisPipeline(registry=registry, config=app_config)
    app.extensions[REGISTRY_KEY] = registry
    app.extensions[PIPELINE_KEY] = pipeline

    # ==========================================================================
    # REGISTER BLUEPRINTS
    # ==========================================================================

    app.register_blueprint(analysis_bp, url_prefix='/api')

    # ==========================================================================
    # CONFIGURE DIRECTORIES AND LIMITS
    # ==========================================================================

    # Ensure all directories exist
    app_config.paths.ensure_directories()

    # Configure Flask app
    app.config['MAX_CONTENT_LENGTH'] = app_config.video.max_file_size_bytes
    app.config['UPLOAD_FOLDER'] = app_config.paths.uploads
    app.config['SECRET_KEY'] = app_config.flask.secret_key

    # Keep response keys in schema order
    app.json.sort_keys = False

    logger.info(
        "Initialized Flask app",
        extra={
            'backend': app_config.inference.backend,
            'max_workers': app_config.detection.max_workers,
        }
    )

    # ==========================================================================
    # ERROR HANDLERS
    # ==========================================================================

    @app.errorhandler(413)
    def request_entity_too_large(error):
        """Handle file too large errors."""
        max_mb = app_config.video.max_file_size_bytes // (1024 * 1024)
        return jsonify({'error': f'File too large. Maximum size is {max_mb}MB.'}), 413

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 errors."""
        return jsonify({'error': 'Resource not found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 errors."""
        logger.error(f"Internal server error: {error}")
        return jsonify({'error': 'Internal server error'}), 500

    return app


if __name__ == "__main__":
    # VIDEO_INSIGHT_CONFIG points at a saved JSON config, VIDEO_INSIGHT_PROFILE picks a preset
    runtime_config = load_runtime_config(
        config_file=os.getenv("VIDEO_INSIGHT_CONFIG"),
        profile=os.getenv("VIDEO_INSIGHT_PROFILE"),
    )
    app = create_app(runtime_config)
    flask_config = runtime_config.flask
    app.run(
        debug=flask_config.debug,
        host=flask_config.host,
        port=flask_config.port,
        threaded=True
    )
