"""
Ballot - Impromptu Speech Judge
===============================
Flask entry point for the speech judge service.

This module:
- Builds the app through create_app()
- Creates the process-wide SpeechJudgePipeline (gateway + integrity tracker)
- Registers the analysis blueprint
- Defines core routes (/health) and JSON error handlers

Route Organization:
- /health               -> Health check
- /api/analysis/*       -> Upload, analyze, status
"""

from flask import Flask, jsonify
from dotenv import load_dotenv
from flask_cors import CORS

from ballot.config import get_config, apply_environment_overrides
from ballot.logging_config import get_ballot_logger
from ballot.routes.analysis_routes import analysis_bp
from ballot.pipeline import SpeechJudgePipeline

load_dotenv()

config = get_config()
apply_environment_overrides(config)

logger = get_ballot_logger("app", log_to_file=False)


def create_app(config_override=None, pipeline=None):
    """
    Build the judge service.

    Args:
        config_override: AppConfig to use instead of the global one
        pipeline: Optional SpeechJudgePipeline (e.g. with a stub gateway)

    Returns:
        Flask app with the analysis blueprint registered
    """
    app_config = config_override or get_config()

    app = Flask(__name__)
    CORS(app, origins=app_config.flask.cors_origins)

    # Store config and the shared pipeline for access in routes
    app.app_config = app_config
    app.pipeline = pipeline or SpeechJudgePipeline(config=app_config)

    # ==========================================================================
    # REGISTER BLUEPRINTS
    # ==========================================================================

    app.register_blueprint(analysis_bp, url_prefix='/api/analysis')

    # ==========================================================================
    # DIRECTORIES AND UPLOAD LIMITS
    # ==========================================================================

    app_config.paths.ensure_directories()

    app.config['MAX_CONTENT_LENGTH'] = app_config.media.max_file_size_bytes
    app.config['UPLOAD_FOLDER'] = app_config.paths.uploads
    app.config['SECRET_KEY'] = app_config.flask.secret_key

    logger.info(
        "Initialized Flask app",
        extra={
            'judge_model': app_config.gemini.model_name,
            'transcribe_model': app_config.transcription.model_name,
        }
    )

    # ==========================================================================
    # HEALTH
    # ==========================================================================

    @app.route('/health', methods=['GET'])
    def health_check():
        """Liveness probe with the configured judge model."""
        return {
            'status': 'healthy',
            'judge_model': app_config.gemini.model_name,
            'version': '1.0.0'
        }, 200

    # ==========================================================================
    # JSON ERRORS
    # ==========================================================================

    @app.errorhandler(413)
    def request_entity_too_large(error):
        """Uploads over max_file_size_bytes."""
        return jsonify({
            'error': f'File is too large. Maximum size is {app_config.media.max_file_size_bytes / (1024*1024):.0f}MB.'
        }), 413

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Resource not found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        logger.error(f"Internal server error: {error}")
        return jsonify({'error': 'Internal server error'}), 500

    return app


if __name__ == '__main__':
    app = create_app()
    flask_config = get_config().flask
    app.run(
        debug=flask_config.debug,
        host=flask_config.host,
        port=flask_config.port
    )
