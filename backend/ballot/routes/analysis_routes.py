"""
Analysis Routes Module
======================
REST API endpoints for judging recorded speeches.

Endpoints:
- POST /api/analysis/upload   - Upload a recording
- POST /api/analysis/analyze  - Judge an uploaded recording
- GET  /api/analysis/status   - Gateway and model configuration
"""

from flask import Blueprint, request, jsonify, current_app
from werkzeug.utils import secure_filename
import os
import traceback

from ..logging_config import get_ballot_logger, log_pipeline_decision
from ..models import AnalysisRequest, parse_number
from ..utils.media_utils import allowed_file

# Configure logging
logger = get_ballot_logger("routes.analysis", log_to_file=False)

# Create blueprint
analysis_bp = Blueprint('analysis', __name__)


@analysis_bp.route('/upload', methods=['POST'])
def upload_recording():
    """
    Save an uploaded recording (multipart field "video") to the uploads folder.
    """
    if 'video' not in request.files:
        return jsonify({'error': 'No video file provided'}), 400

    file = request.files['video']

    if file.filename == '':
        return jsonify({'error': 'No selected file'}), 400

    if not allowed_file(file.filename):
        return jsonify({'error': 'Invalid file type'}), 400

    filename = secure_filename(file.filename)
    upload_dir = current_app.app_config.paths.uploads
    upload_dir.mkdir(parents=True, exist_ok=True)
    file.save(os.path.join(upload_dir, filename))

    logger.info(f"Uploaded recording: {filename}")
    return jsonify({'message': 'Recording uploaded successfully', 'filename': filename}), 200


@analysis_bp.route('/analyze', methods=['POST'])
def analyze_recording():
    """
    Judge an uploaded recording.

    Request JSON:
        {
            "filename": "speech.webm",     # Required: uploaded recording filename
            "theme": "Courage",            # Optional: round theme
            "quote": "...",                # Optional: prompt quote
            "durationSecondsHint": 312.4   # Optional: client-measured duration
        }

    Response JSON:
        AnalysisResponse with camelCase keys (success, transcript, analysis,
        error, errorDetails, transcriptIntegrity, parseMetrics, analysisWarning)
    """
    data = request.json or {}
    filename = data.get('filename')

    if not filename:
        return jsonify({'error': 'No filename provided'}), 400

    video_path = os.path.join(current_app.app_config.paths.uploads, secure_filename(filename))
    if not os.path.exists(video_path):
        return jsonify({'error': 'Recording not found'}), 404

    analysis_request = AnalysisRequest(
        video_path=video_path,
        theme=str(data.get('theme') or ""),
        quote=str(data.get('quote') or ""),
        duration_seconds_hint=parse_number(data.get('durationSecondsHint')),
    )

    try:
        response = current_app.pipeline.run(analysis_request)
    except Exception as e:
        logger.error(f"Analysis error: {str(e)}")
        logger.error(traceback.format_exc())
        return jsonify({'success': False, 'error': f'Analysis error: {str(e)}'}), 500

    log_pipeline_decision(
        "analysis_complete",
        {
            'video_filename': analysis_request.video_filename,
            'success': response.success,
            'overall_score': response.analysis.overall_score if response.analysis else None,
        },
    )
    return jsonify(response.to_dict()), 200


@analysis_bp.route('/status', methods=['GET'])
def analysis_status():
    """Report whether the judge model is configured."""
    config = current_app.app_config
    pipeline = current_app.pipeline
    return jsonify({
        'configured': bool(getattr(pipeline.gateway, 'configured', False)),
        'judge_model': config.gemini.model_name,
        'transcribe_models': [config.transcription.model_name, config.transcription.fallback_model_name],
        'include_video': config.media.include_video,
        'max_video_seconds': config.media.max_video_seconds,
        'tracked_transcripts': len(pipeline.integrity_tracker),
    }), 200
