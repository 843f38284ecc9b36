"""
Media Utilities Module
======================
File validation and FFmpeg/MoviePy operations for recorded speeches.

This module is the single place that touches media files:
- Upload validation
- Duration and stream probing
- WAV extraction (PCM16 mono) for transcription
- Fixed-length audio chunking
- Downscaled analysis copies of large recordings

Every failure is raised as MediaError so callers can decide on a fallback.
"""

import os
import json
import shutil
import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from moviepy.audio.io.AudioFileClip import AudioFileClip
from moviepy.video.io.VideoFileClip import VideoFileClip

from ..config import get_config

logger = logging.getLogger(__name__)

WAV_HEADER_BYTES = 44
PCM16_MONO_BYTES_PER_SECOND = 32000

MIME_TYPES = {
    '.mp4': 'video/mp4',
    '.mov': 'video/quicktime',
    '.webm': 'video/webm',
    '.mkv': 'video/x-matroska',
    '.avi': 'video/x-msvideo',
    '.wav': 'audio/wav',
}


class MediaError(Exception):
    """A media file could not be probed, decoded or written."""


# =============================================================================
# FILE VALIDATION
# =============================================================================

def allowed_file(filename: str) -> bool:
    """Check if a file extension is allowed for recording upload."""
    allowed = get_config().media.allowed_extensions
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in allowed


def file_size_mb(filepath: str) -> float:
    return os.path.getsize(filepath) / (1024 * 1024)


def mime_type_for(filepath: str) -> str:
    return MIME_TYPES.get(Path(filepath).suffix.lower(), 'video/webm')


# =============================================================================
# PROBING
# =============================================================================

def _ffprobe(filepath: str) -> dict:
    cmd = [
        'ffprobe',
        '-v', 'quiet',
        '-print_format', 'json',
        '-show_streams',
        '-show_format',
        filepath
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=True)
        return json.loads(result.stdout)
    except (OSError, subprocess.CalledProcessError, ValueError) as e:
        raise MediaError(f"ffprobe failed for {filepath}: {str(e)}") from e


def has_audio_stream(filepath: str) -> bool:
    """Whether the container carries at least one audio stream."""
    streams = _ffprobe(filepath).get('streams', [])
    return any(stream.get('codec_type') == 'audio' for stream in streams)


def get_duration_seconds(filepath: str) -> Optional[float]:
    """
    Recording duration in seconds, or None when it cannot be determined.

    MoviePy is tried first; browser recordings (webm) often lack a duration
    header, so the container duration reported by ffprobe is the fallback.
    """
    try:
        with VideoFileClip(filepath) as clip:
            if clip.duration and clip.duration > 0:
                return float(clip.duration)
    except Exception as e:
        logger.debug(f"MoviePy could not read duration for {filepath}: {str(e)}")

    try:
        raw = _ffprobe(filepath).get('format', {}).get('duration')
        duration = float(raw) if raw is not None else 0.0
    except (MediaError, ValueError) as e:
        logger.warning(f"Unable to determine duration for {filepath}: {str(e)}")
        return None
    return duration if duration > 0 else None


def get_audio_duration_seconds(filepath: str) -> Optional[float]:
    try:
        with AudioFileClip(filepath) as clip:
            return float(clip.duration) if clip.duration else None
    except Exception as e:
        logger.warning(f"Unable to determine audio duration for {filepath}: {str(e)}")
        return None


def estimate_wav_duration_seconds(num_bytes: int) -> float:
    """Duration of a PCM16 mono 16 kHz WAV file estimated from its size."""
    return max(0, num_bytes - WAV_HEADER_BYTES) / PCM16_MONO_BYTES_PER_SECOND


# =============================================================================
# AUDIO
# =============================================================================

def extract_audio_wav(video_path: str, output_dir: Optional[str] = None) -> str:
    """
    Extract a PCM16 mono WAV track for transcription.

    An existing extraction for the same recording is reused.

    Returns:
        Path to the WAV file

    Raises:
        MediaError: If the recording has no decodable audio
    """
    config = get_config()
    out_dir = Path(output_dir) if output_dir else config.paths.audio
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"{Path(video_path).stem}-audio.wav"

    if out_path.exists() and out_path.stat().st_size > 1024:
        return str(out_path)

    try:
        with VideoFileClip(video_path) as clip:
            if clip.audio is None:
                raise MediaError(f"No audio track in {video_path}")
            clip.audio.write_audiofile(
                str(out_path),
                fps=config.transcription.sample_rate,
                nbytes=2,
                codec='pcm_s16le',
                ffmpeg_params=['-ac', '1'],
                logger=None,
            )
    except MediaError:
        raise
    except Exception as e:
        raise MediaError(f"Audio extraction failed for {video_path}: {str(e)}") from e

    logger.info(f"Extracted audio to {out_path}")
    return str(out_path)


def split_audio(audio_path: str, chunk_seconds: int, output_dir: Optional[str] = None) -> List[str]:
    """
    Split a WAV file into fixed-length chunks, in order.

    Chunk length is at least the configured minimum. Existing chunks for the
    same file are reused.
    """
    config = get_config()
    safe_chunk = max(config.transcription.min_chunk_seconds, int(chunk_seconds))
    base = Path(audio_path).stem
    chunks_dir = (Path(output_dir) if output_dir else config.paths.chunks) / base
    chunks_dir.mkdir(parents=True, exist_ok=True)

    existing = sorted(str(p) for p in chunks_dir.glob('*.wav'))
    if existing:
        return existing

    cmd = [
        'ffmpeg',
        '-y',
        '-i', audio_path,
        '-vn',
        '-acodec', 'pcm_s16le',
        '-ac', '1',
        '-ar', str(config.transcription.sample_rate),
        '-f', 'segment',
        '-segment_time', str(safe_chunk),
        '-reset_timestamps', '1',
        str(chunks_dir / f"{base}-chunk-%03d.wav")
    ]
    try:
        subprocess.run(cmd, capture_output=True, text=True, check=True)
    except (OSError, subprocess.CalledProcessError) as e:
        shutil.rmtree(chunks_dir, ignore_errors=True)
        raise MediaError(f"Audio chunking failed for {audio_path}: {str(e)}") from e

    return sorted(str(p) for p in chunks_dir.glob('*.wav'))


# =============================================================================
# VIDEO
# =============================================================================

def compress_video(input_path: str, output_dir: Optional[str] = None) -> str:
    """
    Write a downscaled, low-bitrate copy of a recording for the judge call.

    A compressed copy newer than its source is reused.

    Returns:
        Path to the compressed mp4

    Raises:
        MediaError: If ffmpeg fails
    """
    media = get_config().media
    out_dir = Path(output_dir) if output_dir else get_config().paths.transcoded
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"{Path(input_path).stem}-compressed.mp4"

    if out_path.exists() and out_path.stat().st_mtime >= os.path.getmtime(input_path):
        return str(out_path)

    cmd = [
        'ffmpeg',
        '-y',
        '-i', input_path,
        '-vf', f"scale=-2:{media.target_height},fps={media.target_fps}",
        '-c:v', media.video_codec,
        '-preset', media.encoding_preset,
        '-crf', str(media.crf),
        '-pix_fmt', 'yuv420p',
        '-c:a', media.audio_codec,
        '-b:a', media.audio_bitrate,
        '-ac', '1',
        '-movflags', '+faststart',
        str(out_path)
    ]
    logger.info(f"Compressing recording for analysis: {Path(input_path).name}")
    try:
        subprocess.run(cmd, capture_output=True, text=True, check=True)
    except (OSError, subprocess.CalledProcessError) as e:
        raise MediaError(f"Video compression failed for {input_path}: {str(e)}") from e

    return str(out_path)
