"""
Video Utilities Module
======================
Canonical implementation of all media-related utility functions.
This module is the single source of truth for:
- Upload validation helpers (extension, MIME type)
- Duration probing (moviepy)
- Audio and frame extraction (ffmpeg)
- Working directory housekeeping

All other modules should import from here rather than defining their own versions.
"""

import base64
import os
import shutil
import subprocess
import logging
from pathlib import Path
from typing import List, Optional, Union

from moviepy.video.io.VideoFileClip import VideoFileClip

from ..config import MediaConfig, VideoConfig, get_config
from ..exceptions import MediaDecodeError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


# =============================================================================
# FILE VALIDATION
# =============================================================================

def allowed_file(filename: str, video_config: Optional[VideoConfig] = None) -> bool:
    """
    Check if a file extension is allowed for video upload.

    Args:
        filename: The name of the file to check
        video_config: Upload settings (defaults to the global config)

    Returns:
        True if the file extension is in the allowed set, False otherwise
    """
    allowed = (video_config or get_config().video).allowed_extensions
    return bool(filename) and '.' in filename and filename.rsplit('.', 1)[1].lower() in allowed


def allowed_mime_type(mime_type: Optional[str], video_config: Optional[VideoConfig] = None) -> bool:
    """Check if a declared MIME type is accepted for video upload."""
    if not mime_type:
        return False
    allowed = (video_config or get_config().video).allowed_mime_types
    return mime_type.split(';', 1)[0].strip().lower() in allowed


# =============================================================================
# DIRECTORY HOUSEKEEPING
# =============================================================================

def ensure_dir(dir_path: PathLike) -> Path:
    """Create a directory (and parents) if it doesn't exist."""
    path = Path(dir_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def remove_path(path: Optional[PathLike]) -> bool:
    """
    Remove a file or a directory tree if it exists.

    Returns:
        True if something was removed, False if the path did not exist
    """
    if not path:
        return False
    target = Path(path)
    if target.is_dir():
        shutil.rmtree(target)
        return True
    if target.exists():
        target.unlink()
        return True
    return False


def list_files(dir_path: PathLike, extension: str = '') -> List[str]:
    """Return the sorted paths of files in a directory, optionally filtered by extension."""
    directory = Path(dir_path)
    if not directory.exists():
        return []
    return sorted(
        str(p) for p in directory.iterdir()
        if p.is_file() and (not extension or p.name.endswith(extension))
    )


def image_to_base64(image_path: PathLike) -> str:
    """Read an image file and return its base64 encoding."""
    with open(image_path, 'rb') as f:
        return base64.b64encode(f.read()).decode('ascii')


# =============================================================================
# MEDIA DECODING
# =============================================================================

def probe_duration(filepath: PathLike) -> float:
    """
    Get the duration of a video file in seconds.

    Raises:
        MediaDecodeError: If the video cannot be read or is corrupted
    """
    try:
        with VideoFileClip(str(filepath)) as clip:
            return float(clip.duration)
    except Exception as e:
        logger.error(f"Error probing duration for {filepath}: {str(e)}")
        raise MediaDecodeError(f"Could not read video duration: {str(e)}") from e


def _run_ffmpeg(cmd: List[str], action: str) -> None:
    """Run an ffmpeg command, raising MediaDecodeError on failure."""
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        raise MediaDecodeError(f"Error {action}: could not run {cmd[0]}: {e}") from e

    if result.returncode != 0:
        stderr_tail = (result.stderr or '').strip().splitlines()[-3:]
        logger.error(f"ffmpeg failed while {action}: {' | '.join(stderr_tail)}")
        raise MediaDecodeError(f"Error {action}: ffmpeg exited with code {result.returncode}")


def extract_audio(
    video_path: PathLike,
    output_path: PathLike,
    media_config: Optional[MediaConfig] = None
) -> str:
    """
    Extract the audio track as mono 16 kHz signed 16-bit PCM WAV.

    Returns:
        Path to the extracted audio file
    """
    cfg = media_config or get_config().media
    ensure_dir(Path(output_path).parent)

    cmd = [
        cfg.ffmpeg_binary,
        '-y',
        '-i', str(video_path),
        '-vn',
        '-acodec', cfg.audio_codec,
        '-ar', str(cfg.audio_sample_rate),
        '-ac', str(cfg.audio_channels),
        '-f', 'wav',
        str(output_path)
    ]
    _run_ffmpeg(cmd, "extracting audio")

    logger.info(f"Audio extraction completed: {output_path}")
    return str(output_path)


def extract_frames(
    video_path: PathLike,
    output_dir: PathLike,
    fps: Optional[float] = None,
    media_config: Optional[MediaConfig] = None
) -> List[str]:
    """
    Extract frames as JPEG images at a fixed rate.

    Returns:
        Frame paths in ordinal order (frame-0001.jpg, frame-0002.jpg, ...)
    """
    cfg = media_config or get_config().media
    rate = fps if fps is not None else cfg.frames_per_second
    ensure_dir(output_dir)

    cmd = [
        cfg.ffmpeg_binary,
        '-y',
        '-i', str(video_path),
        '-vf', f'fps={rate:g}',
        '-q:v', str(cfg.frame_quality),
        str(Path(output_dir) / cfg.frame_pattern)
    ]
    _run_ffmpeg(cmd, "extracting frames")

    frame_paths = list_files(output_dir, '.jpg')
    logger.info(f"Frame extraction completed: {len(frame_paths)} frames at {rate:g} fps")
    return frame_paths


class MediaProcessor:
    """
    Media decoding collaborator used by the probe, audio and frame stages.

    Thin wrapper over the module functions so the orchestrator can swap it
    for a fake in tests.
    """

    def __init__(self, media_config: Optional[MediaConfig] = None):
        self.media_config = media_config or get_config().media

    def probe_duration(self, video_path: PathLike) -> float:
        return probe_duration(video_path)

    def extract_audio(self, video_path: PathLike, output_path: PathLike) -> str:
        return extract_audio(video_path, output_path, self.media_config)

    def extract_frames(self, video_path: PathLike, output_dir: PathLike, fps: float) -> List[str]:
        return extract_frames(video_path, output_dir, fps, self.media_config)
