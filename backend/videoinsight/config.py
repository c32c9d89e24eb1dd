"""
Configuration Management Module
===============================
Centralized configuration system for the video insight pipeline.

This module provides:
- Type-safe configuration via dataclasses
- Environment variable overrides
- Default values with documentation

Usage:
    from videoinsight.config import get_config
    config = get_config()

    stride_threshold = config.detection.full_sampling_max_frames
    backend = config.inference.backend
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Literal
import os
import json
import logging

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================

@dataclass
class PathConfig:
    """Configuration for file system paths."""

    # Base directory (defaults to package directory)
    base_dir: Path = field(default_factory=lambda: Path(__file__).parent)

    # Runtime directories
    upload_dir: str = "uploads"
    tmp_dir: str = "tmp"
    logs_dir: str = "logs"

    @property
    def uploads(self) -> Path:
        return self.base_dir / self.upload_dir

    @property
    def tmp(self) -> Path:
        return self.base_dir / self.tmp_dir

    @property
    def logs(self) -> Path:
        return self.base_dir / self.logs_dir

    def ensure_directories(self) -> None:
        """Create all required directories if they don't exist."""
        for dir_path in [self.uploads, self.tmp, self.logs]:
            dir_path.mkdir(parents=True, exist_ok=True)


@dataclass
class InferenceConfig:
    """
    Selects which provider serves the inference collaborators.

    The per-request credential must carry the prefix of the active backend.
    """

    backend: Literal["openai", "gemini"] = "openai"

    # Expected credential prefixes per backend
    openai_key_prefix: str = "sk-"
    gemini_key_prefix: str = "AIza"

    @property
    def key_prefix(self) -> str:
        if self.backend == "gemini":
            return self.gemini_key_prefix
        return self.openai_key_prefix


@dataclass
class OpenAIConfig:
    """Configuration for OpenAI chat, vision and Whisper endpoints."""

    chat_model: str = "gpt-4o"
    vision_model: str = "gpt-4o"
    transcription_model: str = "whisper-1"

    # Generation parameters
    analysis_temperature: float = 0.3
    qa_temperature: float = 0.7
    vision_max_tokens: int = 500
    qa_max_tokens: int = 2000

    # 'low' keeps vision cost per frame down
    vision_detail: str = "low"


@dataclass
class GeminiConfig:
    """Configuration for Google Gemini LLM."""

    # Model selection
    model_name: str = "gemini-1.5-flash"

    # Generation parameters
    analysis_temperature: float = 0.3
    qa_temperature: float = 0.7
    max_output_tokens: int = 2048


@dataclass
class WhisperConfig:
    """
    Configuration for the local faster-whisper model.

    Only used by the Gemini backend, which has no hosted transcription
    endpoint of its own.
    """

    # Model size: tiny, base, small, medium, large-v3
    model_size: str = "small"

    # Device configuration
    device: str = "auto"  # "auto", "cpu", "cuda"
    compute_type: str = "auto"  # "auto", "int8", "float16", "float32"

    language: Optional[str] = None  # None for auto-detect
    vad_filter: bool = True


@dataclass
class MediaConfig:
    """Configuration for ffmpeg-based audio and frame extraction."""

    ffmpeg_binary: str = "ffmpeg"

    # Audio extraction: mono 16 kHz signed 16-bit PCM
    audio_codec: str = "pcm_s16le"
    audio_sample_rate: int = 16000
    audio_channels: int = 1

    # Frame extraction
    frames_per_second: float = 1.0
    frame_quality: int = 2  # JPEG -q:v, 2 is high quality
    frame_pattern: str = "frame-%04d.jpg"


@dataclass
class DetectionConfig:
    """
    Configuration for the object aggregation engine.

    Sampling stride is 1 up to full_sampling_max_frames frames, 2 above it.
    This is the only cost control on vision calls.
    """

    full_sampling_max_frames: int = 30
    reduced_sampling_stride: int = 2

    # Upper bound on concurrent detection calls
    max_workers: int = 4


@dataclass
class QAConfig:
    """Configuration for question/answer generation."""

    num_pairs: int = 10


@dataclass
class DemoConfig:
    """Configuration for the zero-cost demo path."""

    # Matched exactly, case-sensitive
    sentinels: tuple = ("demo", "test")

    # Delay between synthetic progress events
    step_delay_seconds: float = 0.5


@dataclass
class VideoConfig:
    """Configuration for accepted uploads."""

    allowed_extensions: set = field(default_factory=lambda: {'mp4'})
    allowed_mime_types: set = field(default_factory=lambda: {'video/mp4'})

    # Upload limits
    max_file_size_bytes: int = 100 * 1024 * 1024  # 100MB


@dataclass
class FlaskConfig:
    """Configuration for Flask web server."""

    # Server settings
    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False

    # Security
    secret_key: str = field(default_factory=lambda: os.getenv("FLASK_SECRET_KEY", "dev-secret-key"))

    # CORS
    cors_origins: list = field(default_factory=lambda: ["*"])

    # Include stack details in 500 responses
    expose_error_details: bool = False

    # Seconds between SSE keep-alive comments
    sse_keepalive_seconds: float = 15.0


@dataclass
class LoggingConfig:
    """Configuration for application logging."""

    service_name: str = "video-insight"
    log_level: str = "INFO"
    log_decisions: bool = True
    log_to_file: bool = False

    # Rotation of the JSON-lines files
    max_file_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5


@dataclass
class AppConfig:
    """
    Master configuration class that aggregates all configuration sections.

    This is the main configuration object used throughout the application.
    """

    paths: PathConfig = field(default_factory=PathConfig)
    inference: InferenceConfig = field(default_factory=InferenceConfig)
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    whisper: WhisperConfig = field(default_factory=WhisperConfig)
    media: MediaConfig = field(default_factory=MediaConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    qa: QAConfig = field(default_factory=QAConfig)
    demo: DemoConfig = field(default_factory=DemoConfig)
    video: VideoConfig = field(default_factory=VideoConfig)
    flask: FlaskConfig = field(default_factory=FlaskConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self):
        """Ensure all directories exist after initialization."""
        self.paths.ensure_directories()

    def to_dict(self) -> dict:
        """Convert configuration to dictionary for serialization."""
        def convert(obj):
            if hasattr(obj, '__dataclass_fields__'):
                return {k: convert(v) for k, v in obj.__dict__.items()}
            elif isinstance(obj, Path):
                return str(obj)
            elif isinstance(obj, (set, tuple)):
                return sorted(obj) if isinstance(obj, set) else list(obj)
            return obj
        return convert(self)

    def save(self, filepath: str) -> None:
        """Save configuration to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Configuration saved to {filepath}")

    @classmethod
    def from_dict(cls, data: dict) -> "AppConfig":
        """Create configuration from dictionary."""
        paths_data = dict(data.get('paths', {}))
        if 'base_dir' in paths_data and isinstance(paths_data['base_dir'], str):
            paths_data['base_dir'] = Path(paths_data['base_dir'])

        video_data = dict(data.get('video', {}))
        for key in ('allowed_extensions', 'allowed_mime_types'):
            if key in video_data and isinstance(video_data[key], list):
                video_data[key] = set(video_data[key])

        demo_data = dict(data.get('demo', {}))
        if 'sentinels' in demo_data and isinstance(demo_data['sentinels'], list):
            demo_data['sentinels'] = tuple(demo_data['sentinels'])

        return cls(
            paths=PathConfig(**paths_data),
            inference=InferenceConfig(**data.get('inference', {})),
            openai=OpenAIConfig(**data.get('openai', {})),
            gemini=GeminiConfig(**data.get('gemini', {})),
            whisper=WhisperConfig(**data.get('whisper', {})),
            media=MediaConfig(**data.get('media', {})),
            detection=DetectionConfig(**data.get('detection', {})),
            qa=QAConfig(**data.get('qa', {})),
            demo=DemoConfig(**demo_data),
            video=VideoConfig(**video_data),
            flask=FlaskConfig(**data.get('flask', {})),
            logging=LoggingConfig(**data.get('logging', {})),
        )

    @classmethod
    def load(cls, filepath: str) -> "AppConfig":
        """Load configuration from JSON file."""
        with open(filepath, 'r') as f:
            data = json.load(f)
        logger.info(f"Configuration loaded from {filepath}")
        return cls.from_dict(data)


# =============================================================================
# GLOBAL CONFIGURATION SINGLETON
# =============================================================================

_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get the global application configuration.

    Creates a default configuration on first access.

    Returns:
        The global AppConfig instance
    """
    global _config
    if _config is None:
        _config = AppConfig()
        logger.info("Initialized default application configuration")
    return _config


def set_config(config: AppConfig) -> None:
    """
    Set the global application configuration.

    Args:
        config: The AppConfig instance to use globally
    """
    global _config
    _config = config
    logger.info(f"Set global configuration (backend: {config.inference.backend})")


def reset_config() -> None:
    """Reset the global configuration to None (forces reload on next get_config)."""
    global _config
    _config = None
    logger.info("Reset global configuration")


# =============================================================================
# ENVIRONMENT VARIABLE OVERRIDES
# =============================================================================

ENV_PREFIX = "VIDEO_INSIGHT_"

_SECTIONS = (
    'paths', 'inference', 'openai', 'gemini', 'whisper', 'media',
    'detection', 'qa', 'demo', 'video', 'flask', 'logging',
)


def apply_environment_overrides(config: AppConfig) -> AppConfig:
    """
    Apply environment variable overrides to configuration.

    Environment variables follow the pattern:
    VIDEO_INSIGHT_{SECTION}_{KEY}

    Examples:
        VIDEO_INSIGHT_DETECTION_MAX_WORKERS=8
        VIDEO_INSIGHT_FLASK_PORT=8080
        VIDEO_INSIGHT_LOGGING_LOG_LEVEL=DEBUG

    Also supports common simplified environment variables:
        PORT=8080 (maps to flask.port)
        INFERENCE_BACKEND=gemini (maps to inference.backend)

    Args:
        config: Base configuration to override

    Returns:
        Configuration with environment overrides applied
    """
    if os.getenv("PORT"):
        try:
            config.flask.port = int(os.getenv("PORT"))
            logger.info(f"Environment override: flask.port = {config.flask.port}")
        except ValueError:
            logger.warning(f"Ignoring non-numeric PORT: {os.getenv('PORT')!r}")

    if os.getenv("INFERENCE_BACKEND"):
        config.inference.backend = os.getenv("INFERENCE_BACKEND").lower()
        logger.info(f"Environment override: inference.backend = {config.inference.backend}")

    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        parts = key[len(ENV_PREFIX):].lower().split('_', 1)
        if len(parts) != 2:
            continue

        section, attr = parts
        if section not in _SECTIONS:
            continue

        section_config = getattr(config, section, None)
        if section_config is None or not hasattr(section_config, attr):
            continue

        # Convert value to appropriate type
        current_value = getattr(section_config, attr)
        try:
            if isinstance(current_value, bool):
                typed_value = value.lower() in ('true', '1', 'yes')
            elif isinstance(current_value, int):
                typed_value = int(value)
            elif isinstance(current_value, float):
                typed_value = float(value)
            else:
                typed_value = value

            setattr(section_config, attr, typed_value)
            logger.info(f"Environment override: {section}.{attr} = {typed_value}")

        except (ValueError, TypeError) as e:
            logger.warning(f"Failed to apply environment override {key}: {e}")

    return config


# =============================================================================
# PRESET CONFIGURATIONS FOR COMMON SCENARIOS
# =============================================================================

def get_development_config() -> AppConfig:
    """Get configuration optimized for development."""
    config = AppConfig()
    config.flask.debug = True
    config.flask.expose_error_details = True
    config.whisper.model_size = "tiny"  # Faster for development
    config.logging.log_level = "DEBUG"
    return config


def get_production_config() -> AppConfig:
    """Get configuration optimized for production."""
    config = AppConfig()
    config.flask.debug = False
    config.flask.expose_error_details = False
    config.whisper.model_size = "medium"  # Better accuracy
    config.logging.log_level = "INFO"
    config.logging.log_to_file = True
    return config


_PROFILES = {
    'development': get_development_config,
    'production': get_production_config,
}


def load_runtime_config(
    config_file: Optional[str] = None,
    profile: Optional[str] = None,
) -> AppConfig:
    """
    Build and install the configuration for an entry point.

    A JSON file wins over a profile; without either the defaults are used.
    Environment overrides are applied last in every case.

    Args:
        config_file: Path to a file written by AppConfig.save
        profile: "development" or "production"
    """
    if config_file:
        config = AppConfig.load(config_file)
    elif profile:
        if profile not in _PROFILES:
            raise ValueError(f"Unknown configuration profile: {profile!r}")
        config = _PROFILES[profile]()
    else:
        config = AppConfig()

    config = apply_environment_overrides(config)
    set_config(config)
    return config
