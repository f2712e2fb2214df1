"""Configuration management for screen recall.

Settings live in a YAML file and are mapped onto nested dataclasses, one per
section. Missing keys fall back to dataclass defaults and unknown keys are
ignored, so older config files keep working as new settings are added.

Configuration Sections:
- capture: Capture loop timing, retry policy and text recognition
- video: Frame buffering and chunk encoding
- session: Session grouping
- export: Limits for exported summaries
- storage: Data directory layout
- privacy: App exclusions and sensitive-content redaction
- logging: Log level and log file

Example:
    >>> from recall.config import ConfigManager
    >>> config_mgr = ConfigManager()
    >>> print(config_mgr.config.capture.interval_seconds)
    2
    >>> config_mgr.update('session', 'timeout_seconds', 600)
"""

import dataclasses
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional
import yaml

logger = logging.getLogger(__name__)


@dataclass
class CaptureConfig:
    """Capture loop configuration.

    Attributes:
        interval_seconds: Time between capture ticks (default: 2)
        max_retries: Consecutive acquisition failures tolerated (default: 3)
        retry_backoff_seconds: Sleep between retries (default: 2)
        active_window_only: Recognize text in the focused window only (default: True)
        fast_ocr: Use the fast recognition mode (default: True)
        ocr_confidence_threshold: Drop observations at or below this (default: 0.35)
        include_clipboard: Append changed clipboard text to captures (default: False)
        ocr_workers: Size of the text recognition pool (default: 2)
    """
    interval_seconds: float = 2
    max_retries: int = 3
    retry_backoff_seconds: float = 2
    active_window_only: bool = True
    fast_ocr: bool = True
    ocr_confidence_threshold: float = 0.35
    include_clipboard: bool = False
    ocr_workers: int = 2


@dataclass
class VideoConfig:
    """Frame buffer and chunk encoder configuration.

    Attributes:
        buffer_capacity: Maximum frames held in memory (default: 100)
        flush_threshold: Frames per encoded chunk (default: 30)
        encoder_timeout_seconds: Watchdog for the encoder process (default: 30)
        ffmpeg_path: Encoder binary (default: ffmpeg)
        codec: Video codec passed to the encoder (default: libx264)
        crf: Constant rate factor (default: 28)
        retention_hours: Delete chunks older than this, 0 keeps all (default: 1)
    """
    buffer_capacity: int = 100
    flush_threshold: int = 30
    encoder_timeout_seconds: float = 30
    ffmpeg_path: str = "ffmpeg"
    codec: str = "libx264"
    crf: int = 28
    retention_hours: float = 1


@dataclass
class SessionConfig:
    """Session grouping configuration.

    Attributes:
        timeout_seconds: Gap that ends a session (default: 300)
    """
    timeout_seconds: float = 300


@dataclass
class ExportConfig:
    """Limits applied to exported summaries."""
    max_key_moments: int = 100
    max_topics: int = 30
    top_domains: int = 10
    digest_top_urls: int = 20


@dataclass
class StorageConfig:
    """Data storage configuration.

    Attributes:
        data_dir: Root for exports, video chunks and the database (default: ~/recall-data)
    """
    data_dir: str = "~/recall-data"

    @property
    def root(self) -> Path:
        return Path(self.data_dir).expanduser()

    @property
    def export_dir(self) -> Path:
        return self.root / "export"

    @property
    def video_dir(self) -> Path:
        return self.root / "videos"

    @property
    def db_path(self) -> Path:
        return self.root / "recall.db"


@dataclass
class PrivacyConfig:
    """Privacy controls.

    Attributes:
        excluded_apps: App names never recognized or exported (substring match)
        redact_sensitive: Redact passwords, keys and card numbers (default: True)
    """
    excluded_apps: list[str] = field(default_factory=lambda: [
        "1password",
        "keepass",
        "bitwarden",
        "gnome-keyring",
        "seahorse",
    ])
    redact_sensitive: bool = True


@dataclass
class LoggingConfig:
    """Logging configuration. An empty file disables the file handler."""
    level: str = "INFO"
    file: str = "~/recall-data/logs/recall.log"


@dataclass
class Config:
    """Top-level configuration container."""
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    video: VideoConfig = field(default_factory=VideoConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    privacy: PrivacyConfig = field(default_factory=PrivacyConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_SECTIONS = {
    'capture': CaptureConfig,
    'video': VideoConfig,
    'session': SessionConfig,
    'export': ExportConfig,
    'storage': StorageConfig,
    'privacy': PrivacyConfig,
    'logging': LoggingConfig,
}


def filter_known_fields(data_dict: dict, dataclass_type) -> dict:
    """Filter dict to only include fields known by the dataclass."""
    if not isinstance(data_dict, dict):
        logger.warning(f"Ignoring malformed config section for {dataclass_type.__name__}")
        return {}
    known_fields = {f.name for f in dataclasses.fields(dataclass_type)}
    filtered = {k: v for k, v in data_dict.items() if k in known_fields}
    unknown = set(data_dict.keys()) - known_fields
    if unknown:
        logger.debug(f"Ignoring unknown config fields: {unknown}")
    return filtered


def coerce_field_types(config: Config) -> Config:
    """Convert wrongly typed values to each field's declared type.

    A quoted number in the YAML file is converted. A value that cannot be
    converted falls back to the field default with a warning.
    """
    for section_name, section_type in _SECTIONS.items():
        section = getattr(config, section_name)
        defaults = section_type()
        for f in dataclasses.fields(section_type):
            value = getattr(section, f.name)
            default = getattr(defaults, f.name)
            if f.type is bool:
                if isinstance(value, bool):
                    continue
                coerced = None
            elif f.type in (int, float):
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    if f.type is float or isinstance(value, int):
                        continue
                try:
                    coerced = f.type(value)
                except (TypeError, ValueError):
                    coerced = None
            elif f.type is str:
                if isinstance(value, str):
                    continue
                coerced = None if value is None else str(value)
            else:
                if isinstance(value, type(default)):
                    continue
                coerced = None

            if coerced is None:
                logger.warning(f"{section_name}.{f.name}={value!r} is not a valid "
                               f"{getattr(f.type, '__name__', f.type)}, using {default!r}")
                coerced = default
            else:
                logger.warning(f"{section_name}.{f.name}={value!r} converted to {coerced!r}")
            setattr(section, f.name, coerced)
    return config


def clamp_invalid_values(config: Config) -> Config:
    """Replace out-of-range settings with usable ones, logging each change.

    Values are fixed in place rather than rejected so that a typo in the
    config file never keeps the recorder from starting.
    """
    coerce_field_types(config)
    capture = config.capture
    if capture.interval_seconds <= 0:
        logger.warning(f"capture.interval_seconds={capture.interval_seconds} is not positive, using 2")
        capture.interval_seconds = 2
    if capture.max_retries < 0:
        logger.warning(f"capture.max_retries={capture.max_retries} is negative, using 0")
        capture.max_retries = 0
    if capture.retry_backoff_seconds < 0:
        logger.warning(f"capture.retry_backoff_seconds={capture.retry_backoff_seconds} is negative, using 0")
        capture.retry_backoff_seconds = 0
    if not 0 <= capture.ocr_confidence_threshold < 1:
        clamped = min(max(capture.ocr_confidence_threshold, 0.0), 0.99)
        logger.warning(f"capture.ocr_confidence_threshold={capture.ocr_confidence_threshold} "
                       f"out of range, using {clamped}")
        capture.ocr_confidence_threshold = clamped
    if capture.ocr_workers < 1:
        logger.warning(f"capture.ocr_workers={capture.ocr_workers} is not positive, using 1")
        capture.ocr_workers = 1

    video = config.video
    if video.buffer_capacity < 1:
        logger.warning(f"video.buffer_capacity={video.buffer_capacity} is not positive, using 100")
        video.buffer_capacity = 100
    if video.flush_threshold < 1:
        logger.warning(f"video.flush_threshold={video.flush_threshold} is not positive, using 1")
        video.flush_threshold = 1
    if video.flush_threshold > video.buffer_capacity:
        logger.warning(f"video.flush_threshold={video.flush_threshold} exceeds buffer capacity, "
                       f"using {video.buffer_capacity}")
        video.flush_threshold = video.buffer_capacity
    if video.encoder_timeout_seconds <= 0:
        logger.warning(f"video.encoder_timeout_seconds={video.encoder_timeout_seconds} "
                       f"is not positive, using 30")
        video.encoder_timeout_seconds = 30

    if config.session.timeout_seconds <= 0:
        logger.warning(f"session.timeout_seconds={config.session.timeout_seconds} "
                       f"is not positive, using 300")
        config.session.timeout_seconds = 300

    return config


class ConfigManager:
    """Manages configuration loading, saving, and updates.

    Attributes:
        DEFAULT_PATH: Default configuration file location
        path: Actual configuration file path being used
        config: Current configuration object
    """

    DEFAULT_PATH = Path("~/.config/recall/config.yaml").expanduser()

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path).expanduser() if path else self.DEFAULT_PATH
        self.config = self._load()

    def _load(self) -> Config:
        """Load configuration from YAML file.

        Invalid YAML returns the default Config.
        """
        if self.path.exists():
            try:
                with open(self.path) as f:
                    data = yaml.safe_load(f) or {}
                logger.info(f"Loaded configuration from {self.path}")
                return self._dict_to_config(data)
            except (yaml.YAMLError, OSError) as e:
                logger.warning(f"Failed to load config from {self.path}: {e}")
                logger.info("Using default configuration")
                return Config()
        else:
            logger.info(f"No config file at {self.path}, using defaults")
            return Config()

    def _dict_to_config(self, data: dict) -> Config:
        if not isinstance(data, dict):
            logger.warning(f"Config file {self.path} is not a mapping, using defaults")
            return Config()
        sections = {
            name: cls(**filter_known_fields(data.get(name) or {}, cls))
            for name, cls in _SECTIONS.items()
        }
        return Config(**sections)

    def save(self) -> None:
        """Save current configuration to YAML file.

        Raises:
            OSError: If file write fails
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w') as f:
                yaml.dump(
                    asdict(self.config),
                    f,
                    default_flow_style=False,
                    sort_keys=False,
                    indent=2
                )
            logger.info(f"Saved configuration to {self.path}")
        except OSError as e:
            logger.error(f"Failed to save config to {self.path}: {e}")
            raise

    def update(self, section: str, key: str, value) -> bool:
        """Update a single configuration value and save.

        Returns:
            True if value was changed and saved, False if unchanged or invalid
        """
        section_obj = getattr(self.config, section, None)
        if section_obj is None or section not in _SECTIONS:
            logger.warning(f"Invalid config section: {section}")
            return False

        if not hasattr(section_obj, key):
            logger.warning(f"Invalid config key: {section}.{key}")
            return False

        old_value = getattr(section_obj, key)
        if old_value != value:
            setattr(section_obj, key, value)
            self.save()
            logger.info(f"Updated {section}.{key}: {old_value} -> {value}")
            return True

        logger.debug(f"No change for {section}.{key} (already {value})")
        return False

    def reload(self) -> None:
        """Reload configuration from file."""
        self.config = self._load()
        logger.info("Configuration reloaded")

    def create_default_file(self) -> None:
        """Create the config file with default values if it doesn't exist."""
        if not self.path.exists():
            self.save()
            logger.info(f"Created default configuration at {self.path}")
        else:
            logger.warning(f"Configuration file already exists at {self.path}")
