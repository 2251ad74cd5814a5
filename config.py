"""Configuration management for the IDX Watch announcement triage service.

This module provides centralized configuration for all pipeline components.
All settings are loaded from environment variables with sensible defaults,
and the resulting Config value is passed explicitly to every component.

Environment Variables:
    Required:
        GEMINI_API_KEY: Google Gemini API key for the classifier

    Model (PydanticAI format - provider:model):
        CLASSIFIER_MODEL: Model that judges announcement documents

    Source:
        TARGET_URL: Disclosure listing page to scrape
        TIMEZONE: Timezone used to decide what "today" is
        HEADLESS: Run the browser without a window
        CHROMIUM_PATH: Custom Chromium executable
        PAGE_TIMEOUT_SECONDS: Navigation timeout

    Triage:
        LANGUAGE: Reasoning/report language ('id' Indonesian, 'en' English)
        NOISE_PATTERNS_FILE: File with one noise pattern per line
        PROMPT_FILE: File with a custom instruction template
        MAX_ATTEMPTS: Classifier attempts per announcement
        RETRY_BASE_DELAY: Backoff base in seconds (wait = 3^attempt * base)
        DOWNLOAD_DELAY: Minimum seconds between PDF downloads
        ANNOUNCEMENT_DELAY: Minimum seconds between analyzed announcements
        DOWNLOAD_TIMEOUT: PDF download timeout in seconds
        MULTIMODAL_TEXT_LIMIT: Text chars sent alongside scanned PDFs
        TEXT_LIMIT: Text chars sent in text-only requests
        SCANNED_TEXT_THRESHOLD: Below this many chars a PDF counts as scanned

    Email (Mailjet):
        MAILJET_API_KEY, MAILJET_API_SECRET, SENDER_EMAIL, SENDER_NAME,
        RECEIVER_EMAIL

    Output:
        REPORTS_DIR: Directory for markdown reports
        LOG_DIR: Directory for log files

    Optional Features:
        ENABLE_LOGFIRE: Enable Logfire/OpenTelemetry tracing

    Logging:
        LOG_LEVEL: Logging verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_BACKUP_COUNT: Number of rotated log files to keep
        LOG_MAX_BYTES: Max log file size in bytes (0 = time-based rotation)
        LOG_FORMAT: Log format ('text' or 'json' for structured logging)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_TARGET_URL = "https://www.idx.co.id/id/perusahaan-tercatat/keterbukaan-informasi/"


def _env(key: str, default: str = "") -> str:
    """Get string environment variable with optional default.

    Args:
        key: Environment variable name
        default: Value to return if not set

    Returns:
        Environment variable value or default
    """
    return os.environ.get(key, default)


def _env_int(key: str, default: int) -> int:
    """Get integer environment variable with default.

    Raises:
        ValueError: If value is set but cannot be parsed as integer
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"Invalid integer value for {key}: '{val}'")


def _env_float(key: str, default: float) -> float:
    """Get float environment variable with default.

    Raises:
        ValueError: If value is set but cannot be parsed as float
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"Invalid float value for {key}: '{val}'")


def _env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable with default.

    Recognizes truthy values: '1', 'true', 'yes', 'on'
    Recognizes falsy values: '0', 'false', 'no', 'off'
    """
    val = os.environ.get(key, "").lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


# Titles of routine filings that never need a document read.
# Matching is a case-insensitive substring test, so short entries
# like 'Dividen' also catch every dividend schedule notice.
DEFAULT_NOISE_PATTERNS = [
    # === Monthly / periodic reports ===
    "Laporan Bulanan Registrasi Pemegang Efek",
    "Laporan Harian atas Nilai Aktiva Bersih",
    "Laporan Jumlah Peredaran Unit Penyertaan",
    "Laporan Jumlah Structured Warrant Beredar",
    "Laporan Bulanan Aktivitas Eksplorasi",

    # === Ownership and administrative changes ===
    "Laporan Kepemilikan Saham",
    "Pencatatan Saham",
    "Perubahan Corporate Secretary",
    "Perubahan Internal Audit",
    "Perubahan Komite Audit",
    "Perubahan Komite Nominasi dan Remunerasi",
    "Pencatatan Structured Warrant",
    "Warrant",
    "Structured Warrant",

    # === Routine notifications ===
    "Pencatatan Tambahan ETF",
    "Informasi Kupon",
    "Jatuh Tempo",
    "Jadwal Dividen Tunai",
    "Dividen",
]


def load_patterns_file(path: Path) -> list[str]:
    """Read noise patterns from a text file.

    One pattern per line. Blank lines and lines starting with '#' are ignored.
    """
    patterns = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            patterns.append(line)
    return patterns


@dataclass
class Config:
    """Application configuration loaded from environment variables.

    All settings can be overridden via environment variables. Use Config.load()
    to create an instance with values from the environment, or construct one
    directly in tests.

    Example:
        >>> config = Config.load()
        >>> if error := config.validate():
        ...     print(f"Config error: {error}")
    """

    # === Required ===
    gemini_api_key: str = ""  # GEMINI_API_KEY - Google AI API key

    # === AI Model ===
    # PydanticAI format: provider:model, or openai:{name}@{base_url} for local servers
    classifier_model: str = "google-gla:gemini-2.5-flash"

    # === Output Settings ===
    language: str = "id"  # LANGUAGE - 'id' (Indonesian) or 'en' (English)

    # === Page Source ===
    target_url: str = DEFAULT_TARGET_URL  # TARGET_URL
    timezone: str = "Asia/Jakarta"  # TIMEZONE - exchange local time
    headless: bool = True  # HEADLESS
    browser_executable: str = ""  # CHROMIUM_PATH - empty = Playwright's bundled browser
    page_timeout_seconds: int = 60  # PAGE_TIMEOUT_SECONDS

    # === Triage Rules ===
    noise_patterns: list[str] = field(default_factory=lambda: DEFAULT_NOISE_PATTERNS.copy())
    prompt_template: str = ""  # PROMPT_FILE contents; empty = built-in template

    # === Retry Behavior ===
    max_attempts: int = 5  # MAX_ATTEMPTS - classifier attempts in total
    retry_base_delay: float = 2.5  # RETRY_BASE_DELAY - seconds, wait = 3^attempt * base

    # === Pacing ===
    download_delay: float = 2.0  # DOWNLOAD_DELAY - seconds between PDF downloads
    announcement_delay: float = 5.0  # ANNOUNCEMENT_DELAY - seconds between announcements
    download_timeout: int = 60  # DOWNLOAD_TIMEOUT

    # === Content Bounds ===
    multimodal_text_limit: int = 10_000  # MULTIMODAL_TEXT_LIMIT
    text_limit: int = 20_000  # TEXT_LIMIT
    scanned_text_threshold: int = 100  # SCANNED_TEXT_THRESHOLD

    # === Email (Mailjet) ===
    mailjet_api_key: str = ""  # MAILJET_API_KEY
    mailjet_api_secret: str = ""  # MAILJET_API_SECRET
    sender_email: str = ""  # SENDER_EMAIL
    sender_name: str = "IDX Watch Report"  # SENDER_NAME
    receiver_email: str = ""  # RECEIVER_EMAIL

    # === Output Directories ===
    log_dir: Path = field(default_factory=lambda: Path("log"))  # LOG_DIR
    reports_dir: Path = field(default_factory=lambda: Path("reports"))  # REPORTS_DIR

    # === Logging Configuration ===
    log_level: str = "INFO"  # LOG_LEVEL - DEBUG, INFO, WARNING, ERROR
    log_backup_count: int = 30  # LOG_BACKUP_COUNT - Number of rotated logs to keep
    log_max_bytes: int = 0  # LOG_MAX_BYTES - Max file size (0 = time-based rotation)
    log_format: str = "text"  # LOG_FORMAT - 'text' or 'json' for structured logging

    # === Optional: Observability ===
    # Requires: pip install logfire
    enable_logfire: bool = False  # ENABLE_LOGFIRE - Enable distributed tracing
    logfire_token: str = ""  # LOGFIRE_TOKEN - Authentication token

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment variables.

        Raises:
            ValueError: If a numeric variable is malformed
            OSError: If NOISE_PATTERNS_FILE or PROMPT_FILE cannot be read
        """
        patterns_file = _env("NOISE_PATTERNS_FILE")
        prompt_file = _env("PROMPT_FILE")

        return cls(
            gemini_api_key=_env("GEMINI_API_KEY"),
            classifier_model=_env("CLASSIFIER_MODEL", "google-gla:gemini-2.5-flash"),
            language=_env("LANGUAGE", "id").lower(),
            target_url=_env("TARGET_URL", DEFAULT_TARGET_URL),
            timezone=_env("TIMEZONE", "Asia/Jakarta"),
            headless=_env_bool("HEADLESS", True),
            browser_executable=_env("CHROMIUM_PATH"),
            page_timeout_seconds=_env_int("PAGE_TIMEOUT_SECONDS", 60),
            noise_patterns=(
                load_patterns_file(Path(patterns_file))
                if patterns_file else DEFAULT_NOISE_PATTERNS.copy()
            ),
            prompt_template=Path(prompt_file).read_text(encoding="utf-8") if prompt_file else "",
            max_attempts=_env_int("MAX_ATTEMPTS", 5),
            retry_base_delay=_env_float("RETRY_BASE_DELAY", 2.5),
            download_delay=_env_float("DOWNLOAD_DELAY", 2.0),
            announcement_delay=_env_float("ANNOUNCEMENT_DELAY", 5.0),
            download_timeout=_env_int("DOWNLOAD_TIMEOUT", 60),
            multimodal_text_limit=_env_int("MULTIMODAL_TEXT_LIMIT", 10_000),
            text_limit=_env_int("TEXT_LIMIT", 20_000),
            scanned_text_threshold=_env_int("SCANNED_TEXT_THRESHOLD", 100),
            mailjet_api_key=_env("MAILJET_API_KEY"),
            mailjet_api_secret=_env("MAILJET_API_SECRET"),
            sender_email=_env("SENDER_EMAIL"),
            sender_name=_env("SENDER_NAME", "IDX Watch Report"),
            receiver_email=_env("RECEIVER_EMAIL"),
            log_dir=Path(_env("LOG_DIR", "log")),
            reports_dir=Path(_env("REPORTS_DIR", "reports")),
            enable_logfire=_env_bool("ENABLE_LOGFIRE", False),
            logfire_token=_env("LOGFIRE_TOKEN"),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            log_backup_count=_env_int("LOG_BACKUP_COUNT", 30),
            log_max_bytes=_env_int("LOG_MAX_BYTES", 0),
            log_format=_env("LOG_FORMAT", "text").lower(),
        )

    @property
    def email_enabled(self) -> bool:
        """True when every Mailjet setting needed to send a report is present."""
        return all((
            self.mailjet_api_key,
            self.mailjet_api_secret,
            self.sender_email,
            self.receiver_email,
        ))

    def validate(self) -> str | None:
        """Validate configuration for required fields and valid values.

        Checks:
            - GEMINI_API_KEY is set
            - Language is 'id' or 'en'
            - Attempts are positive, delays and bounds non-negative

        Returns:
            Error message string if invalid, None if valid.
        """
        if not self.gemini_api_key:
            return "GEMINI_API_KEY environment variable is required"
        if self.language not in ("id", "en"):
            return f"Invalid LANGUAGE '{self.language}' - must be 'id' or 'en'"
        if self.max_attempts <= 0:
            return "MAX_ATTEMPTS must be positive"
        if self.retry_base_delay < 0:
            return "RETRY_BASE_DELAY must be non-negative"
        if self.download_delay < 0 or self.announcement_delay < 0:
            return "DOWNLOAD_DELAY and ANNOUNCEMENT_DELAY must be non-negative"
        if self.download_timeout <= 0 or self.page_timeout_seconds <= 0:
            return "DOWNLOAD_TIMEOUT and PAGE_TIMEOUT_SECONDS must be positive"
        if self.multimodal_text_limit <= 0 or self.text_limit <= 0:
            return "MULTIMODAL_TEXT_LIMIT and TEXT_LIMIT must be positive"
        if self.scanned_text_threshold < 0:
            return "SCANNED_TEXT_THRESHOLD must be non-negative"
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return f"Invalid LOG_LEVEL '{self.log_level}' - must be DEBUG, INFO, WARNING, ERROR, or CRITICAL"
        if self.log_format not in ("text", "json"):
            return f"Invalid LOG_FORMAT '{self.log_format}' - must be 'text' or 'json'"
        if self.log_backup_count < 0:
            return "LOG_BACKUP_COUNT must be non-negative"
        if self.log_max_bytes < 0:
            return "LOG_MAX_BYTES must be non-negative"
        return None
