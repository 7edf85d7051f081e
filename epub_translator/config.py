"""
Centralized configuration class
"""
import os
import logging
from pathlib import Path
from dataclasses import dataclass, replace, asdict
from typing import Optional, Mapping
from dotenv import dotenv_values

from epub_translator.core.epub.exceptions import ConfigurationError

_config_logger = logging.getLogger('config')

# Defaults used when the environment does not provide a value
DEFAULT_TARGET_LANGUAGE = "German"
DEFAULT_RETRY_DELAY_SECONDS = 2.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_PACING_DELAY_SECONDS = 1.0
DEFAULT_REQUEST_TIMEOUT = 120.0

# Environment variable names
ENV_API_KEY = 'GEMINI_API_KEY'
ENV_API_ENDPOINT = 'GEMINI_API_URL'
ENV_MODEL = 'GEMINI_MODEL'
ENV_TARGET_LANGUAGE = 'TARGET_LANGUAGE'
ENV_RETRY_DELAY = 'RETRY_BASE_DELAY'
ENV_MAX_RETRIES = 'MAX_RETRIES'
ENV_PACING_DELAY = 'REQUEST_PACING_DELAY'
ENV_REQUEST_TIMEOUT = 'REQUEST_TIMEOUT'
ENV_DEBUG_MODE = 'DEBUG_MODE'

# Archive entries with these extensions are parsed and translated
MARKUP_EXTENSIONS = ('.xhtml', '.html', '.htm')


def _mask(secret: str) -> str:
    return '***' + secret[-4:] if secret else '(not set)'


def _parse_float(name: str, raw: Optional[str], default: float) -> float:
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'")


def _parse_int(name: str, raw: Optional[str], default: int) -> int:
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'")


@dataclass(frozen=True)
class TranslationConfig:
    """Immutable settings shared by the CLI, the archive translator and the core.

    Built once at startup and passed explicitly to every component; nothing
    else in the package reads the process environment.
    """

    # Translation service
    api_key: str = ""
    api_endpoint: str = ""
    model: str = ""
    target_language: str = DEFAULT_TARGET_LANGUAGE

    # Retry / pacing
    retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    pacing_delay: float = DEFAULT_PACING_DELAY_SECONDS
    timeout: float = DEFAULT_REQUEST_TIMEOUT

    # Interface-specific
    debug: bool = False
    enable_colors: bool = True

    @classmethod
    def from_env(cls, env_file: Optional[str] = '.env',
                 environ: Optional[Mapping[str, str]] = None) -> 'TranslationConfig':
        """Create config from a .env file layered under the process environment.

        Variables already set in the environment win over the .env file.

        Args:
            env_file: Path to the .env file (ignored if missing or None)
            environ: Environment mapping (defaults to os.environ)

        Returns:
            TranslationConfig (not yet validated)
        """
        values = {}
        if env_file and Path(env_file).exists():
            values.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
            _config_logger.debug(f"Loaded .env from: {Path(env_file).absolute()}")
        elif env_file:
            _config_logger.info("No .env file found, using environment variables")
        values.update(os.environ if environ is None else environ)

        return cls(
            api_key=values.get(ENV_API_KEY, ''),
            api_endpoint=values.get(ENV_API_ENDPOINT, ''),
            model=values.get(ENV_MODEL, ''),
            target_language=values.get(ENV_TARGET_LANGUAGE) or DEFAULT_TARGET_LANGUAGE,
            retry_delay=_parse_float(ENV_RETRY_DELAY, values.get(ENV_RETRY_DELAY), DEFAULT_RETRY_DELAY_SECONDS),
            max_retries=_parse_int(ENV_MAX_RETRIES, values.get(ENV_MAX_RETRIES), DEFAULT_MAX_RETRIES),
            pacing_delay=_parse_float(ENV_PACING_DELAY, values.get(ENV_PACING_DELAY), DEFAULT_PACING_DELAY_SECONDS),
            timeout=_parse_float(ENV_REQUEST_TIMEOUT, values.get(ENV_REQUEST_TIMEOUT), DEFAULT_REQUEST_TIMEOUT),
            debug=values.get(ENV_DEBUG_MODE, 'false').lower() == 'true',
        )

    def with_overrides(self, **overrides) -> 'TranslationConfig':
        """Return a copy with every non-None override applied (CLI flags)."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_cli_args(cls, args, base: Optional['TranslationConfig'] = None) -> 'TranslationConfig':
        """Create config from CLI arguments on top of an environment-based config"""
        base = base or cls.from_env()
        return base.with_overrides(
            api_key=getattr(args, 'api_key', None),
            api_endpoint=getattr(args, 'api_endpoint', None),
            model=getattr(args, 'model', None),
            target_language=getattr(args, 'target_lang', None),
            retry_delay=getattr(args, 'retry_delay', None),
            max_retries=getattr(args, 'max_retries', None),
            pacing_delay=getattr(args, 'pacing_delay', None),
            timeout=getattr(args, 'timeout', None),
            enable_colors=not getattr(args, 'no_color', False),
        )

    def validate(self) -> 'TranslationConfig':
        """
        Check that every required setting is present and sane.

        Returns:
            self, so calls can be chained

        Raises:
            ConfigurationError: listing every problem found
        """
        problems = []
        missing = [name for name, value in (
            (ENV_API_KEY, self.api_key),
            (ENV_API_ENDPOINT, self.api_endpoint),
            (ENV_MODEL, self.model),
        ) if not value]
        if missing:
            problems.append(f"{', '.join(missing)} must be set")
        if self.api_endpoint and not self.api_endpoint.startswith(('http://', 'https://')):
            problems.append(f"{ENV_API_ENDPOINT} must be an http(s) URL, got '{self.api_endpoint}'")
        if not self.target_language:
            problems.append("target language must not be empty")
        if self.retry_delay < 0:
            problems.append("retry delay must be >= 0")
        if self.max_retries < 0:
            problems.append("max retries must be >= 0")
        if self.pacing_delay < 0:
            problems.append("pacing delay must be >= 0")
        if self.timeout <= 0:
            problems.append("request timeout must be > 0")

        if problems:
            raise ConfigurationError("; ".join(problems))
        return self

    def to_dict(self) -> dict:
        """Convert to dictionary for logging, with the API key masked"""
        data = asdict(self)
        data['api_key'] = _mask(self.api_key)
        return data
