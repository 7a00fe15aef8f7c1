"""
Configuration management for the crawler.

Values come from built-in defaults, an optional YAML file, environment
variables and command-line overrides, in increasing order of precedence.
The result is a single immutable Config passed explicitly to the engine.
"""

import os
import re
import yaml
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple
from dataclasses import dataclass, field, fields
from urllib.parse import urlsplit

from .. import __version__
from ..crawler.modes import CrawlMode, DEFAULT_FUZZ_MARKER
from ..crawler.fetcher import DEFAULT_MAX_BODY_SIZE


logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = f"webtrawl/{__version__}"
DEFAULT_THREADS = 50
MAX_THREADS = 1000

ENV_HOSTS = 'WEBTRAWL_HOSTS'
ENV_RATE_LIMIT = 'WEBTRAWL_RATE_LIMIT'
ENV_THREADS = 'WEBTRAWL_THREADS'
ENV_USER_AGENT = 'WEBTRAWL_UA'
ENV_WORDLIST = 'WEBTRAWL_WORDLIST'


class ConfigurationError(ValueError):
    """Raised for configuration problems that must stop the run before it starts."""
    pass


@dataclass(frozen=True)
class CrawlerConfig:
    """Configuration for crawler behavior."""
    seed_urls: Tuple[str, ...]
    scoped: bool = True
    include_subdomains: bool = False
    rate_limit_ms: int = 0
    max_threads: int = DEFAULT_THREADS
    user_agent: str = DEFAULT_USER_AGENT
    mode: CrawlMode = CrawlMode.DEEP
    wordlist: Optional[Tuple[str, ...]] = None
    wordlist_file: Optional[str] = None
    status_include: Tuple[int, ...] = ()
    status_exclude: Tuple[int, ...] = ()
    request_timeout: float = 10.0
    max_redirects: int = 10
    max_depth: Optional[int] = None
    max_body_size: int = DEFAULT_MAX_BODY_SIZE
    verify_ssl: bool = False
    expand_filtered_results: bool = False
    fuzz_marker: str = DEFAULT_FUZZ_MARKER


@dataclass(frozen=True)
class LoggingConfig:
    """Configuration for logging."""
    level: str = 'WARNING'
    file: Optional[str] = None
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    json: bool = False


@dataclass(frozen=True)
class MonitoringConfig:
    """Configuration for monitoring."""
    metrics_enabled: bool = False
    prometheus_port: int = 8000
    stats_interval: float = 30.0


@dataclass(frozen=True)
class OutputConfig:
    """Configuration for result output."""
    results_file: Optional[str] = None
    quiet: bool = False


@dataclass(frozen=True)
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


def load_wordlist(path: str) -> Tuple[str, ...]:
    """
    Read a wordlist file.

    Blank lines and lines starting with '#' are skipped.

    Raises:
        ConfigurationError: if the file cannot be read
    """
    try:
        with open(path, 'r', encoding='utf-8', errors='replace') as file:
            words = []
            for line in file:
                word = line.strip()
                if word and not word.startswith('#'):
                    words.append(word)
    except OSError as e:
        raise ConfigurationError(f"Unable to read wordlist '{path}': {e}")

    logger.debug(f"Loaded {len(words)} words from {path}")
    return tuple(words)


def _split_list(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(item for item in re.split(r'[\s,]+', value) if item)
    if isinstance(value, (int, float)):
        return (str(value),)
    if isinstance(value, Mapping):
        raise ConfigurationError(f"Expected a list, got a mapping: {value!r}")
    return tuple(str(item).strip() for item in value if str(item).strip())


def _to_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _to_float(name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'y', 'on')


def _to_str(name: str, value: Any, optional: bool = False) -> Optional[str]:
    if value is None and optional:
        return None
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a string, got {value!r}")
    return str(value)


def _coerce_field(section: str, f, value: Any) -> Any:
    """Convert a raw section value to the type its dataclass field declares."""
    name = f"{section}.{f.name}"
    if f.type is bool:
        return _to_bool(value)
    if f.type is int:
        return _to_int(name, value)
    if f.type is float:
        return _to_float(name, value)
    return _to_str(name, value, optional=f.type is not str)


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path) if config_path else None

    def load_config(self, overrides: Optional[Mapping[str, Any]] = None,
                    environ: Optional[Mapping[str, str]] = None) -> Config:
        """
        Build the configuration.

        Args:
            overrides: Crawler settings from the command line; None values are ignored.
                The keys 'logging', 'monitoring' and 'output' may hold dicts for those sections.
            environ: Environment mapping, defaults to os.environ

        Returns:
            The validated, immutable Config
        """
        config_data = self._read_file()
        environ = os.environ if environ is None else environ
        overrides = dict(overrides or {})

        section_overrides = {
            name: overrides.pop(name) or {}
            for name in ('logging', 'monitoring', 'output')
            if name in overrides
        }

        crawler_data = self._file_section(config_data, 'crawler')
        crawler_data.update(self._read_environment(environ))
        crawler_data.update({key: value for key, value in overrides.items() if value is not None})

        sections = {}
        for name, section_cls in (('logging', LoggingConfig), ('monitoring', MonitoringConfig),
                                  ('output', OutputConfig)):
            data = self._file_section(config_data, name)
            data.update({k: v for k, v in section_overrides.get(name, {}).items() if v is not None})
            sections[name] = self._build_section(name, section_cls, data)

        config = Config(crawler=self._build_crawler_config(crawler_data), **sections)
        logger.info("Configuration validation passed")
        return config

    def _read_file(self) -> Dict[str, Any]:
        if self.config_path is None:
            return {}
        if not self.config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, 'r') as file:
                config_data = yaml.safe_load(file) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}")

        if not isinstance(config_data, dict):
            raise ConfigurationError(f"Configuration file {self.config_path} must contain a mapping")
        return config_data

    @staticmethod
    def _read_environment(environ: Mapping[str, str]) -> Dict[str, Any]:
        env_data: Dict[str, Any] = {}
        if environ.get(ENV_HOSTS):
            env_data['seed_urls'] = _split_list(environ[ENV_HOSTS])
        if environ.get(ENV_RATE_LIMIT):
            env_data['rate_limit_ms'] = environ[ENV_RATE_LIMIT]
        if environ.get(ENV_THREADS):
            env_data['max_threads'] = environ[ENV_THREADS]
        if environ.get(ENV_USER_AGENT):
            env_data['user_agent'] = environ[ENV_USER_AGENT]
        if environ.get(ENV_WORDLIST):
            env_data['wordlist_file'] = environ[ENV_WORDLIST]
        return env_data

    def _file_section(self, config_data: Dict[str, Any], name: str) -> Dict[str, Any]:
        section = config_data.get(name)
        if section is None:
            return {}
        if not isinstance(section, Mapping):
            raise ConfigurationError(f"Section '{name}' in {self.config_path} must be a mapping")
        return dict(section)

    @staticmethod
    def _build_section(name: str, section_cls, data: Dict[str, Any]):
        section_fields = {f.name: f for f in fields(section_cls)}
        unknown = set(data) - set(section_fields)
        if unknown:
            raise ConfigurationError(f"Unknown {name} settings: {', '.join(sorted(unknown))}")
        return section_cls(**{
            key: _coerce_field(name, section_fields[key], value)
            for key, value in data.items()
        })

    def _build_crawler_config(self, data: Dict[str, Any]) -> CrawlerConfig:
        known = {f.name for f in fields(CrawlerConfig)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown crawler settings: {', '.join(sorted(unknown))}")

        seed_urls = _split_list(data.get('seed_urls'))
        if not seed_urls:
            raise ConfigurationError("At least one seed URL must be provided")
        for url in seed_urls:
            self._validate_seed_url(url)

        rate_limit_ms = _to_int('rate_limit_ms', data.get('rate_limit_ms', 0))
        if rate_limit_ms < 0:
            raise ConfigurationError("rate_limit_ms must be non-negative")

        max_threads = _to_int('max_threads', data.get('max_threads', DEFAULT_THREADS))
        if max_threads < 1 or max_threads > MAX_THREADS:
            logger.error(f"max_threads must be between 1 and {MAX_THREADS}, got {max_threads}; "
                         f"using {DEFAULT_THREADS}")
            max_threads = DEFAULT_THREADS

        wordlist = data.get('wordlist')
        wordlist_file = data.get('wordlist_file')
        if wordlist is not None:
            wordlist = _split_list(wordlist)
        elif wordlist_file:
            wordlist = load_wordlist(wordlist_file)

        fuzz_marker = data.get('fuzz_marker') or DEFAULT_FUZZ_MARKER
        mode = self._resolve_mode(data.get('mode'), wordlist, seed_urls, fuzz_marker)

        status_include = tuple(_to_int('status_include', c) for c in _split_list(data.get('status_include')))
        status_exclude = tuple(_to_int('status_exclude', c) for c in _split_list(data.get('status_exclude')))
        if not mode.expands and not status_exclude:
            status_exclude = (404,)

        max_depth = data.get('max_depth')
        if max_depth is not None:
            max_depth = _to_int('max_depth', max_depth)
            if max_depth < 0:
                raise ConfigurationError("max_depth must be non-negative")

        request_timeout = _to_float('request_timeout', data.get('request_timeout', 10.0))
        if request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive")

        config = CrawlerConfig(
            seed_urls=seed_urls,
            scoped=_to_bool(data.get('scoped', True)),
            include_subdomains=_to_bool(data.get('include_subdomains', False)),
            rate_limit_ms=rate_limit_ms,
            max_threads=max_threads,
            user_agent=str(data.get('user_agent') or DEFAULT_USER_AGENT),
            mode=mode,
            wordlist=wordlist,
            wordlist_file=wordlist_file,
            status_include=status_include,
            status_exclude=status_exclude,
            request_timeout=request_timeout,
            max_redirects=_to_int('max_redirects', data.get('max_redirects', 10)),
            max_depth=max_depth,
            max_body_size=_to_int('max_body_size', data.get('max_body_size', DEFAULT_MAX_BODY_SIZE)),
            verify_ssl=_to_bool(data.get('verify_ssl', False)),
            expand_filtered_results=_to_bool(data.get('expand_filtered_results', False)),
            fuzz_marker=fuzz_marker
        )
        return config

    @staticmethod
    def _validate_seed_url(url: str):
        try:
            parsed = urlsplit(url)
            host = parsed.hostname
        except ValueError as e:
            raise ConfigurationError(f"Couldn't parse '{url}' as a URL: {e}")

        if parsed.scheme not in ('http', 'https') or not host:
            raise ConfigurationError(f"Couldn't parse '{url}' as a URL: "
                                     f"expected an absolute http(s) URL")

    @staticmethod
    def _resolve_mode(mode: Any, wordlist: Optional[Tuple[str, ...]],
                      seed_urls: Tuple[str, ...], fuzz_marker: str) -> CrawlMode:
        if isinstance(mode, CrawlMode):
            resolved = mode
        elif mode:
            try:
                resolved = CrawlMode(str(mode).lower().replace('-', '_'))
            except ValueError:
                choices = ', '.join(m.value for m in CrawlMode)
                raise ConfigurationError(f"Unknown crawl mode '{mode}', expected one of: {choices}")
        elif wordlist is not None:
            if any(fuzz_marker in url for url in seed_urls):
                resolved = CrawlMode.FUZZ
            else:
                resolved = CrawlMode.FORCED_BROWSE
        else:
            resolved = CrawlMode.DEEP

        if resolved.needs_wordlist and wordlist is None:
            raise ConfigurationError(f"Mode '{resolved.value}' requires a wordlist")
        if resolved is CrawlMode.FUZZ and not any(fuzz_marker in url for url in seed_urls):
            raise ConfigurationError(f"Fuzz mode requires the {fuzz_marker} marker in at least one seed URL")
        if resolved.expands and wordlist is not None:
            logger.warning(f"Wordlist ignored in {resolved.value} mode")

        return resolved


def load_config(config_path: Optional[str] = None,
                overrides: Optional[Mapping[str, Any]] = None,
                environ: Optional[Mapping[str, str]] = None) -> Config:
    """Load configuration from file, environment and overrides."""
    return ConfigManager(config_path).load_config(overrides, environ)

