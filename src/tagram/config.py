"""TOML-based configuration for tagram.

Provides ``load_config`` / ``discover_config`` for loading ``tagram.toml``
into frozen dataclasses for the server and logging settings.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Literal, TypeAlias, TypeVar

from tagram.errors import ConfigError

__all__ = [
    "LogFormat",
    "LoggingConfig",
    "ServerConfig",
    "TagramConfig",
    "discover_config",
    "load_config",
]

CONFIG_FILENAME = "tagram.toml"
MIN_MESSAGE_SIZE = 64

LogFormat: TypeAlias = Literal["verbose", "compact", "minimal"]

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
_FORMATS = ("verbose", "compact", "minimal")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class ServerConfig:
    """Datagram server settings.

    Parameters
    ----------
    host : str
        Address to bind.
    port : int
        UDP port to bind; ``0`` picks a free port.
    max_message_size : int
        Receive buffer capacity in bytes.
    drain_timeout : float
        Seconds in-flight requests get to finish after shutdown.
    interface : str
        Network interface whose address the startup banner shows.

    Examples
    --------
    >>> ServerConfig(port=9000)
    ServerConfig(host='0.0.0.0', port=9000, max_message_size=256, ...)
    """

    host: str = "0.0.0.0"
    port: int = 0
    max_message_size: int = 256
    drain_timeout: float = 5.0
    interface: str = "eth0"

    def __post_init__(self) -> None:
        for name in ("host", "interface"):
            if not isinstance(getattr(self, name), str):
                msg = f"server.{name} must be a string, got {getattr(self, name)!r}"
                raise ConfigError(msg)
        for name in ("port", "max_message_size"):
            if not _is_int(getattr(self, name)):
                msg = f"server.{name} must be an integer, got {getattr(self, name)!r}"
                raise ConfigError(msg)
        if not _is_int(self.drain_timeout) and not isinstance(self.drain_timeout, float):
            msg = f"server.drain_timeout must be a number, got {self.drain_timeout!r}"
            raise ConfigError(msg)
        if not 0 <= self.port <= 65535:
            msg = f"server.port must be within 0..65535, got {self.port}"
            raise ConfigError(msg)
        if self.max_message_size < MIN_MESSAGE_SIZE:
            msg = f"server.max_message_size must be at least {MIN_MESSAGE_SIZE}, got {self.max_message_size}"
            raise ConfigError(msg)
        if self.drain_timeout < 0:
            msg = f"server.drain_timeout must not be negative, got {self.drain_timeout}"
            raise ConfigError(msg)


@dataclass(frozen=True)
class LoggingConfig:
    """Logging settings.

    Parameters
    ----------
    level : str
        One of ``DEBUG``, ``INFO``, ``WARNING`` or ``ERROR``.
    format : LogFormat
        ``"verbose"``, ``"compact"`` or ``"minimal"``.
    colors : bool
        Colourise output when stderr is a terminal.
    """

    level: str = "INFO"
    format: LogFormat = "verbose"
    colors: bool = True

    def __post_init__(self) -> None:
        if str(self.level).upper() not in _LEVELS:
            msg = f"logging.level must be one of {', '.join(_LEVELS)}, got {self.level!r}"
            raise ConfigError(msg)
        if self.format not in _FORMATS:
            msg = f"logging.format must be one of {', '.join(_FORMATS)}, got {self.format!r}"
            raise ConfigError(msg)


@dataclass(frozen=True)
class TagramConfig:
    """Top-level configuration container.

    Examples
    --------
    >>> config = TagramConfig()
    >>> config.server.max_message_size
    256
    >>> config = load_config(Path("tagram.toml"))
    """

    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def with_overrides(self, **server_overrides: Any) -> TagramConfig:
        """Return a copy with the non-``None`` *server_overrides* applied."""
        changes = {k: v for k, v in server_overrides.items() if v is not None}
        if not changes:
            return self
        return replace(self, server=replace(self.server, **changes))


T = TypeVar("T")


def _section(cls: type[T], raw: dict[str, Any], name: str) -> T:
    known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    unknown = sorted(set(raw) - known)
    if unknown:
        msg = f"Unknown keys in [{name}]: {', '.join(unknown)}"
        raise ConfigError(msg)
    return cls(**raw)


def discover_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) looking for ``tagram.toml``.

    Returns
    -------
    Path | None
        Path to the discovered config file, or ``None`` if not found.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(path: Path | None = None) -> TagramConfig:
    """Load a ``TagramConfig`` from a TOML file.

    If *path* is ``None``, auto-discovers ``tagram.toml`` by walking up from
    the current working directory. Returns default config if no file is found.

    Parameters
    ----------
    path : Path | None
        Explicit path to a TOML config file.

    Returns
    -------
    TagramConfig

    Raises
    ------
    FileNotFoundError
        If an explicit *path* is given but does not exist.
    ConfigError
        If the file is not valid TOML or holds unknown keys or bad values.
    """
    if path is None:
        discovered = discover_config()
        if discovered is None:
            return TagramConfig()
        path = discovered

    if not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    try:
        with path.open("rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid TOML in {path}: {exc}"
        raise ConfigError(msg) from exc

    unknown = sorted(set(raw) - {"server", "logging"})
    if unknown:
        msg = f"Unknown sections in {path}: {', '.join(unknown)}"
        raise ConfigError(msg)

    try:
        return TagramConfig(
            server=_section(ServerConfig, raw.get("server", {}), "server"),
            logging=_section(LoggingConfig, raw.get("logging", {}), "logging"),
        )
    except TypeError as exc:
        msg = f"Invalid value in {path}: {exc}"
        raise ConfigError(msg) from exc
