"""
Structured logging with key=value and JSON output support.

Wraps the standard library ``logging`` module so every log line is a
snake_case event name followed by structured fields:

```text
info sync relay_plan_executed relay=wss://nos.lol published=12 failed=0
```

The ``StructuredFormatter`` reads the fields from the ``structured_kv``
extra attached by [Logger][nwpublisher.core.logger.Logger]. Installed on
the root handler by the CLI, it also formats plain ``logging.getLogger()``
records emitted by the models and utils layers, so the whole process
shares one output format.

Examples:
    ```python
    from nwpublisher.core.logger import Logger

    logger = Logger("sync")
    logger.info("snapshot_collected", relays=3, events=120)
    # Output: snapshot_collected relays=3 events=120

    relay_logger = logger.bind(relay="wss://nos.lol")
    relay_logger.warning("publish_failed", event_id="ab12...")
    # Output: publish_failed relay=wss://nos.lol event_id=ab12...
    ```
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any, ClassVar


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Format a dictionary as space-separated key=value pairs.

    Values are truncated to ``max_value_length`` characters, and values
    containing whitespace, equals signs, or quotes are escaped and quoted.

    Args:
        kwargs: Key-value pairs to format.
        max_value_length: Maximum characters per value before truncation.
            Pass None to disable truncation.
        prefix: String prepended to the output (default: single space).

    Returns:
        Formatted string, e.g. ``' relay=wss://nos.lol reason="no route"'``,
        or an empty string if *kwargs* is empty.
    """
    if not kwargs:
        return ""

    parts = []
    for k, v in kwargs.items():
        s = _truncate(str(v), max_value_length)
        if not s or " " in s or "=" in s or '"' in s or "'" in s:
            escaped = s.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'{k}="{escaped}"')
        else:
            parts.append(f"{k}={s}")

    return prefix + " ".join(parts)


def _truncate(value: str, max_length: int | None) -> str:
    if max_length and len(value) > max_length:
        return value[:max_length] + f"...<truncated {len(value) - max_length} chars>"
    return value


class StructuredFormatter(logging.Formatter):
    """Formats all log records as ``level name message key=value...``.

    Records without ``structured_kv`` (plain ``logging.getLogger()`` calls)
    are emitted with the same prefix for consistency.
    """

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        extra: dict[str, Any] = getattr(record, "structured_kv", {})
        if extra:
            base += format_kv_pairs(extra)
        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)
        return base


class Logger:
    """Structured logger that appends keyword arguments as extra fields.

    Wraps a standard ``logging.Logger``. Every public method mirrors the
    standard logging API with an added ``**kwargs`` parameter that is
    rendered as key=value pairs, or merged into a JSON object when
    ``json_output`` is enabled.

    Context shared by a group of log lines (the relay being repaired, the
    command being run) is attached once with
    [bind()][nwpublisher.core.logger.Logger.bind].
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize a structured logger.

        Args:
            name: Logger name, typically the command or module name.
            json_output: If True, emit JSON objects instead of key=value pairs.
            max_value_length: Maximum character length for individual values
                before truncation. Defaults to 1000.
            context: Fields prepended to every record emitted by this logger.
        """
        if max_value_length is None:
            max_value_length = self._DEFAULT_MAX_VALUE_LENGTH
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = max_value_length
        self._context: dict[str, Any] = dict(context or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def bind(self, **context: Any) -> Logger:
        """Return a child logger that adds *context* to every record."""
        return Logger(
            self._logger.name,
            json_output=self._json_output,
            max_value_length=self._max_value_length,
            context={**self._context, **context},
        )

    def _log(self, level: int, msg: str, kwargs: dict[str, Any], *, exc_info: bool = False) -> None:
        if not self._logger.isEnabledFor(level):
            return
        fields = {**self._context, **kwargs}
        if self._json_output:
            record = {
                "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
                "level": logging.getLevelName(level).lower(),
                "service": self._logger.name,
                "message": msg,
                **fields,
            }
            self._logger.log(level, json.dumps(record, default=str), exc_info=exc_info)
            return

        extra = {
            "structured_kv": {
                k: _truncate(str(v), self._max_value_length) for k, v in fields.items()
            }
        }
        self._logger.log(level, msg, extra=extra, exc_info=exc_info)

    def debug(self, msg: str, **kwargs: Any) -> None:
        """Log a DEBUG level message with optional key=value pairs."""
        self._log(logging.DEBUG, msg, kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        """Log an INFO level message with optional key=value pairs."""
        self._log(logging.INFO, msg, kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        """Log a WARNING level message with optional key=value pairs."""
        self._log(logging.WARNING, msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        """Log an ERROR level message with optional key=value pairs."""
        self._log(logging.ERROR, msg, kwargs)

    def critical(self, msg: str, **kwargs: Any) -> None:
        """Log a CRITICAL level message with optional key=value pairs."""
        self._log(logging.CRITICAL, msg, kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log an ERROR level message with the active exception traceback."""
        self._log(logging.ERROR, msg, kwargs, exc_info=True)
