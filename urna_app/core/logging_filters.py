import logging
from typing import Any


class SkipHealthzFilter(logging.Filter):
    """Keep load-balancer probes of /healthz and /readyz out of the console log."""

    def __init__(self, prefixes: tuple[str, ...] = ("/healthz", "/readyz")) -> None:
        super().__init__()
        self.prefixes = prefixes

    def _is_probe(self, path: str) -> bool:
        return any(path.startswith(prefix) for prefix in self.prefixes)

    def filter(self, record: logging.LogRecord) -> bool:
        for candidate in (getattr(record, "request", None), *_record_args(record)):
            path = _request_path(candidate)
            if path is not None:
                return not self._is_probe(path)

        # runserver access lines only carry the request line in the message.
        message = record.getMessage()
        return not any(prefix in message for prefix in self.prefixes)


def _record_args(record: logging.LogRecord) -> tuple[Any, ...]:
    args = getattr(record, "args", None)
    return args if isinstance(args, tuple) else ()


def _request_path(obj: Any) -> str | None:
    if obj is None or isinstance(obj, str):
        return None
    path = getattr(obj, "path", None) or getattr(obj, "path_info", None)
    if isinstance(path, str) and path:
        return path
    return None
