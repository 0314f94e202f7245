from __future__ import annotations
from abc import ABC, abstractmethod
import logging
from typing import Any, Mapping, Optional


class IPipelineLogger(ABC):
    @abstractmethod
    def info(self, message: str, meta: Optional[Mapping[str, Any]] = None) -> None:
        ...

    @abstractmethod
    def warning(self, message: str, meta: Optional[Mapping[str, Any]] = None) -> None:
        ...

    @abstractmethod
    def error(self, message: str, meta: Optional[Mapping[str, Any]] = None) -> None:
        ...


class NullPipelineLogger(IPipelineLogger):
    def info(self, message, meta=None):
        pass

    def warning(self, message, meta=None):
        pass

    def error(self, message, meta=None):
        pass


def _render(message: str, meta: Optional[Mapping[str, Any]]) -> str:
    if not meta:
        return message
    pairs = " ".join(f"{k}={v!r}" for k, v in meta.items())
    return f"{message} | {pairs}"


class StdlibPipelineLogger(IPipelineLogger):
    """Forwards pipeline events to a named ``logging`` logger."""

    def __init__(self, name: str):
        self._log = logging.getLogger(name)

    def info(self, message, meta=None):
        self._log.info(_render(message, meta))

    def warning(self, message, meta=None):
        self._log.warning(_render(message, meta))

    def error(self, message, meta=None):
        self._log.error(_render(message, meta))


def truncate(text: str | None, limit: int = 100) -> str:
    text = text or ""
    return text if len(text) <= limit else text[:limit] + "..."
