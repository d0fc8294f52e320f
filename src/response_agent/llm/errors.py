"""Errors raised by remote API transports."""

from __future__ import annotations


class TransportError(RuntimeError):
    """A remote call failed. ``status`` is ``None`` for network-level failures."""

    def __init__(self, status: int | None, message: str) -> None:
        self.status = status
        self.message = message
        prefix = f"HTTP {status}" if status is not None else "Transport error"
        super().__init__(f"{prefix}: {message}")
