# migrator/core/errors.py

from typing import Any, Dict, Optional


class MigrationError(Exception):
    """Base class for every failure the migrator reports to the operator"""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.message} ({details})"


class TransportError(MigrationError):
    """A remote read or write call failed (network, auth or contract-side rejection)"""

    def __init__(self, message: str, method: Optional[str] = None, **context):
        if method is not None:
            context = {"method": method, **context}
        super().__init__(message, context)
        self.method = method

    def at_position(self, stage: str, **position) -> "TransportError":
        """Copy of this error tagged with the stage and page/batch where it happened"""
        context = {key: value for key, value in self.context.items() if key != "method"}
        context.update(stage=stage, **position)
        return TransportError(self.message, method=self.method, **context)


RemoteCallError = TransportError


class IntegrityError(MigrationError):
    """An invariant of the staged snapshot does not hold; nothing may be replayed"""


class ConfigError(MigrationError):
    """Required configuration is missing or invalid"""
