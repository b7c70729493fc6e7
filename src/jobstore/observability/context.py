# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""
Logging context management using ContextVars.
Thread-safe context propagation for store observability.
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass, replace
from typing import Any, Optional


@dataclass(frozen=True)
class ContextData:
    """
    Immutable value object containing observability context fields.
    """

    correlation_id: Optional[str] = None
    instance_id: Optional[str] = None

    def with_updates(self, **kwargs: Any) -> "ContextData":
        """
        Create new ContextData with updated fields.
        """
        return replace(self, **kwargs)

    def to_dict(self) -> dict[str, Optional[str]]:
        """
        Convert to dictionary for logging (non-None values only).
        """
        return {
            k: v
            for k, v in {
                "correlation_id": self.correlation_id,
                "instance_id": self.instance_id,
            }.items()
            if v is not None
        }


class ObservabilityContextManager:
    """
    Singleton manager for observability context.
    Wraps the underlying ContextVar behind a small API.
    """

    _instance: Optional["ObservabilityContextManager"] = None
    _var: Optional[ContextVar[ContextData]] = None

    def __new__(cls) -> "ObservabilityContextManager":
        """Ensure singleton instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._var = ContextVar("jobstore_observability_context", default=ContextData())
        return cls._instance

    @classmethod
    def instance(cls) -> "ObservabilityContextManager":
        """Get singleton instance.

        :returns: Singleton ObservabilityContextManager
        :rtype: ObservabilityContextManager
        """
        return cls()

    @classmethod
    def reset_instance(cls) -> None:
        """Reset singleton (for testing only)."""
        cls._instance = None
        cls._var = None

    @property
    def _context_var(self) -> ContextVar[ContextData]:
        assert self._var is not None, "ObservabilityContextManager not initialized"
        return self._var

    def get_context(self) -> ContextData:
        return self._context_var.get()

    def set_context(self, data: ContextData) -> Token:
        """Set context data, returning token for restoration.

        :param data: ContextData to set
        :type data: ContextData
        :returns: Token for resetting to previous state
        :rtype: Token
        """
        return self._context_var.set(data)

    def reset(self, token: Token) -> None:
        self._context_var.reset(token)

    @property
    def correlation_id(self) -> Optional[str]:
        """Get current correlation ID."""
        return self.get_context().correlation_id

    @property
    def instance_id(self) -> Optional[str]:
        """Get current store instance ID."""
        return self.get_context().instance_id

    def set_correlation_id(self, value: Optional[str] = None) -> str:
        """Set correlation ID (generates UUID if None)."""
        cid = value or str(uuid.uuid4())
        self.set_context(self.get_context().with_updates(correlation_id=cid))
        return cid

    def set_instance_id(self, value: Optional[str]) -> None:
        self.set_context(self.get_context().with_updates(instance_id=value))

    def get_all(self) -> dict[str, Optional[str]]:
        """Get all context values as dictionary.

        :returns: Dictionary with all non-empty context values
        :rtype: dict[str, Optional[str]]
        """
        return self.get_context().to_dict()

    def clear(self) -> None:
        """Clear all context values."""
        self.set_context(ContextData())


class ObservabilityScope:
    """
    Context manager for scoped observability context.
    """

    def __init__(
        self,
        correlation_id: Optional[str] = None,
        instance_id: Optional[str] = None,
        auto_correlation_id: bool = False,
    ) -> None:
        """Initialize scope with context values.

        :param correlation_id: Correlation ID to set
        :param instance_id: Store instance ID to set
        :param auto_correlation_id: Generate correlation_id if not provided
        """
        self._correlation_id = correlation_id
        self._instance_id = instance_id
        self._auto_correlation_id = auto_correlation_id
        self._token: Optional[Token] = None
        self._manager = ObservabilityContextManager.instance()

    def __enter__(self) -> "ObservabilityScope":
        """Enter scope and set context values."""
        updates: dict[str, str] = {}

        if self._correlation_id is not None:
            updates["correlation_id"] = self._correlation_id
        elif self._auto_correlation_id:
            updates["correlation_id"] = str(uuid.uuid4())

        if self._instance_id is not None:
            updates["instance_id"] = self._instance_id

        if updates:
            current = self._manager.get_context()
            self._token = self._manager.set_context(current.with_updates(**updates))

        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit scope and restore previous context."""
        if self._token is not None:
            self._manager.reset(self._token)
            self._token = None


def get_correlation_id() -> Optional[str]:
    """Get current correlation ID."""
    return ObservabilityContextManager.instance().correlation_id


def set_correlation_id(value: Optional[str] = None) -> str:
    """Set correlation ID."""
    return ObservabilityContextManager.instance().set_correlation_id(value)


def get_instance_id() -> Optional[str]:
    """Get current store instance ID."""
    return ObservabilityContextManager.instance().instance_id


def clear_context() -> None:
    """Clear all context."""
    ObservabilityContextManager.instance().clear()
