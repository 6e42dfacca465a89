"""
Outcome type for calls that can fail softly.

The Gemini client and the lead/broker/funnel services hand back a Result so
callers branch on is_failure and error_code instead of matching on message
text such as "AI Error: ...".
"""

from typing import TypeVar, Generic, Optional, Any, Dict, Callable
from dataclasses import dataclass

T = TypeVar('T')


@dataclass
class Result(Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def success(cls, data: T, metadata: Optional[Dict[str, Any]] = None) -> 'Result[T]':
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def failure(cls, error: str, code: Optional[str] = None,
                metadata: Optional[Dict[str, Any]] = None) -> 'Result[T]':
        """
        Args:
            error: Message safe to show to an API client
            code: Stable identifier routes map to HTTP statuses (NOT_FOUND, DUPLICATE_EMAIL...)
            metadata: Extra context such as the model name or upstream status code
        """
        return cls(success=False, error=error, error_code=code, metadata=metadata)

    @property
    def is_success(self) -> bool:
        return self.success

    @property
    def is_failure(self) -> bool:
        return not self.success

    def unwrap(self) -> T:
        if not self.success:
            raise ValueError(f"Result is a failure ({self.error_code}): {self.error}")
        return self.data

    def unwrap_or(self, default: T) -> T:
        return self.data if self.success else default

    def map(self, func: Callable[[T], Any]) -> 'Result':
        """Transform the payload of a success; failures pass through untouched."""
        return Result.success(func(self.data), self.metadata) if self.success else self

    def __bool__(self) -> bool:
        return self.success
