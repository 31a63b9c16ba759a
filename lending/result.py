"""
Operation Result Module

Core operations return a Result instead of raising across component
boundaries. A failed Result carries the error category and, for validation
failures, the name of the offending field.
"""

from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

T = TypeVar('T')


class ErrorType:
    """Standard error categories"""
    VALIDATION = "VALIDATION"    # Malformed or out-of-range input
    NOT_FOUND = "NOT_FOUND"      # Unknown loan id
    CONFLICT = "CONFLICT"        # Business rule violation (already paid, balance pending)
    PERSISTENCE = "PERSISTENCE"  # Storage backend failure


@dataclass
class Result(Generic[T]):
    """
    Outcome of a core operation

    Usage:
        result = registry.delete("0003")
        if not result:
            print(result.error_type, result.error)
    """
    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    field_name: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls, value: T = None, warnings: Optional[List[str]] = None) -> 'Result[T]':
        """Create a successful result"""
        return cls(success=True, value=value, warnings=list(warnings or []))

    @classmethod
    def fail(cls, error: str, error_type: str, field_name: Optional[str] = None) -> 'Result[T]':
        """Create a failed result"""
        return cls(success=False, error=error, error_type=error_type, field_name=field_name)

    @classmethod
    def invalid(cls, field_name: str, error: str) -> 'Result[T]':
        """Create a validation failure naming the offending field"""
        return cls.fail(error, ErrorType.VALIDATION, field_name=field_name)

    def __bool__(self) -> bool:
        return self.success

    def unwrap(self) -> T:
        """
        Get the value, raising if the operation failed

        Raises:
            ValueError: If the operation failed
        """
        if not self.success:
            raise ValueError(f"Result unwrap failed: {self.error}")
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Get the value or a default if the operation failed"""
        return self.value if self.success else default
