"""
Service layer base classes.

Views parse requests and render responses; services own the billing rules.
Two failure styles coexist:

- raised BaseApplicationError subclasses for anything the API caller must
  see (bad input, missing records, provider outages)
- ServiceResult.failure for outcomes a background caller only logs, such
  as a webhook resource that correlates to no local record
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """Outcome of a service call that is allowed to fail quietly."""

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: str, error_code: str | None = None) -> ServiceResult[T]:
        return cls(success=False, error=error, error_code=error_code)

    @classmethod
    def from_exception(
        cls, exc: Exception, error_code: str | None = None
    ) -> ServiceResult[T]:
        """
        Wrap an exception as a failed result.

        Application errors keep their own error_code; anything else falls
        back to the upper-cased exception class name.
        """
        code = error_code or getattr(exc, "error_code", None)
        return cls(
            success=False,
            error=getattr(exc, "message", None) or str(exc),
            error_code=code or type(exc).__name__.upper(),
        )

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Stateless service: classmethods only, no instance state.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named after the concrete service, e.g. billing.services.checkout_service.CheckoutService."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """Run the enclosed block in a single database transaction."""
        with transaction.atomic():
            yield
