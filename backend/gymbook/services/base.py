# backend/gymbook/services/base.py
"""
Base service for the booking engine.

Every service owns one SQLAlchemy session and runs its writes through
``transaction()``; timings go to Prometheus via ``measure_operation``.
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import ServiceException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# Seconds after which a measured operation is logged as slow
SLOW_OPERATION_SECONDS = 1.0


class BaseService:
    """Shared session, logging and transaction handling for services."""

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def service_name(self) -> str:
        return self.__class__.__name__

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Run one unit of work and commit it.

        Usage:
            with self.transaction():
                member.class_credits -= cost
                self.attendance_repository.create(...)

        IntegrityError and OperationalError are re-raised after rollback:
        booking code maps the first to a duplicate booking and
        ``with_db_retry`` retries the second. Any other SQLAlchemy failure
        becomes a ServiceException. Domain exceptions raised inside the block
        roll back and propagate unchanged.
        """
        try:
            yield self.db
            self.db.commit()
        except (IntegrityError, OperationalError) as e:
            self.logger.warning(f"{self.service_name} transaction aborted: {e.__class__.__name__}")
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"{self.service_name} transaction failed: {str(e)}")
            self.db.rollback()
            raise ServiceException(f"Database operation failed: {str(e)}")
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """Time the decorated method and report it to Prometheus."""

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: "BaseService", *args: Any, **kwargs: Any) -> Any:
                started = time.perf_counter()
                error_type: Optional[str] = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - started
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(
                            f"Slow operation: {operation_name} took {elapsed:.2f}s"
                        )
                    prometheus_metrics.record_service_operation(
                        service=self.service_name,
                        operation=operation_name,
                        duration=elapsed,
                        status="error" if error_type else "success",
                        error_type=error_type,
                    )

            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        """Log a completed operation with structured context."""
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})
