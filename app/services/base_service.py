from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import AppError, DatabaseError
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")


class BaseService:
    """Base class for application services.

    Provides a standardized execution flow with error translation: domain
    errors pass through, persistence errors become DatabaseError and anything
    else becomes AppError. The original exception is kept on the wrapper and
    logged, never returned to callers.
    """

    def __init__(self):
        self.logger = LOGGER

    async def execute(self, operation: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Execute one service operation.

        Args:
            operation: Coroutine function implementing the operation
            *args: Positional arguments for the operation
            **kwargs: Keyword arguments for the operation

        Returns:
            Result of the operation

        Raises:
            AppError: If execution fails
        """
        name = getattr(operation, "__name__", "operation").lstrip("_")
        try:
            return await operation(*args, **kwargs)

        except AppError:
            raise

        except SQLAlchemyError as e:
            self.logger.error(
                f"Persistence failure in {name}: {str(e)}",
                exc_info=True,
                extra={"service": self.__class__.__name__}
            )
            raise DatabaseError(f"{name} failed: database error", original_error=e)

        except Exception as e:
            self.logger.error(
                f"Service execution failed: {str(e)}",
                exc_info=True,
                extra={"service": self.__class__.__name__}
            )
            raise AppError(f"Service execution failed: {str(e)}", original_error=e)
