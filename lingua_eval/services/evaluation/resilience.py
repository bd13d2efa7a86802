import logging
from typing import Any, Generic, Protocol, TypeVar

from lingua_eval.core.exceptions import ConfigurationError, DegradedResultError

logger = logging.getLogger(__name__)

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class Strategy(Protocol[T_co]):
    """One way of producing a stage result; primary and fallback share this shape."""

    name: str

    async def run(self, *args: Any, **kwargs: Any) -> T_co: ...


def reject_degraded(record: Any, *, stage: str, accept: bool = False) -> None:
    """Raise ``DegradedResultError`` when ``record`` is a gateway parse-failure default."""
    if accept or not getattr(record, "degraded", False):
        return
    raise DegradedResultError(f"{stage}: model response could not be decoded", {"stage": stage})


class ResilientStrategy(Generic[T]):
    """Try ``primary``; on any failure other than a configuration error run ``fallback``.

    A fallback that raises propagates to the caller unchanged.
    """

    def __init__(self, primary: Strategy[T], fallback: Strategy[T], *, stage: str) -> None:
        self.primary = primary
        self.fallback = fallback
        self.stage = stage

    async def run(self, *args: Any, **kwargs: Any) -> T:
        try:
            return await self.primary.run(*args, **kwargs)
        except ConfigurationError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                f"{self.stage}: {self.primary.name} strategy failed "
                f"({type(exc).__name__}: {exc}); using {self.fallback.name}"
            )
        return await self.fallback.run(*args, **kwargs)
