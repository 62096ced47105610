from __future__ import annotations
import asyncio
from typing import Any, Awaitable, Callable, Iterator, Protocol

import structlog

from .models import CachedView, DiffResult

logger = structlog.get_logger()


class ViewPresenter(Protocol):
    def present(self, view: CachedView) -> Any: ...


class ViewCache:
    """Location key -> materialized view for one session.

    Writes overwrite (last writer wins); nothing is evicted until ``clear``.
    """

    def __init__(self):
        self._views: dict[str, CachedView] = {}
        self._inflight: dict[str, asyncio.Future[CachedView]] = {}

    def put(self, location_key: str, view: CachedView) -> None:
        self._views[location_key] = view

    def get(self, location_key: str) -> CachedView | None:
        return self._views.get(location_key)

    def materialize(self, location_key: str, result: DiffResult, metadata: dict[str, Any] | None = None) -> CachedView:
        view = CachedView(location_key=location_key, result=result, metadata=dict(metadata or {}))
        self.put(location_key, view)
        return view

    async def load(
        self,
        location_key: str,
        factory: Callable[[], Awaitable[DiffResult]],
        metadata: dict[str, Any] | None = None,
    ) -> CachedView:
        """Produce and store the view for ``location_key``.

        Callers arriving while a load for the same key is running share its
        outcome instead of issuing their own query.
        """
        pending = self._inflight.get(location_key)
        if pending is not None:
            logger.debug("view_load_joined", location_key=location_key)
            return await pending

        future: asyncio.Future[CachedView] = asyncio.get_running_loop().create_future()
        self._inflight[location_key] = future
        try:
            result = await factory()
            view = self.materialize(location_key, result, metadata)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # consumed here so an unjoined flight does not warn
            future.exception()
            raise
        else:
            future.set_result(view)
            return view
        finally:
            del self._inflight[location_key]

    def clear(self) -> None:
        self._views.clear()

    def keys(self) -> list[str]:
        return list(self._views)

    def __contains__(self, location_key: object) -> bool:
        return location_key in self._views

    def __len__(self) -> int:
        return len(self._views)

    def __iter__(self) -> Iterator[str]:
        return iter(self._views)
