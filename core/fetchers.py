import inspect
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Sequence, Tuple

from asgiref.sync import sync_to_async

RelationOption = Any
Fetcher = Callable[..., Awaitable[Sequence[RelationOption]]]


def as_async_fetcher(fetcher: Callable[..., Any]) -> Fetcher:
    """
    Coroutine functions are used as they are; plain callables (ORM queries,
    API clients) run in a worker thread through `sync_to_async`.
    """
    if inspect.iscoroutinefunction(fetcher):
        return fetcher
    return sync_to_async(fetcher)


def static_fetcher(options: Sequence[RelationOption]) -> Fetcher:
    """Fetcher over a fixed candidate list, e.g. enum-like relations."""
    frozen = list(options)

    async def fetch(search: Any = None) -> Sequence[RelationOption]:
        return list(frozen)

    return fetch


def option_id(record: RelationOption) -> Any:
    if isinstance(record, Mapping):
        return record['id']
    return getattr(record, 'id')


def default_render_option(record: RelationOption) -> Tuple[Any, str]:
    identifier = option_id(record)
    return identifier, str(identifier)
