"""Iteration over every item of a paginated index.

Index endpoints return one page at a time in an envelope of the form::

    {
        "pagination": {"offset": 0, "limit": 25, "total": 110},
        "result": [{...}, {...}]
    }

:class:`Collection` walks such an index page by page, passing an ``offset``
filter, and yields the individual items.
"""

from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from .exceptions import APIError
from .log_config import logger

if TYPE_CHECKING:
    from .client import Client


class Collection:
    """Lazily loaded view of all items of an API resource index.

    Attributes:
        _client: Client used to fetch pages.
        _resource: The resource to index.
        _filters: Filters sent with every page request.
        _entity_model: Optional Pydantic model each item is parsed into.
        _total: Total number of items as reported by the last page, if loaded.
        _first_page: Items of the page loaded by ``len()``, kept for the next iteration.
    """

    def __init__(
        self,
        client: "Client",
        resource: str,
        filters: Mapping[str, Any] | None = None,
        *,
        entity_model: type[BaseModel] | None = None,
    ):
        self._client = client
        self._resource = resource
        self._filters = dict(filters or {})
        self._entity_model = entity_model
        self._total: int | None = None
        self._first_page: list[Any] | None = None

    def _load_page(self, offset: int) -> list[Any]:
        filters = {**self._filters, "offset": offset}
        logger.debug(f"Loading {self._resource} page at offset {offset}")
        response = self._client.index(self._resource, filters)
        if response.http_code != 200:
            raise APIError(
                f"Index of {self._resource} failed with status {response.http_code}"
            )

        body = response.body
        try:
            self._total = int(body["pagination"]["total"])
            results = list(body["result"])
        except (KeyError, TypeError, ValueError) as e:
            raise APIError(
                f"Index of {self._resource} returned an unexpected envelope: {e}"
            ) from e
        return results

    def _parse(self, item: Any) -> Any:
        if self._entity_model is None:
            return item
        return self._entity_model.model_validate(item)

    def __iter__(self) -> Iterator[Any]:
        logger.info(f"Iterating {self._resource} with filters={self._filters}")
        offset = 0
        while True:
            if offset == 0 and self._first_page is not None:
                results, self._first_page = self._first_page, None
            else:
                results = self._load_page(offset)
            if not results:
                break
            for item in results:
                yield self._parse(item)
            offset += len(results)
            if self._total is not None and offset >= self._total:
                break

    def __len__(self) -> int:
        """Total number of items in the index, loading the first page if needed."""
        if self._total is None:
            self._first_page = self._load_page(0)
        assert self._total is not None
        return self._total

    def column(self, key: str) -> list[Any]:
        """Collect the value of ``key`` from every item, skipping items without it."""
        values = []
        for item in self:
            data = item.model_dump() if isinstance(item, BaseModel) else item
            if key in data:
                values.append(data[key])
        return values
