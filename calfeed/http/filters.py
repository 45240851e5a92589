from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Protocol

FILTER_KEYS = ("get", "post", "files", "cookie")


class RequestFilter(Protocol):
    """Pluggable filter applied to the collections of an HTTP request.

    ``values`` carries the current ``get``, ``post``, ``files`` and ``cookie``
    collections. The returned mapping may contain any subset of those keys;
    collections missing from it (or mapped to ``None``) are left untouched.
    """

    def filter(self, values: Mapping[str, dict[str, Any]]) -> Mapping[str, dict[str, Any] | None]:
        ...


class ValueFilter:
    """Applies a callable to every string value of the chosen collections."""

    def __init__(
        self,
        func: Callable[[str], str],
        collections: Iterable[str] = ("get", "post", "cookie"),
    ) -> None:
        self.collections = tuple(collections)
        unknown = set(self.collections) - set(FILTER_KEYS)
        if unknown:
            raise ValueError(f"Unknown request collections: {sorted(unknown)}")
        self._func = func

    def filter(self, values: Mapping[str, dict[str, Any]]) -> dict[str, dict[str, Any]]:
        return {
            key: {name: self._apply(value) for name, value in values[key].items()}
            for key in self.collections
            if key in values
        }

    def _apply(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._func(value)
        if isinstance(value, list):
            return [self._apply(item) for item in value]
        if isinstance(value, dict):
            return {name: self._apply(item) for name, item in value.items()}
        return value
