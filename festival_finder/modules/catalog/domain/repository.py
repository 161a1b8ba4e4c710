"""Catalog data collaborator port."""

from typing import Any, Protocol

RawRecord = dict[str, Any]


class FestivalDataSource(Protocol):
    """Port for fetching the raw festival collection."""

    async def fetch_all_records(self) -> list[RawRecord]:
        """Return every raw record, possibly malformed.

        Raises:
            DataLoadError: when the collection cannot be fetched at all.
        """
        ...
