"""Incremental citation deduplication."""

from typing import Iterable

from ..models import Citation


class GroundingAggregator:
    """Order-preserving set of citations keyed by uri.

    The first title seen for a uri wins. Merging a new record is a single
    dict lookup, so repeated calls as fragments arrive never rescan what was
    already merged.
    """

    def __init__(self, existing: Iterable[Citation] = ()):
        # dicts keep insertion order, which is first-appearance order here
        self._by_uri: dict[str, Citation] = {}
        self.accumulate(existing)

    def accumulate(self, records: Iterable[Citation]) -> list[Citation]:
        """Merge new records and return the merged citations."""
        for record in records:
            if not record.uri or not record.title:
                continue
            if record.uri not in self._by_uri:
                self._by_uri[record.uri] = record
        return self.citations

    @property
    def citations(self) -> list[Citation]:
        return list(self._by_uri.values())

    def __len__(self) -> int:
        return len(self._by_uri)

    def __contains__(self, uri: object) -> bool:
        return uri in self._by_uri


def accumulate(
    existing: Iterable[Citation], new_records: Iterable[Citation]
) -> list[Citation]:
    """Merge `new_records` into `existing`, returning a new list."""
    return GroundingAggregator(existing).accumulate(new_records)
