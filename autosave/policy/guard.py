"""
Linked Journal Guard

Keeps autosave idempotent: a journal that is an endpoint of any link,
whatever the link type, has been handled already and is never used as
an autosave source again. This also skips journals a user linked for
unrelated reasons.

The guard is a snapshot taken once at the start of a run. Links created
during the run are not added to it.
"""

from typing import Iterable, Iterator, Optional

from autosave.models.ledger import Link


class LinkedJournalGuard:
    """Read-only set of journal ids that already take part in a link."""

    def __init__(self, journal_ids: Iterable[int] = ()):
        self._journal_ids = frozenset(journal_ids)

    @classmethod
    def from_links(cls, links: Iterable[Link]) -> "LinkedJournalGuard":
        return cls(journal_id for link in links for journal_id in link.journal_ids())

    def is_linked(self, journal_id: Optional[int]) -> bool:
        return journal_id is not None and journal_id in self._journal_ids

    def __iter__(self) -> Iterator[int]:
        return iter(self._journal_ids)

    def __len__(self) -> int:
        return len(self._journal_ids)

    def __repr__(self) -> str:
        return f"LinkedJournalGuard({len(self)} journals)"
