"""
Bookmark state reconciler.

The local list is an immutable BookmarkState. Every mutation source (a local
add confirmed by the server, a local optimistic delete, a realtime insert or
delete, a full resync) is a tagged event applied by the pure `reduce` function,
so any interleaving of sources can be replayed deterministically.

Merge rules:
- inserts (Add and RemoteInsert) are ignored when the id is already present,
  so a realtime echo of our own add never duplicates it, whichever arrives first;
- removals (Remove and RemoteDelete) filter unconditionally and are idempotent;
- the list stays ordered newest first by created_at.
"""
from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

from bookmark_client.models import Bookmark, ChangeEvent, RemoteChange


@dataclass(frozen=True)
class Add:
    """A server-confirmed bookmark created by this client."""

    bookmark: Bookmark


@dataclass(frozen=True)
class Remove:
    """Optimistic local removal, applied before the delete request completes."""

    bookmark_id: UUID


@dataclass(frozen=True)
class RemoteInsert:
    """A bookmark created elsewhere (or our own add echoed back)."""

    bookmark: Bookmark


@dataclass(frozen=True)
class RemoteDelete:
    """A bookmark deleted elsewhere (or our own delete echoed back)."""

    bookmark_id: UUID


@dataclass(frozen=True)
class Resync:
    """Replace local state with a freshly fetched authoritative list."""

    bookmarks: tuple[Bookmark, ...]


BookmarkEvent = Add | Remove | RemoteInsert | RemoteDelete | Resync


@dataclass(frozen=True)
class BookmarkState:
    """Ordered (newest first), duplicate-free list of bookmarks."""

    bookmarks: tuple[Bookmark, ...] = ()

    @classmethod
    def from_records(cls, records: Iterable[Bookmark]) -> "BookmarkState":
        """Build a state from arbitrary records, dropping repeated ids."""
        return reduce(cls(), Resync(tuple(records)))

    def __len__(self) -> int:
        return len(self.bookmarks)

    def __contains__(self, bookmark_id: object) -> bool:
        return any(b.id == bookmark_id for b in self.bookmarks)

    @property
    def ids(self) -> list[UUID]:
        """Bookmark ids in display order."""
        return [b.id for b in self.bookmarks]


def _insert(bookmarks: tuple[Bookmark, ...], bookmark: Bookmark) -> tuple[Bookmark, ...]:
    if any(b.id == bookmark.id for b in bookmarks):
        return bookmarks
    # Ahead of the first entry that is not newer, so the newest record is a prepend
    for index, existing in enumerate(bookmarks):
        if existing.created_at <= bookmark.created_at:
            return (*bookmarks[:index], bookmark, *bookmarks[index:])
    return (*bookmarks, bookmark)


def _without(bookmarks: tuple[Bookmark, ...], bookmark_id: UUID) -> tuple[Bookmark, ...]:
    remaining = tuple(b for b in bookmarks if b.id != bookmark_id)
    if len(remaining) == len(bookmarks):
        return bookmarks
    return remaining


def reduce(state: BookmarkState, event: BookmarkEvent) -> BookmarkState:
    """Apply one event and return the new state. Never mutates `state`."""
    match event:
        case Add(bookmark=bookmark) | RemoteInsert(bookmark=bookmark):
            bookmarks = _insert(state.bookmarks, bookmark)
        case Remove(bookmark_id=bookmark_id) | RemoteDelete(bookmark_id=bookmark_id):
            bookmarks = _without(state.bookmarks, bookmark_id)
        case Resync(bookmarks=records):
            seen: set[UUID] = set()
            unique = []
            for record in records:
                if record.id not in seen:
                    seen.add(record.id)
                    unique.append(record)
            bookmarks = tuple(sorted(unique, key=lambda b: b.created_at, reverse=True))
        case _:
            raise TypeError(f"Unknown bookmark event: {event!r}")

    if bookmarks is state.bookmarks:
        return state
    return BookmarkState(bookmarks)


def event_for_change(change: RemoteChange) -> RemoteInsert | RemoteDelete:
    """Map a realtime change payload to the reducer event it represents."""
    if change.event == ChangeEvent.INSERT and change.new is not None:
        return RemoteInsert(change.new)
    if change.event == ChangeEvent.DELETE and change.old is not None:
        return RemoteDelete(change.old.id)
    raise ValueError(f"Malformed {change.event} change: missing record")
