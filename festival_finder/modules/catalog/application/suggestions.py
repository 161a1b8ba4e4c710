"""Autocomplete over the unfiltered catalog."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from loguru import logger

from festival_finder.core.config import settings
from festival_finder.core.domain.reactive import Signal
from festival_finder.modules.catalog.domain.entities import Festival
from festival_finder.modules.catalog.domain.query import matches_text, normalize_term

NO_SELECTION = -1


class SuggestionKey(StrEnum):
    """Keyboard actions understood by the matcher."""

    ARROW_DOWN = "ArrowDown"
    ARROW_UP = "ArrowUp"
    ENTER = "Enter"
    ESCAPE = "Escape"


@dataclass(frozen=True)
class SuggestionCommit:
    """Result of committing the suggestion box.

    Exactly one of ``festival`` (a chosen candidate) or ``search_text``
    (a free-text search) is set.
    """

    festival: Festival | None = None
    search_text: str | None = None

    @property
    def is_festival(self) -> bool:
        return self.festival is not None


class SuggestionMatcher:
    """Candidate list plus a keyboard-navigable active index.

    ``active_index`` is ``-1`` when nothing is selected and always stays
    within ``[-1, len(candidates) - 1]``.
    """

    def __init__(
        self,
        records: Signal[tuple[Festival, ...]],
        *,
        limit: int | None = None,
    ) -> None:
        self._records = records
        self.limit = limit or settings.SUGGESTION_LIMIT
        self._term = ""

        self.candidates: Signal[tuple[Festival, ...]] = Signal(
            (), name="suggestions"
        )
        self.active_index: Signal[int] = Signal(NO_SELECTION, name="active_index")
        self.is_open: Signal[bool] = Signal(False, name="suggestions_open")

        self._unsubscribe: Callable[[], None] | None = records.subscribe(
            self._on_records_change
        )

    @property
    def term(self) -> str:
        return self._term

    @property
    def active(self) -> Festival | None:
        index = self.active_index.value
        candidates = self.candidates.value
        if 0 <= index < len(candidates):
            return candidates[index]
        return None

    def update(self, term: str) -> tuple[Festival, ...]:
        """Recompute candidates for ``term``; a new term clears the selection."""
        if term != self._term:
            self._term = term
            self.active_index.set(NO_SELECTION)
        candidates = self._match(term)
        self._show(candidates)
        return candidates

    def move_down(self) -> None:
        count = len(self.candidates.value)
        if count == 0:
            return
        self.active_index.set(min(self.active_index.value + 1, count - 1))

    def move_up(self) -> None:
        self.active_index.set(max(self.active_index.value - 1, NO_SELECTION))

    def hover(self, index: int) -> bool:
        """Pointer hover. Out-of-range indexes are ignored."""
        if not NO_SELECTION <= index < len(self.candidates.value):
            return False
        self.active_index.set(index)
        return True

    def handle_key(self, key: str) -> SuggestionCommit | None:
        """Dispatch a keyboard action. Only ``Enter`` returns a commit."""
        try:
            action = SuggestionKey(key)
        except ValueError:
            return None

        match action:
            case SuggestionKey.ARROW_DOWN:
                self.move_down()
            case SuggestionKey.ARROW_UP:
                self.move_up()
            case SuggestionKey.ENTER:
                return self.commit()
            case SuggestionKey.ESCAPE:
                self.dismiss()
        return None

    def commit(self) -> SuggestionCommit:
        """Commit the active candidate, or the typed term as a free-text search."""
        festival = self.active
        self._clear()
        if festival is not None:
            return SuggestionCommit(festival=festival)
        return SuggestionCommit(search_text=self._term)

    def select(self, index: int) -> SuggestionCommit | None:
        """Pointer click on a candidate."""
        candidates = self.candidates.value
        if not 0 <= index < len(candidates):
            return None
        festival = candidates[index]
        self._clear()
        return SuggestionCommit(festival=festival)

    def dismiss(self) -> None:
        """Close the list, e.g. on focus loss."""
        self._clear()

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _match(self, term: str) -> tuple[Festival, ...]:
        normalized = normalize_term(term)
        if not normalized:
            return ()
        found = []
        for festival in self._records.value:
            if matches_text(festival, normalized):
                found.append(festival)
                if len(found) >= self.limit:
                    break
        return tuple(found)

    def _show(self, candidates: tuple[Festival, ...]) -> None:
        self.candidates.set(candidates)
        if self.active_index.value >= len(candidates):
            self.active_index.set(NO_SELECTION)
        self.is_open.set(bool(candidates))

    def _clear(self) -> None:
        self.active_index.set(NO_SELECTION)
        self.candidates.set(())
        self.is_open.set(False)

    def _on_records_change(self, _records: tuple[Festival, ...]) -> None:
        if not self.is_open.value:
            return
        logger.debug("Refreshing suggestions after catalog change")
        self.active_index.set(NO_SELECTION)
        self._show(self._match(self._term))
