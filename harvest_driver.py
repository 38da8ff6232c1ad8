"""Scroll-driven pagination loop over a virtualized message list.

The host UI only renders a window of rows. Each pass nudges the viewport so the
UI renders more, extracts rows it has not seen before, then scrolls the
pagination sentinel into view and waits for the next page. The loop stops when
a pass brings no unseen rows or the last rendered row stops changing.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol, Sequence, Set

from harvest_state import HarvestState
from row_extraction import ConversationRow, RowExtraction, extract_row


class HarvestSetupError(RuntimeError):
    """Raised when the host page cannot be harvested at all."""


class HostPage(Protocol):
    def has_sentinel(self) -> bool:
        """Whether the end-of-rendered-content marker can be resolved."""

    def current_rows(self) -> Sequence[ConversationRow]:
        ...

    def jiggle_scroll(self, fraction: float) -> None:
        """Scroll up then back down by ``fraction`` of the viewport height."""

    def scroll_sentinel_into_view(self) -> None:
        ...

    def wait(self, seconds: float) -> None:
        ...


class HarvestPhase(Enum):
    PRIMED = "primed"
    EXTRACTING = "extracting"
    AWAITING_MORE = "awaiting_more"
    TERMINATED = "terminated"


class TerminationReason(str, Enum):
    NO_ROWS = "no_rows"
    NO_NEW_ROWS = "no_new_rows"
    END_OF_CONTENT = "end_of_content"
    MAX_PASSES = "max_passes"


@dataclass
class HarvestSettings:
    jiggle_fraction: float = 1 / 8
    settle_wait: float = 1.0
    pagination_wait: float = 5.0
    max_passes: int = 0
    verbose: bool = False


class HarvestDriver:
    """Runs one harvest session against a ``HostPage``."""

    def __init__(
        self,
        host: HostPage,
        settings: Optional[HarvestSettings] = None,
        extractor: Callable[[ConversationRow], Optional[RowExtraction]] = extract_row,
    ) -> None:
        self.host = host
        self.settings = settings or HarvestSettings()
        self.extractor = extractor
        self.state = HarvestState()
        self.phase = HarvestPhase.PRIMED
        self.termination_reason: Optional[TerminationReason] = None
        self.passes = 0
        self._last_rows: List[ConversationRow] = []

    def run(self) -> HarvestState:
        while self.phase is not HarvestPhase.TERMINATED:
            self.step()
        return self.state

    def step(self) -> HarvestPhase:
        """Advance the state machine by one transition."""

        if self.phase is HarvestPhase.PRIMED:
            if not self.host.has_sentinel():
                raise HarvestSetupError(
                    "Could not find the pagination sentinel on the page."
                )
            self.phase = HarvestPhase.EXTRACTING
        elif self.phase is HarvestPhase.EXTRACTING:
            self._extract_pass()
        elif self.phase is HarvestPhase.AWAITING_MORE:
            self._await_more()
        return self.phase

    def _extract_pass(self) -> None:
        settings = self.settings
        self.passes += 1
        self.host.jiggle_scroll(settings.jiggle_fraction)
        self.host.wait(settings.settle_wait)

        rows = list(self.host.current_rows())
        if not rows:
            print("No rows found in the message list.", file=sys.stderr)
            self._terminate(TerminationReason.NO_ROWS)
            return

        rendered_ids: List[str] = []
        new_rows: List[ConversationRow] = []
        queued: Set[str] = set()
        for row in rows:
            row_id = row.row_id
            if not row_id:
                print("Row with no ID found; skipping.", file=sys.stderr)
                continue
            rendered_ids.append(row_id)
            if self.state.is_seen(row_id) or row_id in queued:
                continue
            queued.add(row_id)
            new_rows.append(row)

        if settings.verbose:
            print(
                f"Pass {self.passes}: {len(rows)} rows rendered, {len(new_rows)} new.",
                file=sys.stderr,
            )

        if not new_rows:
            self._terminate(TerminationReason.NO_NEW_ROWS)
            return

        for row in new_rows:
            try:
                extraction = self.extractor(row)
            except Exception as exc:  # noqa: BLE001 - one bad row must not end the harvest
                print(f"Failed to extract row {row.row_id!r}: {exc}", file=sys.stderr)
                continue
            if extraction is None:
                continue
            result = self.state.merge(extraction.topic, extraction.records)
            if result.dropped:
                print(
                    f"Dropped {result.dropped} duplicate messages in topic "
                    f"{extraction.topic!r}.",
                    file=sys.stderr,
                )

        self.state.mark_seen(rendered_ids)
        self._last_rows = rows
        self.phase = HarvestPhase.AWAITING_MORE

    def _await_more(self) -> None:
        settings = self.settings
        last_row_id = self._last_rows[-1].row_id
        if last_row_id == self.state.last_terminal_row_id:
            self._terminate(TerminationReason.END_OF_CONTENT)
            return
        self.state.last_terminal_row_id = last_row_id

        if settings.max_passes and self.passes >= settings.max_passes:
            self._terminate(TerminationReason.MAX_PASSES)
            return

        self.host.scroll_sentinel_into_view()
        self.host.wait(settings.pagination_wait)
        self.phase = HarvestPhase.EXTRACTING

    def _terminate(self, reason: TerminationReason) -> None:
        self.termination_reason = reason
        self.state.freeze()
        self.phase = HarvestPhase.TERMINATED
        if self.settings.verbose:
            print(f"Harvest finished: {reason.value}.", file=sys.stderr)


def harvest(host: HostPage, settings: Optional[HarvestSettings] = None) -> HarvestState:
    return HarvestDriver(host, settings).run()
