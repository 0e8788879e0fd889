"""Budget-driven retention policy deciding when and what to compact."""

import logging
from typing import Optional, Protocol, Sequence, Tuple

from config.settings import Settings

logger = logging.getLogger(__name__)


class Compactable(Protocol):
    """Anything with a character count: raw turns (L1 input) or L1 summaries (L2 input)."""

    @property
    def char_count(self) -> int: ...


class RetentionPolicy:
    """
    Decides when a tier's pending content must be compacted, and how much.

    Tier 1 watches raw turn text not yet covered by an L1 summary; tier 2
    watches L1 summary text not yet consolidated into an L2 summary. A
    compaction event takes roughly one threshold's worth of the oldest
    pending units, never more, so a single summarization call stays bounded.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize retention policy.

        Args:
            settings: Memory settings (thresholds and L2 trigger mode)
        """
        self.settings = settings or Settings()

    def threshold(self, tier: int) -> int:
        """Character threshold for the tier."""
        return self.settings.threshold_chars(tier)

    def _counts_units(self, tier: int) -> bool:
        return tier == 2 and self.settings.l2_trigger == "count"

    def should_compact(self, tier: int, accumulated_chars: int, pending_units: Optional[int] = None) -> bool:
        """
        Check whether a compaction pass into ``tier`` is due.

        Args:
            tier: Target tier (1 or 2)
            accumulated_chars: Characters of pending content in the tier below
            pending_units: Number of pending units (used by the count-based L2 trigger)

        Returns:
            True when the pending content exceeds the tier threshold
        """
        if tier not in (1, 2):
            raise ValueError(f"Unsupported compaction tier: {tier}")

        if self._counts_units(tier):
            return (pending_units or 0) >= self.settings.l2_count_threshold

        return accumulated_chars > self.threshold(tier)

    def should_compact_units(self, tier: int, pending: Sequence[Compactable]) -> bool:
        return self.should_compact(
            tier,
            sum(unit.char_count for unit in pending),
            pending_units=len(pending)
        )

    def select_range(self, tier: int, pending: Sequence[Compactable]) -> Optional[Tuple[int, int]]:
        """
        Select the oldest pending units for one compaction event.

        Units are added oldest-first until the next one would push the total
        over the threshold. The oldest unit is always taken, even when it is
        larger than the threshold on its own, so compaction makes progress.

        Args:
            tier: Target tier (1 or 2)
            pending: Not-yet-compacted units, oldest first

        Returns:
            Half-open (start, end) positions into ``pending``, or None if empty
        """
        if not pending:
            return None

        if self._counts_units(tier):
            return 0, min(len(pending), self.settings.l2_count_threshold)

        limit = self.threshold(tier)
        total = pending[0].char_count
        end = 1
        while end < len(pending):
            next_total = total + pending[end].char_count
            if next_total > limit:
                break
            total = next_total
            end += 1

        logger.debug(f"Selected {end} pending units ({total} chars) for L{tier} compaction")
        return 0, end
