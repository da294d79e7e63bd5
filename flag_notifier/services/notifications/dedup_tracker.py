from typing import Set


class DedupTracker:
    """
    Per-run set of recipients that already received an email for the item.

    When duplicate suppression is disabled the tracker records nothing and
    never reports a recipient as processed.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._processed: Set[int] = set()

    def should_skip(self, account_id: int) -> bool:
        return self.enabled and account_id in self._processed

    def mark(self, account_id: int) -> None:
        if self.enabled:
            self._processed.add(account_id)

    def __len__(self) -> int:
        return len(self._processed)
