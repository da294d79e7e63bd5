from typing import List

from .interfaces import SubscriptionStore


class RecipientResolver:
    """Turns (channel, item) into the candidate subscriber ids for one dispatch run."""

    def __init__(self, subscriptions: SubscriptionStore):
        self.subscriptions = subscriptions

    def resolve(self, channel_id: str, item_id: int) -> List[int]:
        """
        Distinct subscriber ids with a positive identifier, ascending.

        The anonymous account (uid 0) is never a recipient. Only ids are
        returned here; account records are loaded batch by batch later.
        """
        uids = self.subscriptions.find_subscribers(channel_id, item_id)
        return sorted({int(uid) for uid in uids if uid is not None and int(uid) > 0})
