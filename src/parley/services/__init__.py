"""Business logic services for the Parley application."""

from .conversations import ConversationIndex, ConversationSummary
from .crypto import KeyExchange
from .ledger import MessageLedger
from .rate_limit import MessageRateLimiter
from .reactions import ReactionAggregator
from .read_tracker import ReadTracker

__all__ = [
    "ConversationIndex",
    "ConversationSummary",
    "KeyExchange",
    "MessageLedger",
    "MessageRateLimiter",
    "ReactionAggregator",
    "ReadTracker",
]
