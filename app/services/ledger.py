"""
Purchase ledger: the rule deciding how a customer's counter moves.

A customer collects purchases until the counter reaches the reward threshold.
The reward is granted lazily: the purchase that reaches the threshold only
marks the card as ready, and the *next* redemption grants the free coffee and
resets the counter to 0. Exactly one history event is produced per call.
"""

from dataclasses import dataclass
from enum import Enum

DEFAULT_REWARD_THRESHOLD = 6


class PurchaseAction(str, Enum):
    PURCHASE = "purchase"
    FREE_COFFEE = "free_coffee"


@dataclass(frozen=True)
class LedgerDecision:
    """Outcome of one redemption event."""

    previous_count: int
    new_count: int
    action: PurchaseAction
    reward_granted: bool
    reward_ready: bool


def decide_purchase(current_count: int, threshold: int = DEFAULT_REWARD_THRESHOLD) -> LedgerDecision:
    """Compute the next counter value for a customer holding `current_count`.

    Raises:
        ValueError: if the threshold is not positive or the count is negative
    """
    if threshold < 1:
        raise ValueError(f"Reward threshold must be positive, got {threshold}")
    if current_count < 0:
        raise ValueError(f"Purchase count cannot be negative, got {current_count}")

    if current_count >= threshold:
        return LedgerDecision(
            previous_count=current_count,
            new_count=0,
            action=PurchaseAction.FREE_COFFEE,
            reward_granted=True,
            reward_ready=False,
        )

    new_count = current_count + 1
    return LedgerDecision(
        previous_count=current_count,
        new_count=new_count,
        action=PurchaseAction.PURCHASE,
        reward_granted=False,
        reward_ready=new_count >= threshold,
    )


def purchase_message(decision: LedgerDecision) -> str:
    """Human-readable message for the barista screen."""
    if decision.reward_granted:
        return "Free coffee granted! Card has been reset."
    if decision.reward_ready:
        return "Congratulations! Next coffee is free!"
    return "Purchase added successfully"
