"""
Review status transitions for submissions and offers.

    pending ──approve──> approved   (terminal)
       └─────reject────> rejected   (terminal)

Every edge maps to one admin message and one end-user message.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Tuple

from notifications import Severity
from schemas import ReviewStatus


class EntityKind(str, Enum):
    SUBMISSION = "submission"
    OFFER = "offer"


ALLOWED_TRANSITIONS: Dict[ReviewStatus, FrozenSet[ReviewStatus]] = {
    ReviewStatus.PENDING: frozenset({ReviewStatus.APPROVED, ReviewStatus.REJECTED}),
    ReviewStatus.APPROVED: frozenset(),
    ReviewStatus.REJECTED: frozenset(),
}


def can_transition(current: ReviewStatus, new: ReviewStatus) -> bool:
    return ReviewStatus(new) in ALLOWED_TRANSITIONS[ReviewStatus(current)]


@dataclass(frozen=True)
class TransitionMessage:
    admin: str
    user: str
    admin_severity: Severity
    user_severity: Severity


# Placeholders: {title} for all; {amount} and {name} for offers.
TRANSITION_MESSAGES: Dict[Tuple[EntityKind, ReviewStatus], TransitionMessage] = {
    (EntityKind.SUBMISSION, ReviewStatus.APPROVED): TransitionMessage(
        admin='Submission "{title}" has been approved. Collection will be arranged with the seller.',
        user='Your submission "{title}" has been approved! Our team will contact you to arrange collection.',
        admin_severity=Severity.SUCCESS,
        user_severity=Severity.SUCCESS,
    ),
    (EntityKind.SUBMISSION, ReviewStatus.REJECTED): TransitionMessage(
        admin='Submission "{title}" has been rejected.',
        user='Your submission "{title}" has been rejected. Please review similar items in our shop for pricing guidance.',
        admin_severity=Severity.INFO,
        user_severity=Severity.ERROR,
    ),
    (EntityKind.OFFER, ReviewStatus.APPROVED): TransitionMessage(
        admin='Offer of ₹{amount} from {name} for "{title}" has been approved.',
        user='Your offer of ₹{amount} for "{title}" has been approved! Please complete the payment within 24 hours.',
        admin_severity=Severity.SUCCESS,
        user_severity=Severity.SUCCESS,
    ),
    (EntityKind.OFFER, ReviewStatus.REJECTED): TransitionMessage(
        admin='Offer of ₹{amount} from {name} for "{title}" has been rejected.',
        user='Your offer for "{title}" has been rejected. Feel free to browse our other items.',
        admin_severity=Severity.INFO,
        user_severity=Severity.ERROR,
    ),
}

ADDED_TO_SHOP = TransitionMessage(
    admin='"{title}" has been added to the shop.',
    user='Your item "{title}" is now available in the shop!',
    admin_severity=Severity.SUCCESS,
    user_severity=Severity.SUCCESS,
)


def message_for(kind: EntityKind, status: ReviewStatus) -> TransitionMessage:
    return TRANSITION_MESSAGES[(EntityKind(kind), ReviewStatus(status))]


def format_amount(amount: float) -> str:
    return f"{amount:,.0f}" if float(amount).is_integer() else f"{amount:,.2f}"
