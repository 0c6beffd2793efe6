"""Cart mode state machine"""

import logging
from enum import Enum

from .exceptions import CartBusyError, InvalidTransitionError

logger = logging.getLogger(__name__)


class CartMode(str, Enum):
    """Which cart representation is live"""
    UNINITIALIZED = "uninitialized"
    ANONYMOUS = "anonymous"
    SYNCING = "syncing"
    AUTHENTICATED = "authenticated"


# Leaving AUTHENTICATED (logout) belongs to the auth layer, not the cart.
ALLOWED_TRANSITIONS: dict[CartMode, frozenset] = {
    CartMode.UNINITIALIZED: frozenset({CartMode.ANONYMOUS, CartMode.AUTHENTICATED}),
    CartMode.ANONYMOUS: frozenset({CartMode.SYNCING, CartMode.AUTHENTICATED}),
    CartMode.SYNCING: frozenset({CartMode.AUTHENTICATED}),
    CartMode.AUTHENTICATED: frozenset(),
}


class CartModeMachine:
    """Guards transitions between cart modes"""

    def __init__(self):
        self._mode = CartMode.UNINITIALIZED
        self._synced = False

    @property
    def mode(self) -> CartMode:
        return self._mode

    @property
    def is_ready(self) -> bool:
        return self._mode is not CartMode.UNINITIALIZED

    @property
    def is_authenticated(self) -> bool:
        return self._mode is CartMode.AUTHENTICATED

    @property
    def is_anonymous(self) -> bool:
        return self._mode is CartMode.ANONYMOUS

    @property
    def is_syncing(self) -> bool:
        return self._mode is CartMode.SYNCING

    @property
    def can_mutate(self) -> bool:
        return self._mode in (CartMode.ANONYMOUS, CartMode.AUTHENTICATED)

    def can_transition(self, target: CartMode) -> bool:
        if target is CartMode.SYNCING and self._synced:
            return False
        return target in ALLOWED_TRANSITIONS[self._mode]

    def transition(self, target: CartMode) -> None:
        """Move to `target`, raising InvalidTransitionError if not allowed"""
        if not self.can_transition(target):
            raise InvalidTransitionError(
                f"Cannot move cart from {self._mode.value} to {target.value}"
            )
        logger.info(f"Cart mode: {self._mode.value} -> {target.value}")
        if target is CartMode.SYNCING:
            self._synced = True
        self._mode = target

    def require_mutable(self) -> None:
        """Raise CartBusyError unless mutations are currently allowed"""
        if self._mode is CartMode.SYNCING:
            raise CartBusyError("Cart is syncing with your account")
        if self._mode is CartMode.UNINITIALIZED:
            raise CartBusyError("Cart is not ready yet")
