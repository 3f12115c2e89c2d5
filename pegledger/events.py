"""
events.py - Protocol events and the subscriber bus

Events are just data, handlers are just functions:

1. Event types: immutable records of what an operation changed
2. EventBus: maps event types to handler functions and publishes to them

The engine buffers the events of an operation and publishes them only after
the operation commits, so subscribers never observe a reverted change. A
failing handler cannot undo that commit: publish delivers every event to
every handler and returns the failures instead of raising them.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, List, Type, Union


# ============================================================================
# EVENT DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class CollateralDeposited:
    account: str
    asset: str
    amount: int


@dataclass(frozen=True, slots=True)
class CollateralRedeemed:
    """
    Collateral left engine custody.

    redeemed_from is the position debited; redeemed_to received the tokens.
    They differ only when a liquidator seizes a target's collateral.
    """
    redeemed_from: str
    redeemed_to: str
    asset: str
    amount: int


@dataclass(frozen=True, slots=True)
class DebtMinted:
    account: str
    amount: int


@dataclass(frozen=True, slots=True)
class DebtBurned:
    """Debt of on_behalf_of was repaid with tokens pulled from payer."""
    on_behalf_of: str
    payer: str
    amount: int


@dataclass(frozen=True, slots=True)
class Liquidated:
    """
    A liquidator covered part of a target's debt.

    Attributes:
        liquidator: Account that paid the debt and received collateral
        target: Liquidated account
        asset: Collateral asset seized
        debt_covered: Debt token burned on the target's behalf
        collateral_seized: Collateral transferred, bonus included
        bonus: Part of collateral_seized paid as liquidation incentive
        health_factor_before: Target's health factor before liquidation
        health_factor_after: Target's health factor after liquidation
    """
    liquidator: str
    target: str
    asset: str
    debt_covered: int
    collateral_seized: int
    bonus: int
    health_factor_before: int
    health_factor_after: int


EngineEvent = Union[CollateralDeposited, CollateralRedeemed, DebtMinted, DebtBurned, Liquidated]

EVENT_TYPES = (CollateralDeposited, CollateralRedeemed, DebtMinted, DebtBurned, Liquidated)


@dataclass(frozen=True, slots=True)
class DeliveryFailure:
    """A handler raised while receiving a committed event."""
    event: EngineEvent
    handler: Callable
    error: Exception


# ============================================================================
# EVENT BUS
# ============================================================================

# Handler type: (event) -> None
EventHandler = Callable[[EngineEvent], None]


class EventBus:
    """
    Minimal publish/subscribe dispatcher.

    Handlers run synchronously in subscription order, typed handlers before
    catch-all ones. An exception raised by a handler is recorded as a
    DeliveryFailure and the remaining handlers still run.
    """

    def __init__(self):
        self._handlers: Dict[type, List[EventHandler]] = {}
        self._catch_all: List[EventHandler] = []

    def subscribe(self, event_type: Type, handler: EventHandler) -> None:
        """Register a handler for one event type."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"unknown event type {event_type!r}")
        self._handlers.setdefault(event_type, []).append(handler)

    def subscribe_all(self, handler: EventHandler) -> None:
        """Register a handler for every event type."""
        self._catch_all.append(handler)

    def publish(self, event: EngineEvent) -> List[DeliveryFailure]:
        """Deliver event to its handlers; return the failures, oldest first."""
        failures: List[DeliveryFailure] = []
        for handler in self._handlers.get(type(event), []) + self._catch_all:
            try:
                handler(event)
            except Exception as exc:
                failures.append(DeliveryFailure(event, handler, exc))
        return failures

    def handler_count(self) -> int:
        return sum(len(h) for h in self._handlers.values()) + len(self._catch_all)
