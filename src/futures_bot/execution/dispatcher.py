"""
Order dispatcher.

Turns an approved gate decision into an order placement on the exchange.
"""

import logging
from typing import Optional

from ..gateway import ExchangeGateway
from ..models import OrderConfirmation
from ..reporting import log_forecast_trade
from ..risk.gate import GateDecision

logger = logging.getLogger(__name__)


class OrderDispatcher:
    """Places the orders of approved decisions; logs them only in dry-run mode."""

    def __init__(self, exchange: ExchangeGateway, dry_run: bool = False):
        self.exchange = exchange
        self.dry_run = dry_run
        self.dispatched = 0

    async def dispatch(self, decision: GateDecision) -> Optional[OrderConfirmation]:
        """
        Place the order carried by an approved decision.

        Args:
            decision: Gate decision; must be approved and carry an order

        Returns:
            Exchange confirmation, or None in dry-run mode

        Raises:
            ValueError: If the decision was not approved
            ExchangeError: If the exchange rejects the order
        """
        if not decision.approved or decision.order is None:
            raise ValueError("Only approved decisions with an order can be dispatched")

        log_forecast_trade(decision)

        if self.dry_run:
            logger.info(f"Dry run, order not placed: {decision.order.to_payload()}")
            self.dispatched += 1
            return None

        confirmation = await self.exchange.place_order(decision.order)
        self.dispatched += 1
        logger.info(
            f"Trade successfully created for signal {decision.signal.label}: id={confirmation.id}"
        )
        return confirmation
