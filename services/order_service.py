"""Order lifecycle: lots placed for sale on an exchange.

While an order is open its lots belong to no account. A fill turns every
lot into a :class:`~schemas.ledger.DisposedLot`; a cancel merges the lots
back into the exchange deposit account they came from.
"""

import logging

from schemas.exchange import Exchange
from schemas.ledger import (
    DisposedLot,
    Lot,
    OpenOrder,
    OrderFill,
    TrackedAccount,
    Usd,
    total_amount,
)
from services.account_registry import AccountRegistry
from services.document_store import DocumentStore
from services.exceptions import (
    AccountDoesNotExist,
    OpenOrderAlreadyExists,
    OpenOrderDoesNotExist,
)
from services.lot_arithmetic import merge_account_lots

logger = logging.getLogger(__name__)

ORDERS_KEY = "orders"
DISPOSED_LOTS_KEY = "disposed-lots"


class OrderService:
    """Records and resolves open sell orders. Never flushes."""

    @staticmethod
    def open_orders(
        store: DocumentStore, exchange: Exchange | None = None
    ) -> list[OpenOrder]:
        """Open orders, optionally only those on ``exchange``."""
        orders = store.get(ORDERS_KEY, list[OpenOrder]) or []
        if exchange is None:
            return orders
        return [order for order in orders if order.exchange == exchange]

    @staticmethod
    def disposed_lots(store: DocumentStore) -> list[DisposedLot]:
        return store.get(DISPOSED_LOTS_KEY, list[DisposedLot]) or []

    @staticmethod
    def record_order(
        store: DocumentStore,
        deposit_account: TrackedAccount,
        exchange: Exchange,
        pair: str,
        order_id: str,
        lots: list[Lot],
    ) -> OpenOrder:
        """Open an order for ``lots``.

        ``deposit_account`` must already have had ``lots`` extracted; it is
        stored as given.

        Raises:
            OpenOrderAlreadyExists: ``order_id`` is already open.
            AccountDoesNotExist: the deposit account is not tracked.
        """
        open_orders = OrderService.open_orders(store)
        if any(order.order_id == order_id for order in open_orders):
            raise OpenOrderAlreadyExists(order_id)
        if not AccountRegistry.exists(store, deposit_account.address):
            raise AccountDoesNotExist(deposit_account.address)

        order = OpenOrder(
            exchange=exchange,
            pair=pair,
            order_id=order_id,
            lots=lots,
            deposit_address=deposit_account.address,
        )
        open_orders.append(order)
        store.set(ORDERS_KEY, open_orders)
        AccountRegistry.update(store, deposit_account)

        logger.info(
            "Opened %s %s order %s for %d from %s",
            exchange.value,
            pair,
            order_id,
            total_amount(lots),
            deposit_account.address,
        )
        return order

    @staticmethod
    def resolve_order(
        store: DocumentStore, order_id: str, fill: OrderFill | None
    ) -> OpenOrder:
        """Close an open order as filled (``fill`` given) or cancelled.

        Raises:
            OpenOrderDoesNotExist: no open order has ``order_id``.
            AccountDoesNotExist: on cancel, the deposit account is no longer tracked.
        """
        open_orders = OrderService.open_orders(store)
        position = next(
            (i for i, order in enumerate(open_orders) if order.order_id == order_id),
            None,
        )
        if position is None:
            raise OpenOrderDoesNotExist(order_id)

        order = open_orders.pop(position)
        deposit_account = None
        if fill is None:
            deposit_account = AccountRegistry.get(store, order.deposit_address)
            if deposit_account is None:
                raise AccountDoesNotExist(order.deposit_address)

        store.set(ORDERS_KEY, open_orders)
        if fill is not None:
            kind = Usd(exchange=order.exchange, pair=order.pair, order_id=order.order_id)
            disposed_lots = OrderService.disposed_lots(store)
            disposed_lots.extend(
                DisposedLot(lot=lot, when=fill.when, price=fill.price, kind=kind)
                for lot in order.lots
            )
            store.set(DISPOSED_LOTS_KEY, disposed_lots)
            logger.info(
                "Filled order %s at %s on %s: %d lots disposed",
                order_id,
                fill.price,
                fill.when,
                len(order.lots),
            )
        else:
            merge_account_lots(deposit_account, order.lots)
            AccountRegistry.update(store, deposit_account)
            logger.info(
                "Cancelled order %s: %d lots returned to %s",
                order_id,
                len(order.lots),
                order.deposit_address,
            )
        return order
