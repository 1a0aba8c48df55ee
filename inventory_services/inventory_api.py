"""
InventoryApi -- transport-agnostic facade, one method per endpoint.

Responsibility:
    Parse request payloads (camelCase, as sent by the admin client), call
    the module processors, and turn results and typed errors into
    ``ApiResponse(status, body)`` values a web layer can return verbatim.

Architecture position:
    Services -- the outermost layer.  The only place where exceptions are
    converted into payloads; processors below raise and roll back.

Error mapping:
    InvalidInputError                                  -> 400
    NotFoundError                                      -> 404
    StockError, OrderStateError, ConcurrencyError,
    ImmutabilityError                                  -> 409
    anything else                                      -> 500 (logged)

    Body: {"error": <code>, "message": <text>, **structured fields}
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.domain.actor import SYSTEM, Actor, parse_actor
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import Movement
from inventory_kernel.exceptions import (
    ConcurrencyError,
    ImmutabilityError,
    InvalidInputError,
    InventoryKernelError,
    NotFoundError,
    OrderStateError,
    StockError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.selectors.movement_selector import MovementSelector
from inventory_modules.adjustments.config import AdjustmentPolicy
from inventory_modules.adjustments.models import AdjustmentLine
from inventory_modules.adjustments.service import ManualAdjustmentProcessor
from inventory_modules.restock.config import RestockPolicy
from inventory_modules.restock.models import (
    NewRestockItem,
    ReceiveLine,
    ReceivingResult,
    RestockOrder,
)
from inventory_modules.restock.receiving import ReceivingProcessor
from inventory_modules.restock.service import UNSET, RestockOrderService

logger = get_logger("services.inventory_api")

MAX_PAGE_SIZE = 200

_STATUS_BY_ERROR: tuple[tuple[type[InventoryKernelError], int], ...] = (
    (InvalidInputError, 400),
    (NotFoundError, 404),
    (StockError, 409),
    (OrderStateError, 409),
    (ConcurrencyError, 409),
    (ImmutabilityError, 409),
)


@dataclass(frozen=True)
class ApiResponse:
    status: int
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def jsonable(value: Any) -> Any:
    """Convert DTO field values to JSON-ready primitives."""
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {k: jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    return value


def movement_body(m: Movement) -> dict:
    return jsonable({
        "id": m.id,
        "seq": m.seq,
        "storeId": m.store_id,
        "productId": m.product_id,
        "type": m.type,
        "quantity": m.quantity,
        "previousStock": m.previous_stock,
        "newStock": m.new_stock,
        "reason": m.reason,
        "description": m.description,
        "referenceId": m.reference_id,
        "cost": m.cost,
        "price": m.price,
        "createdBy": m.created_by,
        "createdAt": m.created_at,
    })


def order_body(order: RestockOrder) -> dict:
    return jsonable({
        "id": order.id,
        "storeId": order.store_id,
        "orderNumber": order.order_number,
        "supplierId": order.supplier_id,
        "status": order.status,
        "notes": order.notes,
        "shippingCost": order.shipping_cost,
        "totalAmount": order.total_amount,
        "createdAt": order.created_at,
        "updatedAt": order.updated_at,
        "items": [
            {
                "id": item.id,
                "productId": item.product_id,
                "quantity": item.quantity,
                "cost": item.cost,
                "quantityReceived": item.quantity_received,
                "subtotal": item.subtotal,
                "index": item.index,
                "percentReceived": item.progress.percent_received,
                "remaining": item.progress.remaining,
                "overReceived": item.progress.over_received,
            }
            for item in order.items
        ],
    })


def receiving_body(result: ReceivingResult) -> dict:
    body = order_body(result.order)
    body["replayed"] = result.replayed
    body["received"] = jsonable([
        {
            "itemId": line.item_id,
            "productId": line.product_id,
            "quantity": line.quantity,
            "quantityOrdered": line.quantity_ordered,
            "quantityReceived": line.quantity_received,
            "unitCost": line.unit_cost,
            "overReceived": line.over_received,
            "movementId": line.movement_id,
        }
        for line in result.lines
    ])
    body["movements"] = [movement_body(m) for m in result.movements]
    return body


def error_body(exc: InventoryKernelError) -> dict:
    fields = {k: v for k, v in vars(exc).items() if not k.startswith("_")}
    return jsonable({"error": exc.code, "message": str(exc), **fields})


def status_for(exc: InventoryKernelError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------


def _require(payload: Mapping[str, Any], key: str) -> Any:
    value = payload.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidInputError(f"{key} is required", field=key)
    return value


def _uuid(value: Any, field: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise InvalidInputError(f"{field} must be a UUID, got {value!r}", field=field) from None


def _int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise InvalidInputError(f"{field} must be an integer", field=field)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise InvalidInputError(f"{field} must be an integer, got {value!r}", field=field)


def _decimal(value: Any, field: str) -> Decimal | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidInputError(f"{field} must be a number", field=field)
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise InvalidInputError(f"{field} must be a number, got {value!r}", field=field) from None
    if not result.is_finite():
        raise InvalidInputError(f"{field} must be finite", field=field)
    return result


def _list(payload: Mapping[str, Any], key: str) -> list:
    value = payload.get(key)
    if not isinstance(value, list):
        raise InvalidInputError(f"{key} must be a list", field=key)
    return value


def _restock_items(raw: list) -> list[NewRestockItem]:
    items = []
    for entry in raw:
        if not isinstance(entry, Mapping):
            raise InvalidInputError("items entries must be objects", field="items")
        cost = _decimal(_require(entry, "cost"), "cost")
        items.append(
            NewRestockItem(
                product_id=_uuid(_require(entry, "productId"), "productId"),
                quantity=_int(_require(entry, "quantity"), "quantity"),
                cost=cost,
            )
        )
    return items


def _as_actor(actor: Actor | str) -> Actor:
    if not isinstance(actor, str):
        return actor
    try:
        return parse_actor(actor)
    except ValueError:
        raise InvalidInputError(f"Invalid actor: {actor!r}", field="actor") from None


def _actor_tag(actor: Actor | str | None) -> str | None:
    if isinstance(actor, str):
        return actor.strip() or None
    return actor.tag if actor is not None else None


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------


class InventoryApi:
    """
    One method per endpoint; every method returns an ApiResponse.

    The session is used for one request; processors commit or roll it
    back themselves.
    """

    def __init__(
        self,
        session: Session,
        restock_policy: RestockPolicy | None = None,
        adjustment_policy: AdjustmentPolicy | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._orders = RestockOrderService(session, restock_policy, clock)
        self._receiving = ReceivingProcessor(session, restock_policy, clock)
        self._adjustments = ManualAdjustmentProcessor(session, adjustment_policy, clock)
        self._movements = MovementSelector(session)

    @classmethod
    def from_config(cls, session: Session, config, clock: Clock | None = None) -> InventoryApi:
        """Build from an ``inventory_config.InventoryConfig``."""
        return cls(session, config.restock, config.adjustments, clock)

    def _handle(
        self,
        operation: str,
        store_id: Any,
        call: Callable[[], ApiResponse],
        actor: Actor | str | None = None,
    ) -> ApiResponse:
        with LogContext.bind(store_id=str(store_id), actor_id=_actor_tag(actor)):
            try:
                return call()
            except InventoryKernelError as exc:
                status = status_for(exc)
                logger.info(
                    "api_request_failed",
                    extra={"operation": operation, "status": status, "error_code": exc.code},
                )
                return ApiResponse(status, error_body(exc))
            except Exception:
                logger.exception("api_request_error", extra={"operation": operation})
                return ApiResponse(
                    500, {"error": "INTERNAL_ERROR", "message": "Internal error"}
                )

    # -- inventory ------------------------------------------------------

    def post_inventory_adjustment(
        self, store_id: Any, payload: Mapping[str, Any], actor: Actor | str
    ) -> ApiResponse:
        """POST inventory-adjustment"""

        def call() -> ApiResponse:
            movement = self._adjustments.adjust(
                product_id=_uuid(_require(payload, "productId"), "productId"),
                type=_require(payload, "type"),
                quantity=_int(_require(payload, "quantity"), "quantity"),
                reason=payload.get("reason"),
                actor=_as_actor(actor),
                description=payload.get("description"),
                cost=_decimal(payload.get("cost"), "cost"),
                store_id=_uuid(store_id, "storeId"),
            )
            return ApiResponse(201, movement_body(movement))

        return self._handle("post_inventory_adjustment", store_id, call, actor)

    def post_inventory_batch(
        self, store_id: Any, payload: Mapping[str, Any], actor: Actor | str
    ) -> ApiResponse:
        """POST inventory/batch"""

        def call() -> ApiResponse:
            lines = []
            for entry in _list(payload, "items"):
                if not isinstance(entry, Mapping):
                    raise InvalidInputError("items entries must be objects", field="items")
                lines.append(
                    AdjustmentLine(
                        product_id=_uuid(_require(entry, "productId"), "productId"),
                        quantity=_int(_require(entry, "quantity"), "quantity"),
                        cost=_decimal(entry.get("cost"), "cost"),
                    )
                )
            movements = self._adjustments.adjust_batch(
                type=_require(payload, "type"),
                lines=lines,
                reason=payload.get("reason"),
                actor=_as_actor(actor),
                description=payload.get("description"),
                store_id=_uuid(store_id, "storeId"),
            )
            return ApiResponse(
                201,
                {"count": len(movements), "movements": [movement_body(m) for m in movements]},
            )

        return self._handle("post_inventory_batch", store_id, call, actor)

    def get_inventory_movements(
        self,
        store_id: Any,
        product_id: Any = None,
        limit: int = 50,
        cursor: int | None = None,
    ) -> ApiResponse:
        """GET inventory-movements"""

        def call() -> ApiResponse:
            page_size = _int(limit, "limit")
            if page_size <= 0 or page_size > MAX_PAGE_SIZE:
                raise InvalidInputError(
                    f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit"
                )
            page = self._movements.list_for_store(
                store_id=_uuid(store_id, "storeId"),
                product_id=_uuid(product_id, "productId") if product_id else None,
                limit=page_size,
                cursor=_int(cursor, "cursor") if cursor is not None else None,
            )
            rows = []
            for row in page.rows:
                body = movement_body(row.movement)
                body["productName"] = row.product_name
                body["productSku"] = row.product_sku
                body["createdByName"] = row.actor_display_name
                rows.append(body)
            return ApiResponse(200, {"movements": rows, "nextCursor": page.next_cursor})

        return self._handle("get_inventory_movements", store_id, call)

    # -- restock orders -------------------------------------------------

    def post_restock_order(
        self, store_id: Any, payload: Mapping[str, Any], actor: Actor | str = SYSTEM
    ) -> ApiResponse:
        """POST restock-orders"""

        def call() -> ApiResponse:
            status = payload.get("status")
            if status not in (None, "DRAFT", "ORDERED"):
                raise InvalidInputError(
                    "A new restock order can only be DRAFT or ORDERED", field="status"
                )
            shipping = _decimal(payload.get("shippingCost"), "shippingCost")
            order = self._orders.create_order(
                store_id=_uuid(store_id, "storeId"),
                items=_restock_items(payload.get("items") or []),
                actor=_as_actor(actor),
                supplier_id=payload.get("supplierId"),
                shipping_cost=shipping if shipping is not None else Decimal("0"),
                notes=payload.get("notes"),
                place=status == "ORDERED",
            )
            return ApiResponse(201, order_body(order))

        return self._handle("post_restock_order", store_id, call, actor)

    def get_restock_order(self, store_id: Any, order_id: Any) -> ApiResponse:
        """GET restock-orders/{id}"""

        def call() -> ApiResponse:
            order = self._orders.get_order(_uuid(order_id, "orderId"), _uuid(store_id, "storeId"))
            return ApiResponse(200, order_body(order))

        return self._handle("get_restock_order", store_id, call)

    def get_restock_orders(self, store_id: Any, status: str | None = None) -> ApiResponse:
        """GET restock-orders"""

        def call() -> ApiResponse:
            try:
                orders = self._orders.list_orders(_uuid(store_id, "storeId"), status)
            except ValueError:
                raise InvalidInputError(f"Unknown status: {status!r}", field="status") from None
            return ApiResponse(200, [order_body(o) for o in orders])

        return self._handle("get_restock_orders", store_id, call)

    def patch_restock_order(
        self,
        store_id: Any,
        order_id: Any,
        payload: Mapping[str, Any],
        actor: Actor | str = SYSTEM,
    ) -> ApiResponse:
        """PATCH restock-orders/{id}"""

        def call() -> ApiResponse:
            shipping = UNSET
            if "shippingCost" in payload:
                shipping = _decimal(payload["shippingCost"], "shippingCost")
                if shipping is None:
                    shipping = Decimal("0")
            order = self._orders.update_order(
                _uuid(order_id, "orderId"),
                _as_actor(actor),
                store_id=_uuid(store_id, "storeId"),
                items=_restock_items(_list(payload, "items")) if "items" in payload else None,
                supplier_id=payload["supplierId"] if "supplierId" in payload else UNSET,
                shipping_cost=shipping,
                notes=payload["notes"] if "notes" in payload else UNSET,
                status=payload.get("status"),
            )
            return ApiResponse(200, order_body(order))

        return self._handle("patch_restock_order", store_id, call, actor)

    def delete_restock_order(
        self, store_id: Any, order_id: Any, actor: Actor | str = SYSTEM
    ) -> ApiResponse:
        """DELETE restock-orders/{id}"""

        def call() -> ApiResponse:
            self._orders.delete_order(
                _uuid(order_id, "orderId"), _as_actor(actor), _uuid(store_id, "storeId")
            )
            return ApiResponse(200, {"id": str(order_id), "deleted": True})

        return self._handle("delete_restock_order", store_id, call, actor)

    def post_receive(
        self,
        store_id: Any,
        order_id: Any,
        payload: Mapping[str, Any],
        actor: Actor | str,
    ) -> ApiResponse:
        """POST restock-orders/{id}/receive"""

        def call() -> ApiResponse:
            raw = payload.get("receivedItems") or []
            if not isinstance(raw, list):
                raise InvalidInputError("receivedItems must be a list", field="receivedItems")
            lines = []
            for entry in raw:
                if not isinstance(entry, Mapping):
                    raise InvalidInputError(
                        "receivedItems entries must be objects", field="receivedItems"
                    )
                lines.append(
                    ReceiveLine(
                        item_id=_uuid(_require(entry, "restockOrderItemId"), "restockOrderItemId"),
                        quantity=_int(entry.get("quantityReceived", 0), "quantityReceived"),
                        cost=_decimal(entry.get("cost"), "cost"),
                    )
                )
            result = self._receiving.receive(
                _uuid(order_id, "orderId"),
                lines,
                _as_actor(actor),
                store_id=_uuid(store_id, "storeId"),
                idempotency_key=payload.get("idempotencyKey"),
            )
            return ApiResponse(200, receiving_body(result))

        return self._handle("post_receive", store_id, call, actor)
