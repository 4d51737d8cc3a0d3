"""FastAPI application for composing, finalizing and cancelling orders."""

import logging
from decimal import Decimal
from typing import Any

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from restaurant_order_service.exceptions import (
    CatalogInconsistencyError,
    InvalidTransitionError,
    OrderEngineError,
    OrderNotFoundError,
    OrderStatusError,
    PausedOrderNotFoundError,
    ValidationBlockError,
    VoidConfirmationRequired,
)
from restaurant_order_service.models.catalog_models import ResolvedSlot, ServingStyle
from restaurant_order_service.models.order_models import (
    CancellationDetails,
    OrderItem,
    OrderStatus,
    OrderType,
    PausedOrder,
    PaymentMethod,
    SavedOrder,
)
from restaurant_order_service.observability.metrics import record_validation_block
from restaurant_order_service.services.composition import CompositionContext, OrderComposer
from restaurant_order_service.services.order_reconciler import ReconciliationGap
from restaurant_order_service.services.order_service import OrderService
from restaurant_order_service.services.package_resolver import PackageResolver
from restaurant_order_service.services.slot_resolver import SlotResolver

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class CreateSessionRequest(BaseModel):
    customer_name: str | None = None


class CategoryRequest(BaseModel):
    category_id: str


class AddProductRequest(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)


class BeginPackageRequest(BaseModel):
    package_id: str
    copies: int = Field(default=1, ge=1)


class QuantityRequest(BaseModel):
    quantity: int


class ActiveInstanceRequest(BaseModel):
    index: int


class SelectOptionRequest(BaseModel):
    """Toggle an option in the open configuration.

    instance_index applies to products, package_item_id to packages.
    """

    slot_id: str
    product_id: str
    instance_index: int | None = None
    package_item_id: str | None = None


class ServingStyleRequest(BaseModel):
    slot_id: str
    product_id: str
    serving_style: str
    instance_index: int | None = None
    package_item_id: str | None = None


class ExtraCostRequest(BaseModel):
    slot_id: str
    product_id: str
    extra_cost: Decimal
    instance_index: int | None = None
    package_item_id: str | None = None


class OrderDetailsRequest(BaseModel):
    """Customer and fulfilment details of the composing order."""

    customer_name: str | None = None
    client_id: str | None = None
    order_type: OrderType = OrderType.PICKUP
    delivery_address: str | None = None
    delivery_phone: str | None = None
    platform_name: str | None = None
    platform_order_id: str | None = None


class FinalizeRequest(BaseModel):
    payment_method: PaymentMethod = PaymentMethod.CASH
    paid_amount: Decimal | None = None
    customer_name: str | None = None


class CancelRequest(BaseModel):
    reason: str
    cancelled_by: str
    authorized_pin: str | None = None
    acknowledge_no_restock: bool = False


class OrderSummary(BaseModel):
    """Composing order with its derived amounts."""

    customer_name: str
    client_id: str | None = None
    items: list[OrderItem]
    payment_method: PaymentMethod
    paid_amount: Decimal | None
    order_type: OrderType
    delivery_address: str | None = None
    delivery_phone: str | None = None
    platform_name: str | None = None
    platform_order_id: str | None = None
    subtotal: Decimal
    total: Decimal
    change_due: Decimal


class SessionResponse(BaseModel):
    """State of a composition session."""

    session_id: str
    view: str
    category_id: str | None = None
    product_id: str | None = None
    package_id: str | None = None
    editing_order_id: str | None = None
    order: OrderSummary
    configuration: dict[str, Any] | None = None
    gaps: list[dict[str, Any]] = Field(default_factory=list)


def _configuration_view(context: CompositionContext) -> dict[str, Any] | None:
    if context.product_configuration is not None:
        configuration = context.product_configuration
        return {
            "type": "product",
            "product_id": configuration.product.id,
            "instance_count": configuration.instance_count,
            "active_index": configuration.active_index,
            "slots": [slot.model_dump(mode="json") for slot in configuration.slots],
            "instances": [
                [modifier.model_dump(mode="json") for modifier in selections]
                for selections in configuration.instances
            ],
        }

    if context.package_configuration is not None:
        configuration = context.package_configuration
        return {
            "type": "package",
            "package_id": configuration.resolved_package.package.id,
            "copies": configuration.copies,
            "items": [
                {
                    "package_item_id": item.package_item.id,
                    "product_name": item.package_item.product_name,
                    "quantity": item.package_item.quantity,
                    "slots": [slot.model_dump(mode="json") for slot in item.slots],
                    "selections": [
                        modifier.model_dump(mode="json")
                        for modifier in configuration.selections[item.package_item.id]
                    ],
                }
                for item in configuration.resolved_package.items
            ],
        }

    return None


def session_response(context: CompositionContext, gaps: list[ReconciliationGap] | None = None) -> SessionResponse:
    """Render a composition context for the API."""
    order = context.order
    return SessionResponse(
        session_id=context.id,
        view=context.state.view.value,
        category_id=context.state.category_id,
        product_id=context.state.product_id,
        package_id=context.state.package_id,
        editing_order_id=context.editing.id if context.editing else None,
        order=OrderSummary(
            customer_name=order.customer_name,
            client_id=order.client_id,
            items=order.items,
            payment_method=order.payment_method,
            paid_amount=order.paid_amount,
            order_type=order.order_type,
            delivery_address=order.delivery_address,
            delivery_phone=order.delivery_phone,
            platform_name=order.platform_name,
            platform_order_id=order.platform_order_id,
            subtotal=order.subtotal,
            total=order.total,
            change_due=order.change_due,
        ),
        configuration=_configuration_view(context),
        gaps=[vars(gap) for gap in gaps or []],
    )


def error_status(error: OrderEngineError) -> int:
    """HTTP status for an engine error."""
    if isinstance(error, (OrderStatusError, VoidConfirmationRequired, InvalidTransitionError)):
        return 409
    if isinstance(error, ValidationBlockError):
        return 422
    if isinstance(error, (OrderNotFoundError, PausedOrderNotFoundError, CatalogInconsistencyError)):
        return 404
    return 503


def create_app(
    composer: OrderComposer,
    order_service: OrderService,
    slot_resolver: SlotResolver,
    package_resolver: PackageResolver,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        composer: Composition actions
        order_service: Order lifecycle service
        slot_resolver: Product slot resolution
        package_resolver: Package slot resolution

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Restaurant Order Service API",
        description="Order composition, inventory-aware pricing and order lifecycle",
        version="1.0.0",
    )

    app.state.composer = composer
    app.state.order_service = order_service
    app.state.slot_resolver = slot_resolver
    app.state.package_resolver = package_resolver
    app.state.sessions = {}

    @app.exception_handler(OrderEngineError)
    async def handle_engine_error(_request: Request, error: OrderEngineError) -> JSONResponse:
        if isinstance(error, ValidationBlockError):
            record_validation_block(error.error_code)
        status_code = error_status(error)
        if status_code >= 500:
            logger.error(f"{error.error_code}: {error.message}")
        return JSONResponse(status_code=status_code, content=error.to_dict())

    def get_session(session_id: str) -> CompositionContext:
        context = app.state.sessions.get(session_id)
        if context is None:
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
        return context

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        return HealthResponse(status="healthy")

    @app.get("/catalog/products/{product_id}/slots", response_model=list[ResolvedSlot], tags=["Catalog"])
    async def get_product_slots(product_id: str) -> list[ResolvedSlot]:
        """Resolve the legal modifier choices of a product."""
        slots: list[ResolvedSlot] = await app.state.slot_resolver.resolve_slots(product_id)
        return slots

    @app.get("/catalog/packages/{package_id}/slots", tags=["Catalog"])
    async def get_package_slots(package_id: str) -> dict[str, list[ResolvedSlot]]:
        """Resolve every package item's slots with package overrides applied."""
        resolved = await app.state.package_resolver.resolve_package(package_id)
        return {item.package_item.id: item.slots for item in resolved.items}

    @app.get(
        "/catalog/categories/{category_id}/serving-styles",
        response_model=list[ServingStyle],
        tags=["Catalog"],
    )
    async def get_serving_styles(category_id: str) -> list[ServingStyle]:
        styles: list[ServingStyle] = await app.state.composer.serving_styles(category_id)
        return styles

    @app.post("/sessions", response_model=SessionResponse, status_code=201, tags=["Composition"])
    async def create_session(request: CreateSessionRequest) -> SessionResponse:
        context = app.state.composer.new_context(request.customer_name)
        app.state.sessions[context.id] = context
        return session_response(context)

    @app.post("/orders/{order_id}/edit", response_model=SessionResponse, status_code=201, tags=["Composition"])
    async def edit_order(order_id: str) -> SessionResponse:
        """Open a composition session pre-filled from a saved pending order."""
        context, gaps = await app.state.order_service.load_for_editing(order_id, app.state.composer)
        app.state.sessions[context.id] = context
        logger.info(f"Order {order_id} loaded for editing in session {context.id}")
        return session_response(context, gaps)

    @app.get("/sessions/{session_id}", response_model=SessionResponse, tags=["Composition"])
    async def get_session_state(session_id: str) -> SessionResponse:
        return session_response(get_session(session_id))

    @app.delete("/sessions/{session_id}", status_code=204, tags=["Composition"])
    async def delete_session(session_id: str) -> Response:
        """Abandon a session. Nothing is saved and no stock moves."""
        get_session(session_id)
        del app.state.sessions[session_id]
        logger.info(f"Session {session_id} closed without finalizing")
        return Response(status_code=204)

    @app.put("/sessions/{session_id}/details", response_model=SessionResponse, tags=["Composition"])
    async def set_order_details(session_id: str, request: OrderDetailsRequest) -> SessionResponse:
        context = get_session(session_id)
        order = context.order
        if request.customer_name:
            order.customer_name = request.customer_name
        order.client_id = request.client_id
        order.order_type = request.order_type
        order.delivery_address = request.delivery_address
        order.delivery_phone = request.delivery_phone
        order.platform_name = request.platform_name
        order.platform_order_id = request.platform_order_id
        return session_response(context)

    @app.post("/sessions/{session_id}/category", response_model=SessionResponse, tags=["Composition"])
    async def select_category(session_id: str, request: CategoryRequest) -> SessionResponse:
        context = get_session(session_id)
        app.state.composer.select_category(context, request.category_id)
        return session_response(context)

    @app.post("/sessions/{session_id}/back", response_model=SessionResponse, tags=["Composition"])
    async def go_back(session_id: str) -> SessionResponse:
        context = get_session(session_id)
        app.state.composer.go_back(context)
        return session_response(context)

    @app.post("/sessions/{session_id}/products", response_model=SessionResponse, tags=["Composition"])
    async def add_product(session_id: str, request: AddProductRequest) -> SessionResponse:
        """Add a product, or open its configuration when it has modifier slots."""
        context = get_session(session_id)
        await app.state.composer.add_product(context, request.product_id, request.quantity)
        return session_response(context)

    @app.post("/sessions/{session_id}/packages", response_model=SessionResponse, tags=["Composition"])
    async def begin_package(session_id: str, request: BeginPackageRequest) -> SessionResponse:
        context = get_session(session_id)
        await app.state.composer.begin_package(context, request.package_id, request.copies)
        return session_response(context)

    @app.put("/sessions/{session_id}/configuration/quantity", response_model=SessionResponse, tags=["Configuration"])
    async def set_configuration_quantity(session_id: str, request: QuantityRequest) -> SessionResponse:
        """Set the instance count of a product or the copies of a package."""
        context = get_session(session_id)
        if context.package_configuration is not None:
            context.package_configuration.set_copies(request.quantity)
        else:
            context.require_product_configuration().set_instance_count(request.quantity)
        return session_response(context)

    @app.put(
        "/sessions/{session_id}/configuration/active-instance",
        response_model=SessionResponse,
        tags=["Configuration"],
    )
    async def set_active_instance(session_id: str, request: ActiveInstanceRequest) -> SessionResponse:
        context = get_session(session_id)
        context.require_product_configuration().set_active_instance(request.index)
        return session_response(context)

    @app.post(
        "/sessions/{session_id}/configuration/selections",
        response_model=SessionResponse,
        tags=["Configuration"],
    )
    async def toggle_option(session_id: str, request: SelectOptionRequest) -> SessionResponse:
        context = get_session(session_id)
        if request.package_item_id is not None:
            context.require_package_configuration().select_option(
                request.package_item_id, request.slot_id, request.product_id
            )
        else:
            context.require_product_configuration().select_option(
                request.slot_id, request.product_id, request.instance_index
            )
        return session_response(context)

    @app.post(
        "/sessions/{session_id}/configuration/apply-to-all",
        response_model=SessionResponse,
        tags=["Configuration"],
    )
    async def apply_to_all(session_id: str) -> SessionResponse:
        context = get_session(session_id)
        context.require_product_configuration().apply_current_to_all()
        return session_response(context)

    @app.put(
        "/sessions/{session_id}/configuration/serving-style",
        response_model=SessionResponse,
        tags=["Configuration"],
    )
    async def set_configuration_serving_style(session_id: str, request: ServingStyleRequest) -> SessionResponse:
        context = get_session(session_id)
        if request.package_item_id is not None:
            context.require_package_configuration().set_serving_style(
                request.package_item_id, request.slot_id, request.product_id, request.serving_style
            )
        else:
            context.require_product_configuration().set_serving_style(
                request.slot_id, request.product_id, request.serving_style, request.instance_index
            )
        return session_response(context)

    @app.put(
        "/sessions/{session_id}/configuration/extra-cost",
        response_model=SessionResponse,
        tags=["Configuration"],
    )
    async def set_configuration_extra_cost(session_id: str, request: ExtraCostRequest) -> SessionResponse:
        context = get_session(session_id)
        if request.package_item_id is not None:
            context.require_package_configuration().set_extra_cost(
                request.package_item_id, request.slot_id, request.product_id, request.extra_cost
            )
        else:
            context.require_product_configuration().set_extra_cost(
                request.slot_id, request.product_id, request.extra_cost, request.instance_index
            )
        return session_response(context)

    @app.post(
        "/sessions/{session_id}/configuration/commit",
        response_model=SessionResponse,
        tags=["Configuration"],
    )
    async def commit_configuration(session_id: str) -> SessionResponse:
        context = get_session(session_id)
        app.state.composer.commit_configuration(context)
        return session_response(context)

    @app.delete("/sessions/{session_id}/items/{unique_id}", response_model=SessionResponse, tags=["Order Lines"])
    async def remove_item(session_id: str, unique_id: str) -> SessionResponse:
        context = get_session(session_id)
        app.state.composer.remove_item(context, unique_id)
        return session_response(context)

    @app.put(
        "/sessions/{session_id}/items/{unique_id}/quantity",
        response_model=SessionResponse,
        tags=["Order Lines"],
    )
    async def change_item_quantity(session_id: str, unique_id: str, request: QuantityRequest) -> SessionResponse:
        context = get_session(session_id)
        await app.state.composer.change_item_quantity(context, unique_id, request.quantity)
        return session_response(context)

    @app.put(
        "/sessions/{session_id}/items/{unique_id}/serving-style",
        response_model=SessionResponse,
        tags=["Order Lines"],
    )
    async def set_item_serving_style(session_id: str, unique_id: str, request: ServingStyleRequest) -> SessionResponse:
        context = get_session(session_id)
        app.state.composer.set_item_serving_style(
            context, unique_id, request.slot_id, request.product_id, request.serving_style, request.package_item_id
        )
        return session_response(context)

    @app.put(
        "/sessions/{session_id}/items/{unique_id}/extra-cost",
        response_model=SessionResponse,
        tags=["Order Lines"],
    )
    async def set_item_extra_cost(session_id: str, unique_id: str, request: ExtraCostRequest) -> SessionResponse:
        context = get_session(session_id)
        app.state.composer.set_item_extra_cost(
            context, unique_id, request.slot_id, request.product_id, request.extra_cost, request.package_item_id
        )
        return session_response(context)

    @app.post("/sessions/{session_id}/clear", response_model=SessionResponse, tags=["Composition"])
    async def clear_session(session_id: str) -> SessionResponse:
        context = get_session(session_id)
        app.state.composer.clear(context)
        return session_response(context)

    @app.post("/sessions/{session_id}/finalize", response_model=SavedOrder, tags=["Orders"])
    async def finalize_session(session_id: str, request: FinalizeRequest) -> SavedOrder:
        """Finalize the composed order. The session is closed on success."""
        context = get_session(session_id)
        context.order.payment_method = request.payment_method
        context.order.paid_amount = request.paid_amount
        if request.customer_name:
            context.order.customer_name = request.customer_name

        saved: SavedOrder = await app.state.order_service.finalize(context)
        del app.state.sessions[session_id]
        return saved

    @app.post("/sessions/{session_id}/pause", response_model=PausedOrder, status_code=201, tags=["Paused Orders"])
    async def pause_session(session_id: str) -> PausedOrder:
        """Set the composed order aside. The session stays open with an empty order."""
        context = get_session(session_id)
        paused: PausedOrder = app.state.order_service.pause(context, app.state.composer)
        return paused

    @app.get("/paused-orders", response_model=list[PausedOrder], tags=["Paused Orders"])
    async def list_paused_orders() -> list[PausedOrder]:
        paused: list[PausedOrder] = app.state.order_service.list_paused()
        return paused

    @app.post(
        "/paused-orders/{paused_id}/resume",
        response_model=SessionResponse,
        status_code=201,
        tags=["Paused Orders"],
    )
    async def resume_paused_order(paused_id: str) -> SessionResponse:
        """Open a new session holding a paused order."""
        context = app.state.order_service.resume(paused_id, app.state.composer)
        app.state.sessions[context.id] = context
        return session_response(context)

    @app.delete("/paused-orders/{paused_id}", status_code=204, tags=["Paused Orders"])
    async def discard_paused_order(paused_id: str) -> Response:
        app.state.order_service.discard_paused(paused_id)
        return Response(status_code=204)

    @app.get("/orders", response_model=list[SavedOrder], tags=["Orders"])
    async def list_orders(status: OrderStatus | None = None) -> list[SavedOrder]:
        orders: list[SavedOrder] = app.state.order_service.list_orders(status)
        return orders

    @app.get("/orders/{order_id}", response_model=SavedOrder, tags=["Orders"])
    async def get_order(order_id: str) -> SavedOrder:
        saved: SavedOrder = app.state.order_service.get_order(order_id)
        return saved

    @app.post("/orders/{order_id}/complete", response_model=SavedOrder, tags=["Orders"])
    async def complete_order(order_id: str) -> SavedOrder:
        saved: SavedOrder = app.state.order_service.complete(order_id)
        return saved

    @app.post("/orders/{order_id}/cancel", response_model=SavedOrder, tags=["Orders"])
    async def cancel_order(order_id: str, request: CancelRequest) -> SavedOrder:
        """Cancel a pending order (restocks) or void a completed one (no restock)."""
        details = CancellationDetails(
            reason=request.reason,
            cancelled_by=request.cancelled_by,
            authorized_pin=request.authorized_pin,
        )
        saved: SavedOrder = await app.state.order_service.cancel(
            order_id, details, acknowledge_no_restock=request.acknowledge_no_restock
        )
        return saved

    return app
