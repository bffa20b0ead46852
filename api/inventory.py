"""
Inventory and stock-movement endpoints (admin only).
"""
from __future__ import annotations

from flask import Blueprint, request
from marshmallow import EXCLUDE

from api.cache import cached, get_cache
from models.schemas.common import PaginationSchema, camelize
from models.schemas.inventory import (
    InventoryOutSchema,
    InventoryUpdateSchema,
    MovementQuerySchema,
    RestockSchema,
    StockMovementOutSchema,
    SweetBriefSchema,
)
from services import inventory_service, ledger_service
from utils.decorators import roles_required
from utils.responses import api_response

bp = Blueprint("inventory", __name__)

restock_schema = RestockSchema()
inventory_update_schema = InventoryUpdateSchema()
movement_query_schema = MovementQuerySchema()
inventory_out_schema = InventoryOutSchema()
inventories_out_schema = InventoryOutSchema(many=True)
movement_out_schema = StockMovementOutSchema()
movements_out_schema = StockMovementOutSchema(many=True)
sweet_brief_schema = SweetBriefSchema()
pagination_schema = PaginationSchema()


@bp.get("/inventory")
@roles_required(["admin"])
def inventory_status():
    """
    Inventory of every active sweet with aggregate stock statistics
    ---
    tags:
      - Inventory
    security:
      - Bearer: []
    responses:
      200: { description: OK }
    """
    def build():
        result = inventory_service.inventory_status()
        return {
            "inventory": inventories_out_schema.dump(result["inventory"]),
            "stats": camelize(result["stats"]),
        }

    return api_response(cached("inventory:status", build, ttl=300), "Inventory status retrieved successfully")


@bp.get("/inventory/low-stock")
@roles_required(["admin"])
def low_stock():
    """
    Sweets at or below their reorder point, emptiest first
    ---
    tags:
      - Inventory
    security:
      - Bearer: []
    responses:
      200: { description: OK }
    """
    payload = cached(
        "inventory:low-stock",
        lambda: inventories_out_schema.dump(inventory_service.low_stock_items()),
        ttl=300,
    )
    return api_response(payload, "Low stock items retrieved successfully")


@bp.get("/inventory/movements")
@roles_required(["admin"])
def list_movements():
    """
    Stock movement ledger with per-type summary
    ---
    tags:
      - Inventory
    security:
      - Bearer: []
    parameters:
      - { in: query, name: page, type: integer, default: 1 }
      - { in: query, name: limit, type: integer, default: 20 }
      - { in: query, name: sweetId, type: string }
      - { in: query, name: type, type: string, enum: [RESTOCK, SALE, RETURN, ADJUSTMENT_IN, ADJUSTMENT_OUT] }
      - { in: query, name: startDate, type: string, format: date }
      - { in: query, name: endDate, type: string, format: date }
      - { in: query, name: sort, type: string, default: -created_at }
    responses:
      200: { description: OK }
    """
    args = movement_query_schema.load(request.args, unknown=EXCLUDE)
    result = ledger_service.query(
        sweet_id=args["sweet_id"],
        type=args["type"],
        date_from=args["start_date"],
        date_to=args["end_date"],
        page=args["page"],
        limit=args["limit"],
        sort=args["sort"],
    )
    return api_response(
        {
            "movements": movements_out_schema.dump(result["items"]),
            "pagination": pagination_schema.dump(result),
            "summary": result["summary"],
            "netChange": result["net_change"],
        },
        "Stock movements retrieved successfully",
    )


@bp.get("/inventory/<sweet_id>")
@roles_required(["admin"])
def sweet_inventory(sweet_id: str):
    """
    Inventory detail for one sweet: recent movements, per-type stats and stock status
    ---
    tags:
      - Inventory
    security:
      - Bearer: []
    parameters:
      - { in: path, name: sweet_id, type: string, required: true }
    responses:
      200: { description: OK }
      404: { description: Sweet not found or inactive }
    """
    result = inventory_service.sweet_inventory(sweet_id)
    return api_response(
        {
            "inventory": inventory_out_schema.dump(result["inventory"]),
            "recentMovements": movements_out_schema.dump(result["recent_movements"]),
            "totalMovements": result["total_movements"],
            "movementStats": result["movement_stats"],
            "stockStatus": result["stock_status"],
            "daysSinceRestock": result["days_since_restock"],
        },
        "Sweet inventory retrieved successfully",
    )


@bp.put("/inventory/<sweet_id>")
@roles_required(["admin"])
def update_inventory(sweet_id: str):
    """
    Update stock thresholds; a quantity override is booked as an adjustment movement
    ---
    tags:
      - Inventory
    security:
      - Bearer: []
    parameters:
      - { in: path, name: sweet_id, type: string, required: true }
      - in: body
        name: body
        schema:
          type: object
          properties:
            quantity: { type: integer, minimum: 0 }
            minStockLevel: { type: integer, minimum: 0 }
            maxStockLevel: { type: integer, minimum: 0 }
            reorderPoint: { type: integer, minimum: 0 }
            reason: { type: string }
    responses:
      200: { description: Updated }
      400: { description: Invalid thresholds }
      404: { description: Sweet not found or inactive }
    """
    data = inventory_update_schema.load(request.get_json(silent=True) or {})
    inventory = inventory_service.set_thresholds(sweet_id, cache=get_cache(), **data)
    return api_response(inventory_out_schema.dump(inventory), "Inventory updated successfully")


@bp.post("/inventory/<sweet_id>/restock")
@roles_required(["admin"])
def restock(sweet_id: str):
    """
    Add stock to a sweet and record a RESTOCK movement
    ---
    tags:
      - Inventory
    security:
      - Bearer: []
    parameters:
      - { in: path, name: sweet_id, type: string, required: true }
      - in: body
        name: body
        schema:
          type: object
          required: [quantity]
          properties:
            quantity: { type: integer, minimum: 1, maximum: 10000 }
            reason: { type: string }
    responses:
      200: { description: Restocked }
      400: { description: Invalid quantity }
      404: { description: Sweet not found or inactive }
    """
    data = restock_schema.load(request.get_json(silent=True) or {})
    result = inventory_service.restock(sweet_id, data["quantity"], data.get("reason"), cache=get_cache())
    return api_response(
        {
            "sweet": sweet_brief_schema.dump(result["sweet"]),
            "inventory": inventory_out_schema.dump(result["inventory"]),
            "stockMovement": movement_out_schema.dump(result["stock_movement"]),
            "previousQuantity": result["previous_quantity"],
            "newQuantity": result["new_quantity"],
        },
        "Sweet restocked successfully",
    )
