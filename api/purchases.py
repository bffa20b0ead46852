"""
Purchase endpoints. Thin controllers: validation through marshmallow, all
state changes through services.purchase_service.
"""
from __future__ import annotations

from flask import Blueprint, request, g
from marshmallow import EXCLUDE

from api.cache import cached, get_cache
from models.schemas.common import PaginationSchema, camelize
from models.schemas.purchase import (
    PurchaseCreateSchema,
    PurchaseStatusSchema,
    PurchaseQuerySchema,
    PurchaseStatsQuerySchema,
    PurchaseOutSchema,
)
from services import purchase_service
from utils.decorators import jwt_required, roles_required
from utils.responses import api_response

bp = Blueprint("purchases", __name__)

purchase_create_schema = PurchaseCreateSchema()
purchase_status_schema = PurchaseStatusSchema()
purchase_query_schema = PurchaseQuerySchema()
purchase_stats_query_schema = PurchaseStatsQuerySchema()
purchase_out_schema = PurchaseOutSchema()
purchases_out_schema = PurchaseOutSchema(many=True)
pagination_schema = PaginationSchema()


@bp.post("/purchases")
@jwt_required()
def create_purchase():
    """
    Buy a sweet
    ---
    tags:
      - Purchases
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [sweetId, quantity]
          properties:
            sweetId: { type: string }
            quantity: { type: integer, minimum: 1, maximum: 100 }
    responses:
      201: { description: Purchase created (PENDING) }
      400: { description: Invalid quantity or insufficient stock }
      401: { description: Unauthorized }
      404: { description: Sweet not found or inactive }
    """
    data = purchase_create_schema.load(request.get_json(silent=True) or {})
    purchase = purchase_service.create_purchase(
        g.current_user.id, data["sweet_id"], data["quantity"], cache=get_cache()
    )
    body = purchase_out_schema.dump(purchase)
    body["remainingStock"] = purchase.sweet.inventory.quantity
    return api_response(body, "Purchase completed successfully", 201)


@bp.get("/purchases/my-purchases")
@jwt_required()
def my_purchases():
    """
    Purchase history of the current user
    ---
    tags:
      - Purchases
    security:
      - Bearer: []
    parameters:
      - { in: query, name: page, type: integer, default: 1 }
      - { in: query, name: limit, type: integer, default: 10 }
      - { in: query, name: status, type: string }
      - { in: query, name: startDate, type: string, format: date }
      - { in: query, name: endDate, type: string, format: date }
    responses:
      200: { description: OK }
    """
    args = purchase_query_schema.load(request.args, unknown=EXCLUDE)
    result = purchase_service.list_user_purchases(
        g.current_user.id,
        page=args["page"],
        limit=args["limit"],
        status=args["status"],
        start_date=args["start_date"],
        end_date=args["end_date"],
    )
    return api_response(
        {
            "purchases": purchases_out_schema.dump(result["items"]),
            "pagination": pagination_schema.dump(result),
            "summary": {"totalSpent": result["total_spent"], "totalPurchases": result["total"]},
        },
        "Purchases retrieved successfully",
    )


@bp.get("/purchases/stats")
@roles_required(["admin"])
def purchase_stats():
    """
    Sales statistics for the last N days
    ---
    tags:
      - Purchases
    security:
      - Bearer: []
    parameters:
      - { in: query, name: days, type: integer, default: 30, minimum: 1, maximum: 365 }
    responses:
      200: { description: OK }
    """
    days = purchase_stats_query_schema.load(request.args, unknown=EXCLUDE)["days"]
    payload = cached(
        f"purchases:stats:{days}",
        lambda: camelize(purchase_service.purchase_stats(days)),
        ttl=600,
    )
    return api_response(payload, "Purchase statistics retrieved successfully")


@bp.get("/purchases")
@roles_required(["admin"])
def list_purchases():
    """
    All purchases (admin)
    ---
    tags:
      - Purchases
    security:
      - Bearer: []
    parameters:
      - { in: query, name: page, type: integer, default: 1 }
      - { in: query, name: limit, type: integer, default: 10 }
      - { in: query, name: status, type: string }
      - { in: query, name: userId, type: string }
      - { in: query, name: startDate, type: string, format: date }
      - { in: query, name: endDate, type: string, format: date }
    responses:
      200: { description: OK }
    """
    args = purchase_query_schema.load(request.args, unknown=EXCLUDE)
    result = purchase_service.list_purchases(
        page=args["page"],
        limit=args["limit"],
        status=args["status"],
        user_id=args["user_id"],
        start_date=args["start_date"],
        end_date=args["end_date"],
    )
    return api_response(
        {
            "purchases": purchases_out_schema.dump(result["items"]),
            "pagination": pagination_schema.dump(result),
            "summary": {
                "totalRevenue": result["total_revenue"],
                "averageOrderValue": result["average_order_value"],
                "totalPurchases": result["total"],
            },
        },
        "Purchases retrieved successfully",
    )


@bp.get("/purchases/<purchase_id>")
@jwt_required()
def get_purchase(purchase_id: str):
    """
    One purchase; owners see their own, admins see any
    ---
    tags:
      - Purchases
    security:
      - Bearer: []
    parameters:
      - { in: path, name: purchase_id, type: string, required: true }
    responses:
      200: { description: OK }
      404: { description: Purchase not found }
    """
    is_admin = "admin" in g.current_user_roles
    purchase = purchase_service.get_purchase(purchase_id, g.current_user.id, is_admin=is_admin)
    return api_response(purchase_out_schema.dump(purchase), "Purchase retrieved successfully")


@bp.put("/purchases/<purchase_id>/cancel")
@jwt_required()
def cancel_purchase(purchase_id: str):
    """
    Cancel one of your PENDING purchases; the quantity goes back to stock
    ---
    tags:
      - Purchases
    security:
      - Bearer: []
    parameters:
      - { in: path, name: purchase_id, type: string, required: true }
    responses:
      200: { description: Cancelled }
      400: { description: Purchase is not PENDING }
      401: { description: Unauthorized }
      404: { description: Purchase not found }
    """
    purchase = purchase_service.cancel_purchase(purchase_id, g.current_user.id, cache=get_cache())
    return api_response(purchase_out_schema.dump(purchase), "Purchase cancelled successfully")


@bp.put("/purchases/<purchase_id>/status")
@roles_required(["admin"])
def update_status(purchase_id: str):
    """
    Set a purchase status (admin). Does not move stock.
    ---
    tags:
      - Purchases
    security:
      - Bearer: []
    parameters:
      - { in: path, name: purchase_id, type: string, required: true }
      - in: body
        name: body
        schema:
          type: object
          required: [status]
          properties:
            status: { type: string, enum: [PENDING, COMPLETED, CANCELLED, RETURNED] }
    responses:
      200: { description: Updated }
      400: { description: Invalid status or terminal purchase }
      404: { description: Purchase not found }
    """
    data = purchase_status_schema.load(request.get_json(silent=True) or {})
    purchase = purchase_service.update_purchase_status(purchase_id, data["status"], cache=get_cache())
    return api_response(purchase_out_schema.dump(purchase), "Purchase status updated successfully")

