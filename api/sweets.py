from __future__ import annotations

from flask import Blueprint, request
from marshmallow import EXCLUDE

from api.cache import cached, get_cache
from models.schemas.common import PaginationSchema
from models.schemas.sweet import SweetCreateSchema, SweetUpdateSchema, SweetOutSchema, SweetQuerySchema
from services import catalog_service
from utils.decorators import roles_required
from utils.responses import api_response

bp = Blueprint("sweets", __name__)

# Schemas
sweet_create_schema = SweetCreateSchema()
sweet_update_schema = SweetUpdateSchema()
sweet_query_schema = SweetQuerySchema()
sweet_out_schema = SweetOutSchema()
sweets_out_schema = SweetOutSchema(many=True)
pagination_schema = PaginationSchema()


@bp.get("/sweets")
def list_sweets():
    """
    List active sweets
    ---
    tags:
      - Sweets
    parameters:
      - { in: query, name: page, type: integer, default: 1 }
      - { in: query, name: limit, type: integer, default: 10 }
      - { in: query, name: category, type: string }
      - { in: query, name: search, type: string, description: matches name or description }
    responses:
      200:
        description: Paginated list
    """
    args = sweet_query_schema.load(request.args, unknown=EXCLUDE)
    result = catalog_service.list_sweets(
        page=args["page"], limit=args["limit"], category=args["category"], search=args["search"]
    )
    return api_response(
        {"sweets": sweets_out_schema.dump(result["items"]), "pagination": pagination_schema.dump(result)},
        "Sweets retrieved successfully",
    )


@bp.get("/sweets/<sweet_id>")
def get_sweet(sweet_id: str):
    """
    Get one active sweet with its stock summary
    ---
    tags:
      - Sweets
    parameters:
      - { in: path, name: sweet_id, type: string, required: true }
    responses:
      200: { description: OK }
      404: { description: Sweet not found or inactive }
    """
    payload = cached(f"sweet:{sweet_id}", lambda: sweet_out_schema.dump(catalog_service.get_sweet(sweet_id)))
    return api_response(payload, "Sweet retrieved successfully")


@bp.post("/sweets")
@roles_required(["admin"])
def create_sweet():
    """
    Create a sweet and its inventory record
    ---
    tags:
      - Sweets
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [name, category, price]
          properties:
            name: { type: string }
            description: { type: string }
            category: { type: string, example: CHOCOLATES }
            price: { type: number }
            quantity: { type: integer, default: 0 }
            imageUrl: { type: string }
    responses:
      201: { description: Created }
      400: { description: Validation error }
      409: { description: Sweet with this name already exists }
    """
    data = sweet_create_schema.load(request.get_json(silent=True) or {})
    sweet = catalog_service.create_sweet(cache=get_cache(), **data)
    return api_response(sweet_out_schema.dump(sweet), "Sweet created successfully", 201)


@bp.put("/sweets/<sweet_id>")
@roles_required(["admin"])
def update_sweet(sweet_id: str):
    """
    Update a sweet's catalog fields
    ---
    tags:
      - Sweets
    security:
      - Bearer: []
    parameters:
      - { in: path, name: sweet_id, type: string, required: true }
      - in: body
        name: body
        schema:
          type: object
          properties:
            name: { type: string }
            description: { type: string }
            category: { type: string }
            price: { type: number }
            imageUrl: { type: string }
    responses:
      200: { description: Updated }
      404: { description: Sweet not found or inactive }
      409: { description: Sweet with this name already exists }
    """
    data = sweet_update_schema.load(request.get_json(silent=True) or {})
    sweet = catalog_service.update_sweet(sweet_id, cache=get_cache(), **data)
    return api_response(sweet_out_schema.dump(sweet), "Sweet updated successfully")


@bp.delete("/sweets/<sweet_id>")
@roles_required(["admin"])
def delete_sweet(sweet_id: str):
    """
    Delete a sweet; sweets with purchase history are deactivated instead
    ---
    tags:
      - Sweets
    security:
      - Bearer: []
    parameters:
      - { in: path, name: sweet_id, type: string, required: true }
    responses:
      200: { description: Deleted or deactivated }
      404: { description: Sweet not found or inactive }
    """
    outcome = catalog_service.delete_sweet(sweet_id, cache=get_cache())
    message = "Sweet deleted successfully" if outcome == "deleted" else "Sweet deactivated successfully"
    return api_response({"id": sweet_id, "outcome": outcome}, message)
