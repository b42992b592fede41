"""Hierarchical service catalog: categories, services, variants and price quotes."""
from __future__ import annotations

from decimal import Decimal, InvalidOperation

from flask import Blueprint, jsonify
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..auth import admin_required
from ..errors import ValidationError
from ..extensions import db
from ..gateway import get_gateway
from ..models import VARIANT_TYPES, Booking, Service, ServiceCategory, ServiceVariant
from ..pricing import normalize_variant_ids, quote
from . import database_error, get_payload

bp = Blueprint("catalog", __name__)


def to_cents(value, field: str, allow_negative: bool = False) -> int:
    try:
        cents = int((Decimal(str(value)) * 100).quantize(Decimal("1")))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError.for_fields([{"field": field, "message": "must be a number"}]) from exc
    if cents < 0 and not allow_negative:
        raise ValidationError.for_fields([{"field": field, "message": "must not be negative"}])
    return cents


def _to_int(value, field: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError.for_fields([{"field": field, "message": "must be an integer"}]) from exc


def _active_service_counts() -> dict[int, int]:
    rows = (
        db.session.query(Service.category_id, func.count(Service.service_id))
        .filter(Service.is_active.is_(True))
        .group_by(Service.category_id)
        .all()
    )
    return {category_id: count for category_id, count in rows}


# --- Public catalog ---

@bp.get("/categories")
def list_categories() -> tuple[dict[str, object], int]:
    """List active categories in display order with their active service counts.
    ---
    tags:
      - Services
    responses:
      200:
        description: Active categories
    """
    counts = _active_service_counts()
    categories = (
        ServiceCategory.query.filter_by(is_active=True)
        .order_by(ServiceCategory.display_order.asc())
        .all()
    )
    return jsonify({
        "categories": [
            {**category.to_dict(), "service_count": counts.get(category.category_id, 0)}
            for category in categories
        ]
    }), 200


@bp.get("/categories/<int:category_id>/services")
def list_category_services(category_id: int) -> tuple[dict[str, object], int]:
    """List the active services of one active category.
    ---
    tags:
      - Services
    parameters:
      - name: category_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Category and its services
      404:
        description: Service category not found
    """
    category = ServiceCategory.query.filter_by(category_id=category_id, is_active=True).first()
    if category is None:
        return jsonify({"error": "not_found", "message": "Service category not found"}), 404

    services = (
        Service.query.filter_by(category_id=category_id, is_active=True)
        .order_by(Service.display_order.asc())
        .all()
    )
    payload = []
    for service in services:
        data = service.to_dict()
        data["variant_count"] = sum(1 for variant in service.variants if variant.is_active)
        payload.append(data)
    return jsonify({"category": category.to_dict(), "services": payload}), 200


@bp.get("/<int:service_id>")
def get_service(service_id: int) -> tuple[dict[str, object], int]:
    """Get an active service with its active variants grouped by type.
    ---
    tags:
      - Services
    parameters:
      - name: service_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Service details and variants keyed by type
      404:
        description: Service not found
    """
    service = Service.query.filter_by(service_id=service_id, is_active=True).first()
    if service is None:
        return jsonify({"error": "not_found", "message": "Service not found"}), 404

    variants_by_type: dict[str, list[dict[str, object]]] = {}
    for variant in service.variants:
        if variant.is_active:
            variants_by_type.setdefault(variant.type, []).append(variant.to_dict())

    data = service.to_dict()
    data["category"] = service.category.to_dict() if service.category else None
    return jsonify({"service": data, "variants": variants_by_type}), 200


@bp.post("/calculate-price")
def calculate_price() -> tuple[dict[str, object], int]:
    """Quote total price and duration for a service and selected variants.
    ---
    tags:
      - Services
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            service_id:
              type: integer
            variant_ids:
              type: array
              items:
                type: integer
          required:
            - service_id
    responses:
      200:
        description: Totals and breakdown
      400:
        description: Service ID missing
      404:
        description: Service not found
    """
    payload = get_payload()
    service_id = payload.get("service_id")
    if service_id is None:
        return jsonify({"error": "invalid_payload", "message": "Service ID is required"}), 400

    result = quote(get_gateway(), _to_int(service_id, "service_id"), normalize_variant_ids(payload.get("variant_ids")))
    return jsonify(result.to_dict()), 200


# --- Admin: categories ---

@bp.get("/admin/categories")
@admin_required
def admin_list_categories() -> tuple[dict[str, object], int]:
    """List every category, including inactive ones, with all of their services.
    ---
    tags:
      - Services Admin
    security:
      - Bearer: []
    responses:
      200:
        description: Full category tree
    """
    categories = ServiceCategory.query.order_by(ServiceCategory.display_order.asc()).all()
    return jsonify({
        "categories": [
            {**category.to_dict(), "services": [service.to_dict() for service in category.services]}
            for category in categories
        ]
    }), 200


@bp.post("/admin/categories")
@admin_required
def create_category() -> tuple[dict[str, object], int]:
    """Create a service category.
    ---
    tags:
      - Services Admin
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            description:
              type: string
            icon:
              type: string
            display_order:
              type: integer
          required:
            - name
    responses:
      201:
        description: Category created
      400:
        description: Invalid payload
    """
    payload = get_payload()
    name = str(payload.get("name") or "").strip()
    if not name:
        return jsonify({"error": "invalid_payload", "message": "name is required"}), 400

    try:
        category = ServiceCategory(
            name=name,
            description=payload.get("description"),
            icon=payload.get("icon"),
            display_order=_to_int(payload.get("display_order", 0), "display_order"),
            is_active=bool(payload.get("is_active", True)),
        )
        db.session.add(category)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to create service category")

    return jsonify({"category": category.to_dict()}), 201


@bp.put("/admin/categories/<int:category_id>")
@admin_required
def update_category(category_id: int) -> tuple[dict[str, object], int]:
    """Update a service category.
    ---
    tags:
      - Services Admin
    security:
      - Bearer: []
    parameters:
      - name: category_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Category updated
      404:
        description: Category not found
    """
    category = db.session.get(ServiceCategory, category_id)
    if category is None:
        return jsonify({"error": "not_found", "message": "Service category not found"}), 404

    payload = get_payload()
    if "name" in payload:
        name = str(payload.get("name") or "").strip()
        if not name:
            return jsonify({"error": "invalid_payload", "message": "name cannot be empty"}), 400
        category.name = name
    for field in ("description", "icon"):
        if field in payload:
            setattr(category, field, payload[field])
    if "display_order" in payload:
        category.display_order = _to_int(payload["display_order"], "display_order")
    if "is_active" in payload:
        category.is_active = bool(payload["is_active"])

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to update service category")

    return jsonify({"category": category.to_dict()}), 200


@bp.delete("/admin/categories/<int:category_id>")
@admin_required
def delete_category(category_id: int) -> tuple[dict[str, object], int]:
    """Delete a category together with its services and their variants.
    ---
    tags:
      - Services Admin
    security:
      - Bearer: []
    parameters:
      - name: category_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Category deleted
      404:
        description: Category not found
      409:
        description: A service in the category is referenced by bookings
    """
    category = db.session.get(ServiceCategory, category_id)
    if category is None:
        return jsonify({"error": "not_found", "message": "Service category not found"}), 404

    service_ids = [service.service_id for service in category.services]
    if service_ids and Booking.query.filter(Booking.service_id.in_(service_ids)).first():
        return (
            jsonify({"error": "conflict", "message": "Category has services referenced by bookings"}),
            409,
        )

    try:
        db.session.delete(category)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return (
            jsonify({"error": "conflict", "message": "Category has services referenced by bookings"}),
            409,
        )
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to delete service category")

    return jsonify({"message": "Category deleted successfully"}), 200


# --- Admin: services ---

@bp.get("/admin/all-services")
@admin_required
def admin_list_services() -> tuple[dict[str, object], int]:
    """List every service with its category and all variants.
    ---
    tags:
      - Services Admin
    security:
      - Bearer: []
    responses:
      200:
        description: All services
    """
    services = (
        Service.query.outerjoin(ServiceCategory)
        .order_by(ServiceCategory.display_order.asc(), Service.display_order.asc())
        .all()
    )
    payload = []
    for service in services:
        data = service.to_dict()
        data["category"] = service.category.to_dict() if service.category else None
        data["variants"] = [variant.to_dict() for variant in service.variants]
        payload.append(data)
    return jsonify({"services": payload}), 200


@bp.post("/admin/services")
@admin_required
def create_service() -> tuple[dict[str, object], int]:
    """Create a service. Prices are given in dollars.
    ---
    tags:
      - Services Admin
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            category_id:
              type: integer
            name:
              type: string
            description:
              type: string
            base_price:
              type: number
            base_duration:
              type: integer
            display_order:
              type: integer
          required:
            - name
            - base_price
            - base_duration
    responses:
      201:
        description: Service created
      400:
        description: Invalid payload
      404:
        description: Category not found
    """
    payload = get_payload()
    name = str(payload.get("name") or "").strip()
    errors = []
    if not name:
        errors.append({"field": "name", "message": "name is required"})
    if payload.get("base_price") is None:
        errors.append({"field": "base_price", "message": "base_price is required"})
    if payload.get("base_duration") is None:
        errors.append({"field": "base_duration", "message": "base_duration is required"})
    if errors:
        raise ValidationError.for_fields(errors)

    base_price_cents = to_cents(payload["base_price"], "base_price")
    base_duration = _to_int(payload["base_duration"], "base_duration")
    if base_duration <= 0:
        raise ValidationError.for_fields([{"field": "base_duration", "message": "must be positive"}])

    category_id = payload.get("category_id")
    if category_id is not None:
        category_id = _to_int(category_id, "category_id")
    if category_id is not None and db.session.get(ServiceCategory, category_id) is None:
        return jsonify({"error": "not_found", "message": "Service category not found"}), 404

    try:
        service = Service(
            category_id=category_id,
            name=name,
            description=payload.get("description"),
            base_price_cents=base_price_cents,
            base_duration=base_duration,
            display_order=_to_int(payload.get("display_order", 0), "display_order"),
            is_active=bool(payload.get("is_active", True)),
        )
        db.session.add(service)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to create service")

    return jsonify({"service": service.to_dict()}), 201


@bp.put("/admin/services/<int:service_id>")
@admin_required
def update_service(service_id: int) -> tuple[dict[str, object], int]:
    """Update a service.
    ---
    tags:
      - Services Admin
    security:
      - Bearer: []
    parameters:
      - name: service_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Service updated
      400:
        description: Invalid payload
      404:
        description: Service not found
    """
    service = db.session.get(Service, service_id)
    if service is None:
        return jsonify({"error": "not_found", "message": "Service not found"}), 404

    payload = get_payload()
    if "name" in payload:
        name = str(payload.get("name") or "").strip()
        if not name:
            return jsonify({"error": "invalid_payload", "message": "name cannot be empty"}), 400
        service.name = name
    if "description" in payload:
        service.description = payload["description"]
    if "base_price" in payload:
        service.base_price_cents = to_cents(payload["base_price"], "base_price")
    if "base_duration" in payload:
        base_duration = _to_int(payload["base_duration"], "base_duration")
        if base_duration <= 0:
            raise ValidationError.for_fields([{"field": "base_duration", "message": "must be positive"}])
        service.base_duration = base_duration
    if "category_id" in payload:
        category_id = payload["category_id"]
        if category_id is not None:
            category_id = _to_int(category_id, "category_id")
        if category_id is not None and db.session.get(ServiceCategory, category_id) is None:
            return jsonify({"error": "not_found", "message": "Service category not found"}), 404
        service.category_id = category_id
    if "display_order" in payload:
        service.display_order = _to_int(payload["display_order"], "display_order")
    if "is_active" in payload:
        service.is_active = bool(payload["is_active"])

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to update service")

    return jsonify({"service": service.to_dict()}), 200


@bp.delete("/admin/services/<int:service_id>")
@admin_required
def delete_service(service_id: int) -> tuple[dict[str, object], int]:
    """Delete a service and its variants.
    ---
    tags:
      - Services Admin
    security:
      - Bearer: []
    parameters:
      - name: service_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Service deleted
      404:
        description: Service not found
      409:
        description: Service is referenced by bookings
    """
    service = db.session.get(Service, service_id)
    if service is None:
        return jsonify({"error": "not_found", "message": "Service not found"}), 404

    if Booking.query.filter_by(service_id=service_id).first():
        return jsonify({"error": "conflict", "message": "Service is referenced by bookings"}), 409

    try:
        db.session.delete(service)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "conflict", "message": "Service is referenced by bookings"}), 409
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to delete service")

    return jsonify({"message": "Service deleted successfully"}), 200


# --- Admin: variants ---

def _variant_type(value) -> str:
    kind = str(value or "").strip().lower()
    if kind not in VARIANT_TYPES:
        raise ValidationError.for_fields([
            {"field": "type", "message": f"must be one of {', '.join(VARIANT_TYPES)}"}
        ])
    return kind


@bp.post("/admin/services/<int:service_id>/variants")
@admin_required
def create_variant(service_id: int) -> tuple[dict[str, object], int]:
    """Add a variant to a service. Modifiers may be negative.
    ---
    tags:
      - Services Admin
    security:
      - Bearer: []
    parameters:
      - name: service_id
        in: path
        type: integer
        required: true
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            type:
              type: string
              enum: [style, duration, addon, intensity, length]
            price_modifier:
              type: number
            duration_modifier:
              type: integer
            display_order:
              type: integer
          required:
            - name
            - type
    responses:
      201:
        description: Variant created
      400:
        description: Invalid payload
      404:
        description: Service not found
    """
    service = db.session.get(Service, service_id)
    if service is None:
        return jsonify({"error": "not_found", "message": "Service not found"}), 404

    payload = get_payload()
    name = str(payload.get("name") or "").strip()
    if not name:
        return jsonify({"error": "invalid_payload", "message": "name is required"}), 400

    try:
        variant = ServiceVariant(
            service_id=service.service_id,
            name=name,
            description=payload.get("description"),
            type=_variant_type(payload.get("type")),
            price_modifier_cents=to_cents(payload.get("price_modifier", 0), "price_modifier", allow_negative=True),
            duration_modifier=_to_int(payload.get("duration_modifier", 0), "duration_modifier"),
            display_order=_to_int(payload.get("display_order", 0), "display_order"),
            is_active=bool(payload.get("is_active", True)),
        )
        db.session.add(variant)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to create service variant")

    return jsonify({"variant": variant.to_dict()}), 201


@bp.put("/admin/variants/<int:variant_id>")
@admin_required
def update_variant(variant_id: int) -> tuple[dict[str, object], int]:
    """Update a service variant.
    ---
    tags:
      - Services Admin
    security:
      - Bearer: []
    parameters:
      - name: variant_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Variant updated
      404:
        description: Variant not found
    """
    variant = db.session.get(ServiceVariant, variant_id)
    if variant is None:
        return jsonify({"error": "not_found", "message": "Variant not found"}), 404

    payload = get_payload()
    if "name" in payload:
        name = str(payload.get("name") or "").strip()
        if not name:
            return jsonify({"error": "invalid_payload", "message": "name cannot be empty"}), 400
        variant.name = name
    if "description" in payload:
        variant.description = payload["description"]
    if "type" in payload:
        variant.type = _variant_type(payload["type"])
    if "price_modifier" in payload:
        variant.price_modifier_cents = to_cents(payload["price_modifier"], "price_modifier", allow_negative=True)
    if "duration_modifier" in payload:
        variant.duration_modifier = _to_int(payload["duration_modifier"], "duration_modifier")
    if "display_order" in payload:
        variant.display_order = _to_int(payload["display_order"], "display_order")
    if "is_active" in payload:
        variant.is_active = bool(payload["is_active"])

    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to update service variant")

    return jsonify({"variant": variant.to_dict()}), 200


@bp.delete("/admin/variants/<int:variant_id>")
@admin_required
def delete_variant(variant_id: int) -> tuple[dict[str, object], int]:
    """Delete a service variant.
    ---
    tags:
      - Services Admin
    security:
      - Bearer: []
    parameters:
      - name: variant_id
        in: path
        type: integer
        required: true
    responses:
      200:
        description: Variant deleted
      404:
        description: Variant not found
    """
    variant = db.session.get(ServiceVariant, variant_id)
    if variant is None:
        return jsonify({"error": "not_found", "message": "Variant not found"}), 404

    try:
        db.session.delete(variant)
        db.session.commit()
    except SQLAlchemyError as exc:
        return database_error(exc, "Failed to delete service variant")

    return jsonify({"message": "Variant deleted successfully"}), 200
