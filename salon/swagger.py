"""
Swagger/OpenAPI configuration for the salon booking API
"""

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec",
            "route": "/apispec.json",
            "rule_filter": lambda rule: True,
            "model_filter": lambda tag: True,
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/api/docs",
}

SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Salon Booking API",
        "description": "Bookings, service catalog, loyalty, feedback and analytics for a single salon",
        "version": "1.0.0",
    },
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": 'Signed token using the Bearer scheme. Example: "Authorization: Bearer {token}"',
        }
    },
    "tags": [
        {"name": "Health", "description": "Liveness and database checks"},
        {"name": "Staff Auth", "description": "Staff login and password management"},
        {"name": "Authentication", "description": "Back-office user accounts and Google sign-in"},
        {"name": "Staff", "description": "Staff directory and administration"},
        {"name": "Customers", "description": "Customer accounts and self-service"},
        {"name": "Services", "description": "Service catalog, variants and price quotes"},
        {"name": "Services Admin", "description": "Catalog management (admin only)"},
        {"name": "Bookings", "description": "Appointment booking and availability"},
        {"name": "Loyalty", "description": "Points, rewards and program settings"},
        {"name": "Feedback", "description": "Customer ratings and comments"},
        {"name": "Analytics", "description": "Dashboard and conversion funnel"},
        {"name": "QR", "description": "QR code generation and scan tracking"},
    ],
    "definitions": {
        "Error": {
            "type": "object",
            "properties": {
                "error": {"type": "string", "example": "invalid_payload"},
                "message": {"type": "string"},
                "errors": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "field": {"type": "string"},
                            "message": {"type": "string"},
                        },
                    },
                },
            },
        },
        "Booking": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "customer_name": {"type": "string"},
                "customer_email": {"type": "string", "format": "email"},
                "customer_phone": {"type": "string"},
                "service_id": {"type": "integer"},
                "staff_id": {"type": "integer"},
                "booking_date": {"type": "string", "format": "date"},
                "booking_time": {"type": "string", "example": "10:30"},
                "status": {
                    "type": "string",
                    "enum": ["pending", "confirmed", "completed", "cancelled"],
                },
                "variant_ids": {"type": "array", "items": {"type": "integer"}},
                "total_price": {"type": "number", "format": "float"},
                "total_duration": {"type": "integer"},
            },
        },
        "Quote": {
            "type": "object",
            "properties": {
                "total_price": {"type": "number", "format": "float", "example": 45.0},
                "total_duration": {"type": "integer", "example": 45},
                "breakdown": {
                    "type": "object",
                    "properties": {
                        "base_price": {"type": "number"},
                        "base_duration": {"type": "integer"},
                        "variant_price": {"type": "number"},
                        "variant_duration": {"type": "integer"},
                    },
                },
            },
        },
    },
}
