"""Price and duration quotes for a service plus selected variants."""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from .errors import NotFoundError
from .models import Service, ServiceVariant

MIN_DURATION_MINUTES = 15


@dataclass
class Quote:
    """Totals are integer cents and minutes."""

    service: Service
    total_price_cents: int
    total_duration: int
    variant_price_cents: int
    variant_duration: int
    variants: list[ServiceVariant] = field(default_factory=list)

    @property
    def total_price(self) -> float:
        return self.total_price_cents / 100.0

    def to_dict(self) -> dict[str, object]:
        return {
            "service": self.service.to_dict(),
            "selected_variants": [variant.to_dict() for variant in self.variants],
            "total_price": self.total_price,
            "total_price_cents": self.total_price_cents,
            "total_duration": self.total_duration,
            "breakdown": {
                "base_price": self.service.base_price_cents / 100.0,
                "base_duration": self.service.base_duration,
                "variant_price": self.variant_price_cents / 100.0,
                "variant_duration": self.variant_duration,
            },
        }


def calculate(service: Service, selected_variants: Iterable[ServiceVariant]) -> Quote:
    """Sum every selected modifier onto the base values.

    Variants of the same type are all applied. The price never drops below
    zero and the duration never below fifteen minutes.
    """
    variants = list(selected_variants)
    price_delta = sum(variant.price_modifier_cents or 0 for variant in variants)
    duration_delta = sum(variant.duration_modifier or 0 for variant in variants)

    return Quote(
        service=service,
        total_price_cents=max(0, service.base_price_cents + price_delta),
        total_duration=max(MIN_DURATION_MINUTES, service.base_duration + duration_delta),
        variant_price_cents=price_delta,
        variant_duration=duration_delta,
        variants=variants,
    )


def normalize_variant_ids(raw) -> list[int]:
    """Coerce request input into a list of integer ids, ignoring junk entries."""
    if raw is None:
        return []
    if not isinstance(raw, (list, tuple)):
        raw = [raw]
    ids: list[int] = []
    for value in raw:
        try:
            ids.append(int(value))
        except (TypeError, ValueError):
            continue
    return ids


def quote(gateway, service_id: int, variant_ids: Sequence[int] | None = None) -> Quote:
    """Load the service and its matching active variants, then calculate.

    Ids that are unknown, inactive or belong to another service are dropped.
    """
    service = gateway.services.find_first(service_id=service_id, is_active=True)
    if service is None:
        raise NotFoundError("Service not found")

    ids = list(variant_ids or [])
    variants = []
    if ids:
        variants = gateway.variants.find_many(
            variant_id=ids,
            service_id=service.service_id,
            is_active=True,
            order_by=[ServiceVariant.type, ServiceVariant.display_order],
        )
    return calculate(service, variants)
