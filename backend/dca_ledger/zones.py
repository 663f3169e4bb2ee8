"""Adaptive DCA zone allocation.

Zones whose band the price has already left (or that were executed) give up
their base percentage. The freed pool is handed to the still-active zones in
proportion to their own base percentage, so the plan keeps deploying the same
share of capital while the price moves down through the bands.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional, Sequence

from .errors import ZoneDefinitionError
from .models import DcaZoneComputed, DcaZoneDefinition, EntryPoint, ZonePlan, ZoneStatus
from .money import HUNDRED, ZERO, quantize_pct, quantize_qty, quantize_usd

logger = logging.getLogger(__name__)

MAX_ENTRY_POINTS = 10


def validate_zones(zones: Sequence[DcaZoneDefinition]) -> None:
    """Raise ``ZoneDefinitionError`` when zones break the allocator contract."""

    if not zones:
        raise ZoneDefinitionError("At least one zone is required")
    total_base = ZERO
    for previous, current in zip(zones, zones[1:]):
        if current.order <= previous.order:
            raise ZoneDefinitionError(
                f"Zones must be sorted by ascending order; {current.id} ({current.order}) "
                f"follows {previous.id} ({previous.order})"
            )
    for zone in zones:
        if zone.price_min < 0 or zone.price_max < 0:
            raise ZoneDefinitionError(f"Zone {zone.id} has a negative price bound")
        if zone.price_min > zone.price_max:
            raise ZoneDefinitionError(f"Zone {zone.id} has price_min above price_max")
        if zone.percentual_base < 0:
            raise ZoneDefinitionError(f"Zone {zone.id} has a negative base percentage")
        total_base += zone.percentual_base
    if total_base > HUNDRED:
        raise ZoneDefinitionError(f"Base percentages add up to {total_base}, above 100")

    bands = sorted(zones, key=lambda z: (z.price_min, z.price_max))
    for lower, upper in zip(bands, bands[1:]):
        if upper.price_min < lower.price_max:
            logger.warning(
                "Zones %s [%s, %s] and %s [%s, %s] overlap",
                lower.id,
                lower.price_min,
                lower.price_max,
                upper.id,
                upper.price_min,
                upper.price_max,
            )


def classify_zone(zone: DcaZoneDefinition, current_price: Decimal) -> ZoneStatus:
    if zone.executed:
        return ZoneStatus.EXECUTADA
    if current_price > zone.price_max:
        return ZoneStatus.PULADA
    return ZoneStatus.ATIVA


def distance_pct(zone: DcaZoneDefinition, current_price: Decimal) -> Decimal:
    if zone.price_min > 0:
        return (current_price - zone.price_min) / zone.price_min * HUNDRED
    return ZERO


def _allocate(
    zones: Sequence[DcaZoneDefinition],
    current_price: Decimal,
    capital_total: Decimal,
) -> tuple[list[DcaZoneComputed], Decimal]:
    validate_zones(zones)
    statuses = [classify_zone(zone, current_price) for zone in zones]

    pool = sum(
        (z.percentual_base for z, s in zip(zones, statuses) if s is not ZoneStatus.ATIVA),
        ZERO,
    )
    active_base = sum(
        (z.percentual_base for z, s in zip(zones, statuses) if s is ZoneStatus.ATIVA),
        ZERO,
    )

    computed: list[DcaZoneComputed] = []
    for zone, status in zip(zones, statuses):
        if status is ZoneStatus.ATIVA and active_base > 0:
            adjusted = zone.percentual_base + pool * (zone.percentual_base / active_base)
        else:
            adjusted = ZERO
        computed.append(
            DcaZoneComputed(
                id=zone.id,
                order=zone.order,
                label=zone.label,
                price_min=zone.price_min,
                price_max=zone.price_max,
                percentual_base=zone.percentual_base,
                percentual_ajustado=quantize_pct(adjusted),
                valor_usd=quantize_usd(adjusted / HUNDRED * capital_total),
                status=status,
                distancia_pct=quantize_pct(distance_pct(zone, current_price)),
            )
        )
    return computed, active_base


def compute_adaptive_zones(
    zones: Sequence[DcaZoneDefinition],
    current_price: Decimal,
    capital_total: Decimal,
) -> list[DcaZoneComputed]:
    """Classify ``zones`` at ``current_price`` and split ``capital_total`` across them.

    Output order equals input order.
    """

    computed, _ = _allocate(zones, current_price, capital_total)
    return computed


def build_zone_plan(
    zones: Sequence[DcaZoneDefinition],
    current_price: Decimal,
    capital_total: Decimal,
) -> ZonePlan:
    """Return the zone allocation wrapped with plan-level indicators."""

    computed, active_base = _allocate(zones, current_price, capital_total)
    unallocated = active_base == 0 and capital_total > 0
    if unallocated:
        logger.info(
            "No active zone at price %s; %s of capital left unallocated", current_price, capital_total
        )
    return ZonePlan(
        zones=computed,
        current_price=current_price,
        capital_total=capital_total,
        allocated_usd=sum((zone.valor_usd for zone in computed), ZERO),
        capital_unallocated=unallocated,
    )


def zone_entry_points(
    zone: DcaZoneDefinition | DcaZoneComputed,
    value_usd: Decimal,
    count: int,
    current_price: Optional[Decimal] = None,
) -> list[EntryPoint]:
    """Split ``value_usd`` evenly across ``count`` prices inside the zone band.

    Targets run from ``price_min`` up to ``price_max``, or up to the current
    price when that is lower, lowest first. A single entry sits at
    ``price_min``.
    """

    if not 1 <= count <= MAX_ENTRY_POINTS:
        raise ZoneDefinitionError(f"Entry count must be between 1 and {MAX_ENTRY_POINTS}, got {count}")
    if value_usd < 0:
        raise ZoneDefinitionError(f"Zone value must not be negative, got {value_usd}")
    top = zone.price_max if current_price is None else min(zone.price_max, current_price)
    top = max(top, zone.price_min)
    step = (top - zone.price_min) / (count - 1) if count > 1 else ZERO
    per_entry = quantize_usd(value_usd / count)
    return [
        EntryPoint(order=index + 1, target_price=quantize_qty(zone.price_min + step * index), value_usd=per_entry)
        for index in range(count)
    ]


__all__ = [
    "validate_zones",
    "classify_zone",
    "distance_pct",
    "compute_adaptive_zones",
    "build_zone_plan",
    "zone_entry_points",
    "MAX_ENTRY_POINTS",
]
