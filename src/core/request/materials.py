"""Material bookkeeping

Required amounts are stored per unit and scaled by the requested quantity.
Older front-end builds submitted materials as ``["Silk x10", ...]`` lists or
as mappings keyed by list index; both are accepted and normalized here.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from .enums import MaterialProvision
from .models import Request

logger = logging.getLogger(__name__)

_LEGACY_ENTRY = re.compile(r"^(.+?)\s+x(\d+)$")


def _to_quantity(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _parse_legacy_entry(entry: Any) -> tuple[str, int] | None:
    if not isinstance(entry, str):
        return None
    match = _LEGACY_ENTRY.match(entry.strip())
    if match is None:
        return None
    return match.group(1).strip(), int(match.group(2))


def normalize_materials(raw: Any) -> dict[str, int]:
    """Return ``{material: quantity}`` with positive quantities only."""
    if not raw:
        return {}

    result: dict[str, int] = {}

    def _add(name: str, qty: int) -> None:
        if name and qty > 0:
            result[name] = result.get(name, 0) + qty

    if isinstance(raw, Mapping):
        for key, value in raw.items():
            if isinstance(key, int) or (isinstance(key, str) and key.isdigit()):
                parsed = _parse_legacy_entry(value)
                if parsed is None:
                    logger.warning("Dropping unparseable material entry %r", value)
                    continue
                _add(*parsed)
            else:
                _add(str(key).strip(), _to_quantity(value))
        return result

    if isinstance(raw, Iterable) and not isinstance(raw, (str, bytes)):
        for entry in raw:
            parsed = _parse_legacy_entry(entry)
            if parsed is None:
                logger.warning("Dropping unparseable material entry %r", entry)
                continue
            _add(*parsed)
        return result

    raise TypeError(f"Unsupported materials payload: {type(raw).__name__}")


def scale_materials(per_unit: Mapping[str, int], quantity: int) -> dict[str, int]:
    return {name: qty * quantity for name, qty in per_unit.items()}


def materials_still_needed(
    per_unit: Mapping[str, int], provided: Mapping[str, int], quantity: int
) -> dict[str, int]:
    needed = {}
    for name, total in scale_materials(per_unit, quantity).items():
        missing = total - provided.get(name, 0)
        if missing > 0:
            needed[name] = missing
    return needed


def provision_level(request: Request) -> MaterialProvision:
    if not request.requester_provides_materials or not any(
        qty > 0 for qty in request.materials_provided.values()
    ):
        return MaterialProvision.GUILD
    if materials_still_needed(
        request.materials_required,
        request.materials_provided,
        request.quantity_requested,
    ):
        return MaterialProvision.PARTIAL
    return MaterialProvision.FULL


def aggregate_materials(requests: Iterable[Request]) -> dict[str, int]:
    """Totals a crafter must source for guild-provided requests."""
    totals: dict[str, int] = {}
    for request in requests:
        if request.requester_provides_materials:
            continue
        for name, qty in scale_materials(
            request.materials_required, request.quantity_requested
        ).items():
            totals[name] = totals.get(name, 0) + qty
    return dict(sorted(totals.items()))
