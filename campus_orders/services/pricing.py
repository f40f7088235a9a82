# campus_orders/services/pricing.py
"""
Menu item pricing with variation groups.

A catalog item looks like::

    {"id": 7, "name": "Silog", "price": "0.00", "concession_id": 2,
     "variation_groups": [
        {"id": 1, "name": "Meat", "required_selection": true, "min_selection": 1,
         "multiple_selection": false, "max_selection": 1,
         "variations": [{"id": 10, "name": "Tapa", "price": "85.00"}, ...]},
     ]}
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Tuple

from campus_orders.domain.errors import InvalidSelection

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value if value is not None else 0)).quantize(CENT)


@dataclass
class ChosenVariation:
    variation_id: int
    group_id: int
    name: str
    price: Decimal


@dataclass
class PricedSelection:
    unit_price: Decimal
    variations: List[ChosenVariation] = field(default_factory=list)

    @property
    def variation_total(self) -> Decimal:
        return sum((v.price for v in self.variations), ZERO)

    def line_total(self, quantity: int) -> Decimal:
        return ((self.unit_price + self.variation_total) * quantity).quantize(CENT)


def _available(variations: Iterable[dict]) -> List[dict]:
    return [v for v in variations if v.get("available", True)]


def minimum_picks(group: dict) -> int:
    required = 1 if group.get("required_selection") else 0
    return max(required, int(group.get("min_selection") or 0))


def maximum_picks(group: dict) -> int:
    cap = group.get("max_selection")
    if cap is not None and int(cap) > 0:
        return int(cap)
    if group.get("multiple_selection"):
        return len(group.get("variations") or [])
    return 1


def line_total(quantity: int, unit_price, variation_prices: Iterable) -> Decimal:
    extras = sum((to_money(p) for p in variation_prices), ZERO)
    return ((to_money(unit_price) + extras) * quantity).quantize(CENT)


def price_selection(item: dict, selected_ids: List[int]) -> PricedSelection:
    """
    Validate the chosen variation ids against the item's groups and price them.
    Selection order is kept; it is how the line is shown back to the customer.
    """
    groups = item.get("variation_groups") or []
    by_id = {}
    for group in groups:
        for variation in group.get("variations") or []:
            by_id[int(variation["id"])] = (group, variation)

    if len(set(selected_ids)) != len(selected_ids):
        raise InvalidSelection("The same variation was selected more than once")

    chosen: List[ChosenVariation] = []
    per_group = {}
    for vid in selected_ids:
        if vid not in by_id:
            raise InvalidSelection(f"Variation {vid} does not belong to item {item.get('id')}")
        group, variation = by_id[vid]
        if not variation.get("available", True):
            raise InvalidSelection(f"Variation '{variation.get('name', vid)}' is not available")
        per_group[int(group["id"])] = per_group.get(int(group["id"]), 0) + 1
        chosen.append(
            ChosenVariation(
                variation_id=vid,
                group_id=int(group["id"]),
                name=variation.get("name", ""),
                price=to_money(variation.get("price")),
            )
        )

    for group in groups:
        picked = per_group.get(int(group["id"]), 0)
        name = group.get("name", group["id"])
        needed = minimum_picks(group)
        if picked < needed:
            if picked == 0:
                raise InvalidSelection(f"Variation group '{name}' requires a selection")
            raise InvalidSelection(f"Variation group '{name}' requires at least {needed} selections")
        if picked > maximum_picks(group):
            raise InvalidSelection(
                f"Variation group '{name}' allows at most {maximum_picks(group)} selections"
            )

    return PricedSelection(unit_price=to_money(item.get("price")), variations=chosen)


def price_range(item: dict) -> Tuple[Decimal, Decimal]:
    """
    Lowest and highest unit price a customer can end up paying.

    Fixed-price items report their base price. Variant-priced items (base
    price zero) start at the cheapest combination that satisfies every
    required group and top out at the most expensive combination each
    group's cap allows.
    """
    base = to_money(item.get("price"))
    if base > ZERO:
        return base, base

    low = high = ZERO
    for group in item.get("variation_groups") or []:
        prices = sorted(to_money(v.get("price")) for v in _available(group.get("variations") or []))
        if not prices:
            continue
        low += sum(prices[: minimum_picks(group)], ZERO)
        high += sum(prices[-maximum_picks(group):], ZERO)

    return base + low, base + max(low, high)

