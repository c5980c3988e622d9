"""Variant combinations for seller listings and price lookup for buyers.

Option types travel as the seller form posts them, an ordered list of::

    [{"name": "Warna", "values": [{"value": "Merah"}, {"value": "Biru"}]},
     {"name": "Ukuran", "values": ["S", "M"]}]

and a combination as::

    {"id": "combo-…", "combination": {"Warna": "Merah", "Ukuran": "S"},
     "price": 50000, "stock": 10, "sku": ""}

Everything here is a pure function over those dicts. The caller owns the
mutable form state and persistence.
"""
import uuid

DEFAULT_PRICE = 0
DEFAULT_STOCK = 0
EDITABLE_FIELDS = {"price", "stock", "sku", "is_active"}


def value_text(value):
    """Return the display string of a variant value (dict or bare string)."""
    if isinstance(value, dict):
        return value.get("value", "")
    return value


def _items(combination):
    """(type, value) pairs of a map or a persisted pair list, else None."""
    if isinstance(combination, dict):
        return list(combination.items())
    if not isinstance(combination, list):
        return None
    items = []
    for pair in combination:
        if not isinstance(pair, dict) or "type" not in pair or "value" not in pair:
            return None
        items.append((pair["type"], pair["value"]))
    return items


def combination_key(combination):
    """Canonical, hashable key for a combination map.

    Accepts either ``{type: value}`` or the persisted list of
    ``{"type": ..., "value": ...}`` pairs. Two combinations are the same
    option tuple iff their keys are equal, whatever order the types were
    listed in. Anything else has no key (``None``) and matches nothing.
    """
    if not combination:
        return ()
    items = _items(combination)
    if items is None:
        return None
    return tuple(sorted((str(t), str(v)) for t, v in items))


def new_combination(mapping):
    return {
        "id": f"combo-{uuid.uuid4().hex[:12]}",
        "combination": mapping,
        "price": DEFAULT_PRICE,
        "stock": DEFAULT_STOCK,
        "sku": "",
    }


def is_complete(types):
    """True when every type has at least one value to combine."""
    return bool(types) and all(t.get("values") for t in types)


def generate_combinations(types, existing=None):
    """Cartesian product of all option values, merged with ``existing``.

    Order follows the order types were added, then the order values were
    added within each type. Entries of ``existing`` whose key survives keep
    their id, price, stock and sku; the others are dropped.
    """
    if not is_complete(types):
        return []

    previous = index_combinations(existing)

    fresh = []

    def expand(index, current):
        if index == len(types):
            fresh.append(new_combination(current))
            return
        variant_type = types[index]
        for value in variant_type["values"]:
            partial = dict(current)
            partial[variant_type["name"]] = value_text(value)
            expand(index + 1, partial)

    expand(0, {})

    merged = []
    for combo in fresh:
        kept = previous.get(combination_key(combo["combination"]))
        if kept is not None:
            combo = dict(kept, combination=combo["combination"])
        merged.append(combo)
    return merged


def index_combinations(combinations):
    """Map canonical key -> combination; first one wins on duplicates."""
    index = {}
    for combo in combinations or []:
        if not isinstance(combo, dict):
            continue
        key = combination_key(combo.get("combination"))
        if key:
            index.setdefault(key, combo)
    return index


def find_combination(combinations, selected):
    """Return the combination whose key map equals ``selected`` exactly."""
    picked = {t: v for t, v in (selected or {}).items() if v not in (None, "")}
    if not picked:
        return None
    return index_combinations(combinations).get(combination_key(picked))


def _field(obj, name):
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name)


def resolve_price(product, combinations, selected):
    """Effective price and stock for the buyer's current selection.

    Falls back to the product's base price/stock unless the selection names
    exactly the option set of one combination.
    """
    match = find_combination(combinations, selected) if combinations else None
    if match is None:
        return {
            "price": _field(product, "price"),
            "stock": _field(product, "stock"),
            "combination_id": None,
        }
    return {
        "price": match["price"],
        "stock": match["stock"],
        "combination_id": match.get("id"),
    }


def default_selection(combinations):
    """Selection the product page starts from: the first combination."""
    if not combinations:
        return {}
    return dict(combinations[0]["combination"])


def group_options_by_type(options):
    """Rebuild ordered variant types from persisted option rows.

    ``options`` are objects with ``type``, ``value``, ``image_url`` and
    ``sort_order``; types appear in the order their first value sorts.
    """
    types = []
    by_name = {}
    for option in sorted(options, key=lambda o: o.sort_order or 0):
        variant_type = by_name.get(option.type)
        if variant_type is None:
            variant_type = {"name": option.type, "values": []}
            by_name[option.type] = variant_type
            types.append(variant_type)
        value = {"value": option.value}
        if option.image_url:
            value["image"] = option.image_url
        variant_type["values"].append(value)
    return types


# ---------------------------------------------------------------------------
# Seller form editing
# ---------------------------------------------------------------------------

def add_variant_type(types, name):
    name = (name or "").strip()
    if not name:
        return list(types)
    return list(types) + [{"id": f"type-{uuid.uuid4().hex[:8]}", "name": name, "values": []}]


def add_variant_value(types, type_name, value, image=None):
    value = (value or "").strip()
    if not value:
        return list(types)
    entry = {"id": f"val-{uuid.uuid4().hex[:8]}", "value": value}
    if image:
        entry["image"] = image
    updated = []
    for variant_type in types:
        if variant_type["name"] == type_name:
            variant_type = dict(variant_type, values=list(variant_type["values"]) + [entry])
        updated.append(variant_type)
    return updated


def remove_variant_type(types, type_name):
    return [t for t in types if t["name"] != type_name]


def remove_variant_value(types, type_name, value):
    updated = []
    for variant_type in types:
        if variant_type["name"] == type_name:
            kept = [v for v in variant_type["values"] if value_text(v) != value]
            variant_type = dict(variant_type, values=kept)
        updated.append(variant_type)
    return updated


def update_combination(combinations, combination_id, field, value):
    if field not in EDITABLE_FIELDS:
        raise ValueError(f"Cannot edit combination field: {field}")
    return [
        dict(c, **{field: value}) if c.get("id") == combination_id else c
        for c in combinations
    ]


def bulk_update(combinations, price=None, stock=None):
    """Set one price and/or stock on every combination."""
    changes = {}
    if price is not None:
        changes["price"] = price
    if stock is not None:
        changes["stock"] = stock
    return [dict(c, **changes) for c in combinations]


def total_stock(combinations):
    """Sum of combination stock; non-numeric stock counts as zero."""
    total = 0
    for combo in combinations or []:
        stock = combo.get("stock")
        if isinstance(stock, int) and not isinstance(stock, bool):
            total += stock
    return total


def duplicate_type_names(types):
    """Type names that occur more than once (case-insensitive)."""
    seen = set()
    dupes = []
    for variant_type in types:
        name = (variant_type.get("name") or "").strip().lower()
        if name in seen and name not in dupes:
            dupes.append(name)
        seen.add(name)
    return dupes


def variant_label(combination):
    """Human label for a combination map, e.g. ``"Warna: Merah, Ukuran: S"``."""
    items = _items(combination) if combination else None
    if not items:
        return ""
    return ", ".join(f"{t}: {v}" for t, v in items)
