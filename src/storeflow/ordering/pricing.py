"""Order pricing — the extension point where tax and shipping engines plug in.

The built-in rules are deliberately simple: a flat tax rate on the discounted
subtotal, flat-rate shipping, and discounts from promo codes found in the
order notes, falling back to volume discounts.
"""

from dataclasses import asdict, dataclass

TAX_RATE = 0.10
FLAT_SHIPPING = 9.99
CURRENCY = "USD"

# code -> (kind, value, minimum subtotal)
PROMO_CODES = {
    "VIP10": ("percent", 0.10, 0.0),
    "WELCOME5": ("percent", 0.05, 0.0),
    "SAVE20": ("fixed", 20.0, 0.0),
    "BULK15": ("percent", 0.15, 100.0),
}

# (minimum subtotal, rate), highest tier first
VOLUME_DISCOUNTS = [
    (500.0, 0.10),
    (200.0, 0.05),
]


@dataclass(frozen=True)
class PricingBreakdown:
    subtotal: float
    discount_amount: float
    tax_amount: float
    shipping_amount: float
    total_amount: float
    currency: str = CURRENCY

    def as_dict(self) -> dict:
        return asdict(self)


def _money(value: float) -> float:
    return round(value + 1e-9, 2)


def calculate_subtotal(items) -> float:
    return _money(sum(item["unit_price"] * item["quantity"] for item in items))


def calculate_discount(subtotal: float, notes: str | None = None) -> float:
    """Promo code in ``notes`` wins over volume tiers; never exceeds the subtotal."""
    discount = None
    text = (notes or "").upper()
    for code, (kind, value, minimum) in PROMO_CODES.items():
        if code in text and subtotal >= minimum:
            discount = subtotal * value if kind == "percent" else value
            break

    if discount is None:
        discount = next((subtotal * rate for minimum, rate in VOLUME_DISCOUNTS if subtotal >= minimum), 0.0)

    return _money(min(discount, subtotal))


def calculate_tax(taxable_amount: float) -> float:
    return _money(max(taxable_amount, 0.0) * TAX_RATE)


def calculate_shipping(items) -> float:
    return FLAT_SHIPPING if items else 0.0


def calculate_pricing(items, notes: str | None = None) -> PricingBreakdown:
    """Price a list of ``{"unit_price", "quantity"}`` lines."""
    subtotal = calculate_subtotal(items)
    discount = calculate_discount(subtotal, notes)
    tax = calculate_tax(subtotal - discount)
    shipping = calculate_shipping(items)
    return PricingBreakdown(
        subtotal=subtotal,
        discount_amount=discount,
        tax_amount=tax,
        shipping_amount=shipping,
        total_amount=_money(subtotal - discount + tax + shipping),
    )
