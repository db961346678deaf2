"""Default quote engine: catalogue prices, flat shipping rates and Canadian sales tax."""

from decimal import ROUND_HALF_UP, Decimal

from protean.exceptions import ObjectNotFoundError, ValidationError

from storefront.config import get_settings
from storefront.exceptions import InsufficientStock
from storefront.quote.port import Quote, QuoteEngine, QuoteLine
from storefront.stock.variant import Variant
from storefront.utils.tenancy import get_for_tenant

FREE_SHIPPING_THRESHOLD = 25000

# Shipping methods per destination country, in display order
SHIPPING_RATES = {
    "CA": {"standard": 1500, "express": 2500, "priority": 3500},
    "US": {"standard": 2500, "express": 4500},
}
DEFAULT_SHIPPING_RATES = {"standard": 2500}

# Combined GST/HST/PST/QST by province
CANADIAN_TAX_RATES = {
    "NL": Decimal("0.15"),
    "NB": Decimal("0.15"),
    "NS": Decimal("0.15"),
    "PE": Decimal("0.15"),
    "ON": Decimal("0.13"),
    "AB": Decimal("0.05"),
    "NT": Decimal("0.05"),
    "NU": Decimal("0.05"),
    "YT": Decimal("0.05"),
    "BC": Decimal("0.12"),
    "SK": Decimal("0.11"),
    "MB": Decimal("0.12"),
    "QC": Decimal("0.14975"),
}


def shipping_options(country, subtotal):
    rates = dict(SHIPPING_RATES.get(country, DEFAULT_SHIPPING_RATES))
    if country == "CA" and subtotal >= FREE_SHIPPING_THRESHOLD:
        rates["standard"] = 0
    return rates


def tax_for(country, province, taxable):
    if country != "CA":
        return 0
    rate = CANADIAN_TAX_RATES.get((province or "").upper())
    if rate is None:
        return 0
    return int((Decimal(taxable) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StandardQuoteEngine(QuoteEngine):
    def quote(self, tenant_id, lines, address, requested_method=None):
        priced = []
        subtotal = 0
        for variant_id, quantity in lines:
            try:
                variant = get_for_tenant(Variant, tenant_id, variant_id)
            except ObjectNotFoundError:
                raise ValidationError({"variant_id": [f"Unknown variant {variant_id}"]}) from None

            if variant.available < quantity:
                raise InsufficientStock(variant.id, quantity, variant.available)

            subtotal += variant.price * quantity
            priced.append(
                QuoteLine(
                    variant_id=str(variant.id),
                    quantity=quantity,
                    unit_price=variant.price,
                    sku=variant.sku,
                    title=variant.title,
                )
            )

        country = (address.get("country") or "CA").upper()
        options = shipping_options(country, subtotal)
        selected_method = requested_method if requested_method in options else next(iter(options))
        shipping = options[selected_method]
        tax = tax_for(country, address.get("province"), subtotal + shipping)

        return Quote(
            subtotal=subtotal,
            shipping=shipping,
            tax=tax,
            total=subtotal + shipping + tax,
            selected_method=selected_method,
            currency=get_settings().currency,
            lines=tuple(priced),
        )
