"""Variant registration: command and handler."""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.stock.variant import Variant


@storefront.command(part_of="Variant")
class RegisterVariant:
    tenant_id = Identifier(required=True)
    sku = String(required=True, max_length=50)
    title = String(max_length=255)
    price = Integer(required=True, min_value=0)
    stock = Integer(default=0, min_value=0)


@storefront.command_handler(part_of=Variant)
class RegisterVariantHandler:
    @handle(RegisterVariant)
    def register_variant(self, command):
        variant = Variant.register(
            tenant_id=command.tenant_id,
            sku=command.sku,
            title=command.title,
            price=command.price,
            stock=command.stock,
        )
        current_domain.repository_for(Variant).add(variant)
        return str(variant.id)
