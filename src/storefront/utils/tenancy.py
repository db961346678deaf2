"""Tenant-scoped repository access.

Every read in the storefront goes through one of these helpers so a record
owned by another tenant is indistinguishable from a missing one.
"""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain


def get_for_tenant(aggregate_cls, tenant_id, identifier):
    """Load an aggregate by id, raising ObjectNotFoundError across tenants."""
    repo = current_domain.repository_for(aggregate_cls)
    record = repo.get(identifier)
    if str(record.tenant_id) != str(tenant_id):
        raise ObjectNotFoundError({"_entity": f"{aggregate_cls.__name__} with id {identifier} does not exist"})
    return record


def find_for_tenant(aggregate_cls, tenant_id, **filters):
    """All records of ``aggregate_cls`` in ``tenant_id`` matching ``filters``."""
    repo = current_domain.repository_for(aggregate_cls)
    return repo._dao.query.filter(tenant_id=str(tenant_id), **filters).all().items


def delete_for_tenant(aggregate_cls, tenant_id, identifier, children=None):
    """Hard-delete an aggregate, first detaching the entities in its ``children`` HasMany field.

    Repositories only persist; deletion goes through the DAO, the same way
    projection records are cleaned up in Protean handlers.
    """
    repo = current_domain.repository_for(aggregate_cls)
    record = get_for_tenant(aggregate_cls, tenant_id, identifier)
    if children:
        detach = getattr(record, f"remove_{children}")
        for child in list(getattr(record, children)):
            detach(child)
        repo.add(record)
    repo._dao.delete(record)
