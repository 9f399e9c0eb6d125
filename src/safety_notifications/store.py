"""Explicit persistence handle shared by the notification services.

Services receive a ``Store`` at construction instead of reaching for a
module-level client. By default it resolves repositories from the active
domain context; tests substitute a subclass to simulate read failures.
"""

from protean.utils.globals import current_domain


class Store:
    def __init__(self, domain=None):
        self._domain = domain

    @property
    def domain(self):
        return self._domain or current_domain

    def repository_for(self, aggregate_cls):
        return self.domain.repository_for(aggregate_cls)

    def filter(self, aggregate_cls, **criteria) -> list:
        """Return every record of ``aggregate_cls`` matching ``criteria``."""
        query = self.repository_for(aggregate_cls)._dao.query
        if criteria:
            query = query.filter(**criteria)
        return query.all().items

    def first(self, aggregate_cls, **criteria):
        items = self.filter(aggregate_cls, **criteria)
        return items[0] if items else None

    def add(self, aggregate):
        self.repository_for(type(aggregate)).add(aggregate)
        return aggregate

    def delete(self, aggregate):
        self.repository_for(type(aggregate))._dao.delete(aggregate)

    def get(self, aggregate_cls, identifier):
        """Load one aggregate by id; raises ``ObjectNotFoundError`` when absent."""
        return self.repository_for(aggregate_cls).get(identifier)
