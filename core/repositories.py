"""
Data access helpers shared by the domain repositories.

Repositories own the queries, services own the rules. Lookups that must
succeed go through get_or_raise / lock so every domain reports a missing
row as NotFoundError.
"""
from typing import Generic, TypeVar, Optional, List
from django.db.models import QuerySet, Model
from django.db import transaction
import logging

from core.exceptions import NotFoundError

logger = logging.getLogger(__name__)

T = TypeVar('T', bound=Model)


class BaseRepository(Generic[T]):
    """Queries for a single model; subclasses set `model`"""
    model = None

    @property
    def resource_name(self) -> str:
        return self.model._meta.object_name

    def get_queryset(self) -> QuerySet[T]:
        return self.model.objects.all()

    def filter(self, **filters) -> QuerySet[T]:
        return self.get_queryset().filter(**filters)

    def first(self, **filters) -> Optional[T]:
        return self.filter(**filters).first()

    def exists(self, **filters) -> bool:
        return self.filter(**filters).exists()

    def get_or_raise(self, pk: int, **filters) -> T:
        """Instance by primary key, restricted by filters"""
        instance = self.first(pk=pk, **filters)
        if instance is None:
            raise NotFoundError(resource_type=self.resource_name, resource_id=pk)
        return instance

    def lock(self, pk: int, **filters) -> T:
        """Row-locked instance, must run inside transaction.atomic"""
        instance = self.get_queryset().select_for_update().filter(pk=pk, **filters).first()
        if instance is None:
            raise NotFoundError(resource_type=self.resource_name, resource_id=pk)
        return instance

    def create(self, **fields) -> T:
        return self.model.objects.create(**fields)

    @transaction.atomic
    def bulk_create(self, instances: List[T]) -> List[T]:
        # bulk_create skips save(), callers validate beforehand
        return self.model.objects.bulk_create(instances)

    def delete_where(self, **filters) -> int:
        """Delete matching rows, returns how many went"""
        deleted, _ = self.filter(**filters).delete()
        if deleted:
            logger.debug(f"Deleted {deleted} {self.resource_name} row(s) | {filters}")
        return deleted
