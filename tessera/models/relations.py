"""
Tessera Relations — relationship descriptors and the eager loader.

Relations are declared as class attributes and name the related type
either directly or by class name (resolved through ``EntityRegistry``):

    class Post(Entity):
        author = BelongsTo("User", foreign_key="user_id")
        comments = HasMany("Comment")
        tags = BelongsToMany("Tag")

    post.author                       # User or None, cached on the instance
    post.comments                     # Collection
    post.relation_query("comments")   # pre-filtered QueryBuilder

Eager loading (``Post.query().with_("author", "comments.user").get()``)
issues exactly one query per relation (per nesting level), whatever the
number of owners, then fans the results back out by key.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Type, Union, TYPE_CHECKING

from ..faults.domains import UsageFault
from .collection import Collection, SeenSet
from .context import OrmContext

if TYPE_CHECKING:
    from .base import Entity
    from .query import QueryBuilder

logger = logging.getLogger("tessera.models.relations")

__all__ = [
    "Relation",
    "BelongsTo",
    "HasOne",
    "HasMany",
    "BelongsToMany",
    "eager_load",
]

PIVOT_OWNER_ALIAS = "_pivot_owner_key"


def _unique(values: Sequence[Any]) -> List[Any]:
    seen = SeenSet()
    unique: List[Any] = []
    for value in values:
        if value is not None and value not in seen:
            seen.add(value)
            unique.append(value)
    return unique


class Relation:
    """
    Base relation descriptor.

    Reading the attribute on an instance returns the cached result when
    the relation was loaded (lazily or eagerly), else resolves and caches
    it. Assigning stores a value in the cache without touching storage.
    """

    kind = "relation"
    many = False

    def __init__(self, related: Union[str, Type[Entity]]):
        self._related = related
        self.name: Optional[str] = None
        self.owner: Optional[Type[Entity]] = None

    def __set_name__(self, owner: Type[Entity], name: str) -> None:
        self.owner = owner
        self.name = name

    @property
    def related_cls(self) -> Type[Entity]:
        if isinstance(self._related, str):
            from .base import EntityRegistry
            return EntityRegistry.resolve(self._related)
        return self._related

    @property
    def related_name(self) -> str:
        if isinstance(self._related, str):
            return self._related
        return self._related.__name__

    def __get__(self, instance: Optional[Entity], owner: Type[Entity]) -> Any:
        if instance is None:
            return self
        if instance.relation_loaded(self.name):
            return instance.get_relation(self.name)
        value = self.resolve(instance)
        instance.set_relation(self.name, value)
        return value

    def __set__(self, instance: Entity, value: Any) -> None:
        instance.set_relation(self.name, value)

    def _related_query(self, context: Optional[OrmContext]) -> QueryBuilder:
        return self.related_cls.query(context=context)

    def query_for(self, instance: Entity) -> QueryBuilder:
        raise NotImplementedError

    def resolve(self, instance: Entity) -> Any:
        raise NotImplementedError

    def eager(self, owners: List[Entity], context: Optional[OrmContext]) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.owner.__name__ if self.owner else '?'}.{self.name} -> {self.related_name}>"


class BelongsTo(Relation):
    """
    The owner holds the foreign key: ``owner.<foreign_key> == related.<owner_key>``.

    Default foreign key: lowercase(related type name) + "_id".
    """

    kind = "belongs_to"

    def __init__(self, related, foreign_key: Optional[str] = None, owner_key: Optional[str] = None):
        super().__init__(related)
        self._foreign_key = foreign_key
        self._owner_key = owner_key

    @property
    def foreign_key(self) -> str:
        return self._foreign_key or f"{self.related_name.lower()}_id"

    @property
    def owner_key(self) -> str:
        return self._owner_key or self.related_cls._meta.primary_key

    def query_for(self, instance: Entity) -> QueryBuilder:
        return self._related_query(instance.context_or_none).where(
            self.owner_key, instance.get_raw(self.foreign_key)
        )

    def resolve(self, instance: Entity) -> Optional[Entity]:
        if instance.get_raw(self.foreign_key) is None:
            return None
        return self.query_for(instance).first()

    def eager(self, owners: List[Entity], context: Optional[OrmContext]) -> None:
        keys = _unique([owner.get_raw(self.foreign_key) for owner in owners])
        found: Dict[Any, Entity] = {}
        if keys:
            for related in self._related_query(context).where_in(self.owner_key, keys).get():
                found[related.get_raw(self.owner_key)] = related
        for owner in owners:
            owner.set_relation(self.name, found.get(owner.get_raw(self.foreign_key)))


class HasMany(Relation):
    """
    The related rows hold the foreign key: ``related.<foreign_key> == owner.<local_key>``.

    Default foreign key: lowercase(owner type name) + "_id".
    """

    kind = "has_many"
    many = True

    def __init__(self, related, foreign_key: Optional[str] = None, local_key: Optional[str] = None):
        super().__init__(related)
        self._foreign_key = foreign_key
        self._local_key = local_key

    @property
    def foreign_key(self) -> str:
        return self._foreign_key or f"{self.owner.__name__.lower()}_id"

    @property
    def local_key(self) -> str:
        return self._local_key or self.owner._meta.primary_key

    def query_for(self, instance: Entity) -> QueryBuilder:
        return self._related_query(instance.context_or_none).where(
            self.foreign_key, instance.get_raw(self.local_key)
        )

    def resolve(self, instance: Entity) -> Any:
        if instance.get_raw(self.local_key) is None:
            return Collection()
        return self.query_for(instance).get()

    def _grouped(self, owners: List[Entity], context: Optional[OrmContext]) -> Dict[Any, List[Entity]]:
        keys = _unique([owner.get_raw(self.local_key) for owner in owners])
        groups: Dict[Any, List[Entity]] = {}
        if keys:
            for related in self._related_query(context).where_in(self.foreign_key, keys).get():
                groups.setdefault(related.get_raw(self.foreign_key), []).append(related)
        return groups

    def eager(self, owners: List[Entity], context: Optional[OrmContext]) -> None:
        groups = self._grouped(owners, context)
        for owner in owners:
            owner.set_relation(self.name, Collection(groups.get(owner.get_raw(self.local_key), [])))


class HasOne(HasMany):
    """Like ``HasMany`` but resolves to the first matching row or None."""

    kind = "has_one"
    many = False

    def resolve(self, instance: Entity) -> Optional[Entity]:
        if instance.get_raw(self.local_key) is None:
            return None
        return self.query_for(instance).first()

    def eager(self, owners: List[Entity], context: Optional[OrmContext]) -> None:
        groups = self._grouped(owners, context)
        for owner in owners:
            matches = groups.get(owner.get_raw(self.local_key))
            owner.set_relation(self.name, matches[0] if matches else None)


class BelongsToMany(Relation):
    """
    Many-to-many through a pivot table.

    Defaults: pivot table = the two lowercase type names sorted and
    joined with "_"; pivot keys = lowercase(type name) + "_id" for each
    side; parent/related keys = the primary keys.
    """

    kind = "belongs_to_many"
    many = True

    def __init__(
        self,
        related,
        pivot_table: Optional[str] = None,
        foreign_pivot_key: Optional[str] = None,
        related_pivot_key: Optional[str] = None,
        parent_key: Optional[str] = None,
        related_key: Optional[str] = None,
    ):
        super().__init__(related)
        self._pivot_table = pivot_table
        self._foreign_pivot_key = foreign_pivot_key
        self._related_pivot_key = related_pivot_key
        self._parent_key = parent_key
        self._related_key = related_key

    @property
    def pivot_table(self) -> str:
        if self._pivot_table:
            return self._pivot_table
        return "_".join(sorted([self.owner.__name__.lower(), self.related_name.lower()]))

    @property
    def foreign_pivot_key(self) -> str:
        return self._foreign_pivot_key or f"{self.owner.__name__.lower()}_id"

    @property
    def related_pivot_key(self) -> str:
        return self._related_pivot_key or f"{self.related_name.lower()}_id"

    @property
    def parent_key(self) -> str:
        return self._parent_key or self.owner._meta.primary_key

    @property
    def related_key(self) -> str:
        return self._related_key or self.related_cls._meta.primary_key

    def _joined(self, context: Optional[OrmContext], *extra_columns: str) -> QueryBuilder:
        related_table = self.related_cls._meta.table
        return (
            self._related_query(context)
            .select(f"{related_table}.*", *extra_columns)
            .join(
                self.pivot_table,
                f"{related_table}.{self.related_key}",
                f"{self.pivot_table}.{self.related_pivot_key}",
            )
        )

    def query_for(self, instance: Entity) -> QueryBuilder:
        return self._joined(instance.context_or_none).where(
            f"{self.pivot_table}.{self.foreign_pivot_key}", instance.get_raw(self.parent_key)
        )

    def resolve(self, instance: Entity) -> Any:
        if instance.get_raw(self.parent_key) is None:
            return Collection()
        return self.query_for(instance).get()

    def eager(self, owners: List[Entity], context: Optional[OrmContext]) -> None:
        keys = _unique([owner.get_raw(self.parent_key) for owner in owners])
        groups: Dict[Any, List[Entity]] = {}
        if keys:
            owner_column = f'"{self.pivot_table}"."{self.foreign_pivot_key}" AS "{PIVOT_OWNER_ALIAS}"'
            query = self._joined(context, owner_column).where_in(
                f"{self.pivot_table}.{self.foreign_pivot_key}", keys
            )
            for related in query.get():
                owner_key = related.discard_attribute(PIVOT_OWNER_ALIAS)
                groups.setdefault(owner_key, []).append(related)
        for owner in owners:
            owner.set_relation(self.name, Collection(groups.get(owner.get_raw(self.parent_key), [])))


def eager_load(
    entity_cls: Type[Entity],
    entities: List[Entity],
    names: Sequence[str],
    context: Optional[OrmContext] = None,
) -> None:
    """
    Load ``names`` onto every entity in ``entities``.

    Dotted names (``"comments.user"``) load the head relation first and
    then the rest on the combined set of related entities.
    """
    tree: Dict[str, List[str]] = {}
    for name in names:
        head, _, rest = name.partition(".")
        nested = tree.setdefault(head, [])
        if rest:
            nested.append(rest)

    for head, nested in tree.items():
        relation = entity_cls._relation_fields.get(head)
        if relation is None:
            raise UsageFault("with_", f"{entity_cls.__name__} has no relation '{head}'")
        relation.eager(entities, context)
        logger.debug(f"Eager-loaded {entity_cls.__name__}.{head} for {len(entities)} owner(s)")

        if not nested:
            continue
        children: List[Entity] = []
        seen = set()
        for entity in entities:
            value = entity.get_relation(head)
            members = list(value) if isinstance(value, Collection) else ([value] if value is not None else [])
            for member in members:
                if id(member) not in seen:
                    seen.add(id(member))
                    children.append(member)
        if children:
            eager_load(relation.related_cls, children, nested, context)
