"""
Tessera Entity — Active Record base class, metaclass and registry.

Usage:
    from tessera.models import Entity, BelongsTo, HasMany

    class User(Entity):
        class Meta:
            table = "users"
            fillable = ["name", "email", "age"]
            hidden = ["password"]
            casts = {"age": "int", "settings": "json"}

        posts = HasMany("Post")

    user = User.create({"name": "Ann", "email": "a@x.com"})
    user.name = "Ann2"
    user.save()                       # UPDATE "users" SET "name" = ?, "updated_at" = ? WHERE "id" = ?

    adults = User.query().where("age", ">=", 18).order_by("name").get()
    found = User.try_find(42)         # Result
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, ClassVar, Dict, List, Optional, Sequence, Tuple, Type

from ..faults.domains import ModelNotFoundFault, UsageFault
from .attributes import AttributeStore, TransformRegistry
from .casts import cast_value, current_timestamp, normalize_cast, prepare_value
from .collection import Collection, json_default, to_plain
from .context import OrmContext, resolve_context
from .guard import MassAssignmentGuard
from .hooks import HookRegistry, LifecycleHook
from .query import QueryBuilder
from .relations import Relation
from .result import Result
from .sql_builder import DeleteBuilder, InsertBuilder, UpdateBuilder, quote_identifier
from .transactions import run_in_transaction
from .validators import run_rules

logger = logging.getLogger("tessera.models")

__all__ = ["Entity", "EntityMeta", "EntityRegistry", "Options", "Column"]

_MISSING = object()


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


class Options:
    """
    Entity options parsed from the inner ``Meta`` class.

    Options not set on a subclass's ``Meta`` are inherited from the
    parent entity, except ``table`` (always derived from the class name
    unless given) and ``abstract``.
    """

    __slots__ = (
        "table",
        "primary_key",
        "columns",
        "timestamps",
        "created_at",
        "updated_at",
        "soft_delete",
        "deleted_at",
        "fillable",
        "guarded",
        "hidden",
        "casts",
        "rules",
        "accessors",
        "mutators",
        "abstract",
    )

    def __init__(self, entity_name: str, meta: Optional[type] = None, parent: Optional[Options] = None):
        def option(key: str, default: Any) -> Any:
            if meta is not None and hasattr(meta, key):
                return getattr(meta, key)
            if parent is not None:
                return getattr(parent, key)
            return default

        self.abstract: bool = bool(getattr(meta, "abstract", False)) if meta else False
        self.table: str = (getattr(meta, "table", None) if meta else None) or f"{_snake_case(entity_name)}s"
        self.primary_key: str = option("primary_key", "id")
        self.columns: List[str] = list(option("columns", []))
        self.timestamps: bool = bool(option("timestamps", True))
        self.created_at: str = option("created_at", "created_at")
        self.updated_at: str = option("updated_at", "updated_at")
        self.soft_delete: bool = bool(option("soft_delete", False))
        self.deleted_at: str = option("deleted_at", "deleted_at")
        self.fillable: List[str] = list(option("fillable", []))
        self.guarded: List[str] = list(option("guarded", [self.primary_key]))
        self.hidden: List[str] = list(option("hidden", []))
        self.casts: Dict[str, str] = {
            column: normalize_cast(column, cast) for column, cast in dict(option("casts", {})).items()
        }
        self.rules: Dict[str, list] = dict(option("rules", {}))
        self.accessors: Dict[str, Callable] = dict(option("accessors", {}))
        self.mutators: Dict[str, Callable] = dict(option("mutators", {}))

    def known_columns(self) -> List[str]:
        """Every column named anywhere in the configuration, in first-seen order."""
        names: List[str] = [self.primary_key]
        names.extend(self.columns)
        names.extend(self.fillable)
        names.extend(self.casts)
        names.extend(self.hidden)
        names.extend(self.rules)
        names.extend(self.accessors)
        names.extend(self.mutators)
        if self.timestamps:
            names.extend([self.created_at, self.updated_at])
        if self.soft_delete:
            names.append(self.deleted_at)
        seen: List[str] = []
        for name in names:
            if name not in seen:
                seen.append(name)
        return seen

    def __repr__(self) -> str:
        return f"<Options: {self.table}>"


class EntityRegistry:
    """Registry of concrete entity types by class name."""

    _entities: Dict[str, Type[Entity]] = {}

    @classmethod
    def register(cls, entity_cls: Type[Entity]) -> None:
        name = entity_cls.__name__
        if name in cls._entities and cls._entities[name] is not entity_cls:
            logger.debug(f"Entity '{name}' re-registered by {entity_cls.__module__}")
        cls._entities[name] = entity_cls

    @classmethod
    def get(cls, name: str) -> Optional[Type[Entity]]:
        return cls._entities.get(name)

    @classmethod
    def resolve(cls, name: str) -> Type[Entity]:
        entity_cls = cls._entities.get(name)
        if entity_cls is None:
            raise UsageFault("relation", f"unknown entity type '{name}'")
        return entity_cls

    @classmethod
    def all_entities(cls) -> Dict[str, Type[Entity]]:
        return dict(cls._entities)

    @classmethod
    def reset(cls) -> None:
        cls._entities.clear()


class Column:
    """Data descriptor mapping ``entity.<name>`` onto get/set_attribute."""

    __slots__ = ("name",)

    def __init__(self, name: str):
        self.name = name

    def __get__(self, instance: Optional[Entity], owner: type) -> Any:
        if instance is None:
            return self
        return instance.get_attribute(self.name)

    def __set__(self, instance: Entity, value: Any) -> None:
        instance.set_attribute(self.name, value)

    def __repr__(self) -> str:
        return f"Column({self.name!r})"


class EntityMeta(type):
    """
    Metaclass for entities.

    Handles:
    - Meta class parsing -> Options (casts validated here)
    - Relation descriptor collection
    - Accessor / mutator registry
    - Hook registry (methods named after LifecycleHook values)
    - Column descriptors for every configured column
    - Registration in EntityRegistry
    """

    def __new__(mcs, name: str, bases: Tuple[type, ...], namespace: Dict[str, Any], **kwargs) -> EntityMeta:
        meta_class = namespace.pop("Meta", None)
        cls = super().__new__(mcs, name, bases, namespace)

        parent = next((b for b in bases if isinstance(b, EntityMeta)), None)
        # Options are inherited from concrete/abstract entities, never from Entity itself.
        parent_opts = None
        if parent is not None and any(isinstance(b, EntityMeta) for b in parent.__bases__):
            parent_opts = parent._meta
        if parent is None:
            opts = Options(name, meta_class)
            opts.abstract = True
        else:
            opts = Options(name, meta_class, parent_opts)
        cls._meta = opts

        relations: Dict[str, Relation] = dict(getattr(parent, "_relation_fields", {}))
        for key, value in namespace.items():
            if isinstance(value, Relation):
                relations[key] = value
        cls._relation_fields = relations

        cls._transforms = TransformRegistry.collect(
            namespace, opts.accessors, opts.mutators, getattr(parent, "_transforms", None)
        )
        cls._guard = MassAssignmentGuard(opts.fillable, opts.guarded)
        cls.hooks = HookRegistry.for_class(cls, getattr(parent, "hooks", None))

        for column in opts.known_columns():
            if not column.isidentifier() or column in relations:
                continue
            existing = getattr(cls, column, None)
            if existing is not None and not isinstance(existing, Column):
                logger.debug(f"{name}: column '{column}' shadowed by a class attribute; use get_attribute()")
                continue
            setattr(cls, column, Column(column))

        if parent is not None and not opts.abstract:
            EntityRegistry.register(cls)
        return cls


class Entity(metaclass=EntityMeta):
    """
    Active Record base class.

    Instance state: raw attributes with their last-persisted snapshot,
    the ``exists`` flag, the relation cache and validation errors.
    """

    _meta: ClassVar[Options]
    _relation_fields: ClassVar[Dict[str, Relation]]
    _transforms: ClassVar[TransformRegistry]
    _guard: ClassVar[MassAssignmentGuard]
    hooks: ClassVar[HookRegistry]

    def __init__(self, attributes: Optional[Dict[str, Any]] = None, *, context: Optional[OrmContext] = None, **kwargs: Any):
        self._init_state(context)
        data = dict(attributes or {}, **kwargs)
        if data:
            self.fill(data)

    def _init_state(self, context: Optional[OrmContext]) -> None:
        self._store = AttributeStore()
        self._exists = False
        self._loaded_relations: Dict[str, Any] = {}
        self._context = context
        self._errors: Dict[str, List[str]] = {}
        self._force_deleting = False

    @classmethod
    def hydrate(cls, row: Dict[str, Any], *, context: Optional[OrmContext] = None) -> Entity:
        """Build a persisted instance from a storage row (no guard, no mutators)."""
        instance = cls.__new__(cls)
        instance._init_state(context)
        instance._store.load(row)
        instance._exists = True
        return instance

    # ── State ────────────────────────────────────────────────────────

    @property
    def exists(self) -> bool:
        return self._exists

    @property
    def pk(self) -> Any:
        return self._store.raw(self._meta.primary_key)

    @property
    def context(self) -> OrmContext:
        return resolve_context(self._context)

    @property
    def context_or_none(self) -> Optional[OrmContext]:
        return self._context

    @property
    def errors(self) -> Dict[str, List[str]]:
        return {column: list(messages) for column, messages in self._errors.items()}

    def first_error(self) -> Optional[str]:
        for messages in self._errors.values():
            if messages:
                return messages[0]
        return None

    # ── Attributes ───────────────────────────────────────────────────

    def get_attribute(self, column: str) -> Any:
        """Accessor override if registered, else the raw value through its cast."""
        raw = self._store.raw(column)
        accessor = self._transforms.accessor_for(column)
        if accessor is not None:
            return accessor(self, raw)
        kind = self._meta.casts.get(column)
        if kind is None:
            return raw
        return cast_value(column, kind, raw)

    def set_attribute(self, column: str, value: Any) -> Entity:
        """Mutator override if registered, else store the value (encoded for json/date casts)."""
        mutator = self._transforms.mutator_for(column)
        if mutator is not None:
            value = mutator(self, value)
        kind = self._meta.casts.get(column)
        if kind is not None:
            value = prepare_value(kind, value)
        self._store.set_raw(column, value)
        return self

    def get_raw(self, column: str) -> Any:
        return self._store.raw(column)

    def get_raw_attributes(self) -> Dict[str, Any]:
        return self._store.all()

    def discard_attribute(self, column: str) -> Any:
        """Drop ``column`` from the attributes and the snapshot; returns its raw value."""
        return self._store.pop(column)

    def fill(self, attributes: Dict[str, Any]) -> Entity:
        """Mass-assign ``attributes``; keys the guard rejects are dropped."""
        for column, value in self._guard.filter(attributes, type(self).__name__).items():
            self.set_attribute(column, value)
        return self

    def is_fillable(self, column: str) -> bool:
        return self._guard.is_fillable(column)

    def is_dirty(self, column: Optional[str] = None) -> bool:
        return self._store.is_dirty(column)

    def get_dirty(self) -> Dict[str, Any]:
        return self._store.dirty()

    def get_original(self, column: Optional[str] = None, default: Any = None) -> Any:
        return self._store.original(column, default)

    def __getitem__(self, column: str) -> Any:
        return self.get_attribute(column)

    def __setitem__(self, column: str, value: Any) -> None:
        self.set_attribute(column, value)

    def __contains__(self, column: str) -> bool:
        return self._store.has(column)

    # ── Relations ────────────────────────────────────────────────────

    def relation_loaded(self, name: str) -> bool:
        return name in self._loaded_relations

    def get_relation(self, name: str, default: Any = None) -> Any:
        return self._loaded_relations.get(name, default)

    def set_relation(self, name: str, value: Any) -> Entity:
        self._loaded_relations[name] = value
        return self

    def unset_relation(self, name: str) -> Entity:
        self._loaded_relations.pop(name, None)
        return self

    @property
    def relations(self) -> Dict[str, Any]:
        return dict(self._loaded_relations)

    @classmethod
    def _relation(cls, name: str) -> Relation:
        relation = cls._relation_fields.get(name)
        if relation is None:
            raise UsageFault("relation", f"{cls.__name__} has no relation '{name}'")
        return relation

    def relation_query(self, name: str) -> QueryBuilder:
        """Pre-filtered builder for relation ``name``."""
        return self._relation(name).query_for(self)

    def load(self, *names: str) -> Entity:
        """Eager-load relations onto this already-fetched instance."""
        from .relations import eager_load
        eager_load(type(self), [self], names, self._context)
        return self

    # ── Validation ───────────────────────────────────────────────────

    def validate(self) -> bool:
        """Run ``Meta.rules``; messages land in ``errors``."""
        self._errors = run_rules(self._meta.rules, self.get_attribute)
        return not self._errors

    # ── Persistence ──────────────────────────────────────────────────

    def _run_hook(self, hook: LifecycleHook, **payload: Any) -> bool:
        return self.hooks.run(hook, self, **payload)

    def save(self, validate: bool = True) -> bool:
        """
        Insert or update this entity.

        Returns False when validation fails or a ``before_*`` hook
        aborts; storage failures raise.
        """
        if validate and self._meta.rules and not self.validate():
            logger.debug(f"{type(self).__name__}: save() rejected by validation: {self._errors}")
            return False
        if self._exists:
            return self._perform_update()
        return self._perform_insert()

    def _perform_insert(self) -> bool:
        if not (self._run_hook(LifecycleHook.BEFORE_SAVE) and self._run_hook(LifecycleHook.BEFORE_INSERT)):
            return False

        meta = self._meta
        if meta.timestamps:
            now = current_timestamp()
            for column in (meta.created_at, meta.updated_at):
                if self._store.raw(column) is None:
                    self._store.set_raw(column, now)

        sql, params = InsertBuilder(meta.table).from_dict(self._store.all()).build()
        result = self.context.query(sql, params)
        if self._store.raw(meta.primary_key) is None and result.last_insert_id is not None:
            self._store.set_raw(meta.primary_key, result.last_insert_id)

        self._exists = True
        self._store.sync_original()
        self._run_hook(LifecycleHook.AFTER_INSERT)
        self._run_hook(LifecycleHook.AFTER_SAVE)
        return True

    def _perform_update(self) -> bool:
        if not self._store.is_dirty():
            return True
        if not (self._run_hook(LifecycleHook.BEFORE_SAVE) and self._run_hook(LifecycleHook.BEFORE_UPDATE)):
            return False

        dirty = self._store.dirty()
        if not dirty:
            return True

        meta = self._meta
        changes = dict(dirty)
        if meta.timestamps:
            now = current_timestamp()
            changes[meta.updated_at] = now
            self._store.set_raw(meta.updated_at, now)

        key = self._store.original(meta.primary_key, self.pk)
        sql, params = (
            UpdateBuilder(meta.table)
            .set_dict(changes)
            .where(f"{quote_identifier(meta.primary_key)} = ?", key)
            .build()
        )
        self.context.query(sql, params)
        self._store.merge_original(changes)

        self._run_hook(LifecycleHook.AFTER_UPDATE, dirty=dirty)
        self._run_hook(LifecycleHook.AFTER_SAVE)
        return True

    def _require_persisted(self, operation: str) -> None:
        if not self._exists:
            raise UsageFault(operation, f"{type(self).__name__} instance is not persisted")

    def delete(self) -> bool:
        """
        Soft-delete (when enabled) or physically delete this row.

        Returns False if a hook aborted.
        """
        self._require_persisted("delete")
        if not self._run_hook(LifecycleHook.BEFORE_DELETE):
            return False

        meta = self._meta
        if meta.soft_delete and not self._force_deleting:
            previous = self._store.raw(meta.deleted_at, _MISSING)
            self._store.set_raw(meta.deleted_at, current_timestamp())
            if not self.save(validate=False):
                if previous is _MISSING:
                    self._store.pop(meta.deleted_at)
                else:
                    self._store.set_raw(meta.deleted_at, previous)
                return False
        else:
            sql, params = (
                DeleteBuilder(meta.table)
                .where(f"{quote_identifier(meta.primary_key)} = ?", self.pk)
                .build()
            )
            self.context.query(sql, params)
            self._exists = False
            self._store.clear()
            self._loaded_relations.clear()

        self._run_hook(LifecycleHook.AFTER_DELETE)
        return True

    def force_delete(self) -> bool:
        """Physically delete this row even when soft deletes are enabled."""
        self._force_deleting = True
        try:
            return self.delete()
        finally:
            self._force_deleting = False

    def restore(self) -> bool:
        """Clear the soft-delete marker and save."""
        meta = self._meta
        if not meta.soft_delete:
            raise UsageFault("restore", f"{type(self).__name__} does not use soft deletes")
        self._require_persisted("restore")
        if not self._run_hook(LifecycleHook.BEFORE_RESTORE):
            return False

        previous = self._store.raw(meta.deleted_at)
        self._store.set_raw(meta.deleted_at, None)
        if not self.save(validate=False):
            self._store.set_raw(meta.deleted_at, previous)
            return False
        self._run_hook(LifecycleHook.AFTER_RESTORE)
        return True

    @property
    def trashed(self) -> bool:
        return self._meta.soft_delete and self._store.raw(self._meta.deleted_at) is not None

    def refresh(self) -> Entity:
        """Reload attributes from storage and drop cached relations."""
        self._require_persisted("refresh")
        row = (
            type(self).query(context=self._context)
            .with_trashed()
            .where(self._meta.primary_key, self.pk)
            .as_array()
            .first()
        )
        if row is None:
            raise ModelNotFoundFault(type(self).__name__, self.pk)
        self._store.load(row)
        self._loaded_relations.clear()
        return self

    # ── Serialization ────────────────────────────────────────────────

    def to_array(self) -> Dict[str, Any]:
        """Visible attributes (casts and accessors applied) plus loaded relations."""
        hidden = self._meta.hidden
        data: Dict[str, Any] = {}
        for column in self._store:
            if column not in hidden:
                data[column] = self.get_attribute(column)
        for name, value in self._loaded_relations.items():
            if name not in hidden:
                data[name] = to_plain(value)
        return data

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_array(), default=json_default, **kwargs)

    # ── Static API ───────────────────────────────────────────────────

    @classmethod
    def query(cls, context: Optional[OrmContext] = None) -> QueryBuilder:
        """A fresh builder for this entity type."""
        return QueryBuilder(cls, context)

    @classmethod
    def all(cls, *, context: Optional[OrmContext] = None) -> Collection:
        return cls.query(context).get()

    @classmethod
    def first_record(cls, *, context: Optional[OrmContext] = None) -> Optional[Entity]:
        return cls.query(context).first()

    @classmethod
    def find(cls, pk: Any, *, context: Optional[OrmContext] = None) -> Optional[Entity]:
        """The entity with primary key ``pk``, or None."""
        if pk is None:
            return None
        return cls.query(context).where(cls._meta.primary_key, pk).first()

    @classmethod
    def try_find(cls, pk: Any, *, context: Optional[OrmContext] = None) -> Result:
        """Like find(), but returns a Result holding the entity or a ModelNotFoundFault."""
        found = cls.find(pk, context=context)
        if found is None:
            return Result.err(ModelNotFoundFault(cls.__name__, pk))
        return Result.ok(found)

    @classmethod
    def find_or_fail(cls, pk: Any, *, context: Optional[OrmContext] = None) -> Entity:
        """
        Raises:
            ModelNotFoundFault: When no row has primary key ``pk``.
        """
        return cls.try_find(pk, context=context).unwrap()

    @classmethod
    def find_or_new(cls, pk: Any, *, context: Optional[OrmContext] = None) -> Entity:
        found = cls.find(pk, context=context)
        return found if found is not None else cls(context=context)

    @classmethod
    def create(cls, attributes: Optional[Dict[str, Any]] = None, *, context: Optional[OrmContext] = None, **kwargs: Any) -> Entity:
        """Fill and save a new entity. ``exists`` stays False if a hook aborted."""
        instance = cls(attributes, context=context, **kwargs)
        instance.save()
        return instance

    @classmethod
    def _match_query(cls, match: Dict[str, Any], context: Optional[OrmContext]) -> QueryBuilder:
        query = cls.query(context)
        for column, value in match.items():
            query = query.where(column, value)
        return query

    @classmethod
    def first_or_create(cls, match: Dict[str, Any], extra: Optional[Dict[str, Any]] = None, *, context: Optional[OrmContext] = None) -> Entity:
        found = cls._match_query(match, context).first()
        if found is not None:
            return found
        return cls.create({**match, **(extra or {})}, context=context)

    @classmethod
    def update_or_create(cls, match: Dict[str, Any], extra: Optional[Dict[str, Any]] = None, *, context: Optional[OrmContext] = None) -> Entity:
        found = cls._match_query(match, context).first()
        if found is None:
            return cls.create({**match, **(extra or {})}, context=context)
        found.fill(extra or {})
        found.save()
        return found

    @classmethod
    def insert(cls, rows: Sequence[Dict[str, Any]], *, context: Optional[OrmContext] = None) -> int:
        """
        Bulk insert in one statement; bypasses hooks, casts, guards and timestamps.

        Returns the affected row count.
        """
        rows = [dict(row) for row in rows]
        if not rows:
            return 0
        sql, params = InsertBuilder(cls._meta.table).build_many(rows)
        return resolve_context(context).query(sql, params).affected_row_count

    @classmethod
    def find_by_sql(
        cls,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        as_array: bool = False,
        *,
        context: Optional[OrmContext] = None,
    ) -> Collection:
        """Run raw SQL and hydrate the rows (or return them as dicts)."""
        rows = resolve_context(context).query(sql, params).rows
        if as_array:
            return Collection([dict(row) for row in rows])
        return Collection([cls.hydrate(row, context=context) for row in rows])

    @classmethod
    def transaction(cls, callback: Callable[[], Any], *, context: Optional[OrmContext] = None) -> Any:
        """begin, ``callback()``, commit; rolls back and re-raises on error."""
        return run_in_transaction(callback, context)

    @classmethod
    def begin_transaction(cls, *, context: Optional[OrmContext] = None) -> None:
        resolve_context(context).db.begin()

    @classmethod
    def commit(cls, *, context: Optional[OrmContext] = None) -> None:
        resolve_context(context).db.commit()

    @classmethod
    def rollback(cls, *, context: Optional[OrmContext] = None) -> None:
        resolve_context(context).db.rollback()

    # ── Dunder ───────────────────────────────────────────────────────

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Entity) or type(self) is not type(other):
            return NotImplemented
        if self._exists and other._exists and self.pk is not None:
            return self.pk == other.pk
        return self is other

    def __hash__(self) -> int:
        # Keys are assigned on insert, so unsaved entities have no stable hash.
        if self.pk is None:
            raise TypeError(f"{type(self).__name__} instances without a primary key value are unhashable")
        return hash((type(self).__name__, self.pk))

    def __repr__(self) -> str:
        state = f"pk={self.pk!r}" if self._exists else "new"
        return f"<{type(self).__name__} {state}>"
