"""
Tessera Model System — Active Record entities over a fluent query builder.

Usage:
    from tessera.models import Entity, BelongsTo, HasMany, OrmContext, set_default_context

    class User(Entity):
        class Meta:
            fillable = ["name", "email"]

        posts = HasMany("Post")

    set_default_context(OrmContext.from_url("sqlite:///app.db"))
    user = User.create({"name": "Ann", "email": "a@x.com"})

Public API:
    - Entity, EntityMeta, EntityRegistry, Options, Column
    - QueryBuilder, Collection, Page, Result
    - Relations: BelongsTo, HasOne, HasMany, BelongsToMany
    - Hooks: LifecycleHook, HookRegistry
    - Context: OrmContext, set_default_context, get_default_context
    - Transactions: atomic, Atomic, run_in_transaction
    - Validators: Required, Min/MaxLength, Min/MaxValue, Range, Regex, Email, URL, Choices
"""

from .base import Column, Entity, EntityMeta, EntityRegistry, Options
from .attributes import AttributeStore, accessor, mutator
from .casts import current_timestamp
from .collection import Collection
from .context import OrmContext, get_default_context, set_default_context
from .guard import MassAssignmentGuard
from .hooks import HookRegistry, LifecycleHook
from .pagination import Page
from .query import QueryBuilder, Visibility
from .relations import BelongsTo, BelongsToMany, HasMany, HasOne, Relation, eager_load
from .result import Result
from .transactions import Atomic, atomic, run_in_transaction
from .validators import (
    BaseValidator,
    ChoicesValidator,
    EmailValidator,
    MaxLengthValidator,
    MaxValueValidator,
    MinLengthValidator,
    MinValueValidator,
    RangeValidator,
    RegexValidator,
    Required,
    URLValidator,
    ValidationError,
)

__all__ = [
    "Entity",
    "EntityMeta",
    "EntityRegistry",
    "Options",
    "Column",
    "AttributeStore",
    "accessor",
    "mutator",
    "current_timestamp",
    "Collection",
    "OrmContext",
    "get_default_context",
    "set_default_context",
    "MassAssignmentGuard",
    "HookRegistry",
    "LifecycleHook",
    "Page",
    "QueryBuilder",
    "Visibility",
    "Relation",
    "BelongsTo",
    "BelongsToMany",
    "HasMany",
    "HasOne",
    "eager_load",
    "Result",
    "Atomic",
    "atomic",
    "run_in_transaction",
    "BaseValidator",
    "ValidationError",
    "Required",
    "MinLengthValidator",
    "MaxLengthValidator",
    "MinValueValidator",
    "MaxValueValidator",
    "RangeValidator",
    "RegexValidator",
    "EmailValidator",
    "URLValidator",
    "ChoicesValidator",
]
