"""
Tessera — an Active Record data mapper with an embedded SQL query builder.

Quick start:
    from tessera import Entity, HasMany, OrmContext, set_default_context

    class User(Entity):
        class Meta:
            fillable = ["name", "email"]

    set_default_context(OrmContext.from_url("sqlite:///app.db"))
    User.create({"name": "Ann", "email": "a@x.com"})
"""

__version__ = "0.1.0"

from .config import ConfigLoader, DatabaseConfig
from .db import TesseraDatabase
from .faults import (
    CastFault,
    ConfigInvalidFault,
    DatabaseConnectionFault,
    Fault,
    FaultDomain,
    ModelFault,
    ModelNotFoundFault,
    QueryFault,
    Severity,
    UsageFault,
)
from .models import (
    Atomic,
    BelongsTo,
    BelongsToMany,
    Collection,
    Entity,
    EntityRegistry,
    HasMany,
    HasOne,
    LifecycleHook,
    OrmContext,
    Page,
    QueryBuilder,
    Result,
    accessor,
    atomic,
    get_default_context,
    mutator,
    set_default_context,
)

__all__ = [
    "__version__",
    "ConfigLoader",
    "DatabaseConfig",
    "TesseraDatabase",
    "Fault",
    "FaultDomain",
    "Severity",
    "ModelFault",
    "ModelNotFoundFault",
    "QueryFault",
    "DatabaseConnectionFault",
    "CastFault",
    "UsageFault",
    "ConfigInvalidFault",
    "Entity",
    "EntityRegistry",
    "QueryBuilder",
    "Collection",
    "Page",
    "Result",
    "BelongsTo",
    "BelongsToMany",
    "HasMany",
    "HasOne",
    "LifecycleHook",
    "OrmContext",
    "get_default_context",
    "set_default_context",
    "Atomic",
    "atomic",
    "accessor",
    "mutator",
]
