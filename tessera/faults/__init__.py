"""
Tessera Faults - structured fault objects for the ORM.

Every failure the ORM raises is a ``Fault`` with a stable code, a domain
and metadata, so host applications can decide on presentation.
"""

from .core import Fault, FaultDomain, Severity
from .domains import (
    ConfigFault,
    ConfigInvalidFault,
    ModelFault,
    ModelNotFoundFault,
    QueryFault,
    DatabaseConnectionFault,
    CastFault,
    UsageFault,
)

__all__ = [
    "Fault",
    "FaultDomain",
    "Severity",
    "ConfigFault",
    "ConfigInvalidFault",
    "ModelFault",
    "ModelNotFoundFault",
    "QueryFault",
    "DatabaseConnectionFault",
    "CastFault",
    "UsageFault",
]
