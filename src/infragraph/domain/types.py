"""Node, edge, and traversal enums.

Both type enumerations are closed: the type index keeps one bucket per
``NodeType`` member for the lifetime of a store.
"""

from __future__ import annotations

from enum import StrEnum


class NodeType(StrEnum):
    """Infrastructure entity kinds."""

    SERVICE = "Service"
    ENVIRONMENT = "Environment"
    DEPLOYMENT = "Deployment"
    CONFIGURATION = "Configuration"
    USER = "User"
    TEAM = "Team"
    PROJECT = "Project"
    REPOSITORY = "Repository"
    TASK = "Task"
    ISSUE = "Issue"
    INCIDENT = "Incident"
    ERROR = "Error"
    CUSTOMER = "Customer"
    FEATURE = "Feature"
    PERMISSION = "Permission"
    DOCUMENT = "Document"
    API = "API"
    DATABASE = "Database"
    SECRET = "Secret"


class EdgeType(StrEnum):
    """Typed relationships between entities."""

    OWNS = "OWNS"
    MANAGES = "MANAGES"
    DEPENDS_ON = "DEPENDS_ON"
    BLOCKS = "BLOCKS"
    REQUIRES = "REQUIRES"
    PROVIDES = "PROVIDES"
    CONNECTS_TO = "CONNECTS_TO"
    DEPLOYED_TO = "DEPLOYED_TO"
    PART_OF = "PART_OF"
    AFFECTS = "AFFECTS"
    CAUSED_BY = "CAUSED_BY"
    RESOLVED_BY = "RESOLVED_BY"
    MENTIONS = "MENTIONS"
    DUPLICATES = "DUPLICATES"
    RELATES_TO = "RELATES_TO"
    NOTIFIES = "NOTIFIES"


class Direction(StrEnum):
    """Which adjacency index a neighbor lookup reads."""

    IN = "in"
    OUT = "out"
    BOTH = "both"


class PropertyKind(StrEnum):
    """Tag for a validated property value."""

    SCALAR = "scalar"
    ARRAY = "array"
    MAP = "map"
