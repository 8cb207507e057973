"""
Resource tree: nodes, collections and the kind table they consult.
"""

from .kinds import ResourceKind, KINDS, get_kind, register_kind
from .node import ResourceNode
from .collection import ResourceCollection

__all__ = [
    "ResourceKind",
    "KINDS",
    "get_kind",
    "register_kind",
    "ResourceNode",
    "ResourceCollection"
]
