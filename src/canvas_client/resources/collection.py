"""
Resource Collection: an ordered, identity-unique group of nodes of one kind.
"""

from __future__ import annotations
import asyncio
import logging
import weakref
from typing import Any, Dict, Iterator, List, Optional
from urllib.parse import quote

from ..runtime.errors import UpdateError, UsageError
from ..scheduling.call import PendingCall
from ..scheduling.pagination import PageOptions
from ..utils.callbacks import with_callback
from .kinds import ResourceKind
from .node import ResourceNode, collect_errors


logger = logging.getLogger(__name__)


def _same_id(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return False
    return left == right or str(left) == str(right)


class ResourceCollection:
    """
    Ordered group of nodes owned by a parent node (or the client root).

    Order follows the server's return order unless the caller reorders it.
    A fresh ``get`` replaces the contents outright; it does not merge.
    """

    def __init__(self, kind: ResourceKind, owner, name: Optional[str] = None):
        """
        Initialize collection.

        Args:
            kind: Kind of every node in the collection
            owner: Parent node or client, held weakly
            name: Attribute name on the owner
        """
        self.kind = kind
        self.name = name or kind.path
        self._owner = weakref.ref(owner)
        self._nodes: List[ResourceNode] = []

    def __repr__(self) -> str:
        return f"<ResourceCollection {self.name} ({len(self._nodes)} {self.kind.name})>"

    def __iter__(self) -> Iterator[ResourceNode]:
        return iter(list(self._nodes))

    def __len__(self) -> int:
        return len(self._nodes)

    def __getitem__(self, index: int) -> ResourceNode:
        return self._nodes[index]

    @property
    def nodes(self) -> List[ResourceNode]:
        return list(self._nodes)

    def ids(self) -> List[Any]:
        return [node.id for node in self._nodes]

    def find(self, id: Any) -> Optional[ResourceNode]:
        """Node with the given identifier, if present."""
        for node in self._nodes:
            if _same_id(node.id, id):
                return node
        return None

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    @property
    def owner(self):
        return self._owner()

    def _require_owner(self):
        owner = self.owner
        if owner is None:
            raise UsageError(f"{self.name} collection is not attached to a parent")
        return owner

    @property
    def client(self):
        return self._require_owner().client

    @property
    def url(self) -> str:
        return f"{self._require_owner().url}/{self.kind.path}"

    def _item_url(self, id: Any) -> str:
        return f"{self.url}/{quote(str(id), safe='')}"

    # ------------------------------------------------------------------
    # Local membership
    # ------------------------------------------------------------------

    def _adopt(self, data: Any) -> ResourceNode:
        node = ResourceNode(self.kind, parent=self)
        node._load(data)
        return node

    def _insert(self, node: ResourceNode) -> ResourceNode:
        """Append, or replace the node holding the same identifier."""
        if node.id is not None:
            existing = next(
                (n for n in self._nodes if n is not node and _same_id(n.id, node.id)), None
            )
            if existing is not None:
                # A built node created in place may already hold a slot.
                if node in self._nodes:
                    self._nodes.remove(node)
                self._nodes[self._nodes.index(existing)] = node
                return node
        if node not in self._nodes:
            self._nodes.append(node)
        return node

    def build(self, **fields) -> ResourceNode:
        """Add a local, not yet created node; its first ``update()`` creates it."""
        node = ResourceNode(self.kind, fields, parent=self)
        self._nodes.append(node)
        return node

    def node(self, id: Any) -> ResourceNode:
        """Node for ``id``, adding an unfetched shell if none is held yet."""
        existing = self.find(id)
        if existing is not None:
            return existing
        return self._insert(ResourceNode(self.kind, parent=self, id=id))

    # ------------------------------------------------------------------
    # Remote operations
    # ------------------------------------------------------------------

    @with_callback
    async def create(self, data: Dict[str, Any]) -> ResourceNode:
        """
        Create an entity from ``data`` and append it.

        Returns:
            The new node, clean
        """
        response = await self.client.scheduler.submit(
            PendingCall("POST", self.url, body=self.kind.wrap(data))
        )
        node = self._insert(self._adopt(response.data))
        logger.debug(f"Created {self.kind.name} {node.id}")
        return node

    async def _create_remote(self, node: ResourceNode) -> None:
        """Create a locally built node in place."""
        response = await self.client.scheduler.submit(
            PendingCall("POST", self.url, body=self.kind.wrap(node.fields))
        )
        node._load(response.data)
        self._insert(node)
        logger.debug(f"Created {self.kind.name} {node.id}")

    @with_callback
    async def get(self, options: Optional[PageOptions] = None) -> "ResourceCollection":
        """Fetch every page of the list, replacing the current contents."""
        options = options or PageOptions(per_page=self.client.config.per_page)
        items = await self.client.paginator.fetch_all(
            PendingCall("GET", self.url, query=options.to_dict())
        )
        self._nodes = [self._adopt(item) for item in items]
        return self

    @with_callback
    async def get_complete(self, options: Optional[PageOptions] = None) -> "ResourceCollection":
        """Fetch the list, then every nested collection of every node."""
        await self.get(options)
        if self.kind.has_children:
            results = await asyncio.gather(
                *(node._populate_children() for node in self._nodes),
                return_exceptions=True
            )
            errors = collect_errors(results)
            if errors:
                raise errors[0]
        return self

    @with_callback
    async def get_one(self, id: Any) -> ResourceNode:
        """Fetch one entity by identifier and insert (or replace) it."""
        response = await self.client.scheduler.submit(PendingCall("GET", self._item_url(id)))
        return self._insert(self._adopt(response.data))

    @with_callback
    async def get_one_complete(self, id: Any) -> ResourceNode:
        """Fetch one entity and its whole subtree."""
        node = await self.get_one(id)
        await node._populate_children()
        return node

    def delete(self, id: Any, body: Optional[Dict[str, Any]] = None, callback=None):
        """
        Delete the entity with ``id`` and drop it from the collection.

        Local state is only touched after the server confirms.

        Raises:
            UsageError: Immediately, if ``id`` is None
        """
        if id is None:
            raise UsageError(f"Cannot delete a {self.kind.name} without an identifier")
        return self._delete(id, body, callback=callback)

    @with_callback
    async def _delete(self, id: Any, body: Optional[Dict[str, Any]]) -> Optional[ResourceNode]:
        await self.client.scheduler.submit(PendingCall("DELETE", self._item_url(id), body=body))
        node = self.find(id)
        if node is not None:
            self._nodes.remove(node)
        logger.debug(f"Deleted {self.kind.name} {id}")
        return node

    @with_callback
    async def update(self) -> "ResourceCollection":
        """Update every node (and its subtree) concurrently."""
        results = await asyncio.gather(
            *(node.update() for node in list(self._nodes)),
            return_exceptions=True
        )
        errors = collect_errors(results)
        if errors:
            raise UpdateError(errors)
        return self
