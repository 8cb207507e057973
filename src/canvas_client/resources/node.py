"""
Resource Node: one remote entity with dirty tracking.

A node keeps the fields the caller sees and edits (``fields``) and the
snapshot taken at the last successful get/create/update
(``original_fields``). The difference between the two decides whether
``update()`` has anything to send.
"""

from __future__ import annotations
import asyncio
import copy
import logging
import weakref
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

from ..runtime.errors import UpdateError, UsageError
from ..scheduling.call import PendingCall
from ..utils.callbacks import with_callback
from .kinds import ResourceKind, get_kind


logger = logging.getLogger(__name__)


def collect_errors(results: List[Any]) -> List[Exception]:
    """Pull exceptions out of gather() results, flattening nested UpdateErrors."""
    errors: List[Exception] = []
    for result in results:
        if isinstance(result, UpdateError):
            errors.extend(result.errors)
        elif isinstance(result, Exception):
            errors.append(result)
        elif isinstance(result, BaseException):
            raise result
    return errors


class ResourceNode:
    """
    A single remote entity in the resource tree.

    Lifecycle: unfetched -> (get) -> clean -> (field edit) -> dirty ->
    (update) -> clean. A node without a snapshot is dirty once it holds any
    field; if it also has no identifier, its first ``update()`` creates it.

    The parent collection is held weakly; the tree is owned top-down.
    """

    def __init__(
        self,
        kind: Union[ResourceKind, str],
        fields: Optional[Dict[str, Any]] = None,
        parent=None,
        id: Any = None
    ):
        """
        Initialize node.

        Args:
            kind: Resource kind (or its name)
            fields: Initial, unsaved field values
            parent: Owning ResourceCollection
            id: Server-assigned identifier, if already known
        """
        from .collection import ResourceCollection

        self.kind = get_kind(kind) if isinstance(kind, str) else kind
        self.fields: Dict[str, Any] = dict(fields or {})
        self.original_fields: Optional[Dict[str, Any]] = None
        self._id = id
        self._parent = weakref.ref(parent) if parent is not None else None
        self.children: Dict[str, ResourceCollection] = {
            name: ResourceCollection(get_kind(kind_name), self, name)
            for name, kind_name in self.kind.children.items()
        }

    def __getattr__(self, name: str):
        children = self.__dict__.get("children")
        if children is not None and name in children:
            return children[name]
        raise AttributeError(f"{type(self).__name__!s} has no attribute {name!r}")

    def __repr__(self) -> str:
        state = "dirty" if self.is_dirty else ("clean" if self.is_fetched else "unfetched")
        return f"<ResourceNode {self.kind.name} id={self.id!r} {state}>"

    # ------------------------------------------------------------------
    # Field access
    # ------------------------------------------------------------------

    def __getitem__(self, name: str) -> Any:
        return self.fields[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.fields[name] = value

    def get_field(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    def _mapped(self, field_name: Optional[str]) -> Any:
        if field_name is None:
            return None
        return self.fields.get(field_name)

    def _set_mapped(self, field_name: Optional[str], role: str, value: Any) -> None:
        if field_name is None:
            raise UsageError(f"Resource kind {self.kind.name!r} has no {role} field")
        self.fields[field_name] = value

    @property
    def id(self) -> Any:
        return self.fields.get(self.kind.id_field, self._id)

    @property
    def title(self) -> Any:
        return self._mapped(self.kind.title_field)

    @title.setter
    def title(self, value: Any) -> None:
        self._set_mapped(self.kind.title_field, "title", value)

    @property
    def html(self) -> Any:
        return self._mapped(self.kind.html_field)

    @html.setter
    def html(self, value: Any) -> None:
        self._set_mapped(self.kind.html_field, "html", value)

    @property
    def html_url(self) -> Any:
        return self._mapped(self.kind.url_field)

    # ------------------------------------------------------------------
    # Dirty tracking
    # ------------------------------------------------------------------

    @property
    def is_fetched(self) -> bool:
        return self.original_fields is not None

    def dirty_fields(self) -> List[str]:
        """Names of fields that differ from the last synchronized snapshot."""
        if self.original_fields is None:
            return list(self.fields)
        missing = object()
        return [
            name for name, value in self.fields.items()
            if self.original_fields.get(name, missing) != value
        ]

    @property
    def is_dirty(self) -> bool:
        # Never created: the first update must create it, even with no fields.
        if self.original_fields is None and self.id is None:
            return True
        return bool(self.dirty_fields())

    def _load(self, data: Any) -> None:
        """Replace fields and snapshot with a server representation."""
        if not isinstance(data, dict):
            data = {}
        self.fields = dict(data)
        self.original_fields = copy.deepcopy(data)
        if self.kind.id_field in data:
            self._id = data[self.kind.id_field]

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    @property
    def parent(self):
        """Owning collection, or None once it is gone."""
        return self._parent() if self._parent is not None else None

    def _require_parent(self):
        parent = self.parent
        if parent is None:
            raise UsageError(f"{self.kind.name} node is not attached to a collection")
        return parent

    @property
    def client(self):
        return self._require_parent().client

    @property
    def url(self) -> str:
        if self.id is None:
            raise UsageError(f"{self.kind.name} node has no identifier yet")
        return f"{self._require_parent().url}/{quote(str(self.id), safe='')}"

    # ------------------------------------------------------------------
    # Remote operations
    # ------------------------------------------------------------------

    @with_callback
    async def get(self) -> "ResourceNode":
        """
        Fetch this entity, replacing fields and snapshot.

        Pending local edits are discarded (and logged).
        """
        url = self.url
        pending = self.dirty_fields()
        response = await self.client.scheduler.submit(PendingCall("GET", url))
        if pending:
            logger.warning(f"Discarding local edits to {pending} of {self.kind.name} {self.id}")
        self._load(response.data)
        return self

    @with_callback
    async def get_complete(self) -> "ResourceNode":
        """Fetch this entity and every nested child collection."""
        await self.get()
        await self._populate_children()
        return self

    async def _populate_children(self) -> None:
        if not self.children:
            return
        results = await asyncio.gather(
            *(collection.get_complete() for collection in self.children.values()),
            return_exceptions=True
        )
        errors = collect_errors(results)
        if errors:
            raise errors[0]

    async def _save(self) -> bool:
        """Push this node's own fields if dirty; True when a call was made."""
        if not self.is_dirty:
            return False

        if self.id is None and self.original_fields is None:
            await self._require_parent()._create_remote(self)
            return True

        body = self.kind.wrap(self.fields)
        await self.client.scheduler.submit(PendingCall("PUT", self.url, body=body))
        self.original_fields = copy.deepcopy(self.fields)
        logger.debug(f"Updated {self.kind.name} {self.id}")
        return True

    @with_callback
    async def update(self) -> "ResourceNode":
        """
        Save this node if dirty, then cascade into every child collection.

        If this node's own save fails its children are left untouched and
        the error propagates. Child failures are gathered into UpdateError;
        nodes that saved stay clean, so calling again retries the rest.
        """
        await self._save()

        if self.children:
            results = await asyncio.gather(
                *(collection.update() for collection in self.children.values()),
                return_exceptions=True
            )
            errors = collect_errors(results)
            if errors:
                raise UpdateError(errors)
        return self

    def delete(self, body: Optional[Dict[str, Any]] = None, callback=None):
        """
        Delete this entity through its parent collection.

        Raises:
            UsageError: Immediately, if the node has no identifier
        """
        if self.id is None:
            raise UsageError(f"Cannot delete a {self.kind.name} that has no identifier")
        return self._require_parent().delete(self.id, body=body, callback=callback)
