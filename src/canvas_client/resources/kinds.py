"""
Resource kind table.

Each kind says where its items live (URL segment), which response fields
carry its identity, title, HTML body and web URL, how write payloads are
wrapped, and which child collections every item owns. Generic Node and
Collection logic consults this table instead of per-kind subclasses.
"""

from __future__ import annotations
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from ..runtime.errors import UsageError


class ResourceKind(BaseModel):
    """Static description of one resource kind."""
    name: str = Field(description="Kind name, e.g. 'assignment'")
    path: str = Field(description="URL segment of the collection, e.g. 'assignments'")
    id_field: str = Field(default="id", description="Field holding the identifier")
    title_field: Optional[str] = Field(default=None, description="Field holding the display title")
    html_field: Optional[str] = Field(default=None, description="Field holding the HTML body")
    url_field: Optional[str] = Field(default=None, description="Field holding the web URL")
    payload_key: Optional[str] = Field(
        default=None,
        description="Key wrapping create/update bodies; None sends fields flat"
    )
    children: Dict[str, str] = Field(
        default_factory=dict,
        description="Child collection name -> kind name"
    )

    model_config = {"frozen": True}

    @field_validator("path")
    @classmethod
    def _strip_slashes(cls, value: str) -> str:
        value = value.strip("/")
        if not value:
            raise ValueError("path must not be empty")
        return value

    @property
    def has_children(self) -> bool:
        return bool(self.children)

    def wrap(self, fields: Dict) -> Dict:
        """Wrap a field mapping into a request body."""
        if self.payload_key is None:
            return dict(fields)
        return {self.payload_key: dict(fields)}


KINDS: Dict[str, ResourceKind] = {}


def register_kind(kind: ResourceKind) -> ResourceKind:
    """Add (or replace) a kind in the table."""
    KINDS[kind.name] = kind
    return kind


def get_kind(name: str) -> ResourceKind:
    """Look up a kind by name."""
    try:
        return KINDS[name]
    except KeyError:
        raise UsageError(f"Unknown resource kind: {name!r}")


register_kind(ResourceKind(
    name="course",
    path="courses",
    title_field="name",
    html_field="syllabus_body",
    payload_key="course",
    children={
        "assignments": "assignment",
        "assignment_groups": "assignment_group",
        "modules": "module",
        "pages": "page",
        "discussion_topics": "discussion_topic",
        "quizzes": "quiz",
    },
))

register_kind(ResourceKind(
    name="assignment",
    path="assignments",
    title_field="name",
    html_field="description",
    url_field="html_url",
    payload_key="assignment",
    children={"submissions": "submission"},
))

register_kind(ResourceKind(
    name="submission",
    path="submissions",
    id_field="user_id",
    url_field="preview_url",
    payload_key="submission",
))

register_kind(ResourceKind(
    name="assignment_group",
    path="assignment_groups",
    title_field="name",
))

register_kind(ResourceKind(
    name="module",
    path="modules",
    title_field="name",
    payload_key="module",
    children={"items": "module_item"},
))

register_kind(ResourceKind(
    name="module_item",
    path="items",
    title_field="title",
    url_field="html_url",
    payload_key="module_item",
))

register_kind(ResourceKind(
    name="page",
    path="pages",
    id_field="url",
    title_field="title",
    html_field="body",
    url_field="html_url",
    payload_key="wiki_page",
))

register_kind(ResourceKind(
    name="discussion_topic",
    path="discussion_topics",
    title_field="title",
    html_field="message",
    url_field="html_url",
))

register_kind(ResourceKind(
    name="quiz",
    path="quizzes",
    title_field="title",
    html_field="description",
    url_field="html_url",
    payload_key="quiz",
    children={"questions": "quiz_question"},
))

register_kind(ResourceKind(
    name="quiz_question",
    path="questions",
    title_field="question_name",
    html_field="question_text",
    payload_key="question",
))

register_kind(ResourceKind(
    name="user",
    path="users",
    title_field="name",
    payload_key="user",
))
