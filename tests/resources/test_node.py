"""
Tests for ResourceNode: dirty tracking, fetching, cascading update and delete.
"""

import gc
import logging
import pytest

from canvas_client.resources import ResourceNode
from canvas_client.runtime.errors import CanvasHTTPError, UpdateError, UsageError
from helpers import BASE_URL, ok, error


COURSE = f"{BASE_URL}/courses/1"
ASSIGNMENTS = f"{COURSE}/assignments"


def assignment_list():
    return ok([
        {"id": 1, "name": "Lab 1", "description": "<p>one</p>"},
        {"id": 2, "name": "Lab 2", "description": "<p>two</p>"},
        {"id": 3, "name": "Lab 3", "description": "<p>three</p>"},
    ])


class TestDirtyTracking:
    """Test local state without any remote calls."""

    def test_shell_is_clean(self, client):
        course = client.get_course(1)
        assert course.id == 1
        assert not course.is_fetched
        assert not course.is_dirty
        assert course.url == COURSE

    def test_built_node_is_dirty(self, client):
        course = client.get_course(1)
        node = course.assignments.build(name="Essay")
        assert node.id is None
        assert node.dirty_fields() == ["name"]

    def test_edit_after_load(self, client):
        course = client.get_course(1)
        course._load({"id": 1, "name": "Biology", "syllabus_body": "<p>hi</p>"})
        assert not course.is_dirty

        course.title = "Biology 101"
        assert course.dirty_fields() == ["name"]

        course.title = "Biology"
        assert not course.is_dirty

    def test_nested_edit_is_detected(self, client):
        course = client.get_course(1)
        course._load({"id": 1, "settings": {"hide_grades": False}})
        course["settings"]["hide_grades"] = True
        assert course.dirty_fields() == ["settings"]

    def test_mapped_accessors(self, client):
        course = client.get_course(1)
        page = course.pages.node("intro-to-cells")
        page._load({
            "url": "intro-to-cells",
            "title": "Cells",
            "body": "<p>cells</p>",
            "html_url": "https://canvas.test/courses/1/pages/intro-to-cells"
        })
        assert page.id == "intro-to-cells"
        assert page.title == "Cells"
        assert page.html == "<p>cells</p>"
        assert page.html_url.endswith("/pages/intro-to-cells")

    def test_unmapped_accessor_rejects_writes(self, client):
        submission = client.get_course(1).assignments.node(5).submissions.node(9)
        assert submission.html is None
        with pytest.raises(UsageError):
            submission.html = "<p>nope</p>"

    def test_child_collections_follow_kind(self, client):
        course = client.get_course(1)
        assert set(course.children) == {
            "assignments", "assignment_groups", "modules",
            "pages", "discussion_topics", "quizzes"
        }
        assert course.modules.url == f"{COURSE}/modules"
        with pytest.raises(AttributeError):
            course.not_a_collection

    def test_detached_node(self):
        node = ResourceNode("assignment", {"id": 4})
        with pytest.raises(UsageError):
            node.url

    def test_collection_of_collected_owner(self):
        node = ResourceNode("course", id=7)
        assignments = node.assignments
        del node
        gc.collect()
        with pytest.raises(UsageError):
            assignments.url

    def test_unknown_kind(self):
        with pytest.raises(UsageError):
            ResourceNode("gradebook")


class TestGet:
    """Test fetching a single node."""

    @pytest.mark.asyncio
    async def test_get_loads_fields_and_snapshot(self, client, transport):
        transport.add("GET", COURSE, ok({"id": 1, "name": "Biology"}))
        course = client.get_course(1)

        result = await course.get()

        assert result is course
        assert course.is_fetched
        assert course.title == "Biology"
        assert not course.is_dirty

    @pytest.mark.asyncio
    async def test_get_discards_local_edits(self, client, transport, caplog):
        transport.add("GET", COURSE, ok({"id": 1, "name": "Biology"}))
        course = client.get_course(1)
        await course.get()
        course.title = "Chemistry"

        with caplog.at_level(logging.WARNING, logger="canvas_client"):
            await course.get()

        assert course.title == "Biology"
        assert not course.is_dirty
        assert "Discarding local edits" in caplog.text

    @pytest.mark.asyncio
    async def test_get_without_id_raises(self, client):
        node = client.get_course(1).assignments.build(name="Draft")
        with pytest.raises(UsageError):
            await node.get()

    @pytest.mark.asyncio
    async def test_get_complete_populates_subtree(self, client, transport):
        transport.fallback = ok([])
        transport.add("GET", COURSE, ok({"id": 1, "name": "Biology"}))
        transport.add("GET", f"{COURSE}/modules", ok([{"id": 3, "name": "Week 1"}]))
        transport.add("GET", f"{COURSE}/modules/3/items", ok([
            {"id": 30, "title": "Reading"}, {"id": 31, "title": "Quiz"}
        ]))

        course = await client.get_course(1).get_complete()

        assert course.modules.ids() == [3]
        assert [item.title for item in course.modules[0].items] == ["Reading", "Quiz"]
        assert len(course.assignments) == 0
        requested = {c.url for c in transport.sent("GET")}
        assert f"{COURSE}/quizzes" in requested
        assert f"{COURSE}/modules/3/items" in requested

    @pytest.mark.asyncio
    async def test_get_reports_through_callback(self, client, transport):
        transport.add("GET", COURSE, ok({"id": 1}))
        seen = []
        course = client.get_course(1)

        await course.get(callback=lambda err, result: seen.append((err, result)))

        assert seen == [(None, course)]

    @pytest.mark.asyncio
    async def test_failed_get_reports_and_raises(self, client):
        seen = []
        course = client.get_course(404)

        with pytest.raises(CanvasHTTPError):
            await course.get(callback=lambda err, result: seen.append((err, result)))

        assert len(seen) == 1
        assert isinstance(seen[0][0], CanvasHTTPError)
        assert seen[0][1] is None


class TestUpdate:
    """Test pushing changes."""

    @pytest.mark.asyncio
    async def test_update_is_idempotent(self, client, transport):
        transport.add("GET", COURSE, ok({"id": 1, "name": "Biology"}))
        transport.add("PUT", COURSE, ok({"id": 1, "name": "Biology 101"}))
        course = client.get_course(1)
        await course.get()

        course.title = "Biology 101"
        await course.update()
        await course.update()

        puts = transport.sent("PUT")
        assert len(puts) == 1
        assert puts[0].body == {"course": {"id": 1, "name": "Biology 101"}}
        assert not course.is_dirty

    @pytest.mark.asyncio
    async def test_clean_tree_sends_nothing(self, client, transport):
        transport.add("GET", ASSIGNMENTS, assignment_list())
        course = client.get_course(1)
        await course.assignments.get()

        await course.update()

        assert transport.sent("PUT") == []
        assert transport.sent("POST") == []

    @pytest.mark.asyncio
    async def test_only_dirty_nodes_are_sent(self, client, transport):
        transport.add("GET", ASSIGNMENTS, assignment_list())
        transport.add("PUT", f"{ASSIGNMENTS}/2", ok({"id": 2}))
        course = client.get_course(1)
        await course.assignments.get()

        course.assignments.find(2).html = "<p>revised</p>"
        await course.update()

        puts = transport.sent("PUT")
        assert [p.url for p in puts] == [f"{ASSIGNMENTS}/2"]
        assert puts[0].body["assignment"]["description"] == "<p>revised</p>"

    @pytest.mark.asyncio
    async def test_built_node_is_created_on_update(self, client, transport):
        transport.add("POST", ASSIGNMENTS, ok({"id": 9, "name": "Essay", "points_possible": 10}))
        course = client.get_course(1)
        node = course.assignments.build(name="Essay")

        await course.update()

        posts = transport.sent("POST")
        assert len(posts) == 1
        assert posts[0].body == {"assignment": {"name": "Essay"}}
        assert node.id == 9
        assert node["points_possible"] == 10
        assert not node.is_dirty
        assert course.assignments.ids() == [9]

        await course.update()
        assert len(transport.sent("POST")) == 1
        assert transport.sent("PUT") == []

    @pytest.mark.asyncio
    async def test_built_node_without_fields_is_created(self, client, transport):
        transport.add("POST", f"{COURSE}/modules", ok({"id": 12, "name": "Untitled"}))
        course = client.get_course(1)
        node = course.modules.build()
        assert node.is_dirty

        await course.update()

        posts = transport.sent("POST")
        assert len(posts) == 1
        assert posts[0].body == {"module": {}}
        assert node.id == 12
        assert not node.is_dirty

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_failed_node_dirty(self, client, transport):
        transport.add("GET", ASSIGNMENTS, assignment_list())
        transport.add("PUT", f"{ASSIGNMENTS}/1", ok({"id": 1}))
        transport.add("PUT", f"{ASSIGNMENTS}/2", error(400, {"errors": {"name": "too long"}}))
        transport.add("PUT", f"{ASSIGNMENTS}/3", ok({"id": 3}))
        course = client.get_course(1)
        await course.assignments.get()
        for assignment in course.assignments:
            assignment.title = assignment.title.upper()

        with pytest.raises(UpdateError) as exc_info:
            await course.update()

        assert len(exc_info.value.errors) == 1
        assert exc_info.value.errors[0].status == 400
        assert [a.is_dirty for a in course.assignments] == [False, True, False]
        assert len(transport.sent("PUT")) == 3

        transport.routes.pop(("PUT", f"{ASSIGNMENTS}/2"))
        transport.add("PUT", f"{ASSIGNMENTS}/2", ok({"id": 2}))
        await course.update()

        assert [p.url for p in transport.sent("PUT")[3:]] == [f"{ASSIGNMENTS}/2"]
        assert not any(a.is_dirty for a in course.assignments)

    @pytest.mark.asyncio
    async def test_failed_own_save_skips_children(self, client, transport):
        transport.add("GET", ASSIGNMENTS, assignment_list())
        transport.add("PUT", COURSE, error(401, {"errors": "unauthorized"}))
        course = client.get_course(1)
        await course.assignments.get()
        course.title = "Renamed"
        course.assignments[0].title = "Renamed lab"

        with pytest.raises(CanvasHTTPError):
            await course.update()

        assert [p.url for p in transport.sent("PUT")] == [COURSE]
        assert course.is_dirty
        assert course.assignments[0].is_dirty


class TestDelete:
    """Test deleting through the owning collection."""

    @pytest.mark.asyncio
    async def test_node_delete(self, client, transport):
        transport.add("GET", ASSIGNMENTS, assignment_list())
        transport.add("DELETE", f"{ASSIGNMENTS}/2", ok({"id": 2}))
        course = client.get_course(1)
        await course.assignments.get()

        await course.assignments.find(2).delete()

        assert course.assignments.ids() == [1, 3]

    def test_delete_without_id_is_immediate(self, client):
        node = client.get_course(1).assignments.build(name="Draft")
        with pytest.raises(UsageError):
            node.delete()
