"""
Tests for the SearchSession state machine.
"""

import pytest

from craft_viz.models import SearchAlgorithm, SearchMode, SearchRequest, SessionStatus
from craft_viz.stream import SearchSession


def progress(path, element="", stats=None, node=None):
    message = {"type": "progress", "element": element, "path": path}
    if stats is not None:
        message["stats"] = stats
    if node is not None:
        message["node"] = node
    return message


def result(path, stats=None):
    message = {"type": "result", "path": path}
    if stats is not None:
        message["stats"] = stats
    return message


@pytest.fixture
def session(bfs_request, layout_config):
    session = SearchSession(bfs_request, session_id="session-1", layout_config=layout_config)
    session.mark_connected()
    return session


@pytest.mark.unit
class TestLifecycle:

    def test_initial_state(self, bfs_request):
        session = SearchSession(bfs_request)

        view = session.view()
        assert view.status == SessionStatus.IDLE
        assert view.status_text == "Searching for Mud..."
        assert view.processing_elements == ["Mud"]
        assert view.recipes == []
        assert view.session_id

    def test_connected(self, session):
        assert session.status == SessionStatus.SEARCHING
        assert session.status_text == "Connected to server. Starting search..."

    def test_disconnect_before_result_fails(self, session):
        session.disconnect()

        assert session.status == SessionStatus.FAILED
        assert session.status_text == "Disconnected from server."

    def test_close_keeps_final_status(self, session, mud_tree_raw):
        session.handle_message(result(mud_tree_raw))

        session.close()
        session.disconnect()

        assert session.status == SessionStatus.COMPLETED

    def test_close_while_searching(self, session):
        session.close()
        assert session.status == SessionStatus.CLOSED

    def test_transport_failure(self, session):
        session.fail_transport("connection refused")

        assert session.status == SessionStatus.FAILED
        assert session.status_text == "Error connecting to server."


@pytest.mark.unit
class TestMessages:

    def test_progress_then_result(self, session, mud_tree_raw, stats):
        event = session.handle_message(progress({"element": "Mud", "recipes": []}, element="Mud", stats=stats))

        assert event.type == "progress"
        assert event.session_id == "session-1"
        assert session.status_text == "Processing... Examining element: Mud"
        assert session.tree.element == "Mud"
        assert session.recipes == []
        assert session.stats.node_count == 12

        event = session.handle_message(result(mud_tree_raw, stats={"nodeCount": 30, "stepCount": 9, "elapsedTime": 12}))

        view = event.data["view"]
        assert event.type == "result"
        assert view.status == SessionStatus.COMPLETED
        assert view.status_text == "Search completed. Found 1 recipe(s) for Mud."
        assert [str(r) for r in view.recipes] == ["Mud = Water + Earth"]
        assert view.stats.node_count == 30
        assert view.stats.elapsed_time_ms == 12
        assert view.processing_elements == []
        assert len(view.layout.points) == 3

    def test_processing_elements_accumulate(self, session):
        session.handle_message(progress(None, element="Water"))
        session.handle_message(progress(None, element="Earth"))
        session.handle_message(progress(None, element="Water"))

        assert session.processing_elements == ["Mud", "Water", "Earth"]

    def test_empty_result(self, session):
        session.handle_message(result({"recipes": [], "recipeCount": 0}))

        assert session.status == SessionStatus.NO_RESULTS
        assert "No recipes found" in session.status_text
        assert session.tree is None
        assert session.layout is None

    def test_error_message(self, session, mud_tree_raw):
        event = session.handle_message({"type": "error", "path": {"error": "Element not found"}})

        assert event.type == "error"
        assert session.status == SessionStatus.FAILED
        assert session.status_text == "Error: Element not found"

        assert session.handle_message(result(mud_tree_raw)) is None
        assert session.status == SessionStatus.FAILED

    def test_malformed_message_skipped(self, session):
        assert session.handle_message("not json at all") is None
        assert session.handle_message({"type": "bogus"}) is None
        assert session.status == SessionStatus.SEARCHING

    def test_result_replaces_progress(self, session, brick_tree_raw, mud_tree_raw):
        session.handle_message(progress(brick_tree_raw, element="Wall"))
        session.handle_message(result(mud_tree_raw))

        assert session.tree.element == "Mud"
        assert len(session.recipes) == 1

    def test_result_text(self, session, mud_tree_raw):
        session.handle_message(result(mud_tree_raw))

        assert '"element": "Mud"' in session.result_text


@pytest.mark.unit
class TestAlgorithms:

    def test_dfs_node_progress(self, layout_config, mud_tree_raw):
        session = SearchSession(SearchRequest(target="Mud", algorithm=SearchAlgorithm.DFS), layout_config=layout_config)
        session.mark_connected()

        session.handle_message(progress(None, node={"element": "Mud", "depth": 0}))
        session.handle_message(progress(None, node={"element": "Water", "depth": 1, "parent": "Mud"}))

        assert session.status_text == "DFS exploring... Current: Water (depth 1)"
        assert [n.id for n in session.trace.nodes] == ["Mud_0_0", "Water_1_1"]
        assert session.trace.current_path == ["Mud_0_0", "Water_1_1"]
        assert len(session.layout.points) == 2

        session.handle_message(progress(None, stats={"nodeCount": 5, "stepCount": 5}))
        assert session.status_text == "DFS exploring... 5 nodes visited"

        session.handle_message(result(mud_tree_raw))
        assert [n.element for n in session.trace.nodes] == ["Mud", "Water", "Earth"]
        assert len(session.layout.links) == 2

    def test_bidirectional_result(self, layout_config):
        request = SearchRequest(target="Wood", algorithm=SearchAlgorithm.BIDIRECTIONAL)
        session = SearchSession(request, layout_config=layout_config)
        session.mark_connected()

        session.handle_message(result({
            "forwardVisited": {"Water": {}, "Wood": {"Recipe": ["Water", "Earth"]}},
            "backwardVisited": {"Wood": {}},
        }))

        view = session.view()
        assert view.status == SessionStatus.COMPLETED
        assert view.bidirectional.meeting == {"Wood"}
        assert {n.id for n in view.graph.nodes} >= {"Wood", "Water"}
        assert view.layout is None
        assert view.tree is None

    def test_bfs_has_tree_layout_only(self, session, mud_tree_raw):
        session.handle_message(result(mud_tree_raw))

        assert session.layout.points[0].id == "0"
        assert session.trace is None
        assert session.bidirectional is None


@pytest.mark.unit
class TestNavigation:

    @pytest.fixture
    def multi_session(self, layout_config, mud_tree_raw):
        request = SearchRequest(target="Mud", mode=SearchMode.MULTIPLE, limit=3)
        session = SearchSession(request, layout_config=layout_config)
        session.mark_connected()
        other = {"element": "Mud", "recipes": [{"element": "Earth"}, {"element": "Rain"}]}
        session.handle_message(result({"recipes": [mud_tree_raw, other], "recipeCount": 2}))
        return session

    def test_found_count(self, multi_session):
        assert multi_session.status_text == "Search completed. Found 2 recipe(s) for Mud."
        assert multi_session.view().recipe_count == 2

    def test_select_rebuilds(self, multi_session):
        view = multi_session.select_recipe(1)

        assert view.recipe_index == 1
        assert [r.ingredients for r in view.recipes] == [["Earth", "Rain"]]
        assert view.layout.point("0.1").element == "Rain"

    def test_out_of_range_falls_back_to_first(self, multi_session):
        view = multi_session.select_recipe(7)

        assert view.recipe_index == 0
        assert view.recipes[0].ingredients == ["Water", "Earth"]

    def test_next_and_previous(self, multi_session):
        assert multi_session.next_recipe().recipe_index == 1
        assert multi_session.next_recipe().recipe_index == 1
        assert multi_session.previous_recipe().recipe_index == 0
        assert multi_session.previous_recipe().recipe_index == 0

    def test_resize_relayouts(self, session, mud_tree_raw):
        session.handle_message(result(mud_tree_raw))

        view = session.resize(1240, 600)

        xs = [p.x for p in view.layout.points]
        assert (min(xs) + max(xs)) / 2 == pytest.approx(620)
        assert len(view.recipes) == 1


@pytest.mark.unit
class TestSelectionAcrossUpdates:

    @pytest.fixture
    def envelope(self, mud_tree_raw):
        return {
            "recipes": [
                mud_tree_raw,
                {"element": "Mud", "recipes": [{"element": "Earth"}, {"element": "Rain"}]},
                {"element": "Mud", "recipes": [{"element": "Dust"}, {"element": "Water"}]},
            ],
            "recipeCount": 3,
        }

    @pytest.fixture
    def multi_session(self, layout_config):
        session = SearchSession(SearchRequest(target="Mud", mode=SearchMode.MULTIPLE, limit=3), layout_config=layout_config)
        session.mark_connected()
        return session

    def test_progress_keeps_selected_recipe(self, multi_session, envelope):
        multi_session.handle_message(progress(envelope, element="Mud"))
        multi_session.select_recipe(2)

        multi_session.handle_message(progress(envelope, element="Mud"))

        assert multi_session.recipe_index == 2
        assert multi_session.recipes[0].ingredients == ["Dust", "Water"]

    def test_result_keeps_selected_recipe(self, multi_session, envelope):
        multi_session.handle_message(progress(envelope, element="Mud"))
        multi_session.select_recipe(1)

        multi_session.handle_message(result(envelope))

        assert multi_session.recipe_index == 1
        assert multi_session.recipes[0].ingredients == ["Earth", "Rain"]

    def test_selection_past_new_payload_falls_back(self, multi_session, envelope, mud_tree_raw):
        multi_session.handle_message(progress(envelope, element="Mud"))
        multi_session.select_recipe(2)

        multi_session.handle_message(result(mud_tree_raw))

        assert multi_session.recipe_index == 0
        assert multi_session.recipes[0].ingredients == ["Water", "Earth"]
