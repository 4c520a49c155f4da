"""
Payload normalization tests: message variants, casing variants and malformed nodes.
"""

import json
import logging
import pytest

from craft_viz.exceptions import MalformedPayloadError
from craft_viz.models import ErrorMessage, ProgressMessage, ResultMessage
from craft_viz.recipes.normalizer import normalize_payload, parse_message, parse_tree, read_visited


@pytest.mark.unit
class TestParseMessage:

    def test_progress_message(self, mud_tree_raw, stats):
        message = parse_message({"type": "progress", "element": "Mud", "path": mud_tree_raw, "stats": stats})

        assert isinstance(message, ProgressMessage)
        assert message.element == "Mud"
        assert message.stats.node_count == 12
        assert message.stats.step_count == 4
        assert message.stats.elapsed_time_ms == 3.5

    def test_result_message_from_json_text(self, mud_tree_raw, stats):
        text = json.dumps({"type": "result", "element": "Mud", "path": mud_tree_raw, "stats": stats})

        message = parse_message(text)

        assert isinstance(message, ResultMessage)
        assert message.path["element"] == "Mud"

    def test_legacy_elapsed_time_key(self):
        message = parse_message({"type": "progress", "stats": {"nodeCount": 1, "stepCount": 1, "elapsedTime": 9}})
        assert message.stats.elapsed_time_ms == 9

    def test_error_message_variants(self):
        from_path = parse_message({"type": "error", "path": {"error": "element not found"}})
        from_message = parse_message({"type": "error", "message": "backend crashed"})
        bare = parse_message({"type": "error"})

        assert isinstance(from_path, ErrorMessage)
        assert from_path.error_text == "element not found"
        assert from_message.error_text == "backend crashed"
        assert bare.error_text == "Unknown error"

    def test_dfs_node_field(self):
        message = parse_message({
            "type": "progress",
            "node": {"element": "Mud", "depth": 1, "parent": "Brick"},
            "stats": {"nodeCount": 2, "stepCount": 2, "elapsedTimeMs": 1},
        })

        assert message.node.element == "Mud"
        assert message.node.depth == 1
        assert message.node.parent == "Brick"

    def test_malformed_dfs_node_is_dropped(self, caplog):
        with caplog.at_level(logging.WARNING):
            message = parse_message({"type": "progress", "node": {"depth": 1}})

        assert message.node is None
        assert "malformed DFS node" in caplog.text

    def test_invalid_json_raises(self):
        with pytest.raises(MalformedPayloadError):
            parse_message("{not json")

    def test_unknown_type_raises(self):
        with pytest.raises(MalformedPayloadError):
            parse_message({"type": "heartbeat"})

    def test_non_object_raises(self):
        with pytest.raises(MalformedPayloadError):
            parse_message("[1, 2, 3]")


@pytest.mark.unit
class TestParseTree:

    def test_skips_node_without_element(self, caplog):
        raw = {"element": "Mud", "recipes": [{"recipes": []}, {"element": "Earth", "recipes": []}]}

        with caplog.at_level(logging.WARNING):
            tree = parse_tree(raw)

        assert [c.element for c in tree.recipes] == ["Earth"]
        assert "without element" in caplog.text

    def test_null_recipes_is_leaf(self):
        tree = parse_tree({"element": "Water", "recipes": None})
        assert tree.is_leaf

    def test_missing_recipes_is_leaf(self):
        assert parse_tree({"element": "Water"}).is_leaf

    def test_non_list_recipes_skips_node(self):
        assert parse_tree({"element": "Mud", "recipes": "Water+Earth"}) is None

    def test_root_without_element(self):
        assert parse_tree({"recipes": []}) is None
        assert parse_tree("Mud") is None


@pytest.mark.unit
class TestNormalizePayload:

    def test_single_tree(self, mud_tree_raw):
        payload = normalize_payload(mud_tree_raw)

        assert payload.recipe_count == 1
        assert len(payload.results) == 1
        assert payload.results[0].tree.element == "Mud"
        assert payload.results[0].visited is None

    def test_multiple_recipe_envelope(self, mud_tree_raw):
        other = {"element": "Mud", "recipes": [{"element": "Earth"}, {"element": "Rain"}]}

        payload = normalize_payload({"recipes": [mud_tree_raw, other], "recipeCount": 2})

        assert payload.recipe_count == 2
        assert [len(r.tree.recipes) for r in payload.results] == [2, 2]
        assert payload.results[1].tree.recipes[1].element == "Rain"

    def test_empty_envelope(self):
        payload = normalize_payload({"recipes": [], "recipeCount": 0})

        assert payload.is_empty
        assert payload.recipe_count == 0

    def test_none_and_garbage(self):
        assert normalize_payload(None).is_empty
        assert normalize_payload(42).is_empty
        assert normalize_payload({"unexpected": True}).is_empty

    def test_tree_with_children_is_not_an_envelope(self, mud_tree_raw):
        """A tree root has its own element; its recipes are ingredients, not alternatives."""
        payload = normalize_payload(mud_tree_raw)
        assert len(payload.results) == 1

    @pytest.mark.parametrize("forward_key,backward_key,meeting_key", [
        ("forwardVisited", "backwardVisited", "meetingPoints"),
        ("ForwardVisited", "BackwardVisited", "MeetingPoints"),
    ])
    def test_visited_maps_both_casings(self, forward_key, backward_key, meeting_key):
        payload = normalize_payload({
            forward_key: {"Water": {}, "Wood": {"Recipe": ["Water", "Earth"]}},
            backward_key: {"Wood": {}},
            meeting_key: ["Wood"],
        })

        visited = payload.results[0].visited
        assert payload.results[0].tree is None
        assert visited.forward == {"Water": [], "Wood": ["Water", "Earth"]}
        assert visited.backward == {"Wood": []}
        assert visited.meeting_points == ["Wood"]

    def test_envelope_entries_inherit_visited(self, mud_tree_raw):
        payload = normalize_payload({
            "recipes": [mud_tree_raw],
            "recipeCount": 1,
            "forwardVisited": {"Water": {}},
        })

        assert payload.results[0].visited.forward == {"Water": []}

    def test_read_visited_absent(self, mud_tree_raw):
        assert read_visited(mud_tree_raw) is None

    def test_read_visited_ignores_junk_values(self):
        visited = read_visited({"forwardVisited": {"Wood": {"Recipe": ["Water", 3, None]}, "Air": None}})

        assert visited.forward == {"Wood": ["Water"], "Air": []}
        assert visited.backward == {}
