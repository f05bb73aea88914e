"""Tests for snapshots and snapshot diffs."""

from prompt_fitter.core.cache_pin import pin
from prompt_fitter.core.snapshot import create_snapshot, diff_snapshots
from prompt_fitter.core.tree import Message, Role, TextPart, create_scope, replace_at, text_message
from prompt_fitter.services.strategies import omit


def _tree(question="Question?"):
    return create_scope([
        pin([text_message("system", "Be brief.")], version="v1", id="system"),
        create_scope([text_message("user", "a b c")], priority=1, strategy=omit(), id="history"),
        Message(Role.USER, (TextPart(question),), id="q"),
    ])


class TestCreateSnapshot:
    """Test cases for create_snapshot()."""

    def test_nodes_in_tree_order(self, codec):
        snapshot = create_snapshot(_tree(), codec)

        assert [(n.node_type, n.path) for n in snapshot.nodes] == [
            ("scope", ()),
            ("scope", (0,)),
            ("message", (0, 0)),
            ("scope", (1,)),
            ("message", (1, 0)),
            ("message", (2,)),
        ]

    def test_token_counts(self, codec):
        snapshot = create_snapshot(_tree(), codec)
        tokens = {n.key: n.tokens for n in snapshot.nodes}

        # system : Be brief . / user : a b c / user : Question ?
        assert tokens["path:0"] == 5
        assert tokens["id:history"] == 5
        assert tokens["id:q"] == 4
        assert tokens["path:"] == 14
        assert snapshot.total_tokens == 14

    def test_records_identity(self, codec):
        nodes = {n.key: n for n in create_snapshot(_tree(), codec).nodes}
        assert nodes["path:0"].cache_id == "system"
        assert nodes["id:history"].priority == 1
        assert nodes["id:q"].role == "user"
        assert "Question?" in nodes["id:q"].content

    def test_hash_is_stable(self, codec):
        assert create_snapshot(_tree(), codec).hash == create_snapshot(_tree(), codec).hash
        assert create_snapshot(_tree(), codec).hash != create_snapshot(_tree("Other?"), codec).hash


class TestDiffSnapshots:
    """Test cases for diff_snapshots()."""

    def test_identical_snapshots(self, codec):
        assert diff_snapshots(create_snapshot(_tree(), codec), create_snapshot(_tree(), codec)).is_empty

    def test_removed_scope(self, codec):
        tree = _tree()
        before = create_snapshot(tree, codec)
        after = create_snapshot(replace_at(tree, (1,), None), codec)

        diff = diff_snapshots(before, after)

        assert diff.added == []
        assert [n.key for n in diff.removed] == ["id:history", "path:1.0"]
        # The root shrinks and the question keeps its id while moving up a slot
        assert [c.key for c in diff.changed] == ["path:", "id:q"]
        question = diff.changed[1]
        assert question.before.path == (2,)
        assert question.after.path == (1,)

    def test_nodes_without_ids_match_by_path(self, codec):
        before = create_snapshot(create_scope([text_message("user", "one")]), codec)
        after = create_snapshot(create_scope([text_message("user", "one"), text_message("user", "two")]), codec)

        diff = diff_snapshots(before, after)

        assert [n.path for n in diff.added] == [(1,)]
        assert [c.key for c in diff.changed] == ["path:"]
