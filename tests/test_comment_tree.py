from forumcore.comment_tree import (
    build_comment_tree,
    comments_from_payload,
    count_comments,
    flatten_comments,
)

from factories import make_chain, make_comment


def ids(nodes):
    return [node.id for node in nodes]


def test_empty_input_gives_empty_forest():
    assert build_comment_tree([]) == ()
    assert count_comments(()) == 0


def test_orphans_become_roots():
    forest = build_comment_tree([
        make_comment("c1", minutes=0),
        make_comment("c2", parent_id="missing", minutes=1),
    ])
    assert sorted(ids(forest)) == ["c1", "c2"]
    assert all(node.replies == () for node in forest)


def test_roots_newest_first_replies_oldest_first():
    comments = [
        make_comment("old-root", minutes=0),
        make_comment("new-root", minutes=10),
        make_comment("late-reply", parent_id="old-root", minutes=30),
        make_comment("early-reply", parent_id="old-root", minutes=5),
    ]
    forest = build_comment_tree(comments)
    assert ids(forest) == ["new-root", "old-root"]
    assert ids(forest[1].replies) == ["early-reply", "late-reply"]


def test_nested_replies_are_counted_at_every_depth():
    forest = build_comment_tree([
        make_comment("root", minutes=0),
        make_comment("r1", parent_id="root", minutes=1),
        make_comment("r2", parent_id="root", minutes=2),
        make_comment("r1a", parent_id="r1", minutes=3),
    ])
    assert len(forest) == 1
    assert count_comments(forest) == 4
    assert ids(forest[0].replies[0].replies) == ["r1a"]


def test_builder_is_idempotent_and_leaves_input_alone():
    comments = [
        make_comment("a", minutes=2),
        make_comment("b", parent_id="a", minutes=3),
        make_comment("c", minutes=1),
    ]
    before = list(comments)
    first = build_comment_tree(comments)
    second = build_comment_tree(flatten_comments(first))
    assert first == second
    assert comments == before


def test_cycles_are_promoted_to_roots():
    forest = build_comment_tree([
        make_comment("self", parent_id="self", minutes=0),
        make_comment("x", parent_id="y", minutes=1),
        make_comment("y", parent_id="x", minutes=2),
    ])
    assert count_comments(forest) == 3
    assert "self" in ids(forest)
    # the cycle is cut at its oldest member
    x_node = next(node for node in forest if node.id == "x")
    assert ids(x_node.replies) == ["y"]


def test_equal_timestamps_keep_input_order():
    forest = build_comment_tree([
        make_comment("root", minutes=0),
        make_comment("first", parent_id="root", minutes=5),
        make_comment("second", parent_id="root", minutes=5),
    ])
    assert ids(forest[0].replies) == ["first", "second"]


def test_flatten_is_pre_order():
    forest = build_comment_tree([
        make_comment("a", minutes=0),
        make_comment("a1", parent_id="a", minutes=1),
        make_comment("b", minutes=5),
    ])
    assert [c.id for c in flatten_comments(forest)] == ["b", "a", "a1"]


def test_payload_round_trip_restores_parents():
    forest = build_comment_tree([
        make_comment("a", minutes=0),
        make_comment("a1", parent_id="a", minutes=1),
    ])
    payload = [node.to_dict() for node in forest]
    payload[0]["replies"][0].pop("parent_id")

    rebuilt = build_comment_tree(comments_from_payload(payload))
    assert rebuilt == forest


def test_deep_reply_chain_builds_without_recursion():
    chain = make_chain(3000)
    forest = build_comment_tree(chain)
    assert ids(forest) == ["c0"]
    assert count_comments(forest) == 3000
    assert [c.id for c in flatten_comments(forest)] == [c.id for c in chain]

    node, depth = forest[0], 1
    while node.replies:
        node, depth = node.replies[0], depth + 1
    assert (node.id, depth) == ("c2999", 3000)


def test_deep_reply_chain_serializes():
    payload = build_comment_tree(make_chain(3000))[0].to_dict()
    assert len(comments_from_payload([payload])) == 3000

    data = payload
    depth = 1
    while data["replies"]:
        data, depth = data["replies"][0], depth + 1
    assert (data["id"], depth) == ("c2999", 3000)
