import threading

from client.state import CommentAdded, ForumLoaded
from client.store import Store

from factories import make_comment, make_post


def test_subscribers_see_every_dispatch():
    store = Store()
    seen = []
    unsubscribe = store.subscribe(lambda state, action: seen.append(type(action).__name__))

    store.dispatch(ForumLoaded((make_post(),), ()))
    unsubscribe()
    store.dispatch(CommentAdded(make_comment("c1")))

    assert seen == ["ForumLoaded"]
    assert "c1" in store.state.forum.comments


def test_failing_subscriber_does_not_block_state():
    store = Store()

    def broken(state, action):
        raise RuntimeError("boom")

    store.subscribe(broken)
    state = store.dispatch(ForumLoaded((make_post(),), ()))
    assert store.state is state


def test_concurrent_dispatches_are_all_applied():
    store = Store()
    store.dispatch(ForumLoaded((make_post(),), ()))

    def add(start):
        for i in range(start, start + 50):
            store.dispatch(CommentAdded(make_comment(f"c{i}", minutes=i)))

    threads = [threading.Thread(target=add, args=(n * 50,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(store.state.forum.comments) == 200
    assert len(store.state.forum.children[("post", "post-1")]) == 200
