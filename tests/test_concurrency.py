import threading
import time

import pytest

from clusterbackup.core.exceptions import PipelineCancelled
from clusterbackup.pipeline.concurrency import CancelToken, Channel, ChannelClosed, StageGroup


def test_cancel_propagates_to_children_only():
    parent = CancelToken()
    child = parent.child()
    sibling = CancelToken()

    parent.cancel("stop")

    assert child.cancelled
    assert child.reason == "stop"
    assert not sibling.cancelled

    other_parent = CancelToken()
    other_child = other_parent.child()
    other_child.cancel()
    assert not other_parent.cancelled


def test_deadline_is_ordinary_cancellation():
    token = CancelToken.with_timeout(0.05)
    child = token.child()
    assert not child.cancelled

    time.sleep(0.1)

    assert child.cancelled
    assert child.reason == "deadline exceeded"
    with pytest.raises(PipelineCancelled, match="writer cancelled: deadline exceeded"):
        child.raise_if_cancelled("writer")


def test_wait_returns_early_on_cancel():
    token = CancelToken()
    threading.Timer(0.05, token.cancel).start()

    started = time.monotonic()
    assert token.wait(5.0) is True
    assert time.monotonic() - started < 1.0
    assert CancelToken().wait(0.01) is False


def test_channel_drains_buffered_items_after_close():
    token = CancelToken()
    ch: Channel[int] = Channel(3)
    for i in range(3):
        ch.send(i, token)
    ch.close()

    assert list(ch.iterate(token)) == [0, 1, 2]
    with pytest.raises(ChannelClosed):
        ch.receive(token)
    with pytest.raises(RuntimeError, match="closed channel"):
        ch.send(4, token)


def test_blocked_receive_observes_cancellation():
    token = CancelToken()
    ch: Channel[int] = Channel(1)
    threading.Timer(0.05, token.cancel).start()

    started = time.monotonic()
    with pytest.raises(PipelineCancelled):
        ch.receive(token, stage="writer")
    assert time.monotonic() - started < 1.0


def test_blocked_send_observes_cancellation():
    token = CancelToken()
    ch: Channel[int] = Channel(1)
    ch.send(1, token)
    threading.Timer(0.05, token.cancel).start()

    started = time.monotonic()
    with pytest.raises(PipelineCancelled, match="discovery"):
        ch.send(2, token, stage="discovery")
    assert time.monotonic() - started < 1.0


def test_stage_group_first_error_cancels_siblings():
    parent = CancelToken()
    sibling_saw_cancel = threading.Event()

    def failing(token):
        raise ValueError("boom")

    def waiting(token):
        if token.wait(5.0):
            sibling_saw_cancel.set()

    group = StageGroup(parent, name="test")
    group.go("waiting", waiting)
    group.go("failing", failing)

    with pytest.raises(ValueError, match="boom"):
        group.wait()
    assert sibling_saw_cancel.is_set()
    # the group token is a child; the caller's token is untouched
    assert not parent.cancelled


def test_stage_group_passes_token_and_args():
    seen = []
    group = StageGroup(CancelToken())
    group.go("worker", lambda token, a, b=0: seen.append((isinstance(token, CancelToken), a, b)), 1, b=2)
    group.wait()

    assert seen == [(True, 1, 2)]
