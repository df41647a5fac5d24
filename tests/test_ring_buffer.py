import threading

import numpy as np
import pytest

from livematch.capture.frame import Frame
from livematch.capture.ring_buffer import FrameRingBuffer
from livematch.capture.source import BufferedFrameSource
from livematch.core.cancellation import CancellationToken, MatchCancelled


def _frame(seq, released=None):
    data = np.full((4, 6, 4), seq % 256, dtype=np.uint8)
    hook = (lambda f: released.append(f.sequence)) if released is not None else None
    return Frame(data, seq, on_release=hook)


def test_bound_and_eviction():
    released = []
    buf = FrameRingBuffer(3)
    frames = [_frame(i, released) for i in range(1, 6)]
    for f in frames:
        buf.add(f)
    recent = buf.get_recent(3)
    assert len(recent) == 3
    assert frames[0] not in recent
    assert released == [1, 2]
    assert len(buf) == 3


def test_recency_order():
    buf = FrameRingBuffer(5)
    for i in range(1, 5):
        buf.add(_frame(i))
    assert [f.sequence for f in buf.get_recent(10)] == [4, 3, 2, 1]
    assert [f.sequence for f in buf.get_recent(2)] == [4, 3]
    assert buf.get_recent(0) == []
    assert buf.get_last().sequence == 4


def test_empty_buffer():
    buf = FrameRingBuffer(2)
    assert buf.get_last() is None
    assert buf.get_recent(3) == []


@pytest.mark.parametrize("capacity", [0, -4, "x"])
def test_invalid_capacity_is_coerced(capacity):
    buf = FrameRingBuffer(capacity)
    assert buf.capacity >= 1
    buf.add(_frame(1))
    buf.add(_frame(2))
    assert len(buf) <= buf.capacity


def test_frames_released_exactly_once():
    released = []
    buf = FrameRingBuffer(2)
    for i in range(1, 4):
        buf.add(_frame(i, released))
    buf.clear()
    buf.close()
    late = _frame(9, released)
    buf.add(late)
    assert sorted(released) == [1, 2, 3, 9]
    assert late.released
    assert late.release() is False


def test_release_hook_may_read_the_buffer():
    buf = FrameRingBuffer(2)
    seen = []

    def hook(frame):
        last = buf.get_last()
        seen.append((frame.sequence, len(buf), last.sequence if last is not None else None))

    def fill():
        for i in range(1, 4):
            buf.add(Frame(np.zeros((2, 2, 4), dtype=np.uint8), i, on_release=hook))
        buf.clear()

    worker = threading.Thread(target=fill, daemon=True)
    worker.start()
    worker.join(timeout=2.0)
    assert not worker.is_alive()
    assert seen[0] == (1, 2, 3)
    assert sorted(s[0] for s in seen) == [1, 2, 3]


def test_concurrent_adds_stay_bounded():
    buf = FrameRingBuffer(4)

    def producer(base):
        for i in range(200):
            buf.add(_frame(base + i))

    threads = [threading.Thread(target=producer, args=(k * 1000,)) for k in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(buf) == 4
    assert len(buf.get_recent(10)) == 4


def test_frame_from_padded_bytes():
    width, height, stride = 3, 2, 16
    raw = bytearray(stride * height)
    for y in range(height):
        for x in range(width):
            off = y * stride + x * 4
            raw[off : off + 4] = bytes([x, y, 7, 255])
    frame = Frame.from_bytes(bytes(raw), width, height, stride=stride, sequence=5)
    assert (frame.width, frame.height) == (3, 2)
    assert frame.data[1, 2].tolist() == [2, 1, 7, 255]
    assert frame.to_bgr().shape == (2, 3, 3)
    with pytest.raises(ValueError):
        frame.data[0, 0, 0] = 1


def test_frame_rejects_non_bgra():
    with pytest.raises(ValueError):
        Frame(np.zeros((4, 4, 3), dtype=np.uint8), 1)


def test_buffered_source_delivers_each_frame_once():
    src = BufferedFrameSource(capacity=4)
    pushed = src.push(np.zeros((4, 4, 4), dtype=np.uint8))
    assert src.get_next_frame(timeout=0.5) is pushed
    assert src.get_next_frame(timeout=0.05) is None
    assert src.get_last_frame() is pushed


def test_buffered_source_wakes_on_push():
    src = BufferedFrameSource()
    timer = threading.Timer(0.05, lambda: src.push(np.zeros((2, 2, 4), dtype=np.uint8)))
    timer.start()
    try:
        frame = src.get_next_frame(timeout=2.0)
    finally:
        timer.cancel()
    assert frame is not None
    assert frame.sequence == 1


def test_buffered_source_cancel_and_close():
    src = BufferedFrameSource()
    token = CancellationToken()
    token.cancel()
    with pytest.raises(MatchCancelled):
        src.get_next_frame(cancel=token, timeout=1.0)
    src.close()
    assert src.get_next_frame(timeout=1.0) is None
