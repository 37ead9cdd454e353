"""Tests for the numpy Capture interface.

Run from the repo root:
    python3 tests/test_capture.py
"""

import sys
import os
import struct
import tempfile

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "python"))

import numpy as np

from ibtelem.capture import Capture
from ibtelem.decoder import extract_sample
from ibtelem.errors import MalformedHeader, UnknownVariable, UnsupportedType
from ibtelem.storage import IbtReader

from ibt_builder import FLOAT32, FLOAT64, INT32, PLACEHOLDER, build_ibt, lap_speed_throttle_ibt


VARS = [
    PLACEHOLDER,
    ("Lap", INT32, 0),
    ("Speed", FLOAT32, 4, 1, "m/s"),
    ("SessionTime", FLOAT64, 8, 1, "s"),
    ("OnPitRoad", 1, 16),
]


def make_frame(lap, speed, session_time):
    return struct.pack("<ifd?3x", lap, speed, session_time, False)


def make_capture_bytes(laps=(0, 0, 1, 1, 1, 2), tick_rate=4, tail=b""):
    frames = [make_frame(lap, 10.0 + i, i * 0.25) for i, lap in enumerate(laps)]
    return build_ibt(VARS, frames, buf_len=20, tick_rate=tick_rate) + tail


def write_test_file(data):
    with tempfile.NamedTemporaryFile(suffix=".ibt", delete=False) as f:
        f.write(data)
        return f.name


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

def test_capture_series():
    """series() returns the time axis and native-dtype values."""
    print("test_capture_series...", end="")

    tmppath = write_test_file(make_capture_bytes())
    try:
        cap = Capture(tmppath)
        assert cap.num_frames == 6

        t, speed = cap.series("speed")
        assert isinstance(t, np.ndarray)
        assert t.dtype == np.float64
        assert speed.dtype == np.float32
        np.testing.assert_allclose(t, [0.0, 0.25, 0.5, 0.75, 1.0, 1.25])
        np.testing.assert_array_equal(speed, [10, 11, 12, 13, 14, 15])

        _, lap = cap.series("Lap")
        assert lap.dtype == np.int32
        np.testing.assert_array_equal(lap, [0, 0, 1, 1, 1, 2])

        _, st = cap.series("SESSIONTIME")
        assert st.dtype == np.float64
        np.testing.assert_array_equal(st, t)

        cap.close()
    finally:
        os.unlink(tmppath)

    print(" OK")


def test_series_matches_extract_sample():
    """Array values equal frame-by-frame extraction."""
    print("test_series_matches_extract_sample...", end="")

    reader = IbtReader.from_bytes(lap_speed_throttle_ibt())
    cap = Capture(reader)
    for name in ("Lap", "Speed", "Throttle"):
        _, arr = cap.series(name)
        expected = [extract_sample(f, reader.vars, name).value for f in reader.frames()]
        assert arr.tolist() == expected

    print(" OK")


def test_capture_time_range_and_lap():
    """t0/t1 and lap narrow the result."""
    print("test_capture_time_range_and_lap...", end="")

    cap = Capture(IbtReader.from_bytes(make_capture_bytes()))

    t, speed = cap.series("Speed", t0=0.5, t1=1.0)
    np.testing.assert_allclose(t, [0.5, 0.75, 1.0])
    np.testing.assert_array_equal(speed, [12, 13, 14])

    t, speed = cap.series("Speed", lap=1)
    np.testing.assert_array_equal(speed, [12, 13, 14])

    t, speed = cap.series("Speed", lap=1, t0=0.6)
    np.testing.assert_array_equal(speed, [13, 14])

    t, speed = cap.series("Speed", lap=9)
    assert len(t) == 0 and len(speed) == 0

    print(" OK")


def test_capture_table():
    """table() returns several channels on one time axis."""
    print("test_capture_table...", end="")

    cap = Capture(IbtReader.from_bytes(make_capture_bytes()))
    tbl = cap.table(["lap", "speed"], lap=2)

    assert set(tbl) == {"_time", "Lap", "Speed"}
    np.testing.assert_allclose(tbl["_time"], [1.25])
    np.testing.assert_array_equal(tbl["Lap"], [2])
    np.testing.assert_array_equal(tbl["Speed"], [15])

    print(" OK")


def test_capture_laps():
    """laps() splits the lap channel into runs."""
    print("test_capture_laps...", end="")

    cap = Capture(IbtReader.from_bytes(make_capture_bytes()))
    assert cap.laps() == [(0, 0, 2), (1, 2, 5), (2, 5, 6)]

    print(" OK")


def test_capture_truncated_tail():
    """A torn final frame is ignored."""
    print("test_capture_truncated_tail...", end="")

    cap = Capture(IbtReader.from_bytes(make_capture_bytes(tail=b"\x01" * 19)))
    assert cap.num_frames == 6
    _, lap = cap.series("Lap")
    assert len(lap) == 6

    print(" OK")


def test_capture_context_manager():
    """Capture works as a context manager."""
    print("test_capture_context_manager...", end="")

    tmppath = write_test_file(make_capture_bytes(laps=(3,)))
    try:
        with Capture(tmppath) as cap:
            t, lap = cap.series("Lap")
            assert len(t) == 1
            assert lap[0] == 3
    finally:
        os.unlink(tmppath)

    print(" OK")


def test_empty_results():
    """No frames gives empty arrays and no laps."""
    print("test_empty_results...", end="")

    cap = Capture(IbtReader.from_bytes(make_capture_bytes(laps=())))
    assert cap.num_frames == 0
    t, speed = cap.series("Speed")
    assert len(t) == 0
    assert len(speed) == 0
    assert speed.dtype == np.float32
    assert cap.laps() == []
    tbl = cap.table(["Lap"])
    assert len(tbl["_time"]) == 0

    print(" OK")


def test_unknown_and_unsupported_raise():
    """Unknown names raise UnknownVariable; bool channels are unsupported."""
    print("test_unknown_and_unsupported_raise...", end="")

    cap = Capture(IbtReader.from_bytes(make_capture_bytes()))
    try:
        cap.series("nonexistent")
        assert False, "Should have raised UnknownVariable"
    except KeyError as e:
        assert isinstance(e, UnknownVariable)

    try:
        cap.series("OnPitRoad")
        assert False, "Should have raised UnsupportedType"
    except UnsupportedType as e:
        assert e.code == 1

    print(" OK")


def test_variable_past_frame_end_raises():
    """A channel whose offset lies beyond buf_len is MalformedHeader."""
    print("test_variable_past_frame_end_raises...", end="")

    variables = [PLACEHOLDER, ("Lap", INT32, 0), ("Far", FLOAT32, 40)]
    frames = [struct.pack("<i", 1)] * 3
    cap = Capture(IbtReader.from_bytes(build_ibt(variables, frames, buf_len=4)))

    for call in (lambda: cap.table(["Lap", "Far"], lap=1),
                 lambda: cap.table(["Far", "Lap"]),
                 lambda: cap.series("Far")):
        try:
            call()
            assert False, "Should have raised MalformedHeader"
        except MalformedHeader:
            pass

    t, lap = cap.series("Lap")
    assert len(t) == len(lap) == 3
    np.testing.assert_array_equal(lap, [1, 1, 1])

    print(" OK")


if __name__ == "__main__":
    print("ibtelem Capture tests")
    print("=====================\n")

    test_capture_series()
    test_series_matches_extract_sample()
    test_capture_time_range_and_lap()
    test_capture_table()
    test_capture_laps()
    test_capture_truncated_tail()
    test_capture_context_manager()
    test_empty_results()
    test_unknown_and_unsupported_raise()
    test_variable_past_frame_end_raises()

    print("\nAll capture tests passed.")
