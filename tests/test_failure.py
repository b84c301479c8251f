"""Tests for WrappedFailure adoption, attachment and rendering."""

import threading
import uuid

import pytest

from framesnap import (
    CauseInfo,
    FailureConfig,
    FrameIndex,
    Snapshot,
    SourceLocation,
    WrappedFailure,
    adopt,
)
from framesnap.capture import stack_from_traceback
from framesnap.failure import token_for


class RecordFailure(WrappedFailure):
    def record(self, **values):
        self.attach_all(values)


class Unprintable:
    def __str__(self):
        raise RuntimeError("no str for you")


def _raise_deep(depth):
    if depth == 0:
        raise ValueError("deep")
    _raise_deep(depth - 1)


def _get_data(param):
    jj = 159
    try:
        raise LookupError("bad connection")
    except LookupError as e:
        failure = adopt(e)
        failure.attach("param", param)
        failure.attach("jj", jj)
        raise failure from e


def _calc(param):
    x = 35
    try:
        _get_data(param)
    except Exception as e:
        failure = adopt(e)
        failure.attach("x", x)
        raise failure


def _failure_from_worker():
    result = {}

    def work():
        try:
            raise KeyError("k")
        except KeyError as e:
            failure = adopt(e)
            failure.attach("worker", "w1")
            result["failure"] = failure

    worker = threading.Thread(target=work)
    worker.start()
    worker.join()
    return result["failure"]


def _frame_lines(text):
    return [line for line in text.splitlines() if line.startswith("->> ")]


def test_adopt_same_thread_returns_same_instance():
    """Test identity reuse on the creating thread."""
    failure = WrappedFailure("boom")
    assert adopt(failure) is failure
    assert WrappedFailure.adopt(failure) is failure


def test_adopt_from_other_thread_starts_new_failure():
    """Test that a failure from another thread is re-rooted at the caller."""
    original = _failure_from_worker()
    original_frames = original.frames

    adopted = adopt(original)

    assert adopted is not original
    assert adopted.thread_id == threading.get_ident()
    assert adopted.thread_id != original.thread_id
    assert adopted.cause_info == original.cause_info == CauseInfo("KeyError", "'k'")
    assert adopted.frames[0].location.function == "test_adopt_from_other_thread_starts_new_failure"
    assert adopted.message == f"[Cause failure: {original.render()}]"
    assert "[worker=w1]" in adopted.message
    assert adopted.failure_id != original.failure_id

    # The other thread's failure is left untouched
    assert original.frames == original_frames


def test_adopt_foreign_keeps_raise_site():
    """Test that wrapping keeps the foreign exception's own stack."""
    try:
        _raise_deep(3)
    except ValueError as e:
        failure = adopt(e)
        expected = stack_from_traceback(e.__traceback__)

    frames = failure.frames
    depth = len(expected)
    assert len(frames) == depth
    assert [f.location for f in frames] == expected
    assert [f.index.value for f in frames] == list(range(depth - 1, -1, -1))
    assert frames[0].location.function == "_raise_deep"
    assert failure.cause_info == CauseInfo("ValueError", "deep")
    assert failure.message is None


def test_adopt_none_gives_fresh_failure():
    """Test the defensive None path."""
    failure = adopt(None)
    assert isinstance(failure, WrappedFailure)
    assert failure.message is None
    assert failure.cause_info is None
    assert failure.frames


def test_subclass_adopt_keeps_subclass():
    failure = RecordFailure.adopt(RuntimeError())
    assert isinstance(failure, RecordFailure)
    assert failure.cause_info == CauseInfo("RuntimeError", None)


def test_fresh_failure_starts_at_constructor_caller():
    """Test that the construction site is the most recent frame."""
    failure = WrappedFailure("boom")
    top = failure.frames[0]
    assert top.location.function == "test_fresh_failure_starts_at_constructor_caller"
    assert top.index.value == len(failure.frames) - 1
    assert failure.cause_info is None


def test_snapshots_render_in_attach_order():
    """Test that snapshots keep attachment order on the caller's frame."""
    failure = WrappedFailure("boom")
    failure.attach("a", 1)
    failure.attach("b", 2)

    assert failure.frames[0].snapshots == [Snapshot("a", "1"), Snapshot("b", "2")]
    assert "[a=1][b=2]" in failure.render()


def test_each_level_annotates_its_own_frame():
    """Test that snapshots land on the frame of the attaching code."""
    with pytest.raises(WrappedFailure) as info:
        _calc("p")

    failure = info.value
    by_function = {f.location.function: f for f in failure.frames}
    assert [str(s) for s in by_function["_get_data"].snapshots] == ["[param=p]", "[jj=159]"]
    assert [str(s) for s in by_function["_calc"].snapshots] == ["[x=35]"]
    assert failure.cause_type_name == "LookupError"
    assert isinstance(failure.__cause__, LookupError)


def test_attach_falls_back_to_most_recent_frame():
    """Test that an unknown caller frame attaches to frames[0]."""
    failure = WrappedFailure(stack=[SourceLocation("app", "f", 1), SourceLocation("app", "g", 2)])
    failure.attach("x", 1)
    assert [str(s) for s in failure.frames[0].snapshots] == ["[x=1]"]
    assert failure.frames[1].snapshots == []


def test_attach_from_subclass_helper_skips_subclass_frames():
    """Test that subclass methods count as part of the boundary."""
    failure = RecordFailure("boom")
    failure.record(a=1, b=None)
    assert failure.frames[0].location.function == "test_attach_from_subclass_helper_skips_subclass_frames"
    assert [str(s) for s in failure.frames[0].snapshots] == ["[a=1]", "[b=None]"]


def test_attach_stringifies_safely(monkeypatch):
    """Test None, unprintable values and redaction."""
    monkeypatch.setattr(WrappedFailure, "config", FailureConfig(redact=(r"secret\w*",)))
    failure = WrappedFailure("boom")
    failure.attach("none", None)
    failure.attach("odd", Unprintable())
    failure.attach("token", "secret123")
    failure.attach("flag", True)

    assert [s.value for s in failure.frames[0].snapshots] == [
        None,
        "<unprintable Unprintable>",
        "[REDACTED]",
        "True",
    ]


def test_empty_stack_attach_is_noop():
    """Test adopting a never-raised exception and attaching to it."""
    failure = adopt(ValueError("never raised"))
    assert failure.frames == ()

    failure.attach("x", 1)
    failure.attach_all({"y": 2})

    assert failure.frames == ()
    assert _frame_lines(failure.render()) == []
    assert "Cause: ValueError. Msg: never raised. " in failure.render()


def test_summary_format():
    """Test the header fields and their order."""
    failure = WrappedFailure("boom")
    token = failure.diagnostic_token
    tid = threading.get_ident()
    assert failure.summary() == f"-:[{token}]:- Thread id: {tid}. boom. "
    assert str(failure) == failure.summary()

    wrapped = adopt(RuntimeError("disk full").with_traceback(None))
    assert wrapped.summary().endswith("Cause: RuntimeError. Msg: disk full. ")


def test_render_layout():
    """Test the render header and frame line format."""
    failure = WrappedFailure(
        "boom",
        stack=[SourceLocation("app.Service", "run", 12), SourceLocation("app", "main", 3)],
    )
    failure._attach_at(failure.frames[1].index, Snapshot("n", "7"))

    assert failure.render() == (
        f"framesnap.failure.WrappedFailure: {failure.summary()}\n"
        "->> 1:app.Service.run[12]\n"
        "->> 0:app.main[3]: [n=7]\n"
    )


def test_render_keeps_32_most_recent_frames():
    """Test that the oldest frames are the ones cut off."""
    stack = [SourceLocation("app.Mod", f"f{i}", i) for i in range(50)]
    failure = WrappedFailure("deep", stack=stack)

    lines = _frame_lines(failure.render())
    indices = [int(line[4:].split(":", 1)[0]) for line in lines]
    assert len(lines) == 32
    assert indices == list(range(49, 17, -1))


def test_render_config_override():
    stack = [SourceLocation("app", f"f{i}", i) for i in range(10)]
    failure = WrappedFailure(stack=stack)
    assert len(_frame_lines(failure.render(FailureConfig(max_frames=3)))) == 3
    assert len(_frame_lines(failure.render())) == 10


def test_render_never_raises():
    """Test the fallback text for a corrupted frame."""
    failure = WrappedFailure("boom")
    failure.frames[0].location = None

    text = failure.render()
    assert text.startswith("failed to render WrappedFailure")


def test_uninitialized_failure_still_renders():
    failure = WrappedFailure.__new__(WrappedFailure)
    assert str(failure).startswith("failed to summarize WrappedFailure")
    assert failure.render().startswith("failed to render WrappedFailure")


def test_diagnostic_token_range_and_stability():
    """Test that tokens are non-negative 32-bit values and stable."""
    for _ in range(200):
        failure = WrappedFailure()
        token = failure.diagnostic_token
        assert 0 <= token <= 2**31 - 1
        assert failure.diagnostic_token == token
        assert f"-:[{token}]:-" in failure.summary()


def test_diagnostic_token_sentinel():
    """Test that the most negative fold maps to the largest token."""
    assert token_for(uuid.UUID(int=0x80000000)) == 2**31 - 1
    assert token_for(uuid.UUID(int=0)) == 0
    assert token_for(uuid.UUID(int=0xFFFFFFFF)) == 1


def test_debug_warns_on_attach_failure(monkeypatch, capsys):
    """Test that degraded attach reports on stderr only in debug mode."""
    monkeypatch.setattr(WrappedFailure, "config", FailureConfig())
    failure = WrappedFailure("boom")

    def broken(*args, **kwargs):
        raise RuntimeError("lookup broke")

    monkeypatch.setattr("framesnap.failure.locate_boundary_frame", broken)

    failure.attach("x", 1)
    assert capsys.readouterr().err == ""

    monkeypatch.setattr(WrappedFailure, "config", FailureConfig(debug=True))
    failure.attach("x", 1)
    assert "framesnap: attach failed for 'x'" in capsys.readouterr().err
    assert failure.frames[0].snapshots == []


def test_prune_keeps_frames_for_undefined_or_missing_index():
    """Test that pruning only happens to an index present in the frames."""
    stack = [SourceLocation("app", f"f{i}", i) for i in range(4)]
    failure = WrappedFailure(stack=stack)
    before = failure.frames

    failure._prune_to(FrameIndex.UNDEFINED)
    assert failure.frames == before

    failure._prune_to(FrameIndex(17))
    assert failure.frames == before

    failure._prune_to(FrameIndex(1))
    assert [f.index.value for f in failure.frames] == [1, 0]
