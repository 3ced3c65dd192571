import pytest

from framelabel import (
    SelectionEngine,
    SelectionMode,
    SelectionStateError,
    import_frames,
)

RED = (255, 0, 0, 255)


@pytest.fixture
def engine(make_frame):
    store = import_frames([make_frame() for _ in range(3)])
    return SelectionEngine(store)


def _draw(engine, rect, label="label1", frame_index=0):
    engine.choose_label(label, RED)
    return engine.complete_draw(frame_index, rect)


def test_draw_completion_stores_normalized_box(engine):
    template = engine.choose_label("label1", RED)
    assert engine.mode is SelectionMode.DRAWING
    box = engine.complete_draw(0, (100, 100, 50, 50))
    assert box.identity == template.identity
    assert box.position == pytest.approx((0.15625, 0.208333, 0.078125, 0.104167), abs=1e-5)
    assert engine.store.get_frame(0).box(template.identity) == box
    assert engine.template is None
    assert engine.mode is SelectionMode.IDLE


def test_draw_without_template_is_refused(engine):
    with pytest.raises(SelectionStateError):
        engine.complete_draw(0, (0, 0, 10, 10))


def test_draw_handles_reverse_drag_and_overflow(engine):
    box = _draw(engine, (150, 150, -50, -50))
    assert box.position == pytest.approx((100 / 640, 100 / 480, 50 / 640, 50 / 480))
    edge = _draw(engine, (600, 450, 100, 100))
    x, y, w, h = edge.position
    assert x + w == pytest.approx(1.0)
    assert y + h == pytest.approx(1.0)


def test_each_label_choice_gets_a_fresh_identity(engine):
    first = engine.choose_label("label1", RED)
    engine.cancel()
    second = engine.choose_label("label1", RED)
    assert first.identity != second.identity
    engine.cancel()
    assert engine.template is None
    assert engine.store.get_frame(0).boxes == ()


def test_multi_select_includes_only_fully_contained_boxes(engine):
    inside = _draw(engine, (110, 130, 20, 20))
    flush = _draw(engine, (100, 120, 200, 240))
    partial = _draw(engine, (280, 150, 40, 20))
    outside = _draw(engine, (400, 400, 10, 10))

    engine.begin_multi_select()
    added = engine.complete_multi_select(0, (100, 120, 200, 240))

    assert set(added) == {inside.identity, flush.identity}
    assert engine.selected == {inside.identity, flush.identity}
    assert partial.identity not in engine.selected
    assert outside.identity not in engine.selected
    assert engine.mode is SelectionMode.IDLE


def test_multi_select_unions_without_duplicates(engine):
    a = _draw(engine, (10, 10, 20, 20))
    b = _draw(engine, (300, 300, 20, 20))
    engine.complete_multi_select(0, (0, 0, 50, 50))
    added = engine.complete_multi_select(0, (0, 0, 640, 480))
    assert added == [b.identity]
    assert engine.selected == {a.identity, b.identity}


def test_multi_select_with_reverse_drag(engine):
    a = _draw(engine, (10, 10, 20, 20))
    assert engine.complete_multi_select(0, (50, 50, -50, -50)) == [a.identity]


def test_single_select_picks_topmost_box(engine):
    below = _draw(engine, (100, 100, 100, 100))
    above = _draw(engine, (120, 120, 30, 30))
    engine.begin_single_select()
    assert engine.complete_single_select(0, (130, 130)) == above.identity
    assert engine.selected == {above.identity}
    assert engine.complete_single_select(0, (105, 105)) == below.identity
    assert engine.selected == {above.identity, below.identity}


def test_single_select_miss_leaves_selection(engine):
    a = _draw(engine, (10, 10, 20, 20))
    engine.select([a.identity])
    engine.begin_single_select()
    assert engine.complete_single_select(0, (500, 400)) is None
    assert engine.selected == {a.identity}
    assert engine.mode is SelectionMode.IDLE


def test_selection_spans_frames(engine):
    a = _draw(engine, (10, 10, 20, 20), frame_index=0)
    engine.complete_single_select(0, (15, 15))
    assert engine.store.get_frame(1).box(a.identity) is None
    assert engine.is_selected(a.identity)


def test_clear_selection(engine):
    a = _draw(engine, (10, 10, 20, 20))
    engine.select([a.identity])
    engine.clear()
    assert engine.selected == frozenset()
    assert engine.store.get_frame(0).box(a.identity) is not None


def test_begin_select_discards_pending_label(engine):
    engine.choose_label("label1", RED)
    engine.begin_multi_select()
    assert engine.template is None
    assert engine.mode is SelectionMode.MULTI_SELECTING
