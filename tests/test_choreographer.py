import math
import random

import pytest

from lottery_show.cards import CardRegistry
from lottery_show.choreographer import Choreographer, standard_ease, three_phase_ease
from lottery_show.formations import FormationTarget, Vec3

from .conftest import FakeClock, make_people


@pytest.fixture
def setup(qapp):
    clock = FakeClock()
    registry = CardRegistry()
    registry.rebuild(make_people(4), lambda _p, _c: (Vec3(), Vec3()))
    choreographer = Choreographer(registry, clock=clock, rng=random.Random(5))
    yield clock, registry, choreographer
    choreographer.stop()


def targets(count, x=100.0):
    return [FormationTarget(Vec3(x * (i + 1), 0.0, 0.0), Vec3(0.0, 1.0, 0.0)) for i in range(count)]


def test_easings_hit_their_endpoints():
    for ease in (standard_ease, three_phase_ease):
        assert ease(0.0) == pytest.approx(0.0)
        assert ease(1.0) == pytest.approx(1.0)
    assert three_phase_ease(0.2) == pytest.approx(0.016)
    assert three_phase_ease(0.5) == pytest.approx(0.5)
    assert three_phase_ease(0.8) == pytest.approx(0.92)


def test_animation_reaches_targets_and_completes_once(setup):
    clock, registry, choreographer = setup
    calls = []
    choreographer.animate(targets(4), 1000, kind="table", on_complete=lambda: calls.append(1))
    assert choreographer.busy
    assert choreographer.timer_active

    choreographer.tick(clock.advance(500))
    assert calls == []
    assert 0.0 < registry[0].position.x < 100.0

    choreographer.tick(clock.advance(600))
    choreographer.tick(clock.advance(16))
    assert calls == [1]
    assert [card.position.x for card in registry] == [100.0, 200.0, 300.0, 400.0]
    assert registry[2].rotation == Vec3(0.0, 1.0, 0.0)
    assert not choreographer.busy
    assert not choreographer.timer_active


def test_new_animation_supersedes_the_previous_one(setup):
    clock, _registry, choreographer = setup
    calls = []
    first = choreographer.animate(targets(4), 1000, kind="table", on_complete=lambda: calls.append("table"))
    choreographer.tick(clock.advance(100))
    choreographer.animate(targets(4, 50.0), 300, kind="sphere", on_complete=lambda: calls.append("sphere"))
    assert first.cancelled
    assert choreographer.active_kind == "sphere"
    choreographer.tick(clock.advance(400))
    assert calls == ["sphere"]


def test_jitter_stays_within_nominal_duration(setup):
    clock, registry, choreographer = setup
    choreographer.animate(targets(4), 1000, kind="sphere", jitter=0.5)
    choreographer.tick(clock.advance(1000))
    assert not choreographer.busy
    assert registry[3].position.x == 400.0


def test_keep_leaves_cards_untouched(setup):
    clock, registry, choreographer = setup
    choreographer.animate(targets(4), 200, kind="sphere", keep={1})
    choreographer.tick(clock.advance(300))
    assert registry[1].position == Vec3()
    assert registry[0].position.x == 100.0


def test_chained_transition_passes_through_first_phase(setup):
    clock, registry, choreographer = setup
    burst = [FormationTarget(Vec3(0.0, 1000.0, 0.0)) for _ in range(4)]
    done = []
    choreographer.animate_chained(
        burst, targets(4), 500, 1000, kind="table", delays=[0, 40, 80, 120],
        on_complete=lambda: done.append(True),
    )
    choreographer.tick(clock.advance(500))
    assert registry[0].position.y == 1000.0
    assert registry[3].position.y < 1000.0
    choreographer.tick(clock.advance(1200))
    assert done == [True]
    assert registry[3].position == Vec3(400.0, 0.0, 0.0)


def test_cancel_all_suppresses_callbacks(setup):
    clock, _registry, choreographer = setup
    calls = []
    choreographer.animate(targets(4), 100, kind="table", on_complete=lambda: calls.append(1))
    choreographer.cancel_all()
    choreographer.tick(clock.advance(200))
    assert calls == []


def test_spin_advances_with_clamped_delta(setup):
    clock, _registry, choreographer = setup
    choreographer.set_spin(90.0)
    choreographer.tick(clock.advance(100))
    assert choreographer.scene_rotation == pytest.approx(math.radians(9.0))
    choreographer.tick(clock.advance(5000))
    assert choreographer.scene_rotation == pytest.approx(math.radians(18.0))


def test_settle_scene_returns_to_front_and_goes_idle(setup):
    clock, _registry, choreographer = setup
    idle = []
    choreographer.idle.connect(lambda: idle.append(True))
    choreographer.set_spin(90.0)
    choreographer.tick(clock.advance(100))
    choreographer.settle_scene(400)
    choreographer.tick(clock.advance(200))
    assert choreographer.scene_rotation != 0.0
    choreographer.tick(clock.advance(300))
    assert choreographer.scene_rotation == 0.0
    assert idle == [True]
    assert not choreographer.timer_active


def test_frame_signal_fires_every_tick(setup):
    clock, _registry, choreographer = setup
    frames = []
    choreographer.frameAdvanced.connect(lambda: frames.append(True))
    choreographer.animate(targets(4), 100, kind="table")
    choreographer.tick(clock.advance(50))
    choreographer.tick(clock.advance(50))
    assert len(frames) == 2
