import json

import pytest

from lottery_show.errors import MalformedEventError
from lottery_show.live_merge import parse_event
from lottery_show.state import LotteryStatus

from .conftest import drive_to, settle


def registration(name, phone):
    return json.dumps({"type": "new_person", "name": name, "phone": phone})


def card_index(engine, participant):
    for card in engine.registry:
        if card.participant is participant:
            return card.index
    return -1


def assert_on_sphere(engine, skip=()):
    for card in engine.registry:
        if card.index not in skip:
            assert card.position.length() == pytest.approx(800.0)


def test_parse_event_accepts_text_bytes_and_dicts():
    kind, event = parse_event(registration("Zhou Min", "13900000001"))
    assert kind == "new_person"
    assert (event.name, event.phone) == ("Zhou Min", "13900000001")
    assert parse_event(registration("A", "1").encode("utf-8"))[1].name == "A"
    assert parse_event({"type": "new_person", "name": "B"})[1].phone == ""
    assert parse_event({"type": "ping"}) == ("ping", None)


@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        b"\xff\xfe",
        "[1, 2]",
        '{"name": "no type"}',
        '{"type": "new_person"}',
        '{"type": "new_person", "name": "   "}',
        '{"type": "new_person", "name": "X", "phone": {"a": 1}}',
    ],
)
def test_parse_event_rejects_malformed_payloads(payload):
    with pytest.raises(MalformedEventError):
        parse_event(payload)


def test_duplicate_phone_in_table_is_ignored(engine, store):
    existing = store.participants[2].phone
    cards_before = engine.registry.cards
    assert not engine.live_merge.handle_message(registration("Again", existing))
    assert len(store.participants) == 5
    assert engine.registry.cards == cards_before


def test_registration_in_table_rebuilds_in_roster_order(engine, store):
    merged = []
    engine.live_merge.merged.connect(merged.append)
    before = [card.position for card in engine.registry]

    assert engine.live_merge.handle_message(registration("Newcomer", "13911112222"))
    assert len(store.participants) == 6
    assert [card.participant for card in engine.registry] == store.participants
    assert [card.position for card in engine.registry][:5] == before
    newcomer = engine.registry[5]
    assert newcomer.participant.name == "Newcomer"
    assert newcomer.position.x == 3000.0
    assert merged == [store.participants[5]]

    settle(engine)
    targets = engine.formation_targets(engine.table_formation)
    assert [card.position for card in engine.registry] == [t.position for t in targets]
    assert engine.status == LotteryStatus.INIT


def test_registration_in_sphere_inserts_one_card(ready_engine, store):
    engine = ready_engine
    assert engine.live_merge.handle_message(registration("Late", "13933334444"))
    assert len(engine.registry) == 6
    assert sorted(card.index for card in engine.registry) == list(range(6))
    assert engine.choreographer.active_kind == "sphere"
    settle(engine)
    for card in engine.registry:
        assert card.position.length() == pytest.approx(800.0)
    assert card_index(engine, store.participants[-1]) >= 0


def test_registration_during_reveal_is_deferred(ready_engine, store):
    engine = ready_engine
    assert engine.start()
    assert engine.stop()
    phone = "13955556666"

    assert engine.live_merge.handle_message(registration("Waiting", phone))
    assert not engine.live_merge.handle_message(registration("Waiting twice", phone))
    assert len(engine.live_merge.pending) == 1
    assert len(store.participants) == 5
    assert len(engine.registry) == 5

    settle(engine)
    assert engine.status == LotteryStatus.END
    assert engine.live_merge.pending == []
    assert [p.phone for p in store.participants].count(phone) == 1
    assert sum(1 for card in engine.registry if card.participant.phone == phone) == 1
    assert len(engine.registry) == 6
    for winner in engine.round.winners:
        card = engine.registry[winner.slot]
        assert card.skin.mode == "lucky"
        assert card.position.z == pytest.approx(1000.0)
    assert_on_sphere(engine, skip=engine.round.reserved_slots)


def test_stop_right_after_a_running_merge_still_lands_every_card(ready_engine, store):
    engine = ready_engine
    assert engine.start()
    assert engine.live_merge.handle_message(registration("Late", "13944445555"))
    newcomer = store.participants[-1]
    assert engine.registry[card_index(engine, newcomer)].position.x == pytest.approx(3000.0, abs=600.0)

    assert engine.stop()
    settle(engine)
    assert engine.status == LotteryStatus.END
    reserved = engine.round.reserved_slots
    assert card_index(engine, newcomer) not in reserved
    assert_on_sphere(engine, skip=reserved)
    for winner in engine.round.winners:
        assert engine.registry[winner.slot].position.z == pytest.approx(1000.0)


def test_running_merge_leaves_reserved_slots_alone(ready_engine, store):
    engine = ready_engine
    assert engine.start()
    reserved = engine.round.reserved_slots
    held = {slot: engine.registry[slot] for slot in reserved}
    positions = {slot: card.position for slot, card in held.items()}

    assert engine.live_merge.handle_message(registration("Runner", "13966667777"))
    assert card_index(engine, store.participants[-1]) not in reserved
    assert {slot: engine.registry[slot] for slot in reserved} == held
    settle(engine)
    assert engine.status == LotteryStatus.RUNNING
    assert {slot: engine.registry[slot].position for slot in reserved} == positions
    assert_on_sphere(engine)

    assert engine.stop()
    settle(engine)
    for winner in engine.round.winners:
        card = engine.registry[winner.slot]
        assert card is held[winner.slot]
        assert card.skin.mode == "lucky"
        assert card.position.z == pytest.approx(1000.0)


def test_end_merge_keeps_winners_on_display(ready_engine, store):
    engine = ready_engine
    drive_to(engine, LotteryStatus.END)
    reserved = engine.round.reserved_slots
    held = {slot: (engine.registry[slot], engine.registry[slot].position) for slot in reserved}

    assert engine.live_merge.handle_message(registration("Closing", "13988889999"))
    assert card_index(engine, store.participants[-1]) not in reserved
    settle(engine)
    assert engine.status == LotteryStatus.END
    for slot, (card, position) in held.items():
        assert engine.registry[slot] is card
        assert card.skin.mode == "lucky"
        assert card.position == position
    assert_on_sphere(engine, skip=reserved)
    assert len(engine.registry) == 6


def test_unknown_and_malformed_messages_change_nothing(engine, store):
    assert not engine.live_merge.handle_message('{"type": "heartbeat"}')
    assert not engine.live_merge.handle_message("{broken")
    assert len(store.participants) == 5
    assert len(engine.registry) == 5


def test_merge_after_quit_lands_on_the_table(ready_engine, store):
    engine = ready_engine
    drive_to(engine, LotteryStatus.RUNNING)
    engine.quit()
    assert engine.live_merge.handle_message(registration("After", "13977778888"))
    settle(engine)
    assert engine.status == LotteryStatus.INIT
    settle(engine)
    targets = engine.formation_targets(engine.table_formation)
    assert [card.position for card in engine.registry] == [t.position for t in targets]


def test_messages_are_ignored_after_teardown(engine, store):
    engine.teardown()
    assert not engine.live_merge.handle_message(registration("Ghost", "13900009999"))
    assert len(store.participants) == 5
