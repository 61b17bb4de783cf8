import random

from lottery_show.demo import demo_participants, demo_store, random_phone


def test_demo_participants_have_unique_phones():
    people = demo_participants(200, random.Random(4))
    assert len(people) == 200
    assert len({p.phone for p in people}) == 200
    assert [p.id for p in people] == list(range(1, 201))


def test_phone_shape():
    phone = random_phone(random.Random(1))
    assert len(phone) == 11
    assert phone[0] == "1" and phone[1] in "3456789"


def test_demo_store_has_a_current_prize():
    store = demo_store(10, random.Random(0))
    assert len(store.participants) == 10
    assert store.current_prize is store.prizes[0]
    assert store.current_prize.partitions
