from lottery_show.models import Participant, Partition, Prize


def test_round_quota_caps_by_remaining_and_max_per_draw():
    assert Prize(1, "A", count=25).round_quota(10) == 10
    assert Prize(1, "A", count=25, used_count=20).round_quota(10) == 5
    assert Prize(1, "A", count=3, used_count=3).round_quota(10) == 0


def test_active_partition_takes_precedence():
    prize = Prize(1, "A", count=10, partitions=[Partition(3, 3), Partition(4), Partition(3)])
    assert prize.active_partition() is prize.partitions[1]
    assert prize.round_quota(10) == 4


def test_partition_quota_never_exceeds_total_remaining():
    prize = Prize(1, "A", count=5, used_count=3, partitions=[Partition(4)])
    assert prize.round_quota(10) == 2


def test_commit_updates_prize_and_partition():
    prize = Prize(1, "A", count=5, partitions=[Partition(2), Partition(3)])
    prize.commit(2)
    assert prize.used_count == 2
    assert prize.partitions[0].exhausted
    assert prize.active_partition() is prize.partitions[1]
    prize.commit(10)
    assert prize.used_count == 5
    assert prize.is_used
    assert prize.partitions[1].used_count == 3


def test_used_count_is_clamped_on_load():
    prize = Prize.from_dict({"id": 2, "name": "B", "count": 3, "isUsedCount": 9})
    assert prize.used_count == 3
    assert prize.is_used


def test_prize_serialisation_keeps_partitions():
    prize = Prize(7, "Laptop", count=4, used_count=1, is_all=True, partitions=[Partition(2, 1), Partition(2)])
    again = Prize.from_dict(prize.to_dict())
    assert again == prize
    assert prize.to_dict()["separateCount"]["enable"] is True


def test_draft_participant():
    person = Participant.draft(12, "Li Na", "13800001234")
    assert person.uid == "U0012"
    assert not person.is_win
    assert person.prizes == []


def test_award_records_prize():
    person = Participant.draft(1, "Li Na")
    prize = Prize(3, "Phone", count=1)
    person.award(prize, "2024-01-01 10:00:00")
    assert person.is_win
    assert person.has_prize(3)
    payload = person.to_dict()
    assert payload["prizeId"] == [3]
    assert payload["prizeName"] == ["Phone"]
    assert Participant.from_dict(payload).prizes == person.prizes


def test_phones_are_stripped_on_creation():
    assert Participant.draft(2, "Zhao Lei", " 13800005555 ").phone == "13800005555"
    assert Participant.from_dict({"id": 3, "name": "Sun Yu", "phone": "\t13800006666 "}).phone == "13800006666"
