from datetime import date, datetime, timezone

from vetmed.scheduling.classifier import classify, group_by_animal
from vetmed.scheduling.schedule import RegimenSpec, ScheduleType

NY = "America/New_York"
ZONES = {"a1": NY, "a2": NY}


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def spec(regimen_id="r1", kind=ScheduleType.FIXED, **kw):
    fields = dict(
        regimen_id=regimen_id,
        animal_id="a1",
        schedule_type=kind,
        times_local=["08:00", "20:00"],
        cutoff_mins=240,
        start_date=date(2024, 6, 1),
        medication_name="Carprofen",
    )
    fields.update(kw)
    return RegimenSpec(**fields)


def test_due_now_and_later_today():
    board = classify([spec()], utc(2024, 6, 3, 12, 5), ZONES)

    assert len(board.due) == 1
    item = board.due[0]
    assert item.target_instant == utc(2024, 6, 3, 12, 0)
    assert item.is_overdue is False
    assert item.minutes_until_due == -5
    assert item.idempotency_key == "adm:a1:r1:2024-06-03:0"

    assert [i.target_instant for i in board.later] == [utc(2024, 6, 4, 0, 0)]
    assert board.later[0].slot_index == 1
    assert board.prn == []


def test_overdue_after_grace():
    board = classify([spec()], utc(2024, 6, 3, 12, 10), ZONES)
    assert board.due[0].is_overdue is True
    assert board.due[0].minutes_until_due == -10


def test_recorded_slot_drops_off():
    board = classify([spec()], utc(2024, 6, 3, 12, 5), ZONES, recorded=[("r1", utc(2024, 6, 3, 12, 0))])
    assert board.due == []
    assert len(board.later) == 1


def test_inactive_regimen_is_ignored():
    board = classify([spec(active=False)], utc(2024, 6, 3, 12, 5), ZONES)
    assert (board.due, board.later, board.prn) == ([], [], [])


def test_prn_listed_separately():
    board = classify([spec(kind=ScheduleType.PRN, times_local=[], medication_name="Maropitant")], utc(2024, 6, 3, 12, 5), ZONES)
    assert board.due == [] and board.later == []
    assert len(board.prn) == 1
    assert board.prn[0].is_prn is True
    assert board.prn[0].target_instant is None


def test_late_night_dose_still_due_after_midnight():
    # 00:30 local on the 4th; last night's 23:30 dose is inside its cutoff
    board = classify([spec(times_local=["23:30"])], utc(2024, 6, 4, 4, 30), ZONES)
    assert len(board.due) == 1
    assert board.due[0].local_day == date(2024, 6, 3)
    assert board.due[0].is_overdue is True
    assert [i.local_day for i in board.later] == [date(2024, 6, 4)]


def test_previous_day_slot_past_cutoff_is_dropped():
    board = classify([spec(times_local=["23:30"])], utc(2024, 6, 4, 8, 0), ZONES)
    assert board.due == []
    assert len(board.later) == 1


def test_today_slot_past_cutoff_stays_due():
    board = classify([spec(times_local=["08:00"])], utc(2024, 6, 3, 17, 0), ZONES)
    assert len(board.due) == 1
    assert board.due[0].is_past_cutoff is True


def test_overdue_first_then_time_then_name():
    regimens = [
        spec("r1", times_local=["08:00"], medication_name="Zonisamide"),
        spec("r2", times_local=["07:00"], medication_name="benazepril"),
        spec("r3", times_local=["07:00"], medication_name="Amoxicillin"),
    ]
    board = classify(regimens, utc(2024, 6, 3, 12, 5), ZONES)
    assert [i.medication_name for i in board.due] == ["Amoxicillin", "benazepril", "Zonisamide"]
    assert [i.is_overdue for i in board.due] == [True, True, False]


def test_default_timezone_when_animal_has_none():
    board = classify([spec(times_local=["08:00"])], utc(2024, 6, 3, 6, 5), {}, default_timezone="Europe/Amsterdam")
    assert board.due[0].target_instant == utc(2024, 6, 3, 6, 0)


def test_group_by_animal():
    regimens = [spec("r1"), spec("r2", animal_id="a2", kind=ScheduleType.PRN, times_local=[])]
    grouped = group_by_animal(classify(regimens, utc(2024, 6, 3, 12, 5), ZONES))
    assert set(grouped) == {"a1", "a2"}
    assert len(grouped["a1"].due) == 1
    assert len(grouped["a2"].prn) == 1


def test_board_serialises():
    out = classify([spec()], utc(2024, 6, 3, 12, 5), ZONES).to_dict()
    assert out["due"][0]["target_instant"] == "2024-06-03T12:00:00+00:00"
    assert out["due"][0]["local_day"] == "2024-06-03"
