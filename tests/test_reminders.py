import pytest

from stakk.reminders import (
    InMemoryNotificationCenter,
    NotificationRequest,
    bucket_key,
    cancel_all,
    compose_request,
    group_stacks,
    schedule_reminders,
)


class FlakyCenter(InMemoryNotificationCenter):
    def __init__(self, failing):
        super().__init__()
        self.failing = failing

    def add(self, request):
        if request.identifier in self.failing:
            raise RuntimeError("delivery service unavailable")
        super().add(request)


@pytest.fixture
def center():
    return InMemoryNotificationCenter()


@pytest.fixture
def stacks(make_stack, make_habit):
    return [
        make_stack("Morning", [make_habit("Wake up"), make_habit("Water"), make_habit("Stretch")], hour=7, minute=0),
        make_stack("Coffee", [make_habit("Brew"), make_habit("Plan day")], hour=7, minute=15),
        make_stack("Commute", [make_habit("Podcast")], hour=8, minute=0),
    ]


@pytest.mark.parametrize("hour,minute,key", [(7, 0, (7, 0)), (7, 29, (7, 0)), (7, 30, (7, 30)), (23, 59, (23, 30))])
def test_bucket_key_rounds_down(hour, minute, key):
    assert bucket_key(hour, minute) == key


def test_nearby_stacks_share_a_bucket(stacks, center):
    requests = schedule_reminders(stacks, center, authorized=True)

    assert [r.identifier for r in requests] == ["habitstack-7-0", "habitstack-8-0"]
    assert set(center.pending) == {"habitstack-7-0", "habitstack-8-0"}

    grouped = center.pending["habitstack-7-0"]
    assert (grouped.hour, grouped.minute) == (7, 0)
    assert grouped.title == "Time for your habits!"
    assert grouped.body == "Morning and Coffee are ready. 5 habits total."
    assert grouped.badge == 2
    assert grouped.repeats


def test_single_stack_message(stacks):
    request = compose_request((7, 0), stacks[:1])
    assert request.title == "Time for Morning"
    assert request.body == "You have 3 habits to complete. Start with: Wake up"

    single = compose_request((8, 0), stacks[2:])
    assert single.body == "You have 1 habit to complete. Start with: Podcast"


def test_three_stacks_message(stacks):
    request = compose_request((7, 0), stacks)
    assert request.body == "Morning and 2 other stacks are ready. 6 habits total."
    assert request.badge == 3


def test_group_keeps_input_order_and_sorts_buckets(make_stack):
    late = make_stack("Late", hour=21, minute=45)
    early = make_stack("Early", hour=6, minute=10)
    also_early = make_stack("Also early", hour=6, minute=0)

    groups = group_stacks([late, early, also_early])

    assert list(groups) == [(6, 0), (21, 30)]
    assert [s.name for s in groups[(6, 0)]] == ["Early", "Also early"]


def test_stack_without_reminder_time_is_skipped(make_stack, center, caplog):
    timed = make_stack("Timed", hour=7, minute=0)
    untimed = make_stack("Untimed", hour=None, minute=None)
    half = make_stack("Half", hour=8, minute=None)

    with caplog.at_level("WARNING", logger="stakk.reminders"):
        groups = group_stacks([untimed, timed, half])
        schedule_reminders([untimed, timed, half], center, authorized=True)

    assert {k: [s.name for s in v] for k, v in groups.items()} == {(7, 0): ["Timed"]}
    assert list(center.pending) == ["habitstack-7-0"]
    assert "'Untimed' has no reminder time" in caplog.text


def test_rescheduling_replaces_everything(stacks, center):
    center.add(NotificationRequest("habitstack-5-0", "stale", "stale", 5, 0))

    schedule_reminders(stacks, center, authorized=True)
    first = dict(center.pending)
    schedule_reminders(stacks, center, authorized=True)

    assert "habitstack-5-0" not in center.pending
    assert center.pending == first


def test_unauthorized_clears_and_schedules_nothing(stacks, center):
    schedule_reminders(stacks, center, authorized=True)
    assert center.pending

    assert schedule_reminders(stacks, center, authorized=False) == []
    assert center.pending == {}


def test_failed_bucket_does_not_block_others(stacks):
    center = FlakyCenter(failing={"habitstack-7-0"})
    requests = schedule_reminders(stacks, center, authorized=True)

    assert [r.identifier for r in requests] == ["habitstack-8-0"]
    assert list(center.pending) == ["habitstack-8-0"]


def test_cancel_all(stacks, center):
    schedule_reminders(stacks, center, authorized=True)
    center.delivered.append(center.pending["habitstack-8-0"])

    cancel_all(center)

    assert center.pending == {}
    assert center.delivered == []
