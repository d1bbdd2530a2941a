import itertools
import os
import shutil
import tempfile
from datetime import datetime

import pytest

_tmp = tempfile.mkdtemp(prefix="stakk-test-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp, 'test.db')}"
os.environ["API_KEY"] = "test-key"
os.environ["NOTIFICATIONS_AUTHORIZED"] = "true"

from stakk import models  # noqa: E402

API_HEADERS = {"X-API-Key": "test-key"}


@pytest.fixture(scope="session", autouse=True)
def _test_database():
    yield
    from stakk.db import engine

    engine.dispose()
    shutil.rmtree(_tmp, ignore_errors=True)


@pytest.fixture
def now():
    # a Tuesday, midday
    return datetime(2026, 3, 10, 12, 0)


@pytest.fixture
def make_habit():
    ids = itertools.count(1)

    def _make(name="Habit", completed=(), **fields):
        habit = models.Habit(id=next(ids), name=name, **fields)
        for ts in completed:
            habit.completions.append(models.Completion(completed_at=ts))
        if completed and "last_completed_at" not in fields:
            habit.last_completed_at = max(completed)
        return habit

    return _make


@pytest.fixture
def make_stack():
    ids = itertools.count(1)

    def _make(name="Stack", habits=(), hour=7, minute=0, **fields):
        stack = models.HabitStack(id=next(ids), name=name, reminder_hour=hour, reminder_minute=minute, **fields)
        for i, habit in enumerate(habits):
            habit.position = i
            stack.habits.append(habit)
        return stack

    return _make


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from stakk.db import Base, engine
    from stakk.main import app

    Base.metadata.drop_all(bind=engine)
    with TestClient(app) as c:
        c.headers.update(API_HEADERS)
        yield c
    Base.metadata.drop_all(bind=engine)
