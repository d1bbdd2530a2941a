import logging
import threading
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, HTTPException, Header, Request, BackgroundTasks
from fastapi.responses import Response
from sqlalchemy.orm import Session, selectinload

from .config import settings
from .db import Base, SessionLocal, engine, get_db
from . import models, schemas, services
from .presets import DEFAULT_REMINDER_HOURS, build_stack, find_preset, relevant_presets
from .charts import StatsCard, render_stats_card_png, render_weekly_png
from .reminders import InMemoryNotificationCenter, schedule_reminders
from .suggestions import AnalyticsContext, active_suggestions, analyze, dismiss

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    Base.metadata.create_all(bind=engine)

    # one engine context per process; dismissals live as long as it does
    app.state.intelligence = AnalyticsContext(max_suggestions=settings.max_suggestions)
    app.state.notifications = InMemoryNotificationCenter()
    app.state.notifications_authorized = settings.notifications_authorized
    # passes run one at a time; the newest one always wins
    app.state.engine_lock = threading.Lock()

    db = SessionLocal()
    try:
        with app.state.engine_lock:
            analyze(app.state.intelligence, load_stacks(db))
    finally:
        db.close()
    reschedule(app)

    yield

    logger.info("shutting down")


app = FastAPI(title="Stakk Habit Engine", version="1.0.0", lifespan=lifespan)


def require_api_key(x_api_key: str | None = Header(default=None)) -> None:
    if not x_api_key or x_api_key != settings.api_key:
        raise HTTPException(status_code=401, detail="Unauthorized")


def get_intelligence(request: Request) -> AnalyticsContext:
    return request.app.state.intelligence


def load_stacks(db: Session) -> list[models.HabitStack]:
    # eager so the objects stay usable after the session closes
    return db.query(models.HabitStack).options(
        selectinload(models.HabitStack.habits).selectinload(models.Habit.completions)
    ).order_by(models.HabitStack.created_at, models.HabitStack.id).all()


def reschedule(app_: FastAPI) -> None:
    """Clear and rebuild reminders from what is stored right now."""
    with app_.state.engine_lock:
        db = SessionLocal()
        try:
            schedule_reminders(load_stacks(db), app_.state.notifications, app_.state.notifications_authorized)
        except Exception:
            logger.exception("reminder scheduling pass failed")
        finally:
            db.close()


def run_engine_pass(request: Request, db: Session, background_tasks: BackgroundTasks) -> None:
    """Run after every mutation: new analysis now, reminders after the response."""
    with request.app.state.engine_lock:
        analyze(request.app.state.intelligence, load_stacks(db))
    background_tasks.add_task(reschedule, request.app)


def get_stack_or_404(db: Session, stack_id: int) -> models.HabitStack:
    stack = db.query(models.HabitStack).filter(models.HabitStack.id == stack_id).first()
    if not stack:
        raise HTTPException(status_code=404, detail="Stack not found")
    return stack


def get_habit_or_404(db: Session, habit_id: int) -> models.Habit:
    habit = db.query(models.Habit).filter(models.Habit.id == habit_id).first()
    if not habit:
        raise HTTPException(status_code=404, detail="Habit not found")
    return habit


def suggestion_out(s) -> schemas.SuggestionOut:
    return schemas.SuggestionOut(
        id=s.id,
        type=s.type.value,
        priority=s.priority.name.lower(),
        title=s.title,
        message=s.message,
        created_at=s.created_at,
        expires_at=s.expires_at,
        habit_id=s.habit_id,
        stack_id=s.stack_id,
        dismissable=s.dismissable,
    )


def at_risk_out(item) -> schemas.AtRiskOut:
    return schemas.AtRiskOut(
        habit_id=item.habit.id,
        habit_name=item.habit.name,
        risk_level=item.risk_level.value,
        reason=item.reason.value,
        description=item.reason.description,
        suggested_action=item.suggested_action,
    )


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/stacks", response_model=schemas.StackOut, dependencies=[Depends(require_api_key)])
def create_stack(payload: schemas.StackCreate, request: Request, background_tasks: BackgroundTasks,
                 db: Session = Depends(get_db)):
    stack = models.HabitStack(
        name=payload.name,
        time_block=payload.time_block,
        color_name=payload.color_name,
        reminder_hour=payload.reminder_hour,
        reminder_minute=payload.reminder_minute,
        scheduled_days=payload.scheduled_days,
    )
    for i, h in enumerate(payload.habits):
        stack.habits.append(models.Habit(name=h.name, icon=h.icon, position=i))
    db.add(stack)
    db.commit()
    db.refresh(stack)

    run_engine_pass(request, db, background_tasks)
    return stack


@app.get("/stacks", response_model=list[schemas.StackOut], dependencies=[Depends(require_api_key)])
def list_stacks(db: Session = Depends(get_db)):
    return load_stacks(db)


@app.get("/presets", response_model=list[schemas.PresetOut], dependencies=[Depends(require_api_key)])
def list_presets():
    return [
        schemas.PresetOut(
            name=p.name, icon=p.icon, time_block=p.time_block, category=p.category.label,
            anchor_habit=p.anchor_habit, habits=list(p.habits),
            default_reminder_hour=DEFAULT_REMINDER_HOURS[p.time_block],
        )
        for p in relevant_presets()
    ]


@app.post("/stacks/from-preset", response_model=schemas.StackOut, dependencies=[Depends(require_api_key)])
def create_stack_from_preset(payload: schemas.PresetCreate, request: Request, background_tasks: BackgroundTasks,
                             db: Session = Depends(get_db)):
    preset = find_preset(payload.name)
    if not preset:
        raise HTTPException(status_code=404, detail="Preset not found")

    stack = build_stack(
        preset,
        reminder_hour=payload.reminder_hour,
        reminder_minute=payload.reminder_minute,
        scheduled_days=payload.scheduled_days,
    )
    db.add(stack)
    db.commit()
    db.refresh(stack)

    run_engine_pass(request, db, background_tasks)
    return stack


@app.get("/stacks/today", response_model=schemas.TodayOut, dependencies=[Depends(require_api_key)])
def get_today(db: Session = Depends(get_db)):
    return services.today_overview(load_stacks(db))


@app.get("/stacks/{stack_id}", response_model=schemas.StackOut, dependencies=[Depends(require_api_key)])
def get_stack(stack_id: int, db: Session = Depends(get_db)):
    return get_stack_or_404(db, stack_id)


@app.put("/stacks/{stack_id}", response_model=schemas.StackOut, dependencies=[Depends(require_api_key)])
def update_stack(stack_id: int, payload: schemas.StackUpdate, request: Request, background_tasks: BackgroundTasks,
                 db: Session = Depends(get_db)):
    stack = get_stack_or_404(db, stack_id)

    for field in ("name", "time_block", "color_name", "reminder_hour", "reminder_minute"):
        value = getattr(payload, field)
        if value is not None:
            setattr(stack, field, value)
    if payload.scheduled_days is not None:
        stack.scheduled_days = payload.scheduled_days

    if payload.habit_order is not None:
        by_id = {h.id: h for h in stack.habits}
        if sorted(payload.habit_order) != sorted(by_id):
            raise HTTPException(status_code=422, detail="habit_order must list every habit of the stack once")
        for i, habit_id in enumerate(payload.habit_order):
            by_id[habit_id].position = i

    db.commit()
    db.refresh(stack)

    run_engine_pass(request, db, background_tasks)
    return stack


@app.delete("/stacks/{stack_id}", dependencies=[Depends(require_api_key)])
def delete_stack(stack_id: int, request: Request, background_tasks: BackgroundTasks,
                 db: Session = Depends(get_db)):
    stack = get_stack_or_404(db, stack_id)
    db.delete(stack)
    db.commit()

    run_engine_pass(request, db, background_tasks)
    return {"deleted": True}


@app.post("/habits/{habit_id}/completions", response_model=schemas.CompletionOut,
          dependencies=[Depends(require_api_key)])
def complete_habit(habit_id: int, payload: schemas.CompletionCreate, request: Request,
                   background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    habit = get_habit_or_404(db, habit_id)
    completion = services.record_completion(
        habit,
        timestamp=payload.completed_at,
        duration=payload.duration_seconds,
        mood=payload.mood,
        energy=payload.energy,
    )
    db.commit()
    db.refresh(completion)

    run_engine_pass(request, db, background_tasks)
    return completion


@app.post("/habits/{habit_id}/miss", response_model=schemas.HabitOut, dependencies=[Depends(require_api_key)])
def miss_habit(habit_id: int, request: Request, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    habit = get_habit_or_404(db, habit_id)
    services.record_miss(habit)
    db.commit()
    db.refresh(habit)

    run_engine_pass(request, db, background_tasks)
    return habit


@app.post("/analyze", response_model=list[schemas.SuggestionOut], dependencies=[Depends(require_api_key)])
def run_analysis(request: Request, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    run_engine_pass(request, db, background_tasks)
    with request.app.state.engine_lock:
        current = list(request.app.state.intelligence.suggestions)
    return [suggestion_out(s) for s in current]


@app.get("/suggestions", response_model=list[schemas.SuggestionOut], dependencies=[Depends(require_api_key)])
def list_suggestions(request: Request, limit: int = 10, ctx: AnalyticsContext = Depends(get_intelligence)):
    limit = max(1, min(int(limit), ctx.max_suggestions))
    with request.app.state.engine_lock:
        active = active_suggestions(ctx, limit=limit)
    return [suggestion_out(s) for s in active]


@app.post("/suggestions/{suggestion_id}/dismiss", dependencies=[Depends(require_api_key)])
def dismiss_suggestion(suggestion_id: str, request: Request, ctx: AnalyticsContext = Depends(get_intelligence)):
    with request.app.state.engine_lock:
        if not any(s.id == suggestion_id for s in ctx.suggestions):
            raise HTTPException(status_code=404, detail="Suggestion not found")
        dismiss(ctx, suggestion_id)
    return {"dismissed": True}


@app.get("/at-risk", response_model=list[schemas.AtRiskOut], dependencies=[Depends(require_api_key)])
def list_at_risk(request: Request, ctx: AnalyticsContext = Depends(get_intelligence)):
    with request.app.state.engine_lock:
        at_risk = list(ctx.at_risk)
    return [at_risk_out(item) for item in at_risk]


@app.get("/stats", response_model=schemas.StatsOut, dependencies=[Depends(require_api_key)])
def get_stats(db: Session = Depends(get_db)):
    return services.compute_stats(load_stacks(db))


@app.get("/stats.png", dependencies=[Depends(require_api_key)])
def get_stats_png(db: Session = Depends(get_db)):
    s = services.compute_stats(load_stacks(db))
    card = StatsCard(
        period_label="All time",
        current_streak=s["current_streak"],
        longest_streak=s["longest_streak"],
        completed_today=s["completed_today"],
        total_habits=s["total_habits"],
        total_completions=s["total_completions"],
        average_completion_rate=s["average_completion_rate"],
    )
    png = render_stats_card_png(card)
    return Response(content=png, media_type="image/png")


@app.get("/weekly.png", dependencies=[Depends(require_api_key)])
def get_weekly_png(days: int = 7, db: Session = Depends(get_db)):
    days = max(2, min(int(days), 90))

    habits = [h for s in load_stacks(db) for h in s.habits]
    points = services.daily_completion_counts(habits, days=days)

    png = render_weekly_png(points, title=f"Completions (last {days} days)")
    return Response(content=png, media_type="image/png")


@app.put("/notifications/authorization", dependencies=[Depends(require_api_key)])
def set_authorization(payload: schemas.AuthorizationIn, request: Request):
    request.app.state.notifications_authorized = payload.authorized
    reschedule(request.app)
    return {"authorized": payload.authorized}


@app.get("/notifications/pending", response_model=list[schemas.NotificationOut],
         dependencies=[Depends(require_api_key)])
def list_pending(request: Request):
    with request.app.state.engine_lock:
        pending = list(request.app.state.notifications.pending.values())
    return [
        schemas.NotificationOut(
            identifier=r.identifier, title=r.title, body=r.body, hour=r.hour,
            minute=r.minute, badge=r.badge, repeats=r.repeats,
        )
        for r in sorted(pending, key=lambda r: (r.hour, r.minute))
    ]
