import pytest

from models.session_models import StreamSession
from services.realtime.admission import AdmissionController, CacheReason, Decision
from utils.media_validation import frame_fingerprint


@pytest.fixture
def controller():
    return AdmissionController(min_call_interval=2.5, duplicate_ttl=2.5, cooldown=20.0)


@pytest.fixture
def session():
    return StreamSession.create("s1", frame_limit=6, conversation_limit=12)


def test_first_frame_is_admitted(controller, session):
    outcome = controller.decide(session, "F1", 0.0)
    assert outcome.decision is Decision.ADMIT
    assert session.in_flight is True
    assert session.last_inference_at == 0.0
    assert session.last_frame_hash == frame_fingerprint("F1")


def test_duplicate_within_ttl_does_not_advance_timers(controller, session):
    controller.decide(session, "F1", 0.0)
    controller.release(session)

    outcome = controller.decide(session, "F1", 1.0)

    assert outcome.decision is Decision.SERVE_CACHED
    assert outcome.reason is CacheReason.DUPLICATE
    assert session.last_inference_at == 0.0
    assert session.last_frame_hash_at == 0.0


def test_duplicate_after_ttl_is_admitted(controller, session):
    controller.decide(session, "F1", 0.0)
    controller.release(session)
    assert controller.decide(session, "F1", 3.0).decision is Decision.ADMIT


def test_distinct_frame_within_interval_is_rate_limited(controller, session):
    controller.decide(session, "F1", 0.0)
    controller.release(session)

    outcome = controller.decide(session, "F2", 1.0)

    assert outcome.decision is Decision.SERVE_CACHED
    assert outcome.reason is CacheReason.RATE_LIMITED
    assert session.last_frame_hash == frame_fingerprint("F1")


def test_frame_during_in_flight_call_is_dropped(controller, session):
    controller.decide(session, "F1", 0.0)

    outcome = controller.decide(session, "F2", 3.0)

    assert outcome.decision is Decision.DROP
    assert session.last_inference_at == 0.0


def test_cooldown_serves_throttled_until_it_expires(controller, session):
    controller.enter_cooldown(session, 0.0)
    assert session.cooldown_until == 20.0

    outcome = controller.decide(session, "F1", 5.0)
    assert outcome.decision is Decision.SERVE_CACHED
    assert outcome.reason is CacheReason.THROTTLED

    assert controller.decide(session, "F2", 21.0).decision is Decision.ADMIT


def test_cooldown_is_checked_before_duplicates(controller, session):
    controller.decide(session, "F1", 0.0)
    controller.release(session)
    controller.enter_cooldown(session, 0.5)
    assert controller.decide(session, "F1", 1.0).reason is CacheReason.THROTTLED


def test_cooldown_never_moves_backwards(controller, session):
    assert controller.enter_cooldown(session, 10.0) == 30.0
    assert controller.enter_cooldown(session, 5.0) == 30.0
    assert controller.enter_cooldown(session, 15.0) == 35.0


def test_halted_session_drops_everything(controller, session):
    session.halted = True
    outcome = controller.decide(session, "F1", 100.0)
    assert outcome.decision is Decision.DROP
    assert session.in_flight is False
    assert session.last_inference_at is None


def test_histories_stay_bounded():
    session = StreamSession.create("s1", frame_limit=6, conversation_limit=12)
    for i in range(100):
        session.remember_frame(f"F{i}")
        session.remember_sign(f"sign{i}", 0.5)
    assert len(session.frame_history) == 6
    assert len(session.conversation) == 12
    assert session.previous_frames(2) == ["F98", "F99"]
    assert session.conversation[0].sign == "sign88"
