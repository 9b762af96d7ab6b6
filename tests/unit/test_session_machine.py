import asyncio

import pytest

from config.providers import ProviderConfig
from interview.errors import ErrorKind, InvalidTransitionError, MalformedResponseError, TransportError
from interview.session import SessionState, SessionStateMachine
from interview.types import SessionHandle, UserProfile
from services.scoring import ScoreAggregator, dimension_scores


def _questions(n: int):
    return [
        {"id": index + 1, "type": "concept", "text": f"Kernel question {index + 1}", "difficulty": "medium"}
        for index in range(n)
    ]


def _evaluation(ids, score=7, **extra):
    payload = {
        "overallScore": 70,
        "overallFeedback": "Decent fundamentals",
        "dimensions": {"knowledge": 70, "logic": 65, "system": 60, "communication": 75},
        "questionAnalysis": [
            {"questionId": qid, "score": score, "feedback": "ok", "standardAnswer": "ref"} for qid in ids
        ],
        "learningPath": [{"title": "Review scheduling", "description": "CFS internals", "resources": []}],
    }
    payload.update(extra)
    return payload


def _machine(store, handle, adapter, **kwargs):
    return SessionStateMachine(store, handle=handle, adapter_factory=lambda config: adapter, retries=0, backoff_s=0, **kwargs)


async def _to_active(machine, adapter, count=3):
    adapter.generate_outcomes.append(_questions(count))
    machine.begin()
    machine.configure(topics=["os_kernel"], count=count)
    outcome = await machine.generate()
    assert outcome.ok
    return outcome


def _signals(machine):
    received = []
    machine.subscribe(received.append)
    return received


def test_initial_state_follows_handle(store, seeded_user, fake_adapter):
    assert _machine(store, seeded_user, fake_adapter).state is SessionState.IDLE
    assert _machine(store, None, fake_adapter).state is SessionState.ANONYMOUS
    assert _machine(store, SessionHandle(username="ghost"), fake_adapter).state is SessionState.ANONYMOUS


def test_login_passes_through_authenticated(store, seeded_user, fake_adapter):
    machine = _machine(store, None, fake_adapter)
    signals = _signals(machine)

    failed = machine.login("alice", "wrong")
    assert failed.status == "failed"
    assert failed.failure.kind is ErrorKind.AUTH
    assert machine.state is SessionState.ANONYMOUS

    assert machine.login("alice", "pw").ok
    assert machine.state is SessionState.IDLE
    assert machine.handle == SessionHandle(username="alice")
    states = [signal.state for signal in signals if signal.kind == "state_changed"]
    assert states == [SessionState.AUTHENTICATED, SessionState.IDLE]


def test_dashboard_toggle_leaves_context(store, seeded_user, fake_adapter):
    machine = _machine(store, seeded_user, fake_adapter)
    before = machine.context
    machine.open_dashboard()
    assert machine.state is SessionState.DASHBOARD
    with pytest.raises(InvalidTransitionError):
        machine.begin()
    machine.close_dashboard()
    assert machine.state is SessionState.IDLE
    assert machine.context is before


def test_illegal_transitions_raise(store, seeded_user, fake_adapter):
    machine = _machine(store, seeded_user, fake_adapter)
    with pytest.raises(InvalidTransitionError):
        machine.configure(topics=["os_kernel"])
    with pytest.raises(InvalidTransitionError):
        machine.restart()
    with pytest.raises(InvalidTransitionError):
        machine.login("alice", "pw")
    with pytest.raises(InvalidTransitionError):
        machine.set_answer(1, "x")


@pytest.mark.asyncio
async def test_generate_requires_topic_or_resume(store, seeded_user, fake_adapter):
    machine = _machine(store, seeded_user, fake_adapter)
    machine.begin()
    outcome = await machine.generate()
    assert outcome.status == "failed"
    assert outcome.failure.kind is ErrorKind.INVALID_TRANSITION
    assert machine.state is SessionState.CONFIGURING
    assert fake_adapter.generate_calls == []


@pytest.mark.asyncio
async def test_resume_only_generation(store, seeded_user, fake_adapter):
    fake_adapter.generate_outcomes.append(_questions(2))
    machine = _machine(store, seeded_user, fake_adapter)
    machine.begin()
    machine.configure(resume_text="Maintained a market data gateway", count=2)
    assert (await machine.generate()).ok
    assert fake_adapter.generate_calls[0]["topics"] == []
    assert fake_adapter.generate_calls[0]["resume"] == "Maintained a market data gateway"
    assert all(question.category == "general" for question in machine.context.questions)


@pytest.mark.asyncio
async def test_missing_provider_config_signals(store, fake_adapter):
    store.put("nokey", UserProfile(username="nokey"))
    machine = _machine(store, SessionHandle(username="nokey"), fake_adapter)
    machine.begin()
    machine.configure(topics=["os_kernel"])
    signals = _signals(machine)

    outcome = await machine.generate()
    assert outcome.status == "configuration_required"
    assert outcome.failure.kind is ErrorKind.CONFIGURATION_REQUIRED
    assert machine.state is SessionState.CONFIGURING
    assert [signal.kind for signal in signals] == ["configuration_required"]
    assert fake_adapter.generate_calls == []


@pytest.mark.asyncio
async def test_generate_success(store, seeded_user, fake_adapter):
    machine = _machine(store, seeded_user, fake_adapter)
    fake_adapter.generate_outcomes.append({"questions": _questions(3)})
    machine.begin()
    machine.configure(topics=["os_kernel", "concurrency"], difficulty="hard", style="stress", count=3)

    outcome = await machine.generate()
    assert outcome.ok
    assert machine.state is SessionState.ACTIVE
    assert [question.id for question in machine.context.questions] == [1, 2, 3]
    assert machine.context.answers == {}
    call = fake_adapter.generate_calls[0]
    assert (call["count"], call["difficulty"], call["style"], call["resume"]) == (3, "hard", "stress", None)
    assert machine.context.events[-1]["span"] == "generate_questions"
    assert machine.context.events[-1]["outcome"] == "ok"


@pytest.mark.asyncio
async def test_generation_failure_keeps_selections(store, seeded_user, fake_adapter):
    machine = _machine(store, seeded_user, fake_adapter)
    signals = _signals(machine)
    fake_adapter.generate_outcomes.append(MalformedResponseError("not json"))
    machine.begin()
    machine.configure(topics=["db_redis"], difficulty="easy", count=4)

    outcome = await machine.generate()
    assert outcome.status == "failed"
    assert outcome.failure.kind is ErrorKind.MALFORMED_RESPONSE
    assert machine.state is SessionState.CONFIGURING
    assert machine.context.selections.topics == ["db_redis"]
    assert machine.context.selections.count == 4
    assert machine.context.last_failure.kind is ErrorKind.MALFORMED_RESPONSE
    assert signals[-1].kind == "failure"

    fake_adapter.generate_outcomes.append(_questions(4))
    assert (await machine.generate()).ok
    assert machine.context.last_failure is None


@pytest.mark.asyncio
async def test_generation_below_threshold_is_partial_data(store, seeded_user, fake_adapter):
    machine = _machine(store, seeded_user, fake_adapter)
    fake_adapter.generate_outcomes.append([{"text": "no difficulty"}, {"difficulty": "easy"}])
    machine.begin()
    machine.configure(topics=["os_kernel"])
    outcome = await machine.generate()
    assert outcome.failure.kind is ErrorKind.PARTIAL_DATA
    assert machine.state is SessionState.CONFIGURING


@pytest.mark.asyncio
async def test_transport_errors_are_retried(store, seeded_user, fake_adapter):
    machine = SessionStateMachine(
        store, handle=seeded_user, adapter_factory=lambda config: fake_adapter, retries=1, backoff_s=0
    )
    fake_adapter.generate_outcomes.extend([TransportError("overloaded", status_code=503), _questions(2)])
    machine.begin()
    machine.configure(topics=["os_kernel"], count=2)
    assert (await machine.generate()).ok
    assert len(fake_adapter.generate_calls) == 2


@pytest.mark.asyncio
async def test_restart_discards_late_generation(store, seeded_user, fake_adapter):
    machine = _machine(store, seeded_user, fake_adapter)
    signals = _signals(machine)
    fake_adapter.gate = asyncio.Event()
    fake_adapter.generate_outcomes.append(_questions(3))
    machine.begin()
    machine.configure(topics=["os_kernel"])

    task = asyncio.create_task(machine.generate())
    await asyncio.sleep(0)
    assert machine.state is SessionState.GENERATING

    machine.restart()
    assert machine.state is SessionState.IDLE
    fake_adapter.gate.set()
    outcome = await task

    assert outcome.status == "stale"
    assert machine.state is SessionState.IDLE
    assert machine.context.questions == []
    assert machine.context.selections.topics == []
    assert signals[-1].kind == "stale_result_discarded"


@pytest.mark.asyncio
async def test_late_failure_after_restart_is_discarded(store, seeded_user, fake_adapter):
    machine = _machine(store, seeded_user, fake_adapter)
    fake_adapter.gate = asyncio.Event()
    fake_adapter.generate_outcomes.append(TransportError("boom", status_code=500))
    machine.begin()
    machine.configure(topics=["os_kernel"])

    task = asyncio.create_task(machine.generate())
    await asyncio.sleep(0)
    machine.restart()
    fake_adapter.gate.set()
    outcome = await task
    assert outcome.status == "stale"
    assert machine.context.last_failure is None


@pytest.mark.asyncio
async def test_submit_records_history(store, seeded_user, fake_adapter):
    machine = _machine(store, seeded_user, fake_adapter)
    await _to_active(machine, fake_adapter)
    fake_adapter.evaluate_outcomes.append(_evaluation([1, 2, 3]))
    machine.set_answer(1, "Fork twice")

    outcome = await machine.submit({2: "Use waitpid"})
    assert outcome.ok
    assert machine.state is SessionState.REVIEWING
    assert fake_adapter.evaluate_calls[0]["answers"] == {1: "Fork twice", 2: "Use waitpid"}
    result = machine.context.result
    assert [item.score for item in result.question_analysis] == [70.0, 70.0, 70.0]
    assert result.question_analysis[2].user_answer == "(not answered)"

    history = store.get("alice").history
    assert len(history) == 1
    assert history[0].score == 70.0
    assert history[0].topic_ids == ["os_kernel"]


@pytest.mark.asyncio
async def test_submit_is_single_flight(store, seeded_user, fake_adapter):
    machine = _machine(store, seeded_user, fake_adapter)
    await _to_active(machine, fake_adapter)
    fake_adapter.gate = asyncio.Event()
    fake_adapter.evaluate_outcomes.append(_evaluation([1, 2, 3]))

    task = asyncio.create_task(machine.submit())
    await asyncio.sleep(0)
    assert machine.state is SessionState.EVALUATING
    snapshot = machine.context.model_dump()

    second = await machine.submit({1: "late edit"})
    assert second.status == "ignored"
    assert second.state is SessionState.EVALUATING
    assert machine.context.model_dump() == snapshot
    assert len(fake_adapter.evaluate_calls) == 1

    fake_adapter.gate.set()
    assert (await task).ok
    assert len(store.get("alice").history) == 1


@pytest.mark.asyncio
async def test_evaluation_failure_keeps_answers(store, seeded_user, fake_adapter):
    machine = _machine(store, seeded_user, fake_adapter)
    await _to_active(machine, fake_adapter)
    fake_adapter.evaluate_outcomes.append(TransportError("overloaded", status_code=503))

    outcome = await machine.submit({1: "a", 2: "b", 3: "c"})
    assert outcome.status == "failed"
    assert outcome.failure.kind is ErrorKind.TRANSPORT
    assert outcome.failure.status_code == 503
    assert machine.state is SessionState.ACTIVE
    assert machine.context.answers == {1: "a", 2: "b", 3: "c"}
    assert store.get("alice").history == []

    fake_adapter.evaluate_outcomes.append(_evaluation([1, 2, 3]))
    assert (await machine.submit()).ok


@pytest.mark.asyncio
async def test_submit_without_config(store, seeded_user, fake_adapter):
    holder = [ProviderConfig(provider="gemini", api_key="g-key")]
    machine = _machine(store, seeded_user, fake_adapter, config_getter=lambda: holder[0])
    await _to_active(machine, fake_adapter)
    holder[0] = None
    outcome = await machine.submit()
    assert outcome.status == "configuration_required"
    assert machine.state is SessionState.ACTIVE
    assert fake_adapter.evaluate_calls == []


@pytest.mark.asyncio
async def test_logout_discards_late_evaluation(store, seeded_user, fake_adapter):
    machine = _machine(store, seeded_user, fake_adapter)
    await _to_active(machine, fake_adapter)
    fake_adapter.gate = asyncio.Event()
    fake_adapter.evaluate_outcomes.append(_evaluation([1, 2, 3]))
    epoch = machine.context.epoch

    task = asyncio.create_task(machine.submit())
    await asyncio.sleep(0)
    machine.logout()
    assert machine.state is SessionState.ANONYMOUS
    assert machine.context.epoch > epoch
    fake_adapter.gate.set()

    assert (await task).status == "stale"
    assert machine.context.result is None
    assert store.get("alice").history == []


@pytest.mark.asyncio
async def test_missing_dimensions_are_zero_filled(store, seeded_user, fake_adapter):
    machine = _machine(store, seeded_user, fake_adapter)
    await _to_active(machine, fake_adapter, count=2)
    payload = _evaluation([1, 2])
    del payload["dimensions"]
    fake_adapter.evaluate_outcomes.append(payload)

    assert (await machine.submit()).ok
    assert machine.context.result.dimensions == {}
    assert dimension_scores(machine.context.result) == {
        "knowledge": 0.0,
        "logic": 0.0,
        "system": 0.0,
        "communication": 0.0,
    }


@pytest.mark.asyncio
async def test_mistake_curation(store, seeded_user, fake_adapter):
    machine = _machine(store, seeded_user, fake_adapter)
    await _to_active(machine, fake_adapter)
    fake_adapter.evaluate_outcomes.append(_evaluation([1, 2, 3], score=2))
    await machine.submit({1: "not sure"})

    record = machine.add_mistake(1)
    assert record is not None
    assert record.user_answer == "not sure"
    assert machine.add_mistake(1) is None
    with pytest.raises(ValueError):
        machine.add_mistake(9)
    assert len(store.get("alice").mistakes) == 1

    assert machine.remove_mistake("unknown") is False
    assert len(store.get("alice").mistakes) == 1
    assert machine.remove_mistake(record.id) is True
    assert store.get("alice").mistakes == []


@pytest.mark.asyncio
async def test_set_answer_unknown_question(store, seeded_user, fake_adapter):
    machine = _machine(store, seeded_user, fake_adapter)
    await _to_active(machine, fake_adapter)
    with pytest.raises(ValueError):
        machine.set_answer(42, "answer")


@pytest.mark.asyncio
async def test_restart_from_review_resets_context(store, seeded_user, fake_adapter):
    machine = _machine(store, seeded_user, fake_adapter)
    await _to_active(machine, fake_adapter)
    fake_adapter.evaluate_outcomes.append(_evaluation([1, 2, 3]))
    await machine.submit()
    session_id = machine.context.session_id

    machine.restart()
    assert machine.state is SessionState.IDLE
    assert machine.context.result is None
    assert machine.context.session_id != session_id
    assert len(store.get("alice").history) == 1


@pytest.mark.asyncio
async def test_restart_during_backoff_stops_retries(store, seeded_user, fake_adapter):
    machine = SessionStateMachine(
        store, handle=seeded_user, adapter_factory=lambda config: fake_adapter, retries=2, backoff_s=0.2
    )
    fake_adapter.generate_outcomes.extend([TransportError("overloaded", status_code=503), _questions(3), _questions(3)])
    machine.begin()
    machine.configure(topics=["os_kernel"])

    task = asyncio.create_task(machine.generate())
    await asyncio.sleep(0.05)
    assert len(fake_adapter.generate_calls) == 1
    machine.restart()

    outcome = await task
    assert outcome.status == "stale"
    assert len(fake_adapter.generate_calls) == 1
    assert machine.state is SessionState.IDLE


@pytest.mark.asyncio
async def test_history_write_failure_still_reaches_review(store, seeded_user, fake_adapter):
    class BrokenAggregator(ScoreAggregator):
        def record_evaluation(self, username, result, questions):
            raise OSError("disk full")

    machine = _machine(store, seeded_user, fake_adapter, aggregator=BrokenAggregator(store))
    await _to_active(machine, fake_adapter)
    fake_adapter.evaluate_outcomes.append(_evaluation([1, 2, 3]))

    outcome = await machine.submit({1: "a"})
    assert outcome.ok
    assert machine.state is SessionState.REVIEWING
    assert machine.context.result is not None
    assert store.get("alice").history == []

    machine.restart()
    await _to_active(machine, fake_adapter)
    fake_adapter.evaluate_outcomes.append(_evaluation([1, 2, 3]))
    assert (await machine.submit()).status == "ok"
