"""Interview session state machine.

The machine owns the ``SessionContext`` and is the only thing that mutates
it. At most one provider call is in flight per session: generation is only
reachable from ``CONFIGURING`` and evaluation only from ``ACTIVE``, and a
submit while ``EVALUATING`` is ignored.

Every entry into ``GENERATING`` or ``EVALUATING`` stamps the context with a
fresh epoch. When the awaited call resolves, its result is applied only if
the context still carries that epoch; a restart or logout in the meantime
replaces the context, so late results are dropped without side effects.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence
from uuid import uuid4

from pydantic import BaseModel, Field

from config.providers import ProviderConfig
from config.settings import settings
from llm_gateway import ProviderAdapter, build_adapter
from observability import log_event, span
from services import accounts
from services.retry import call_with_retry
from services.scoring import ScoreAggregator
from storage.profiles import STORE_ERRORS, ProfileStore

from .errors import ErrorKind, Failure, InterviewError, InvalidTransitionError
from .normalizer import normalize_evaluation, normalize_questions
from .types import (
    EvaluationResult,
    InterviewerStyle,
    MistakeRecord,
    Question,
    RequestedDifficulty,
    SessionHandle,
    UserProfile,
)

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    IDLE = "idle"
    DASHBOARD = "dashboard"
    CONFIGURING = "configuring"
    GENERATING = "generating"
    ACTIVE = "active"
    EVALUATING = "evaluating"
    REVIEWING = "reviewing"


RESTARTABLE = {
    SessionState.CONFIGURING,
    SessionState.GENERATING,
    SessionState.ACTIVE,
    SessionState.EVALUATING,
    SessionState.REVIEWING,
}

OutcomeStatus = Literal["ok", "failed", "ignored", "stale", "configuration_required"]
SignalKind = Literal["state_changed", "configuration_required", "failure", "stale_result_discarded"]


class Selections(BaseModel):  # User choices made while configuring
    topics: List[str] = Field(default_factory=list)
    difficulty: RequestedDifficulty = "mixed"
    style: InterviewerStyle = "standard"
    resume_text: str = ""
    count: int = Field(default_factory=lambda: settings.DEFAULT_QUESTION_COUNT, ge=1, le=20)

    def has_subject(self) -> bool:
        return bool(self.topics) or bool(self.resume_text.strip())


class SessionContext(BaseModel):  # Transient per-session data, never persisted
    session_id: str = Field(default_factory=lambda: uuid4().hex)
    epoch: int = 0
    selections: Selections = Field(default_factory=Selections)
    questions: List[Question] = Field(default_factory=list)
    answers: Dict[int, str] = Field(default_factory=dict)
    result: Optional[EvaluationResult] = None
    last_failure: Optional[Failure] = None
    events: List[Dict[str, Any]] = Field(default_factory=list)

    def question(self, question_id: int) -> Optional[Question]:
        return next((item for item in self.questions if item.id == question_id), None)


class SessionSignal(BaseModel):  # Notification pushed to UI listeners
    kind: SignalKind
    state: SessionState
    payload: Dict[str, Any] = Field(default_factory=dict)


class SessionOutcome(BaseModel):  # Typed result of a lifecycle operation
    status: OutcomeStatus
    state: SessionState
    failure: Optional[Failure] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


ConfigGetter = Callable[[], Optional[ProviderConfig]]
AdapterFactory = Callable[[ProviderConfig], ProviderAdapter]
Listener = Callable[[SessionSignal], None]


class SessionStateMachine:
    def __init__(
        self,
        store: ProfileStore,
        *,
        handle: Optional[SessionHandle] = None,
        config_getter: Optional[ConfigGetter] = None,
        adapter_factory: AdapterFactory = build_adapter,
        aggregator: Optional[ScoreAggregator] = None,
        retries: Optional[int] = None,
        backoff_s: Optional[float] = None,
    ) -> None:
        self._store = store
        self._config_getter = config_getter or self._profile_config
        self._adapter_factory = adapter_factory
        self._aggregator = aggregator or ScoreAggregator(store)
        self._retries = settings.PROVIDER_MAX_RETRIES if retries is None else retries
        self._backoff_s = settings.RETRY_BACKOFF_S if backoff_s is None else backoff_s
        self._listeners: List[Listener] = []
        self._epoch_counter = 0
        self._context = SessionContext()
        self._handle: Optional[SessionHandle] = None
        self._state = SessionState.ANONYMOUS
        if handle is not None and store.get(handle.username) is not None:
            self._handle = handle
            self._state = SessionState.IDLE

    # ----- read-only views -------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def context(self) -> SessionContext:
        return self._context

    @property
    def handle(self) -> Optional[SessionHandle]:
        return self._handle

    @property
    def profile(self) -> Optional[UserProfile]:
        if self._handle is None:
            return None
        return self._store.get(self._handle.username)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for signals; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ----- account and navigation ------------------------------------------

    def login(self, username: str, password: str) -> SessionOutcome:
        self._require({SessionState.ANONYMOUS}, "login")
        profile = accounts.login(self._store, username, password)
        if profile is None:
            failure = Failure(kind=ErrorKind.AUTH, message="Invalid username or password")
            self._emit("failure", failure=failure.model_dump(mode="json"))
            return SessionOutcome(status="failed", state=self._state, failure=failure)
        self._handle = SessionHandle(username=profile.username)
        self._transition(SessionState.AUTHENTICATED)
        self._transition(SessionState.IDLE)
        return self._ok()

    def logout(self) -> SessionOutcome:
        self._handle = None
        self._reset_context()
        self._transition(SessionState.ANONYMOUS)
        return self._ok()

    def open_dashboard(self) -> SessionOutcome:
        self._require({SessionState.IDLE}, "open_dashboard")
        self._transition(SessionState.DASHBOARD)
        return self._ok()

    def close_dashboard(self) -> SessionOutcome:
        self._require({SessionState.DASHBOARD}, "close_dashboard")
        self._transition(SessionState.IDLE)
        return self._ok()

    def begin(self) -> SessionOutcome:
        self._require({SessionState.IDLE}, "begin")
        self._transition(SessionState.CONFIGURING)
        return self._ok()

    def configure(
        self,
        *,
        topics: Optional[Sequence[str]] = None,
        difficulty: Optional[RequestedDifficulty] = None,
        style: Optional[InterviewerStyle] = None,
        resume_text: Optional[str] = None,
        count: Optional[int] = None,
    ) -> Selections:
        self._require({SessionState.CONFIGURING}, "configure")
        updates: Dict[str, Any] = {}
        if topics is not None:
            updates["topics"] = list(dict.fromkeys(topic for topic in topics if topic))
        if difficulty is not None:
            updates["difficulty"] = difficulty
        if style is not None:
            updates["style"] = style
        if resume_text is not None:
            updates["resume_text"] = resume_text
        if count is not None:
            updates["count"] = count
        selections = Selections.model_validate({**self._context.selections.model_dump(), **updates})
        self._context.selections = selections
        return selections

    def restart(self) -> SessionOutcome:
        self._require(RESTARTABLE, "restart")
        self._reset_context()
        self._transition(SessionState.IDLE)
        return self._ok()

    # ----- generation --------------------------------------------------------

    async def generate(self) -> SessionOutcome:
        self._require({SessionState.CONFIGURING}, "generate")
        selections = self._context.selections
        if not selections.has_subject():
            failure = Failure(
                kind=ErrorKind.INVALID_TRANSITION,
                message="Select at least one topic or provide resume text",
            )
            return SessionOutcome(status="failed", state=self._state, failure=failure)
        config = self._current_config()
        if config is None:
            return self._configuration_required()

        epoch = self._stamp()
        self._transition(SessionState.GENERATING)
        adapter = self._adapter_factory(config)
        events = self._context.events
        try:
            with span(events, "generate_questions"):
                raw = await call_with_retry(
                    lambda: adapter.generate_questions(
                        selections.topics,
                        selections.count,
                        selections.difficulty,
                        selections.style,
                        selections.resume_text or None,
                    ),
                    retries=self._retries,
                    backoff_s=self._backoff_s,
                    should_continue=lambda: self._is_current(epoch),
                )
            if not self._is_current(epoch):
                return self._discard(epoch, "generate")
            questions = normalize_questions(raw, selections.topics)
        except InterviewError as exc:
            if not self._is_current(epoch):
                return self._discard(epoch, "generate")
            return self._fail(exc, SessionState.CONFIGURING)

        self._context.questions = questions
        self._context.answers = {}
        self._context.result = None
        self._context.last_failure = None
        self._transition(SessionState.ACTIVE, questions=len(questions))
        return self._ok()

    # ----- answering and evaluation ------------------------------------------

    def set_answer(self, question_id: int, text: str) -> None:
        self._require({SessionState.ACTIVE}, "set_answer")
        if self._context.question(question_id) is None:
            raise ValueError(f"Unknown question id {question_id}")
        self._context.answers[question_id] = text

    async def submit(self, answers: Optional[Dict[int, str]] = None) -> SessionOutcome:
        if self._state is SessionState.EVALUATING:
            logger.info("Ignoring submit while evaluation is in flight")
            return SessionOutcome(status="ignored", state=self._state)
        self._require({SessionState.ACTIVE}, "submit")
        for question_id, text in (answers or {}).items():
            self.set_answer(question_id, text)
        config = self._current_config()
        if config is None:
            return self._configuration_required()

        epoch = self._stamp()
        self._transition(SessionState.EVALUATING)
        adapter = self._adapter_factory(config)
        questions = list(self._context.questions)
        collected = dict(self._context.answers)
        style = self._context.selections.style
        events = self._context.events
        try:
            with span(events, "evaluate_answers"):
                raw = await call_with_retry(
                    lambda: adapter.evaluate_answers(questions, collected, style),
                    retries=self._retries,
                    backoff_s=self._backoff_s,
                    should_continue=lambda: self._is_current(epoch),
                )
            if not self._is_current(epoch):
                return self._discard(epoch, "evaluate")
            result = normalize_evaluation(
                raw,
                questions,
                collected,
                question_scale=adapter.question_score_scale,
            )
        except InterviewError as exc:
            if not self._is_current(epoch):
                return self._discard(epoch, "evaluate")
            return self._fail(exc, SessionState.ACTIVE)

        self._context.result = result
        self._context.last_failure = None
        if self._handle is not None:
            try:
                self._aggregator.record_evaluation(self._handle.username, result, questions)
            except KeyError:
                logger.warning("No stored profile for user=%s; history not recorded", self._handle.username)
            except STORE_ERRORS as exc:
                logger.error("History write failed user=%s: %s", self._handle.username, exc)
                log_event("history_not_recorded", self._context.session_id, status="failed", epoch=epoch)
        self._transition(SessionState.REVIEWING, overall=result.overall_score)
        return self._ok()

    # ----- review ------------------------------------------------------------

    def add_mistake(self, question_id: int) -> Optional[MistakeRecord]:
        """Save a reviewed question to the user's mistake set.

        Returns None when the same question text is already tracked.
        """

        self._require({SessionState.REVIEWING}, "add_mistake")
        result = self._context.result
        question = self._context.question(question_id)
        analysis = result.analysis_for(question_id) if result is not None else None
        if question is None or analysis is None:
            raise ValueError(f"No reviewed analysis for question id {question_id}")
        return self._aggregator.add_mistake(self._username(), analysis, question)

    def remove_mistake(self, mistake_id: str) -> bool:
        return self._aggregator.remove_mistake(self._username(), mistake_id)

    # ----- internals ---------------------------------------------------------

    def _profile_config(self) -> Optional[ProviderConfig]:
        profile = self.profile
        return profile.ai_config if profile is not None else None

    def _current_config(self) -> Optional[ProviderConfig]:
        config = self._config_getter()
        if config is None or not config.has_key():
            return None
        return config

    def _username(self) -> str:
        if self._handle is None:
            raise InvalidTransitionError("No user is logged in")
        return self._handle.username

    def _require(self, allowed: set, action: str) -> None:
        if self._state not in allowed:
            raise InvalidTransitionError(f"Cannot {action} while {self._state.value}")

    def _next_epoch(self) -> int:
        self._epoch_counter += 1
        return self._epoch_counter

    def _stamp(self) -> int:
        self._context.epoch = self._next_epoch()
        return self._context.epoch

    def _is_current(self, epoch: int) -> bool:
        return self._context.epoch == epoch

    def _reset_context(self) -> None:
        self._context = SessionContext(epoch=self._next_epoch())

    def _transition(self, target: SessionState, **fields: Any) -> None:
        previous = self._state
        self._state = target
        log_event(
            "transition",
            self._context.session_id,
            from_state=previous.value,
            to_state=target.value,
            epoch=self._context.epoch,
            **fields,
        )
        self._emit("state_changed", previous=previous.value, **fields)

    def _emit(self, kind: SignalKind, **payload: Any) -> None:
        signal = SessionSignal(kind=kind, state=self._state, payload=payload)
        for listener in list(self._listeners):
            listener(signal)

    def _ok(self) -> SessionOutcome:
        return SessionOutcome(status="ok", state=self._state)

    def _configuration_required(self) -> SessionOutcome:
        failure = Failure(kind=ErrorKind.CONFIGURATION_REQUIRED, message="Provider and API key must be configured")
        log_event("configuration_required", self._context.session_id, status="configuration_required")
        self._emit("configuration_required")
        return SessionOutcome(status="configuration_required", state=self._state, failure=failure)

    def _fail(self, exc: InterviewError, fallback: SessionState) -> SessionOutcome:
        failure = Failure.from_error(exc)
        self._context.last_failure = failure
        log_event(
            "failure",
            self._context.session_id,
            error_kind=failure.kind.value,
            status="failed",
            epoch=self._context.epoch,
        )
        self._transition(fallback)
        self._emit("failure", failure=failure.model_dump(mode="json"))
        return SessionOutcome(status="failed", state=self._state, failure=failure)

    def _discard(self, epoch: int, operation: str) -> SessionOutcome:
        log_event("stale_discarded", self._context.session_id, epoch=epoch, status="stale")
        self._emit("stale_result_discarded", epoch=epoch, operation=operation)
        return SessionOutcome(status="stale", state=self._state)


__all__ = [
    "SessionState",
    "Selections",
    "SessionContext",
    "SessionSignal",
    "SessionOutcome",
    "SessionStateMachine",
]
