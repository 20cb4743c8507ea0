# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Session orchestrator.

The orchestrator owns the public operations of the teaching pipeline and
composes every other component:

    submit_interaction
        ↓
    constraint pre-check (under the session lock)
        ↓
    admit (supersedes the interaction in flight)
        ↓
    assemble → generate (deadline + transient retries) → validate
        ↓                                   ↑
        └──── regenerate (bounded) ─────────┘
        ↓
    commit under the session lock, only if the epoch is still current
        ↓
    events: started, chunk*, validated, committed | fallback

Generation runs outside the lock in a background task, so a second
submission can be admitted, and can supersede the first, while the first is
still streaming.

Example:
    >>> orchestrator = SessionOrchestrator(storage, LLMClient(), ProfileManager())
    >>> session = await orchestrator.create_session("learner-1", "socratic_guide", plan)
    >>> await orchestrator.start_screen(session.id, session.screen_order[0])
    >>> stream = await orchestrator.submit_interaction(session.id, screen_id, "int-1", "is it 3/4?")
    >>> async for event in stream:
    ...     print(event.type, event.text)
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import AsyncIterator, Optional, Union

from instructorflow.core.config.settings import OrchestrationSettings, get_settings
from instructorflow.core.constraints.engine import (
    ConstraintDecision,
    ConstraintReason,
    ScreenAction,
    completion_requirements,
    evaluate,
    mastery_met,
    prune_requests,
    time_on_screen,
)
from instructorflow.core.intelligence.llm.port import (
    CancellationToken,
    GenerationError,
    GenerationPort,
)
from instructorflow.core.memory.insights import InsightExtractor
from instructorflow.core.memory.updater import MemoryUpdater
from instructorflow.core.orchestration import state_machine
from instructorflow.core.orchestration.coordinator import InteractionCoordinator
from instructorflow.core.orchestration.errors import (
    AlreadyActiveError,
    ConstraintViolationError,
    DuplicateInteractionError,
    NoHintsRemainingError,
    OrchestrationError,
    RequirementsNotMetError,
    ScreenLockedError,
    ScreenNotActiveError,
    ScreenNotFoundError,
    SessionNotActiveError,
    SessionNotFoundError,
)
from instructorflow.core.orchestration.events import EventType, InteractionEvent
from instructorflow.core.profiles.manager import ProfileManager
from instructorflow.core.profiles.models import InstructorProfile
from instructorflow.core.prompts.assembler import PromptAssembler
from instructorflow.core.prompts.request import ScreenContext, StructuredRequest
from instructorflow.core.validation.rules import ValidationContext
from instructorflow.core.validation.validator import ResponseValidator
from instructorflow.infrastructure.storage.port import StorageError, StoragePort
from instructorflow.models.interaction import Interaction, InteractionState
from instructorflow.models.memory import LearnerMemory
from instructorflow.models.screen import (
    CompletionResult,
    Hint,
    LessonPlan,
    ScreenState,
    ScreenStatus,
    ScreenView,
)
from instructorflow.models.session import Session, SessionState
from instructorflow.models.validation import ValidationAction, ValidationResult, Violation
from instructorflow.utils.clock import Clock, SystemClock
from instructorflow.utils.ids import new_id
from instructorflow.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)

MAX_HINT_LEVEL = 3

_STREAM_END = object()


@dataclass
class _Draft:
    """Outcome of the generate/validate loop for one interaction."""

    action: Optional[ValidationAction] = None
    text: str = ""
    chunks: list[str] = field(default_factory=list)
    violations: tuple[Violation, ...] = ()
    exhausted: bool = False
    generation_error: Optional[GenerationError] = None
    cancelled: bool = False


@dataclass
class _Admitted:
    session: Session
    screen: ScreenState
    interaction: Interaction
    token: CancellationToken


class SessionOrchestrator:
    """Public operations of the teaching pipeline.

    Attributes:
        storage: Persistence port.
        generator: Streaming text generation port.
        profiles: Profile store sessions snapshot from.
    """

    def __init__(
        self,
        storage: StoragePort,
        generator: GenerationPort,
        profiles: Optional[ProfileManager] = None,
        assembler: Optional[PromptAssembler] = None,
        validator: Optional[ResponseValidator] = None,
        extractor: Optional[InsightExtractor] = None,
        updater: Optional[MemoryUpdater] = None,
        coordinator: Optional[InteractionCoordinator] = None,
        clock: Optional[Clock] = None,
        settings: Optional[OrchestrationSettings] = None,
    ) -> None:
        app_settings = get_settings()
        self._settings = settings or app_settings.orchestration
        self._storage = storage
        self._generator = generator
        self._profiles = profiles or ProfileManager()
        self._assembler = assembler or PromptAssembler(
            history_token_budget=self._settings.history_token_budget,
            base_temperature=app_settings.llm.temperature,
            temperature_step=self._settings.regeneration_temperature_step,
        )
        self._validator = validator or ResponseValidator(
            high_regeneration_limit=self._settings.tier_b_regeneration_limit,
            medium_regeneration_limit=self._settings.tier_c_regeneration_limit,
        )
        self._extractor = extractor or InsightExtractor()
        self._updater = updater or MemoryUpdater()
        self._coordinator = coordinator or InteractionCoordinator()
        self._clock = clock or SystemClock()
        self._tasks: set[asyncio.Task] = set()

    @property
    def coordinator(self) -> InteractionCoordinator:
        return self._coordinator

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def create_session(
        self,
        learner_id: str,
        profile_id: str,
        plan: LessonPlan,
        session_id: Optional[str] = None,
    ) -> Session:
        """Create a session from a lesson plan.

        The instructor profile is snapshotted here and never re-read for the
        life of the session. Screens without prerequisites start unlocked.

        Raises:
            ProfileNotFoundError: If the profile does not exist.
            OrchestrationError: If the plan references unknown prerequisites.
        """
        profile = self._profiles.get_profile(profile_id)
        now = self._clock.now()
        session_id = session_id or new_id("ses")

        screen_ids = [s.id or new_id("scr") for s in plan.screens]
        if len(set(screen_ids)) != len(screen_ids):
            raise OrchestrationError("Lesson plan has duplicate screen ids", session_id)

        implicit_order = plan.sequential and not any(s.prerequisite_screen_ids for s in plan.screens)
        screens: list[ScreenState] = []
        for index, (screen_id, screen_plan) in enumerate(zip(screen_ids, plan.screens)):
            if implicit_order:
                prerequisites = [screen_ids[index - 1]] if index > 0 else []
            else:
                prerequisites = list(screen_plan.prerequisite_screen_ids)
            unknown = [p for p in prerequisites if p not in screen_ids or p == screen_id]
            if unknown:
                raise OrchestrationError(
                    f"Screen {screen_id} has invalid prerequisites: {', '.join(unknown)}",
                    session_id,
                    screen_id,
                )
            screens.append(
                ScreenState(
                    id=screen_id,
                    session_id=session_id,
                    screen_type=screen_plan.screen_type,
                    prerequisite_screen_ids=prerequisites,
                    content=screen_plan.content.model_copy(deep=True),
                    constraints=screen_plan.constraints.model_copy(deep=True),
                )
            )
        state_machine.unlock_ready(screens)

        session = Session(
            id=session_id,
            learner_id=learner_id,
            instructor_profile_id=profile.id,
            profile_snapshot=profile,
            subject=plan.subject,
            topic=plan.topic,
            learning_objective=plan.learning_objective,
            screen_order=screen_ids,
            started_at=now,
            last_activity_at=now,
        )

        await self._storage.save_screen_states(screens)
        await self._storage.save_session(session)

        logger.info(
            "Session created: session=%s, learner=%s, profile=%s, screens=%d",
            session.id,
            learner_id,
            profile.id,
            len(screens),
        )
        return session

    async def pause_session(self, session_id: str) -> Session:
        """Pause an active session, cancelling any interaction in flight."""
        async with self._coordinator.session_lock(session_id):
            session = await self._require_session(session_id)
            if session.state != SessionState.ACTIVE:
                raise SessionNotActiveError(f"Session is {session.state.value}", session_id)
            await self._cancel_in_flight(session_id, "session_paused")
            session.state = SessionState.PAUSED
            session.last_activity_at = self._clock.now()
            await self._storage.save_session(session)
            return session

    async def resume_session(self, session_id: str) -> Session:
        async with self._coordinator.session_lock(session_id):
            session = await self._require_session(session_id)
            if session.state != SessionState.PAUSED:
                raise SessionNotActiveError(f"Session is {session.state.value}", session_id)
            session.state = SessionState.ACTIVE
            session.last_activity_at = self._clock.now()
            await self._storage.save_session(session)
            return session

    async def abandon_session(self, session_id: str) -> Session:
        """End a session early. Completed and abandoned sessions cannot be abandoned."""
        async with self._coordinator.session_lock(session_id):
            session = await self._require_session(session_id)
            if session.is_terminal:
                raise SessionNotActiveError(f"Session is {session.state.value}", session_id)
            await self._cancel_in_flight(session_id, "session_abandoned")
            now = self._clock.now()
            session.state = SessionState.ABANDONED
            session.ended_at = now
            session.last_activity_at = now
            await self._storage.save_session(session)
            self._coordinator.release(session_id)
            logger.info("Session abandoned: session=%s", session_id)
            return session

    # ------------------------------------------------------------------
    # Screens
    # ------------------------------------------------------------------

    async def start_screen(self, session_id: str, screen_id: str) -> ScreenState:
        """Make a screen the session's active screen.

        Starting the screen that is already active returns it unchanged.

        Raises:
            SessionNotActiveError: If the session is not active.
            ScreenLockedError: If a prerequisite is not completed.
            AlreadyActiveError: If another screen is active or blocked.
            ScreenNotActiveError: If the screen is completed.
            ConstraintViolationError: If the screen itself is blocked.
        """
        async with self._coordinator.session_lock(session_id):
            now = self._clock.now()
            session = await self._require_active_session(session_id)
            screens = await self._storage.list_screen_states(session_id)
            screen = self._find_screen(screens, session_id, screen_id)
            await self._release_expired_blocks(screens, now)

            if screen.state == ScreenStatus.ACTIVE:
                return screen

            occupying = state_machine.occupying_screen(s for s in screens if s.id != screen.id)
            if occupying is not None:
                raise AlreadyActiveError(
                    f"Finish screen {occupying.id} before starting another",
                    session_id,
                    screen_id,
                    active_screen_id=occupying.id,
                )

            if screen.state == ScreenStatus.LOCKED or not state_machine.prerequisites_met(screen, screens):
                raise ScreenLockedError("Finish the earlier screens to unlock this one.", session_id, screen_id)

            decision = evaluate(screen, ScreenAction.START, now, self._settings.rate_limit_window_seconds)
            if not decision.allowed:
                if screen.state == ScreenStatus.BLOCKED:
                    raise self._blocked_error(screen, now)
                raise ScreenNotActiveError(decision.message, session_id, screen_id)

            state_machine.activate(screen, now)
            session.last_activity_at = now
            await self._storage.save_screen_state(screen)
            await self._storage.save_session(session)

            logger.info("Screen started: session=%s, screen=%s", session_id, screen_id)
            return screen

    async def get_screen_view(self, session_id: str, screen_id: str) -> ScreenView:
        """Derive the caller-facing booleans for a screen."""
        now = self._clock.now()
        session = await self._require_session(session_id)
        screens = await self._storage.list_screen_states(session_id)
        screen = self._find_screen(screens, session_id, screen_id)
        occupying = state_machine.occupying_screen(screens)
        return state_machine.derive_screen_view(
            screen,
            now,
            session_active=session.is_active,
            session_occupied_by=occupying.id if occupying else None,
            rate_window_seconds=self._settings.rate_limit_window_seconds,
        )

    async def complete_screen(self, session_id: str, screen_id: str) -> CompletionResult:
        """Complete the active screen and unlock what it gates.

        Requirements: minimum time on screen, required attempts, and either
        the mastery threshold or every allowed attempt used.

        Raises:
            ScreenNotActiveError: If the screen is not active.
            RequirementsNotMetError: If a requirement is unmet.
        """
        async with self._coordinator.session_lock(session_id):
            now = self._clock.now()
            session = await self._require_active_session(session_id)
            screens = await self._storage.list_screen_states(session_id)
            screen = self._find_screen(screens, session_id, screen_id)
            await self._release_expired_blocks(screens, now)

            decision = evaluate(screen, ScreenAction.COMPLETE, now, self._settings.rate_limit_window_seconds)
            if not decision.allowed and decision.violated_constraint in (
                ConstraintReason.SCREEN_NOT_ACTIVE,
                ConstraintReason.SCREEN_LOCKED,
            ):
                if screen.state == ScreenStatus.BLOCKED:
                    raise self._blocked_error(screen, now)
                raise ScreenNotActiveError(decision.message, session_id, screen_id)

            unmet = [r for r in completion_requirements(screen, now) if not r.met]
            if unmet:
                raise RequirementsNotMetError(
                    "; ".join(r.description for r in unmet),
                    unmet,
                    session_id,
                    screen_id,
                )

            cancelled = await self._cancel_in_flight(session_id, "screen_completed")
            if cancelled:
                logger.debug("Cancelled in-flight interaction on completion: %s", cancelled)

            mastery = mastery_met(screen)
            state_machine.complete(screen, mastery, now)
            unlocked = state_machine.unlock_ready(screens)

            ordered = {sid: i for i, sid in enumerate(session.screen_order)}
            available = sorted(
                (s for s in screens if s.state == ScreenStatus.UNLOCKED),
                key=lambda s: ordered.get(s.id, len(ordered)),
            )
            next_screen_id = available[0].id if available else None

            session_completed = all(s.state == ScreenStatus.COMPLETED for s in screens)
            session.last_activity_at = now
            if session_completed:
                session.state = SessionState.COMPLETED
                session.ended_at = now

            await self._storage.save_screen_states([screen, *unlocked])
            await self._storage.save_session(session)
            if session_completed:
                self._coordinator.release(session_id)

            logger.info(
                "Screen completed: session=%s, screen=%s, mastery=%s, next=%s, session_completed=%s",
                session_id,
                screen_id,
                mastery,
                next_screen_id,
                session_completed,
            )
            return CompletionResult(
                screen_id=screen_id,
                mastery_achieved=mastery,
                next_screen_id=next_screen_id,
                session_completed=session_completed,
            )

    # ------------------------------------------------------------------
    # Hints
    # ------------------------------------------------------------------

    async def request_hint(self, session_id: str, screen_id: str, level: int) -> Hint:
        """Give the learner a hint for the active screen.

        The hint is generated and validated like a response; if generation
        fails or the hint cannot be made valid, the profile's canned hint
        for the level is used instead.

        Raises:
            ValueError: If level is outside 1-3.
            ScreenNotActiveError: If the screen is not active.
            NoHintsRemainingError: If every hint has been used.
            ConstraintViolationError: If the rate limit is hit.
        """
        if not 1 <= level <= MAX_HINT_LEVEL:
            raise ValueError(f"Hint level must be between 1 and {MAX_HINT_LEVEL}, got {level}")

        async with self._coordinator.session_lock(session_id):
            now = self._clock.now()
            session = await self._require_active_session(session_id)
            screens = await self._storage.list_screen_states(session_id)
            screen = self._find_screen(screens, session_id, screen_id)
            await self._release_expired_blocks(screens, now)

            decision = evaluate(screen, ScreenAction.HINT, now, self._settings.rate_limit_window_seconds)
            if not decision.allowed and decision.violated_constraint in (
                ConstraintReason.SCREEN_NOT_ACTIVE,
                ConstraintReason.SCREEN_LOCKED,
            ):
                if screen.state == ScreenStatus.BLOCKED:
                    raise self._blocked_error(screen, now)
                raise ScreenNotActiveError(decision.message, session_id, screen_id)

            if screen.hints_remaining <= 0:
                raise NoHintsRemainingError("You've used every hint for this screen.", session_id, screen_id)

            if not decision.allowed:
                await self._reject_with_block(screen, decision, now)

            screen.progress.recent_requests = self._log_request(screen, now)
            screen.progress.hints_used += 1
            hints_remaining = screen.hints_remaining
            session.last_activity_at = now
            await self._storage.save_screen_state(screen)
            await self._storage.save_session(session)

        profile = session.profile_snapshot
        text = await self._generate_hint(session, screen, level)
        generated = text is not None
        if text is None:
            text = profile.hint_text(level, screen.content.concept)

        logger.info(
            "Hint served: session=%s, screen=%s, level=%d, generated=%s, remaining=%d",
            session_id,
            screen_id,
            level,
            generated,
            hints_remaining,
        )
        return Hint(
            screen_id=screen_id,
            level=level,
            text=text,
            hints_remaining=hints_remaining,
            generated=generated,
        )

    async def _generate_hint(self, session: Session, screen: ScreenState, level: int) -> Optional[str]:
        profile = session.profile_snapshot
        memory = await self._storage.load_memory(session.learner_id)
        request = self._assembler.assemble_hint(profile, memory, self._screen_context(session, screen), level)
        draft = await self._draft(
            request,
            CancellationToken(),
            self._validation_context(session, screen, profile, ""),
        )
        if draft.action == ValidationAction.ACCEPT:
            return draft.text
        return None

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    async def submit_interaction(
        self,
        session_id: str,
        screen_id: str,
        interaction_id: str,
        text: str,
    ) -> AsyncIterator[InteractionEvent]:
        """Submit learner text and get the interaction's event stream.

        Pre-checks and admission happen before this returns, so constraint
        errors raise here. The pipeline then runs in the background; iterate
        the returned stream to receive its events.

        Raises:
            SessionNotActiveError: If the session is not active.
            ScreenNotActiveError: If the screen is not active.
            ConstraintViolationError: If a constraint rejects the submission.
            DuplicateInteractionError: If the interaction id was used before.
        """
        admitted = await self._admit(session_id, screen_id, interaction_id, text)

        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(self._run_pipeline(admitted, queue))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return self._drain(queue)

    async def wait_idle(self) -> None:
        """Wait for every background pipeline to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @staticmethod
    async def _drain(queue: asyncio.Queue) -> AsyncIterator[InteractionEvent]:
        while True:
            item = await queue.get()
            if item is _STREAM_END:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    async def _admit(
        self,
        session_id: str,
        screen_id: str,
        interaction_id: str,
        text: str,
    ) -> _Admitted:
        async with self._coordinator.session_lock(session_id):
            now = self._clock.now()
            session = await self._require_active_session(session_id)
            screens = await self._storage.list_screen_states(session_id)
            screen = self._find_screen(screens, session_id, screen_id)
            await self._release_expired_blocks(screens, now)

            if await self._storage.load_interaction(interaction_id) is not None:
                raise DuplicateInteractionError(interaction_id, session_id, screen_id)

            if screen.state == ScreenStatus.BLOCKED:
                raise self._blocked_error(screen, now)

            decision = evaluate(screen, ScreenAction.SUBMIT, now, self._settings.rate_limit_window_seconds)
            if not decision.allowed:
                if decision.violated_constraint in (
                    ConstraintReason.SCREEN_NOT_ACTIVE,
                    ConstraintReason.SCREEN_LOCKED,
                ):
                    raise ScreenNotActiveError(decision.message, session_id, screen_id)
                await self._reject_with_block(screen, decision, now)

            admission = self._coordinator.admit(session_id, screen_id, interaction_id, text)

            if admission.superseded is not None:
                await self._mark_cancelled(admission.superseded.interaction_id, now)

            interaction = Interaction(
                id=interaction_id,
                session_id=session_id,
                screen_id=screen_id,
                generation_epoch=admission.epoch,
                input_text=text,
                created_at=now,
            )
            interaction.transition(InteractionState.GENERATING)

            screen.progress.recent_requests = self._log_request(screen, now)
            session.last_activity_at = now
            try:
                await self._storage.append_interaction(interaction)
                await self._storage.save_screen_state(screen)
                await self._storage.save_session(session)
            except Exception:
                self._coordinator.finish(session_id, admission.epoch)
                raise

            return _Admitted(session=session, screen=screen, interaction=interaction, token=admission.token)

    async def _run_pipeline(self, admitted: _Admitted, queue: asyncio.Queue) -> None:
        interaction = admitted.interaction
        session_id = interaction.session_id
        epoch = interaction.generation_epoch

        bind_context(session_id=session_id, interaction_id=interaction.id, epoch=epoch)
        try:
            # Superseded before the task first ran: the stream stays empty
            if admitted.token.is_cancelled:
                logger.debug("Interaction cancelled before start: interaction=%s", interaction.id)
                return
            queue.put_nowait(self._event(EventType.STARTED, interaction))

            draft = await self._produce(admitted)
            if draft.cancelled or admitted.token.is_cancelled:
                logger.debug("Discarding cancelled result: interaction=%s, epoch=%d", interaction.id, epoch)
                return
            events = await self._commit(admitted, draft)
            for event in events:
                queue.put_nowait(event)
        except Exception as e:
            logger.error("Interaction pipeline failed: interaction=%s, error=%s", interaction.id, str(e))
            reason = "storage_error" if isinstance(e, StorageError) else "pipeline_error"
            await self._mark_failed(interaction.id, reason)
            queue.put_nowait(e)
        finally:
            self._coordinator.finish(session_id, epoch)
            queue.put_nowait(_STREAM_END)
            clear_context()

    async def _produce(self, admitted: _Admitted) -> _Draft:
        session, screen, interaction = admitted.session, admitted.screen, admitted.interaction
        profile = session.profile_snapshot

        memory = await self._storage.load_memory(session.learner_id)
        history = await self._storage.load_history(
            session.id,
            screen.id,
            limit=self._settings.history_max_turns,
        )
        request = self._assembler.assemble(
            profile,
            memory,
            self._screen_context(session, screen),
            history,
            interaction.input_text,
        )
        context = self._validation_context(session, screen, profile, interaction.input_text)
        return await self._draft(request, admitted.token, context, interaction)

    async def _draft(
        self,
        request: StructuredRequest,
        token: CancellationToken,
        context: ValidationContext,
        interaction: Optional[Interaction] = None,
    ) -> _Draft:
        """Generate and validate until accepted, rejected, failed or cancelled."""
        regenerations = 0
        while True:
            try:
                chunks = await self._generate(request, token, interaction)
            except GenerationError as e:
                logger.warning(
                    "Generation failed: transient=%s, error=%s",
                    e.transient,
                    e.message,
                )
                return _Draft(generation_error=e)

            if token.is_cancelled:
                return _Draft(cancelled=True)

            text = "".join(chunks)
            if interaction is not None:
                interaction.transition(InteractionState.VALIDATING)

            result: ValidationResult = self._validator.validate(
                text,
                replace(context, regenerations_used=regenerations),
            )

            if result.action != ValidationAction.REGENERATE:
                return _Draft(
                    action=result.action,
                    text=text,
                    chunks=chunks,
                    violations=result.violations,
                    exhausted=result.exhausted,
                )

            regenerations += 1
            if interaction is not None:
                interaction.regenerations = regenerations
                interaction.violations = list(result.violations)
                interaction.transition(InteractionState.REGENERATING)
            logger.info(
                "Regenerating response: attempt=%d, rules=%s",
                request.attempt + 1,
                result.rule_ids,
                extra={"draft": text},
            )
            request = self._assembler.assemble_fallback(request, result.violations)

    async def _generate(
        self,
        request: StructuredRequest,
        token: CancellationToken,
        interaction: Optional[Interaction] = None,
    ) -> list[str]:
        """One generation with deadline and transient retries.

        Raises:
            GenerationError: When retries are exhausted or the error is not transient.
        """
        deadline = self._settings.generation_deadline_seconds
        retries = 0
        while True:
            try:
                return await asyncio.wait_for(self._collect(request, deadline, token), timeout=deadline)
            except asyncio.TimeoutError as e:
                error = GenerationError(
                    f"Generation exceeded {deadline:.1f}s deadline",
                    transient=True,
                    original_error=e,
                )
            except GenerationError as e:
                error = e

            if not error.transient or retries >= self._settings.transient_retries:
                raise error

            retries += 1
            if interaction is not None:
                interaction.transient_retries = retries
            delay = min(
                self._settings.backoff_base_seconds * (2 ** (retries - 1)),
                self._settings.backoff_max_seconds,
            )
            logger.info("Transient generation failure, retry %d in %.2fs: %s", retries, delay, error.message)
            await asyncio.sleep(delay)
            if token.is_cancelled:
                return []

    async def _collect(
        self,
        request: StructuredRequest,
        deadline: float,
        token: CancellationToken,
    ) -> list[str]:
        chunks: list[str] = []
        async for chunk in self._generator.generate_stream(request, deadline, token):
            if token.is_cancelled:
                break
            chunks.append(chunk)
        return chunks

    async def _commit(self, admitted: _Admitted, draft: _Draft) -> list[InteractionEvent]:
        interaction = admitted.interaction
        session_id = interaction.session_id
        epoch = interaction.generation_epoch

        async with self._coordinator.session_lock(session_id):
            if draft.cancelled or admitted.token.is_cancelled or not self._coordinator.is_current(session_id, epoch):
                logger.debug(
                    "Discarding stale result: interaction=%s, epoch=%d, current=%d",
                    interaction.id,
                    epoch,
                    self._coordinator.current_epoch(session_id),
                )
                return []

            now = self._clock.now()
            session = await self._require_session(session_id)
            screen = await self._storage.load_screen_state(session_id, interaction.screen_id)
            if screen is None:
                raise ScreenNotFoundError("Screen disappeared", session_id, interaction.screen_id)
            profile = session.profile_snapshot
            session.last_activity_at = now

            if draft.action == ValidationAction.ACCEPT:
                return await self._commit_accepted(session, screen, interaction, draft, now)

            interaction.result_text = profile.templates.safe_fallback
            if draft.generation_error is not None:
                interaction.failure_reason = (
                    "generation_failed_transient" if draft.generation_error.transient else "generation_failed"
                )
            else:
                interaction.failure_reason = "validation_exhausted" if draft.exhausted else "validation_rejected"
                interaction.violations = list(draft.violations)
                interaction.consumed_attempt = True
                screen.progress.attempts += 1
                screen.progress.last_attempt_at = now
                screen.progress.time_spent_seconds = time_on_screen(screen, now)
            interaction.transition(InteractionState.FAILED, now)

            await self._storage.commit_interaction(interaction, screen, None, session)
            logger.info(
                "Interaction fell back: reason=%s, attempts=%d",
                interaction.failure_reason,
                screen.progress.attempts,
            )

            events = []
            if draft.action is not None:
                events.append(
                    self._event(
                        EventType.VALIDATED,
                        interaction,
                        action=draft.action,
                        regenerations=interaction.regenerations,
                    )
                )
            events.append(
                self._event(
                    EventType.FALLBACK,
                    interaction,
                    text=interaction.result_text,
                    attempts=screen.progress.attempts,
                )
            )
            return events

    async def _commit_accepted(
        self,
        session: Session,
        screen: ScreenState,
        interaction: Interaction,
        draft: _Draft,
        now: datetime,
    ) -> list[InteractionEvent]:
        # One memory update per learner at a time, across sessions
        async with self._coordinator.learner_lock(session.learner_id):
            memory = await self._storage.load_memory(session.learner_id) or LearnerMemory(
                learner_id=session.learner_id,
                last_updated=now,
            )
            insights, metadata = self._extractor.extract(
                interaction.input_text,
                draft.text,
                concept=screen.content.concept,
                expected_answer=screen.content.expected_answer,
                memory=memory,
                mastery_threshold=screen.constraints.mastery_threshold,
            )

            interaction.result_text = draft.text
            interaction.violations = []
            interaction.score = insights.score
            interaction.teaching_metadata = metadata
            interaction.consumed_attempt = True
            interaction.transition(InteractionState.COMMITTED, now)

            progress = screen.progress
            progress.attempts += 1
            progress.best_score = max(progress.best_score, insights.score)
            progress.last_attempt_at = now
            progress.time_spent_seconds = time_on_screen(screen, now)
            if insights.score >= screen.constraints.mastery_threshold:
                concept = screen.content.concept
                if concept and concept not in progress.concepts_demonstrated:
                    progress.concepts_demonstrated.append(concept)

            updated = self._updater.update(memory, interaction, insights, now)
            await self._storage.commit_interaction(
                interaction,
                screen,
                updated if updated is not memory else None,
                session,
            )

        logger.info(
            "Interaction committed: score=%d, attempts=%d, regenerations=%d",
            insights.score,
            progress.attempts,
            interaction.regenerations,
        )

        events = [self._event(EventType.CHUNK, interaction, text=chunk) for chunk in draft.chunks if chunk]
        events.append(
            self._event(
                EventType.VALIDATED,
                interaction,
                action=ValidationAction.ACCEPT,
                regenerations=interaction.regenerations,
            )
        )
        events.append(
            self._event(
                EventType.COMMITTED,
                interaction,
                text=interaction.result_text,
                attempts=progress.attempts,
                score=insights.score,
            )
        )
        return events

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _event(
        event_type: EventType,
        interaction: Interaction,
        text: Optional[str] = None,
        action: Optional[ValidationAction] = None,
        regenerations: int = 0,
        attempts: Optional[int] = None,
        score: Optional[int] = None,
    ) -> InteractionEvent:
        return InteractionEvent(
            type=event_type,
            interaction_id=interaction.id,
            epoch=interaction.generation_epoch,
            text=text,
            action=action,
            regenerations=regenerations,
            attempts=attempts,
            score=score,
        )

    async def _require_session(self, session_id: str) -> Session:
        session = await self._storage.load_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found", session_id)
        return session

    async def _require_active_session(self, session_id: str) -> Session:
        session = await self._require_session(session_id)
        if session.state != SessionState.ACTIVE:
            raise SessionNotActiveError(f"Session is {session.state.value}", session_id)
        return session

    @staticmethod
    def _find_screen(screens: list[ScreenState], session_id: str, screen_id: str) -> ScreenState:
        for screen in screens:
            if screen.id == screen_id:
                return screen
        raise ScreenNotFoundError(f"Screen {screen_id} not found", session_id, screen_id)

    async def _release_expired_blocks(self, screens: list[ScreenState], now: datetime) -> None:
        released = [s for s in screens if state_machine.release_expired_block(s, now)]
        if released:
            await self._storage.save_screen_states(released)
            for screen in released:
                logger.info("Screen unblocked: session=%s, screen=%s", screen.session_id, screen.id)

    async def _reject_with_block(
        self,
        screen: ScreenState,
        decision: ConstraintDecision,
        now: datetime,
    ) -> None:
        """Block the screen for rate-limit and cooldown hits, then raise."""
        if state_machine.block(screen, decision, now):
            await self._storage.save_screen_state(screen)
            logger.info(
                "Screen blocked: session=%s, screen=%s, reason=%s, until=%s",
                screen.session_id,
                screen.id,
                screen.blocked_reason,
                screen.blocked_until,
            )
        raise ConstraintViolationError(
            decision.violated_constraint,
            decision.message,
            retry_after=decision.retry_after,
            session_id=screen.session_id,
            screen_id=screen.id,
        )

    def _blocked_error(self, screen: ScreenState, now: datetime) -> ConstraintViolationError:
        retry_after = None
        if screen.blocked_until is not None:
            retry_after = max((screen.blocked_until - now).total_seconds(), 0.0)
        try:
            reason = ConstraintReason(screen.blocked_reason)
        except ValueError:
            reason = ConstraintReason.SCREEN_NOT_ACTIVE
        decision = evaluate(screen, ScreenAction.SUBMIT, now, self._settings.rate_limit_window_seconds)
        return ConstraintViolationError(
            reason,
            decision.message,
            retry_after=retry_after,
            session_id=screen.session_id,
            screen_id=screen.id,
        )

    def _log_request(self, screen: ScreenState, now: datetime) -> list:
        recent = prune_requests(
            screen.progress.recent_requests,
            now,
            self._settings.rate_limit_window_seconds,
        )
        recent.append(now)
        return recent

    async def _mark_cancelled(self, interaction_id: str, now: datetime) -> None:
        prior = await self._storage.load_interaction(interaction_id)
        if prior is None or prior.is_terminal:
            return
        prior.transition(InteractionState.CANCELLED, now)
        prior.failure_reason = "superseded"
        await self._storage.save_interaction(prior)

    async def _mark_failed(self, interaction_id: str, reason: str) -> None:
        """Record a terminal failure for an interaction whose commit did not happen.

        Only the interaction row is written; screen progress and memory stay
        as they were. A failure here is logged and the original error wins.
        """
        try:
            persisted = await self._storage.load_interaction(interaction_id)
            if persisted is None or persisted.is_terminal:
                return
            persisted.transition(InteractionState.FAILED, self._clock.now())
            persisted.failure_reason = reason
            await self._storage.save_interaction(persisted)
        except StorageError as e:
            logger.error(
                "Could not record failed interaction: interaction=%s, error=%s",
                interaction_id,
                str(e),
            )

    async def _cancel_in_flight(self, session_id: str, reason: str) -> Optional[str]:
        cancelled = self._coordinator.cancel_previous(session_id, reason)
        if cancelled is None:
            return None
        await self._mark_cancelled(cancelled.interaction_id, self._clock.now())
        return cancelled.interaction_id

    @staticmethod
    def _screen_context(session: Session, screen: ScreenState) -> ScreenContext:
        return ScreenContext(
            subject=session.subject,
            topic=session.topic,
            screen_type=screen.screen_type.value,
            concept=screen.content.concept,
            learning_objective=screen.content.learning_objective or session.learning_objective,
            problem=screen.content.problem,
            instructions=screen.content.instructions,
            attempts=screen.progress.attempts,
        )

    @staticmethod
    def _validation_context(
        session: Session,
        screen: ScreenState,
        profile: InstructorProfile,
        learner_input: str,
    ) -> ValidationContext:
        return ValidationContext(
            profile=profile,
            subject=session.subject,
            topic=session.topic,
            concept=screen.content.concept,
            problem=screen.content.problem,
            learner_input=learner_input,
            expected_answer=screen.content.expected_answer,
        )
