from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Set, Tuple

from genspecs.core.credentials import StringStorage
from genspecs.core.errors import PersistenceError
from genspecs.core.event_bus import EventBus
from genspecs.core.generation_state import (
    DOCUMENT_ORDER,
    PROJECT_DETAILS_STEP,
    DocumentState,
    DocumentStatus,
    DocumentType,
    GenerationState,
    ProjectDetails,
    create_initial_state,
    dump_state,
    load_state,
    next_document,
    step_icon,
)
from genspecs.generators.registry import get_descriptor, run_generator
from genspecs.llm.adapter import ClientFactory
from genspecs.llm.retry import RetryPolicy
from genspecs.utils import download
from genspecs.utils.logging import get_logger
from genspecs.utils.schemas import GenerationSnapshot

LOGGER = get_logger(__name__)

STORAGE_KEY = "generation_state"

Mutation = Callable[[GenerationState], Optional[GenerationState]]


class CredentialProvider(Protocol):
    @property
    def api_key(self) -> Optional[str]: ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _merge_document(state: GenerationState, doc_type: DocumentType, **changes: Any) -> None:
    current = state.documents[doc_type]
    merged = {**current.model_dump(), **changes, "type": doc_type, "last_updated": _now()}
    state.documents[doc_type] = DocumentState.model_validate(merged)


def _activate(state: GenerationState, step_id: str) -> None:
    state.current_step = step_id
    for step in state.steps:
        step.is_active = step.id == step_id


def _complete_step_for(state: GenerationState, doc_type: DocumentType) -> None:
    step = state.step_for(doc_type)
    if step is not None:
        step.is_completed = True


def _sync_step_completion(state: GenerationState) -> None:
    # A completed document step always has an accepted document
    for step in state.steps:
        if step.document_type is None or not step.is_completed:
            continue
        if state.documents[step.document_type].status != "accepted":
            step.is_completed = False


class GenerationPipeline:
    """Owns the wizard's :class:`GenerationState` and sequences generation.

    Every change goes through :meth:`_commit`, which applies a mutation under
    a lock, persists the result and then calls :meth:`on_status_change` for
    each document whose status moved. ``generating`` schedules the matching
    generator in a background task (one per document type); ``accepted``
    cascades into the next document while it is still ``idle``.
    """

    def __init__(
        self,
        storage: StringStorage,
        credentials: CredentialProvider,
        client_factory: ClientFactory,
        *,
        policy: Optional[RetryPolicy] = None,
        auto_accept: bool = True,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self._storage = storage
        self._credentials = credentials
        self._client_factory = client_factory
        self._policy = policy
        self._auto_accept = auto_accept
        self._events = event_bus or EventBus()
        self._state = create_initial_state()
        self._lock = asyncio.Lock()
        self._tasks: Dict[DocumentType, asyncio.Task[None]] = {}
        # Every generation task until it has folded its result and cascaded
        self._background: Set[asyncio.Task[None]] = set()

    @property
    def state(self) -> GenerationState:
        return self._state.model_copy(deep=True)

    def snapshot(self) -> GenerationSnapshot:
        state = self._state
        icons = {
            step.id: step_icon(state.documents[step.document_type].status)
            for step in state.steps
            if step.document_type is not None
        }
        return GenerationSnapshot.model_validate(
            {
                **state.model_dump(),
                "step_icons": icons,
                "can_download": download.is_ready(state),
            }
        )

    def in_flight(self) -> List[DocumentType]:
        return [t for t, task in self._tasks.items() if not task.done()]

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #
    async def load(self) -> GenerationState:
        raw = await self._storage.get(STORAGE_KEY)
        state = create_initial_state()
        if raw:
            try:
                state = load_state(raw)
            except PersistenceError as exc:
                LOGGER.warning("Discarding persisted generation state: %s", exc)
        async with self._lock:
            self._state = state

        # Generations interrupted by a restart are started again
        for doc_type in DOCUMENT_ORDER:
            if state.documents[doc_type].status == "generating":
                LOGGER.info("Resuming interrupted %s generation", doc_type.value)
                self._schedule_generation(doc_type)
        return self.state

    async def _persist(self) -> None:
        try:
            await self._storage.set(STORAGE_KEY, dump_state(self._state))
        except Exception:
            LOGGER.exception("Failed to persist generation state")

    async def _commit(self, mutate: Mutation, reason: str) -> GenerationState:
        async with self._lock:
            before = self._state
            draft = before.model_copy(deep=True)
            replaced = mutate(draft)
            after = replaced if replaced is not None else draft
            _sync_step_completion(after)
            self._state = after
            await self._persist()

        changes: List[Tuple[DocumentType, DocumentStatus, DocumentStatus]] = [
            (t, before.documents[t].status, after.documents[t].status)
            for t in DOCUMENT_ORDER
            if before.documents[t].status != after.documents[t].status
        ]
        LOGGER.debug("Committed '%s' (%d status changes)", reason, len(changes))
        await self._events.emit(
            reason,
            source="pipeline",
            event_type="state",
            data=self.snapshot().model_dump(mode="json", by_alias=True),
        )
        for doc_type, old, new in changes:
            await self.on_status_change(doc_type, old, new)
        return self.state

    # ------------------------------------------------------------------ #
    # Status dispatch
    # ------------------------------------------------------------------ #
    async def on_status_change(self, doc_type: DocumentType, old: DocumentStatus, new: DocumentStatus) -> None:
        LOGGER.info("Document %s: %s -> %s", doc_type.value, old, new)
        if new == "generating":
            self._schedule_generation(doc_type)
        elif new == "accepted":
            await self._auto_advance(doc_type)

    async def _auto_advance(self, doc_type: DocumentType) -> None:
        nxt = next_document(doc_type)
        if nxt is None or self._state.documents[nxt].status != "idle":
            return

        def mutate(state: GenerationState) -> None:
            if state.documents[doc_type].status != "accepted" or state.documents[nxt].status != "idle":
                return
            _merge_document(state, nxt, status="generating", error=None)
            step = state.step_for(nxt)
            if step is not None:
                _activate(state, step.id)

        await self._commit(mutate, f"{doc_type.value} accepted; starting {nxt.value}")

    def _schedule_generation(self, doc_type: DocumentType) -> None:
        running = self._tasks.get(doc_type)
        if running is not None and not running.done():
            LOGGER.info("%s generation already in flight; ignoring request", doc_type.value)
            return

        task = asyncio.create_task(self._generate(doc_type), name=f"generate-{doc_type.value}")
        self._tasks[doc_type] = task
        self._background.add(task)

        def _forget(done: asyncio.Task[None]) -> None:
            self._background.discard(done)
            if self._tasks.get(doc_type) is done:
                self._tasks.pop(doc_type, None)

        task.add_done_callback(_forget)

    async def _generate(self, doc_type: DocumentType) -> None:
        state = self._state
        descriptor = get_descriptor(doc_type)
        dependency_state = None
        if descriptor.dependency is not None:
            dependency_state = state.documents[descriptor.dependency.type].model_copy()

        result = await run_generator(
            descriptor,
            state.project_details.model_copy(deep=True),
            dependency_state,
            api_key=self._credentials.api_key,
            client_factory=self._client_factory,
            existing_content=state.documents[doc_type].content,
            policy=self._policy,
        )

        # From here on a new request for this type may start its own task
        if self._tasks.get(doc_type) is asyncio.current_task():
            self._tasks.pop(doc_type, None)
        await self._fold_result(doc_type, result)

    async def _fold_result(self, doc_type: DocumentType, result: DocumentState) -> None:
        stale = False

        def mutate(state: GenerationState) -> None:
            nonlocal stale
            if state.documents[doc_type].status != "generating":
                stale = True
                return
            if result.status == "error":
                _merge_document(state, doc_type, content=result.content, status="error", error=result.error)
            elif self._auto_accept:
                _merge_document(state, doc_type, content=result.content, status="accepted", error=None)
                _complete_step_for(state, doc_type)
            else:
                _merge_document(state, doc_type, content=result.content, status="draft", error=None)

        await self._commit(mutate, f"{doc_type.value} generation finished ({result.status})")
        if stale:
            LOGGER.info("Discarded %s result: document is no longer generating", doc_type.value)
        elif result.status == "error":
            await self._events.emit(
                f"{doc_type.value} generation failed: {result.error}",
                source=doc_type.value,
                level="error",
            )

    # ------------------------------------------------------------------ #
    # Actions
    # ------------------------------------------------------------------ #
    async def update_document(self, doc_type: DocumentType | str, **changes: Any) -> GenerationState:
        doc_type = DocumentType(doc_type)
        return await self._commit(
            lambda state: _merge_document(state, doc_type, **changes),
            f"{doc_type.value} updated",
        )

    async def accept_document(self, doc_type: DocumentType | str) -> GenerationState:
        doc_type = DocumentType(doc_type)

        def mutate(state: GenerationState) -> None:
            _merge_document(state, doc_type, status="accepted", error=None)
            _complete_step_for(state, doc_type)

        return await self._commit(mutate, f"{doc_type.value} accepted")

    async def regenerate_document(self, doc_type: DocumentType | str) -> GenerationState:
        doc_type = DocumentType(doc_type)
        return await self._commit(
            lambda state: _merge_document(state, doc_type, status="generating", error=None),
            f"{doc_type.value} regeneration requested",
        )

    async def set_current_step(self, step_id: str) -> GenerationState:
        self._state.step_index(step_id)
        return await self._commit(lambda state: _activate(state, step_id), f"step {step_id} active")

    async def complete_step(self, step_id: str) -> GenerationState:
        idx = self._state.step_index(step_id)

        def mutate(state: GenerationState) -> None:
            state.steps[idx].is_completed = True

        return await self._commit(mutate, f"step {step_id} completed")

    async def update_project_details(self, **changes: Any) -> GenerationState:
        updates = {k: v for k, v in changes.items() if v is not None}

        def mutate(state: GenerationState) -> None:
            state.project_details = ProjectDetails.model_validate(
                {**state.project_details.model_dump(), **updates}
            )

        return await self._commit(mutate, "project details updated")

    async def submit_project_details(self, details: ProjectDetails) -> GenerationState:
        """Store the details and move on to the first document, which starts README generation."""

        def mutate(state: GenerationState) -> None:
            state.project_details = details.model_copy(deep=True)
            state.steps[state.step_index(PROJECT_DETAILS_STEP)].is_completed = True

        await self._commit(mutate, "project details submitted")
        first = self._state.step_for(DOCUMENT_ORDER[0])
        assert first is not None
        return await self.handle_step_change(first.id)

    async def handle_step_change(self, step_id: str) -> GenerationState:
        """Navigate the wizard.

        Moving forward accepts the document of the step being left and starts
        the target document if it is still ``idle``. Moving backward only
        changes the active step.
        """
        state = self._state
        target_idx = state.step_index(step_id)
        try:
            current_idx = state.step_index(state.current_step)
        except KeyError:
            current_idx = -1

        if target_idx <= current_idx:
            return await self.set_current_step(step_id)

        if current_idx >= 0:
            leaving = state.steps[current_idx].document_type
            # A document still generating is accepted or drafted when its result lands
            if leaving is not None and state.documents[leaving].status not in ("accepted", "generating"):
                await self.accept_document(leaving)

        target = self._state.steps[target_idx].document_type

        def mutate(state: GenerationState) -> None:
            if target is not None and state.documents[target].status == "idle":
                _merge_document(state, target, status="generating", error=None)
            _activate(state, step_id)

        return await self._commit(mutate, f"navigated to {step_id}")

    async def reset(self) -> GenerationState:
        await self._cancel_tasks()
        return await self._commit(lambda _state: create_initial_state(), "pipeline reset")

    # ------------------------------------------------------------------ #
    # Task lifecycle
    # ------------------------------------------------------------------ #
    async def wait_idle(self) -> None:
        """Wait until no generation is running, including cascaded ones."""
        while self._background:
            tasks = list(self._background)
            await asyncio.gather(*tasks, return_exceptions=True)
            self._background.difference_update(tasks)

    async def _cancel_tasks(self) -> None:
        self._tasks.clear()
        while self._background:
            tasks = list(self._background)
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            self._background.difference_update(tasks)

    async def shutdown(self) -> None:
        await self._cancel_tasks()
