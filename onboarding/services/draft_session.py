"""
Draft Session - Per-Screen Working Copy with Debounced Auto-Save

Mutators merge into the in-memory draft synchronously and restart a single
debounce timer; a burst of mutations is persisted as one write of the latest
state. ``save_draft`` is the explicit save-point and bypasses the timer.

States: uninitialized -> loading -> ready <-> saving. A failed background
save moves the session to ``error`` until ``clear_error`` is called; the
working copy is kept and the next debounce cycle retries.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

from onboarding.core.config import get_settings
from onboarding.core.errors import NotFoundError, PersistenceError
from onboarding.models.enums import SessionState
from onboarding.schemas.base import utcnow
from onboarding.schemas.property import PropertyArea, PropertyData, PropertyDraft
from onboarding.services.draft_store import DraftStore

AUTOSAVE_FAILED_MESSAGE = "Failed to auto-save draft"


class DraftSession:
    """Working copy of one draft for one screen instance."""

    def __init__(
        self,
        store: DraftStore,
        owner_id: str,
        autosave_delay: Optional[float] = None,
        enable_autosave: bool = True,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.owner_id = owner_id
        self.autosave_delay = (
            autosave_delay if autosave_delay is not None else get_settings().autosave_delay_seconds
        )
        self.enable_autosave = enable_autosave
        self.logger = logger or logging.getLogger(__name__)

        self.error: Optional[str] = None
        self.last_saved_at: Optional[datetime] = None

        self._draft: Optional[PropertyDraft] = None
        self._loading = False
        self._saving = False
        self._dirty = False
        self._revision = 0
        self._closed = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._save_task: Optional[asyncio.Task] = None
        self._write_lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def draft(self) -> Optional[PropertyDraft]:
        return self._draft

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def is_saving(self) -> bool:
        return self._saving

    @property
    def has_pending_changes(self) -> bool:
        return self._dirty

    @property
    def state(self) -> SessionState:
        if self._loading:
            return SessionState.LOADING
        if self._saving:
            return SessionState.SAVING
        if self.error:
            return SessionState.ERROR
        if self._draft is not None:
            return SessionState.READY
        return SessionState.UNINITIALIZED

    def clear_error(self) -> None:
        """User acknowledged the error notice."""
        self.error = None

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load(self, draft_id: str) -> bool:
        """Load a draft by id. Returns False when there is none or the read failed."""
        self._loading = True
        try:
            draft = await self.store.load_draft(self.owner_id, draft_id)
        except PersistenceError as e:
            self.logger.error(f"[SESSION] Draft load failed: {e}", extra={"draft_id": draft_id})
            self.error = str(e)
            return False
        finally:
            self._loading = False

        if draft is None:
            self.logger.info("[SESSION] Draft not found", extra={"draft_id": draft_id})
            return False

        self._adopt(draft, dirty=False)
        self.last_saved_at = draft.updated_at
        return True

    async def resume_current(self) -> PropertyDraft:
        """Resume the draft named by the user's current-draft pointer.

        Raises NotFoundError when there is nothing to resume or the draft
        was abandoned past the attributes step without areas; the caller
        routes the user back to step 1.
        """
        self._loading = True
        try:
            pointer = await self.store.get_current_pointer(self.owner_id)
            draft = await self.store.load_draft(self.owner_id, pointer.draft_id) if pointer else None
        except PersistenceError as e:
            self.logger.error(f"[SESSION] Resume failed: {e}")
            self.error = str(e)
            raise NotFoundError("Draft could not be read") from e
        finally:
            self._loading = False

        if draft is None:
            raise NotFoundError()
        if not draft.is_resumable:
            self.logger.info(
                "[SESSION] Draft is not resumable, restarting onboarding",
                extra={"draft_id": draft.id, "step": draft.current_step},
            )
            raise NotFoundError("Draft has no areas")

        self._adopt(draft, dirty=False)
        self.last_saved_at = draft.updated_at
        return draft

    def start_new(self, property_data: Optional[PropertyData] = None) -> PropertyDraft:
        """Begin a fresh draft; it is written on the next debounce cycle."""
        draft = DraftStore.create_draft(self.owner_id, property_data)
        self._adopt(draft, dirty=True)
        self.last_saved_at = None
        self.error = None
        self._schedule_autosave()
        return draft

    def attach(self, draft: PropertyDraft) -> None:
        """Adopt a draft obtained elsewhere (e.g. already loaded by the reconciler)."""
        if draft.owner_id != self.owner_id:
            raise ValueError("Draft belongs to another user")
        self._adopt(draft, dirty=False)

    def _adopt(self, draft: PropertyDraft, dirty: bool) -> None:
        self._cancel_timer()
        self._draft = draft
        self._dirty = dirty
        self._revision += 1

    # -------------------------------------------------------------------------
    # Mutators
    # -------------------------------------------------------------------------

    def _mutate(self, **changes: Any) -> None:
        if self._draft is None:
            self.logger.warning("[SESSION] Mutation ignored: no draft loaded")
            return
        changes["updated_at"] = utcnow()
        self._draft = self._draft.model_copy(update=changes)
        self._dirty = True
        self._revision += 1
        self._schedule_autosave()

    def update_property_data(self, **fields: Any) -> None:
        """Merge fields into ``property_data`` (e.g. ``name=...``, ``bedrooms=3``)."""
        if self._draft is None:
            self.logger.warning("[SESSION] Mutation ignored: no draft loaded")
            return
        merged = self._draft.property_data.model_dump()
        merged.update(fields)
        self._mutate(property_data=PropertyData.model_validate(merged))

    def update_areas(self, areas: list[PropertyArea]) -> None:
        self._mutate(areas=[area.model_copy(deep=True) for area in areas])

    def update_current_step(self, step: int) -> None:
        if step < 0:
            raise ValueError("step must be non-negative")
        self._mutate(current_step=step)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule_autosave(self) -> None:
        if not self.enable_autosave or self._closed or self._draft is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; the change stays pending until the next save
            return
        self._cancel_timer()
        self._timer = loop.call_later(self.autosave_delay, self._fire_autosave)

    def _fire_autosave(self) -> None:
        self._timer = None
        self._save_task = asyncio.ensure_future(self._background_save())

    async def _background_save(self) -> None:
        if self._closed or not self._dirty or self._draft is None:
            return
        try:
            await self._write()
        except PersistenceError as e:
            self.logger.error(f"[SESSION] Auto-save failed: {e}", extra={"draft_id": self._draft.id})
            self.error = AUTOSAVE_FAILED_MESSAGE

    async def _write(self) -> PropertyDraft:
        async with self._write_lock:
            if self._draft is None:
                raise PersistenceError("No draft to save")
            revision = self._revision
            snapshot = self._draft.model_copy(deep=True)
            self._saving = True
            try:
                stored = await self.store.save_draft(snapshot)
                await self.store.set_current_pointer(self.owner_id, stored.id, stored.current_step)
            finally:
                self._saving = False

            self.last_saved_at = stored.updated_at
            if self._revision == revision:
                self._dirty = False
            return stored

    async def save_draft(self) -> PropertyDraft:
        """Save now, bypassing the debounce; raises PersistenceError on failure."""
        self._cancel_timer()
        try:
            stored = await self._write()
        except PersistenceError as e:
            self.error = str(e)
            raise
        self.error = None
        self.logger.info("[SESSION] Draft saved", extra={"draft_id": stored.id})
        return stored

    async def wait_for_autosave(self) -> None:
        """Block until a scheduled auto-save has fired and finished."""
        loop = asyncio.get_running_loop()
        while True:
            if self._timer is not None:
                await asyncio.sleep(max(0.0, self._timer.when() - loop.time()) + 0.001)
                continue
            task = self._save_task
            if task is not None and not task.done():
                await task
                continue
            return

    async def delete_draft(self) -> None:
        """Delete the stored draft and reset the session."""
        if self._draft is None:
            return
        self._cancel_timer()
        await self.store.delete_draft(self.owner_id, self._draft.id)
        self._draft = None
        self._dirty = False
        self.last_saved_at = None

    async def close(self) -> None:
        """Teardown: persist pending changes once, then stop auto-saving."""
        self._cancel_timer()
        if self._dirty and self._draft is not None and not self._closed:
            try:
                await self._write()
            except PersistenceError as e:
                self.logger.error(f"[SESSION] Final save on close failed: {e}")
        self._closed = True
