# services/sync_controller.py
from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple, Union

from catalog_service import CatalogService
from config import settings
from results import Err, Failure, FailureKind
from schemas import Product, ProductDraft, ProductId
from services.catalog_store import CatalogStore
from services.notifications import Severity, ToastFeed
from services.view_projector import ViewProjector
from utils import get_logger

logger = get_logger("catalog.sync")

SAVE_LABEL = "Save Product"
UPDATE_LABEL = "Update Product"
ADDING_LABEL = "Adding..."
UPDATING_LABEL = "Updating..."
DELETE_PROMPT = "Are you sure you want to delete this product? This action cannot be undone."

Confirm = Callable[[str], Union[bool, Awaitable[bool]]]


class OperationState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    CONFIRMING = "confirming"
    SUBMITTING = "submitting"
    COMMITTED = "committed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    # Same action already in flight for the same record.
    REFUSED = "refused"


@dataclass
class Operation:
    action: str
    product_id: Optional[ProductId] = None
    state: OperationState = OperationState.IDLE
    failure: Optional[Failure] = None
    product: Optional[Product] = None


@dataclass
class FormControls:
    open: bool = False
    disabled: bool = False
    submit_label: str = SAVE_LABEL


@dataclass
class EditSession:
    """Record fetched for editing; never part of the store."""
    product_id: ProductId
    loading: bool = True
    draft: Optional[ProductDraft] = None
    error: Optional[str] = None


# ---------- failure -> user text ----------

_FAILURE_TEXT: Dict[FailureKind, Tuple[str, str]] = {
    FailureKind.OFFLINE: ("Connection Error", "No internet connection. Please check your network and try again."),
    FailureKind.NETWORK: ("Network Error", "Unable to connect to the server. Please try again later."),
    FailureKind.SERVER_STATUS: ("Server Error", "Server error (status {status}). Please try again or contact support."),
    FailureKind.MALFORMED: ("Invalid Response", "The server returned data that could not be read."),
}

_LIST_FAILURE_TEXT: Dict[FailureKind, str] = {
    FailureKind.OFFLINE: "No internet connection. Please check your network connection.",
    FailureKind.NETWORK: "Unable to connect to the product database. Please try again later.",
    FailureKind.SERVER_STATUS: "Server error while loading products (status {status}).",
    FailureKind.MALFORMED: "The server returned product data that could not be read.",
}


def describe_failure(failure: Failure, action: str = "") -> Tuple[str, str]:
    """
    Title and message shown to the operator for a failed remote call.
    """
    title, message = _FAILURE_TEXT.get(failure.kind, ("Error", "Unknown error occurred."))
    if failure.kind is FailureKind.NETWORK and action == "delete":
        message = "Unable to connect to the server. The product may still exist."
    return title, message.format(status=failure.status_code)


class SyncController:
    """
    Drives list/create/edit/update/delete against the remote catalog.

    The store and both projections are only touched on a committed
    transition; every other outcome leaves them exactly as they were.
    """

    def __init__(
        self,
        client: CatalogService,
        store: Optional[CatalogStore] = None,
        projector: Optional[ViewProjector] = None,
        notifier: Optional[ToastFeed] = None,
        page_size: Optional[int] = None,
    ):
        self.client = client
        self.store = store if store is not None else CatalogStore()
        self.projector = projector if projector is not None else ViewProjector()
        self.notifier = notifier if notifier is not None else ToastFeed()
        self.page_size = page_size or settings.page_size
        self.controls = FormControls()
        self.edit_session: Optional[EditSession] = None
        self.list_state = OperationState.IDLE
        self._in_flight: Set[str] = set()

    # -------------------- helpers --------------------
    def _transition(self, op: Operation, state: OperationState) -> None:
        logger.debug("%s[%s]: %s -> %s", op.action, op.product_id, op.state.value, state.value)
        op.state = state

    def _claim(self, op: Operation) -> bool:
        key = op.action if op.product_id is None else f"{op.action}:{op.product_id}"
        if key in self._in_flight:
            logger.warning("Refusing %s: already in flight", key)
            self._transition(op, OperationState.REFUSED)
            return False
        self._in_flight.add(key)
        return True

    def _release(self, op: Operation) -> None:
        key = op.action if op.product_id is None else f"{op.action}:{op.product_id}"
        self._in_flight.discard(key)

    def _fail(self, op: Operation, failure: Failure, verb: str) -> None:
        op.failure = failure
        self._transition(op, OperationState.FAILED)
        title, message = describe_failure(failure, op.action)
        logger.warning("%s[%s] failed: %s", op.action, op.product_id, failure)
        self.notifier.notify(title, f"Failed to {verb} product: {message}", Severity.ERROR)

    def _not_found(self, op: Operation) -> None:
        # Local invariant miss; never surfaced as a transport error.
        logger.warning("%s[%s]: %s", op.action, op.product_id,
                       Failure(FailureKind.NOT_FOUND, "product is not in the store"))

    def _views_settled(self) -> bool:
        return not self.projector.loading and self.projector.error_panel is None

    def _verify(self) -> None:
        if not self.projector.is_consistent_with(self.store.snapshot()):
            logger.warning("Projections diverged from the store; re-rendering")
            self.projector.render_all(self.store.snapshot())

    def close_editor(self) -> None:
        self.controls = FormControls()
        self.edit_session = None

    def open_create(self) -> None:
        self.edit_session = None
        self.controls = FormControls(open=True, submit_label=SAVE_LABEL)

    # -------------------- list --------------------
    async def load(self) -> Operation:
        op = Operation("list")
        if not self._claim(op):
            return op
        try:
            self._transition(op, OperationState.LOADING)
            self.list_state = OperationState.LOADING
            self.projector.show_loading()
            result = await self.client.list(self.page_size)
            if isinstance(result, Err):
                op.failure = result.failure
                self._transition(op, OperationState.FAILED)
                logger.warning("Loading products failed: %s", result.failure)
                message = _LIST_FAILURE_TEXT.get(result.failure.kind, "Unknown error occurred while loading products.")
                self.projector.show_error_panel(
                    "Failed to Load Products",
                    message.format(status=result.failure.status_code),
                    result.failure.detail,
                )
            else:
                self.store.replace_all(result.value)
                self.projector.render_all(self.store.snapshot())
                self._transition(op, OperationState.LOADED)
                logger.info("Loaded %d products", len(self.store))
        finally:
            self.list_state = op.state
            self._release(op)
        return op

    def start_fresh(self) -> Operation:
        op = Operation("list")
        self.store.replace_all([])
        self.projector.render_all([])
        self._transition(op, OperationState.LOADED)
        self.list_state = op.state
        return op

    # -------------------- edit (transient) --------------------
    async def begin_edit(self, product_id: ProductId) -> Operation:
        op = Operation("edit", product_id)
        if not self._claim(op):
            return op
        session = EditSession(product_id=product_id)
        self.edit_session = session
        self.controls = FormControls(open=True, submit_label=UPDATE_LABEL)
        try:
            self._transition(op, OperationState.LOADING)
            result = await self.client.get(product_id)
            if self.edit_session is not session:
                logger.debug("Edit of %s superseded before the record arrived", product_id)
                self._transition(op, OperationState.CANCELLED)
                return op
            session.loading = False
            if isinstance(result, Err):
                op.failure = result.failure
                _, message = describe_failure(result.failure, op.action)
                session.error = message
                self._fail(op, result.failure, "load")
                return op
            op.product = result.value
            session.draft = ProductDraft.from_product(result.value)
            self._transition(op, OperationState.LOADED)
        finally:
            self._release(op)
        return op

    # -------------------- create / update --------------------
    async def _submit(self, op: Operation, progress_label: str, call: Callable[[], Awaitable[Any]]) -> Any:
        original_label = self.controls.submit_label
        self.controls.disabled = True
        self.controls.submit_label = progress_label
        self._transition(op, OperationState.SUBMITTING)
        try:
            return await call()
        finally:
            self.controls.disabled = False
            self.controls.submit_label = original_label

    async def create(self, draft: ProductDraft) -> Operation:
        op = Operation("create")
        if not self._claim(op):
            return op
        try:
            result = await self._submit(op, ADDING_LABEL, lambda: self.client.create(draft))
            if isinstance(result, Err):
                self._fail(op, result.failure, "add")
                return op
            product = result.value
            op.product_id, op.product = product.id, product
            self._commit_insert(product)
            self._transition(op, OperationState.COMMITTED)
            self.close_editor()
            self.notifier.notify(
                "Success!",
                f'Product "{product.title}" has been added successfully with ID: {product.id}',
                Severity.SUCCESS,
            )
        finally:
            self._release(op)
        return op

    def _commit_insert(self, product: Product) -> None:
        if product.id in self.store:
            # The remote API can hand back an id that is already displayed.
            logger.warning("Create returned existing id=%s; replacing the stale unit", product.id)
            self.store.remove_by_id(product.id)
            if self._views_settled():
                self.projector.patch_remove(product.id, transition=None)
        self.store.insert_front(product)
        if self._views_settled():
            self.projector.patch_insert(product)
        else:
            self.projector.render_all(self.store.snapshot())
        self._verify()

    async def update(self, product_id: ProductId, draft: ProductDraft) -> Operation:
        op = Operation("update", product_id)
        if not self._claim(op):
            return op
        try:
            result = await self._submit(op, UPDATING_LABEL, lambda: self.client.update(product_id, draft))
            if isinstance(result, Err):
                self._fail(op, result.failure, "update")
                return op
            product = result.value
            op.product = product
            if self.store.replace_by_id(product):
                if self._views_settled():
                    self.projector.patch_replace(product)
                else:
                    self.projector.render_all(self.store.snapshot())
                self._verify()
            else:
                self._not_found(op)
            self._transition(op, OperationState.COMMITTED)
            if self.edit_session is not None and self.edit_session.product_id == product_id:
                self.close_editor()
            self.notifier.notify(
                "Success!", f'Product "{product.title}" has been updated successfully!', Severity.SUCCESS
            )
        finally:
            self._release(op)
        return op

    # -------------------- delete --------------------
    async def delete(self, product_id: ProductId, confirm: Confirm) -> Operation:
        op = Operation("delete", product_id)
        if not self._claim(op):
            return op
        try:
            self._transition(op, OperationState.CONFIRMING)
            answer = confirm(DELETE_PROMPT)
            if inspect.isawaitable(answer):
                answer = await answer
            if not answer:
                self._transition(op, OperationState.CANCELLED)
                return op
            self._transition(op, OperationState.SUBMITTING)
            result = await self.client.delete(product_id)
            if isinstance(result, Err):
                self._fail(op, result.failure, "delete")
                return op
            if self.store.remove_by_id(product_id):
                if self._views_settled():
                    self.projector.patch_remove(product_id)
                else:
                    self.projector.render_all(self.store.snapshot())
                self._verify()
            else:
                self._not_found(op)
            self._transition(op, OperationState.COMMITTED)
            self.notifier.notify("Success!", "Product has been deleted successfully.", Severity.SUCCESS)
        finally:
            self._release(op)
        return op

    # -------------------- connectivity --------------------
    def connectivity_changed(self, online: bool) -> None:
        if online:
            self.notifier.notify("Connection Restored", "Internet connection has been restored.", Severity.SUCCESS)
        else:
            self.notifier.notify(
                "Connection Lost", "Internet connection lost. Some features may not work.", Severity.WARNING
            )
