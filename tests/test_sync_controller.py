import asyncio
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from helpers import make_product, make_response, raw_product
from results import Err, Failure, FailureKind, Ok, malformed, network, offline, server_status
from schemas import ProductDraft
from services.sync_controller import (
    ADDING_LABEL,
    DELETE_PROMPT,
    SAVE_LABEL,
    UPDATE_LABEL,
    UPDATING_LABEL,
    OperationState,
    describe_failure,
)
from services.view_projector import CARDS, FADE_OUT, TABLE


def _draft(**overrides):
    data = {"title": "Desk Lamp", "price": Decimal("24.50"), "category": "home", "stock": 4}
    data.update(overrides)
    return ProductDraft(**data)


def _store_ids(controller):
    return [p.id for p in controller.store]


def _assert_views_match_store(controller):
    ids = _store_ids(controller)
    assert controller.projector.cards.product_ids() == ids
    assert controller.projector.table.product_ids() == ids
    assert controller.projector.is_consistent_with(controller.store.snapshot())


# --- list ---

def test_load_replaces_store_and_renders_both_projections(controller, fake_client):
    fake_client.list.return_value = Ok([make_product(i) for i in (3, 1, 2)])
    op = asyncio.run(controller.load())
    assert op.state is OperationState.LOADED
    assert controller.list_state is OperationState.LOADED
    fake_client.list.assert_awaited_once_with(10)
    assert _store_ids(controller) == [3, 1, 2]
    _assert_views_match_store(controller)
    ops = [p.op for p in controller.projector.drain_patches()]
    assert ops == ["loading", "render", "render"]


def test_load_of_empty_list_shows_empty_state(controller, fake_client):
    fake_client.list.return_value = Ok([])
    asyncio.run(controller.load())
    assert controller.projector.cards.empty_state_visible
    assert controller.projector.table.empty_state_visible


def test_failed_load_shows_error_panel_and_keeps_store(loaded_controller, fake_client):
    fake_client.list.return_value = server_status(500, "HTTP error! status: 500")
    op = asyncio.run(loaded_controller.load())
    assert op.state is OperationState.FAILED
    assert op.failure.kind is FailureKind.SERVER_STATUS
    assert _store_ids(loaded_controller) == [1, 2, 3, 4, 5]
    panel = loaded_controller.projector.error_panel
    assert "Failed to Load Products" in panel and "500" in panel
    assert loaded_controller.projector.cards.units == []
    assert loaded_controller.notifier.drain() == []


def test_offline_load_says_so(controller, fake_client):
    fake_client.list.return_value = offline("dns failure")
    asyncio.run(controller.load())
    assert "No internet connection" in controller.projector.error_panel


def test_start_fresh_empties_everything(loaded_controller, fake_client):
    fake_client.list.return_value = network("refused")
    asyncio.run(loaded_controller.load())
    op = loaded_controller.start_fresh()
    assert op.state is OperationState.LOADED
    assert len(loaded_controller.store) == 0
    assert loaded_controller.projector.error_panel is None
    assert loaded_controller.projector.cards.empty_state_visible


# --- create ---

def test_create_prepends_without_rerendering_others(loaded_controller, fake_client):
    before = list(loaded_controller.projector.cards.units)
    fake_client.create.return_value = Ok(make_product(195, title="Desk Lamp"))
    op = asyncio.run(loaded_controller.create(_draft()))
    assert op.state is OperationState.COMMITTED
    assert op.product_id == 195
    assert _store_ids(loaded_controller) == [195, 1, 2, 3, 4, 5]
    _assert_views_match_store(loaded_controller)
    assert all(a is b for a, b in zip(loaded_controller.projector.cards.units[1:], before))
    patches = loaded_controller.projector.drain_patches()
    assert [(p.op, p.projection, p.product_id) for p in patches] == [
        ("insert", CARDS, 195), ("insert", TABLE, 195),
    ]
    [toast] = loaded_controller.notifier.drain()
    assert toast["severity"] == "success"
    assert toast["message"] == 'Product "Desk Lamp" has been added successfully with ID: 195'
    assert loaded_controller.controls.open is False


def test_create_into_empty_catalog_hides_placeholder(controller, fake_client):
    asyncio.run(controller.load())
    controller.projector.drain_patches()
    fake_client.create.return_value = Ok(make_product(1))
    asyncio.run(controller.create(_draft()))
    assert not controller.projector.cards.empty_state_visible
    assert [p.op for p in controller.projector.drain_patches()] == ["hide-empty", "insert", "hide-empty", "insert"]


def test_failed_create_changes_nothing_and_reenables_form(loaded_controller, fake_client):
    loaded_controller.open_create()
    before = loaded_controller.store.snapshot()

    async def _create(draft):
        assert loaded_controller.controls.disabled
        assert loaded_controller.controls.submit_label == ADDING_LABEL
        return server_status(500, "HTTP error! status: 500")

    fake_client.create.side_effect = _create
    op = asyncio.run(loaded_controller.create(_draft()))
    assert op.state is OperationState.FAILED
    assert op.failure.kind is FailureKind.SERVER_STATUS
    assert loaded_controller.store.snapshot() == before
    assert loaded_controller.projector.drain_patches() == []
    assert loaded_controller.controls.disabled is False
    assert loaded_controller.controls.submit_label == SAVE_LABEL
    assert loaded_controller.controls.open is True
    [toast] = loaded_controller.notifier.drain()
    assert toast["severity"] == "error" and toast["sticky"]
    assert toast["message"].startswith("Failed to add product: Server error (status 500)")


def test_create_malformed_response_is_not_inserted(loaded_controller, fake_client):
    fake_client.create.return_value = malformed("record has no usable id: None")
    op = asyncio.run(loaded_controller.create(_draft()))
    assert op.state is OperationState.FAILED
    assert len(loaded_controller.store) == 5


def test_create_returning_existing_id_keeps_ids_unique(loaded_controller, fake_client):
    fake_client.create.return_value = Ok(make_product(3, title="Fresh copy"))
    asyncio.run(loaded_controller.create(_draft()))
    assert _store_ids(loaded_controller) == [3, 1, 2, 4, 5]
    assert loaded_controller.store.get(3).title == "Fresh copy"
    _assert_views_match_store(loaded_controller)


def test_create_after_failed_load_renders_from_store(loaded_controller, fake_client):
    fake_client.list.return_value = network("refused")
    asyncio.run(loaded_controller.load())
    fake_client.create.return_value = Ok(make_product(9))
    asyncio.run(loaded_controller.create(_draft()))
    assert loaded_controller.projector.error_panel is None
    assert _store_ids(loaded_controller) == [9, 1, 2, 3, 4, 5]
    _assert_views_match_store(loaded_controller)


# --- edit / update ---

def test_begin_edit_does_not_touch_store(loaded_controller, fake_client):
    fake_client.get.return_value = Ok(make_product(2, title="Remote copy"))
    op = asyncio.run(loaded_controller.begin_edit(2))
    assert op.state is OperationState.LOADED
    session = loaded_controller.edit_session
    assert session.product_id == 2 and not session.loading
    assert session.draft.title == "Remote copy"
    assert loaded_controller.store.get(2).title == "Product 2"
    assert loaded_controller.controls.submit_label == UPDATE_LABEL
    assert loaded_controller.projector.drain_patches() == []


def test_begin_edit_failure_reports_on_session(loaded_controller, fake_client):
    fake_client.get.return_value = network("refused")
    op = asyncio.run(loaded_controller.begin_edit(2))
    assert op.state is OperationState.FAILED
    assert loaded_controller.edit_session.error.startswith("Unable to connect")
    assert loaded_controller.notifier.drain()[0]["message"].startswith("Failed to load product")


def test_edit_superseded_before_response_is_cancelled(loaded_controller, fake_client):
    async def _get(product_id):
        loaded_controller.close_editor()
        return Ok(make_product(product_id))

    fake_client.get.side_effect = _get
    op = asyncio.run(loaded_controller.begin_edit(2))
    assert op.state is OperationState.CANCELLED
    assert loaded_controller.edit_session is None


def test_update_replaces_in_place(loaded_controller, fake_client):
    fake_client.update.return_value = Ok(make_product(3, title="Renamed", stock=0))
    op = asyncio.run(loaded_controller.update(3, _draft(title="Renamed", stock=0)))
    assert op.state is OperationState.COMMITTED
    fake_client.update.assert_awaited_once()
    assert _store_ids(loaded_controller) == [1, 2, 3, 4, 5]
    assert loaded_controller.store.get(3).title == "Renamed"
    _assert_views_match_store(loaded_controller)
    patches = loaded_controller.projector.drain_patches()
    assert [(p.op, p.product_id) for p in patches] == [("replace", 3), ("replace", 3)]
    assert 'data-stock-tier="out"' in patches[1].html
    assert loaded_controller.notifier.drain()[0]["message"] == 'Product "Renamed" has been updated successfully!'


def test_update_closes_matching_edit_session(loaded_controller, fake_client):
    fake_client.get.return_value = Ok(make_product(3))
    asyncio.run(loaded_controller.begin_edit(3))

    async def _update(product_id, draft):
        assert loaded_controller.controls.submit_label == UPDATING_LABEL
        return Ok(make_product(3, title="Renamed"))

    fake_client.update.side_effect = _update
    asyncio.run(loaded_controller.update(3, _draft(title="Renamed")))
    assert loaded_controller.edit_session is None
    assert loaded_controller.controls.open is False


def test_failed_update_leaves_record_untouched(loaded_controller, fake_client):
    fake_client.update.return_value = server_status(404, "HTTP error! status: 404")
    op = asyncio.run(loaded_controller.update(3, _draft(title="Renamed")))
    assert op.state is OperationState.FAILED
    assert loaded_controller.store.get(3).title == "Product 3"
    assert loaded_controller.projector.drain_patches() == []


def test_update_of_unknown_record_commits_without_views(loaded_controller, fake_client):
    fake_client.update.return_value = Ok(make_product(99))
    op = asyncio.run(loaded_controller.update(99, _draft()))
    assert op.state is OperationState.COMMITTED
    assert 99 not in loaded_controller.store
    assert loaded_controller.projector.drain_patches() == []


# --- delete ---

def test_unconfirmed_delete_makes_no_request(loaded_controller, fake_client):
    prompts = []
    op = asyncio.run(loaded_controller.delete(2, confirm=lambda p: prompts.append(p) or False))
    assert op.state is OperationState.CANCELLED
    assert prompts == [DELETE_PROMPT]
    fake_client.delete.assert_not_called()
    assert len(loaded_controller.store) == 5


def test_confirmed_delete_removes_with_transition(loaded_controller, fake_client):
    fake_client.delete.return_value = Ok(2)
    op = asyncio.run(loaded_controller.delete(2, confirm=lambda p: True))
    assert op.state is OperationState.COMMITTED
    assert _store_ids(loaded_controller) == [1, 3, 4, 5]
    _assert_views_match_store(loaded_controller)
    patches = loaded_controller.projector.drain_patches()
    assert {p.transition for p in patches} == {FADE_OUT}
    assert loaded_controller.notifier.drain()[0]["message"] == "Product has been deleted successfully."


def test_async_confirm_is_awaited(loaded_controller, fake_client):
    async def _confirm(prompt):
        return True

    fake_client.delete.return_value = Ok(1)
    op = asyncio.run(loaded_controller.delete(1, confirm=_confirm))
    assert op.state is OperationState.COMMITTED


def test_deleting_last_record_shows_empty_state(controller, fake_client):
    fake_client.list.return_value = Ok([make_product(1)])
    asyncio.run(controller.load())
    fake_client.delete.return_value = Ok(1)
    asyncio.run(controller.delete(1, confirm=lambda p: True))
    assert len(controller.store) == 0
    assert controller.projector.cards.empty_state_visible
    assert controller.projector.table.empty_state_visible


def test_failed_delete_warns_record_may_exist(loaded_controller, fake_client):
    fake_client.delete.return_value = network("timed out")
    op = asyncio.run(loaded_controller.delete(2, confirm=lambda p: True))
    assert op.state is OperationState.FAILED
    assert 2 in loaded_controller.store
    assert "may still exist" in loaded_controller.notifier.drain()[0]["message"]


def test_delete_of_record_already_gone_is_tolerated(loaded_controller, fake_client):
    fake_client.delete.return_value = Ok(42)
    op = asyncio.run(loaded_controller.delete(42, confirm=lambda p: True))
    assert op.state is OperationState.COMMITTED
    assert len(loaded_controller.store) == 5


# --- concurrency ---

def test_duplicate_in_flight_update_is_refused(loaded_controller, fake_client):
    async def scenario():
        release = asyncio.Event()

        async def _update(product_id, draft):
            await release.wait()
            return Ok(make_product(product_id, title="Once"))

        fake_client.update.side_effect = _update
        first = asyncio.create_task(loaded_controller.update(3, _draft()))
        await asyncio.sleep(0)
        second = await loaded_controller.update(3, _draft())
        release.set()
        return await first, second

    first, second = asyncio.run(scenario())
    assert first.state is OperationState.COMMITTED
    assert second.state is OperationState.REFUSED
    assert fake_client.update.await_count == 1


def test_different_records_may_be_in_flight_together(loaded_controller, fake_client):
    async def scenario():
        async def _delete(product_id):
            await asyncio.sleep(0)
            return Ok(product_id)

        fake_client.delete.side_effect = _delete
        return await asyncio.gather(
            loaded_controller.delete(1, confirm=lambda p: True),
            loaded_controller.delete(2, confirm=lambda p: True),
        )

    ops = asyncio.run(scenario())
    assert [op.state for op in ops] == [OperationState.COMMITTED] * 2
    assert _store_ids(loaded_controller) == [3, 4, 5]
    _assert_views_match_store(loaded_controller)


# --- connectivity / failure text ---

def test_connectivity_toasts(controller):
    controller.connectivity_changed(False)
    controller.connectivity_changed(True)
    lost, restored = controller.notifier.drain()
    assert lost["title"] == "Connection Lost" and lost["severity"] == "warning"
    assert restored["title"] == "Connection Restored" and restored["delay_ms"] == 3000


@pytest.mark.parametrize("failure,title", [
    (Failure(FailureKind.OFFLINE, "x"), "Connection Error"),
    (Failure(FailureKind.NETWORK, "x"), "Network Error"),
    (Failure(FailureKind.SERVER_STATUS, "x", 503), "Server Error"),
    (Failure(FailureKind.MALFORMED, "x"), "Invalid Response"),
])
def test_describe_failure_titles(failure, title):
    assert describe_failure(failure)[0] == title


def test_describe_failure_includes_status():
    _, message = describe_failure(Failure(FailureKind.SERVER_STATUS, "x", 503), "update")
    assert "503" in message


def test_controller_defaults_page_size_from_settings():
    from config import settings
    from services.sync_controller import SyncController

    assert SyncController(client=MagicMock()).page_size == settings.page_size


def test_err_and_ok_flags():
    assert Ok(1).ok and not Err(Failure(FailureKind.NETWORK, "x")).ok


def test_load_settles_when_real_client_sees_oversized_price(controller, service, http_session):
    controller.client = service
    http_session.request.return_value = make_response(200, {"products": [raw_product(1, price=1e30), raw_product(2)]})
    op = asyncio.run(controller.load())
    assert op.state is OperationState.LOADED
    assert controller.list_state is OperationState.LOADED
    assert controller.projector.loading is False
    assert _store_ids(controller) == [1, 2]
