import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
import requests

from catalog_service import CatalogService
from helpers import API_URL, make_product
from results import Ok
from services.catalog_store import CatalogStore
from services.notifications import ToastFeed
from services.sync_controller import SyncController
from services.view_projector import ViewProjector


@pytest.fixture
def http_session():
    """requests.Session stand-in; tests queue responses on .request."""
    return MagicMock(spec=requests.Session)


@pytest.fixture
def online():
    return {"value": True}


@pytest.fixture
def service(http_session, online):
    return CatalogService(
        base_url=API_URL,
        session=http_session,
        connectivity_probe=lambda: online["value"],
    )


@pytest.fixture
def fake_client():
    """Remote client double whose operations are AsyncMocks returning Results."""
    client = MagicMock(spec=CatalogService)
    client.list = AsyncMock(return_value=Ok([]))
    client.get = AsyncMock()
    client.create = AsyncMock()
    client.update = AsyncMock()
    client.delete = AsyncMock()
    return client


@pytest.fixture
def projector():
    return ViewProjector()


@pytest.fixture
def controller(fake_client, projector):
    return SyncController(
        client=fake_client,
        store=CatalogStore(),
        projector=projector,
        notifier=ToastFeed(),
        page_size=10,
    )


@pytest.fixture
def loaded_controller(controller, fake_client):
    """Controller after a successful initial list of products 1..5."""
    fake_client.list.return_value = Ok([make_product(i) for i in range(1, 6)])
    asyncio.run(controller.load())
    controller.projector.drain_patches()
    controller.notifier.drain()
    fake_client.reset_mock()
    return controller
