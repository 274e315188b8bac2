from typing import Optional

from fastapi import Request

from catalog_service import CatalogService
from config import settings
from services.catalog_store import CatalogStore
from services.notifications import ToastFeed
from services.sync_controller import SyncController
from services.view_projector import ViewProjector

# --- Controller Construction ---
def build_controller(client: Optional[CatalogService] = None) -> SyncController:
    """
    Wire one editor session: remote client, store, projections and toasts.
    """
    client = client or CatalogService(base_url=settings.api_url, placeholder_image=settings.placeholder_image)
    return SyncController(
        client=client,
        store=CatalogStore(),
        projector=ViewProjector(),
        notifier=ToastFeed(),
        page_size=settings.page_size,
    )


# --- Dependency for FastAPI ---
def get_controller(request: Request) -> SyncController:
    """
    FastAPI dependency returning the application's editor session.
    """
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        controller = build_controller()
        request.app.state.controller = controller
    return controller
