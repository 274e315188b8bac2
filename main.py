# main.py
import sys
from pathlib import Path
from fastapi import FastAPI, Request, Depends
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from fastapi.responses import HTMLResponse, RedirectResponse
from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parent
sys.path.append(str(ROOT_DIR))

load_dotenv()

from dependencies import get_controller
from routes import catalog
from services.sync_controller import OperationState, SyncController
from services.view_projector import build_environment

app = FastAPI(title="Catalog Editor")

app.mount("/static", StaticFiles(directory=str(ROOT_DIR / "static")), name="static")
templates = Jinja2Templates(env=build_environment(ROOT_DIR / "templates"))

@app.get("/", response_class=RedirectResponse, include_in_schema=False)
async def read_root():
    return RedirectResponse(url="/products")

@app.get("/products", response_class=HTMLResponse, include_in_schema=False)
async def get_products_page(request: Request, controller: SyncController = Depends(get_controller)):
    # First visit triggers the initial fetch; later visits show the live projections.
    if controller.list_state is OperationState.IDLE:
        await controller.load()
    # The page embeds the current state, so pending patches are already applied.
    controller.projector.drain_patches()
    return templates.TemplateResponse(
        request,
        "products.html",
        {
            "title": "Products",
            "projector": controller.projector,
            "controls": controller.controls,
        },
    )

# Routers
app.include_router(catalog.router)
