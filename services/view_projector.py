# services/view_projector.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape

from schemas import Product, ProductId
from utils import CARD_TITLE_LIMIT, TABLE_TITLE_LIMIT, get_logger, stock_badge, stock_tier, truncate_text

logger = get_logger("catalog.projector")

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

CARDS = "cards"
TABLE = "table"
FADE_OUT = "fade-out"


def build_environment(directory: Path = TEMPLATES_DIR) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(directory)),
        autoescape=select_autoescape(["html"]),
    )
    env.filters["clip"] = truncate_text
    env.filters["stock_tier"] = stock_tier
    env.filters["stock_badge"] = stock_badge
    return env


@dataclass
class Unit:
    product_id: ProductId
    html: str


@dataclass
class Patch:
    op: str
    projection: Optional[str] = None
    product_id: Optional[ProductId] = None
    html: Optional[str] = None
    transition: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)


class Projection:
    """One rendered view of the catalog: an ordered list of units keyed by id."""

    def __init__(self, name: str, unit_template: str, title_limit: int, env: Environment):
        self.name = name
        self.title_limit = title_limit
        self._template = env.get_template(unit_template)
        self.units: List[Unit] = []
        self.empty_state_visible = False

    def render_unit(self, product: Product) -> Unit:
        html = self._template.render(product=product, title_limit=self.title_limit)
        return Unit(product_id=product.id, html=html)

    def index_of(self, product_id: ProductId) -> Optional[int]:
        for i, unit in enumerate(self.units):
            if unit.product_id == product_id:
                return i
        return None

    def product_ids(self) -> List[ProductId]:
        return [u.product_id for u in self.units]

    def clear(self) -> None:
        self.units = []
        self.empty_state_visible = False

    def fill(self, products: Sequence[Product]) -> None:
        self.units = [self.render_unit(p) for p in products]
        self.empty_state_visible = not self.units

    def prepend(self, product: Product) -> Unit:
        unit = self.render_unit(product)
        self.units.insert(0, unit)
        self.empty_state_visible = False
        return unit

    def replace(self, product: Product) -> Optional[Unit]:
        i = self.index_of(product.id)
        if i is None:
            return None
        unit = self.render_unit(product)
        self.units[i] = unit
        return unit

    def remove(self, product_id: ProductId) -> bool:
        i = self.index_of(product_id)
        if i is None:
            return False
        del self.units[i]
        return True


class ViewProjector:
    """
    Keeps the card grid and the table isomorphic to the catalog store.

    Every change is applied to both projections through the same call and
    recorded as a Patch; the web layer drains patches and ships them to the
    browser, which only replays them.
    """

    def __init__(self, env: Optional[Environment] = None):
        self.env = env or build_environment()
        self.cards = Projection(CARDS, "_card.html", CARD_TITLE_LIMIT, self.env)
        self.table = Projection(TABLE, "_row.html", TABLE_TITLE_LIMIT, self.env)
        self.projections = (self.cards, self.table)
        self.empty_state_html = self.env.get_template("_empty_state.html").render()
        self.loading = False
        self.error_panel: Optional[str] = None
        self._outbox: List[Patch] = []

    # -------------------- internal helpers --------------------
    def _emit(self, patch: Patch) -> None:
        self._outbox.append(patch)

    def _each(self, fn: Callable[[Projection], None]) -> None:
        for projection in self.projections:
            fn(projection)

    def _settle(self) -> None:
        self.loading = False
        self.error_panel = None

    def _refresh_empty_state(self, projection: Projection) -> None:
        if not projection.units and not projection.empty_state_visible:
            projection.empty_state_visible = True
            self._emit(Patch("show-empty", projection.name, html=self.empty_state_html))

    # -------------------- full renders --------------------
    def render_all(self, products: Iterable[Product]) -> None:
        products = list(products)
        self._settle()

        def _render(projection: Projection) -> None:
            projection.fill(products)
            if projection.empty_state_visible:
                self._emit(Patch("show-empty", projection.name, html=self.empty_state_html))
            else:
                self._emit(Patch("render", projection.name, html="".join(u.html for u in projection.units)))

        self._each(_render)
        logger.debug("Rendered %d products in both projections", len(products))

    def show_loading(self) -> None:
        self._each(Projection.clear)
        self.loading = True
        self.error_panel = None
        self._emit(Patch("loading"))

    def show_error_panel(self, title: str, message: str, detail: str) -> None:
        self.loading = False
        self.error_panel = self.env.get_template("_error_panel.html").render(
            title=title, message=message, detail=detail
        )
        self._emit(Patch("error", html=self.error_panel))

    # -------------------- incremental patches --------------------
    def patch_insert(self, product: Product) -> None:
        self._settle()

        def _insert(projection: Projection) -> None:
            if projection.empty_state_visible:
                self._emit(Patch("hide-empty", projection.name))
            unit = projection.prepend(product)
            self._emit(Patch("insert", projection.name, product.id, unit.html))

        self._each(_insert)

    def patch_replace(self, product: Product) -> bool:
        """Replace the unit for product.id in place; False when no unit exists."""
        found = True

        def _replace(projection: Projection) -> None:
            nonlocal found
            unit = projection.replace(product)
            if unit is None:
                logger.warning("patch_replace: no %s unit for product id=%s", projection.name, product.id)
                found = False
                return
            self._emit(Patch("replace", projection.name, product.id, unit.html))

        self._each(_replace)
        return found

    def patch_remove(self, product_id: ProductId, transition: Optional[str] = FADE_OUT) -> bool:
        found = True

        def _remove(projection: Projection) -> None:
            nonlocal found
            if not projection.remove(product_id):
                logger.warning("patch_remove: no %s unit for product id=%s", projection.name, product_id)
                found = False
                return
            self._emit(Patch("remove", projection.name, product_id, transition=transition))
            self._refresh_empty_state(projection)

        self._each(_remove)
        return found

    # -------------------- inspection --------------------
    def drain_patches(self) -> List[Patch]:
        patches, self._outbox = self._outbox, []
        return patches

    def is_consistent_with(self, products: Sequence[Product]) -> bool:
        ids = [p.id for p in products]
        for projection in self.projections:
            if projection.product_ids() != ids:
                return False
            if projection.empty_state_visible != (not ids):
                return False
        return True
