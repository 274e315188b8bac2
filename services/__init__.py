# services/__init__.py

# This file makes the 'services' directory a Python package and
# exposes its modules for import.

from . import catalog_store
from . import notifications
from . import view_projector
from . import sync_controller
