"""Aggregate model imports for Alembic auto-detection."""

# Master data
from sproutify.models.farm import Farm  # noqa: F401
from sproutify.models.variety import Variety  # noqa: F401
from sproutify.models.recipe import Recipe, Step  # noqa: F401
from sproutify.models.seed_batch import SeedBatch  # noqa: F401
from sproutify.models.customer import Customer  # noqa: F401
from sproutify.models.product import Product, ProductRecipeMapping  # noqa: F401
from sproutify.models.standing_order import StandingOrder, StandingOrderItem  # noqa: F401
from sproutify.models.maintenance_task import MaintenanceTask  # noqa: F401

# Production
from sproutify.models.tray_creation_request import TrayCreationRequest  # noqa: F401
from sproutify.models.tray import Tray, TrayStep  # noqa: F401
from sproutify.models.soaked_seed import SoakedSeed  # noqa: F401

# Ledgers
from sproutify.models.task_completion import TaskCompletion  # noqa: F401
from sproutify.models.activity_log import ActivityLog  # noqa: F401
