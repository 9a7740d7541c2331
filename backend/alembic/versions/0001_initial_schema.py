"""Initial schema: farms, recipes, seed inventory, orders, trays and tasks.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-18

Run with:
    alembic upgrade head
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    # ── Farms and catalogue ──────────────────────────────────

    op.create_table(
        "farms",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("seeding_days", sa.JSON()),
        sa.Column("delivery_lead_days", sa.Integer()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "varieties",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("farm_id", sa.String(36), sa.ForeignKey("farms.id")),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("seed_quantity", sa.Float()),
        sa.Column("seed_quantity_unit", sa.String(10), server_default="grams"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_varieties_farm_id", "varieties", ["farm_id"])

    op.create_table(
        "recipes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("farm_id", sa.String(36), sa.ForeignKey("farms.id")),
        sa.Column("is_global", sa.Boolean(), server_default=sa.false()),
        sa.Column("source_recipe_id", sa.String(36), sa.ForeignKey("recipes.id")),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("variety_id", sa.String(36), sa.ForeignKey("varieties.id")),
        sa.Column("variety_name", sa.String(255)),
        sa.Column("seed_quantity", sa.Float()),
        sa.Column("seed_quantity_unit", sa.String(10), server_default="grams"),
        sa.Column("requires_soak", sa.Boolean(), server_default=sa.false()),
        sa.Column("soak_hours", sa.Float()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("farm_id", "source_recipe_id", name="uq_recipes_farm_source"),
    )
    op.create_index("ix_recipes_farm_id", "recipes", ["farm_id"])
    op.create_index("ix_recipes_source_recipe_id", "recipes", ["source_recipe_id"])
    op.create_index("ix_recipes_variety_id", "recipes", ["variety_id"])

    op.create_table(
        "steps",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "recipe_id", sa.String(36),
            sa.ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("sequence_order", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("duration", sa.Float(), server_default="0"),
        sa.Column("duration_unit", sa.String(10), server_default="days"),
        sa.UniqueConstraint("recipe_id", "sequence_order", name="uq_steps_recipe_sequence"),
    )
    op.create_index("ix_steps_recipe_id", "steps", ["recipe_id"])

    op.create_table(
        "seed_batches",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("farm_id", sa.String(36), sa.ForeignKey("farms.id"), nullable=False),
        sa.Column("variety_id", sa.String(36), sa.ForeignKey("varieties.id"), nullable=False),
        sa.Column("lot_number", sa.String(100)),
        sa.Column("quantity_grams", sa.Float(), nullable=False, server_default="0"),
        sa.Column("purchase_date", sa.Date()),
        sa.Column("vendor", sa.String(255)),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_seed_batches_farm_id", "seed_batches", ["farm_id"])
    op.create_index("ix_seed_batches_variety_id", "seed_batches", ["variety_id"])
    op.create_index("ix_seed_batches_purchase_date", "seed_batches", ["purchase_date"])

    # ── Customers and standing orders ────────────────────────

    op.create_table(
        "customers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("farm_id", sa.String(36), sa.ForeignKey("farms.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_customers_farm_id", "customers", ["farm_id"])

    op.create_table(
        "products",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("farm_id", sa.String(36), sa.ForeignKey("farms.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_products_farm_id", "products", ["farm_id"])

    op.create_table(
        "product_recipe_mappings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "product_id", sa.String(36),
            sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("recipe_id", sa.String(36), sa.ForeignKey("recipes.id"), nullable=False),
        sa.Column("ratio", sa.Float(), server_default="1"),
    )
    op.create_index("ix_product_recipe_mappings_product_id", "product_recipe_mappings", ["product_id"])
    op.create_index("ix_product_recipe_mappings_recipe_id", "product_recipe_mappings", ["recipe_id"])

    op.create_table(
        "standing_orders",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("farm_id", sa.String(36), sa.ForeignKey("farms.id"), nullable=False),
        sa.Column("customer_id", sa.String(36), sa.ForeignKey("customers.id")),
        sa.Column("order_name", sa.String(255), nullable=False),
        sa.Column("frequency", sa.String(20), server_default="weekly"),
        sa.Column("delivery_days", sa.JSON()),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date()),
        sa.Column("lead_days", sa.Integer()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_standing_orders_farm_id", "standing_orders", ["farm_id"])
    op.create_index("ix_standing_orders_customer_id", "standing_orders", ["customer_id"])

    op.create_table(
        "standing_order_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "standing_order_id", sa.String(36),
            sa.ForeignKey("standing_orders.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("product_id", sa.String(36), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False, server_default="1"),
    )
    op.create_index("ix_standing_order_items_standing_order_id", "standing_order_items", ["standing_order_id"])

    # ── Seeding requests and trays ───────────────────────────

    op.create_table(
        "tray_creation_requests",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("farm_id", sa.String(36), sa.ForeignKey("farms.id"), nullable=False),
        sa.Column("recipe_id", sa.String(36), sa.ForeignKey("recipes.id"), nullable=False),
        sa.Column("recipe_name", sa.String(255), nullable=False),
        sa.Column("variety_name", sa.String(255)),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("quantity_completed", sa.Integer(), server_default="0"),
        sa.Column("seed_date", sa.Date(), nullable=False),
        sa.Column("rescheduled_from", sa.Date()),
        sa.Column("batch_id", sa.String(36), sa.ForeignKey("seed_batches.id")),
        sa.Column("customer_id", sa.String(36), sa.ForeignKey("customers.id")),
        sa.Column("customer_name", sa.String(255)),
        sa.Column("standing_order_id", sa.String(36), sa.ForeignKey("standing_orders.id")),
        sa.Column("parent_request_id", sa.String(36), sa.ForeignKey("tray_creation_requests.id")),
        sa.Column("source", sa.String(20), server_default="manual"),
        sa.Column("status", sa.String(20), server_default="pending"),
        sa.Column("requested_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("requested_by", sa.String(100)),
        sa.Column("fulfilled_at", sa.DateTime()),
        sa.Column("cancelled_at", sa.DateTime()),
        sa.Column("cancelled_reason", sa.Text()),
        sa.Column("fulfillment_error", sa.Text()),
    )
    op.create_index("ix_tray_creation_requests_farm_id", "tray_creation_requests", ["farm_id"])
    op.create_index("ix_tray_creation_requests_recipe_id", "tray_creation_requests", ["recipe_id"])
    op.create_index("ix_tray_creation_requests_seed_date", "tray_creation_requests", ["seed_date"])
    op.create_index("ix_tray_creation_requests_batch_id", "tray_creation_requests", ["batch_id"])
    op.create_index("ix_tray_creation_requests_standing_order_id", "tray_creation_requests", ["standing_order_id"])
    op.create_index("ix_tray_creation_requests_status", "tray_creation_requests", ["status"])

    op.create_table(
        "trays",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("farm_id", sa.String(36), sa.ForeignKey("farms.id"), nullable=False),
        sa.Column("tray_code", sa.String(50), nullable=False),
        sa.Column("recipe_id", sa.String(36), sa.ForeignKey("recipes.id"), nullable=False),
        sa.Column("request_id", sa.String(36), sa.ForeignKey("tray_creation_requests.id")),
        sa.Column("batch_id", sa.String(36), sa.ForeignKey("seed_batches.id")),
        sa.Column("customer_id", sa.String(36), sa.ForeignKey("customers.id")),
        sa.Column("sow_date", sa.Date(), nullable=False),
        sa.Column("harvest_date", sa.Date()),
        sa.Column("yield_grams", sa.Float()),
        sa.Column("status", sa.String(20), server_default="active"),
        sa.Column("loss_reason", sa.String(50)),
        sa.Column("loss_notes", sa.Text()),
        sa.Column("lost_at", sa.DateTime()),
        sa.Column("location", sa.String(100)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_trays_farm_id", "trays", ["farm_id"])
    op.create_index("ix_trays_tray_code", "trays", ["tray_code"])
    op.create_index("ix_trays_recipe_id", "trays", ["recipe_id"])
    op.create_index("ix_trays_request_id", "trays", ["request_id"])
    op.create_index("ix_trays_batch_id", "trays", ["batch_id"])
    op.create_index("ix_trays_customer_id", "trays", ["customer_id"])
    op.create_index("ix_trays_sow_date", "trays", ["sow_date"])
    op.create_index("ix_trays_status", "trays", ["status"])
    op.create_index("ix_trays_created_at", "trays", ["created_at"])

    op.create_table(
        "tray_steps",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "tray_id", sa.String(36),
            sa.ForeignKey("trays.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("step_id", sa.String(36), sa.ForeignKey("steps.id", ondelete="SET NULL")),
        sa.Column("sequence_order", sa.Integer(), nullable=False),
        sa.Column("step_name", sa.String(100), nullable=False),
        sa.Column("duration", sa.Float(), server_default="0"),
        sa.Column("duration_unit", sa.String(10)),
        sa.Column("scheduled_date", sa.Date()),
        sa.Column("completed", sa.Boolean(), server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime()),
        sa.Column("skipped", sa.Boolean(), server_default=sa.false()),
        sa.Column("skipped_at", sa.DateTime()),
    )
    op.create_index("ix_tray_steps_tray_id", "tray_steps", ["tray_id"])
    op.create_index("ix_tray_steps_scheduled_date", "tray_steps", ["scheduled_date"])

    op.create_table(
        "soaked_seeds",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("farm_id", sa.String(36), sa.ForeignKey("farms.id"), nullable=False),
        sa.Column("request_id", sa.String(36), sa.ForeignKey("tray_creation_requests.id")),
        sa.Column("recipe_id", sa.String(36), sa.ForeignKey("recipes.id"), nullable=False),
        sa.Column("seed_batch_id", sa.String(36), sa.ForeignKey("seed_batches.id"), nullable=False),
        sa.Column("variety_name", sa.String(255)),
        sa.Column("soak_date", sa.Date(), nullable=False),
        sa.Column("expires_on", sa.Date(), nullable=False),
        sa.Column("quantity_grams", sa.Float(), nullable=False),
        sa.Column("quantity_remaining_grams", sa.Float(), nullable=False),
        sa.Column("status", sa.String(20), server_default="available"),
        sa.Column("discard_reason", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_soaked_seeds_farm_id", "soaked_seeds", ["farm_id"])
    op.create_index("ix_soaked_seeds_expires_on", "soaked_seeds", ["expires_on"])
    op.create_index("ix_soaked_seeds_status", "soaked_seeds", ["status"])

    # ── Tasks ────────────────────────────────────────────────

    op.create_table(
        "task_completions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("farm_id", sa.String(36), sa.ForeignKey("farms.id"), nullable=False),
        sa.Column("task_key", sa.String(512), nullable=False),
        sa.Column("task_type", sa.String(30), nullable=False),
        sa.Column("task_date", sa.Date(), nullable=False),
        sa.Column("recipe_id", sa.String(36)),
        sa.Column("customer_name", sa.String(255)),
        sa.Column("product_name", sa.String(255)),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("batch_id", sa.String(36)),
        sa.Column("completed_by", sa.String(100)),
        sa.Column("completed_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("farm_id", "task_key", name="uq_task_completions_farm_key"),
    )
    op.create_index("ix_task_completions_farm_id", "task_completions", ["farm_id"])
    op.create_index("ix_task_completions_task_date", "task_completions", ["task_date"])

    op.create_table(
        "maintenance_tasks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("farm_id", sa.String(36), sa.ForeignKey("farms.id"), nullable=False),
        sa.Column("task_name", sa.String(255), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), server_default="1"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_maintenance_tasks_farm_id", "maintenance_tasks", ["farm_id"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("farm_id", sa.String(36), sa.ForeignKey("farms.id"), nullable=False),
        sa.Column("actor", sa.String(100), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(36)),
        sa.Column("entity_code", sa.String(100)),
        sa.Column("summary", sa.Text()),
        sa.Column("details", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_farm_id", "activity_logs", ["farm_id"])
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])
    op.create_index("ix_activity_logs_entity_type", "activity_logs", ["entity_type"])
    op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("activity_logs")
    op.drop_table("maintenance_tasks")
    op.drop_table("task_completions")
    op.drop_table("soaked_seeds")
    op.drop_table("tray_steps")
    op.drop_table("trays")
    op.drop_table("tray_creation_requests")
    op.drop_table("standing_order_items")
    op.drop_table("standing_orders")
    op.drop_table("product_recipe_mappings")
    op.drop_table("products")
    op.drop_table("customers")
    op.drop_table("seed_batches")
    op.drop_table("steps")
    op.drop_table("recipes")
    op.drop_table("varieties")
    op.drop_table("farms")
