from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sproutify.config import settings
from sproutify.middleware.exceptions import register_exception_handlers
from sproutify.middleware.farm import FarmContextMiddleware
from sproutify.routers import health, recipes, seed_batches, seeding_plan, seeding_requests, tasks, trays
from sproutify.services.scheduler import lifespan

app = FastAPI(
    title="Sproutify",
    description="Microgreens farm production planning and task tracking",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware (outermost first) ─────────────────────────────
# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Farm context (innermost - processes request headers)
app.add_middleware(FarmContextMiddleware)

# ── Routers ──────────────────────────────────────────────────
# Public (no farm context needed)
app.include_router(health.router)

# Farm-scoped (require X-Farm-Id)
app.include_router(recipes.router, prefix="/api/recipes", tags=["recipes"])
app.include_router(seed_batches.router, prefix="/api/seed-batches", tags=["seed-batches"])
app.include_router(seeding_requests.router, prefix="/api/seeding-requests", tags=["seeding-requests"])
app.include_router(trays.router, prefix="/api/trays", tags=["trays"])
app.include_router(tasks.router, prefix="/api/tasks", tags=["tasks"])
app.include_router(seeding_plan.router, prefix="/api/seeding-plan", tags=["seeding-plan"])
