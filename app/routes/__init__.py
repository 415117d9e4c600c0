# ── Auth ──────────────────────────────────────────────────────
from app.routes.auth_router import router as auth_router

# ── Menus ─────────────────────────────────────────────────────
from app.routes.menu_router import router as menu_router

# ── Observability ─────────────────────────────────────────────
from app.routes.audit_log_router import router as audit_log_router
