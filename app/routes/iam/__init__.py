from app.routes.iam.permission_router import router as permission_router
from app.routes.iam.resource_router import router as resource_router
from app.routes.iam.role_router import router as role_router
