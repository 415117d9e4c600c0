from app.models.iam.permission import Permission
from app.models.iam.resource import Resource
from app.models.iam.role import Role
from app.models.iam.role_permission import RolePermission
from app.models.iam.user_role import UserRole
