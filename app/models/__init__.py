# Import all models here so Base.metadata knows every table
from app.models.user import User
from app.models.menu import Menu
from app.models.menu_permission import MenuPermission
from app.models.audit_log import AuditLog

# IAM models
from app.models.iam.permission import Permission
from app.models.iam.resource import Resource
from app.models.iam.role import Role
from app.models.iam.role_permission import RolePermission
from app.models.iam.user_role import UserRole
