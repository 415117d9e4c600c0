# Import all CRUD modules for easier access
from app.crud.user import user_crud
from app.crud.menu import menu_crud
from app.crud.menu_permission import menu_permission_crud
from app.crud.audit_log import audit_log
from app.crud.iam import permission_crud, resource_crud, role_crud, user_role_crud
