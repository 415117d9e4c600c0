from app.schemas.iam.permission import (
    PermissionBase, PermissionCreate, PermissionUpdate, PermissionResponse,
    PermissionWithRolesResponse, PermissionPaginationResponse, PermissionRoleSummary,
    PermissionCheckResult, PermissionCheckRequest, RolePermissionReplace, RolePermissionUpdate
)
from app.schemas.iam.resource import (
    ResourceBase, ResourceCreate, ResourceUpdate, ResourceResponse, ResourcePaginationResponse
)
from app.schemas.iam.role import (
    RoleBase, RoleCreate, RoleUpdate, RoleResponse, RolePaginationResponse,
    RoleClone, RoleIds, UserIds, RoleStatistics
)
