from .context import AuthContext
from .permission_matcher import has_permission, match_permission
