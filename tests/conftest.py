"""
Pytest configuration and fixtures for testing.
"""
import os

# Must be set before the app modules build their engine
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  registers every table on Base.metadata
from app.database.session import Base, get_db
from main import app
from app.models.iam import Permission, Role, RolePermission, UserRole
from app.models.menu import Menu
from app.models.menu_permission import MenuPermission
from app.models.user import User
from app.services.audit_service import audit_service
from app.services.permission_resolver import permission_resolver
from common_utils.auth.utils import hash_password, create_access_token


# Test database URL - using in-memory SQLite for tests
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

DEFAULT_PASSWORD = "Passw0rd!"

SEED_PERMISSION_NAMES = [
    "role:create", "role:read", "role:update", "role:delete",
    "permission:create", "permission:read", "permission:update", "permission:delete",
    "resource:create", "resource:read", "resource:update", "resource:delete",
    "menu:create", "menu:read", "menu:update", "menu:delete",
    "user:read",
    "audit_log:read",
]


@pytest.fixture(scope="function")
def test_engine():
    """
    Fresh in-memory database for each test function.
    """
    engine = create_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def test_session_factory(test_engine):
    return sessionmaker(autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def test_db(test_session_factory):
    db = test_session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function", autouse=True)
def audit_to_test_db(test_session_factory):
    """
    Audit entries are written through their own session; point it at the
    test database.
    """
    original = audit_service.session_factory
    audit_service.session_factory = test_session_factory
    yield
    audit_service.session_factory = original


@pytest.fixture(scope="function")
def client(test_db):
    """
    Create a test client sharing the test database session.
    """
    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def seed_permissions(test_db):
    """
    Seed the permissions the routers are guarded by, keyed by name.
    """
    permissions = {}
    for name in SEED_PERMISSION_NAMES:
        resource, action = name.split(":")
        permission = Permission(
            name=name,
            resource=resource,
            action=action,
            description=f"{action.capitalize()} {resource}",
        )
        test_db.add(permission)
        permissions[name] = permission
    test_db.commit()
    return permissions


@pytest.fixture(scope="function")
def make_user(test_db):
    """Factory creating users; roles are bound when given."""
    def _make_user(username, roles=(), is_superuser=False, is_active=True, password=DEFAULT_PASSWORD):
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash=hash_password(password),
            first_name=username.capitalize(),
            is_superuser=is_superuser,
            is_active=is_active,
        )
        test_db.add(user)
        test_db.flush()
        for role in roles:
            test_db.add(UserRole(user_id=user.id, role_id=role.id))
        test_db.commit()
        test_db.refresh(user)
        return user

    return _make_user


@pytest.fixture(scope="function")
def make_role(test_db):
    """Factory creating roles bound to the given permissions."""
    def _make_role(name, permissions=(), is_system=False, is_active=True):
        role = Role(name=name, description=f"{name} role", is_system=is_system, is_active=is_active)
        test_db.add(role)
        test_db.flush()
        for permission in permissions:
            test_db.add(RolePermission(role_id=role.id, permission_id=permission.id))
        test_db.commit()
        test_db.refresh(role)
        return role

    return _make_role


@pytest.fixture(scope="function")
def make_permission(test_db):
    def _make_permission(name):
        resource, action = name.split(":")
        permission = Permission(name=name, resource=resource, action=action)
        test_db.add(permission)
        test_db.commit()
        test_db.refresh(permission)
        return permission

    return _make_permission


@pytest.fixture(scope="function")
def make_token(test_db):
    """
    Factory producing an ``Authorization`` header value for a user, with the
    same login-time snapshot the auth router embeds.
    """
    def _make_token(user):
        claims = permission_resolver.build_token_claims(test_db, user)
        return f"Bearer {create_access_token(**claims)}"

    return _make_token


@pytest.fixture(scope="function")
def admin_role(make_role, seed_permissions):
    return make_role("admin", permissions=list(seed_permissions.values()))


@pytest.fixture(scope="function")
def viewer_role(make_role, seed_permissions):
    return make_role(
        "viewer",
        permissions=[seed_permissions[name] for name in ("role:read", "permission:read", "menu:read")],
    )


@pytest.fixture(scope="function")
def admin_user(make_user, admin_role):
    return make_user("admin", roles=[admin_role])


@pytest.fixture(scope="function")
def viewer_user(make_user, viewer_role):
    return make_user("viewer", roles=[viewer_role])


@pytest.fixture(scope="function")
def superuser(make_user):
    return make_user("root", is_superuser=True)


@pytest.fixture(scope="function")
def plain_user(make_user):
    """Authenticated user without any role."""
    return make_user("plain")


@pytest.fixture(scope="function")
def admin_token(admin_user, make_token):
    return make_token(admin_user)


@pytest.fixture(scope="function")
def viewer_token(viewer_user, make_token):
    return make_token(viewer_user)


@pytest.fixture(scope="function")
def superuser_token(superuser, make_token):
    return make_token(superuser)


@pytest.fixture(scope="function")
def plain_token(plain_user, make_token):
    return make_token(plain_user)


@pytest.fixture(scope="function")
def menu_tree(test_db):
    """
    Three-level menu tree::

        DASH
        ADMIN
        ├── USERS
        │   └── USRNEW
        └── ROLES
        OLD (inactive)
    """
    menus = [
        Menu(id="DASH", parent_id=None, title="Dashboard", href="/dashboard", order_index=0),
        Menu(id="ADMIN", parent_id=None, title="Administration", order_index=1),
        Menu(id="USERS", parent_id="ADMIN", title="Users", href="/admin/users", order_index=0),
        Menu(id="USRNEW", parent_id="USERS", title="New User", href="/admin/users/new", order_index=0),
        Menu(id="ROLES", parent_id="ADMIN", title="Roles", href="/admin/roles", order_index=1),
        Menu(id="OLD", parent_id=None, title="Legacy", order_index=2, is_active=False),
    ]
    test_db.add_all(menus)
    test_db.commit()
    return {menu.id: menu for menu in menus}


@pytest.fixture(scope="function")
def grant_menu(test_db):
    """Factory storing a (menu, role) flag binding."""
    def _grant_menu(role, menu_id, **flags):
        binding = MenuPermission(
            menu_id=menu_id,
            role_id=role.id,
            can_view=flags.get("can_view", False),
            can_edit=flags.get("can_edit", False),
            can_delete=flags.get("can_delete", False),
            can_export=flags.get("can_export", False),
        )
        test_db.add(binding)
        test_db.commit()
        return binding

    return _grant_menu
