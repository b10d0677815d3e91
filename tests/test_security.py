"""Tests for role-based access control on cases."""

from __future__ import annotations

import pytest

from medtrack.security.rbac import (
    ROLE_PERMISSIONS,
    Permission,
    Role,
    UserIdentity,
    has_permission,
    require_permission,
)


class TestRBAC:
    """Tests for role-based access control."""

    def test_owner_has_all_permissions(self) -> None:
        """Owner role has every permission."""
        assert ROLE_PERMISSIONS[Role.OWNER] == set(Permission)

    def test_editor_can_write_but_not_manage(self) -> None:
        assert has_permission(Role.EDITOR, Permission.READ)
        assert has_permission(Role.EDITOR, Permission.WRITE)
        assert not has_permission(Role.EDITOR, Permission.MANAGE)

    def test_viewer_is_read_only(self) -> None:
        assert has_permission(Role.VIEWER, Permission.READ)
        assert not has_permission(Role.VIEWER, Permission.WRITE)

    def test_non_member_has_nothing(self) -> None:
        for permission in Permission:
            assert not has_permission(None, permission)

    def test_require_permission_passes(self) -> None:
        require_permission(Role.OWNER, Permission.MANAGE, "alice", "c1")

    def test_require_permission_raises(self) -> None:
        with pytest.raises(PermissionError, match="viewer"):
            require_permission(Role.VIEWER, Permission.WRITE, "bob", "c1")

    def test_user_identity_email_optional(self) -> None:
        user = UserIdentity(user_id="alice")
        assert user.email is None
