"""
Tests for the YAML route rules and the endpoint decorators.
"""
from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from civigest.security.config import load_security_config
from civigest.security.decorators import public, require_permissions, require_roles, require_unrestricted

REPO_ROOT = Path(__file__).resolve().parents[2]


@pytest.fixture
def security_config():
    return load_security_config(REPO_ROOT / "config" / "security_config.yaml")


def test_public_routes_need_no_auth(security_config):
    assert security_config.match("/auth/login", "POST").auth_required is False
    assert security_config.match("/agents/auth/login", "POST").auth_required is False
    assert security_config.match("/health", "get").auth_required is False


def test_unknown_route_falls_back_to_default(security_config):
    rule = security_config.match("/departments", "GET")

    assert rule.auth_required is True
    assert rule.required_permissions == frozenset()
    assert rule.unrestricted_only is False


def test_template_route_matches_by_method(security_config):
    assert security_config.match("/patrols/12", "PATCH").required_permissions == {("patrols", "update")}
    assert security_config.match("/patrols/12", "DELETE").required_permissions == {("patrols", "delete")}


def test_exact_route_is_preferred(security_config):
    assert security_config.match("/patrols", "POST").required_permissions == {("patrols", "create")}


def test_template_does_not_span_segments(security_config):
    rule = security_config.match("/patrols/12/history", "GET")
    assert rule.required_permissions == frozenset()


def test_typo_in_permission_fails_at_load_time(tmp_path):
    path = tmp_path / "security.yaml"
    path.write_text(
        "security:\n"
        "  routes:\n"
        "    - path: /patrols\n"
        "      methods: [GET]\n"
        "      required_permissions: ['patrols.read']\n",
        encoding="utf-8",
    )

    with pytest.raises(ValidationError):
        load_security_config(path)


def test_missing_root_key_is_rejected(tmp_path):
    path = tmp_path / "security.yaml"
    path.write_text("routes: []\n", encoding="utf-8")

    with pytest.raises(ValueError, match="security"):
        load_security_config(path)


def test_decorators_attach_metadata():
    @require_permissions("departments:read", "departments:update")
    @require_roles(["Lector"])
    @require_unrestricted()
    def endpoint():
        return None

    assert endpoint.__security_required_permissions__ == {("departments", "read"), ("departments", "update")}
    assert endpoint.__security_required_roles__ == {"Lector"}
    assert endpoint.__security_unrestricted_only__ is True


def test_permission_decorator_can_require_unrestricted():
    @require_permissions("agents:delete", unrestricted=True)
    def endpoint():
        return None

    @require_permissions("agents:read")
    def plain():
        return None

    assert endpoint.__security_required_permissions__ == {("agents", "delete")}
    assert endpoint.__security_unrestricted_only__ is True
    assert getattr(plain, "__security_unrestricted_only__", False) is False


def test_stacked_permission_decorators_accumulate():
    @require_permissions("patrols:read")
    @require_permissions("patrols:update")
    def endpoint():
        return None

    assert endpoint.__security_required_permissions__ == {("patrols", "read"), ("patrols", "update")}


def test_public_decorator():
    @public()
    def endpoint():
        return None

    assert endpoint.__security_public__ is True


def test_malformed_decorator_permission_is_rejected():
    with pytest.raises(ValueError):
        require_permissions("departments")
