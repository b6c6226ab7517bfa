from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from civigest.security.permissions import parse_permission


class AuthConfig(BaseModel):
    authorization_header: str = "Authorization"
    bearer_prefix: str = "Bearer"


def _check_permissions(values: list[str]) -> list[str]:
    # Fail at load time on "departments.read" style typos.
    for value in values:
        parse_permission(value)
    return values


class DefaultRule(BaseModel):
    auth_required: bool = True
    required_permissions: list[str] = Field(default_factory=list)
    required_roles: list[str] = Field(default_factory=list)
    unrestricted_only: bool = False

    @field_validator("required_permissions")
    @classmethod
    def validate_permissions(cls, value: list[str]) -> list[str]:
        return _check_permissions(value)


class RouteRule(BaseModel):
    path: str
    methods: list[str] = Field(default_factory=lambda: ["GET"])

    public: bool = False
    required_permissions: list[str] = Field(default_factory=list)
    required_roles: list[str] = Field(default_factory=list)
    unrestricted_only: bool | None = None

    @field_validator("required_permissions")
    @classmethod
    def validate_permissions(cls, value: list[str]) -> list[str]:
        return _check_permissions(value)

    def normalized_methods(self) -> set[str]:
        return {m.upper() for m in self.methods}


class SecurityConfigModel(BaseModel):
    auth: AuthConfig = Field(default_factory=AuthConfig)
    default: DefaultRule = Field(default_factory=DefaultRule)
    routes: list[RouteRule] = Field(default_factory=list)


@dataclass(frozen=True)
class EffectiveRule:
    """
    Fully-resolved rule (defaults applied) for a particular request.
    """

    auth_required: bool
    required_permissions: frozenset[tuple[str, str]]
    required_roles: frozenset[str]
    unrestricted_only: bool


def _path_template_to_regex(path_template: str) -> re.Pattern[str]:
    # Convert "/departments/{id}" -> r"^/departments/[^/]+$"
    regex = re.sub(r"\{[^/]+\}", r"[^/]+", path_template)
    return re.compile(rf"^{regex}$")


def _permission_pairs(values: list[str]) -> frozenset[tuple[str, str]]:
    return frozenset(parse_permission(v) for v in values)


class SecurityConfig:
    """
    Runtime helper around validated config + route matching.
    """

    def __init__(self, model: SecurityConfigModel):
        self.model = model

        compiled: list[tuple[str, re.Pattern[str], RouteRule]] = []
        for rule in self.model.routes:
            compiled.append((rule.path, _path_template_to_regex(rule.path), rule))

        # Prefer exact matches over templates.
        self._exact_rules: dict[str, list[RouteRule]] = {}
        for r in self.model.routes:
            self._exact_rules.setdefault(r.path, []).append(r)
        self._compiled_rules = compiled

    @property
    def auth(self) -> AuthConfig:
        return self.model.auth

    def match(self, path: str, method: str) -> EffectiveRule:
        """
        Find the best matching rule for (path, method), then apply defaults.
        """

        method = method.upper()
        default = self.model.default

        # 1) exact path match
        for candidate in self._exact_rules.get(path, []):
            if method in candidate.normalized_methods():
                return _effective(candidate, default)

        # 2) template match
        for _template, regex, candidate in self._compiled_rules:
            if method not in candidate.normalized_methods():
                continue
            if regex.match(path):
                return _effective(candidate, default)

        # 3) no match -> defaults
        return EffectiveRule(
            auth_required=default.auth_required,
            required_permissions=_permission_pairs(default.required_permissions),
            required_roles=frozenset(default.required_roles),
            unrestricted_only=default.unrestricted_only,
        )


def _effective(rule: RouteRule, default: DefaultRule) -> EffectiveRule:
    if rule.public:
        return EffectiveRule(
            auth_required=False,
            required_permissions=frozenset(),
            required_roles=frozenset(),
            unrestricted_only=False,
        )

    return EffectiveRule(
        auth_required=True,
        required_permissions=_permission_pairs(rule.required_permissions or default.required_permissions),
        required_roles=frozenset(rule.required_roles or default.required_roles),
        unrestricted_only=default.unrestricted_only if rule.unrestricted_only is None else rule.unrestricted_only,
    )


def load_security_config(path: Path) -> SecurityConfig:
    raw_text = path.read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "security" not in raw:
        raise ValueError(f"Missing top-level 'security' key in config: {path}")

    model = SecurityConfigModel.model_validate(raw["security"])
    return SecurityConfig(model)
