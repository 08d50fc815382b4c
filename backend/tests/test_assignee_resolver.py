"""Tests for assignee resolution against the directory"""
import pytest
from pydantic import TypeAdapter, ValidationError

from docflow.domain.models import AssigneeSpec
from docflow.engine.assignee_resolver import AssigneeResolver

_specs = TypeAdapter(list[AssigneeSpec])


def resolve(*raw):
    return AssigneeResolver().resolve(_specs.validate_python(list(raw)))


def test_explicit_user(directory):
    assert resolve({"kind": "user", "user_id": "u-lena"}) == ["u-lena"]


def test_unknown_and_inactive_users_are_dropped(directory):
    assert resolve(
        {"kind": "user", "user_id": "u-ghost"},
        {"kind": "user", "user_id": "u-ivy"},
    ) == []


def test_role_returns_active_holders(directory):
    assert resolve({"kind": "role", "role": "legal"}) == ["u-lena", "u-liam"]


def test_department_members(directory):
    assert resolve({"kind": "dynamic", "rule": "department", "value": "Finance"}) == [
        "u-fiona", "u-frank", "u-fred"
    ]


def test_department_head(directory):
    assert resolve({"kind": "dynamic", "rule": "department_head", "value": "Finance"}) == ["u-fiona"]


def test_department_without_head_resolves_empty(directory):
    assert resolve({"kind": "dynamic", "rule": "department_head", "value": "Marketing"}) == []
    assert resolve({"kind": "dynamic", "rule": "department_head", "value": "Nowhere"}) == []


def test_inactive_department_head_is_dropped(directory):
    assert resolve({"kind": "dynamic", "rule": "department_head", "value": "Sales"}) == []


def test_union_is_deduplicated_in_first_seen_order(directory):
    assert resolve(
        {"kind": "user", "user_id": "u-liam"},
        {"kind": "role", "role": "legal"},
        {"kind": "dynamic", "rule": "department_head", "value": "Legal"},
    ) == ["u-liam", "u-lena"]


def test_unknown_spec_kind_is_rejected():
    with pytest.raises(ValidationError):
        _specs.validate_python([{"kind": "position", "value": "CFO"}])
