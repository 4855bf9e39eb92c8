"""Tests for record change detection."""

from __future__ import annotations

from app.pipelines.intake import ChangeDetector
from app.services.response_contract import EmergencyRecord
from conftest import MEDICAL_RECORD


def _record(**overrides) -> EmergencyRecord:
    return EmergencyRecord.model_validate(dict(MEDICAL_RECORD, **overrides))


def test_first_record_is_always_material():
    assert ChangeDetector.is_material_change(None, _record()) is True


def test_missing_new_record_never_triggers_a_write():
    assert ChangeDetector.is_material_change(None, None) is False
    assert ChangeDetector.is_material_change(_record(), None) is False


def test_identical_record_is_not_material():
    assert ChangeDetector.is_material_change(_record(), _record()) is False


def test_any_field_difference_is_material():
    base = _record()

    assert ChangeDetector.is_material_change(base, _record(casualties=2))
    assert ChangeDetector.is_material_change(base, _record(description="Man collapsed"))
    assert ChangeDetector.is_material_change(base, _record(latitude=40.7))
    assert ChangeDetector.is_material_change(base, _record(severity="CRITICAL"))
