import pytest
from sqlalchemy import select

from esurat_api.models.system import Setting
from esurat_api.services.system_settings import (
    SETTING_DEFINITIONS,
    SettingValidationError,
    load_system_settings,
    update_system_settings,
)


def test_load_uses_seeded_defaults(db_session):
    settings = load_system_settings(db_session)

    assert settings.qr_default_size == 100
    assert settings.upload_max_size == 10 * 1024 * 1024
    assert settings.wa_session == "default"


def test_load_falls_back_to_defaults_without_rows(db_session):
    for row in db_session.execute(select(Setting)).scalars().all():
        db_session.delete(row)
    db_session.flush()

    settings = load_system_settings(db_session)

    assert settings.app_name == SETTING_DEFINITIONS["app.name"].default
    assert settings.qr_default_size == 100


def test_update_converts_numbers_and_reports_changes(db_session):
    settings, changed = update_system_settings(db_session, {"qr.default_size": "120", "app.name": "E-Surat"})

    assert settings.qr_default_size == 120
    assert settings.app_name == "E-Surat"
    assert sorted(changed) == ["app.name", "qr.default_size"]

    _, changed_again = update_system_settings(db_session, {"qr.default_size": 120})
    assert changed_again == []


def test_update_rejects_unknown_key(db_session):
    with pytest.raises(SettingValidationError, match="tidak dikenal"):
        update_system_settings(db_session, {"foo.bar": "x"})


def test_update_rejects_wrong_type(db_session):
    with pytest.raises(SettingValidationError, match="angka"):
        update_system_settings(db_session, {"upload.max_size": "sepuluh"})
    with pytest.raises(SettingValidationError, match="teks"):
        update_system_settings(db_session, {"app.name": 12})


@pytest.mark.parametrize("value", ["1e999", "-inf", "nan", float("inf")])
def test_update_rejects_non_finite_number(db_session, value):
    with pytest.raises(SettingValidationError, match="angka"):
        update_system_settings(db_session, {"qr.default_size": value})

    assert load_system_settings(db_session).qr_default_size == 100


def test_update_rejects_out_of_range_value(db_session):
    with pytest.raises(SettingValidationError):
        update_system_settings(db_session, {"qr.default_size": 500})

    assert load_system_settings(db_session).qr_default_size == 100
