"""Tests for billing settings and the service catalog."""

import json
import pytest
import tempfile
import sys
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import db
import settings as settings_policy
from errors import ConfigurationMissing, PersistenceNotFound, ValidationError


@pytest.fixture
def temp_db():
    """Point the app directory at a temporary folder."""
    temp_dir = tempfile.mkdtemp()
    original_get_app_dir = db.get_app_dir
    db.get_app_dir = lambda: Path(temp_dir)
    db.DB_PATH = None
    db.init_db()
    yield temp_dir
    db.get_app_dir = original_get_app_dir
    db.DB_PATH = None
    import shutil
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def configured():
    settings = settings_policy.default_settings()
    settings.update({'hourlyInPerson': 100.0, 'hourlyRemote': 80.0, 'cancelHours': 3.0})
    return settings


class TestSettingsFile:
    """Test loading and saving settings.json."""

    def test_load_missing_returns_none(self, temp_db):
        assert settings_policy.load_settings() is None

    def test_save_and_load(self, temp_db, configured):
        configured['freelancer']['business'] = "Depo Video Co"
        configured['services'] = ["Video Deposition", "Remote Deposition"]
        settings_policy.save_settings(configured)

        loaded = settings_policy.load_settings()
        assert loaded == configured

    def test_file_uses_documented_keys(self, temp_db, configured):
        settings_policy.save_settings(configured)
        with open(settings_policy.get_settings_path()) as f:
            data = json.load(f)
        assert set(data) == {'freelancer', 'hourlyInPerson', 'hourlyRemote', 'cancelHours', 'services'}
        assert set(data['freelancer']) == {'name', 'business', 'email', 'phone', 'address', 'website'}

    def test_load_fills_missing_keys(self, temp_db):
        with open(settings_policy.get_settings_path(), 'w') as f:
            json.dump({'hourlyInPerson': 90}, f)
        loaded = settings_policy.load_settings()
        assert loaded['hourlyInPerson'] == 90
        assert loaded['hourlyRemote'] is None
        assert loaded['services'] == []
        assert loaded['freelancer']['name'] == ''


class TestPolicy:
    """Test configuration requirements."""

    def test_none_is_not_configured(self):
        assert settings_policy.is_configured(None) is False
        with pytest.raises(ConfigurationMissing):
            settings_policy.require_configured(None)

    def test_missing_rate_is_not_configured(self, configured):
        configured['hourlyRemote'] = None
        assert settings_policy.is_configured(configured) is False
        with pytest.raises(ConfigurationMissing):
            settings_policy.require_configured(configured)

    def test_rates_by_job_type(self, configured):
        assert settings_policy.get_hourly_rate(configured, 'In-Person') == 100.0
        assert settings_policy.get_hourly_rate(configured, 'Remote') == 80.0

    def test_unknown_job_type(self, configured):
        with pytest.raises(ValidationError):
            settings_policy.get_hourly_rate(configured, 'Hybrid')

    def test_unset_cancel_hours_is_an_error(self, configured):
        configured['cancelHours'] = None
        with pytest.raises(ConfigurationMissing):
            settings_policy.get_cancel_hours(configured)

    def test_update_numeric_field(self, configured):
        settings_policy.update_field(configured, 'hourlyRemote', "95.5")
        assert configured['hourlyRemote'] == 95.5

    def test_update_numeric_field_rejects_negative(self, configured):
        with pytest.raises(ValidationError):
            settings_policy.update_field(configured, 'cancelHours', "-2")

    def test_update_profile_field(self, configured):
        settings_policy.update_field(configured, 'email', " me@example.com ")
        assert configured['freelancer']['email'] == "me@example.com"

    def test_update_profile_field_rejects_empty(self, configured):
        with pytest.raises(ValidationError):
            settings_policy.update_field(configured, 'name', "  ")


class TestServiceCatalog:
    """Test add/rename/delete of catalog services."""

    def test_add_service(self, configured):
        settings_policy.add_service(configured, "Video Deposition")
        assert configured['services'] == ["Video Deposition"]

    def test_add_empty_service_rejected(self, configured):
        with pytest.raises(ValidationError):
            settings_policy.add_service(configured, "")

    def test_rename_first_match_only(self, configured):
        configured['services'] = ["A", "B", "A"]
        settings_policy.rename_service(configured, "A", "C")
        assert configured['services'] == ["C", "B", "A"]

    def test_delete_removes_every_match(self, configured):
        configured['services'] = ["A", "B", "A", "C", "A"]
        settings_policy.delete_service(configured, "A")
        assert configured['services'] == ["B", "C"]

    def test_delete_unknown_service(self, configured):
        configured['services'] = ["A"]
        with pytest.raises(PersistenceNotFound):
            settings_policy.delete_service(configured, "Z")

    def test_rename_unknown_service(self, configured):
        with pytest.raises(PersistenceNotFound):
            settings_policy.rename_service(configured, "Z", "Y")
