"""
Unit Tests - Local State Repository
"""
import pytest

from multistore_dashboard.config import StoreCredential
from multistore_dashboard.exceptions import ConfigError
from multistore_dashboard.storage.repository import (
    CREDENTIALS_KEY,
    LEGACY_CREDENTIALS_KEY,
    SQLiteStateRepository,
)


@pytest.fixture
def repository(tmp_path):
    repo = SQLiteStateRepository(tmp_path / "state" / "dashboard.sqlite3")
    repo.initialize()
    return repo


class TestCredentials:
    """Tests for credential persistence"""

    def test_round_trip(self, repository):
        credentials = [StoreCredential("1", "a"), StoreCredential("2", "b")]

        repository.save_credentials(credentials)

        assert repository.load_credentials() == credentials

    def test_empty_when_nothing_saved(self, repository):
        assert repository.load_credentials() == []

    def test_legacy_key_used_when_multi_key_absent(self, repository):
        repository.set(LEGACY_CREDENTIALS_KEY, {"clientId": "old", "apiKey": "k"})

        assert repository.load_credentials() == [StoreCredential("old", "k")]

    def test_legacy_key_ignored_when_multi_key_present(self, repository):
        repository.set(LEGACY_CREDENTIALS_KEY, {"clientId": "old", "apiKey": "k"})
        repository.save_credentials([StoreCredential("new", "k2")])

        assert repository.load_credentials() == [StoreCredential("new", "k2")]

    def test_single_object_under_multi_key_is_migrated(self, repository):
        repository.set(CREDENTIALS_KEY, {"clientId": "1", "apiKey": "a"})

        assert repository.load_credentials() == [StoreCredential("1", "a")]

    def test_clear_removes_both_keys(self, repository):
        repository.set(LEGACY_CREDENTIALS_KEY, {"clientId": "old", "apiKey": "k"})
        repository.save_credentials([StoreCredential("1", "a")])

        repository.clear_credentials()

        assert repository.load_credentials() == []

    def test_invalid_entry_raises(self, repository):
        repository.set(CREDENTIALS_KEY, [{"clientId": "1"}])

        with pytest.raises(ConfigError):
            repository.load_credentials()


class TestPackedState:
    """Tests for packed id persistence"""

    def test_round_trip(self, repository):
        repository.save_packed({"P2", "P1"})

        assert repository.load_packed() == frozenset({"P1", "P2"})

    def test_defaults_to_empty(self, repository):
        assert repository.load_packed() == frozenset()
