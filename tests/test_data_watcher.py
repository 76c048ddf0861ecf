"""Tests for the patient CSV watcher."""

import pytest
from unittest.mock import MagicMock

from backend.patient_data.data_watcher import PatientDataWatcher
from backend.patient_data.exceptions import PatientSourceError


@pytest.fixture
def repository(tmp_path):
    repo = MagicMock()
    repo.csv_path = tmp_path / "patients.csv"
    repo.reload.return_value = 2
    return repo


class TestPatientDataWatcher:
    """Tests for PatientDataWatcher."""

    @pytest.mark.asyncio
    async def test_change_reloads_and_clears_cache(self, repository):
        """Test that a file change reloads patients and drops cached insights."""
        cache = MagicMock()
        watcher = PatientDataWatcher(repository, cache)

        await watcher._on_file_change()

        repository.reload.assert_called_once()
        cache.clear.assert_called_once()

    @pytest.mark.asyncio
    async def test_failed_reload_keeps_cache(self, repository):
        """Test that a broken file leaves the cache alone."""
        repository.reload.side_effect = PatientSourceError("bad csv")
        cache = MagicMock()
        watcher = PatientDataWatcher(repository, cache)

        await watcher._on_file_change()

        cache.clear.assert_not_called()

    @pytest.mark.asyncio
    async def test_start_and_stop(self, repository):
        watcher = PatientDataWatcher(repository)
        watcher.start()
        assert watcher._observer is not None
        watcher.stop()
        assert watcher._observer is None

    def test_missing_directory_does_not_start(self, tmp_path):
        repo = MagicMock()
        repo.csv_path = tmp_path / "absent" / "patients.csv"
        watcher = PatientDataWatcher(repo)
        watcher.start()
        assert watcher._observer is None
