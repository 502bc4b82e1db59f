"""Tests for declared jobs and repository identifiers."""

import pytest

from drone_cron.cli.error_handler import ValidationError
from drone_cron.scheduler.jobs import Job, RepositoryIdentifierError, parse_repository


class TestParseRepository:
    """Tests for parse_repository."""

    def test_owner_and_name(self) -> None:
        """Test splitting a valid identifier."""
        assert parse_repository("acme/widgets") == ("acme", "widgets")

    @pytest.mark.parametrize(
        "identifier",
        ["bad-repo-id", "a/b/c", "", "/", "acme/", "/widgets", "acme//widgets"],
    )
    def test_rejects_malformed(self, identifier: str) -> None:
        """Test that identifiers without exactly two parts are rejected."""
        with pytest.raises(RepositoryIdentifierError) as exc_info:
            parse_repository(identifier)

        assert exc_info.value.identifier == identifier
        assert "failed to split repo name" in exc_info.value.message

    def test_error_is_validation_error(self) -> None:
        """Test that the error fits the CLI error hierarchy."""
        with pytest.raises(ValidationError):
            parse_repository("nope")


class TestJob:
    """Tests for the Job dataclass."""

    def test_default_branch(self) -> None:
        """Test that the branch defaults to master."""
        job = Job(repository="acme/widgets", schedule="@hourly")

        assert job.branch == "master"
        assert job.name == "acme/widgets@master"

    def test_custom_branch(self) -> None:
        """Test a job on another branch."""
        job = Job(repository="acme/widgets", schedule="@hourly", branch="main")

        assert job.name == "acme/widgets@main"

    def test_is_immutable(self) -> None:
        """Test that jobs cannot be modified."""
        job = Job(repository="acme/widgets", schedule="@hourly")

        with pytest.raises(AttributeError):
            job.schedule = "@daily"  # type: ignore[misc]
