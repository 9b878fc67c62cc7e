"""Tests for filesystem path helpers."""

import pytest

from app.utils.filesystem import (
    delete_temp_file,
    get_result_file_path,
    get_temp_file_path,
    is_valid_identifier,
    setup_directories,
    validate_identifier,
)


class TestValidateIdentifier:
    @pytest.mark.parametrize("value", ["abc", "job_1", "3f1c2b8e-1d2a-4b7e-9c1f-0a2b3c4d5e6f"])
    def test_valid(self, value):
        validate_identifier(value)
        assert is_valid_identifier(value)

    @pytest.mark.parametrize("value", ["../etc", "a/b", "a.b", "a b", "a\\b"])
    def test_invalid(self, value):
        with pytest.raises(ValueError, match="Invalid job_id"):
            validate_identifier(value)
        assert not is_valid_identifier(value)

    def test_empty(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            validate_identifier("")
        assert not is_valid_identifier("")

    def test_custom_name_in_message(self):
        with pytest.raises(ValueError, match="Invalid object"):
            validate_identifier("../x", name="object")


class TestPaths:
    def test_setup_directories(self, isolated_dirs):
        setup_directories()
        assert (isolated_dirs / "data").is_dir()
        assert (isolated_dirs / "temp").is_dir()

    def test_temp_file_path_creates_directory(self, isolated_dirs):
        path = get_temp_file_path("job-1", "mp4")

        assert path == isolated_dirs / "temp" / "job-1.mp4"
        assert path.parent.is_dir()

    def test_temp_file_path_rejects_bad_extension(self):
        with pytest.raises(ValueError, match="Invalid file extension"):
            get_temp_file_path("job-1", "mp4/../../x")

    def test_result_file_path(self, tmp_path):
        assert get_result_file_path(tmp_path, "job-1") == tmp_path / "job-1.json"

    def test_result_file_path_rejects_traversal(self, tmp_path):
        with pytest.raises(ValueError):
            get_result_file_path(tmp_path, "../job-1")


class TestDeleteTempFile:
    @pytest.mark.asyncio
    async def test_deletes_file(self, tmp_path):
        path = tmp_path / "x.mp4"
        path.write_bytes(b"data")

        await delete_temp_file(path)

        assert not path.exists()

    @pytest.mark.asyncio
    async def test_missing_file_is_ignored(self, tmp_path):
        await delete_temp_file(tmp_path / "missing.mp4")

    @pytest.mark.asyncio
    async def test_directory_error_logged_not_raised(self, tmp_path):
        directory = tmp_path / "dir.mp4"
        directory.mkdir()

        await delete_temp_file(directory)

        assert directory.exists()
