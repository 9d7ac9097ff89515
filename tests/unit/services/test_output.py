"""Tests for writing converted images to disk."""

import pytest

from imgpress.core.batch import ExportEntry
from imgpress.services.output import OutputExistsError, OutputWriter


class TestResolveConflict:
    def test_missing_file(self, tmp_path):
        writer = OutputWriter(tmp_path, on_conflict="skip")
        assert writer.resolve_conflict(tmp_path / "a.webp") == tmp_path / "a.webp"

    def test_overwrite(self, tmp_path):
        (tmp_path / "a.webp").touch()
        writer = OutputWriter(tmp_path, on_conflict="overwrite")

        assert writer.resolve_conflict(tmp_path / "a.webp") == tmp_path / "a.webp"

    def test_rename(self, tmp_path):
        (tmp_path / "a.webp").touch()
        writer = OutputWriter(tmp_path, on_conflict="rename")

        assert writer.resolve_conflict(tmp_path / "a.webp") == tmp_path / "a_1.webp"

    def test_skip_raises(self, tmp_path):
        (tmp_path / "a.webp").touch()
        writer = OutputWriter(tmp_path, on_conflict="skip")

        with pytest.raises(OutputExistsError) as exc_info:
            writer.resolve_conflict(tmp_path / "a.webp")
        assert exc_info.value.path == tmp_path / "a.webp"


class TestWrite:
    @pytest.mark.asyncio
    async def test_creates_directory(self, tmp_path):
        writer = OutputWriter(tmp_path / "out")

        path = await writer.write(ExportEntry(filename="a.webp", data=b"data"))

        assert path == tmp_path / "out" / "a.webp"
        assert path.read_bytes() == b"data"

    @pytest.mark.asyncio
    async def test_skip_keeps_existing(self, tmp_path):
        (tmp_path / "a.webp").write_bytes(b"old")
        writer = OutputWriter(tmp_path, on_conflict="skip")

        assert await writer.write(ExportEntry(filename="a.webp", data=b"new")) is None
        assert (tmp_path / "a.webp").read_bytes() == b"old"

    @pytest.mark.asyncio
    async def test_write_all_renames_duplicates(self, tmp_path):
        writer = OutputWriter(tmp_path, on_conflict="rename")
        entries = [
            ExportEntry(filename="cat.webp", data=b"1"),
            ExportEntry(filename="cat.webp", data=b"2"),
        ]

        written = await writer.write_all(entries)

        assert [p.name for p in written] == ["cat.webp", "cat_1.webp"]
        assert (tmp_path / "cat_1.webp").read_bytes() == b"2"

    @pytest.mark.asyncio
    async def test_write_all_reports_only_written(self, tmp_path):
        (tmp_path / "a.webp").write_bytes(b"old")
        writer = OutputWriter(tmp_path, on_conflict="skip")

        written = await writer.write_all(
            [ExportEntry(filename="a.webp", data=b"1"), ExportEntry(filename="b.webp", data=b"2")]
        )

        assert written == [tmp_path / "b.webp"]

    @pytest.mark.asyncio
    async def test_write_all_overwrite_keeps_same_batch_duplicates(self, tmp_path):
        """Two inputs converging on one output name both survive."""
        (tmp_path / "a.webp").write_bytes(b"previous run")
        writer = OutputWriter(tmp_path, on_conflict="overwrite")
        entries = [
            ExportEntry(filename="a.webp", data=b"from a.png"),
            ExportEntry(filename="a.webp", data=b"from a.jpg"),
        ]

        written = await writer.write_all(entries)

        assert [p.name for p in written] == ["a.webp", "a_1.webp"]
        assert (tmp_path / "a.webp").read_bytes() == b"from a.png"
        assert (tmp_path / "a_1.webp").read_bytes() == b"from a.jpg"
