import pytest
import typer

from imgpress.cli.callbacks import validate_format, validate_output_dir, validate_quality


class TestCallbacks:
    def test_validate_output_dir_valid(self, tmp_path):
        """Test validation of valid output directory."""
        assert validate_output_dir(tmp_path) == tmp_path

    def test_validate_output_dir_none(self):
        assert validate_output_dir(None) is None

    def test_validate_output_dir_file(self, tmp_path):
        """Test validation fails if output path is a file."""
        file_path = tmp_path / "test.txt"
        file_path.touch()
        with pytest.raises(typer.BadParameter, match="Output path exists but is not a directory"):
            validate_output_dir(file_path)

    @pytest.mark.parametrize(
        "value,expected",
        [("webp", "webp"), ("JPG", "jpeg"), ("image/avif", "avif"), ("png", "png")],
    )
    def test_validate_format_normalizes(self, value, expected):
        assert validate_format(value) == expected

    def test_validate_format_none(self):
        assert validate_format(None) is None

    def test_validate_format_invalid(self):
        with pytest.raises(typer.BadParameter, match="Invalid format 'gif'"):
            validate_format("gif")

    @pytest.mark.parametrize("value,expected", [(0.0, 0.0), (0.75, 0.75), (1.0, 1.0), (80, 0.8), (100, 1.0)])
    def test_validate_quality(self, value, expected):
        assert validate_quality(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", [-0.1, 101])
    def test_validate_quality_out_of_range(self, value):
        with pytest.raises(typer.BadParameter, match="Quality must be between"):
            validate_quality(value)
