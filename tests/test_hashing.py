"""Tests for nix base-32 digest handling."""

from unittest.mock import MagicMock

import pytest

from common.errors import ExternalToolError, FormatError
from gemset.hashing import HashFormatter, extract_hash, is_sha256_base32, validate_hash

VALID = "0" * 20 + "abcdefghijklmnopqrstuvwxyz012345"


class TestShapeValidation:
    """Test canonical digest shape checks."""

    def test_accepts_52_lowercase_alphanumerics(self):
        """Test a 52-char lowercase digest is accepted."""
        assert len(VALID) == 52
        assert is_sha256_base32(VALID)
        assert validate_hash(VALID) == VALID

    @pytest.mark.parametrize("value", [
        None,
        "",
        VALID[:-1],
        VALID + "a",
        VALID.upper(),
        VALID[:-1] + "-",
        VALID + "\n",
    ])
    def test_rejects_everything_else(self, value):
        """Test any other shape is rejected."""
        assert not is_sha256_base32(value)
        with pytest.raises(FormatError):
            validate_hash(value)

    def test_extract_hash_picks_digest_line(self):
        """Test the digest line is found in noisy tool output."""
        output = f"path is '/nix/store/xyz-foo.gem'\n{VALID}\n"
        assert extract_hash(output) == VALID
        assert extract_hash("no digest here") is None
        assert extract_hash(None) is None


class TestHashFormatter:
    """Test nix-hash re-encoding."""

    def test_runs_nix_hash(self):
        """Test the raw digest is converted through nix-hash."""
        run = MagicMock(return_value=VALID + "\n")
        assert HashFormatter(run).format_hash("abcdef") == VALID
        run.assert_called_once_with("nix-hash", "--type", "sha256", "--to-base32", "abcdef")

    def test_invalid_output_yields_none(self):
        """Test output of the wrong shape is discarded."""
        run = MagicMock(return_value="NOT-A-HASH\n")
        assert HashFormatter(run).format_hash("abcdef") is None

    def test_tool_failure_yields_none(self):
        """Test a failing nix-hash yields None."""
        run = MagicMock(side_effect=ExternalToolError("boom", command="nix-hash"))
        assert HashFormatter(run).format_hash("abcdef") is None

    def test_empty_input(self):
        """Test nothing is run for an empty digest."""
        run = MagicMock()
        assert HashFormatter(run).format_hash(None) is None
        run.assert_not_called()
