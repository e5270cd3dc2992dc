"""Tests for reuse of a prior gemset."""

from pathlib import PurePath

from bundler.models import GemSource, GitSource, PackageSpec, PathSource
from bundler.platform import GemPlatform
from gemset.cache import ResultCache

SHA = "1" * 52


def gem_spec(version="1.0.0"):
    return PackageSpec("foo", version, GemPlatform.RUBY, GemSource(("https://rubygems.org",)))


def prior_gem(version="1.0.0", target="ruby"):
    return {
        "foo": {
            "version": version,
            "target_platform": target,
            "groups": ["default"],
            "source": {"type": "gem", "remotes": ["https://rubygems.org"], "sha256": SHA},
        }
    }


class TestResultCache:
    """Test the reuse decision."""

    def test_same_version_is_reused(self):
        """Test an unchanged gem reuses version and source only."""
        found = ResultCache(prior_gem(), "ruby").find(gem_spec())
        assert found == {
            "version": "1.0.0",
            "source": {"type": "gem", "remotes": ["https://rubygems.org"], "sha256": SHA},
        }

    def test_version_change_is_not_reused(self):
        """Test a new version is fetched again."""
        assert ResultCache(prior_gem(), "ruby").find(gem_spec("1.0.1")) is None

    def test_other_target_platform_is_not_reused(self):
        """Test entries resolved for another platform are not reused."""
        assert ResultCache(prior_gem(target="x86_64-linux"), "ruby").find(gem_spec()) is None

    def test_missing_entry(self):
        """Test no prior gemset means no reuse."""
        assert ResultCache(None, "ruby").find(gem_spec()) is None
        assert ResultCache({"foo": {"version": "1.0.0"}}, "ruby").find(gem_spec()) is None

    def test_git_revision_must_match(self):
        """Test git entries are reused only for the same revision."""
        source = GitSource(uri="https://example.com/foo.git", revision="abc")
        spec = PackageSpec("foo", "0.1.0", GemPlatform.RUBY, source)
        prior = {"foo": {
            "version": "0.1.0",
            "target_platform": "ruby",
            "source": {"type": "git", "url": source.uri, "rev": "abc", "sha256": SHA},
        }}
        assert ResultCache(prior, "ruby").find(spec)["source"]["rev"] == "abc"
        moved = PackageSpec("foo", "0.1.0", GemPlatform.RUBY, GitSource(uri=source.uri, revision="def"))
        assert ResultCache(prior, "ruby").find(moved) is None

    def test_source_type_change_is_not_reused(self):
        """Test a gem that moved from git to a registry is fetched again."""
        prior = {"foo": {
            "version": "1.0.0",
            "target_platform": "ruby",
            "source": {"type": "git", "rev": "abc", "sha256": SHA},
        }}
        assert ResultCache(prior, "ruby").find(gem_spec()) is None

    def test_path_sources_are_never_reused(self):
        """Test path sources are always recomputed."""
        spec = PackageSpec("foo", "1.0.0", GemPlatform.RUBY, PathSource(PurePath("vendor/foo")))
        prior = {"foo": {"version": "1.0.0", "target_platform": "ruby", "source": {"type": "path"}}}
        assert ResultCache(prior, "ruby").find(spec) is None
