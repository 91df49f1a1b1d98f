"""Tests for file enumeration."""

from pathlib import Path

from helpers import write_files

from packguard.config import DEFAULT_EXCLUDE, DEFAULT_INCLUDE
from packguard.files import FilesForProcessing, glob_to_regex, matches_any


class TestGlobToRegex:
    """Tests for glob translation."""

    def test_double_star_matches_any_depth(self):
        pattern = glob_to_regex("**/*.rb")
        assert pattern.match("order.rb")
        assert pattern.match("app/models/order.rb")
        assert not pattern.match("app/models/order.rbx")

    def test_single_star_stays_in_segment(self):
        pattern = glob_to_regex("app/*.rb")
        assert pattern.match("app/order.rb")
        assert not pattern.match("app/models/order.rb")

    def test_alternatives(self):
        assert matches_any("vendor/gems/x.rb", DEFAULT_EXCLUDE)
        assert matches_any("tmp/cache/x.rb", DEFAULT_EXCLUDE)
        assert not matches_any("app/vendor.rb", DEFAULT_EXCLUDE)


class TestFilesForProcessing:
    """Tests for FilesForProcessing.files."""

    def build_tree(self, root: Path) -> None:
        write_files(
            root,
            {
                "app/models/order.rb": "",
                "app/views/orders/show.html.erb": "",
                "lib/tasks/billing.rake": "",
                "vendor/bundle/gem.rb": "",
                "README.md": "",
                ".git/hooks/hook.rb": "",
            },
        )

    def test_whole_tree(self, temp_dir: Path):
        self.build_tree(temp_dir)
        files = FilesForProcessing(temp_dir, DEFAULT_INCLUDE, DEFAULT_EXCLUDE).files()

        assert files == [
            "app/models/order.rb",
            "app/views/orders/show.html.erb",
            "lib/tasks/billing.rake",
        ]

    def test_explicit_paths(self, temp_dir: Path):
        """Test that named directories are walked and named files filtered by the globs."""
        self.build_tree(temp_dir)
        files = FilesForProcessing(
            temp_dir,
            DEFAULT_INCLUDE,
            DEFAULT_EXCLUDE,
            relative_paths=["lib", "app/models/order.rb", "README.md", "vendor/bundle/gem.rb"],
        ).files()

        assert files == ["app/models/order.rb", "lib/tasks/billing.rake"]
