"""Tests for package todo files."""

from pathlib import Path

import yaml

from packguard.models import ConstantContext, Reference, SourceLocation, ViolationType
from packguard.package import Package
from packguard.package_todo import PackageTodo, PackageTodoLister

SALES = Package("components/sales", {"enforce_dependencies": True})
BILLING = Package("components/billing", {"enforce_privacy": True})

ORDER_FILE = "components/sales/app/models/sales/order.rb"
CART_FILE = "components/sales/app/models/sales/cart.rb"


def make_reference(relative_path: str = ORDER_FILE, constant_name: str = "::Billing::Invoice") -> Reference:
    return Reference(
        package=SALES,
        relative_path=relative_path,
        constant=ConstantContext(
            name=constant_name,
            location="components/billing/app/models/billing/invoice.rb",
            package=BILLING,
        ),
        source_location=SourceLocation(line=1, column=0),
    )


def write_todo(path: Path, entries) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(entries), encoding="utf-8")
    return path


def todo_at(temp_dir: Path, entries=None) -> PackageTodo:
    path = temp_dir / "components" / "sales" / "package_todo.yml"
    if entries is not None:
        write_todo(path, entries)
    return PackageTodo("components/sales", path)


LISTED = {
    "components/billing": {
        "::Billing::Invoice": {"violations": ["dependency"], "files": [ORDER_FILE]},
    }
}


class TestListed:
    """Tests for is_listed and add_entries."""

    def test_listed(self, temp_dir: Path):
        todo = todo_at(temp_dir, LISTED)
        assert todo.is_listed(make_reference(), ViolationType.DEPENDENCY)

    def test_other_violation_type_or_file(self, temp_dir: Path):
        todo = todo_at(temp_dir, LISTED)
        assert not todo.is_listed(make_reference(), ViolationType.PRIVACY)
        assert not todo.is_listed(make_reference(CART_FILE), ViolationType.DEPENDENCY)
        assert not todo.is_listed(make_reference(constant_name="::Billing::Ledger"), ViolationType.DEPENDENCY)

    def test_missing_file(self, temp_dir: Path):
        assert not todo_at(temp_dir).is_listed(make_reference(), ViolationType.DEPENDENCY)

    def test_add_entries_reports_persisted_status(self, temp_dir: Path):
        """Test that add_entries records the entry and answers from the persisted file only."""
        todo = todo_at(temp_dir, LISTED)

        assert todo.add_entries(make_reference(), ViolationType.DEPENDENCY) is True
        assert todo.add_entries(make_reference(CART_FILE), ViolationType.DEPENDENCY) is False
        # recorded in this run, still not persisted
        assert todo.add_entries(make_reference(CART_FILE), ViolationType.DEPENDENCY) is False
        assert todo.new_entries["components/billing"]["::Billing::Invoice"]["files"] == [
            ORDER_FILE,
            CART_FILE,
            CART_FILE,
        ]

    def test_malformed_file_is_empty(self, temp_dir: Path):
        todo = todo_at(temp_dir)
        todo.path.parent.mkdir(parents=True)
        todo.path.write_text("components/billing: [unclosed\n", encoding="utf-8")
        assert todo.todo_list == {}

    def test_unexpected_structure_is_empty(self, temp_dir: Path):
        todo = todo_at(temp_dir, ["components/billing"])
        assert todo.todo_list == {}


class TestStaleViolations:
    """Tests for stale_violations."""

    def test_nothing_persisted(self, temp_dir: Path):
        todo = todo_at(temp_dir)
        todo.add_entries(make_reference(), ViolationType.DEPENDENCY)
        assert not todo.stale_violations()

    def test_all_reproduced(self, temp_dir: Path):
        todo = todo_at(temp_dir, LISTED)
        todo.add_entries(make_reference(), ViolationType.DEPENDENCY)
        assert not todo.stale_violations()

    def test_constant_no_longer_referenced(self, temp_dir: Path):
        assert todo_at(temp_dir, LISTED).stale_violations()

    def test_violation_type_no_longer_observed(self, temp_dir: Path):
        entries = {
            "components/billing": {
                "::Billing::Invoice": {"violations": ["dependency", "privacy"], "files": [ORDER_FILE]},
            }
        }
        todo = todo_at(temp_dir, entries)
        todo.add_entries(make_reference(), ViolationType.DEPENDENCY)
        assert todo.stale_violations()

    def test_file_no_longer_referencing(self, temp_dir: Path):
        entries = {
            "components/billing": {
                "::Billing::Invoice": {"violations": ["dependency"], "files": [ORDER_FILE, CART_FILE]},
            }
        }
        todo = todo_at(temp_dir, entries)
        todo.add_entries(make_reference(), ViolationType.DEPENDENCY)
        assert todo.stale_violations()

    def test_first_stale_entry_ends_the_search(self, temp_dir: Path):
        """Test that a stale later entry is found even though an earlier one is fine."""
        entries = {
            "components/billing": {
                "::Billing::Invoice": {"violations": ["dependency"], "files": [ORDER_FILE]},
                "::Billing::Ledger": {"violations": ["dependency"], "files": [ORDER_FILE]},
            }
        }
        todo = todo_at(temp_dir, entries)
        todo.add_entries(make_reference(), ViolationType.DEPENDENCY)
        assert todo.stale_violations()

    def test_for_files(self, temp_dir: Path):
        """Test that only entries mentioning the given files are considered."""
        entries = {
            "components/billing": {
                "::Billing::Invoice": {"violations": ["dependency"], "files": [ORDER_FILE]},
                "::Billing::Ledger": {"violations": ["dependency"], "files": [CART_FILE]},
            }
        }
        todo = todo_at(temp_dir, entries)
        todo.add_entries(make_reference(), ViolationType.DEPENDENCY)

        assert not todo.stale_violations(for_files=[ORDER_FILE])
        assert todo.stale_violations(for_files=[CART_FILE])


class TestDump:
    """Tests for writing todo files."""

    def test_sorted_and_unique(self, temp_dir: Path):
        todo = todo_at(temp_dir)
        todo.add_entries(make_reference(ORDER_FILE, "::Billing::Ledger"), ViolationType.DEPENDENCY)
        todo.add_entries(make_reference(ORDER_FILE), ViolationType.PRIVACY)
        todo.add_entries(make_reference(ORDER_FILE), ViolationType.DEPENDENCY)
        todo.add_entries(make_reference(CART_FILE), ViolationType.DEPENDENCY)
        todo.add_entries(make_reference(CART_FILE), ViolationType.DEPENDENCY)
        todo.dump()

        content = todo.path.read_text(encoding="utf-8")
        assert content.startswith("# This file contains a list of dependencies")
        assert "packguard update-todo" in content
        assert yaml.safe_load(content) == {
            "components/billing": {
                "::Billing::Invoice": {
                    "violations": ["dependency", "privacy"],
                    "files": [CART_FILE, ORDER_FILE],
                },
                "::Billing::Ledger": {"violations": ["dependency"], "files": [ORDER_FILE]},
            }
        }
        assert content.index("::Billing::Invoice") < content.index("::Billing::Ledger")

    def test_round_trip_keeps_listed_status(self, temp_dir: Path):
        todo = todo_at(temp_dir)
        todo.add_entries(make_reference(), ViolationType.PRIVACY)
        todo.dump()

        reloaded = todo_at(temp_dir)
        assert reloaded.is_listed(make_reference(), ViolationType.PRIVACY)
        assert not reloaded.is_listed(make_reference(), ViolationType.DEPENDENCY)

    def test_empty_deletes_file(self, temp_dir: Path):
        todo = todo_at(temp_dir, LISTED)
        assert todo.path.exists()
        todo.dump()
        assert not todo.path.exists()


class TestPackageTodoLister:
    """Tests for the read-only lister used while checking."""

    def test_reads_todo_of_referencing_package(self, temp_dir: Path):
        todo_at(temp_dir, LISTED)
        lister = PackageTodoLister(temp_dir)

        assert lister.is_listed(make_reference(), ViolationType.DEPENDENCY)
        assert not lister.is_listed(make_reference(), ViolationType.PRIVACY)

    def test_missing_todo_file(self, temp_dir: Path):
        assert not PackageTodoLister(temp_dir).is_listed(make_reference(), ViolationType.DEPENDENCY)
