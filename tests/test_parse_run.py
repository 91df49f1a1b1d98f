"""End-to-end tests for check, update-todo and detect-stale-violations runs."""

from pathlib import Path
from typing import List

import yaml

from packguard.config import Configuration
from packguard.files import FilesForProcessing
from packguard.models import Offense, ViolationType
from packguard.parse_run import ParseRun
from packguard.run_context import RunContext

ORDER_FILE = "components/sales/app/models/sales/order.rb"
REPORT_FILE = "app/models/report.rb"


def all_files(configuration: Configuration) -> List[str]:
    return FilesForProcessing(configuration.root_path, configuration.include, configuration.exclude).files()


def run_for(configuration: Configuration, **kwargs) -> ParseRun:
    return ParseRun(all_files(configuration), configuration, **kwargs)


def reload(root: Path) -> Configuration:
    return Configuration.from_path(root)


class TestCheck:
    """Tests for ParseRun.check."""

    def test_files_of_sample_app(self, configuration: Configuration):
        assert all_files(configuration) == [
            REPORT_FILE,
            "components/billing/app/models/billing/invoice.rb",
            "components/billing/app/public/billing/api.rb",
            ORDER_FILE,
        ]

    def test_reports_new_violations(self, configuration: Configuration):
        result = run_for(configuration).check()

        assert result.status is False
        assert f"{REPORT_FILE}:3:4\nPrivacy violation: '::Billing::Invoice' is private to 'components/billing'" in result.message
        assert (
            f"{ORDER_FILE}:4:6\nDependency violation: ::Billing::Invoice belongs to 'components/billing', "
            "but 'components/sales' does not specify a dependency on 'components/billing'."
        ) in result.message
        assert "2 offenses detected" in result.message
        assert "No stale violations detected" in result.message

    def test_violation_types(self, configuration: Configuration):
        collection = run_for(configuration).find_offenses()

        assert [(o.file, o.violation_type) for o in collection.new_violations] == [
            (REPORT_FILE, ViolationType.PRIVACY),
            (ORDER_FILE, ViolationType.DEPENDENCY),
        ]

    def test_declared_dependency_is_allowed(self, ruby_app: Path):
        (ruby_app / "components" / "sales" / "package.yml").write_text(
            "enforce_dependencies: true\ndependencies:\n  - components/billing\n", encoding="utf-8"
        )
        collection = run_for(reload(ruby_app)).find_offenses()

        assert [o.file for o in collection.new_violations] == [REPORT_FILE, ORDER_FILE]
        assert collection.new_violations[1].violation_type == ViolationType.PRIVACY

    def test_listed_dependency_still_checks_privacy(self, ruby_app: Path):
        """Test that a listed dependency violation does not hide a privacy violation of the same reference."""
        (ruby_app / "components" / "sales" / "package_todo.yml").write_text(
            yaml.safe_dump(
                {"components/billing": {"::Billing::Invoice": {"violations": ["dependency"], "files": [ORDER_FILE]}}}
            ),
            encoding="utf-8",
        )
        run = run_for(reload(ruby_app))
        collection = run.find_offenses()

        assert [(o.file, o.violation_type) for o in collection.new_violations] == [
            (REPORT_FILE, ViolationType.PRIVACY),
            (ORDER_FILE, ViolationType.PRIVACY),
        ]
        assert not collection.stale_violations(package_set=run.run_context.package_set)

    def test_fully_listed_reference_passes(self, ruby_app: Path):
        (ruby_app / "components" / "sales" / "package_todo.yml").write_text(
            yaml.safe_dump(
                {
                    "components/billing": {
                        "::Billing::Invoice": {"violations": ["dependency", "privacy"], "files": [ORDER_FILE]}
                    }
                }
            ),
            encoding="utf-8",
        )
        result = run_for(reload(ruby_app)).check()

        assert "1 offense detected" in result.message
        assert f"{ORDER_FILE}:4:6" not in result.message
        assert "No stale violations detected" in result.message
        assert result.status is False

    def test_unknown_file_type(self, configuration: Configuration):
        result = ParseRun(["README.md"], configuration).check()

        assert "README.md\nunknown file type" in result.message
        assert result.status is False

    def test_parse_error_is_an_offense(self, ruby_app: Path):
        broken = ruby_app / "components" / "sales" / "app" / "models" / "sales" / "broken.rb"
        broken.write_text("module Sales\n  class Broken\n    def total(\n", encoding="utf-8")
        collection = run_for(reload(ruby_app)).find_offenses()

        errors = collection.errors
        assert [e.file for e in errors] == ["components/sales/app/models/sales/broken.rb"]
        assert errors[0].message.startswith("Syntax error")
        assert len(collection.new_violations) == 2

    def test_progress_callback(self, configuration: Configuration):
        seen: List[List[Offense]] = []
        run_for(configuration, progress=seen.append).check()

        assert len(seen) == 4
        assert sum(len(offenses) for offenses in seen) == 2

    def test_thread_pool(self, configuration: Configuration):
        serial = run_for(configuration).find_offenses()
        pooled = run_for(configuration, pool="thread").find_offenses()

        assert [(o.file, o.location) for o in pooled.new_violations] == [
            (o.file, o.location) for o in serial.new_violations
        ]

    def test_process_pool(self, configuration: Configuration):
        """Test that workers built from the pickled configuration find the same offenses."""
        serial = run_for(configuration).find_offenses()
        pooled = run_for(configuration, pool="process").find_offenses()

        assert [(o.file, o.location, o.violation_type) for o in pooled.new_violations] == [
            (o.file, o.location, o.violation_type) for o in serial.new_violations
        ]

    def test_process_pool_update_todo(self, configuration: Configuration, ruby_app: Path):
        todo = ruby_app / "components" / "sales" / "package_todo.yml"
        run_for(configuration).update_todo()
        serial = todo.read_text(encoding="utf-8")
        todo.unlink()
        run_for(configuration, pool="process").update_todo()

        assert todo.read_text(encoding="utf-8") == serial

    def test_cached_run_matches(self, ruby_app: Path):
        configuration = Configuration.from_dict(ruby_app.resolve(), {"cache": True, "parallel": False})
        first = run_for(configuration).check()
        second = run_for(configuration).check()

        assert first.message == second.message
        assert any(configuration.cache_directory.iterdir())


class TestUpdateTodo:
    """Tests for ParseRun.update_todo."""

    def test_writes_todo_files(self, configuration: Configuration, ruby_app: Path):
        result = run_for(configuration).update_todo()

        assert result.status is True
        assert result.message.endswith("✅ `package_todo.yml` has been updated.")

        sales_todo = yaml.safe_load((ruby_app / "components" / "sales" / "package_todo.yml").read_text(encoding="utf-8"))
        root_todo = yaml.safe_load((ruby_app / "package_todo.yml").read_text(encoding="utf-8"))
        assert sales_todo == {
            "components/billing": {
                "::Billing::Invoice": {"violations": ["dependency", "privacy"], "files": [ORDER_FILE]}
            }
        }
        assert root_todo == {
            "components/billing": {"::Billing::Invoice": {"violations": ["privacy"], "files": [REPORT_FILE]}}
        }
        assert not (ruby_app / "components" / "billing" / "package_todo.yml").exists()

    def test_check_passes_afterwards(self, configuration: Configuration):
        run_for(configuration).update_todo()
        result = run_for(configuration).check()

        assert result.status is True
        assert "No offenses detected" in result.message
        assert "No stale violations detected" in result.message

    def test_idempotent(self, configuration: Configuration, ruby_app: Path):
        todo = ruby_app / "components" / "sales" / "package_todo.yml"
        run_for(configuration).update_todo()
        first = todo.read_text(encoding="utf-8")
        run_for(configuration).update_todo()

        assert todo.read_text(encoding="utf-8") == first

    def test_removes_fixed_violations(self, configuration: Configuration, ruby_app: Path):
        run_for(configuration).update_todo()
        (ruby_app / ORDER_FILE).write_text("module Sales\n  class Order\n  end\nend\n", encoding="utf-8")
        run_for(configuration).update_todo()

        assert not (ruby_app / "components" / "sales" / "package_todo.yml").exists()
        assert (ruby_app / "package_todo.yml").exists()


class TestStaleViolations:
    """Tests for stale todo entries."""

    def fix_order(self, ruby_app: Path) -> None:
        (ruby_app / ORDER_FILE).write_text("module Sales\n  class Order\n  end\nend\n", encoding="utf-8")

    def test_detects_stale_entry(self, configuration: Configuration, ruby_app: Path):
        run_for(configuration).update_todo()
        self.fix_order(ruby_app)

        detect = run_for(configuration).detect_stale_violations()
        check = run_for(configuration).check()

        assert detect.status is False
        assert detect.message == "There were stale violations found, please run `packguard update-todo`"
        assert check.status is False
        assert "No offenses detected" in check.message

    def test_no_stale_entries(self, configuration: Configuration):
        run_for(configuration).update_todo()
        result = run_for(configuration).detect_stale_violations()

        assert result.status is True
        assert result.message == "No stale violations detected"

    def test_scoped_check_ignores_other_files(self, configuration: Configuration, ruby_app: Path):
        """Test that a check of named files only looks at todo entries for those files."""
        run_for(configuration).update_todo()
        self.fix_order(ruby_app)

        scoped = ParseRun([REPORT_FILE], configuration, scoped=True).check()
        assert scoped.status is True

        scoped_order = ParseRun([ORDER_FILE], configuration, scoped=True).check()
        assert scoped_order.status is False


class TestStrictMode:
    """Tests for packages with enforce_dependencies: strict."""

    def make_strict(self, ruby_app: Path) -> Configuration:
        (ruby_app / "components" / "sales" / "package.yml").write_text(
            "enforce_dependencies: strict\n", encoding="utf-8"
        )
        return reload(ruby_app)

    def test_check_reports_strict_violation(self, ruby_app: Path):
        result = run_for(self.make_strict(ruby_app)).check()

        assert result.status is False
        assert (
            "components/sales cannot have dependency violations on components/billing "
            "because strict mode is enabled for dependency violations"
        ) in result.message

    def test_update_todo_does_not_list_strict_violations(self, ruby_app: Path):
        result = run_for(self.make_strict(ruby_app)).update_todo()

        assert result.status is False
        sales_todo = yaml.safe_load((ruby_app / "components" / "sales" / "package_todo.yml").read_text(encoding="utf-8"))
        assert sales_todo["components/billing"]["::Billing::Invoice"]["violations"] == ["privacy"]
        assert result.message.count("cannot have dependency violations") == 1
        assert (ruby_app / "package_todo.yml").exists()


class TestInterrupt:
    """Tests for a run stopped with Ctrl-C."""

    def interrupting_context(self, configuration: Configuration, monkeypatch) -> RunContext:
        run_context = RunContext(configuration)
        process_file = run_context.process_file

        def interrupt_on_api(relative_file: str, reference_lister=None) -> List[Offense]:
            if relative_file.endswith("api.rb"):
                raise KeyboardInterrupt
            return process_file(relative_file, reference_lister)

        monkeypatch.setattr(run_context, "process_file", interrupt_on_api)
        return run_context

    def test_check_keeps_partial_offenses(self, configuration: Configuration, monkeypatch):
        run = run_for(configuration, run_context=self.interrupting_context(configuration, monkeypatch))
        result = run.check()

        assert run.interrupted
        assert result.status is False
        assert result.message.startswith("Manually interrupted. Violations caught so far are listed below:")
        assert "1 offense detected" in result.message
        assert REPORT_FILE in result.message

    def test_update_todo_writes_nothing(self, configuration: Configuration, ruby_app: Path, monkeypatch):
        run = run_for(configuration, run_context=self.interrupting_context(configuration, monkeypatch))
        result = run.update_todo()

        assert result.status is False
        assert not (ruby_app / "package_todo.yml").exists()
