"""Tests for name inflection with project-specific rules."""

from pathlib import Path

import pytest

from packguard.errors import ConfigurationError
from packguard.inflector import Inflector


class TestDefaults:
    """Tests for inflection without custom rules."""

    def test_camelize_path(self):
        assert Inflector().camelize("sales/order_item") == "Sales::OrderItem"

    def test_classify(self):
        inflector = Inflector()
        assert inflector.classify("order_items") == "OrderItem"
        assert inflector.classify("reporting.order_items") == "OrderItem"

    def test_pluralize_with_count(self):
        inflector = Inflector()
        assert inflector.pluralize("offense", 1) == "offense"
        assert inflector.pluralize("offense", 2) == "offenses"
        assert inflector.pluralize("file", 0) == "files"

    def test_underscore(self):
        assert Inflector().underscore("Sales::OrderItem") == "sales/order_item"


class TestCustomRules:
    """Tests for rules from config/inflections.yml."""

    def test_acronyms(self):
        inflector = Inflector({"acronym": ["API", "GraphQL"]})
        assert inflector.camelize("api/client") == "API::Client"
        assert inflector.camelize("billing/graphql_schema") == "Billing::GraphQLSchema"
        assert inflector.underscore("API::Client") == "api/client"

    def test_irregular(self):
        inflector = Inflector({"irregular": [["cactus", "cacti"]]})
        assert inflector.singularize("cacti") == "cactus"
        assert inflector.pluralize("cactus") == "cacti"
        assert inflector.classify("garden/cacti") == "Garden::Cactus"

    def test_uncountable(self):
        inflector = Inflector({"uncountable": ["metadata"]})
        assert inflector.singularize("metadata") == "metadata"
        assert inflector.classify("metadata") == "Metadata"

    def test_singular_rule(self):
        inflector = Inflector({"singular": [["(quiz)zes$", "\\1"]]})
        assert inflector.singularize("quizzes") == "quiz"

    def test_digest_tracks_rules(self):
        assert Inflector().digest() == Inflector({}).digest()
        assert Inflector().digest() != Inflector({"acronym": ["API"]}).digest()


class TestFromFile:
    """Tests for loading rules from YAML."""

    def test_missing_file(self, temp_dir: Path):
        inflector = Inflector.from_file(temp_dir / "config" / "inflections.yml")
        assert inflector.digest() == Inflector().digest()

    def test_reads_rules(self, temp_dir: Path):
        path = temp_dir / "inflections.yml"
        path.write_text("acronym:\n  - HTML\n", encoding="utf-8")
        assert Inflector.from_file(path).camelize("html_renderer") == "HTMLRenderer"

    def test_non_mapping_is_ignored(self, temp_dir: Path):
        path = temp_dir / "inflections.yml"
        path.write_text("- HTML\n", encoding="utf-8")
        assert Inflector.from_file(path).rules["acronym"] == []

    def test_malformed_yaml(self, temp_dir: Path):
        path = temp_dir / "inflections.yml"
        path.write_text("acronym: [HTML\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Could not read"):
            Inflector.from_file(path)

    def test_irregular_entry_needs_two_words(self, temp_dir: Path):
        path = temp_dir / "inflections.yml"
        path.write_text("irregular:\n  - person\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid inflection rules"):
            Inflector.from_file(path)
