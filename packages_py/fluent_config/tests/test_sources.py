import json
import logging

import pytest

from fluent_config import (
    DotEnvFileSource,
    EnvironmentSource,
    InMemorySource,
    JsonFileSource,
    SourceState,
    YamlFileSource,
)


class TestInMemorySource:
    def test_load_renders_values(self):
        source = InMemorySource({"A": 1, "B": True, "C": None})
        assert source.name == "InMemory"
        assert source.priority == 0
        assert source.load().unwrap() == {"A": "1", "B": "true", "C": ""}

    def test_state_transitions(self):
        source = InMemorySource({"A": "1"})
        assert source.state is SourceState.UNLOADED
        source.load()
        assert source.state is SourceState.LOADED
        source.reload()
        assert source.state is SourceState.RELOADED

    def test_lookup_helpers(self):
        source = InMemorySource({"Api:Port": "80"})
        source.load()
        assert source.contains_key("api:port")
        assert source.get_value("Api:Port").unwrap() == "80"
        assert source.get_value("Other").is_none


class TestChangeNotification:
    def test_reload_notifies_with_previous_and_current(self):
        source = InMemorySource({"A": "1"})
        source.load()
        seen = []
        source.on_change(lambda previous, current: seen.append((previous, current)))

        source.set("A", "2")
        source.reload()
        assert seen == [({"A": "1"}, {"A": "2"})]

    def test_unchanged_reload_does_not_notify(self):
        source = InMemorySource({"A": "1"})
        source.load()
        seen = []
        source.on_change(lambda p, c: seen.append(c))
        source.reload()
        assert seen == []

    def test_unsubscribe(self):
        source = InMemorySource({"A": "1"})
        seen = []
        unsubscribe = source.on_change(lambda p, c: seen.append(c))
        unsubscribe()
        source.set("A", "2").reload()
        assert seen == []

    def test_failing_callback_is_logged_not_raised(self, caplog):
        source = InMemorySource({"A": "1"})
        seen = []

        def broken(previous, current):
            raise RuntimeError("listener failed")

        source.on_change(broken)
        source.on_change(lambda p, c: seen.append(c))
        source.set("A", "2")

        with caplog.at_level(logging.ERROR):
            assert source.reload().is_success
        assert seen == [{"A": "2"}]
        assert "listener failed" in caplog.text


class TestEnvironmentSource:
    def test_snapshot_of_process_environment(self, monkeypatch):
        monkeypatch.setenv("FLUENT_TEST_VALUE", "x")
        source = EnvironmentSource()
        assert source.name == "Environment"
        assert source.priority == 100
        assert source.load().unwrap()["FLUENT_TEST_VALUE"] == "x"

    def test_snapshot_is_taken_at_load(self, monkeypatch):
        monkeypatch.setenv("FLUENT_TEST_VALUE", "before")
        source = EnvironmentSource()
        values = source.load().unwrap()
        monkeypatch.setenv("FLUENT_TEST_VALUE", "after")
        assert values["FLUENT_TEST_VALUE"] == "before"

    def test_prefix_is_filtered_and_stripped(self):
        source = EnvironmentSource(prefix="APP_", environ={"APP_Api__Port": "80", "app_Name": "n", "OTHER": "o"})
        assert source.load().unwrap() == {"Api__Port": "80", "Name": "n"}


class TestJsonFileSource:
    def test_flattens_nested_document(self, tmp_path):
        path = tmp_path / "appsettings.json"
        path.write_text(json.dumps({"Api": {"Port": 80, "Hosts": ["a", "b"]}, "Debug": False}))
        source = JsonFileSource(path)
        assert source.name == "JsonFile(appsettings.json)"
        assert source.priority == 50
        assert source.load().unwrap() == {
            "Api:Port": "80",
            "Api:Hosts__0": "a",
            "Api:Hosts__1": "b",
            "Debug": "false",
        }

    def test_missing_required_file(self, tmp_path):
        path = tmp_path / "missing.json"
        result = JsonFileSource(path).load()
        assert result.errors == (f"Required JSON configuration file '{path}' was not found",)

    def test_missing_optional_file(self, tmp_path):
        assert JsonFileSource(tmp_path / "missing.json", optional=True).load().unwrap() == {}

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        result = JsonFileSource(path).load()
        assert result.errors[0].startswith(f"Failed to parse JSON configuration file '{path}':")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text("  ")
        assert JsonFileSource(path).load().unwrap() == {}

    def test_top_level_array_is_rejected(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        assert JsonFileSource(path).load().is_failure

    def test_undecodable_file_is_a_load_failure(self, tmp_path):
        path = tmp_path / "binary.json"
        path.write_bytes(b'{"A": "\xff\xfe"}')
        result = JsonFileSource(path).load()
        assert result.errors[0].startswith(f"Failed to read JSON configuration file '{path}':")


class TestYamlFileSource:
    def test_flattens_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("api:\n  port: 80\n  tls: true\nservers:\n  - host: a\n  - host: b\n")
        assert YamlFileSource(path).load().unwrap() == {
            "api:port": "80",
            "api:tls": "true",
            "servers__0__host": "a",
            "servers__1__host": "b",
        }

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("api: [unclosed\n")
        result = YamlFileSource(path).load()
        assert result.errors[0].startswith(f"Failed to parse YAML configuration file '{path}':")


class TestDotEnvFileSource:
    def test_reads_pairs(self, tmp_path):
        path = tmp_path / ".env"
        path.write_text("Api__Port=80\n# comment\nToken=\"abc def\"\nEMPTY\n")
        source = DotEnvFileSource(path)
        assert source.priority == 75
        assert source.load().unwrap() == {"Api__Port": "80", "Token": "abc def", "EMPTY": ""}

    def test_missing_required(self, tmp_path):
        path = tmp_path / ".env"
        assert DotEnvFileSource(path).load().errors == (f"Required dotenv configuration file '{path}' was not found",)


def test_source_name_is_required():
    with pytest.raises(ValueError):
        InMemorySource({}, name="")
