"""
Tests for ConfigurationBuilder.

Pipeline order: sources -> required -> defaults -> transformations -> validations.
"""
import json
import logging
import threading
from dataclasses import dataclass, field
from typing import List

import pytest

from fluent_config import ConfigurationBuilder, ConfigurationSource, InMemorySource, Result


@dataclass
class ApiSettings:
    base_url: str
    timeout: int


@dataclass
class HostSettings:
    hosts: List[str] = field(default_factory=list)
    debug: bool = False


class SlowSource(ConfigurationSource):
    def __init__(self, release, priority=10):
        super().__init__("Slow", priority)
        self.release = release

    def _load(self):
        self.release.wait(5)
        return Result.success({"S": "1"})


class TestSourceMerging:
    def test_higher_priority_wins(self):
        result = (
            ConfigurationBuilder()
            .from_in_memory({"A": "low", "B": "only-low"}, priority=0)
            .from_in_memory({"A": "high"}, priority=10)
            .build()
        )
        assert result.unwrap() == {"A": "high", "B": "only-low"}

    def test_equal_priority_keeps_first_registered(self):
        result = ConfigurationBuilder().from_in_memory({"A": "1"}).from_in_memory({"A": "2"}).build()
        assert result.unwrap() == {"A": "1"}

    def test_environment_and_json_are_merged(self, tmp_path):
        path = tmp_path / "appsettings.json"
        path.write_text(json.dumps({"Api": {"BaseUrl": "https://file", "Timeout": 30}}))
        result = (
            ConfigurationBuilder()
            .from_json_file(path)
            .from_environment(environ={"Api__BaseUrl": "https://env"})
            .build()
        )
        config = result.unwrap()
        assert config["Api__BaseUrl"] == "https://env"
        assert config["Api:Timeout"] == "30"

    def test_source_errors_stop_the_pipeline(self, tmp_path):
        missing = tmp_path / "missing.json"
        calls = []
        result = (
            ConfigurationBuilder()
            .from_json_file(missing)
            .required("Api:BaseUrl")
            .validate(lambda config: calls.append(config))
            .build()
        )
        # TC-BLD-001: only the source error, no required-key error
        assert result.errors == (f"Required JSON configuration file '{missing}' was not found",)
        assert calls == []

    def test_undecodable_file_fails_the_build(self, tmp_path):
        path = tmp_path / "appsettings.json"
        path.write_bytes(b'{"A": "\xff\xfe"}')
        result = ConfigurationBuilder().from_json_file(path).build()
        assert result.is_failure
        assert "Failed to read JSON configuration file" in result.errors[0]

    def test_every_failing_source_is_reported(self, tmp_path):
        result = (
            ConfigurationBuilder()
            .from_json_file(tmp_path / "a.json")
            .from_yaml_file(tmp_path / "b.yaml")
            .build()
        )
        assert len(result.errors) == 2


class TestKeyContracts:
    def test_required_keys(self):
        result = ConfigurationBuilder().from_in_memory({"A": "1"}).required("A", "B", "C").build()
        assert result.errors == (
            "Required key 'B' was not found",
            "Required key 'C' was not found",
        )

    def test_optional_default_only_when_absent(self):
        result = (
            ConfigurationBuilder()
            .from_in_memory({"Port": "8080"})
            .optional("Port", 80)
            .optional("Debug", True)
            .build()
        )
        assert result.unwrap() == {"Port": "8080", "Debug": "true"}

    def test_required_failure_still_runs_validations(self):
        result = (
            ConfigurationBuilder()
            .from_in_memory({})
            .required("A")
            .validate(lambda config: "validation ran")
            .build()
        )
        assert result.errors == ("Required key 'A' was not found", "validation ran")

    @pytest.mark.parametrize("key", ["", None])
    def test_empty_key_is_a_programmer_error(self, key):
        with pytest.raises(ValueError):
            ConfigurationBuilder().required(key)
        with pytest.raises(ValueError):
            ConfigurationBuilder().optional(key, 1)

    def test_non_callable_is_a_programmer_error(self):
        with pytest.raises(TypeError):
            ConfigurationBuilder().transform("upper")
        with pytest.raises(TypeError):
            ConfigurationBuilder().validate_key("A", None)

    def test_add_source_rejects_other_objects(self):
        with pytest.raises(TypeError):
            ConfigurationBuilder().add_source({"A": "1"})


class TestTransformations:
    def test_whole_map_transformation(self):
        result = (
            ConfigurationBuilder()
            .from_in_memory({"name": "api"})
            .transform(lambda config: {k.upper(): v for k, v in config.items()})
            .build()
        )
        assert result.unwrap() == {"NAME": "api"}

    def test_transform_key(self):
        result = (
            ConfigurationBuilder()
            .from_in_memory({"Env": "prod"})
            .transform_key("Env", str.upper)
            .transform_key("Absent", str.upper)
            .build()
        )
        assert result.unwrap() == {"Env": "PROD"}

    def test_first_failing_transformation_stops_the_chain(self):
        later = []
        result = (
            ConfigurationBuilder()
            .from_in_memory({"A": "1"})
            .transform(lambda config: Result.failure("first failed"))
            .transform(lambda config: later.append(config) or config)
            .validate(lambda config: "still validated")
            .build()
        )
        assert later == []
        assert result.errors == ("first failed", "still validated")

    def test_transformation_must_return_a_mapping(self):
        builder = ConfigurationBuilder().from_in_memory({"A": "1"}).transform(lambda config: 42)
        with pytest.raises(TypeError):
            builder.build()


class TestValidations:
    def test_all_validations_run(self):
        result = (
            ConfigurationBuilder()
            .from_in_memory({"Port": "0", "Host": ""})
            .validate(lambda config: None if config["Port"] != "0" else "port must not be 0")
            .validate(lambda config: Result.failure("host must be set") if not config["Host"] else None)
            .build()
        )
        assert result.errors == ("port must not be 0", "host must be set")

    def test_validate_key(self):
        result = (
            ConfigurationBuilder()
            .from_in_memory({"Port": "abc"})
            .validate_key("Port", lambda value: None if value.isdigit() else f"Port '{value}' is not numeric")
            .validate_key("Absent", lambda value: "never called")
            .build()
        )
        assert result.errors == ("Port 'abc' is not numeric",)


class TestBuildAs:
    def test_build_as_section(self):
        result = (
            ConfigurationBuilder()
            .from_in_memory({"Api:BaseUrl": "https://x", "Api:Timeout": "30"})
            .required("Api:BaseUrl")
            .build_as(ApiSettings, section="Api")
        )
        assert result.unwrap() == ApiSettings(base_url="https://x", timeout=30)

    def test_build_as_reports_binding_errors(self):
        result = (
            ConfigurationBuilder()
            .from_in_memory({"Api:BaseUrl": "https://x", "Api:Timeout": "abc"})
            .build_as(ApiSettings, section="Api")
        )
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Failed to convert value 'abc' at 'Api:Timeout' to int")

    def test_list_default_is_bound(self):
        result = (
            ConfigurationBuilder()
            .from_in_memory({"Debug": "true"})
            .optional("Hosts", ["a", "b"])
            .build_as(HostSettings)
        )
        assert result.unwrap() == HostSettings(hosts=["a", "b"], debug=True)

    def test_build_as_document(self):
        result = (
            ConfigurationBuilder()
            .from_in_memory({"Hosts__0": "a", "Hosts__1": "b"})
            .build_as(HostSettings, use_document=True)
        )
        assert result.unwrap() == HostSettings(hosts=["a", "b"])

    def test_summary_is_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="fluent_config.builder"):
            ConfigurationBuilder().from_in_memory({"A": "1"}).build()
        assert "Configuration built from 1 source(s): 1 key(s)" in caplog.text


class TestBuildAsync:
    @pytest.mark.asyncio
    async def test_build_async_merges_like_build(self):
        builder = (
            ConfigurationBuilder()
            .from_in_memory({"A": "low"}, priority=0)
            .from_in_memory({"A": "high", "B": "b"}, priority=5)
        )
        result = await builder.build_async()
        assert result.unwrap() == builder.build().unwrap()

    @pytest.mark.asyncio
    async def test_slow_source_times_out(self):
        release = threading.Event()
        builder = ConfigurationBuilder().add_source(SlowSource(release)).from_in_memory({"A": "1"})
        try:
            result = await builder.build_async(source_timeout=0.1)
        finally:
            release.set()
        assert result.errors == ("Configuration source 'Slow' timed out after 0.1 seconds",)

    @pytest.mark.asyncio
    async def test_build_as_async(self):
        builder = ConfigurationBuilder().add_source(
            InMemorySource({"Api:BaseUrl": "https://x", "Api:Timeout": "5"})
        )
        result = await builder.build_as_async(ApiSettings, section="Api")
        assert result.unwrap() == ApiSettings("https://x", 5)
