"""Tests for YAML configuration and parameter validation."""

import logging
from pathlib import Path

import pytest

from eventhats.config import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigValidationError,
    HATSParams,
    RenderParams,
    get_hats_params,
    get_render_params,
    load_config,
    merge_configs,
    save_yaml,
)

CONFIG_PATH = Path(__file__).resolve().parent.parent / "configs" / "config.yaml"


class TestLoading:

    def test_shipped_config_matches_defaults(self):
        config = load_config(CONFIG_PATH)
        assert get_hats_params(config) == HATSParams()
        assert get_render_params(config) == RenderParams()

    def test_overrides_are_merged(self):
        config = load_config(CONFIG_PATH, overrides={"hats": {"radius": 3}})
        params = get_hats_params(config)
        assert params.radius == 3
        assert params.cell_size == 8
        assert params.neighborhood == 7

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigFileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("hats: [radius: 8\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_save_and_reload(self, tmp_path):
        params = HATSParams(radius=4, window_size=50, dtype="uint8")
        path = tmp_path / "nested" / "hats.yaml"
        save_yaml({"hats": params.to_dict()}, path)
        assert get_hats_params(load_config(path)) == params

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert get_hats_params(load_config(path)) == HATSParams()

    def test_merge_does_not_mutate_base(self):
        base = {"hats": {"radius": 8, "tau": 0.5}}
        merged = merge_configs(base, {"hats": {"radius": 2}, "render": {"batch_us": 1}})
        assert merged == {"hats": {"radius": 2, "tau": 0.5}, "render": {"batch_us": 1}}
        assert base == {"hats": {"radius": 8, "tau": 0.5}}


class TestValidation:

    def test_from_dict_ignores_unknown_keys(self):
        params = HATSParams.from_dict({"radius": 2, "colour": "blue"})
        assert params.radius == 2

    def test_unknown_keys_are_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="eventhats.config"):
            params = HATSParams.from_dict({"radus": 4, "tau": 0.25})
        assert params.radius == 8
        assert params.tau == 0.25
        assert "radus" in caplog.text

    def test_known_keys_are_not_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="eventhats.config"):
            HATSParams.from_dict({"radius": 4})
            RenderParams.from_dict({"batch_us": 1000})
        assert not caplog.records

    @pytest.mark.parametrize("dtype", ["uint8", "uint16"])
    def test_invariant_checks_need_float_dtype(self, dtype):
        with pytest.raises(ConfigValidationError):
            HATSParams(dtype=dtype, check_invariants=True).validate()
        assert HATSParams(dtype="float64", check_invariants=True).validate()

    @pytest.mark.parametrize("field,value", [
        ("radius", -1),
        ("radius", 33),
        ("radius", 2.5),
        ("radius", True),
        ("cell_size", 0),
        ("temporal_window_us", 0),
        ("tau", 0),
        ("tau", -0.5),
        ("tau", "fast"),
        ("window_size", 0),
        ("time_scale", 0),
        ("dtype", "int32"),
    ])
    def test_out_of_range(self, field, value):
        with pytest.raises(ConfigValidationError):
            HATSParams(**{field: value}).validate()

    def test_radius_zero_is_valid(self):
        assert HATSParams(radius=0).validate().neighborhood == 1

    @pytest.mark.parametrize("field,value", [
        ("batch_us", 0),
        ("print_interval", -5),
        ("polarity", "both"),
    ])
    def test_render_out_of_range(self, field, value):
        with pytest.raises(ConfigValidationError):
            RenderParams(**{field: value}).validate()
