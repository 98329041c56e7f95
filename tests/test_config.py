"""
Tests for configuration loading, overrides and validation.
"""

import pytest
import yaml

from face2neck.config import Config, create_argument_parser


def parse(*argv):
    return Config.from_args(create_argument_parser().parse_args(list(argv)))


class TestDefaults:
    """Test default values."""

    def test_filter_defaults(self):
        config = Config()
        assert config.filter.alpha == 0.2
        assert config.filter.deadband_deg == 0.4
        assert config.filter.median_window == 15
        assert config.filter.stillness_px == 1.0

    def test_solver_defaults(self):
        config = Config()
        assert config.solver.iterations == 100
        assert config.solver.reprojection_error == 4.0
        assert config.solver.confidence == 0.99

    def test_shaping_defaults(self):
        config = Config()
        assert config.shaping.pitch.range_deg == (-60.0, 60.0)
        assert config.shaping.yaw.range_deg == (-90.0, 90.0)
        assert config.shaping.roll.range_deg == (-40.0, 40.0)
        assert config.shaping.pitch.limit

    def test_defaults_validate(self):
        Config().validate()

    def test_instances_do_not_share_state(self):
        a = Config()
        b = Config()
        a.camera.distortion[0] = 0.5
        a.shaping.pitch.offset_deg = 3.0
        assert b.camera.distortion[0] == 0.0
        assert b.shaping.pitch.offset_deg == 0.0


class TestValidation:
    """Test Config.validate()."""

    @pytest.mark.parametrize("section,field,value", [
        ("filter", "alpha", 0.0),
        ("filter", "alpha", 1.5),
        ("filter", "median_window", 0),
        ("filter", "deadband_deg", -1.0),
        ("filter", "stillness_px", -0.5),
        ("solver", "iterations", 0),
        ("solver", "confidence", 1.0),
        ("solver", "reprojection_error", 0.0),
        ("capture", "resolution", (0, 720)),
        ("neck", "pitch_sign", 0),
        ("neck", "bind_rotation", (1.0, 0.0, 0.0)),
        ("camera", "fov_deg", 0.0),
        ("camera", "fov_deg", 180.0),
    ])
    def test_invalid_values(self, section, field, value):
        config = Config()
        setattr(getattr(config, section), field, value)
        with pytest.raises(ValueError, match=field):
            config.validate()

    def test_inverted_range(self):
        config = Config()
        config.shaping.yaw.range_deg = (10.0, -10.0)
        with pytest.raises(ValueError, match="shaping.yaw"):
            config.validate()

    def test_alpha_one_allowed(self):
        config = Config()
        config.filter.alpha = 1.0
        config.validate()


class TestYaml:
    """Test dict/YAML loading and saving."""

    def test_from_dict_partial(self):
        config = Config.from_dict({
            "filter": {"alpha": 0.5},
            "shaping": {"roll": {"offset_deg": 2.0}},
            "capture": {"source": 1}
        })
        assert config.filter.alpha == 0.5
        assert config.filter.median_window == 15
        assert config.shaping.roll.offset_deg == 2.0
        assert config.shaping.roll.range_deg == (-40.0, 40.0)
        assert config.capture.source == "1"

    def test_from_dict_empty(self):
        assert Config.from_dict({}).to_dict() == Config().to_dict()

    def test_roundtrip(self, tmp_path):
        config = Config()
        config.filter.deadband_deg = 0.7
        config.camera.principal_point = (600.0, 350.0)
        config.neck.bind_rotation = (0.0, 1.0, 0.0, 0.0)
        config.shaping.pitch.limit = False

        path = tmp_path / "config.yaml"
        config.to_yaml(str(path))
        loaded = Config.from_yaml(str(path))

        assert loaded.to_dict() == config.to_dict()
        assert loaded.camera.principal_point == (600.0, 350.0)

    def test_matrix_bind_rotation_roundtrip(self, tmp_path):
        config = Config.from_dict({
            "camera": {"fov_deg": 70.0},
            "neck": {"bind_rotation": [[1, 0, 0], [0, 0, -1], [0, 1, 0]]}
        })
        config.validate()

        path = tmp_path / "config.yaml"
        config.to_yaml(str(path))
        loaded = Config.from_yaml(str(path))

        assert loaded.camera.fov_deg == 70.0
        assert loaded.to_dict()["neck"]["bind_rotation"] == [[1.0, 0.0, 0.0], [0.0, 0.0, -1.0], [0.0, 1.0, 0.0]]

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert Config.from_yaml(str(path)).to_dict() == Config().to_dict()

    def test_template_matches_defaults(self):
        data = yaml.safe_load(Config.generate_default_config_template())
        assert Config.from_dict(data).to_dict() == Config().to_dict()


class TestFromArgs:
    """Test command-line overrides."""

    def test_no_arguments(self):
        assert parse().to_dict() == Config().to_dict()

    def test_overrides(self):
        config = parse(
            "2", "--resolution", "640x480", "--max-frames", "50",
            "--alpha", "0.4", "--deadband", "0.2", "--median-window", "9",
            "--stillness", "2.5", "--yaw-offset", "-3", "--focal-length", "500"
        )
        assert config.capture.source == "2"
        assert config.capture.resolution == (640, 480)
        assert config.capture.max_frames == 50
        assert config.filter.alpha == 0.4
        assert config.filter.deadband_deg == 0.2
        assert config.filter.median_window == 9
        assert config.filter.stillness_px == 2.5
        assert config.shaping.yaw.offset_deg == -3.0
        assert config.camera.focal_length == 500.0

    def test_fov(self):
        config = parse("--fov", "65")
        assert config.camera.fov_deg == 65.0
        assert config.camera.focal_length is None

    def test_flags(self):
        config = parse("--no-limits", "--flip-yaw", "--no-haar-fallback")
        assert not config.shaping.pitch.limit
        assert not config.shaping.roll.limit
        assert config.neck.yaw_sign == -1
        assert config.neck.pitch_sign == 1
        assert not config.landmarks.haar_fallback

    def test_file_then_overrides(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("filter:\n  alpha: 0.3\n  median_window: 5\n")

        config = parse("--config", str(path), "--alpha", "0.6")

        assert config.filter.alpha == 0.6
        assert config.filter.median_window == 5

    def test_bad_resolution(self):
        with pytest.raises(ValueError, match="resolution"):
            parse("--resolution", "big")

    def test_invalid_override_rejected(self):
        with pytest.raises(ValueError, match="alpha"):
            parse("--alpha", "0")
