import json

import pytest

from utils.embedview.cli import main


def test_generates_html(data_dir, tmp_path, capsys):
    out = tmp_path / "out.html"
    main([str(data_dir), "-o", str(out), "--method", "original", "--cell-type", "2"])
    assert out.exists()
    assert "Done! Open" in capsys.readouterr().out


def test_export_data_and_options(data_dir, tmp_path):
    out = tmp_path / "out.html"
    export_dir = tmp_path / "data"
    main([
        str(data_dir), "-o", str(out), "--export-data", str(export_dir),
        "--fixed-palette", "--no-detailed-metadata", "--plot-height", "500",
    ])
    assert (export_dir / "y.json").exists()
    assert not (export_dir / "detailed_cell_metadata.json").exists()
    assert "max-height: 500px" in out.read_text(encoding="utf-8")


def test_config_file(data_dir, tmp_path):
    config = tmp_path / "viewer.json"
    config.write_text(json.dumps({"ui": {"title": "From config"}}))
    out = tmp_path / "out.html"
    main([str(data_dir), "-o", str(out), "--config", str(config)])
    assert "<title>From config</title>" in out.read_text(encoding="utf-8")


def test_input_defaults_to_config_data_path(data_dir, tmp_path, capsys):
    config = tmp_path / "viewer.json"
    config.write_text(json.dumps({"dataset": {"name": "From path", "data_path": str(data_dir)}}))
    out = tmp_path / "out.html"
    main(["-o", str(out), "--config", str(config)])
    assert "From path" in out.read_text(encoding="utf-8")
    assert "Done! Open" in capsys.readouterr().out


def test_default_data_path_missing(tmp_path, capsys):
    config = tmp_path / "viewer.json"
    config.write_text(json.dumps({"dataset": {"data_path": str(tmp_path / "absent")}}))
    with pytest.raises(SystemExit) as exc:
        main(["--config", str(config)])
    assert exc.value.code == 1
    assert "absent" in capsys.readouterr().err


def test_missing_input(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        main([str(tmp_path / "missing")])
    assert exc.value.code == 1
    assert "Error: Input not found" in capsys.readouterr().err


def test_load_error_exits(data_dir, tmp_path, capsys):
    (data_dir / "y.json").unlink()
    with pytest.raises(SystemExit) as exc:
        main([str(data_dir), "-o", str(tmp_path / "out.html")])
    assert exc.value.code == 1
    assert "y.json" in capsys.readouterr().err


def test_unknown_cell_type_exits(data_dir, tmp_path):
    with pytest.raises(SystemExit):
        main([str(data_dir), "-o", str(tmp_path / "out.html"), "--cell-type", "99"])
