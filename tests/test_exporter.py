import json
import re

import pandas as pd
import pytest

from utils.embedview.colors import PALETTES
from utils.embedview.config import ViewerConfig
from utils.embedview.exporter import build_layout, build_traces, export_to_html


def _embedded_data(path):
    text = open(path, encoding="utf-8").read()
    match = re.search(
        r'<script id="embedview-data" type="application/json">(.*?)</script>', text, re.S
    )
    assert match is not None
    return json.loads(match.group(1).replace("<\\/", "</"))


class TestBuildTraces:
    def test_single_method(self, dataset):
        colors = dataset.process_cell_types()
        traces = build_traces(dataset, colors, "proposed")
        assert [t["name"] for t in traces] == ["0 - neuron", "1 - muscle", "2 - glia"]
        neuron = traces[0]
        assert neuron["x"] == [0.0, 2.0, 5.0]
        assert neuron["y"] == [0.0, 4.0, 10.0]
        assert neuron["marker"]["color"] == PALETTES["tab10"][0]
        assert neuron["marker"]["size"] == 3
        assert "line" not in neuron["marker"]
        assert "Method: Proposed" in neuron["hovertemplate"]
        assert "xaxis" not in neuron

    def test_comparison(self, dataset):
        colors = dataset.process_cell_types()
        traces = build_traces(dataset, colors, "both")
        assert len(traces) == 6
        first, second = traces[:3], traces[3:]
        assert all(t["showlegend"] and t["xaxis"] == "x" for t in first)
        assert all(not t["showlegend"] and t["yaxis"] == "y2" for t in second)
        assert first[1]["legendgroup"] == second[1]["legendgroup"] == "type_1"
        assert "Method: O" in second[0]["hovertemplate"]
        assert second[0]["x"] == [-0.0, -2.0, -5.0]

    def test_highlight(self, dataset):
        colors = dataset.process_cell_types()
        traces = build_traces(dataset, colors, "original", selected="2")
        glia = traces[2]
        assert glia["marker"]["size"] == 8
        assert glia["marker"]["opacity"] == 1.0
        assert glia["marker"]["line"] == {"width": 2, "color": "#333"}
        assert traces[0]["marker"]["opacity"] == 0.4

    def test_customdata_without_detailed_metadata(self, dataset):
        traces = build_traces(dataset, dataset.process_cell_types(), "proposed")
        assert traces[1]["customdata"] == [["c1"], ["c4"]]
        assert "Sample:" not in traces[1]["hovertemplate"]

    def test_customdata_with_detailed_metadata(self, dataset):
        dataset.cell_metadata = pd.DataFrame(
            {"sample": ["s1"], "num_genes_expressed": [12], "n_umi": [40], "size_factor": [1.25]},
            index=["c3"],
        )
        traces = build_traces(dataset, dataset.process_cell_types(), "proposed")
        assert traces[2]["customdata"] == [["c3", "s1", 12, 40, 1.25]]
        assert traces[0]["customdata"][0] == ["c0", "Unknown", "N/A", "N/A", "N/A"]
        assert "Size Factor: %{customdata[4]:.3f}" in traces[2]["hovertemplate"]

    def test_detailed_metadata_toggle(self, dataset):
        dataset.cell_metadata = pd.DataFrame({"sample": ["s1"]}, index=["c3"])
        config = ViewerConfig(detailed_metadata=False)
        traces = build_traces(dataset, dataset.process_cell_types(), "proposed", config=config)
        assert traces[2]["customdata"] == [["c3"]]

    def test_invalid_method(self, dataset):
        with pytest.raises(ValueError):
            build_traces(dataset, dataset.process_cell_types(), "tsne")


def test_build_layout():
    both = build_layout("both")
    assert both["grid"] == {"rows": 1, "columns": 2, "pattern": "independent"}
    assert both["xaxis2"]["domain"] == [0.52, 1]
    single = build_layout("original", dataset_name="toy")
    assert single["title"]["text"] == "Original  - toy Dataset"
    assert single["height"] == 1000
    with pytest.raises(ValueError):
        build_layout("tsne")


class TestExportToHtml:
    def test_writes_viewer(self, dataset, tmp_path):
        out = export_to_html(dataset, str(tmp_path / "viewer.html"), title="Toy <viewer>")
        text = open(out, encoding="utf-8").read()
        assert "<title>Toy &lt;viewer&gt;</title>" in text
        assert "Plotly.react" in text
        data = _embedded_data(out)
        assert set(data["traces"]) == {"both", "proposed", "original"}
        assert len(data["traces"]["both"]) == 6
        assert [c["label"] for c in data["categories"]] == [0, 1, 2]
        assert data["stats"]["overall"]["total_cells"] == 6
        assert data["stats"]["by_label"]["1"]["count"] == 2
        assert data["default_method"] == "both"
        assert data["default_cell_type"] == "all"
        assert data["plotly_config"]["displaylogo"] is False

    def test_initial_selection(self, dataset, tmp_path):
        out = export_to_html(dataset, str(tmp_path / "v.html"), method="proposed", cell_type=1)
        data = _embedded_data(out)
        assert data["default_method"] == "proposed"
        assert data["default_cell_type"] == "1"
        assert data["traces"]["proposed"][1]["marker"]["size"] == 8

    def test_fixed_palette(self, dataset, tmp_path):
        config = ViewerConfig(dynamic_palette=False, colors=["#aaaaaa", "#bbbbbb"])
        data = _embedded_data(export_to_html(dataset, str(tmp_path / "v.html"), config=config))
        assert [c["color"] for c in data["categories"]] == ["#aaaaaa", "#bbbbbb", "#aaaaaa"]

    def test_script_tags_in_names_are_escaped(self, dataset, tmp_path):
        dataset.idx_to_label["0"] = "</script><b>x"
        out = export_to_html(dataset, str(tmp_path / "v.html"))
        text = open(out, encoding="utf-8").read()
        assert "</script><b>x" not in text
        assert _embedded_data(out)["categories"][0]["name"] == "</script><b>x"

    def test_unknown_cell_type(self, dataset, tmp_path):
        with pytest.raises(ValueError, match="7"):
            export_to_html(dataset, str(tmp_path / "v.html"), cell_type="7")
        with pytest.raises(ValueError):
            export_to_html(dataset, str(tmp_path / "v.html"), cell_type="neuron")

    def test_invalid_method(self, dataset, tmp_path):
        with pytest.raises(ValueError):
            export_to_html(dataset, str(tmp_path / "v.html"), method="tsne")

    def test_non_finite_coordinates_become_null(self, dataset, tmp_path):
        dataset.proposed[2, 1] = float("nan")
        dataset.original[3, 0] = float("inf")
        out = export_to_html(dataset, str(tmp_path / "v.html"))
        text = open(out, encoding="utf-8").read()
        match = re.search(
            r'<script id="embedview-data" type="application/json">(.*?)</script>', text, re.S
        )

        def reject(token):
            raise AssertionError(f"non-standard JSON constant {token}")

        data = json.loads(match.group(1), parse_constant=reject)
        assert data["traces"]["proposed"][0]["y"] == [0.0, None, 10.0]
        assert data["traces"]["original"][2]["x"] == [None]
        assert data["traces"]["both"][5]["x"] == [None]

    @pytest.mark.parametrize("cell_type", ["01", " 1", 1])
    def test_cell_type_is_normalized(self, dataset, tmp_path, cell_type):
        data = _embedded_data(export_to_html(dataset, str(tmp_path / "v.html"), cell_type=cell_type))
        assert data["default_cell_type"] == "1"
        assert data["default_cell_type"] in data["stats"]["by_label"]
        assert data["traces"]["original"][1]["marker"]["size"] == 8

    def test_hover_records_shared_across_methods(self, dataset, tmp_path):
        dataset.cell_metadata = pd.DataFrame(
            {"sample": ["s1", "s4"], "num_genes_expressed": [12, 15], "n_umi": [40, 70],
             "size_factor": [1.25, float("nan")]},
            index=["c1", "c4"],
        )
        data = _embedded_data(export_to_html(dataset, str(tmp_path / "v.html")))
        muscle = [["c1", "s1", 12, 40, 1.25], ["c4", "s4", 15, 70, "N/A"]]
        assert data["traces"]["proposed"][1]["customdata"] == muscle
        assert data["traces"]["both"][4]["customdata"] == muscle
        assert data["traces"]["original"][0]["customdata"][0] == ["c0", "Unknown", "N/A", "N/A", "N/A"]
