"""
Export embedding comparison data to a standalone HTML viewer.

Creates self-contained HTML files with embedded trace data and a small
Plotly script for switching between the side-by-side and single-embedding
views, highlighting one cell type, and showing cell-type statistics.
"""

import html
import json
from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np

from .colors import CategoryColors
from .config import METHODS, ViewerConfig
from .data_loader import EmbeddingDataset
from .stats import cell_type_stats, overall_stats

METHOD_LABELS = {
    "proposed": {"short": "P", "long": "Proposed"},
    "original": {"short": "O", "long": "Original"},
}

HTML_TEMPLATE = '''<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
    <script src="https://cdn.plot.ly/plotly-2.35.2.min.js"></script>
    <style>
        * {{ margin: 0; padding: 0; box-sizing: border-box; }}
        body {{
            font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
            background: #f5f5f5;
            color: #1a1a1a;
        }}
        .header {{
            padding: 12px 16px;
            background: #ffffff;
            border-bottom: 1px solid #e0e0e0;
        }}
        .header h1 {{ font-size: 18px; font-weight: 600; }}
        .header p {{ font-size: 12px; color: #666666; }}
        .controls {{
            display: flex;
            gap: 16px;
            padding: 10px 16px;
            flex-wrap: wrap;
        }}
        .control-group {{ display: flex; align-items: center; gap: 6px; }}
        .control-group label {{ font-size: 12px; color: #666666; }}
        select {{
            padding: 5px 8px;
            border: 1px solid #e0e0e0;
            border-radius: 4px;
            background: #ffffff;
            font-size: 12px;
        }}
        .main {{ display: flex; gap: 12px; padding: 0 16px 16px; }}
        #umap-plot {{ flex: 1; min-width: 0; background: #ffffff; border-radius: 6px; }}
        .stats {{
            width: 280px;
            background: #ffffff;
            border-radius: 6px;
            padding: 12px;
            font-size: 12px;
            max-height: {plot_height}px;
            overflow-y: auto;
        }}
        .stats h2 {{ font-size: 14px; margin-bottom: 8px; }}
        .stat-item {{ padding: 4px 0; border-bottom: 1px solid #f0f0f0; }}
        .stat-label {{ color: #666666; font-size: 11px; }}
        .stat-value {{ font-weight: 500; }}
        .error {{ color: #b00020; padding: 12px; }}
    </style>
</head>
<body>
    <div class="header">
        <h1 id="main-title">{title}</h1>
        <p id="main-subtitle">{subtitle}</p>
    </div>
    <div class="controls" id="controls" style="display: {controls_display};">
        <div class="control-group">
            <label for="method-select">Method</label>
            <select id="method-select">
                <option value="both">Both (side by side)</option>
                <option value="proposed">Proposed</option>
                <option value="original">Original</option>
            </select>
        </div>
        <div class="control-group">
            <label for="cell-type-select">Cell type</label>
            <select id="cell-type-select"></select>
        </div>
    </div>
    <div class="main">
        <div id="umap-plot"></div>
        <div class="stats" id="stats-panel" style="display: {stats_display};">
            <h2>Statistics</h2>
            <div id="stats-content"></div>
        </div>
    </div>

    <script id="embedview-data" type="application/json">{data_json}</script>
    <script>
    const DATA = JSON.parse(document.getElementById('embedview-data').textContent);

    function statItem(label, value) {{
        const item = document.createElement('div');
        item.className = 'stat-item';
        if (label !== null) {{
            const l = document.createElement('div');
            l.className = 'stat-label';
            l.textContent = label;
            item.appendChild(l);
        }}
        if (value !== null) {{
            const v = document.createElement('div');
            v.className = 'stat-value';
            v.textContent = value;
            item.appendChild(v);
        }}
        return item;
    }}

    function styleTraces(traces, selected) {{
        const style = DATA.style;
        return traces.map(trace => {{
            const copy = Object.assign({{}}, trace);
            const hl = selected !== 'all' && trace.meta.label === parseInt(selected, 10);
            copy.marker = {{
                size: hl ? style.marker_size.highlighted : style.marker_size.normal,
                opacity: hl ? style.opacity.highlighted : style.opacity.normal,
                color: trace.marker.color,
            }};
            if (hl) copy.marker.line = {{ width: 2, color: '#333' }};
            return copy;
        }});
    }}

    function createPlot() {{
        const method = document.getElementById('method-select').value;
        const selected = document.getElementById('cell-type-select').value;
        const traces = styleTraces(DATA.traces[method], selected);
        Plotly.react('umap-plot', traces, DATA.layouts[method], DATA.plotly_config);
    }}

    function updateStats() {{
        const content = document.getElementById('stats-content');
        const selected = document.getElementById('cell-type-select').value;
        content.innerHTML = '';
        if (selected === 'all') {{
            const s = DATA.stats.overall;
            content.appendChild(statItem('Total Cells', s.total_cells.toLocaleString()));
            content.appendChild(statItem('Cell Types', String(s.n_cell_types)));
            content.appendChild(statItem('Dataset', s.dataset));
            content.appendChild(statItem('Cell Type Distribution', null));
            s.distribution.forEach(row => content.appendChild(statItem(null, row.text)));
        }} else {{
            const s = DATA.stats.by_label[selected];
            content.appendChild(statItem('Selected Cell Type', `${{s.label}} - ${{s.name}}`));
            content.appendChild(statItem('Count', s.count.toLocaleString()));
            content.appendChild(statItem('Percentage', s.percentage_text));
        }}
    }}

    function initControls() {{
        const methodSelect = document.getElementById('method-select');
        const dropdown = document.getElementById('cell-type-select');
        const all = document.createElement('option');
        all.value = 'all';
        all.textContent = 'All Cell Types';
        dropdown.appendChild(all);
        DATA.categories.forEach(cat => {{
            const option = document.createElement('option');
            option.value = String(cat.label);
            option.textContent = `${{cat.label}} - ${{cat.name}}`;
            dropdown.appendChild(option);
        }});
        methodSelect.value = DATA.default_method;
        dropdown.value = DATA.default_cell_type;
        methodSelect.addEventListener('change', createPlot);
        dropdown.addEventListener('change', () => {{
            updateStats();
            createPlot();
        }});
    }}

    document.addEventListener('DOMContentLoaded', () => {{
        if (typeof Plotly === 'undefined') {{
            document.getElementById('umap-plot').innerHTML =
                '<div class="error">Failed to load Plotly. Check your network connection.</div>';
            return;
        }}
        initControls();
        updateStats();
        createPlot();
    }});
    window.addEventListener('resize', () => {{
        if (typeof Plotly !== 'undefined') Plotly.Plots.resize('umap-plot');
    }});
    </script>
</body>
</html>
'''


def _hover_template(
    dataset: EmbeddingDataset,
    label: int,
    method_name: str,
    detailed: bool,
) -> str:
    lines = [
        f"<b>Cell Type {label} - {html.escape(dataset.label_name(label))}</b>",
        "Cell ID: %{customdata[0]}",
    ]
    if detailed:
        lines += [
            "Sample: %{customdata[1]}",
            "Genes Expressed: %{customdata[2]}",
            "UMI Count: %{customdata[3]}",
            "Size Factor: %{customdata[4]:.3f}",
        ]
    lines += [
        "UMAP1: %{x:.3f}",
        "UMAP2: %{y:.3f}",
        f"Method: {method_name}",
    ]
    return "<br>".join(lines) + "<extra></extra>"


def _is_selected(label: int, selected: Union[str, int]) -> bool:
    return str(selected) != "all" and int(label) == int(selected)


def _finite_list(values) -> List[Optional[float]]:
    return [float(v) if np.isfinite(v) else None for v in values]


def _marker(color: str, highlighted: bool, config: ViewerConfig) -> Dict:
    vis = config.visualization
    marker = {
        "size": vis.marker_size.highlighted if highlighted else vis.marker_size.normal,
        "opacity": vis.opacity.highlighted if highlighted else vis.opacity.normal,
        "color": color,
    }
    if highlighted:
        marker["line"] = {"width": 2, "color": "#333"}
    return marker


def build_traces(
    dataset: EmbeddingDataset,
    colors: CategoryColors,
    method: str = "both",
    selected: Union[str, int] = "all",
    config: Optional[ViewerConfig] = None,
    hover_records: Optional[List[List]] = None,
) -> List[Dict]:
    """
    Build Plotly scatter traces, one per cell type and embedding.

    Parameters
    ----------
    dataset : EmbeddingDataset
        Loaded data
    colors : CategoryColors
        Category order and colors from ``dataset.process_cell_types()``
    method : str
        "both", "proposed" or "original"
    selected : str or int
        "all" or the label to highlight
    config : ViewerConfig, optional
        Marker sizes/opacities and the detailed-metadata toggle
    hover_records : list, optional
        Precomputed ``dataset.get_hover_records()``, shared across calls

    Returns
    -------
    list of dict
        JSON-serializable trace objects
    """
    if method not in METHODS:
        raise ValueError(f"method must be one of {', '.join(METHODS)}, got {method!r}")
    config = config or ViewerConfig()
    detailed = config.detailed_metadata and dataset.has_detailed_metadata
    partitions = dataset.get_category_indices(colors.categories)
    if detailed and hover_records is None:
        hover_records = dataset.get_hover_records()
    comparison = method == "both"
    methods = ["proposed", "original"] if comparison else [method]

    traces = []
    for method_index, m in enumerate(methods):
        coords = dataset.get_coordinates(m)
        method_name = METHOD_LABELS[m]["short" if comparison else "long"]
        for label in colors.categories:
            idx = partitions[label]
            if idx.size == 0:
                continue
            if detailed:
                customdata = [hover_records[i] for i in idx]
            else:
                customdata = [[dataset.cell_ids[i]] for i in idx]

            trace = {
                "x": _finite_list(coords[idx, 0]),
                "y": _finite_list(coords[idx, 1]),
                "customdata": customdata,
                "mode": "markers",
                "type": "scatter",
                "name": f"{label} - {dataset.label_name(label)}",
                "marker": _marker(colors.color_for(label), _is_selected(label, selected), config),
                "hovertemplate": _hover_template(dataset, label, method_name, detailed),
                "meta": {"label": int(label), "method": m},
            }
            if comparison:
                trace.update({
                    "showlegend": method_index == 0,
                    "legendgroup": f"type_{label}",
                    "xaxis": "x" if method_index == 0 else "x2",
                    "yaxis": "y" if method_index == 0 else "y2",
                })
            traces.append(trace)
    return traces


def build_layout(
    method: str,
    config: Optional[ViewerConfig] = None,
    dataset_name: Optional[str] = None,
) -> Dict:
    """Plotly layout for the side-by-side or single-embedding view."""
    config = config or ViewerConfig()
    dataset_name = dataset_name or config.dataset.name
    margin = {"l": 50, "r": 50, "t": 80, "b": 50}
    height = config.visualization.plot_height

    if method == "both":
        return {
            "title": {"text": "", "font": {"size": 20}},
            "grid": {"rows": 1, "columns": 2, "pattern": "independent"},
            "xaxis": {"title": "Proposed 1", "domain": [0, 0.48]},
            "yaxis": {"title": "Proposed 2", "domain": [0, 1]},
            "xaxis2": {"title": "UMAP 1 (Original)", "domain": [0.52, 1]},
            "yaxis2": {"title": "UMAP 2 (Original)", "domain": [0, 1]},
            "showlegend": True,
            "legend": {
                "orientation": "h",
                "yanchor": "bottom",
                "y": 1.02,
                "xanchor": "right",
                "x": 1,
            },
            "height": height,
            "margin": margin,
        }
    if method not in METHOD_LABELS:
        raise ValueError(f"method must be one of {', '.join(METHODS)}, got {method!r}")
    return {
        "title": {
            "text": f"{METHOD_LABELS[method]['long']}  - {dataset_name} Dataset",
            "font": {"size": 20},
        },
        "xaxis": {"title": "UMAP 1"},
        "yaxis": {"title": "UMAP 2"},
        "showlegend": True,
        "height": height,
        "margin": margin,
    }


def export_to_html(
    dataset: EmbeddingDataset,
    output_path: str,
    config: Optional[ViewerConfig] = None,
    title: Optional[str] = None,
    method: Optional[str] = None,
    cell_type: Optional[Union[str, int]] = None,
) -> str:
    """
    Export an embedding comparison dataset to a standalone HTML file.

    Parameters
    ----------
    dataset : EmbeddingDataset
        Dataset to export
    output_path : str
        Path for output HTML file
    config : ViewerConfig, optional
        Viewer settings (defaults to ``ViewerConfig()``)
    title : str, optional
        Page title (defaults to ``config.ui.title``)
    method : str, optional
        Initial view: "both", "proposed" or "original"
    cell_type : str or int, optional
        Initially highlighted cell type, or "all"

    Returns
    -------
    str
        Path to created HTML file
    """
    config = config or ViewerConfig()
    method = method or config.visualization.default_method
    if method not in METHODS:
        raise ValueError(f"method must be one of {', '.join(METHODS)}, got {method!r}")

    palette = None if config.dynamic_palette else config.colors
    colors = dataset.process_cell_types(palette=palette)
    print(f"  {len(colors)} cell types, palette: {colors.palette_name or 'none'}")

    cell_type = str(config.visualization.default_cell_type if cell_type is None else cell_type).strip()
    if cell_type != "all":
        try:
            label = int(cell_type)
        except ValueError:
            label = None
        if label is None or label not in colors:
            raise ValueError(f"Cell type {cell_type!r} not found in labels")
        # dropdown values and stats keys use the canonical form
        cell_type = str(label)

    hover_records = None
    if config.detailed_metadata and dataset.has_detailed_metadata:
        hover_records = dataset.get_hover_records()

    data = {
        "traces": {
            m: build_traces(dataset, colors, m, cell_type, config, hover_records)
            for m in METHODS
        },
        "layouts": {
            m: build_layout(m, config, dataset.name) for m in METHODS
        },
        "categories": [
            {"label": label, "name": dataset.label_name(label), "color": colors.color_for(label)}
            for label in colors.categories
        ],
        "stats": {
            "overall": overall_stats(dataset),
            "by_label": {
                str(label): cell_type_stats(dataset, label) for label in colors.categories
            },
        },
        "style": {
            "marker_size": {
                "normal": config.visualization.marker_size.normal,
                "highlighted": config.visualization.marker_size.highlighted,
            },
            "opacity": {
                "normal": config.visualization.opacity.normal,
                "highlighted": config.visualization.opacity.highlighted,
            },
        },
        "plotly_config": config.plotly.to_plotly(),
        "default_method": method,
        "default_cell_type": cell_type,
    }

    data_json_safe = json.dumps(data, separators=(',', ':'), allow_nan=False).replace("</", "<\\/")

    page = HTML_TEMPLATE.format(
        title=html.escape(title or config.ui.title),
        subtitle=html.escape(config.ui.subtitle),
        plot_height=int(config.visualization.plot_height),
        controls_display="flex" if config.ui.show_controls else "none",
        stats_display="block" if config.ui.show_statistics else "none",
        data_json=data_json_safe,
    )

    output_path = str(Path(output_path).resolve())
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(page)

    print(f"Exported HTML viewer to: {output_path}")
    print(f"  - {dataset.n_cells:,} cells")
    print(f"  - {len(colors)} cell types")
    print(f"  - initial view: {method}, cell type: {cell_type}")
    return output_path
