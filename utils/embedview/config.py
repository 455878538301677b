"""
Viewer configuration.

Defaults match the stock C. elegans L2 export. Any subset can be
overridden from a JSON file with the same nested layout as ``to_dict()``.
"""

import json
from dataclasses import asdict, dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Dict, List, Union

METHODS = ("both", "proposed", "original")

DEFAULT_COLORS = [
    "#1f77b4", "#ff7f0e", "#2ca02c", "#d62728", "#9467bd",
    "#8c564b", "#e377c2", "#7f7f7f", "#bcbd22", "#17becf",
    "#aec7e8", "#ffbb78", "#98df8a", "#ff9896", "#c5b0d5",
    "#c49c94", "#f7b6d2", "#c7c7c7", "#dbdb8d", "#9edae5",
]


@dataclass
class DatasetConfig:
    name: str = "C. elegans L2"
    data_path: str = "data/d1/"


@dataclass
class MarkerSize:
    normal: float = 3
    highlighted: float = 8


@dataclass
class Opacity:
    normal: float = 0.4
    highlighted: float = 1.0


@dataclass
class VisualizationConfig:
    default_method: str = "both"
    default_cell_type: str = "all"
    plot_height: int = 1000
    marker_size: MarkerSize = field(default_factory=MarkerSize)
    opacity: Opacity = field(default_factory=Opacity)


@dataclass
class PlotlyConfig:
    responsive: bool = True
    display_mode_bar: bool = True
    mode_bar_buttons_to_remove: List[str] = field(
        default_factory=lambda: ["pan2d", "lasso2d", "select2d"]
    )
    displaylogo: bool = False

    def to_plotly(self) -> Dict:
        """Keys as Plotly.newPlot expects them."""
        return {
            "responsive": self.responsive,
            "displayModeBar": self.display_mode_bar,
            "modeBarButtonsToRemove": list(self.mode_bar_buttons_to_remove),
            "displaylogo": self.displaylogo,
        }


@dataclass
class UIConfig:
    title: str = "UMAP Visualization"
    subtitle: str = "Interactive Scatter Plot"
    show_statistics: bool = True
    show_controls: bool = True


@dataclass
class FileNames:
    proposed: str = "Z_umap_proposed.json"
    original: str = "Z_umap_original.json"
    labels: str = "y.json"
    label_mapping: str = "label_mapping.json"
    cell_metadata: str = "cell_metadata.json"
    detailed_cell_metadata: str = "detailed_cell_metadata.json"
    config: str = "experiment_config.json"


@dataclass
class ViewerConfig:
    """Top-level configuration for loading and exporting a viewer."""
    dataset: DatasetConfig = field(default_factory=DatasetConfig)
    visualization: VisualizationConfig = field(default_factory=VisualizationConfig)
    colors: List[str] = field(default_factory=lambda: list(DEFAULT_COLORS))
    plotly: PlotlyConfig = field(default_factory=PlotlyConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    files: FileNames = field(default_factory=FileNames)
    # Tiered palettes by category count; False cycles through ``colors``.
    dynamic_palette: bool = True
    # Sample / gene / UMI / size-factor fields in hover text.
    detailed_metadata: bool = True

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        vis = self.visualization
        if vis.default_method not in METHODS:
            raise ValueError(
                f"default_method must be one of {', '.join(METHODS)}, got {vis.default_method!r}"
            )
        if int(vis.plot_height) <= 0:
            raise ValueError("plot_height must be > 0")
        for name in ("normal", "highlighted"):
            if getattr(vis.marker_size, name) <= 0:
                raise ValueError(f"marker_size.{name} must be > 0")
            if not (0.0 <= getattr(vis.opacity, name) <= 1.0):
                raise ValueError(f"opacity.{name} must be between 0 and 1")
        if not self.colors:
            raise ValueError("colors must contain at least one color")

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "ViewerConfig":
        return _build(cls, data, "config")


def _build(cls, data, path: str):
    if not isinstance(data, dict):
        raise ValueError(f"{path} must be a mapping, got {type(data).__name__}")
    known = {f.name: f for f in fields(cls)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise ValueError(f"Unknown keys in {path}: {', '.join(unknown)}")

    kwargs = {}
    for key, value in data.items():
        default = known[key].default_factory() if callable(known[key].default_factory) else None
        if is_dataclass(default):
            kwargs[key] = _build(type(default), value, f"{path}.{key}")
        else:
            kwargs[key] = value
    return cls(**kwargs)


def load_config(path: Union[str, Path]) -> ViewerConfig:
    """Read a JSON override file into a :class:`ViewerConfig`."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Could not parse config file {path}: {e}") from e
    return ViewerConfig.from_dict(data)
