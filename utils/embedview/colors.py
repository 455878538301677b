"""
Category discovery, palette selection and color assignment.

Cell-type labels are integers. Their sorted unique values define the legend
order, and each one gets a color from a palette chosen by how many
categories there are: the tableau palettes up to 64 categories, an
interpolated viridis ramp beyond that.
"""

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from matplotlib import colors as mcolors


class InvalidInputError(ValueError):
    """Raised for labels, counts or colors the color logic cannot handle."""


PALETTES: Dict[str, List[str]] = {
    "tab10": [
        "#1f77b4", "#ff7f0e", "#2ca02c", "#d62728", "#9467bd",
        "#8c564b", "#e377c2", "#7f7f7f", "#bcbd22", "#17becf",
    ],
    "tab20": [
        "#1f77b4", "#aec7e8", "#ff7f0e", "#ffbb78", "#2ca02c",
        "#98df8a", "#d62728", "#ff9896", "#9467bd", "#c5b0d5",
        "#8c564b", "#c49c94", "#e377c2", "#f7b6d2", "#7f7f7f",
        "#c7c7c7", "#bcbd22", "#dbdb8d", "#17becf", "#9edae5",
    ],
    "tab20b": [
        "#393b79", "#5254a3", "#6b6ecf", "#9c9ede", "#637939",
        "#8ca252", "#b5cf6b", "#cedb9c", "#8c6d31", "#bd9e39",
        "#e7ba52", "#e7cb94", "#843c39", "#ad494a", "#d6616b",
        "#e7969c", "#7b4173", "#a55194", "#ce6dbd", "#de9ed6",
    ],
    "tab20c": [
        "#3182bd", "#6baed6", "#9ecae1", "#c6dbef", "#e6550d",
        "#fd8d3c", "#fdae6b", "#fdd0a2", "#31a354", "#74c476",
        "#a1d99b", "#c7e9c0", "#756bb1", "#9e9ac8", "#bcbddc",
        "#dadaeb", "#636363", "#969696", "#bdbdbd", "#d9d9d9",
    ],
    # Anchor stops only; never assigned directly beyond these ten.
    "viridis": [
        "#440154", "#482878", "#3e4989", "#31688e", "#26828e",
        "#1f9e89", "#35b779", "#6ece58", "#b5de2b", "#fde725",
    ],
}

# (inclusive upper bound on category count, palette name)
PALETTE_TIERS: Tuple[Tuple[int, str], ...] = (
    (10, "tab10"),
    (20, "tab20"),
    (40, "tab20b"),
    (64, "tab20c"),
)
MAX_DISCRETE_CATEGORIES = PALETTE_TIERS[-1][0]
CONTINUOUS_PALETTE = "viridis"


def hex_to_rgb(color: str) -> Tuple[int, int, int]:
    """Convert a color string (e.g. ``'#1f77b4'``) to 8-bit ``(r, g, b)``."""
    try:
        rgb = mcolors.to_rgb(color)
    except ValueError as e:
        raise InvalidInputError(f"Invalid color {color!r}") from e
    return tuple(int(round(c * 255)) for c in rgb)


def rgb_to_hex(r: float, g: float, b: float) -> str:
    """Encode channels as lowercase ``#rrggbb``, clamping each to [0, 255]."""
    channels = [min(255, max(0, int(c))) for c in (r, g, b)]
    return "#" + "".join(f"{c:02x}" for c in channels)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def interpolate_color(color_a: str, color_b: str, factor: float) -> str:
    """
    Blend two colors channel-wise in RGB space.

    Parameters
    ----------
    color_a, color_b : str
        Endpoint colors; ``factor=0`` returns ``color_a``, ``factor=1``
        returns ``color_b``.
    factor : float
        Blend weight. Values outside [0, 1] are clamped.

    Returns
    -------
    str
        ``#rrggbb`` color.
    """
    factor = min(1.0, max(0.0, float(factor)))
    rgb_a = hex_to_rgb(color_a)
    rgb_b = hex_to_rgb(color_b)
    mixed = [_round_half_up(a + (b - a) * factor) for a, b in zip(rgb_a, rgb_b)]
    return rgb_to_hex(*mixed)


def select_palette_name(category_count: int) -> str:
    """Name of the discrete palette tier for ``category_count`` categories."""
    if category_count < 1 or category_count > MAX_DISCRETE_CATEGORIES:
        raise InvalidInputError(
            f"category_count must be between 1 and {MAX_DISCRETE_CATEGORIES}, got {category_count}"
        )
    for upper, name in PALETTE_TIERS:
        if category_count <= upper:
            return name
    raise AssertionError("unreachable")


def select_discrete_palette(category_count: int) -> List[str]:
    """Discrete palette for ``category_count`` categories (1 to 64)."""
    return list(PALETTES[select_palette_name(category_count)])


def generate_continuous_colors(count: int) -> List[str]:
    """Sample ``count`` evenly spaced colors along the viridis anchor stops."""
    if count < 1:
        raise InvalidInputError(f"count must be >= 1, got {count}")
    stops = PALETTES[CONTINUOUS_PALETTE]
    if count == 1:
        return [stops[0]]

    n_stops = len(stops)
    colors = []
    for i in range(count):
        t = i / (count - 1)
        idx = t * (n_stops - 1)
        low = int(math.floor(idx))
        high = min(low + 1, n_stops - 1)
        frac = idx - low
        if low == high:
            colors.append(stops[low])
        else:
            colors.append(interpolate_color(stops[low], stops[high], frac))
    return colors


def as_label_array(labels: Sequence) -> np.ndarray:
    """
    Validate a label vector and return it as a 1-D int64 array.

    Integral floats (e.g. labels read back from JSON as ``2.0``) are
    accepted; anything non-numeric, non-integral or non-finite raises
    :class:`InvalidInputError`.
    """
    if isinstance(labels, np.ndarray):
        arr = labels
    else:
        try:
            arr = np.asarray(list(labels))
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"Labels must be a sequence of integers: {e}") from e

    if arr.size == 0:
        return np.empty(0, dtype=np.int64)
    if arr.ndim != 1:
        raise InvalidInputError(f"Labels must be one-dimensional, got shape {arr.shape}")

    kind = arr.dtype.kind
    if kind in "iu":
        return arr.astype(np.int64, copy=False)
    if kind == "f":
        bad = ~np.isfinite(arr) | (arr != np.round(arr))
        if bad.any():
            raise InvalidInputError(f"Non-integer label: {arr[np.flatnonzero(bad)[0]]!r}")
        return arr.astype(np.int64)

    for value in arr:
        if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, np.integer)):
            raise InvalidInputError(f"Non-numeric label: {value!r}")
    return arr.astype(np.int64)


@dataclass(frozen=True)
class CategoryColors:
    """Sorted categories and their colors for one label vector."""
    categories: Tuple[int, ...]
    color_map: Mapping[int, str] = field(default_factory=lambda: MappingProxyType({}))
    palette_name: Optional[str] = None

    def __len__(self) -> int:
        return len(self.categories)

    def __contains__(self, label) -> bool:
        return label in self.color_map

    def color_for(self, label: int) -> str:
        try:
            return self.color_map[int(label)]
        except KeyError:
            raise KeyError(f"Label {label!r} is not a known category") from None

    def to_dict(self) -> Dict[str, str]:
        """JSON-friendly mapping keyed by the label's string form."""
        return {str(label): color for label, color in self.color_map.items()}


def process_categories(
    labels: Sequence,
    palette: Optional[Sequence[str]] = None,
) -> CategoryColors:
    """
    Discover the sorted category set and assign a color to each category.

    Parameters
    ----------
    labels : sequence of int
        One label per cell.
    palette : sequence of str, optional
        Fixed palette to cycle through instead of the count-based tiers.

    Returns
    -------
    CategoryColors
        Empty when ``labels`` is empty.
    """
    arr = as_label_array(labels)
    categories = tuple(int(c) for c in np.unique(arr))
    n_categories = len(categories)

    if palette is not None:
        selected = list(palette)
        if not selected:
            raise InvalidInputError("Fixed palette must contain at least one color")
        palette_name = "fixed"
    elif n_categories == 0:
        return CategoryColors(categories=(), color_map=MappingProxyType({}), palette_name=None)
    elif n_categories <= MAX_DISCRETE_CATEGORIES:
        palette_name = select_palette_name(n_categories)
        selected = PALETTES[palette_name]
    else:
        palette_name = CONTINUOUS_PALETTE
        selected = generate_continuous_colors(n_categories)

    color_map = {
        label: selected[i % len(selected)]
        for i, label in enumerate(categories)
    }
    return CategoryColors(
        categories=categories,
        color_map=MappingProxyType(color_map),
        palette_name=palette_name,
    )


def as_label(value) -> int:
    """Validate a single label; integral finite numbers only."""
    if isinstance(value, (bool, np.bool_)):
        raise InvalidInputError(f"Non-numeric label: {value!r}")
    if isinstance(value, (int, np.integer)):
        return int(value)
    if isinstance(value, (float, np.floating)):
        if not np.isfinite(value) or value != np.round(value):
            raise InvalidInputError(f"Non-integer label: {value!r}")
        return int(value)
    raise InvalidInputError(f"Non-numeric label: {value!r}")


def indices_of(labels: Sequence, target: int) -> np.ndarray:
    """Ascending positions of ``target`` in ``labels`` (empty if absent)."""
    target = as_label(target)
    arr = as_label_array(labels)
    return np.flatnonzero(arr == target)


def partition_labels(
    labels: Sequence,
    categories: Optional[Sequence[int]] = None,
) -> Dict[int, np.ndarray]:
    """Cell indices for every category, in category order."""
    arr = as_label_array(labels)
    if categories is None:
        categories = np.unique(arr)
    categories = [as_label(c) for c in categories]
    if arr.size == 0:
        return {c: np.empty(0, dtype=np.intp) for c in categories}

    order = np.argsort(arr, kind="stable")
    sorted_labels = arr[order]
    partitions = {}
    for c in categories:
        lo = np.searchsorted(sorted_labels, c, side="left")
        hi = np.searchsorted(sorted_labels, c, side="right")
        partitions[c] = np.sort(order[lo:hi])
    return partitions
