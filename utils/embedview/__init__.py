"""
embedview: standalone HTML viewer for comparing two embeddings of the same cells.
"""

from .colors import (
    CategoryColors,
    InvalidInputError,
    PALETTES,
    generate_continuous_colors,
    indices_of,
    interpolate_color,
    partition_labels,
    process_categories,
    select_discrete_palette,
)
from .config import ViewerConfig, load_config
from .data_loader import EmbeddingDataset, load_embedding_data, load_from_h5ad, write_embedding_data
from .exporter import build_layout, build_traces, export_to_html
from .stats import category_counts, summarize

__all__ = [
    "CategoryColors",
    "InvalidInputError",
    "PALETTES",
    "generate_continuous_colors",
    "indices_of",
    "interpolate_color",
    "partition_labels",
    "process_categories",
    "select_discrete_palette",
    "ViewerConfig",
    "load_config",
    "EmbeddingDataset",
    "load_embedding_data",
    "load_from_h5ad",
    "write_embedding_data",
    "build_layout",
    "build_traces",
    "export_to_html",
    "category_counts",
    "summarize",
]
