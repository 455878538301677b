"""
Utilities for comparing two embeddings of single-cell data (embedview).
"""

from .embedview import (
    EmbeddingDataset,
    ViewerConfig,
    export_to_html,
    load_embedding_data,
    load_from_h5ad,
    process_categories,
)

__all__ = [
    "EmbeddingDataset",
    "ViewerConfig",
    "export_to_html",
    "load_embedding_data",
    "load_from_h5ad",
    "process_categories",
]
