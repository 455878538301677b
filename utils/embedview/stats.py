"""
Cell-type count and percentage summaries for the statistics panel.
"""

from typing import Callable, Dict, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .colors import as_label_array
from .data_loader import EmbeddingDataset


def format_percentage(value: float) -> str:
    return f"{value:.1f}%"


def category_counts(
    labels: Sequence,
    name_for: Optional[Callable[[int], str]] = None,
) -> pd.DataFrame:
    """
    Count cells per label.

    Returns
    -------
    pd.DataFrame
        Columns ``label``, ``name``, ``count``, ``percentage``; one row per
        distinct label in ascending order.
    """
    arr = as_label_array(labels)
    values, counts = np.unique(arr, return_counts=True)
    total = int(arr.size)
    df = pd.DataFrame({
        "label": values.astype(np.int64),
        "count": counts.astype(np.int64),
    })
    df["percentage"] = (df["count"] / total * 100.0) if total else 0.0
    if name_for is None:
        df["name"] = [f"Type {v}" for v in df["label"]]
    else:
        df["name"] = [name_for(int(v)) for v in df["label"]]
    return df[["label", "name", "count", "percentage"]]


def overall_stats(dataset: EmbeddingDataset) -> Dict:
    """Total cells, number of cell types and the per-type distribution."""
    counts = category_counts(dataset.labels, dataset.label_name)
    distribution = []
    for row in counts.to_dict(orient="records"):
        label, name = int(row["label"]), str(row["name"])
        count, pct = int(row["count"]), float(row["percentage"])
        distribution.append({
            "label": label,
            "name": name,
            "count": count,
            "percentage": pct,
            "text": f"{label} - {name}: {count:,} ({format_percentage(pct)})",
        })
    return {
        "total_cells": dataset.n_cells,
        "n_cell_types": len(counts),
        "dataset": dataset.name,
        "distribution": distribution,
    }


def cell_type_stats(dataset: EmbeddingDataset, label: int) -> Dict:
    """Count and share of one cell type."""
    label = int(label)
    count = int(np.count_nonzero(dataset.labels == label))
    total = dataset.n_cells
    percentage = (count / total * 100.0) if total else 0.0
    return {
        "label": label,
        "name": dataset.label_name(label),
        "count": count,
        "percentage": percentage,
        "percentage_text": format_percentage(percentage),
    }


def summarize(dataset: EmbeddingDataset, selected: Union[str, int] = "all") -> Dict:
    if str(selected) == "all":
        return overall_stats(dataset)
    try:
        label = int(selected)
    except (TypeError, ValueError):
        raise ValueError(f"Cell type must be 'all' or an integer label, got {selected!r}") from None
    return cell_type_stats(dataset, label)
