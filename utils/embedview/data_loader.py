"""
Data loading utilities for embedding comparison data.

Reads the per-dataset JSON files (two 2-D embeddings, labels, label names
and per-cell metadata), or builds the same structure from an h5ad file with
scanpy, and exposes the cell-type partitions and hover metadata the viewer
needs.
"""

import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
import scanpy as sc
from scipy.sparse import issparse

from .colors import CategoryColors, as_label_array, partition_labels, process_categories
from .config import FileNames

METADATA_FIELDS = ["sample", "num_genes_expressed", "n_umi", "size_factor"]
_PLACEHOLDERS = {
    "sample": "Unknown",
    "num_genes_expressed": "N/A",
    "n_umi": "N/A",
    "size_factor": "N/A",
}


def _plain(value, placeholder):
    """Native Python scalar for JSON, or ``placeholder`` for missing/non-finite values."""
    if isinstance(value, np.generic):
        value = value.item()
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return placeholder
    if isinstance(value, float) and not np.isfinite(value):
        return placeholder
    return value


@dataclass
class EmbeddingDataset:
    """Container for two embeddings of the same cells plus labels and metadata."""
    proposed: np.ndarray  # (n_cells, 2)
    original: np.ndarray  # (n_cells, 2)
    labels: np.ndarray  # (n_cells,) int
    cell_ids: List[str]
    idx_to_label: Optional[Dict[str, str]] = None
    cell_metadata: Optional[pd.DataFrame] = None  # indexed by cell id
    name: str = "dataset"
    experiment: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.labels = as_label_array(self.labels)
        n = self.labels.shape[0]
        for attr in ("proposed", "original"):
            coords = _as_coordinates(getattr(self, attr), attr)
            if coords.shape[0] != n:
                raise ValueError(
                    f"{attr} has {coords.shape[0]} points but there are {n} labels"
                )
            setattr(self, attr, coords)
        if len(self.cell_ids) != n:
            raise ValueError(f"Got {len(self.cell_ids)} cell ids for {n} labels")
        self.cell_ids = [str(c) for c in self.cell_ids]

    @property
    def n_cells(self) -> int:
        return int(self.labels.shape[0])

    @property
    def has_label_mapping(self) -> bool:
        return self.idx_to_label is not None

    @property
    def has_detailed_metadata(self) -> bool:
        return self.cell_metadata is not None and not self.cell_metadata.empty

    def label_name(self, label: int) -> str:
        """Human-readable name for a label; the mapping is keyed by ``str(label)``."""
        if self.idx_to_label is None:
            return f"Type {label}"
        return str(self.idx_to_label.get(str(int(label)), "Unknown"))

    def get_cell_info(self, cell_id: str) -> Dict[str, Any]:
        """Hover metadata for one cell, with placeholders when unavailable."""
        if not self.has_detailed_metadata or cell_id not in self.cell_metadata.index:
            return {"cell_id": cell_id, **{col: _PLACEHOLDERS[col] for col in METADATA_FIELDS}}
        row = self.cell_metadata.loc[cell_id]
        info = {"cell_id": cell_id}
        for col in METADATA_FIELDS:
            info[col] = _plain(row.get(col, None), _PLACEHOLDERS[col])
        return info

    def get_hover_records(self) -> List[List[Any]]:
        """
        Hover metadata for every cell, aligned with ``cell_ids``.

        Each record is ``[cell_id, sample, num_genes_expressed, n_umi,
        size_factor]``; cells without metadata get placeholders.
        """
        if not self.has_detailed_metadata:
            placeholders = [_PLACEHOLDERS[col] for col in METADATA_FIELDS]
            return [[cell_id, *placeholders] for cell_id in self.cell_ids]

        frame = self.cell_metadata.reindex(index=self.cell_ids, columns=METADATA_FIELDS)
        columns = [list(self.cell_ids)]
        for col in METADATA_FIELDS:
            integral = (
                col in self.cell_metadata.columns
                and pd.api.types.is_integer_dtype(self.cell_metadata[col])
            )
            values = [_plain(v, _PLACEHOLDERS[col]) for v in frame[col].tolist()]
            if integral:
                # reindex upcasts to float when any cell is missing
                values = [int(v) if isinstance(v, float) else v for v in values]
            columns.append(values)
        return [list(record) for record in zip(*columns)]

    def get_coordinates(self, method: str) -> np.ndarray:
        if method == "proposed":
            return self.proposed
        if method == "original":
            return self.original
        raise ValueError(f"Unknown embedding method {method!r}; expected 'proposed' or 'original'")

    def process_cell_types(self, palette: Optional[Sequence[str]] = None) -> CategoryColors:
        """Sorted cell types and their colors."""
        return process_categories(self.labels, palette=palette)

    def get_category_indices(
        self,
        categories: Optional[Sequence[int]] = None,
    ) -> Dict[int, np.ndarray]:
        """Get cell indices for each cell type."""
        return partition_labels(self.labels, categories)


def _as_coordinates(values, what: str) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return np.empty((0, 2), dtype=float)
    if arr.ndim != 2 or arr.shape[1] < 2:
        raise ValueError(f"{what} must be an (n_cells, 2) array, got shape {arr.shape}")
    return arr[:, :2]


def _read_json(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Could not parse {path.name}: {e}") from e


def _unwrap(payload: Any, name: str) -> Any:
    """Embedding and label files store their array under a ``data`` key."""
    if isinstance(payload, dict):
        if "data" not in payload:
            raise ValueError(f"{name} has no 'data' field")
        return payload["data"]
    return payload


def _metadata_frame(detailed: Dict[str, Dict[str, Any]]) -> pd.DataFrame:
    frame = pd.DataFrame.from_dict(detailed, orient="index")
    frame.index = frame.index.astype(str)
    if "cell_id" in frame.columns:
        frame = frame.drop(columns=["cell_id"])
    return frame


def load_embedding_data(
    data_path: Union[str, Path],
    files: Optional[FileNames] = None,
    detailed_metadata: bool = True,
    name: Optional[str] = None,
) -> EmbeddingDataset:
    """
    Load an embedding comparison dataset from a directory of JSON files.

    Parameters
    ----------
    data_path : str or Path
        Directory containing the data files
    files : FileNames, optional
        File names to read (defaults to the standard names)
    detailed_metadata : bool
        Read per-cell sample/gene/UMI/size-factor records for hover text
    name : str, optional
        Dataset name (defaults to the directory name)

    Returns
    -------
    EmbeddingDataset
        Loaded dataset ready for visualization
    """
    data_path = Path(data_path)
    files = files or FileNames()
    if not data_path.is_dir():
        raise FileNotFoundError(f"Data directory not found: {data_path}")

    required = {
        "proposed": files.proposed,
        "original": files.original,
        "labels": files.labels,
    }
    optional = {
        "label_mapping": files.label_mapping,
        "cell_metadata": files.cell_metadata,
        "config": files.config,
    }
    if detailed_metadata:
        optional["detailed_cell_metadata"] = files.detailed_cell_metadata

    for key, fname in required.items():
        if not (data_path / fname).exists():
            raise FileNotFoundError(f"Failed to load {key} data: {data_path / fname} not found")

    to_read = dict(required)
    for key, fname in optional.items():
        if (data_path / fname).exists():
            to_read[key] = fname
        else:
            print(f"  Warning: {fname} not found in {data_path}; continuing without it.")

    print(f"Loading data files from {data_path}")
    with ThreadPoolExecutor(max_workers=len(to_read)) as pool:
        futures = {key: pool.submit(_read_json, data_path / fname) for key, fname in to_read.items()}
        payloads = {key: fut.result() for key, fut in futures.items()}

    proposed = _unwrap(payloads["proposed"], files.proposed)
    original = _unwrap(payloads["original"], files.original)
    labels = _unwrap(payloads["labels"], files.labels)

    idx_to_label = None
    if "label_mapping" in payloads:
        mapping = payloads["label_mapping"]
        if not isinstance(mapping, dict) or "idx_to_label" not in mapping:
            raise ValueError(f"{files.label_mapping} has no 'idx_to_label' field")
        idx_to_label = {str(k): str(v) for k, v in mapping["idx_to_label"].items()}

    n_cells = len(labels)
    cell_ids = [f"Cell_{i}" for i in range(n_cells)]
    if "cell_metadata" in payloads:
        meta = payloads["cell_metadata"]
        ids = meta.get("cell_ids") if isinstance(meta, dict) else None
        if ids is None:
            raise ValueError(f"{files.cell_metadata} has no 'cell_ids' field")
        if len(ids) != n_cells:
            raise ValueError(
                f"{files.cell_metadata} lists {len(ids)} cells but {files.labels} has {n_cells} labels"
            )
        cell_ids = [str(c) for c in ids]

    cell_metadata = None
    if "detailed_cell_metadata" in payloads:
        detailed = payloads["detailed_cell_metadata"]
        if not isinstance(detailed, dict):
            raise ValueError(f"{files.detailed_cell_metadata} must map cell ids to records")
        cell_metadata = _metadata_frame(detailed)

    dataset = EmbeddingDataset(
        proposed=proposed,
        original=original,
        labels=labels,
        cell_ids=cell_ids,
        idx_to_label=idx_to_label,
        cell_metadata=cell_metadata,
        name=name or data_path.name,
        experiment=payloads.get("config") or {},
    )

    print("  Data loaded:")
    print(f"    Proposed: {len(dataset.proposed):,} points")
    print(f"    Original: {len(dataset.original):,} points")
    print(f"    Cell labels: {dataset.n_cells:,} labels")
    if idx_to_label is not None:
        print(f"    Label mapping: {len(idx_to_label)} cell types")
    if cell_metadata is not None:
        print(f"    Detailed metadata: {len(cell_metadata):,} cells")
    return dataset


def _row_sums(x) -> np.ndarray:
    if issparse(x):
        return np.asarray(x.sum(axis=1)).ravel()
    return np.asarray(x).sum(axis=1).ravel()


def _row_nnz(x) -> np.ndarray:
    if issparse(x):
        return np.diff(x.tocsr().indptr)
    return np.count_nonzero(np.asarray(x), axis=1)


def load_from_h5ad(
    path: str,
    label_key: str = "cell_type",
    proposed_key: str = "X_proposed",
    original_key: str = "X_umap",
    sample_key: Optional[str] = "sample",
    counts_layer: Optional[str] = "counts",
    detailed_metadata: bool = True,
    name: Optional[str] = None,
) -> EmbeddingDataset:
    """
    Build an embedding comparison dataset from an h5ad file.

    Parameters
    ----------
    path : str
        Path to .h5ad file
    label_key : str
        Obs column with cell-type labels. Categorical and string columns are
        encoded by category order; integer columns are used as-is.
    proposed_key, original_key : str
        Keys in obsm holding the two embeddings
    sample_key : str, optional
        Obs column with the sample name
    counts_layer : str, optional
        Layer with raw counts for gene/UMI totals (falls back to X)
    detailed_metadata : bool
        Collect per-cell sample/gene/UMI/size-factor records
    name : str, optional
        Dataset name (defaults to the file stem)

    Returns
    -------
    EmbeddingDataset
    """
    print(f"Loading {path}...")
    adata = sc.read_h5ad(path)
    print(f"  Loaded {adata.n_obs:,} cells, {adata.n_vars:,} genes")

    for key in (proposed_key, original_key):
        if key not in adata.obsm:
            raise ValueError(f"Embedding not found in adata.obsm['{key}']")
    if label_key not in adata.obs.columns:
        raise ValueError(f"Label column '{label_key}' not found in adata.obs")

    col = adata.obs[label_key]
    if isinstance(col.dtype, pd.CategoricalDtype) or not pd.api.types.is_integer_dtype(col):
        cat = col.astype("category")
        codes = cat.cat.codes.to_numpy()
        if (codes < 0).any():
            raise ValueError(f"Label column '{label_key}' contains missing values")
        labels = codes.astype(np.int64)
        idx_to_label = {str(i): str(c) for i, c in enumerate(cat.cat.categories)}
    else:
        labels = col.to_numpy(dtype=np.int64)
        idx_to_label = None

    cell_metadata = None
    if detailed_metadata:
        obs = adata.obs
        x = adata.layers[counts_layer] if counts_layer and counts_layer in adata.layers else adata.X
        meta = pd.DataFrame(index=adata.obs_names.astype(str))
        if sample_key and sample_key in obs.columns:
            meta["sample"] = obs[sample_key].astype(str).to_numpy()
        else:
            meta["sample"] = "Unknown"
        if "n_genes_by_counts" in obs.columns:
            meta["num_genes_expressed"] = obs["n_genes_by_counts"].to_numpy()
        else:
            meta["num_genes_expressed"] = _row_nnz(x)
        if "total_counts" in obs.columns:
            meta["n_umi"] = obs["total_counts"].to_numpy()
        else:
            meta["n_umi"] = _row_sums(x)
        if "size_factor" in obs.columns:
            meta["size_factor"] = obs["size_factor"].to_numpy(dtype=float)
        else:
            umi = meta["n_umi"].to_numpy(dtype=float)
            mean_umi = umi.mean() if umi.size else 0.0
            meta["size_factor"] = umi / mean_umi if mean_umi > 0 else np.nan
        cell_metadata = meta

    return EmbeddingDataset(
        proposed=np.asarray(adata.obsm[proposed_key])[:, :2],
        original=np.asarray(adata.obsm[original_key])[:, :2],
        labels=labels,
        cell_ids=list(adata.obs_names.astype(str)),
        idx_to_label=idx_to_label,
        cell_metadata=cell_metadata,
        name=name or Path(path).stem,
    )


def _json_value(value):
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, float) and np.isnan(value):
        return None
    return value


def write_embedding_data(
    dataset: EmbeddingDataset,
    out_dir: Union[str, Path],
    files: Optional[FileNames] = None,
) -> Path:
    """Write a dataset as the JSON file layout read by :func:`load_embedding_data`."""
    out_dir = Path(out_dir)
    files = files or FileNames()
    out_dir.mkdir(parents=True, exist_ok=True)

    outputs = {
        files.proposed: {"data": dataset.proposed.tolist()},
        files.original: {"data": dataset.original.tolist()},
        files.labels: {"data": dataset.labels.tolist()},
        files.cell_metadata: {"cell_ids": list(dataset.cell_ids)},
    }
    if dataset.idx_to_label is not None:
        outputs[files.label_mapping] = {
            "label_to_idx": {v: int(k) for k, v in dataset.idx_to_label.items()},
            "idx_to_label": dict(dataset.idx_to_label),
        }
    if dataset.has_detailed_metadata:
        outputs[files.detailed_cell_metadata] = {
            str(cell_id): {
                "cell_id": str(cell_id),
                **{col: _json_value(v) for col, v in row.items()},
            }
            for cell_id, row in dataset.cell_metadata.to_dict(orient="index").items()
        }
    if dataset.experiment:
        outputs[files.config] = dataset.experiment

    for fname, payload in outputs.items():
        with open(out_dir / fname, "w", encoding="utf-8") as f:
            json.dump(payload, f, separators=(",", ":"))

    print(f"Wrote {len(outputs)} data files to: {out_dir}")
    return out_dir
