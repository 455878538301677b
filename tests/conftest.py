import json

import numpy as np
import pytest

from utils.embedview.data_loader import EmbeddingDataset

LABELS = [0, 1, 0, 2, 1, 0]


def _write(path, payload):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f)


@pytest.fixture
def data_dir(tmp_path):
    """Directory with the standard JSON files for six cells."""
    n = len(LABELS)
    _write(tmp_path / "Z_umap_proposed.json", {"data": [[float(i), float(i) * 2] for i in range(n)]})
    _write(tmp_path / "Z_umap_original.json", {"data": [[-float(i), float(i) + 0.5] for i in range(n)]})
    _write(tmp_path / "y.json", {"data": LABELS})
    _write(tmp_path / "label_mapping.json", {
        "label_to_idx": {"neuron": 0, "muscle": 1, "glia": 2},
        "idx_to_label": {"0": "neuron", "1": "muscle", "2": "glia"},
    })
    _write(tmp_path / "cell_metadata.json", {"cell_ids": [f"c{i}" for i in range(n)]})
    _write(tmp_path / "detailed_cell_metadata.json", {
        f"c{i}": {
            "cell_id": f"c{i}",
            "sample": "L2_rep1" if i < 3 else "L2_rep2",
            "num_genes_expressed": 100 + i,
            "n_umi": 500 + 10 * i,
            "size_factor": 0.9 + 0.05 * i,
        }
        for i in range(n - 1)
    })
    return tmp_path


@pytest.fixture
def dataset():
    n = len(LABELS)
    return EmbeddingDataset(
        proposed=np.column_stack([np.arange(n), np.arange(n) * 2.0]),
        original=np.column_stack([-np.arange(n), np.arange(n) + 0.5]),
        labels=np.array(LABELS),
        cell_ids=[f"c{i}" for i in range(n)],
        idx_to_label={"0": "neuron", "1": "muscle", "2": "glia"},
        name="toy",
    )
