"""
Command-line interface for embedview.
"""

import argparse
import sys
from pathlib import Path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate an HTML viewer comparing two embeddings of single-cell data"
    )
    parser.add_argument(
        "input",
        type=str,
        nargs="?",
        default=None,
        help="Data directory with the embedding JSON files, or an .h5ad file (default: dataset.data_path from the config)"
    )
    parser.add_argument(
        "-o", "--output",
        type=str,
        default="embedview.html",
        help="Output HTML file path (default: embedview.html)"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON file overriding viewer settings"
    )
    parser.add_argument(
        "-m", "--method",
        choices=["both", "proposed", "original"],
        default=None,
        help="Initial view (default: from config, 'both')"
    )
    parser.add_argument(
        "--cell-type",
        type=str,
        default=None,
        help="Initially highlighted cell type label, or 'all'"
    )
    parser.add_argument(
        "--title",
        type=str,
        default=None,
        help="Page title"
    )
    parser.add_argument(
        "--name",
        type=str,
        default=None,
        help="Dataset name shown in plot titles and statistics"
    )
    parser.add_argument(
        "--plot-height",
        type=int,
        default=None,
        help="Plot height in pixels (default: 1000)"
    )
    parser.add_argument(
        "--fixed-palette",
        dest="dynamic_palette",
        action="store_false",
        help="Cycle through the configured 20-color palette instead of choosing one by cell-type count."
    )
    parser.add_argument(
        "--no-detailed-metadata",
        dest="detailed_metadata",
        action="store_false",
        help="Skip per-cell sample/gene/UMI/size-factor metadata in hover text."
    )
    parser.add_argument(
        "--export-data",
        type=str,
        default=None,
        help="Also write the dataset as JSON data files to this directory"
    )
    parser.set_defaults(dynamic_palette=True, detailed_metadata=True)

    h5ad = parser.add_argument_group("h5ad input")
    h5ad.add_argument("--label-key", default="cell_type", help="Obs column with cell-type labels (default: cell_type)")
    h5ad.add_argument("--proposed-key", default="X_proposed", help="obsm key of the proposed embedding (default: X_proposed)")
    h5ad.add_argument("--original-key", default="X_umap", help="obsm key of the original embedding (default: X_umap)")
    h5ad.add_argument("--sample-key", default="sample", help="Obs column with sample names (default: sample)")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    # Import here to avoid slow startup for --help
    from .config import ViewerConfig, load_config
    from .data_loader import load_embedding_data, load_from_h5ad, write_embedding_data
    from .exporter import export_to_html

    try:
        config = load_config(args.config) if args.config else ViewerConfig()
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    input_path = Path(args.input or config.dataset.data_path)
    if not input_path.exists():
        print(f"Error: Input not found: {input_path}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.plot_height is not None:
            config.visualization.plot_height = args.plot_height
        config.dynamic_palette = config.dynamic_palette and args.dynamic_palette
        config.detailed_metadata = config.detailed_metadata and args.detailed_metadata
        config.validate()

        name = args.name or config.dataset.name
        if input_path.is_dir():
            dataset = load_embedding_data(
                input_path,
                files=config.files,
                detailed_metadata=config.detailed_metadata,
                name=name,
            )
        else:
            if input_path.suffix != ".h5ad":
                print(f"Warning: Expected .h5ad file, got: {input_path.suffix}", file=sys.stderr)
            dataset = load_from_h5ad(
                str(input_path),
                label_key=args.label_key,
                proposed_key=args.proposed_key,
                original_key=args.original_key,
                sample_key=args.sample_key,
                detailed_metadata=config.detailed_metadata,
                name=name,
            )

        if args.export_data:
            write_embedding_data(dataset, args.export_data, files=config.files)

        print("Exporting to HTML...")
        output_path = export_to_html(
            dataset,
            output_path=args.output,
            config=config,
            title=args.title,
            method=args.method,
            cell_type=args.cell_type,
        )
    except (FileNotFoundError, ValueError, KeyError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Done! Open {output_path} in a browser to view.")


if __name__ == "__main__":
    main()
