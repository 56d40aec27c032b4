#!/usr/bin/env python
"""CLI for running overlapping community propagation on a graph file.

Usage:
    python -m scripts.run_copra graph.mtx --belonging-threshold 0.1
    python -m scripts.run_copra edges.txt -b 0.1 --batch-size 100 --approach frontier
    python -m scripts.run_copra edges.txt -b 0.1 --output summary.json
"""
from __future__ import annotations

import argparse
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional

from copra.community import (
    CopraResult,
    copra_dynamic_delta_screening,
    copra_dynamic_frontier,
    copra_naive_dynamic,
    copra_static,
)
from copra.config import get_copra_options, get_log_dir
from copra.graph import apply_batch, generate_batch, read_graph
from copra.logging_utils import setup_logging

logger = logging.getLogger("scripts.run_copra")

APPROACHES = {
    "naive": lambda graph, batch, previous, options: copra_naive_dynamic(graph, previous, options),
    "delta-screening": copra_dynamic_delta_screening,
    "frontier": copra_dynamic_frontier,
}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Detect overlapping communities with COPRA")
    parser.add_argument("graph", type=Path, help="Matrix Market (.mtx) file or edge list")
    parser.add_argument(
        "-b",
        "--belonging-threshold",
        type=float,
        help="Fraction of a vertex's edge weight a community must reach "
        "(falls back to COPRA_BELONGING_THRESHOLD).",
    )
    parser.add_argument("--max-iterations", type=int, help="Override COPRA_MAX_ITERATIONS.")
    parser.add_argument("--tolerance", type=float, help="Override COPRA_TOLERANCE.")
    parser.add_argument("--max-membership", type=int, help="Override COPRA_MAX_MEMBERSHIP.")
    parser.add_argument("--repeat", type=int, help="Override COPRA_REPEAT.")
    parser.add_argument(
        "--directed",
        action="store_true",
        help="Keep edge orientation as read instead of symmetrizing.",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=0,
        help="Generate and apply a random batch of this many edge updates.",
    )
    parser.add_argument(
        "--insertion-fraction",
        type=float,
        default=0.8,
        help="Share of the batch that are insertions (default: 0.8).",
    )
    parser.add_argument(
        "--approach",
        choices=sorted(APPROACHES),
        default="delta-screening",
        help="Incremental approach used after the batch (default: delta-screening).",
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed for batch generation.")
    parser.add_argument("--output", type=Path, help="Write the JSON summary here instead of stdout.")
    parser.add_argument("--quiet", action="store_true", help="Suppress console logging.")
    return parser.parse_args(argv)


def _summarize(result: CopraResult) -> Dict[str, object]:
    return {
        "iterations": result.iterations,
        "time_ms": round(result.time, 3),
        "converged": result.converged,
        "communities": result.community_count(),
        "affected": result.affected,
    }


def run(args: argparse.Namespace) -> Dict[str, object]:
    options = get_copra_options(args.belonging_threshold)
    overrides = {
        "max_iterations": args.max_iterations,
        "tolerance": args.tolerance,
        "max_membership": args.max_membership,
        "repeat": args.repeat,
    }
    options = replace(options, **{k: v for k, v in overrides.items() if v is not None}).validated()

    graph = read_graph(args.graph, symmetric=not args.directed)
    static = copra_static(graph, options)
    summary: Dict[str, object] = {
        "graph": {"vertices": graph.order(), "edges": graph.size(), "span": graph.span()},
        "static": _summarize(static),
    }

    if args.batch_size > 0:
        batch = generate_batch(
            graph,
            args.batch_size,
            insertion_fraction=args.insertion_fraction,
            seed=args.seed,
        )
        updated = apply_batch(graph, batch)
        dynamic = APPROACHES[args.approach](updated, batch, static.labels, options)
        summary["batch"] = {
            "deletions": len(batch.deletions) // 2,
            "insertions": len(batch.insertions) // 2,
        }
        summary[args.approach] = _summarize(dynamic)

    return summary


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(quiet=args.quiet, log_dir=get_log_dir())
    try:
        summary = run(args)
    except (RuntimeError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    text = json.dumps(summary, indent=2)
    if args.output:
        args.output.write_text(text)
        logger.info(f"Wrote summary to {args.output}")
    else:
        print(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
