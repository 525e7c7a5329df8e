"""
_cli.py
=======
Command-line interface.

  ancrecon infer REFSPC TREEFILE GENOMEFILE [-o adjacencies.prob] [--rate A]
  ancrecon refine adjacencies.prob [-o block_consscores.txt]
  ancrecon assemble MINWEIGHT SCOREFILE APCFFILE JOINFILE [--block-count N]
  ancrecon estimate-rate NBLOCKS REFSPC TREEFILE BPDISTFILE
  ancrecon run PARAMFILE

Exit status is 0 on success and 1 on any input or I/O error; argument
errors exit with 2.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from ancrecon import __version__
from ancrecon._config import load_config
from ancrecon._errors import ReconstructionError
from ancrecon._genome import read_genomes
from ancrecon._posterior import PosteriorTable, refine_probabilities, write_scores
from ancrecon._rate import estimate_rate, read_breakpoint_distances
from ancrecon._tree import read_tree_file
from ancrecon import _assembler
from ancrecon import _pipeline


logger = logging.getLogger("ancrecon")


def _cmd_infer(args) -> None:
    tree = read_tree_file(args.tree_file)
    genomes = read_genomes(args.genome_file)
    tree.rate = _pipeline.resolve_rate(
        tree, genomes, args.reference, args.rate, args.bpdist
    )
    joins = None
    if not args.no_outgroup_joins:
        joins_dir = args.joins_dir or os.path.dirname(os.path.abspath(args.genome_file))
        joins = _pipeline.load_outgroup_joins(tree, joins_dir)
    table = _pipeline.infer_adjacencies(
        tree, genomes, args.reference, joins, not args.no_outgroup_joins
    )
    table.write(args.output)


def _cmd_refine(args) -> None:
    table = PosteriorTable.read(args.prob_file)
    write_scores(args.output, refine_probabilities(table))


def _cmd_assemble(args) -> None:
    scores = _assembler.read_scores(args.score_file)
    result = _pipeline.assemble_chains(scores, args.min_weight, args.block_count)
    _assembler.write_contigs(args.apcf_file, result)
    _assembler.write_joins(args.join_file, result)


def _cmd_estimate_rate(args) -> None:
    tree = read_tree_file(args.tree_file)
    distances = read_breakpoint_distances(args.bpdist_file)
    print(estimate_rate(tree, args.reference, distances, args.n_blocks))


def _cmd_run(args) -> None:
    paths = _pipeline.reconstruct(load_config(args.param_file))
    for kind in ("prob", "scores", "apcf", "adjs"):
        logger.info(f"  {kind}: {paths[kind]}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ancrecon",
        description="Reconstruct ancestral chromosome fragments from "
        "comparative block orders.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Log debug messages")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Log warnings and errors only")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("infer", help="Posterior probabilities of ancestral adjacencies")
    p.add_argument("reference", help="Reference species name")
    p.add_argument("tree_file", help="Tree file ('@' marks the ancestor)")
    p.add_argument("genome_file", help="Genome order file")
    p.add_argument("-o", "--output", default=_pipeline.PROB_FILE, help="Output probability file")
    p.add_argument("--rate", type=float, default=None, help="Rate applied to branch lengths")
    p.add_argument("--bpdist", default=None, help="Breakpoint distances for rate estimation")
    p.add_argument("--joins-dir", default=None, help="Directory of <outgroup>.joins files")
    p.add_argument(
        "--no-outgroup-joins",
        action="store_true",
        help="Read outgroup orders from the genome file instead of join hints",
    )
    p.set_defaults(func=_cmd_infer)

    p = sub.add_parser("refine", help="Canonical adjacency scores from a probability file")
    p.add_argument("prob_file", help="adjacencies.prob")
    p.add_argument("-o", "--output", default=_pipeline.SCORE_FILE, help="Output score file")
    p.set_defaults(func=_cmd_refine)

    p = sub.add_parser("assemble", help="Greedy APCF assembly from adjacency scores")
    p.add_argument("min_weight", type=float, help="Minimum edge weight")
    p.add_argument("score_file", help="Adjacency score file (id1 id2 score)")
    p.add_argument("apcf_file", help="Output APCF file")
    p.add_argument("join_file", help="Output join file")
    p.add_argument("--block-count", type=int, default=None, help="Add singleton APCFs up to this block id")
    p.set_defaults(func=_cmd_assemble)

    p = sub.add_parser("estimate-rate", help="Estimate the rate from breakpoint distances")
    p.add_argument("n_blocks", type=int, help="Number of blocks")
    p.add_argument("reference", help="Reference species name")
    p.add_argument("tree_file", help="Tree file")
    p.add_argument("bpdist_file", help="Breakpoint distance file (species distance)")
    p.set_defaults(func=_cmd_estimate_rate)

    p = sub.add_parser("run", help="Full pipeline from a parameter file")
    p.add_argument("param_file", help="KEY = VALUE parameter file")
    p.set_defaults(func=_cmd_run)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.INFO
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    try:
        args.func(args)
    except (ReconstructionError, OSError) as exc:
        logger.error(str(exc))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
