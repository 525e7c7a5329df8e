"""
_pipeline.py
============
Stage functions and the end-to-end ``reconstruct`` driver.

  infer_adjacencies   tree + genomes (+ outgroup joins) -> PosteriorTable
  refine_probabilities (see _posterior)                -> score triples
  assemble_chains     score triples                    -> AssemblyResult
  reconstruct         parameter file                   -> output files

Output files written by ``reconstruct`` into OUTPUTDIR:

  adjacencies.prob      posterior adjacency probabilities
  block_consscores.txt  refined (canonical) adjacency scores
  Ancestor.APCF         ancestral contiguous fragments
  Ancestor.ADJS         joins used by the APCFs
"""

import logging
import os
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ancrecon._assembler import AssemblyResult, ChainAssembler, write_contigs, write_joins
from ancrecon._compat import build_compatibility
from ancrecon._config import ReconstructionConfig
from ancrecon._errors import ConsistencyError
from ancrecon._genome import LeafGenome, read_genomes, read_joins
from ancrecon._index import IndexSpace
from ancrecon._likelihood import InferenceContext
from ancrecon._posterior import PosteriorTable, refine_probabilities, write_scores
from ancrecon._rate import DEFAULT_RATE, estimate_rate, read_breakpoint_distances
from ancrecon._tree import PhyloTree, read_tree_file
from ancrecon import _logging


logger = logging.getLogger(__name__)

PROB_FILE = "adjacencies.prob"
SCORE_FILE = "block_consscores.txt"
APCF_FILE = "Ancestor.APCF"
ADJS_FILE = "Ancestor.ADJS"


def reference_genome(
    tree: PhyloTree, genomes: Mapping[str, LeafGenome], reference: str, outgroup_joins: bool = True
) -> LeafGenome:
    """
    The reference species' genome, which sizes the index space.

    Raises ConsistencyError if the reference is not a leaf of the tree, or
    has no genome loaded (absent from the genome file, or an outgroup read
    through join hints).
    """
    try:
        node = tree.node_id(reference)
    except KeyError:
        raise ConsistencyError(f"reference species '{reference}' is not in the tree") from None
    if not tree.is_leaf(node):
        raise ConsistencyError(f"reference species '{reference}' is not a leaf")
    if tree.is_outgroup[node] and outgroup_joins:
        raise ConsistencyError(
            f"reference species '{reference}' is an outgroup read through join hints"
        )
    genome = genomes.get(reference)
    if genome is None:
        raise ConsistencyError(f"no genome for reference species '{reference}'")
    genome.validate()
    return genome


def load_outgroup_joins(tree: PhyloTree, joins_dir: str) -> Dict[str, List[Tuple[int, int]]]:
    """Read ``<name>.joins`` for every outgroup leaf."""
    return {
        tree.names[n]: read_joins(joins_dir, tree.names[n])
        for n in tree.leaves()
        if tree.is_outgroup[n]
    }


def infer_adjacencies(
    tree: PhyloTree,
    genomes: Mapping[str, LeafGenome],
    reference: str,
    joins: Optional[Mapping[str, Sequence[Tuple[int, int]]]] = None,
    outgroup_joins: bool = True,
) -> PosteriorTable:
    """
    Posterior probabilities of every candidate adjacency at the tree's
    ancestor.  The tree is rerooted at the ancestor in place.
    """
    space = IndexSpace.from_genome(reference_genome(tree, genomes, reference, outgroup_joins))
    logger.info(f"Reference {reference}: T={space.T}, N={space.N}")

    tree.reroot()
    _logging.log_tree_summary(
        tree.n_nodes,
        len(tree.leaves()),
        [tree.names[n] for n in tree.leaves() if tree.is_outgroup[n]],
        tree.names[tree.ancestor],
        tree.rate,
    )

    data = build_compatibility(tree, genomes, space, joins, outgroup_joins)
    return InferenceContext(tree, data).run()


def resolve_rate(
    tree: PhyloTree,
    genomes: Mapping[str, LeafGenome],
    reference: str,
    rate: Optional[float] = None,
    bpdist_file: Optional[str] = None,
) -> float:
    """An explicit *rate*, else an estimate from *bpdist_file*, else the default."""
    if rate is not None:
        return rate
    if bpdist_file:
        n_blocks = genomes[reference].n_elements if reference in genomes else 0
        return estimate_rate(tree, reference, read_breakpoint_distances(bpdist_file), n_blocks)
    logger.info(f"No rate or breakpoint distances given; using default rate {DEFAULT_RATE:g}")
    return DEFAULT_RATE


def assemble_chains(
    scores: Iterable[Tuple[int, int, float]],
    min_weight: float = 0.0,
    block_count: Optional[int] = None,
) -> AssemblyResult:
    """Greedy APCF assembly; optionally pads with singleton APCFs."""
    assembler = ChainAssembler(min_weight)
    assembler.load(scores)
    result = assembler.run()
    if block_count is not None:
        result.fill_missing(block_count)
    return result


def reconstruct(config: ReconstructionConfig) -> Dict[str, str]:
    """
    Run inference, refinement and assembly.

    Returns
    -------
    dict
        Output kind ('prob', 'scores', 'apcf', 'adjs') -> file path.
    """
    tree = read_tree_file(config.tree_file)
    genomes = read_genomes(config.genome_file)
    tree.rate = resolve_rate(tree, genomes, config.reference, config.rate, config.bpdist_file)

    joins = None
    if config.outgroup_joins:
        joins = load_outgroup_joins(tree, config.joins_dir)

    os.makedirs(config.output_dir, exist_ok=True)
    paths = {
        "prob": os.path.join(config.output_dir, PROB_FILE),
        "scores": os.path.join(config.output_dir, SCORE_FILE),
        "apcf": os.path.join(config.output_dir, APCF_FILE),
        "adjs": os.path.join(config.output_dir, ADJS_FILE),
    }

    table = infer_adjacencies(tree, genomes, config.reference, joins, config.outgroup_joins)
    table.write(paths["prob"])

    scores = refine_probabilities(table)
    write_scores(paths["scores"], scores)

    # Blocks no chain placed come back as singletons; the reference sizes the
    # ancestor unless BLOCKCOUNT says otherwise.
    block_count = config.block_count if config.block_count is not None else table.n_elements
    result = assemble_chains(scores, config.min_weight, block_count)
    write_contigs(paths["apcf"], result)
    write_joins(paths["adjs"], result)
    return paths
