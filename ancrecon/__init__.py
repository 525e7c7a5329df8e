"""
ancrecon
========

Ancestral chromosome reconstruction from comparative block orders.

Given a rooted phylogeny with a designated ancestral node and, for every
leaf, the order and orientation of homologous blocks along its chromosomes,
*ancrecon* computes the posterior probability of every candidate adjacency
between block ends at the ancestor, then greedily assembles the most
probable adjacencies into ancestral contiguous fragments (APCFs).

Main Classes
------------
PhyloTree : Rooted tree with '@' ancestor marker, rerooting and outgroups
InferenceContext : Adjacency likelihood recursion and posterior tables
PosteriorTable : Posterior adjacency probabilities with file I/O
ChainAssembler : Greedy weight-ordered APCF assembly
IndexSpace : Mapping between signed block ids and matrix indices
BitMatrix : Packed square bit matrix

Pipeline
--------
infer_adjacencies : Tree + genomes -> PosteriorTable
refine_probabilities : PosteriorTable -> canonical adjacency scores
assemble_chains : Scores -> AssemblyResult
estimate_rate : Rate from breakpoint distances
reconstruct : Full run from a parameter file (see load_config)

Context Managers
----------------
quiet : Suppress logging during operations
suppress_logger : Suppress specific logger

Examples
--------
>>> from ancrecon import PhyloTree, parse_genomes, infer_adjacencies
>>> tree = PhyloTree('((A:0.1,B:0.1)@:0.1,C:0.2);', rate=0.01)
>>> genomes = parse_genomes(open('Genomes.Order'))
>>> table = infer_adjacencies(tree, genomes, 'A', outgroup_joins=False)

>>> from ancrecon import ChainAssembler
>>> asm = ChainAssembler(min_weight=0.0001)
>>> asm.load([(1, 2, 0.9), (2, 3, 0.8)])
>>> asm.run().apcfs
[[1, 2, 3]]
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Main classes
from ._tree import PhyloTree, read_tree_file
from ._index import IndexSpace
from ._bitmatrix import BitMatrix
from ._genome import Chromosome, LeafGenome, parse_genomes, read_genomes, read_joins
from ._compat import CompatibilityData, LeafEvidence, build_compatibility
from ._sparse import SparseTable
from ._likelihood import InferenceContext
from ._posterior import PosteriorTable, refine_probabilities, write_scores
from ._assembler import (
    AssemblyResult,
    Chain,
    ChainAssembler,
    Edge,
    InsertResult,
    read_scores,
    write_contigs,
    write_joins,
)
from ._rate import estimate_rate, read_breakpoint_distances
from ._config import ReconstructionConfig, load_config
from ._pipeline import assemble_chains, infer_adjacencies, reconstruct

# Errors
from ._errors import (
    ReconstructionError,
    ParseError,
    GenomeFormatError,
    ConsistencyError,
)

# Context managers (user-facing utilities)
from ._context import suppress_logger, quiet

# Utilities (generally useful functions)
from ._utils import canonical_adjacency, format_newick

# Public API
__all__ = [
    # Main classes
    "PhyloTree",
    "IndexSpace",
    "BitMatrix",
    "Chromosome",
    "LeafGenome",
    "CompatibilityData",
    "LeafEvidence",
    "SparseTable",
    "InferenceContext",
    "PosteriorTable",
    "AssemblyResult",
    "Chain",
    "ChainAssembler",
    "Edge",
    "InsertResult",
    "ReconstructionConfig",
    # Functions
    "read_tree_file",
    "parse_genomes",
    "read_genomes",
    "read_joins",
    "build_compatibility",
    "refine_probabilities",
    "write_scores",
    "read_scores",
    "write_contigs",
    "write_joins",
    "estimate_rate",
    "read_breakpoint_distances",
    "load_config",
    "assemble_chains",
    "infer_adjacencies",
    "reconstruct",
    # Errors
    "ReconstructionError",
    "ParseError",
    "GenomeFormatError",
    "ConsistencyError",
    # Context managers
    "suppress_logger",
    "quiet",
    # Utilities
    "canonical_adjacency",
    "format_newick",
    # Version info
    "__version__",
]
