"""
_genome.py
==========
Leaf genomes (ordered, signed element lists per chromosome) and outgroup
join hints.

Genome file
-----------
  >hg19 2
  # chr1
  1 -2 3 $
  # chr2
  4 5 $
  >mm10 1
  -3 2 -1 4 5 $

Each ``>name count`` header is followed by *count* records.  A record is an
optional ``# label`` line and one line of signed element ids terminated by
``$``.  A label of the form ``chr*`` marks a real chromosome; anything else
marks the record as non-chromosomal (scaffold, unplaced contig, ...).
Blank lines are ignored.

Join hints
----------
  # outgroup joins
  0 5
  5 -7
  -7 0

One ``x y`` pair per line; ``0`` is the chromosome-end sentinel.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from ancrecon._errors import GenomeFormatError


logger = logging.getLogger(__name__)

CHR = "chr"
NONCHR = "nonchr"


@dataclass
class Chromosome:
    """One ordered run of signed element ids."""

    elements: List[int]
    label: Optional[str] = None
    kind: str = CHR

    def __len__(self) -> int:
        return len(self.elements)


@dataclass
class LeafGenome:
    """All chromosomes recorded for one species."""

    name: str
    chromosomes: List[Chromosome] = field(default_factory=list)

    @property
    def n_elements(self) -> int:
        return sum(len(c) for c in self.chromosomes)

    def adjacencies(self):
        """
        Yield the signed adjacencies of every chromosome, sentinels included.

        A chromosome [e1 .. en] yields (0, e1), (e1, e2), ..., (en, 0).
        """
        for chrom in self.chromosomes:
            prev = 0
            for e in chrom.elements:
                yield prev, e
                prev = e
            yield prev, 0

    def validate(self) -> None:
        """Raise GenomeFormatError if an element id occurs more than once."""
        seen = set()
        for chrom in self.chromosomes:
            for e in chrom.elements:
                if abs(e) in seen:
                    raise GenomeFormatError(
                        f"element {abs(e)} occurs more than once in genome '{self.name}'"
                    )
                seen.add(abs(e))


# ============================================================================ #
# Parsing
# ============================================================================ #


def _parse_elements(text: str, lineno: int) -> List[int]:
    elements = []
    for token in text.split():
        if token == "$":
            break
        try:
            e = int(token)
        except ValueError:
            raise GenomeFormatError(
                "cannot parse element id", line=lineno, text=token
            ) from None
        if e == 0:
            raise GenomeFormatError("element id 0 is reserved", line=lineno, text=text)
        elements.append(e)
    if not elements:
        raise GenomeFormatError("empty chromosome record", line=lineno, text=text)
    return elements


def parse_genomes(lines: Iterable[str]) -> Dict[str, LeafGenome]:
    """
    Parse a genome file into {species name: LeafGenome}.

    Parameters
    ----------
    lines : iterable of str
        Lines of the genome file (an open file handle works).

    Returns
    -------
    dict
        Genomes in file order.

    Raises
    ------
    GenomeFormatError
        Malformed header, truncated record block or unparseable element id.
        Repeated elements are checked later by ``LeafGenome.validate``, and
        only for the species a tree actually uses.
    """
    genomes: Dict[str, LeafGenome] = {}
    current = None
    remaining = 0
    label = None

    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line:
            continue

        if line.startswith(">"):
            if remaining > 0:
                raise GenomeFormatError(
                    f"genome '{current.name}' is missing {remaining} record(s)",
                    line=lineno,
                )
            fields = line[1:].split()
            if len(fields) != 2:
                raise GenomeFormatError("cannot parse genome header", line=lineno, text=line)
            name = fields[0]
            try:
                remaining = int(fields[1])
            except ValueError:
                raise GenomeFormatError(
                    "cannot parse chromosome count", line=lineno, text=line
                ) from None
            if name in genomes:
                raise GenomeFormatError(f"duplicate genome '{name}'", line=lineno)
            current = LeafGenome(name)
            genomes[name] = current
            label = None
            continue

        if remaining == 0:
            if line.startswith("#"):
                continue
            raise GenomeFormatError("record outside a genome block", line=lineno, text=line)

        if line.startswith("#"):
            label = line[1:].strip() or None
            continue

        kind = CHR if label is None or label.startswith("chr") else NONCHR
        current.chromosomes.append(
            Chromosome(_parse_elements(line, lineno), label=label, kind=kind)
        )
        label = None
        remaining -= 1

    if remaining > 0:
        raise GenomeFormatError(
            f"genome '{current.name}' is missing {remaining} record(s) at end of file"
        )

    return genomes


def read_genomes(path: str) -> Dict[str, LeafGenome]:
    """Read and parse the genome file at *path*."""
    with open(path) as fh:
        genomes = parse_genomes(fh)
    logger.info(f"Read {len(genomes)} genome(s) from {path}")
    return genomes


def parse_joins(lines: Iterable[str]) -> List[Tuple[int, int]]:
    """
    Parse outgroup join hints into a list of (x, y) pairs.

    Lines starting with ``#`` and blank lines are skipped; any extra
    fields after the first two are ignored.
    """
    joins = []
    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        fields = line.split()
        try:
            x, y = int(fields[0]), int(fields[1])
        except (IndexError, ValueError):
            raise GenomeFormatError("bad join record", line=lineno, text=line) from None
        joins.append((x, y))
    return joins


def read_joins(joins_dir: str, name: str) -> List[Tuple[int, int]]:
    """Read ``<joins_dir>/<name>.joins``."""
    path = os.path.join(joins_dir, f"{name}.joins")
    with open(path) as fh:
        joins = parse_joins(fh)
    logger.debug(f"Read {len(joins)} join hint(s) for {name} from {path}")
    return joins
