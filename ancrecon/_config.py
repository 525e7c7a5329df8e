"""
_config.py
==========
Parameter file for the end-to-end pipeline.

  # reconstruction of the boreoeutherian ancestor
  REFSPC     = hg19
  TREEFILE   = tree.txt
  GENOMEFILE = Genomes.Order
  OUTPUTDIR  = out
  MINADJSCR  = 0.0001
  RATE       = 0.0008        # optional

``KEY = VALUE`` per line; ``#`` starts a comment and blank lines are
skipped.  Relative paths are resolved against the directory containing the
parameter file.

Required keys: REFSPC, TREEFILE, GENOMEFILE, OUTPUTDIR, MINADJSCR.
Optional keys: RATE, BPDISTFILE, JOINSDIR, OUTGROUPJOINS, BLOCKCOUNT.
BLOCKCOUNT overrides the ancestral block count used to restore blocks left
out of every APCF; by default it is the reference genome's block count.
"""

import logging
import os
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from ancrecon._errors import ConsistencyError, ParseError
from ancrecon._utils import parse_bool


logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("REFSPC", "TREEFILE", "GENOMEFILE", "OUTPUTDIR", "MINADJSCR")
OPTIONAL_KEYS = ("RATE", "BPDISTFILE", "JOINSDIR", "OUTGROUPJOINS", "BLOCKCOUNT")
_PATH_KEYS = ("TREEFILE", "GENOMEFILE", "OUTPUTDIR", "BPDISTFILE", "JOINSDIR")


@dataclass
class ReconstructionConfig:
    """Validated pipeline parameters."""

    reference: str
    tree_file: str
    genome_file: str
    output_dir: str
    min_weight: float
    rate: Optional[float] = None
    bpdist_file: Optional[str] = None
    joins_dir: Optional[str] = None
    outgroup_joins: bool = True
    block_count: Optional[int] = None

    def __post_init__(self):
        if self.joins_dir is None:
            self.joins_dir = os.path.dirname(os.path.abspath(self.genome_file))


def parse_params(lines: Iterable[str]) -> Dict[str, str]:
    """Raw ``KEY = VALUE`` pairs in file order."""
    params = {}
    for lineno, raw in enumerate(lines, start=1):
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        if "=" not in line:
            raise ParseError("expected KEY = VALUE", line=lineno, text=raw.strip())
        name, value = line.split("=", 1)
        params[name.strip()] = value.strip()
    return params


def config_from_params(params: Dict[str, str], base_dir: str = ".") -> ReconstructionConfig:
    """
    Validate raw parameters and build a ReconstructionConfig.

    Raises
    ------
    ConsistencyError
        Listing every missing required key.
    ParseError
        For a numeric or boolean value that does not parse.
    """
    missing = [k for k in REQUIRED_KEYS if not params.get(k)]
    if missing:
        raise ConsistencyError(f"missing parameters: {' '.join(missing)}")

    for key in params:
        if key not in REQUIRED_KEYS and key not in OPTIONAL_KEYS:
            logger.warning(f"Ignoring unknown parameter {key}")

    resolved = dict(params)
    for key in _PATH_KEYS:
        if resolved.get(key):
            resolved[key] = os.path.normpath(os.path.join(base_dir, resolved[key]))

    def number(key, kind):
        value = resolved.get(key)
        if value is None or value == "":
            return None
        try:
            return kind(value)
        except ValueError:
            raise ParseError(f"bad value for {key}", text=value) from None

    outgroup_joins = True
    if resolved.get("OUTGROUPJOINS"):
        try:
            outgroup_joins = parse_bool(resolved["OUTGROUPJOINS"])
        except ValueError:
            raise ParseError("bad value for OUTGROUPJOINS", text=resolved["OUTGROUPJOINS"]) from None

    return ReconstructionConfig(
        reference=resolved["REFSPC"],
        tree_file=resolved["TREEFILE"],
        genome_file=resolved["GENOMEFILE"],
        output_dir=resolved["OUTPUTDIR"],
        min_weight=number("MINADJSCR", float),
        rate=number("RATE", float),
        bpdist_file=resolved.get("BPDISTFILE") or None,
        joins_dir=resolved.get("JOINSDIR") or None,
        outgroup_joins=outgroup_joins,
        block_count=number("BLOCKCOUNT", int),
    )


def load_config(path: str) -> ReconstructionConfig:
    """Read and validate the parameter file at *path*."""
    with open(path) as fh:
        params = parse_params(fh)
    config = config_from_params(params, os.path.dirname(os.path.abspath(path)))
    logger.info(f"Loaded parameters from {path} (reference {config.reference})")
    return config
