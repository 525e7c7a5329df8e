"""
tests/test_cli.py
=================
Command-line entry point: each subcommand on the tests/data/small fixture,
exit codes, and error reporting.
"""

import logging
import os
import shutil
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from ancrecon import __version__
from ancrecon._cli import build_parser, main
from ancrecon._posterior import PosteriorTable


@pytest.fixture
def small(tmp_path, data_dir):
    work = tmp_path / "small"
    shutil.copytree(os.path.join(data_dir, "small"), str(work))
    return work


class TestParser:
    def test_subcommands(self):
        args = build_parser().parse_args(["assemble", "0.01", "s.txt", "a.apcf", "a.adjs"])
        assert args.command == "assemble"
        assert args.min_weight == pytest.approx(0.01)
        assert args.block_count is None

    def test_command_required(self):
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 2

    def test_bad_argument(self):
        with pytest.raises(SystemExit) as exc:
            main(["assemble", "heavy", "s.txt", "a.apcf", "a.adjs"])
        assert exc.value.code == 2

    def test_verbosity_exclusive(self):
        with pytest.raises(SystemExit):
            main(["-v", "-q", "run", "params.txt"])

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0
        assert __version__ in capsys.readouterr().out


class TestCommands:
    def test_infer_refine_assemble(self, small):
        prob = str(small / "adjacencies.prob")
        scores = str(small / "block_consscores.txt")
        apcf = str(small / "Ancestor.APCF")
        adjs = str(small / "Ancestor.ADJS")

        assert main([
            "-q", "infer", "HUMAN",
            str(small / "tree.txt"), str(small / "Genomes.Order"),
            "-o", prob, "--rate", "0.01",
        ]) == 0
        assert PosteriorTable.read(prob).n_elements == 5

        assert main(["-q", "refine", prob, "-o", scores]) == 0
        assert os.path.getsize(scores) > 0

        assert main(["-q", "assemble", "0.0001", scores, apcf, adjs, "--block-count", "5"]) == 0
        with open(apcf) as fh:
            assert fh.readline().strip() == ">ANCESTOR\t5"
        assert os.path.getsize(adjs) > 0

    def test_infer_without_joins(self, small):
        os.remove(str(small / "CHICKEN.joins"))
        prob = str(small / "adjacencies.prob")
        assert main([
            "-q", "infer", "HUMAN",
            str(small / "tree.txt"), str(small / "Genomes.Order"),
            "-o", prob, "--no-outgroup-joins",
        ]) == 0

    def test_estimate_rate(self, small, capsys):
        code = main([
            "-q", "estimate-rate", "5", "HUMAN",
            str(small / "tree.txt"), str(small / "bpdist.txt"),
        ])
        assert code == 0
        rate = float(capsys.readouterr().out.strip())
        assert 0.0 < rate < 1.0

    def test_run(self, small):
        assert main(["-q", "run", str(small / "params.txt")]) == 0
        assert sorted(os.listdir(str(small / "out"))) == [
            "Ancestor.ADJS", "Ancestor.APCF", "adjacencies.prob", "block_consscores.txt",
        ]


class TestErrors:
    def test_missing_input_file(self, tmp_path, caplog):
        with caplog.at_level(logging.ERROR):
            code = main(["refine", str(tmp_path / "missing.prob")])
        assert code == 1
        assert any(r.levelno == logging.ERROR for r in caplog.records)

    def test_missing_joins_file(self, small):
        os.remove(str(small / "CHICKEN.joins"))
        code = main([
            "-q", "infer", "HUMAN",
            str(small / "tree.txt"), str(small / "Genomes.Order"),
            "-o", str(small / "adjacencies.prob"),
        ])
        assert code == 1

    def test_inconsistent_reference(self, small, caplog):
        with caplog.at_level(logging.ERROR):
            code = main([
                "infer", "RAT", str(small / "tree.txt"), str(small / "Genomes.Order"),
                "-o", str(small / "adjacencies.prob"), "--rate", "0.01",
            ])
        assert code == 1
        assert any("RAT" in r.getMessage() for r in caplog.records)

    def test_bad_param_file(self, tmp_path):
        params = tmp_path / "params.txt"
        params.write_text("REFSPC = hg19\n")
        assert main(["-q", "run", str(params)]) == 1
