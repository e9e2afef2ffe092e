from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

import pytest

from celltensor.__main__ import main


def test_cli_format_smoke():
    env = os.environ.copy()
    proc = subprocess.run(
        [sys.executable, "-m", "celltensor", "format", "{{x:b}:2,{x:a}:1}"],
        env=env,
        capture_output=True,
        text=True,
        check=False,
    )
    if proc.returncode != 0:
        pytest.fail(f"CLI failed: {proc.returncode}\n{proc.stdout}\n{proc.stderr}")
    assert proc.stdout.strip() == "{{x:a}:1.0,{x:b}:2.0}"


def test_cli_reduce_from_file(tmp_path: Path, capsys):
    source = tmp_path / "t.txt"
    source.write_text("{{x:a,y:0}:2.0,{x:b,y:0}:3.0,{x:b,y:1}:4.0}", encoding="utf-8")
    main(["reduce", f"@{source}", "--aggregator", "max", "--dim", "y"])
    assert capsys.readouterr().out.strip() == "{{x:a}:2.0,{x:b}:4.0}"


def test_cli_join_and_rename(capsys):
    main(["join", "{{x:a}:2.0}", "{{x:a}:3.0}", "--op", "add"])
    assert capsys.readouterr().out.strip() == "{{x:a}:5.0}"
    main(["rename", "{{x:a}:2.0}", "--from", "x", "--to", "y", "--with-type"])
    assert capsys.readouterr().out.strip() == "tensor(y{}):{{y:a}:2.0}"


def test_cli_indexed_type(capsys):
    main(["format", "{{x:1}:2.0}", "--type", "tensor(x[3])"])
    assert capsys.readouterr().out.strip() == "{{x:0}:0.0,{x:1}:2.0,{x:2}:0.0}"


def test_cli_reports_format_errors(capsys):
    with pytest.raises(SystemExit) as info:
        main(["format", "not-a-tensor"])
    assert info.value.code == 2
    assert "error:" in capsys.readouterr().err
