import base64
import subprocess
import sys
from pathlib import Path

from bytecode_factory import ProtoSpec, abc, build_module

SCRIPT = Path(__file__).resolve().parents[1] / "luau_disasm.py"


def _write_module(base: Path) -> Path:
    proto = ProtoSpec(
        code=[0, abc("RETURN", 0, 1)],
        line_gap_log2=0,
        line_offsets=[0, 2],
        line_deltas=[4, 0],
    )
    path = base / "sample.luauc"
    path.write_bytes(build_module([proto]))
    return path


def _run(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, str(SCRIPT), *args],
        capture_output=True,
        text=True,
        cwd=str(SCRIPT.parent),
    )


def test_cli_prints_listing(tmp_path: Path) -> None:
    module_path = _write_module(tmp_path)

    result = _run(str(module_path), "--lines")

    assert result.returncode == 0, result.stderr
    assert "L4 [000] NOP (0x00000000)" in result.stdout
    assert "L6 [001] RETURN 0 1" in result.stdout


def test_cli_writes_output_file_from_base64(tmp_path: Path) -> None:
    module_path = _write_module(tmp_path)
    encoded_path = tmp_path / "sample.b64"
    encoded_path.write_bytes(base64.b64encode(module_path.read_bytes()))
    out_path = tmp_path / "listing.txt"

    result = _run(str(encoded_path), "--base64", "--out", str(out_path))

    assert result.returncode == 0, result.stderr
    assert "listing written to" in result.stdout
    assert "[000] NOP (0x00000000)" in out_path.read_text("utf-8")


def test_cli_reports_decode_errors(tmp_path: Path) -> None:
    bad_path = tmp_path / "bad.luauc"
    bad_path.write_bytes(b"\x01\x00")

    result = _run(str(bad_path))

    assert result.returncode != 0
    assert "error: unsupported bytecode version 1" in result.stderr
    assert "Traceback" not in result.stderr


def test_cli_reports_missing_input(tmp_path: Path) -> None:
    result = _run(str(tmp_path / "absent.luauc"))

    assert result.returncode != 0
    assert "missing input file" in result.stderr
