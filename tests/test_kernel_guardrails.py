"""Guardrails to keep the kernel free of I/O and process-level side effects."""

import re
from pathlib import Path


FORBIDDEN_PATTERNS = {
    "argparse": re.compile(r"\bargparse\b"),
    "pathlib.Path": re.compile(r"\bpathlib\.Path\b"),
    "open(": re.compile(r"(?<![A-Za-z0-9_])open\s*\("),
    "print(": re.compile(r"(?<![A-Za-z0-9_])print\s*\("),
    "sys.exit": re.compile(r"\bsys\.exit\b"),
    "create_engine": re.compile(r"\bcreate_engine\b"),
    "os.environ": re.compile(r"\bos\.environ\b"),
    "os.path": re.compile(r"\bos\.path\b"),
}


def test_kernel_has_no_forbidden_tokens():
    kernel_dir = Path(__file__).resolve().parents[1] / "src" / "protosql" / "kernel"
    offenders = []

    for path in kernel_dir.glob("*.py"):
        contents = path.read_text(encoding="utf-8")
        for token, pattern in FORBIDDEN_PATTERNS.items():
            if pattern.search(contents):
                offenders.append(f"{path.name}: {token}")

    assert not offenders, "Forbidden kernel tokens found: " + ", ".join(offenders)


def test_kernel_does_not_import_cli_or_api():
    kernel_dir = Path(__file__).resolve().parents[1] / "src" / "protosql" / "kernel"
    pattern = re.compile(r"^\s*(from|import)\s+protosql\.(cli|api)\b", re.MULTILINE)
    offenders = [p.name for p in kernel_dir.glob("*.py") if pattern.search(p.read_text(encoding="utf-8"))]
    assert not offenders, "kernel modules import the outer layers: " + ", ".join(offenders)
