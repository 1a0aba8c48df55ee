"""
Layering rules checked statically.

The kernel knows nothing of modules, configuration or the service facade;
only module processors commit.
"""

import ast
from pathlib import Path

import pytest

import inventory_kernel
import inventory_modules
from inventory_kernel.invariants import ALL_KERNEL_INVARIANTS, FORBIDDEN_KERNEL_IMPORTS

KERNEL_ROOT = Path(inventory_kernel.__file__).parent
MODULES_ROOT = Path(inventory_modules.__file__).parent


def _imported_modules(path: Path) -> set[str]:
    tree = ast.parse(path.read_text(encoding="utf-8"))
    names: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            names.update(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            names.add(node.module)
    return names


def _session_name(node) -> str | None:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return None


def _calls_commit(path: Path) -> bool:
    tree = ast.parse(path.read_text(encoding="utf-8"))
    return any(
        isinstance(node, ast.Attribute)
        and node.attr == "commit"
        and _session_name(node.value) in ("session", "_session")
        for node in ast.walk(tree)
    )


KERNEL_FILES = sorted(KERNEL_ROOT.rglob("*.py"))


@pytest.mark.parametrize("path", KERNEL_FILES, ids=lambda p: str(p.relative_to(KERNEL_ROOT)))
def test_kernel_does_not_import_outer_layers(path):
    offending = {
        name for name in _imported_modules(path)
        if name.split(".")[0] in FORBIDDEN_KERNEL_IMPORTS
    }
    assert not offending, f"{path.name} imports {sorted(offending)}"


@pytest.mark.parametrize(
    "path",
    sorted((KERNEL_ROOT / "services").glob("*.py")),
    ids=lambda p: p.name,
)
def test_kernel_services_never_commit(path):
    assert not _calls_commit(path)


def test_module_services_commit_only_through_owned_transaction():
    committing = {
        p.relative_to(MODULES_ROOT).as_posix()
        for p in MODULES_ROOT.rglob("*.py")
        if _calls_commit(p)
    }
    assert committing == {"_transaction.py"}


def test_invariants_declared():
    assert {i.value for i in ALL_KERNEL_INVARIANTS} >= {
        "ledger_chain",
        "projection_consistency",
        "append_only_ledger",
        "status_from_items",
    }
