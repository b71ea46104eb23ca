"""
Kernel boundary and layering contract.

1. erp_kernel/** may NOT import erp_services, erp_config or erp_modules.
   The one exception is the lazy ORM registry import inside
   ``erp_kernel/db/engine.py`` (table creation must see every model).

2. erp_modules/** may NOT import erp_services or erp_config; modules get
   their configuration as plain dataclasses.

3. erp_kernel/domain/** is pure: no ORM or database packages.

4. Only the kernel writes StockTransaction rows: modules and services go
   through StockLedger, never the model.

5. The kernel invariants declaration is complete and non-empty.

These tests read source code via AST; they cannot break anything.
"""

import ast
from pathlib import Path

from erp_kernel.invariants import (
    ALL_KERNEL_INVARIANTS,
    FORBIDDEN_KERNEL_IMPORTS,
    KernelInvariant,
)

ROOT = Path(__file__).resolve().parents[2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _relative(path: Path) -> str:
    return path.relative_to(ROOT).as_posix()


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    tree = ast.parse(filepath.read_text(), filename=str(filepath))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _matches(module: str, prefixes) -> bool:
    return any(module == p or module.startswith(f"{p}.") for p in prefixes)


def _violations(package: str, prefixes, allowed=frozenset()) -> list[str]:
    found = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            if _matches(module, prefixes) and (_relative(filepath), module) not in allowed:
                found.append(f"  {_relative(filepath)}:{lineno} imports '{module}'")
    return found


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestKernelNoUpwardDependencies:

    ALLOWED = frozenset({
        ("erp_kernel/db/engine.py", "erp_modules._orm_registry"),
    })

    def test_kernel_does_not_import_forbidden_packages(self):
        violations = _violations("erp_kernel", FORBIDDEN_KERNEL_IMPORTS, self.ALLOWED)
        assert not violations, (
            "Kernel boundary violation: erp_kernel/** must not import "
            "upward packages:\n" + "\n".join(violations)
        )

    def test_registry_import_stays_inside_functions(self):
        """The allowed registry import must be lazy (not at module level)."""
        tree = ast.parse((ROOT / "erp_kernel/db/engine.py").read_text())
        for node in tree.body:
            if isinstance(node, ast.ImportFrom) and node.module:
                assert not node.module.startswith("erp_modules"), (
                    f"erp_kernel/db/engine.py:{node.lineno} imports erp_modules at module level"
                )


class TestModuleLayering:

    def test_modules_do_not_import_services_or_config(self):
        violations = _violations("erp_modules", ("erp_services", "erp_config"))
        assert not violations, (
            "Layering violation: erp_modules/** must not import services "
            "or the config loader:\n" + "\n".join(violations)
        )

    def test_config_does_not_import_modules_or_services(self):
        violations = _violations("erp_config", ("erp_services", "erp_modules"))
        assert not violations, "\n".join(violations)


class TestKernelDomainPurity:

    FORBIDDEN_MODULES = ("sqlalchemy", "psycopg2", "sqlite3", "erp_kernel.db", "erp_kernel.models")

    def test_domain_no_orm_imports(self):
        violations = _violations("erp_kernel/domain", self.FORBIDDEN_MODULES)
        assert not violations, (
            "Domain purity violation: erp_kernel/domain/** must not import "
            "ORM or database packages:\n" + "\n".join(violations)
        )


class TestLedgerWriteGate:
    """Only kernel code may import the StockTransaction model."""

    MODEL_MODULE = "erp_kernel.models.stock_transaction"

    def test_modules_and_services_do_not_import_transaction_model(self):
        violations = (
            _violations("erp_modules", (self.MODEL_MODULE,))
            + _violations("erp_services", (self.MODEL_MODULE,))
        )
        assert not violations, (
            "Ledger boundary violation: write stock movements through "
            "StockLedger:\n" + "\n".join(violations)
        )


class TestKernelInvariantsDeclaration:

    def test_invariants_are_declared(self):
        assert len(ALL_KERNEL_INVARIANTS) == len(KernelInvariant)
        assert KernelInvariant.REPLAY_EQUALS_LIVE in ALL_KERNEL_INVARIANTS
        assert KernelInvariant.RESERVED_WITHIN_QUANTITY in ALL_KERNEL_INVARIANTS

    def test_every_invariant_is_documented(self):
        source = (ROOT / "erp_kernel/invariants.py").read_text()
        tree = ast.parse(source)
        enum_class = next(
            n for n in tree.body if isinstance(n, ast.ClassDef) and n.name == "KernelInvariant"
        )
        body = enum_class.body
        for i, node in enumerate(body):
            if isinstance(node, ast.Assign):
                following = body[i + 1] if i + 1 < len(body) else None
                assert (
                    isinstance(following, ast.Expr)
                    and isinstance(following.value, ast.Constant)
                    and isinstance(following.value.value, str)
                ), f"invariant at line {node.lineno} has no description"
