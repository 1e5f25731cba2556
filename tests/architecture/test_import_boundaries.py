"""
Import-boundary enforcement.

1. Engine purity        -- fincalc_engines/** may not import the ORM,
                           persistence, services, config or ingestion.
2. Engine no-impure     -- fincalc_engines/** may not read the wall clock
                           or the environment.
3. Kernel independence  -- fincalc_kernel/** may not import any outer layer.
4. Dependency direction -- config and ingestion never import services.

All scanning is done via AST; these tests are read-only.
"""

import ast
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _extract_imports(path: Path) -> list[tuple[int, str]]:
    """Return (line_number, module) for every import in *path*."""
    tree = ast.parse(path.read_text(), filename=str(path))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _matches_any(module: str, prefixes: tuple[str, ...]) -> bool:
    return any(module == p or module.startswith(f"{p}.") for p in prefixes)


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for path in _python_files(package):
        for lineno, module in _extract_imports(path):
            if _matches_any(module, forbidden):
                found.append(f"{path.relative_to(ROOT)}:{lineno} imports {module}")
    return found


class TestEnginePurity:

    FORBIDDEN = (
        "sqlalchemy",
        "fincalc_kernel.db",
        "fincalc_kernel.models",
        "fincalc_services",
        "fincalc_config",
        "fincalc_ingestion",
        "openpyxl",
        "yaml",
    )

    def test_engines_exist(self):
        assert _python_files("fincalc_engines")

    def test_no_forbidden_imports(self):
        violations = _violations("fincalc_engines", self.FORBIDDEN)
        assert not violations, "\n".join(violations)

    @pytest.mark.parametrize("call", ["datetime.now", "datetime.utcnow", "date.today", "os.environ", "os.getenv"])
    def test_no_impure_calls(self, call):
        receiver, attr = call.split(".")
        found = []
        for path in _python_files("fincalc_engines"):
            tree = ast.parse(path.read_text(), filename=str(path))
            for node in ast.walk(tree):
                if (
                    isinstance(node, ast.Attribute)
                    and node.attr == attr
                    and isinstance(node.value, ast.Name)
                    and node.value.id == receiver
                ):
                    found.append(f"{path.relative_to(ROOT)}:{node.lineno}")
        assert not found, f"{call} used in engines: {found}"


class TestKernelIndependence:

    def test_kernel_imports_no_outer_layer(self):
        violations = _violations(
            "fincalc_kernel",
            ("fincalc_engines", "fincalc_services", "fincalc_config", "fincalc_ingestion"),
        )
        assert not violations, "\n".join(violations)


class TestDependencyDirection:

    @pytest.mark.parametrize("package", ["fincalc_config", "fincalc_ingestion", "fincalc_engines"])
    def test_inner_layers_do_not_import_services(self, package):
        violations = _violations(package, ("fincalc_services",))
        assert not violations, "\n".join(violations)
