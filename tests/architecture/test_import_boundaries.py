"""
Layering rules, checked on the source via AST.

1. backoffice_kernel/** never imports backoffice_config or backoffice_modules.
2. backoffice_kernel/domain/** is pure: no SQLAlchemy, no models, no db.
3. backoffice_kernel/selectors/** never imports services.
4. Kernel services and selectors never call ``commit()``; the module
   facades own the transaction boundary.
"""

import ast
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _imports(path: Path) -> list[tuple[int, str]]:
    """Runtime imports only; ``if TYPE_CHECKING:`` blocks are skipped."""
    tree = ast.parse(path.read_text(), filename=str(path))
    typing_only = {
        id(inner)
        for node in ast.walk(tree)
        if isinstance(node, ast.If) and ast.unparse(node.test).endswith("TYPE_CHECKING")
        for inner in ast.walk(node)
    }
    found: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if id(node) in typing_only:
            continue
        if isinstance(node, ast.Import):
            found.extend((node.lineno, alias.name) for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            found.append((node.lineno, node.module))
    return found


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    violations = []
    for path in _python_files(package):
        for lineno, module in _imports(path):
            if any(module == p or module.startswith(f"{p}.") for p in forbidden):
                violations.append(f"{path.relative_to(ROOT)}:{lineno} imports {module}")
    return violations


class TestImportBoundaries:

    def test_kernel_does_not_depend_upward(self):
        assert _violations(
            "backoffice_kernel", ("backoffice_config", "backoffice_modules"),
        ) == []

    def test_domain_is_pure(self):
        assert _violations(
            "backoffice_kernel/domain",
            ("sqlalchemy", "backoffice_kernel.db", "backoffice_kernel.models",
             "backoffice_kernel.services", "backoffice_kernel.selectors"),
        ) == []

    def test_selectors_do_not_import_services(self):
        assert _violations(
            "backoffice_kernel/selectors", ("backoffice_kernel.services",),
        ) == []


class TestTransactionOwnership:

    def test_kernel_services_and_selectors_never_commit(self):
        offenders = []
        for package in ("backoffice_kernel/services", "backoffice_kernel/selectors"):
            for path in _python_files(package):
                for node in ast.walk(ast.parse(path.read_text())):
                    if (
                        isinstance(node, ast.Call)
                        and isinstance(node.func, ast.Attribute)
                        and node.func.attr == "commit"
                    ):
                        offenders.append(f"{path.relative_to(ROOT)}:{node.lineno}")
        assert offenders == []
