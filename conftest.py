"""Root conftest.py for the mphrga monorepo.

Puts every package's ``src`` directory on the import path, registers the
shared markers and tags tests that rely on mocks with ``uses_mock`` so
coverage from mocked and emulator-backed tests can be told apart.
"""

from __future__ import annotations

import ast
import inspect
import sys
import textwrap
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.nodes import Item


PROJECT_ROOT = Path(__file__).parent
for pkg_dir in sorted(PROJECT_ROOT.glob("mphrga-*/src")):
    if str(pkg_dir) not in sys.path:
        sys.path.insert(0, str(pkg_dir))


def pytest_configure(config: Config) -> None:
    """Register custom markers.

    Args:
        config: pytest configuration object.
    """
    config.addinivalue_line(
        "markers",
        "uses_mock: Test uses mocking (auto-detected or manually marked)",
    )
    config.addinivalue_line(
        "markers",
        "hardware: Test requiring a real analyzer on the network",
    )
    config.addinivalue_line("markers", "slow: Slow-running test")


class MockDetector(ast.NodeVisitor):
    """AST visitor that flags test source using ``unittest.mock``."""

    MOCK_NAMES = frozenset(
        {"MagicMock", "Mock", "patch", "create_autospec", "PropertyMock", "mocker"}
    )

    def __init__(self) -> None:
        self.uses_mock = False
        self.mock_imports: set[str] = set()

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        if node.module and "mock" in node.module.lower():
            self.mock_imports.update(alias.asname or alias.name for alias in node.names)
        self.generic_visit(node)

    def visit_Name(self, node: ast.Name) -> None:
        if node.id in self.MOCK_NAMES or node.id in self.mock_imports:
            self.uses_mock = True
        self.generic_visit(node)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr in self.MOCK_NAMES:
            self.uses_mock = True
        self.generic_visit(node)


def _source_uses_mock(obj: object) -> bool:
    try:
        source = inspect.getsource(obj)  # type: ignore[arg-type]
    except (OSError, TypeError):
        return False
    try:
        tree = ast.parse(textwrap.dedent(source))
    except SyntaxError:
        return False
    detector = MockDetector()
    detector.visit(tree)
    return detector.uses_mock


def _check_test_uses_mock(item: Item) -> bool:
    """Return True if a test, its class or a fixture it requests uses mocks.

    Args:
        item: pytest test item.
    """
    if "mock" in item.name.lower():
        return True
    obj = getattr(item, "obj", None)
    if obj is not None and _source_uses_mock(obj):
        return True
    fixture_info = getattr(item, "_fixtureinfo", None)
    if fixture_info is None:
        return False
    # Only fixtures defined in the test's own module are inspected
    module_name = getattr(getattr(item, "module", None), "__name__", None)
    for name in fixture_info.names_closure:
        for definition in fixture_info.name2fixturedefs.get(name, ()):
            func = getattr(definition, "func", None)
            if func is not None and func.__module__ == module_name and _source_uses_mock(func):
                return True
    return False


def pytest_collection_modifyitems(config: Config, items: list[Item]) -> None:
    """Auto-detect and mark tests that use mocking.

    Args:
        config: pytest configuration object.
        items: List of collected test items.
    """
    for item in items:
        if item.get_closest_marker("uses_mock"):
            continue
        if _check_test_uses_mock(item):
            item.add_marker(pytest.mark.uses_mock)


def pytest_report_header(config: Config) -> list[str]:
    """Add coverage mode info to pytest header.

    Args:
        config: pytest configuration object.

    Returns:
        List of header lines.
    """
    lines = ["mphrga monorepo test suite"]
    if getattr(config.option, "cov_source", None):
        lines.append("Coverage: enabled with mock detection")
    return lines
