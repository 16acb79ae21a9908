import argparse
import sys
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import initgen  # noqa: E402

MARKER = initgen.DEFAULT_MARKER


@pytest.fixture
def source_root(tmp_path: Path) -> Path:
    root = tmp_path / "src"
    root.mkdir()
    return root


@pytest.fixture
def missing_path(tmp_path: Path) -> Path:
    return tmp_path / "missing"


@pytest.fixture
def make_args(source_root: Path) -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "source_root": source_root,
            "output_dir": None,
            "marker": initgen.DEFAULT_MARKER,
            "check": False,
            "list_classes": False,
            "info": None,
            "filter": None,
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args


@pytest.fixture
def make_compilation() -> Callable[..., initgen.Compilation]:
    def _make_compilation(sources: dict[str | None, str]) -> initgen.Compilation:
        return initgen.Compilation.from_sources(
            {name: textwrap.dedent(text) for name, text in sources.items()}
        )

    return _make_compilation


@pytest.fixture
def write_tree(source_root: Path) -> Callable[[dict[str, str]], Path]:
    """Write {relative path: source} below source_root."""

    def _write_tree(files: dict[str, str]) -> Path:
        for relative, text in files.items():
            path = source_root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(text), encoding="utf-8")
        return source_root

    return _write_tree


@pytest.fixture
def plan_for() -> Callable[[initgen.Compilation, str], initgen.EmissionPlan | None]:
    def _plan_for(
        compilation: initgen.Compilation, qualified_name: str
    ) -> initgen.EmissionPlan | None:
        symbol = compilation.get_symbol(qualified_name)
        assert symbol is not None, f"no class {qualified_name} in compilation"
        return initgen.plan_emission(symbol, MARKER)

    return _plan_for


@pytest.fixture
def load_unit() -> Callable[[initgen.GeneratedUnit], dict[str, object]]:
    """Execute a generated unit and return its module namespace."""

    def _load_unit(unit: initgen.GeneratedUnit) -> dict[str, object]:
        namespace: dict[str, object] = {"__name__": f"generated_{unit.name}"}
        exec(compile(unit.text, unit.relative_path.as_posix(), "exec"), namespace)
        return namespace

    return _load_unit
