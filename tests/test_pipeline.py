from __future__ import annotations

import asyncio
import importlib
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

import initgen

MODELS = """
from initialization import initializable

@initializable
class Store:
    async def on_initialize(self) -> None:
        self.ready = True

@initializable
class Cache:
    store: Store

    def __init__(self, store: Store) -> None:
        self.store = store

    async def on_initialize(self) -> None:
        self.ready = True

class WarmCache(Cache):
    backup: Store

class ColdCache(Cache):
    pass
"""


def _config(source_root: Path, **overrides: object) -> initgen.GenerateConfig:
    values: dict[str, object] = {
        "source_root": source_root,
        "output_dir": source_root,
        "marker": initgen.DEFAULT_MARKER,
    }
    values.update(overrides)
    return initgen.GenerateConfig(**values)  # type: ignore[arg-type]


def test_module_name_for_path_maps_packages_and_modules(tmp_path: Path) -> None:
    assert initgen.module_name_for_path(tmp_path / "shop" / "models.py", tmp_path) == (
        "shop.models",
        False,
    )
    assert initgen.module_name_for_path(tmp_path / "shop" / "__init__.py", tmp_path) == (
        "shop",
        True,
    )
    assert initgen.module_name_for_path(tmp_path / "__init__.py", tmp_path) == (None, True)


def test_discover_source_files_skips_hidden_and_cache_dirs(
    write_tree: Callable[[dict[str, str]], Path],
) -> None:
    root = write_tree(
        {
            "b.py": "",
            "a/mod.py": "",
            ".venv/lib.py": "",
            "__pycache__/x.py": "",
            "venv/site.py": "",
        }
    )

    files = initgen.discover_source_files(root)

    assert [f.relative_to(root).as_posix() for f in files] == ["a/mod.py", "b.py"]


def test_load_sources_collects_skipped_and_generated_files(
    write_tree: Callable[[dict[str, str]], Path],
) -> None:
    root = write_tree(
        {
            "shop/__init__.py": "",
            "shop/models.py": MODELS,
            "shop/broken.py": "class (:\n",
            "shop/Old_Initializable.py": "# x---x #\n# | <auto-generated>\nclass Old_Initializable: ...\n",
        }
    )
    (root / "shop" / "binary.py").write_bytes(b"\xff\xfe\x00bad")

    sources = initgen.load_sources(root)

    assert [m.name for m in sources.modules] == ["shop", "shop.models"]
    assert sources.modules[0].is_package
    assert [p.name for p in sources.generated] == ["Old_Initializable.py"]
    assert sorted(p.name for p, _ in sources.skipped) == ["binary.py", "broken.py"]
    broken_reason = dict((p.name, r) for p, r in sources.skipped)["broken.py"]
    assert broken_reason.startswith("syntax error at line 1")


def test_run_generate_writes_units_into_package_directories(
    write_tree: Callable[[dict[str, str]], Path],
    capsys: pytest.CaptureFixture[str],
) -> None:
    root = write_tree({"shop/__init__.py": "", "shop/models.py": MODELS})

    result = initgen.run_generate(_config(root))

    assert [f.filename for f in result.files] == [
        "shop/Store_Initializable.py",
        "shop/Cache_Initializable.py",
        "shop/WarmCache_Initializable.py",
    ]
    assert not (root / "shop" / "ColdCache_Initializable.py").exists()
    for file_result in result.files:
        assert file_result.path.is_file()
        text = file_result.path.read_text(encoding="utf-8")
        assert file_result.line_count == text.count("\n")
        assert file_result.byte_count == len(text.encode("utf-8"))

    out = capsys.readouterr().out
    assert "Scanning:" in out
    assert "  Modules: 2 parsed, 0 generated, 0 skipped" in out
    assert "  Classes: 4 analyzed, 4 initializable" in out
    assert "Initialization units generated:" in out


def test_second_run_ignores_generated_units_and_is_stable(
    write_tree: Callable[[dict[str, str]], Path],
) -> None:
    root = write_tree({"shop/__init__.py": "", "shop/models.py": MODELS})
    first = initgen.run_generate(_config(root))
    first_text = {f.filename: f.path.read_text(encoding="utf-8") for f in first.files}

    second = initgen.run_generate(_config(root))

    assert {f.filename: f.path.read_text(encoding="utf-8") for f in second.files} == first_text
    prepared = initgen.prepare_run(_config(root))
    assert len(prepared.sources.generated) == 3


def test_run_generate_to_separate_output_dir(
    write_tree: Callable[[dict[str, str]], Path], tmp_path: Path
) -> None:
    root = write_tree({"shop/models.py": MODELS})
    out = tmp_path / "out"

    result = initgen.run_generate(_config(root, output_dir=out))

    assert result.output_dir == out
    assert (out / "shop" / "Cache_Initializable.py").is_file()
    assert not (root / "shop" / "Cache_Initializable.py").exists()


def test_run_check_reports_missing_then_up_to_date(
    write_tree: Callable[[dict[str, str]], Path],
    capsys: pytest.CaptureFixture[str],
) -> None:
    root = write_tree({"shop/models.py": MODELS})

    stale = initgen.run_check(_config(root, check=True))

    assert stale == (
        "shop/Store_Initializable.py",
        "shop/Cache_Initializable.py",
        "shop/WarmCache_Initializable.py",
    )
    assert not (root / "shop" / "Store_Initializable.py").exists()

    initgen.run_generate(_config(root))
    capsys.readouterr()

    assert initgen.run_check(_config(root, check=True)) == ()
    assert "  Up to date: 3 files" in capsys.readouterr().out


def test_run_check_reports_edited_unit(
    write_tree: Callable[[dict[str, str]], Path],
    capsys: pytest.CaptureFixture[str],
) -> None:
    root = write_tree({"shop/models.py": MODELS})
    initgen.run_generate(_config(root))
    unit = root / "shop" / "Cache_Initializable.py"
    unit.write_text(unit.read_text(encoding="utf-8") + "# edited\n", encoding="utf-8")
    capsys.readouterr()

    stale = initgen.run_check(_config(root, check=True))

    assert stale == ("shop/Cache_Initializable.py",)
    assert "Stale: shop/Cache_Initializable.py" in capsys.readouterr().out


def test_same_class_name_in_one_package_is_generated_once(
    write_tree: Callable[[dict[str, str]], Path],
    capsys: pytest.CaptureFixture[str],
) -> None:
    marked = "from initialization import initializable\n\n@initializable\nclass Cache:\n    pass\n"
    root = write_tree({"shop/a.py": marked, "shop/b.py": marked})

    prepared = initgen.prepare_run(_config(root))

    assert [u.source for u in prepared.units] == ["shop.a.Cache"]
    assert [u.source for u in prepared.duplicates] == ["shop.b.Cache"]
    assert "shop.b.Cache maps to shop/Cache_Initializable.py" in capsys.readouterr().err


def test_dependency_cycle_is_warned_and_still_generated(
    write_tree: Callable[[dict[str, str]], Path],
    capsys: pytest.CaptureFixture[str],
) -> None:
    root = write_tree(
        {
            "app.py": """
from initialization import initializable

@initializable
class A:
    b: "B"

@initializable
class B:
    a: A
"""
        }
    )

    prepared = initgen.prepare_run(_config(root))

    assert prepared.cycles == ("app.A", "app.B")
    assert len(prepared.units) == 2
    err = capsys.readouterr().err
    assert "dependency cycle through app.A, app.B" in err
    assert "instances that reference each other in a cycle will deadlock" in err


def test_write_unit_propagates_os_errors(tmp_path: Path) -> None:
    blocker = tmp_path / "shop"
    blocker.write_text("not a directory", encoding="utf-8")
    unit = initgen.GeneratedUnit(
        name="Cache_Initializable", namespace="shop", source="shop.Cache", text="x\n"
    )

    with pytest.raises(OSError):
        initgen.write_unit(tmp_path, unit)


def test_main_check_exits_1_when_stale(
    write_tree: Callable[[dict[str, str]], Path],
) -> None:
    root = write_tree({"shop/models.py": MODELS})

    with pytest.raises(SystemExit) as exc_info:
        initgen.main(["--source-root", str(root), "--check"])

    assert exc_info.value.code == 1


def test_main_generate_then_check_succeeds(
    write_tree: Callable[[dict[str, str]], Path],
) -> None:
    root = write_tree({"shop/models.py": MODELS})

    initgen.main(["--source-root", str(root)])
    initgen.main(["--source-root", str(root), "--check"])


def test_generated_package_imports_and_initializes(
    write_tree: Callable[[dict[str, str]], Path],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    root = write_tree(
        {
            "depot/__init__.py": "",
            "depot/models.py": """
from initialization import initializable

from .Cache_Initializable import Cache_Initializable
from .Store_Initializable import Store_Initializable
from .WarmCache_Initializable import WarmCache_Initializable

@initializable
class Store(Store_Initializable):
    ready = False

    async def on_initialize(self) -> None:
        self.ready = True

@initializable
class Cache(Cache_Initializable):
    store: Store

    def __init__(self, store: Store) -> None:
        self.store = store

    async def on_initialize(self) -> None:
        assert self.store.ready
        self.ready = True

class WarmCache(WarmCache_Initializable, Cache):
    backup: Store

    def __init__(self, store: Store, backup: Store) -> None:
        super().__init__(store)
        self.backup = backup
""",
        }
    )
    initgen.run_generate(_config(root))
    monkeypatch.syspath_prepend(str(root))
    for name in [m for m in sys.modules if m == "depot" or m.startswith("depot.")]:
        monkeypatch.delitem(sys.modules, name)

    models = importlib.import_module("depot.models")
    try:
        store = models.Store()
        backup = models.Store()
        cache = models.WarmCache(store, backup)
        asyncio.run(cache.initialize())

        assert store.ready and backup.ready and cache.ready
    finally:
        for name in [m for m in sys.modules if m == "depot" or m.startswith("depot.")]:
            del sys.modules[name]
