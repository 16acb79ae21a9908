"""Async initialization mixin generator for Python.

Scans a source tree for classes marked with ``@initializable`` and writes one
``<Class>_Initializable.py`` mixin module per class that needs one. The mixin
initializes every initializable dependency field concurrently, then runs the
class's own ``on_initialize()`` hook, exactly once per instance.

Usage:
    python initgen.py --source-root src
    python initgen.py --source-root src --check
    python initgen.py --source-root src --list
"""

import argparse
import ast
import re
import sys
from collections import ChainMap
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_SOURCE_ROOT = Path(".")
DEFAULT_MARKER = "initialization.initializable"


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class GenerateConfig:
    source_root: Path
    output_dir: Path
    marker: str
    check: bool = False

    @property
    def contract_module(self) -> str:
        return self.marker.rpartition(".")[0]


@dataclass(frozen=True)
class DiscoveryConfig:
    command: str
    filter_text: str | None
    info_class: str | None
    source_root: Path
    marker: str


VALID_ERROR_CODES = {
    "INVALID_MARKER",
    "INVALID_CLASS_NAME",
    "CONFLICT_GENERATE_DISCOVERY",
    "FILTER_WITHOUT_LIST",
    "PATH_NOT_FOUND",
}
_DOTTED_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


def validate_marker(raw: str) -> str:
    if _DOTTED_NAME_RE.match(raw) and "." in raw:
        return raw
    raise ConfigError(
        "INVALID_MARKER",
        f"Invalid marker: {raw!r}",
        "Pass the decorator's qualified name, e.g. --marker initialization.initializable.",
    )


def validate_class_name(raw: str) -> str:
    if _DOTTED_NAME_RE.match(raw):
        return raw
    raise ConfigError(
        "INVALID_CLASS_NAME",
        f"Invalid class name: {raw!r}",
        "Pass a class name (Cache) or a qualified name (shop.models.Cache).",
    )


def validate_source_root(path: Path | None) -> Path:
    if path is None:
        raise ConfigError(
            "PATH_NOT_FOUND",
            "--source-root is required: no path provided.",
            "Pass the path explicitly: --source-root /path/to/src",
        )
    if not path.exists():
        raise ConfigError(
            "PATH_NOT_FOUND",
            f"Path for --source-root does not exist: {path}",
            "Provide an existing source directory.",
        )
    if not path.is_dir():
        raise ConfigError(
            "PATH_NOT_FOUND",
            f"Path for --source-root is not a directory: {path}",
            "Point --source-root at the directory containing your packages.",
        )
    return path


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate async initialization mixins for @initializable classes"
    )

    parser.add_argument("--source-root", type=Path, default=DEFAULT_SOURCE_ROOT)
    parser.add_argument("--output-dir", type=Path, default=None)
    parser.add_argument("--marker", type=str, default=DEFAULT_MARKER)
    parser.add_argument("--check", action="store_true", default=False)

    discovery_group = parser.add_mutually_exclusive_group()
    discovery_group.add_argument(
        "--list", dest="list_classes", action="store_true", default=False
    )
    discovery_group.add_argument("--info", type=str, default=None)

    parser.add_argument("--filter", type=str, default=None)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(args: argparse.Namespace) -> GenerateConfig | DiscoveryConfig:
    has_generate_input = bool(args.check or args.output_dir is not None)
    has_discovery_command = bool(args.list_classes or args.info)

    if args.filter and not args.list_classes:
        raise ConfigError(
            "FILTER_WITHOUT_LIST",
            "--filter requires --list.",
            "Add --list or remove --filter.",
        )

    if has_generate_input and has_discovery_command:
        raise ConfigError(
            "CONFLICT_GENERATE_DISCOVERY",
            "Generate flags cannot be combined with discovery flags.",
            "Choose either generate mode (--output-dir, --check) or one of --list, --info.",
        )

    marker = validate_marker(args.marker)
    source_root = validate_source_root(args.source_root)

    if has_discovery_command:
        command = "list" if args.list_classes else "info"
        info_class = validate_class_name(args.info) if args.info is not None else None
        return DiscoveryConfig(
            command=command,
            filter_text=args.filter,
            info_class=info_class,
            source_root=source_root,
            marker=marker,
        )

    return GenerateConfig(
        source_root=source_root,
        output_dir=args.output_dir if args.output_dir is not None else source_root,
        marker=marker,
        check=bool(args.check),
    )


def build_config(argv: list[str] | None = None) -> GenerateConfig | DiscoveryConfig:
    return validate_config(parse_args(argv))


# ===--- Constants ---=== #

UNIT_SUFFIX = "_Initializable"
AUTO_GENERATED_TAG = "# | <auto-generated>"

GENERIC_ORIGINS = {
    "typing.Generic",
    "typing.Protocol",
    "typing_extensions.Generic",
    "typing_extensions.Protocol",
}
CLASSVAR_ORIGINS = {"typing.ClassVar", "typing_extensions.ClassVar"}
TYPEVAR_FACTORIES = {"typing.TypeVar", "typing_extensions.TypeVar"}
TYPEVARTUPLE_FACTORIES = {"typing.TypeVarTuple", "typing_extensions.TypeVarTuple"}
UNPACK_ORIGINS = {"typing.Unpack", "typing_extensions.Unpack"}

SKIPPED_DIR_NAMES = {"__pycache__", "node_modules", "venv"}


# ===--- Data classes ---=== #


@dataclass(frozen=True)
class SourceModule:
    name: str | None
    tree: ast.Module
    path: Path | None = None
    is_package: bool = False

    @property
    def namespace(self) -> str | None:
        """Package that contains this module; None for the global scope."""
        if self.name is None:
            return None
        if self.is_package:
            return self.name
        package, _, _ = self.name.rpartition(".")
        return package or None


@dataclass(eq=False)
class TypeSymbol:
    """One class declaration, as seen by the analysis.

    Symbols compare by identity: two symbols are equal only when they come
    from the same declaration. ``base`` and ``fields`` are bound by
    Compilation after every class of every module is known.
    """

    name: str
    qualified_name: str
    module: str | None
    namespace: str | None
    accessibility: str = "public"
    type_params: tuple[str, ...] = ()
    markers: frozenset[str] = frozenset()
    lineno: int = 0
    base: "TypeSymbol | None" = field(default=None, repr=False)
    fields: tuple["FieldSymbol", ...] = field(default=(), repr=False)


@dataclass(frozen=True)
class FieldSymbol:
    name: str
    type: TypeSymbol | None
    lineno: int = 0


# ===--- Source loading ---=== #


def module_name_for_path(path: Path, source_root: Path) -> tuple[str | None, bool]:
    """Return (dotted module name, is_package) for a file under source_root."""
    parts = list(path.relative_to(source_root).with_suffix("").parts)
    is_package = bool(parts) and parts[-1] == "__init__"
    if is_package:
        parts = parts[:-1]
    if not parts:
        return None, is_package
    return ".".join(parts), is_package


def is_generated_source(text: str) -> bool:
    return AUTO_GENERATED_TAG in text.splitlines()[:5]


def discover_source_files(source_root: Path) -> tuple[Path, ...]:
    files = []
    for path in sorted(source_root.rglob("*.py")):
        rel_dirs = path.relative_to(source_root).parts[:-1]
        if any(d.startswith(".") or d in SKIPPED_DIR_NAMES for d in rel_dirs):
            continue
        files.append(path)
    return tuple(files)


def parse_source(
    text: str,
    name: str | None,
    path: Path | None = None,
    is_package: bool = False,
) -> SourceModule:
    """Parse one module. SyntaxError propagates to the caller."""
    filename = str(path) if path is not None else f"<{name or 'source'}>"
    tree = ast.parse(text, filename=filename)
    return SourceModule(name=name, tree=tree, path=path, is_package=is_package)


@dataclass(frozen=True)
class SourceSet:
    """Parsed modules of one source root.

    Attributes:
        modules: Successfully parsed modules, in sorted path order.
        generated: Files skipped because they carry the auto-generated tag.
        skipped: (path, reason) for files that could not be read or parsed.
    """

    modules: tuple[SourceModule, ...]
    generated: tuple[Path, ...]
    skipped: tuple[tuple[Path, str], ...]


def load_sources(source_root: Path) -> SourceSet:
    """Read and parse every Python file under source_root.

    Per-file failures are collected rather than raised so that one broken
    module never stops the rest of the tree from being generated.
    """
    modules: list[SourceModule] = []
    generated: list[Path] = []
    skipped: list[tuple[Path, str]] = []

    for path in discover_source_files(source_root):
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as err:
            skipped.append((path, str(err)))
            continue
        if is_generated_source(text):
            generated.append(path)
            continue
        name, is_package = module_name_for_path(path, source_root)
        try:
            modules.append(parse_source(text, name, path, is_package))
        except SyntaxError as err:
            skipped.append((path, f"syntax error at line {err.lineno}: {err.msg}"))

    return SourceSet(
        modules=tuple(modules),
        generated=tuple(generated),
        skipped=tuple(skipped),
    )


# ===--- Source facade ---=== #


def _qualify(prefix: str | None, name: str) -> str:
    return f"{prefix}.{name}" if prefix else name


def _iter_module_statements(body: list[ast.stmt]) -> Iterator[ast.stmt]:
    """Yield module-level statements, descending into if/try blocks."""
    for stmt in body:
        yield stmt
        if isinstance(stmt, ast.If):
            yield from _iter_module_statements(stmt.body)
            yield from _iter_module_statements(stmt.orelse)
        elif isinstance(stmt, ast.Try):
            yield from _iter_module_statements(stmt.body)
            for handler in stmt.handlers:
                yield from _iter_module_statements(handler.body)
            yield from _iter_module_statements(stmt.orelse)
            yield from _iter_module_statements(stmt.finalbody)


def _import_from_base(module: SourceModule, node: ast.ImportFrom) -> str | None:
    if node.level == 0:
        return node.module
    if module.name is None:
        return None
    parts = module.name.split(".")
    if not module.is_package:
        parts = parts[:-1]
    drop = node.level - 1
    if drop > len(parts):
        return None
    parts = parts[: len(parts) - drop]
    if node.module:
        parts.extend(node.module.split("."))
    return ".".join(parts) or None


def _subscript_args(node: ast.Subscript) -> list[ast.expr]:
    if isinstance(node.slice, ast.Tuple):
        return list(node.slice.elts)
    return [node.slice]


def _iter_names(expr: ast.AST) -> Iterator[ast.Name]:
    """Yield Name nodes left to right, depth first."""
    if isinstance(expr, ast.Name):
        yield expr
        return
    for child in ast.iter_child_nodes(expr):
        yield from _iter_names(child)


def _literal_strings(expr: ast.expr) -> frozenset[str] | None:
    if not isinstance(expr, (ast.List, ast.Tuple)):
        return None
    names = set()
    for elt in expr.elts:
        if not (isinstance(elt, ast.Constant) and isinstance(elt.value, str)):
            return None
        names.add(elt.value)
    return frozenset(names)


class _ModuleScope:
    """Module-level name bindings: local name -> qualified name."""

    def __init__(self, module: SourceModule):
        self.module = module
        self.bindings: dict[str, str] = {}
        self.typevars: set[str] = set()
        self.variadics: set[str] = set()
        self.exports: frozenset[str] | None = None
        self._bind()

    def resolve(self, expr: ast.expr, local: Mapping[str, str] | None = None) -> str | None:
        bindings = ChainMap(dict(local or {}), self.bindings)
        if isinstance(expr, ast.Name):
            return bindings.get(expr.id)
        if isinstance(expr, ast.Attribute):
            owner = self.resolve(expr.value, local)
            return f"{owner}.{expr.attr}" if owner else None
        return None

    def _bind(self) -> None:
        module = self.module
        for stmt in _iter_module_statements(module.tree.body):
            if isinstance(stmt, ast.Import):
                for alias in stmt.names:
                    if alias.asname:
                        self.bindings[alias.asname] = alias.name
                    else:
                        top = alias.name.split(".")[0]
                        self.bindings[top] = top
            elif isinstance(stmt, ast.ImportFrom):
                base = _import_from_base(module, stmt)
                if base is None:
                    continue
                for alias in stmt.names:
                    if alias.name == "*":
                        continue
                    self.bindings[alias.asname or alias.name] = f"{base}.{alias.name}"
            elif isinstance(stmt, (ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef)):
                self.bindings[stmt.name] = _qualify(module.name, stmt.name)
            elif isinstance(stmt, (ast.Assign, ast.AnnAssign)):
                targets = stmt.targets if isinstance(stmt, ast.Assign) else [stmt.target]
                for target in targets:
                    if isinstance(target, ast.Name):
                        self._bind_assignment(target.id, stmt.value)

    def _bind_assignment(self, name: str, value: ast.expr | None) -> None:
        self.bindings[name] = _qualify(self.module.name, name)
        if value is None:
            return
        if name == "__all__":
            self.exports = _literal_strings(value)
        elif isinstance(value, ast.Call):
            factory = self.resolve(value.func)
            if factory in TYPEVAR_FACTORIES:
                self.typevars.add(_qualify(self.module.name, name))
            elif factory in TYPEVARTUPLE_FACTORIES:
                self.variadics.add(_qualify(self.module.name, name))


class Compilation:
    """Symbol table over a set of parsed modules.

    Answers the questions the analysis asks about a class: which decorators
    it carries (by qualified name, not spelling), its base class, the fields
    it declares itself, its generic parameters, accessibility and namespace.
    Read-only once constructed.
    """

    def __init__(self, modules: Sequence[SourceModule]):
        self.modules = tuple(modules)
        self._scopes: dict[str | None, _ModuleScope] = {}
        self._classes: dict[str, TypeSymbol] = {}
        self._symbols: list[TypeSymbol] = []
        self._typevars: set[str] = set()
        self._variadics: set[str] = set()

        declarations = []
        for module in self.modules:
            scope = _ModuleScope(module)
            self._scopes[module.name] = scope
            self._typevars.update(scope.typevars)
            self._variadics.update(scope.variadics)
            for node, symbol, local in self._collect_classes(scope, module.tree.body):
                self._classes[symbol.qualified_name] = symbol
                self._symbols.append(symbol)
                declarations.append((scope, node, symbol, local))

        for scope, node, symbol, local in declarations:
            self._bind_class(scope, node, symbol, local)

    @classmethod
    def from_sources(cls, sources: Mapping[str | None, str]) -> "Compilation":
        """Build a compilation from {module name: source text}.

        A module is treated as a package when another module is nested under
        its name, so relative imports inside it resolve against itself.
        """
        names = [name for name in sources if name]
        return cls(
            [
                parse_source(
                    text,
                    name,
                    is_package=name is not None
                    and any(other.startswith(f"{name}.") for other in names),
                )
                for name, text in sources.items()
            ]
        )

    @property
    def symbols(self) -> tuple[TypeSymbol, ...]:
        """Every class declaration, in module then source order."""
        return tuple(self._symbols)

    def get_symbol(self, qualified_name: str) -> TypeSymbol | None:
        return self._classes.get(self.canonical_name(qualified_name))

    def find_symbols(self, name: str) -> tuple[TypeSymbol, ...]:
        """Symbols whose qualified or simple name equals name."""
        exact = self.get_symbol(name)
        if exact is not None:
            return (exact,)
        return tuple(s for s in self._symbols if s.name == name)

    def canonical_name(self, qualified_name: str) -> str:
        """Follow re-exports (``from .models import A``) to the defining name."""
        seen: set[str] = set()
        current = qualified_name
        while current not in self._classes and current not in seen:
            seen.add(current)
            target = self._follow_binding(current)
            if target is None or target == current:
                break
            current = target
        return current

    def _follow_binding(self, qualified_name: str) -> str | None:
        parts = qualified_name.split(".")
        for split in range(len(parts) - 1, 0, -1):
            scope = self._scopes.get(".".join(parts[:split]))
            if scope is None:
                continue
            bound = scope.bindings.get(parts[split])
            if bound is None:
                return None
            return ".".join([bound, *parts[split + 1 :]])
        return None

    def _collect_classes(
        self,
        scope: _ModuleScope,
        body: list[ast.stmt],
        prefix: str | None = None,
        enclosing_internal: bool = False,
        local: Mapping[str, str] | None = None,
    ) -> Iterator[tuple[ast.ClassDef, TypeSymbol, dict[str, str]]]:
        module = scope.module
        statements = _iter_module_statements(body) if prefix is None else iter(body)
        for node in statements:
            if not isinstance(node, ast.ClassDef):
                continue
            local_name = _qualify(prefix, node.name)
            internal = enclosing_internal or node.name.startswith("_")
            if prefix is None and scope.exports is not None:
                internal = internal or node.name not in scope.exports
            symbol = TypeSymbol(
                name=node.name,
                qualified_name=_qualify(module.name, local_name),
                module=module.name,
                namespace=module.namespace,
                accessibility="internal" if internal else "public",
                lineno=node.lineno,
            )
            # Names visible in the class body: the enclosing class scopes plus
            # this class's own nested classes.
            nested = dict(local or {})
            for child in node.body:
                if isinstance(child, ast.ClassDef):
                    nested[child.name] = _qualify(
                        module.name, _qualify(local_name, child.name)
                    )
            yield node, symbol, nested
            yield from self._collect_classes(
                scope, node.body, local_name, internal, nested
            )

    def _resolve(
        self, scope: _ModuleScope, expr: ast.expr, local: Mapping[str, str]
    ) -> str | None:
        qualified = scope.resolve(expr, local)
        return self.canonical_name(qualified) if qualified else None

    def _lookup(
        self, scope: _ModuleScope, expr: ast.expr, local: Mapping[str, str]
    ) -> TypeSymbol | None:
        qualified = self._resolve(scope, expr, local)
        return self._classes.get(qualified) if qualified else None

    def _bind_class(
        self,
        scope: _ModuleScope,
        node: ast.ClassDef,
        symbol: TypeSymbol,
        local: Mapping[str, str],
    ) -> None:
        markers = set()
        for decorator in node.decorator_list:
            target = decorator.func if isinstance(decorator, ast.Call) else decorator
            qualified = self._resolve(scope, target, local)
            if qualified:
                markers.add(qualified)
        symbol.markers = frozenset(markers)
        symbol.type_params = self._type_params(scope, node, local)
        symbol.base = self._base_type(scope, node, symbol, local)
        symbol.fields = self._declared_fields(scope, node, local)

    def _type_params(
        self, scope: _ModuleScope, node: ast.ClassDef, local: Mapping[str, str]
    ) -> tuple[str, ...]:
        """Generic parameter names in order; variadic ones are spelled ``*Ts``."""
        declared = getattr(node, "type_params", None)
        if declared:
            variadic = getattr(ast, "TypeVarTuple", ())
            return tuple(
                f"*{param.name}" if isinstance(param, variadic) else param.name
                for param in declared
            )

        collected: list[str] = []
        for base in node.bases:
            if not isinstance(base, ast.Subscript):
                continue
            args = _subscript_args(base)
            if self._resolve(scope, base.value, local) in GENERIC_ORIGINS:
                params = (self._generic_param(scope, arg, local) for arg in args)
                return tuple(param for param in params if param)
            for arg in args:
                for name in _iter_names(arg):
                    qualified = self._resolve(scope, name, local)
                    if qualified in self._variadics:
                        param = f"*{name.id}"
                    elif qualified in self._typevars:
                        param = name.id
                    else:
                        continue
                    if param not in collected:
                        collected.append(param)
        return tuple(collected)

    def _generic_param(
        self, scope: _ModuleScope, arg: ast.expr, local: Mapping[str, str]
    ) -> str | None:
        """One ``Generic[...]`` argument: ``T``, ``*Ts`` or ``Unpack[Ts]``."""
        if isinstance(arg, ast.Name):
            return arg.id
        if isinstance(arg, ast.Starred) and isinstance(arg.value, ast.Name):
            return f"*{arg.value.id}"
        if (
            isinstance(arg, ast.Subscript)
            and isinstance(arg.slice, ast.Name)
            and self._resolve(scope, arg.value, local) in UNPACK_ORIGINS
        ):
            return f"*{arg.slice.id}"
        return None

    def _base_type(
        self,
        scope: _ModuleScope,
        node: ast.ClassDef,
        symbol: TypeSymbol,
        local: Mapping[str, str],
    ) -> TypeSymbol | None:
        """First listed base that is a class of this compilation."""
        for base in node.bases:
            target = base.value if isinstance(base, ast.Subscript) else base
            candidate = self._lookup(scope, target, local)
            if candidate is not None and candidate is not symbol:
                return candidate
        return None

    def _declared_fields(
        self, scope: _ModuleScope, node: ast.ClassDef, local: Mapping[str, str]
    ) -> tuple[FieldSymbol, ...]:
        fields: dict[str, FieldSymbol] = {}

        def add(name: str, annotation: ast.expr, lineno: int) -> None:
            if name in fields or self._is_classvar(scope, annotation, local):
                return
            fields[name] = FieldSymbol(
                name=name,
                type=self._annotation_type(scope, annotation, local),
                lineno=lineno,
            )

        for stmt in node.body:
            if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
                add(stmt.target.id, stmt.annotation, stmt.lineno)
            elif isinstance(stmt, ast.FunctionDef) and stmt.name == "__init__":
                if not stmt.args.args:
                    continue
                self_name = stmt.args.args[0].arg
                assignments = [
                    inner
                    for inner in ast.walk(stmt)
                    if isinstance(inner, ast.AnnAssign)
                    and isinstance(inner.target, ast.Attribute)
                    and isinstance(inner.target.value, ast.Name)
                    and inner.target.value.id == self_name
                ]
                assignments.sort(key=lambda n: (n.lineno, n.col_offset))
                for inner in assignments:
                    add(inner.target.attr, inner.annotation, inner.lineno)

        return tuple(fields.values())

    def _is_classvar(
        self, scope: _ModuleScope, annotation: ast.expr, local: Mapping[str, str]
    ) -> bool:
        target = annotation.value if isinstance(annotation, ast.Subscript) else annotation
        return self._resolve(scope, target, local) in CLASSVAR_ORIGINS

    def _annotation_type(
        self, scope: _ModuleScope, annotation: ast.expr, local: Mapping[str, str]
    ) -> TypeSymbol | None:
        expr = annotation
        if isinstance(expr, ast.Constant) and isinstance(expr.value, str):
            try:
                expr = ast.parse(expr.value, mode="eval").body
            except SyntaxError:
                return None
        if isinstance(expr, ast.Subscript):
            expr = expr.value
        return self._lookup(scope, expr, local)


# ===--- Capability resolution ---=== #


@dataclass(frozen=True)
class CapabilityMatch:
    """Whether a class carries the capability, and which class introduced it.

    Attributes:
        introducer: Nearest class in the inheritance chain, the class itself
            first, that carries the marker. None when the capability is absent.
    """

    introducer: TypeSymbol | None = None

    @property
    def present(self) -> bool:
        return self.introducer is not None


ABSENT = CapabilityMatch()


def resolve_capability(symbol: TypeSymbol | None, marker: str) -> CapabilityMatch:
    """Walk symbol -> base -> ... and stop at the first class carrying marker.

    An unresolved symbol (None), the end of the chain, or a malformed cyclic
    chain all yield ABSENT.
    """
    visited: set[TypeSymbol] = set()
    current = symbol
    while current is not None and current not in visited:
        if marker in current.markers:
            return CapabilityMatch(introducer=current)
        visited.add(current)
        current = current.base
    return ABSENT


# ===--- Dependency discovery ---=== #


def discover_dependencies(
    symbol: TypeSymbol | None, marker: str
) -> tuple[FieldSymbol, ...]:
    """Fields declared on symbol itself whose type carries the capability.

    Inherited fields are never returned: the ancestor that declares them
    already initializes them.
    """
    if symbol is None:
        return ()
    seen: set[str] = set()
    dependencies: list[FieldSymbol] = []
    for member in symbol.fields:
        if member.name in seen:
            continue
        if resolve_capability(member.type, marker).present:
            seen.add(member.name)
            dependencies.append(member)
    return tuple(dependencies)


# ===--- Emission planning ---=== #


ACTION_INTRODUCER = "introducer"
ACTION_OVERRIDE = "override"
ACTION_INHERITED = "inherited"


@dataclass(frozen=True)
class EmissionPlan:
    """What to generate for one initializable class.

    | is_introducer | dependencies | action                            |
    |---------------|--------------|-----------------------------------|
    | True          | any          | full protocol (state + entry)     |
    | False         | non-empty    | override of the dependency step   |
    | False         | empty        | nothing: the inherited code fits  |

    Attributes:
        symbol: The class being planned.
        is_introducer: True when symbol is its own capability introducer.
        dependencies: Directly declared dependency fields, declaration order.
    """

    symbol: TypeSymbol
    is_introducer: bool
    dependencies: tuple[FieldSymbol, ...]

    @property
    def should_emit(self) -> bool:
        return self.is_introducer or bool(self.dependencies)

    @property
    def action(self) -> str:
        if self.is_introducer:
            return ACTION_INTRODUCER
        if self.dependencies:
            return ACTION_OVERRIDE
        return ACTION_INHERITED


def plan_emission(symbol: TypeSymbol | None, marker: str) -> EmissionPlan | None:
    """Plan one class; None when the class is not initializable at all."""
    match = resolve_capability(symbol, marker)
    if not match.present:
        return None
    return EmissionPlan(
        symbol=symbol,
        is_introducer=match.introducer is symbol,
        dependencies=discover_dependencies(symbol, marker),
    )


def plan_compilation(
    compilation: Compilation, marker: str
) -> tuple[EmissionPlan, ...]:
    """Plan every initializable class, emitting or not, in declaration order."""
    plans = []
    for symbol in compilation.symbols:
        plan = plan_emission(symbol, marker)
        if plan is not None:
            plans.append(plan)
    return tuple(plans)


def chain_dependencies(symbol: TypeSymbol, marker: str) -> tuple[FieldSymbol, ...]:
    """Dependencies awaited by symbol's initialize(), up to its introducer."""
    introducer = resolve_capability(symbol, marker).introducer
    collected: list[FieldSymbol] = []
    visited: set[TypeSymbol] = set()
    current: TypeSymbol | None = symbol
    while current is not None and current not in visited:
        visited.add(current)
        collected.extend(discover_dependencies(current, marker))
        if current is introducer:
            break
        current = current.base
    return tuple(collected)


def find_dependency_cycles(
    plans: Sequence[EmissionPlan], marker: str
) -> tuple[str, ...]:
    """Qualified names of classes that (transitively) depend on themselves.

    The scan is over types. Only instances that actually reference each other
    in a cycle deadlock: the outer initialize() holds its lock while the
    inner call waits for the same lock. A chain of distinct instances of a
    self-referencing class initializes normally.
    """
    edges: dict[str, set[str]] = {}
    for plan in plans:
        edges[plan.symbol.qualified_name] = {
            dep.type.qualified_name
            for dep in chain_dependencies(plan.symbol, marker)
            if dep.type is not None
        }

    on_cycle = []
    for start in sorted(edges):
        stack = list(edges[start])
        reached: set[str] = set()
        while stack:
            node = stack.pop()
            if node == start:
                on_cycle.append(start)
                break
            if node in reached:
                continue
            reached.add(node)
            stack.extend(edges.get(node, ()))
    return tuple(on_cycle)


# ===--- Unit emission ---=== #


@dataclass(frozen=True)
class GeneratedUnit:
    """One rendered mixin module.

    Attributes:
        name: Mixin class and module name, ``<ClassName>_Initializable``.
        namespace: Package the unit belongs to; None for the global scope.
        source: Qualified name of the class the unit was generated from.
        text: Complete module source, trailing newline included.
    """

    name: str
    namespace: str | None
    source: str
    text: str

    @property
    def relative_path(self) -> Path:
        return unit_path(self.name, self.namespace)


_HEADER_BORDER: str = "# x-------------------------------------------x #"


def unit_name(symbol: TypeSymbol) -> str:
    return f"{symbol.name}{UNIT_SUFFIX}"


def unit_path(name: str, namespace: str | None) -> Path:
    """Output path of a unit: inside its package directory, or at the root."""
    filename = f"{name}.py"
    if namespace is None:
        return Path(filename)
    return Path(*namespace.split(".")) / filename


def attribute_name(symbol: TypeSymbol, name: str) -> str:
    """Attribute name as stored on the instance (private names are mangled)."""
    if name.startswith("__") and not name.endswith("__"):
        owner = symbol.name.lstrip("_")
        if owner:
            return f"_{owner}{name}"
    return name


def format_unit_header(plan: EmissionPlan) -> list[str]:
    """Return the boxed comment block at the top of every generated unit.

    The Namespace line is omitted for classes in the global scope.
    """
    lines = [
        _HEADER_BORDER,
        AUTO_GENERATED_TAG,
        "# | This file is auto-generated. All changes will be discarded.",
        f"# | Generated by initgen from {plan.symbol.qualified_name}",
    ]
    if plan.symbol.namespace:
        lines.append(f"# | Namespace: {plan.symbol.namespace}")
    lines.append(_HEADER_BORDER)
    return lines


def format_unit_imports(plan: EmissionPlan, contract_module: str) -> list[str]:
    lines = ["from __future__ import annotations", ""]
    if plan.is_introducer:
        lines.append("import abc")
    lines.append("import asyncio")
    if plan.symbol.type_params:
        names = ["Generic"]
        if any(not p.startswith("*") for p in plan.symbol.type_params):
            names.append("TypeVar")
        if any(p.startswith("*") for p in plan.symbol.type_params):
            names.append("TypeVarTuple")
        lines.append(f"from typing import {', '.join(names)}")
    if plan.is_introducer:
        lines.extend(["", f"from {contract_module} import Initializable"])
    return lines


def format_exports(plan: EmissionPlan) -> list[str]:
    if plan.symbol.accessibility == "public":
        return [f'__all__ = ["{unit_name(plan.symbol)}"]']
    return ["__all__: list[str] = []"]


def format_type_vars(plan: EmissionPlan) -> list[str]:
    lines = []
    for param in plan.symbol.type_params:
        if param.startswith("*"):
            name = param[1:]
            lines.append(f'{name} = TypeVarTuple("{name}")')
        else:
            lines.append(f'{param} = TypeVar("{param}")')
    return lines


def _generic_base(plan: EmissionPlan) -> str | None:
    if not plan.symbol.type_params:
        return None
    return f"Generic[{', '.join(plan.symbol.type_params)}]"


def format_dependencies_method(plan: EmissionPlan) -> list[str]:
    """Render _initialize_dependencies().

    Introducers gather their own fields; overrides also gather the inherited
    step through super() so the whole chain's dependencies are awaited.
    """
    calls = [
        f"self.{attribute_name(plan.symbol, dep.name)}.initialize()"
        for dep in plan.dependencies
    ]
    if not plan.is_introducer:
        calls.append("super()._initialize_dependencies()")

    lines = ["    async def _initialize_dependencies(self) -> None:"]
    if not calls:
        lines.append("        pass")
        return lines
    lines.append("        await asyncio.gather(")
    lines.extend(f"            {call}," for call in calls)
    lines.append("        )")
    return lines


def format_introducer_body(plan: EmissionPlan) -> list[str]:
    bases = ["Initializable"]
    generic = _generic_base(plan)
    if generic:
        bases.append(generic)
    symbol = plan.symbol
    return [
        f"class {unit_name(symbol)}({', '.join(bases)}):",
        f'    """Initialization protocol introduced by {symbol.qualified_name}."""',
        "",
        "    _initialized: bool = False",
        "    _initialize_lock: asyncio.Lock | None = None",
        "",
        "    @abc.abstractmethod",
        "    async def on_initialize(self) -> None:",
        f'        """Initialize this {symbol.name} once its dependencies are ready."""',
        "",
        "    async def initialize(self) -> None:",
        "        if self._initialize_lock is None:",
        "            self._initialize_lock = asyncio.Lock()",
        "        async with self._initialize_lock:",
        "            if self._initialized:",
        "                return",
        "            await self._initialize_dependencies()",
        "            await self.on_initialize()",
        "            self._initialized = True",
        "",
        *format_dependencies_method(plan),
    ]


def format_override_body(plan: EmissionPlan) -> list[str]:
    symbol = plan.symbol
    generic = _generic_base(plan)
    header = f"class {unit_name(symbol)}({generic}):" if generic else f"class {unit_name(symbol)}:"
    return [
        header,
        f'    """Dependencies added by {symbol.qualified_name}."""',
        "",
        *format_dependencies_method(plan),
    ]


def assemble_unit_source(plan: EmissionPlan, contract_module: str) -> str:
    """Assemble the complete module text for one plan.

    File structure:
        <header comment block>
        <blank>
        <imports>
        <blank>
        <__all__>
        [<blank> <TypeVar declarations>]
        <blank> <blank>
        <class body>
        <trailing newline>

    Raises:
        ValueError: If the plan has nothing to emit.
    """
    if not plan.should_emit:
        raise ValueError(
            f"{plan.symbol.qualified_name} inherits its initialization unchanged; "
            "nothing to emit"
        )
    parts: list[str] = list(format_unit_header(plan))
    parts.append("")
    parts.extend(format_unit_imports(plan, contract_module))
    parts.append("")
    parts.extend(format_exports(plan))
    if plan.symbol.type_params:
        parts.append("")
        parts.extend(format_type_vars(plan))
    parts.extend(["", ""])
    if plan.is_introducer:
        parts.extend(format_introducer_body(plan))
    else:
        parts.extend(format_override_body(plan))
    return "\n".join(parts) + "\n"


def emit_unit(plan: EmissionPlan, contract_module: str = "initialization") -> GeneratedUnit:
    symbol = plan.symbol
    return GeneratedUnit(
        name=unit_name(symbol),
        namespace=symbol.namespace,
        source=symbol.qualified_name,
        text=assemble_unit_source(plan, contract_module),
    )


def emit_units(
    plans: Sequence[EmissionPlan], contract_module: str = "initialization"
) -> tuple[GeneratedUnit, ...]:
    return tuple(emit_unit(plan, contract_module) for plan in plans if plan.should_emit)


# ===--- Writer I/O functions ---=== #


@dataclass(frozen=True)
class FileWriteResult:
    """Result of writing one generated unit.

    Attributes:
        filename: Path relative to the output directory, POSIX separators.
        path: Absolute path of the written file.
        line_count: Number of newline characters in the written content.
        byte_count: Number of bytes written (UTF-8 encoded).
    """

    filename: str
    path: Path
    line_count: int
    byte_count: int


@dataclass(frozen=True)
class UnitWriteResult:
    output_dir: Path
    files: tuple[FileWriteResult, ...]

    @property
    def total_lines(self) -> int:
        return sum(f.line_count for f in self.files)


def dedupe_units(
    units: Sequence[GeneratedUnit],
) -> tuple[tuple[GeneratedUnit, ...], tuple[GeneratedUnit, ...]]:
    """Split units into (kept, duplicates) by output path; first one wins."""
    kept: dict[Path, GeneratedUnit] = {}
    duplicates: list[GeneratedUnit] = []
    for unit in units:
        if unit.relative_path in kept:
            duplicates.append(unit)
        else:
            kept[unit.relative_path] = unit
    return tuple(kept.values()), tuple(duplicates)


def write_unit(output_dir: Path, unit: GeneratedUnit) -> FileWriteResult:
    """Write one unit below output_dir, creating package directories.

    Raises:
        OSError: Propagated directly if the filesystem write fails.
    """
    file_path = Path(output_dir) / unit.relative_path
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(unit.text, encoding="utf-8")
    resolved = file_path.resolve()
    return FileWriteResult(
        filename=unit.relative_path.as_posix(),
        path=resolved,
        line_count=unit.text.count("\n"),
        byte_count=len(resolved.read_bytes()),
    )


def write_units(output_dir: Path, units: Sequence[GeneratedUnit]) -> UnitWriteResult:
    """Write every unit in order. No rollback on partial failure."""
    files = [write_unit(output_dir, unit) for unit in units]
    return UnitWriteResult(output_dir=Path(output_dir), files=tuple(files))


def check_units(output_dir: Path, units: Sequence[GeneratedUnit]) -> tuple[str, ...]:
    """Relative paths of units that are missing on disk or differ from it."""
    stale = []
    for unit in units:
        file_path = Path(output_dir) / unit.relative_path
        try:
            current = file_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            current = None
        if current != unit.text:
            stale.append(unit.relative_path.as_posix())
    return tuple(stale)


# ===--- Pipeline ---=== #


@dataclass(frozen=True)
class PreparedRun:
    """Everything computed before any file is written.

    Attributes:
        sources: Parsed modules plus skipped and generated files.
        compilation: Symbol table over sources.modules.
        plans: Plans for every initializable class, emitting or not.
        units: Rendered units, one per output path.
        duplicates: Units dropped because an earlier unit had the same path.
        cycles: Classes on a dependency cycle.
    """

    sources: SourceSet
    compilation: Compilation
    plans: tuple[EmissionPlan, ...]
    units: tuple[GeneratedUnit, ...]
    duplicates: tuple[GeneratedUnit, ...]
    cycles: tuple[str, ...]


def prepare_run(config: GenerateConfig) -> PreparedRun:
    print(f"Scanning: {config.source_root}")
    sources = load_sources(config.source_root)
    for path, reason in sources.skipped:
        print(f"Warning: skipped {path}: {reason}", file=sys.stderr)
    print(
        f"  Modules: {len(sources.modules)} parsed, "
        f"{len(sources.generated)} generated, {len(sources.skipped)} skipped"
    )

    compilation = Compilation(sources.modules)
    plans = plan_compilation(compilation, config.marker)
    print(
        f"  Classes: {len(compilation.symbols)} analyzed, "
        f"{len(plans)} initializable"
    )

    cycles = find_dependency_cycles(plans, config.marker)
    if cycles:
        print(
            f"Warning: dependency cycle through {', '.join(cycles)}; "
            "instances that reference each other in a cycle "
            "will deadlock in initialize()",
            file=sys.stderr,
        )

    units, duplicates = dedupe_units(emit_units(plans, config.contract_module))
    for unit in duplicates:
        print(
            f"Warning: {unit.source} maps to {unit.relative_path.as_posix()}, "
            "already generated for another class; skipped",
            file=sys.stderr,
        )

    return PreparedRun(
        sources=sources,
        compilation=compilation,
        plans=plans,
        units=units,
        duplicates=duplicates,
        cycles=cycles,
    )


def run_generate(config: GenerateConfig) -> UnitWriteResult:
    """Execute the full pipeline and write units to config.output_dir.

    Raises:
        OSError: Filesystem write failure.
    """
    prepared = prepare_run(config)
    result = write_units(config.output_dir, prepared.units)
    print(
        f"  Written: {len(result.files)} files, "
        f"{result.total_lines} lines to {result.output_dir}"
    )
    summary = build_generation_summary(config, prepared, result)
    print_generation_summary(summary)
    return result


def run_check(config: GenerateConfig) -> tuple[str, ...]:
    """Compare generated units with disk without writing anything."""
    prepared = prepare_run(config)
    stale = check_units(config.output_dir, prepared.units)
    for filename in stale:
        print(f"Stale: {filename}")
    if not stale:
        print(f"  Up to date: {len(prepared.units)} files")
    return stale


# ===--- Discovery commands ---=== #


@dataclass(frozen=True)
class ClassSummary:
    """One row of --list output.

    Attributes:
        qualified_name: Class qualified name.
        action: introducer, override or inherited.
        introducer: Qualified name of the class that introduced the capability.
        dependency_count: Directly declared dependency fields.
    """

    qualified_name: str
    action: str
    introducer: str
    dependency_count: int


@dataclass(frozen=True)
class ClassDetail:
    """Everything --info reports for one class.

    Attributes:
        qualified_name: Class qualified name.
        namespace: Containing package, None for the global scope.
        accessibility: public or internal.
        type_params: Generic parameter names in declaration order.
        chain: Qualified names from the class up through its bases.
        introducer: Capability introducer, None when not initializable.
        dependencies: (field name, field type qualified name) pairs.
        action: Planned action, or None when not initializable.
        unit: Generated unit path, None when nothing is emitted.
    """

    qualified_name: str
    namespace: str | None
    accessibility: str
    type_params: tuple[str, ...]
    chain: tuple[str, ...]
    introducer: str | None
    dependencies: tuple[tuple[str, str], ...]
    action: str | None
    unit: str | None


def gather_class_summaries(
    plans: Sequence[EmissionPlan], marker: str
) -> list[ClassSummary]:
    summaries = []
    for plan in plans:
        introducer = resolve_capability(plan.symbol, marker).introducer
        summaries.append(
            ClassSummary(
                qualified_name=plan.symbol.qualified_name,
                action=plan.action,
                introducer=introducer.qualified_name,
                dependency_count=len(plan.dependencies),
            )
        )
    return summaries


def filter_class_summaries(
    summaries: list[ClassSummary], filter_text: str
) -> list[ClassSummary]:
    needle = filter_text.lower()
    return [s for s in summaries if needle in s.qualified_name.lower()]


def _base_chain(symbol: TypeSymbol) -> tuple[str, ...]:
    chain = []
    visited: set[TypeSymbol] = set()
    current: TypeSymbol | None = symbol
    while current is not None and current not in visited:
        visited.add(current)
        chain.append(current.qualified_name)
        current = current.base
    return tuple(chain)


def gather_class_detail(
    compilation: Compilation, name: str, marker: str
) -> ClassDetail | None:
    """Detail for the first class matching name, or None if nothing matches."""
    matches = compilation.find_symbols(name)
    if not matches:
        return None
    symbol = matches[0]
    plan = plan_emission(symbol, marker)
    introducer = resolve_capability(symbol, marker).introducer
    unit = None
    if plan is not None and plan.should_emit:
        unit = unit_path(unit_name(symbol), symbol.namespace).as_posix()
    dependencies: tuple[tuple[str, str], ...] = ()
    if plan is not None:
        dependencies = tuple(
            (dep.name, dep.type.qualified_name) for dep in plan.dependencies
        )
    return ClassDetail(
        qualified_name=symbol.qualified_name,
        namespace=symbol.namespace,
        accessibility=symbol.accessibility,
        type_params=symbol.type_params,
        chain=_base_chain(symbol),
        introducer=introducer.qualified_name if introducer else None,
        dependencies=dependencies,
        action=plan.action if plan is not None else None,
        unit=unit,
    )


def format_classes_table(summaries: list[ClassSummary], marker: str) -> str:
    """Return the complete --list output.

        Initializable classes (marker initialization.initializable):

          shop.models.Cache              introducer  2 deps
          shop.models.WarmCache          override    1 dep    (from shop.models.Cache)
          shop.models.ColdCache          inherited   0 deps   (from shop.models.Cache)

    Rows for non-introducers name the introducing class.
    """
    lines = [f"Initializable classes (marker {marker}):", ""]
    if not summaries:
        lines.append("  (none)")
    width = max((len(s.qualified_name) for s in summaries), default=0)
    for row in summaries:
        noun = "dep" if row.dependency_count == 1 else "deps"
        deps = f"{row.dependency_count} {noun}"
        line = f"  {row.qualified_name:<{width}}  {row.action:<10}  {deps:<7}"
        if row.action != ACTION_INTRODUCER:
            line += f"  (from {row.introducer})"
        lines.append(line.rstrip())
    lines.append("")
    return "\n".join(lines)


def format_class_detail(detail: ClassDetail) -> str:
    lines = [detail.qualified_name, ""]
    lines.append(f"  Namespace:      {detail.namespace or '(global)'}")
    lines.append(f"  Accessibility:  {detail.accessibility}")
    if detail.type_params:
        lines.append(f"  Generic:        [{', '.join(detail.type_params)}]")
    lines.append(f"  Chain:          {' -> '.join(detail.chain)}")
    if detail.introducer is None:
        lines.append("  Initializable:  no")
        lines.append("")
        return "\n".join(lines)
    lines.append(f"  Introducer:     {detail.introducer}")
    lines.append(f"  Action:         {detail.action}")
    lines.append(f"  Unit:           {detail.unit or '(none)'}")
    lines.append("")
    lines.append(f"  Dependencies ({len(detail.dependencies)}):")
    for name, type_name in detail.dependencies:
        lines.append(f"    {name}: {type_name}")
    lines.append("")
    return "\n".join(lines)


def run_discovery(config: DiscoveryConfig) -> None:
    """Execute --list or --info against the source root.

    Raises:
        SystemExit(1): When --info names a class that is not in the tree.
    """
    sources = load_sources(config.source_root)
    for path, reason in sources.skipped:
        print(f"Warning: skipped {path}: {reason}", file=sys.stderr)
    compilation = Compilation(sources.modules)

    if config.command == "list":
        plans = plan_compilation(compilation, config.marker)
        summaries = gather_class_summaries(plans, config.marker)
        if config.filter_text is not None:
            summaries = filter_class_summaries(summaries, config.filter_text)
        print(format_classes_table(summaries, config.marker), end="")

    elif config.command == "info":
        assert config.info_class is not None
        detail = gather_class_detail(compilation, config.info_class, config.marker)
        if detail is None:
            print(
                f"Error: class '{config.info_class}' not found under {config.source_root}",
                file=sys.stderr,
            )
            raise SystemExit(1)
        print(format_class_detail(detail), end="")


# ===--- Summary report ---=== #


@dataclass(frozen=True)
class GenerationCounts:
    """Class counts for the summary report.

    Invariant: introducers + overrides + inherited == initializable.

    Attributes:
        candidates: Every class declaration analysed.
        initializable: Classes whose capability resolved present.
        introducers: Classes that introduce the capability themselves.
        overrides: Inheritors that add dependencies.
        inherited: Inheritors with nothing new; no unit is generated.
    """

    candidates: int
    initializable: int
    introducers: int
    overrides: int
    inherited: int


@dataclass(frozen=True)
class GenerationSummary:
    source_label: str
    output_dir: str
    marker: str
    counts: GenerationCounts
    files: tuple[FileWriteResult, ...]


def build_generation_counts(
    compilation: Compilation, plans: Sequence[EmissionPlan]
) -> GenerationCounts:
    actions = [plan.action for plan in plans]
    counts = GenerationCounts(
        candidates=len(compilation.symbols),
        initializable=len(plans),
        introducers=actions.count(ACTION_INTRODUCER),
        overrides=actions.count(ACTION_OVERRIDE),
        inherited=actions.count(ACTION_INHERITED),
    )
    assert counts.introducers + counts.overrides + counts.inherited == counts.initializable
    return counts


def build_generation_summary(
    config: GenerateConfig,
    prepared: PreparedRun,
    write_result: UnitWriteResult,
) -> GenerationSummary:
    return GenerationSummary(
        source_label=str(config.source_root),
        output_dir=str(write_result.output_dir),
        marker=config.marker,
        counts=build_generation_counts(prepared.compilation, prepared.plans),
        files=write_result.files,
    )


def format_generation_summary(summary: GenerationSummary) -> str:
    """Render the post-generation report. Exactly one trailing newline."""
    counts = summary.counts
    lines: list[str] = []
    lines.append("Initialization units generated:")
    lines.append("")
    lines.append(f"  Source:     {summary.source_label}")
    lines.append(f"  Output:     {summary.output_dir}")
    lines.append(f"  Marker:     {summary.marker}")
    lines.append("")
    lines.append("  Classes analyzed:")
    lines.append(f"    {'Candidates:':<15}{counts.candidates:>6}")
    lines.append(f"    {'Initializable:':<15}{counts.initializable:>6}")
    lines.append(f"    {'Introducers:':<15}{counts.introducers:>6}")
    lines.append(f"    {'Overrides:':<15}{counts.overrides:>6}")
    inherited = f"    {'Inherited:':<15}{counts.inherited:>6}"
    if counts.inherited:
        inherited += "  (no new dependencies, no unit)"
    lines.append(inherited)

    lines.append("")
    lines.append("  Files written:")
    width = max((len(f.filename) for f in summary.files), default=0)
    for file_result in summary.files:
        lines.append(
            f"    {file_result.filename:<{width}}  {file_result.line_count:>6,} lines"
        )

    total_lines = sum(f.line_count for f in summary.files)
    lines.append("")
    lines.append(f"  Total: {total_lines:,} lines across {len(summary.files)} files")
    lines.append("")
    return "\n".join(lines)


def print_generation_summary(summary: GenerationSummary) -> None:
    print(format_generation_summary(summary), end="")


# ===--- Main ---=== #


def main(argv: list[str] | None = None) -> None:
    try:
        config = build_config(argv)
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err

    if isinstance(config, DiscoveryConfig):
        run_discovery(config)
        return

    try:
        if config.check:
            stale = run_check(config)
        else:
            run_generate(config)
            stale = ()
    except OSError as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err
    except ValueError as err:
        print(f"Internal error: {err}")
        raise SystemExit(1) from err

    if stale:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
