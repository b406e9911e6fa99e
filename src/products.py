"""Products: the named, locatable artifacts shipped inside a binary tarball.

The set of product kinds is closed. Code that behaves differently per kind
keeps a table keyed by product class and looks it up with
:func:`dispatch`, which rejects anything outside the set.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple, TypeVar, Union

from jllruntime.wrapper import DEFAULT_DLOPEN_FLAGS

T = TypeVar("T")


def _as_tuple(value) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    return tuple(value)


@dataclass(frozen=True)
class LibraryProduct:
    """Shared library, opened at load time."""
    libnames: Tuple[str, ...]
    variable_name: str
    dir_paths: Tuple[str, ...] = ()
    dlopen_flags: Tuple[str, ...] = DEFAULT_DLOPEN_FLAGS

    def __post_init__(self):
        object.__setattr__(self, "libnames", _as_tuple(self.libnames))
        object.__setattr__(self, "dir_paths", _as_tuple(self.dir_paths))
        object.__setattr__(self, "dlopen_flags", _as_tuple(self.dlopen_flags))


@dataclass(frozen=True)
class FrameworkProduct:
    """macOS framework bundle; behaves as a library elsewhere."""
    framework_name: str
    variable_name: str
    dlopen_flags: Tuple[str, ...] = DEFAULT_DLOPEN_FLAGS

    def __post_init__(self):
        object.__setattr__(self, "dlopen_flags", _as_tuple(self.dlopen_flags))

    @property
    def libraryproduct(self) -> LibraryProduct:
        return LibraryProduct(self.framework_name, self.variable_name, dlopen_flags=self.dlopen_flags)


@dataclass(frozen=True)
class ExecutableProduct:
    """Program run through a scoped environment."""
    binnames: Tuple[str, ...]
    variable_name: str
    dir_path: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "binnames", _as_tuple(self.binnames))


@dataclass(frozen=True)
class FileProduct:
    """Any other file, exposed by path only."""
    path: str
    variable_name: str


Product = Union[LibraryProduct, FrameworkProduct, ExecutableProduct, FileProduct]
PRODUCT_TYPES = (LibraryProduct, FrameworkProduct, ExecutableProduct, FileProduct)


@dataclass(frozen=True)
class ProductInfo:
    """Where a product was found inside one platform's tree."""
    path: str
    soname: Optional[str] = None


def dispatch(table: Mapping[type, T], product: Product) -> T:
    """Look up the per-kind entry for ``product``.

    Raises:
        TypeError: If ``product`` is not one of the known product kinds.
    """
    try:
        return table[type(product)]
    except KeyError:
        raise TypeError(f"Unsupported product type {type(product).__name__}") from None


def variable_name(p: Product) -> str:
    return p.variable_name


def product_kind(p: Product) -> str:
    dispatch(_KINDS, p)
    return type(p).__name__


def is_library(p: Product) -> bool:
    """Libraries and frameworks are opened at load time and have a soname."""
    return dispatch(_KINDS, p) == "library"


def sort_products(products_info: Mapping[Product, T]) -> List[Tuple[Product, T]]:
    """Items ordered by variable name, the order used in generated output."""
    return sorted(products_info.items(), key=lambda item: item[0].variable_name)


def unique_products(products: Iterable[Product]) -> List[Product]:
    """Distinct products ordered by variable name."""
    return sorted(set(products), key=variable_name)


_KINDS: Dict[type, str] = {
    LibraryProduct: "library",
    FrameworkProduct: "library",
    ExecutableProduct: "executable",
    FileProduct: "file",
}


def product_from_dict(data: Mapping) -> Product:
    """Build a product from a plain mapping (``type`` plus constructor fields).

    Raises:
        ValueError: If ``type`` is missing or unknown.
    """
    fields = dict(data)
    kind = fields.pop("type", None)
    constructors: Dict[str, Callable[..., Product]] = {
        "library": LibraryProduct,
        "framework": FrameworkProduct,
        "executable": ExecutableProduct,
        "file": FileProduct,
    }
    if kind not in constructors:
        raise ValueError(f"Unknown product type {kind!r}")
    return constructors[kind](**fields)
