"""Root-relative path identity shared by editor documents and daemon output.

Editors hand us ``file:`` URIs, the daemon reports absolute filenames (it runs
with ``--show-absolute-path``) or, occasionally, names relative to its working
directory. Both are reduced to a :class:`RootRelativePath` so they can be
compared by value.

Symlinks are resolved on both sides before the root prefix is stripped: the
root once when the server starts, document paths and absolute daemon filenames
on construction. After construction no comparison touches the filesystem.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePath
from urllib.parse import unquote, urlparse

from dmypyls.exceptions import PathError


@dataclass(frozen=True)
class RootRelativePath:
    root: Path
    relative: PurePath

    def __post_init__(self) -> None:
        relative = PurePath(self.relative)
        if relative.is_absolute():
            raise PathError(f"relative component must not be absolute: {relative}")
        object.__setattr__(self, "root", Path(self.root))
        object.__setattr__(self, "relative", relative)

    def __str__(self) -> str:
        return f"{self.root}/{self.relative}"

    @property
    def extension(self) -> str:
        return self.relative.suffix.lstrip(".")

    @property
    def absolute(self) -> Path:
        return self.root / self.relative

    @classmethod
    def from_uri(cls, root: Path, uri: str) -> RootRelativePath:
        path = uri_to_path(uri)
        return cls(root, _strip_root(root, path.resolve(), what="uri"))

    @classmethod
    def from_filename(cls, root: Path, filename: str) -> RootRelativePath:
        path = PurePath(filename)
        if not path.is_absolute():
            return cls(root, path)
        try:
            return cls(root, _strip_root(root, Path(path).resolve(), what="filename"))
        except PathError:
            # The raw name may be rooted even when its resolved form escapes.
            return cls(root, _strip_root(root, path, what="filename"))


def uri_to_path(uri: str) -> Path:
    parsed = urlparse(uri)
    if parsed.scheme != "file":
        raise PathError(f"uri is not a file path: {uri}")
    if parsed.netloc not in ("", "localhost"):
        raise PathError(f"uri names a remote host: {uri}")
    return Path(unquote(parsed.path))


def canonical_root(root: Path) -> Path:
    return root.expanduser().resolve()


def _strip_root(root: Path, path: PurePath, *, what: str) -> PurePath:
    try:
        return path.relative_to(root)
    except ValueError as exc:
        raise PathError(f"{what} is not a child of root_dir [{path} not under {root}]") from exc
