"""Shared data types and the base class for rootfs file generators."""

from __future__ import annotations

import copy
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import jinja2

_ENV = jinja2.Environment(keep_trailing_newline=True, autoescape=False)


@dataclass
class FileTemplate:
    """Template settings attached to a definition file entry."""

    properties: dict[str, str] = field(default_factory=dict)
    when: list[str] = field(default_factory=list)


@dataclass
class DefinitionFile:
    """One entry of the ``files`` section of an image definition."""

    generator: str = ""
    path: str = ""
    content: str = ""
    name: str = ""
    template: FileTemplate = field(default_factory=FileTemplate)
    templated: bool = False
    mode: str = ""
    gid: str = ""
    uid: str = ""
    pongo: bool = False
    source: str = ""


@dataclass
class ImageMetadataTemplate:
    """A template entry in LXD image metadata."""

    template: str
    properties: dict[str, str] = field(default_factory=dict)
    when: list[str] = field(default_factory=list)


class NotSupportedError(Exception):
    """Raised when a generator does not support a target."""

    def __init__(self, message: str = "Not supported") -> None:
        super().__init__(message)


class UnknownGeneratorError(LookupError):
    """Raised when no generator exists under the requested name."""

    def __init__(self, message: str = "Unknown generator") -> None:
        super().__init__(message)


def render_template(template: str, context: Mapping[str, Any]) -> str:
    """Render a template string against a mapping of values."""
    return _ENV.from_string(template).render(dict(context))


def _parse_id(value: str, label: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"Failed to parse {label}: {value!r}") from exc


def update_file_access(path: str | os.PathLike[str], def_file: DefinitionFile) -> None:
    """Apply the mode, group and owner requested by a definition file entry."""
    if def_file.mode:
        try:
            mode = int(def_file.mode, 8)
        except ValueError as exc:
            raise ValueError(f"Failed to parse file mode: {def_file.mode!r}") from exc
        os.chmod(path, mode)

    if def_file.gid:
        os.chown(path, -1, _parse_id(def_file.gid, "GID"))

    if def_file.uid:
        os.chown(path, _parse_id(def_file.uid, "UID"), -1)


class Generator:
    """Base class for generators that write files into a rootfs."""

    def __init__(
        self,
        cache_dir: str,
        source_dir: str,
        def_file: DefinitionFile,
        definition: Mapping[str, Any] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.cache_dir = cache_dir
        self.source_dir = source_dir
        self.definition: Mapping[str, Any] = definition if definition is not None else {}
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.def_file = copy.deepcopy(def_file)

        if self.def_file.pongo:
            self.def_file.content = self._render(self.def_file.content)
            self.def_file.path = self._render(self.def_file.path)
            self.def_file.source = self._render(self.def_file.source)

    def _render(self, value: str) -> str:
        try:
            return render_template(value, self.definition)
        except jinja2.TemplateError as exc:
            self.logger.warning("Failed to render template: %s", exc)
            return value

    def _path(self, *parts: str) -> str:
        """Join path parts below the rootfs, treating absolute parts as relative."""
        relative = [part.lstrip("/") for part in parts]
        return os.path.normpath(os.path.join(self.source_dir, *relative))

    def run_lxc(self, img: Any, target: Any) -> Any:
        """Run the generator for an LXC image."""
        return self.run()

    def run_lxd(self, img: Any, target: Any) -> Any:
        """Run the generator for an LXD image."""
        return self.run()

    def run(self) -> Any:
        """Run the generator for a plain rootfs; does nothing by default."""
        return None