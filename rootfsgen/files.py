"""Generators that copy, write and remove files inside a rootfs."""

from __future__ import annotations

import dataclasses
import fnmatch
import os
import shutil
import stat
from collections.abc import Iterator
from typing import Any

from rootfsgen.base import DefinitionFile, Generator, update_file_access


def _walk(root: str) -> Iterator[tuple[str, os.stat_result]]:
    """Yield every path below ``root`` in lexical order, without following links."""
    yield root, os.lstat(root)
    if not stat.S_ISDIR(os.lstat(root).st_mode):
        return
    with os.scandir(root) as entries:
        names = sorted(entry.name for entry in entries)
    for name in names:
        yield from _walk(os.path.join(root, name))


class CopyGenerator(Generator):
    """Copy files or directories from the host into the rootfs."""

    def run_lxc(self, img: Any, target: Any) -> None:
        """Copy the configured source into the rootfs."""
        self.run()

    def run_lxd(self, img: Any, target: Any) -> None:
        """Copy the configured source into the rootfs."""
        self.run()

    def run(self) -> None:
        """Copy the configured source, which may be a glob pattern, into the rootfs."""
        src_path = self.def_file.source
        dest_path = self._path(self.def_file.path or self.def_file.source)

        src_dir = os.path.dirname(src_path) or "."
        files = [
            candidate
            for candidate in (
                os.path.normpath(os.path.join(src_dir, name)) for name in sorted(os.listdir(src_dir))
            )
            if fnmatch.fnmatchcase(candidate, src_path)
        ]

        if not files:
            os.stat(src_path)
            self._do_copy(src_path, dest_path, self.def_file)
        elif len(files) == 1:
            self._do_copy(src_path, dest_path, self.def_file)
        else:
            # Several matches always go into a directory.
            dir_file = dataclasses.replace(self.def_file, path=self.def_file.path + "/")
            for path in files:
                self._do_copy(path, dest_path, dir_file)

    def _do_copy(self, src_path: str, dest_path: str, def_file: DefinitionFile) -> None:
        mode = os.stat(src_path).st_mode
        if stat.S_ISREG(mode):
            if def_file.path.endswith("/"):
                dest_path = os.path.join(dest_path, os.path.basename(src_path))
            self._copy_file(src_path, dest_path, def_file)
        elif stat.S_ISDIR(mode):
            self._copy_dir(src_path, dest_path, def_file)
        else:
            raise ValueError(f"File type of {src_path!r} not supported")

    def _copy_dir(self, src_path: str, dest_path: str, def_file: DefinitionFile) -> None:
        for src, info in _walk(src_path):
            dest = os.path.normpath(os.path.join(dest_path, os.path.relpath(src, src_path)))
            if stat.S_ISREG(info.st_mode) or stat.S_ISLNK(info.st_mode):
                self._copy_file(src, dest, def_file)
            elif stat.S_ISDIR(info.st_mode):
                os.makedirs(dest, exist_ok=True)
            else:
                self.logger.warning("File type of %r not supported, skipping", src)

    def _copy_file(self, src: str, dest: str, def_file: DefinitionFile) -> None:
        parent = os.path.dirname(dest)
        if parent:
            os.makedirs(parent, exist_ok=True)

        if os.path.islink(dest):
            os.unlink(dest)

        if os.path.islink(src):
            if os.path.lexists(dest):
                os.unlink(dest)
            os.symlink(os.readlink(src), dest)
        else:
            shutil.copyfile(src, dest)
            shutil.copymode(src, dest)

        update_file_access(dest, def_file)


class DumpGenerator(Generator):
    """Write literal content to a file in the rootfs."""

    def run_lxc(self, img: Any, target: Any) -> None:
        """Write the content and register it as an LXC template if requested."""
        self._write(self.def_file.content)
        if self.def_file.templated:
            img.add_template(self.def_file.path)

    def run_lxd(self, img: Any, target: Any) -> None:
        """Write the content to the rootfs."""
        self._write(self.def_file.content)

    def run(self) -> None:
        """Write the content to the rootfs."""
        self._write(self.def_file.content)

    def _write(self, content: str) -> None:
        path = self._path(self.def_file.path)
        os.makedirs(os.path.dirname(path), mode=0o755, exist_ok=True)

        if not content.endswith("\n"):
            content += "\n"

        with open(path, "w", encoding="utf-8") as handle:
            handle.write(content)

        update_file_access(path, self.def_file)


class RemoveGenerator(Generator):
    """Remove a path, recursively, from the rootfs."""

    def run_lxc(self, img: Any, target: Any) -> None:
        """Remove the configured path."""
        self.run()

    def run_lxd(self, img: Any, target: Any) -> None:
        """Remove the configured path."""
        self.run()

    def run(self) -> None:
        """Remove the configured path; a missing path is not an error."""
        path = self._path(self.def_file.path)
        if os.path.islink(path) or os.path.isfile(path):
            os.unlink(path)
        elif os.path.isdir(path):
            shutil.rmtree(path)
        elif os.path.lexists(path):
            os.unlink(path)