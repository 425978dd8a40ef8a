import os
import stat

import pytest

from rootfsgen.base import DefinitionFile
from rootfsgen.files import CopyGenerator, DumpGenerator, RemoveGenerator


@pytest.fixture
def dirs(tmp_path, monkeypatch):
    cache_dir = tmp_path / "cache"
    rootfs_dir = cache_dir / "rootfs"
    rootfs_dir.mkdir(parents=True)
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    return str(cache_dir), str(rootfs_dir)


@pytest.fixture
def copy_source(dirs):
    os.mkdir("copy_test")
    with open(os.path.join("copy_test", "src1"), "w") as handle:
        handle.write("src1\n")
    with open(os.path.join("copy_test", "src2"), "w") as handle:
        handle.write("src2\n")
    os.symlink("src1", os.path.join("copy_test", "srcLink"))
    return dirs


def _read(path):
    with open(path) as handle:
        return handle.read()


def test_copy_directory_contents(copy_source):
    cache_dir, rootfs = copy_source
    gen = CopyGenerator(cache_dir, rootfs, DefinitionFile(source="copy_test", path="copy_test_dir"))
    gen.run()

    dest = os.path.join(rootfs, "copy_test_dir")
    assert os.path.isdir(dest)
    assert _read(os.path.join(dest, "src1")) == "src1\n"
    assert _read(os.path.join(dest, "src2")) == "src2\n"
    assert os.readlink(os.path.join(dest, "srcLink")) == "src1"


def test_copy_wildcard(copy_source):
    cache_dir, rootfs = copy_source
    gen = CopyGenerator(cache_dir, rootfs, DefinitionFile(source="copy_test/src*", path="copy_test_wildcard"))
    gen.run()

    dest = os.path.join(rootfs, "copy_test_wildcard")
    assert os.path.isdir(dest)
    assert _read(os.path.join(dest, "src1")) == "src1\n"
    assert _read(os.path.join(dest, "src2")) == "src2\n"


def test_copy_file_to_same_path(copy_source):
    cache_dir, rootfs = copy_source
    gen = CopyGenerator(cache_dir, rootfs, DefinitionFile(source="copy_test/src1"))
    gen.run()
    assert _read(os.path.join(rootfs, "copy_test", "src1")) == "src1\n"


def test_copy_file_into_directory(copy_source):
    cache_dir, rootfs = copy_source
    gen = CopyGenerator(cache_dir, rootfs, DefinitionFile(source="copy_test/src1", path="/hello/world/"))
    gen.run()
    assert os.path.isdir(os.path.join(rootfs, "hello", "world"))
    assert _read(os.path.join(rootfs, "hello", "world", "src1")) == "src1\n"


def test_copy_applies_mode(copy_source):
    cache_dir, rootfs = copy_source
    gen = CopyGenerator(cache_dir, rootfs, DefinitionFile(source="copy_test/src2", path="/etc/src2", mode="0600"))
    gen.run_lxd(None, None)
    assert stat.S_IMODE(os.stat(os.path.join(rootfs, "etc", "src2")).st_mode) == 0o600


def test_copy_missing_source(dirs):
    cache_dir, rootfs = dirs
    gen = CopyGenerator(cache_dir, rootfs, DefinitionFile(source="missing_file"))
    with pytest.raises(FileNotFoundError):
        gen.run()


def test_dump_lxc_with_pongo(dirs):
    cache_dir, rootfs = dirs
    definition = {"targets": {"lxc": {"create_message": "message"}}}
    gen = DumpGenerator(
        cache_dir,
        rootfs,
        DefinitionFile(path="/hello/world", content="hello {{ targets.lxc.create_message }}", pongo=True),
        definition,
    )
    gen.run_lxc(None, {"create_message": "message"})
    assert _read(os.path.join(rootfs, "hello", "world")) == "hello message\n"

    gen = DumpGenerator(
        cache_dir,
        rootfs,
        DefinitionFile(path="/hello/world", content="hello {{ targets.lxc.create_message }}"),
        definition,
    )
    gen.run_lxc(None, {"create_message": "message"})
    assert _read(os.path.join(rootfs, "hello", "world")) == "hello {{ targets.lxc.create_message }}\n"


def test_dump_lxd_with_pongo(dirs):
    cache_dir, rootfs = dirs
    definition = {"targets": {"lxd": {"vm": {"filesystem": "ext4"}}}}
    gen = DumpGenerator(
        cache_dir,
        rootfs,
        DefinitionFile(path="/hello/world", content="hello {{ targets.lxd.vm.filesystem }}", pongo=True),
        definition,
    )
    gen.run_lxd(None, None)
    assert _read(os.path.join(rootfs, "hello", "world")) == "hello ext4\n"

    gen = DumpGenerator(
        cache_dir,
        rootfs,
        DefinitionFile(path="/hello/world", content="hello {{ targets.lxd.vm.filesystem }}"),
        definition,
    )
    gen.run_lxd(None, None)
    assert _read(os.path.join(rootfs, "hello", "world")) == "hello {{ targets.lxd.vm.filesystem }}\n"


def test_dump_templated_registers_template(dirs):
    cache_dir, rootfs = dirs

    class FakeImage:
        def __init__(self):
            self.templates = []

        def add_template(self, path):
            self.templates.append(path)

    img = FakeImage()
    gen = DumpGenerator(cache_dir, rootfs, DefinitionFile(path="/etc/motd", content="hi\n", templated=True))
    gen.run_lxc(img, None)
    assert img.templates == ["/etc/motd"]
    assert _read(os.path.join(rootfs, "etc", "motd")) == "hi\n"


def test_dump_run_applies_mode(dirs):
    cache_dir, rootfs = dirs
    gen = DumpGenerator(cache_dir, rootfs, DefinitionFile(path="/bin/script", content="x", mode="0755"))
    gen.run()
    assert stat.S_IMODE(os.stat(os.path.join(rootfs, "bin", "script")).st_mode) == 0o755


def test_remove_directory_and_file(dirs):
    cache_dir, rootfs = dirs
    os.makedirs(os.path.join(rootfs, "var", "cache", "sub"))
    with open(os.path.join(rootfs, "var", "cache", "sub", "f"), "w") as handle:
        handle.write("x")
    with open(os.path.join(rootfs, "file"), "w") as handle:
        handle.write("x")

    RemoveGenerator(cache_dir, rootfs, DefinitionFile(path="/var/cache")).run()
    RemoveGenerator(cache_dir, rootfs, DefinitionFile(path="/file")).run_lxc(None, None)

    assert not os.path.exists(os.path.join(rootfs, "var", "cache"))
    assert not os.path.exists(os.path.join(rootfs, "file"))
    assert os.path.isdir(os.path.join(rootfs, "var"))


def test_remove_missing_path_leaves_rootfs(dirs):
    cache_dir, rootfs = dirs
    RemoveGenerator(cache_dir, rootfs, DefinitionFile(path="/nothing/here")).run_lxd(None, None)
    assert os.listdir(rootfs) == []