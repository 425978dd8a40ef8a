# rootfsgen

Generators that write files into a container or virtual-machine root
filesystem while an image is being built, and helpers for preparing
Windows installation media.

## Installation

```
pip install .
```

## Generators

Each generator is created from an entry of an image definition (a
`rootfsgen.base.DefinitionFile`) together with a cache directory, the root
filesystem directory, the image definition as a mapping, and an optional
logger. Every generator subclasses `rootfsgen.base.Generator` and offers
three entry points:

- `run_lxc(img, target)` – prepare the root filesystem for an LXC image
- `run_lxd(img, target)` – prepare the root filesystem and template metadata for an LXD image
- `run()` – prepare a plain root filesystem

Generators are looked up by name with `rootfsgen.registry.load`; the
names and classes are listed in `rootfsgen.registry.GENERATORS`:

```python
from rootfsgen.base import DefinitionFile
from rootfsgen.registry import load

entry = DefinitionFile(path="/etc/motd", content="Welcome")
generator = load("dump", "/var/cache/build", "/var/cache/build/rootfs", entry, {})
generator.run()
```

An unknown name raises `UnknownGeneratorError`. The `fstab` and
`lxd-agent` generators raise `NotSupportedError` from `run_lxc`, and
`cloud-init` raises `ValueError` from `run_lxd` for an unknown entry name.

| Name         | Class                  | Purpose                                             |
|--------------|------------------------|-----------------------------------------------------|
| `copy`       | `CopyGenerator`        | copy files, directories or glob matches             |
| `dump`       | `DumpGenerator`        | write given content to a file                       |
| `remove`     | `RemoveGenerator`      | delete a path                                       |
| `cloud-init` | `CloudInitGenerator`   | disable cloud-init (LXC) or add its templates (LXD) |
| `hostname`   | `HostnameGenerator`    | make the hostname file a template                   |
| `hosts`      | `HostsGenerator`       | make the hosts file a template                      |
| `template`   | `TemplateGenerator`    | add an arbitrary LXD template                       |
| `fstab`      | `FstabGenerator`       | write `/etc/fstab` for a VM image                   |
| `lxd-agent`  | `LXDAgentGenerator`    | install agent units for systemd or OpenRC           |

The `img` argument is supplied by the caller. LXC generators call
`img.add_template(path)`; LXD generators store
`rootfsgen.base.ImageMetadataTemplate` entries in the dictionary
`img.metadata.templates`, keyed by the path inside the image. Template
files for LXD are written to `<cache_dir>/templates`.

When an entry has `pongo` set, its content, path and source are rendered
as Jinja templates against the image definition before use, via
`rootfsgen.base.render_template`. File mode, group and owner from the
entry are applied with `rootfsgen.base.update_file_access` by the `copy`
and `dump` generators.

## Windows media helpers

`rootfsgen.windows` holds the parts of repacking a Windows ISO that work
on names, text and directory trees:

```python
from rootfsgen.windows import detect_windows_version, detect_windows_architecture, to_hex

detect_windows_version("Windows_Server_2019.iso")          # "2k19"
detect_windows_architecture("Win10_22H2_English_x64.iso")  # "amd64"
to_hex("ab")                                                # "61,00,62,00"
```

It also resolves and validates versions and architectures
(`resolve_version`, `resolve_architecture`), parses image indexes from WIM
information output (`parse_wim_indexes`), locates `boot.wim` and
`install.wim` (`find_wim_files`), finds the driver-related directories of
a mounted image (`find_windows_directories`, returning
`WindowsDirectories`) and reads a driver's `ClassGuid` (`read_class_guid`).

## What this package does not do

There is no command-line tool. The package does not download distribution
sources, run package managers, enter a chroot, build or compress LXC or
LXD image archives, create VM disk images, or mount and rewrite ISO and
WIM files. It provides the generators and helpers that such a build
process uses, and leaves the image objects and the build steps around
them to the caller.

## Running the tests

```
pip install .[test]
pytest
```