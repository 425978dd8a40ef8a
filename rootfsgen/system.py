"""Generators for fstab and the LXD agent setup inside VM images."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from rootfsgen.base import Generator, NotSupportedError

_FSTAB = (
    "LABEL=rootfs  /         {fs}  {options}  0 0\n"
    "LABEL=UEFI    /boot/efi vfat  defaults  0 0\n"
)

LXD_AGENT_SETUP_SCRIPT = """#!/bin/sh
set -eu
PREFIX="/run/lxd_agent"

# Functions.
mount_virtiofs() {
    mount -t virtiofs config "${PREFIX}/.mnt" >/dev/null 2>&1
}

mount_9p() {
    /sbin/modprobe 9pnet_virtio >/dev/null 2>&1 || true
    /bin/mount -t 9p config "${PREFIX}/.mnt" -o access=0,trans=virtio,size=1048576 >/dev/null 2>&1
}

fail() {
    umount -l "${PREFIX}" >/dev/null 2>&1 || true
    rmdir "${PREFIX}" >/dev/null 2>&1 || true
    echo "${1}"
    exit 1
}

# Setup the mount target.
umount -l "${PREFIX}" >/dev/null 2>&1 || true
mkdir -p "${PREFIX}"
mount -t tmpfs tmpfs "${PREFIX}" -o mode=0700,size=50M
mkdir -p "${PREFIX}/.mnt"

# Try virtiofs first.
mount_virtiofs || mount_9p || fail "Couldn't mount virtiofs or 9p, failing."

# Copy the data.
cp -Ra "${PREFIX}/.mnt/"* "${PREFIX}"

# Unmount the temporary mount.
umount "${PREFIX}/.mnt"
rmdir "${PREFIX}/.mnt"

# Fix up permissions.
chown -R root:root "${PREFIX}"
"""

_SERVICE_UNIT = """[Unit]
Description=LXD - agent
ConditionPathExists=/dev/virtio-ports/org.linuxcontainers.lxd
Before=cloud-init.target cloud-init.service cloud-init-local.service
DefaultDependencies=no

[Service]
Type=notify
WorkingDirectory=-/run/lxd_agent
ExecStartPre={systemd_path}/lxd-agent-setup
ExecStart=/run/lxd_agent/lxd-agent
Restart=on-failure
RestartSec=5s
StartLimitInterval=60
StartLimitBurst=10

[Install]
WantedBy=multi-user.target
"""

_UDEV_RULES = (
    'ACTION=="add", SYMLINK=="virtio-ports/org.linuxcontainers.lxd", TAG+="systemd", '
    'ACTION=="add", RUN+="/bin/systemctl start lxd-agent.service"'
)

_OPENRC_AGENT = """#!/sbin/openrc-run

description="LXD - agent"
command=/run/lxd_agent/lxd-agent
command_background=true
pidfile=/run/lxd-agent.pid
start_stop_daemon_args="--chdir /run/lxd_agent"
required_dirs=/run/lxd_agent

depend() {
\tneed lxd-agent-setup
\tafter lxd-agent-setup
\tbefore cloud-init
\tbefore cloud-init-local
}
"""

_OPENRC_SETUP = """#!/sbin/openrc-run

description="LXD - agent - setup"
command=/usr/local/bin/lxd-agent-setup
required_files=/dev/virtio-ports/org.linuxcontainers.lxd
"""


def _lookup(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


def _write_file(path: str, content: str, mode: int) -> None:
    """Write a file, setting ``mode`` only when the file is newly created."""
    created = not os.path.lexists(path)
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(content)
    if created:
        os.chmod(path, mode)


class FstabGenerator(Generator):
    """Write /etc/fstab for VM images."""

    def run_lxc(self, img: Any, target: Any) -> None:
        """LXC images have no fstab support."""
        raise NotSupportedError("fstab generator not supported for LXC")

    def run_lxd(self, img: Any, target: Any) -> None:
        """Write /etc/fstab with the root and UEFI partitions."""
        fs = _lookup(_lookup(target, "vm"), "filesystem") or "ext4"
        options = "defaults"
        if fs == "btrfs":
            options = f"{options},subvol=@"

        with open(self._path("etc", "fstab"), "w", encoding="utf-8") as handle:
            handle.write(_FSTAB.format(fs=fs, options=options))

    def run(self) -> None:
        """Do nothing for a plain rootfs."""
        return None


class LXDAgentGenerator(Generator):
    """Install the units or init scripts that start the LXD agent."""

    def run_lxc(self, img: Any, target: Any) -> None:
        """The LXD agent only makes sense in VMs."""
        raise NotSupportedError()

    def run_lxd(self, img: Any, target: Any) -> None:
        """Detect the init system and install the matching agent setup."""
        init_file = self._path("sbin", "init")
        os.lstat(init_file)

        if os.path.islink(init_file):
            link_target = os.readlink(init_file)
            if "systemd" in link_target:
                self._handle_systemd()
            elif "busybox" in link_target:
                self._init_from_inittab()
            return

        self._init_from_inittab()

    def run(self) -> None:
        """Do nothing for a plain rootfs."""
        return None

    def _handle_systemd(self) -> None:
        systemd_path = "/lib/systemd"
        if not os.path.lexists(self._path(systemd_path)):
            systemd_path = "/usr/lib/systemd"

        service = self._path(systemd_path, "system", "lxd-agent.service")
        _write_file(service, _SERVICE_UNIT.format(systemd_path=systemd_path), 0o644)
        os.symlink(
            service,
            self._path("etc", "systemd", "system", "multi-user.target.wants", "lxd-agent.service"),
        )

        _write_file(self._path(systemd_path, "lxd-agent-setup"), LXD_AGENT_SETUP_SCRIPT, 0o755)

        udev_path = "/lib/udev/rules.d"
        lib_udev = self._path("lib", "udev")
        if os.path.islink(lib_udev) or not os.path.lexists(lib_udev):
            udev_path = "/usr/lib/udev/rules.d"

        _write_file(self._path(udev_path, "99-lxd-agent.rules"), _UDEV_RULES, 0o400)

    def _handle_openrc(self) -> None:
        _write_file(self._path("etc", "init.d", "lxd-agent"), _OPENRC_AGENT, 0o755)
        os.symlink("/etc/init.d/lxd-agent", self._path("etc", "runlevels", "default", "lxd-agent"))

        _write_file(self._path("etc", "init.d", "lxd-agent-setup"), _OPENRC_SETUP, 0o755)
        os.symlink(
            "/etc/init.d/lxd-agent-setup",
            self._path("etc", "runlevels", "default", "lxd-agent-setup"),
        )

        _write_file(self._path("usr", "local", "bin", "lxd-agent-setup"), LXD_AGENT_SETUP_SCRIPT, 0o755)

    def _init_from_inittab(self) -> None:
        with open(self._path("etc", "inittab"), encoding="utf-8") as handle:
            uses_openrc = any("sysinit" in line and "openrc" in line for line in handle)

        if not uses_openrc:
            raise RuntimeError("Failed to determine init system")

        self._handle_openrc()