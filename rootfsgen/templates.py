"""Generators that turn rootfs files into LXC and LXD templates."""

from __future__ import annotations

import logging
import os
from typing import Any

from rootfsgen.base import Generator, ImageMetadataTemplate, render_template

_log = logging.getLogger(__name__)

_DEFAULT_WHEN = ("create", "copy")
_CLOUD_INIT_SCRIPTS = frozenset({"cloud-init-local", "cloud-config", "cloud-init", "cloud-final"})
_CLOUD_CONFIG_DEFAULT = "#cloud-config\n{}"

_USER_DATA = (
    '{%- if config_get("cloud-init.user-data", properties.default) == properties.default -%}\n'
    '{{ config_get("user.user-data", properties.default) }}\n'
    "{%- else -%}\n"
    '{{- config_get("cloud-init.user-data", properties.default) }}\n'
    "{%- endif %}\n"
)

_VENDOR_DATA = (
    '{%- if config_get("cloud-init.vendor-data", properties.default) == properties.default -%}\n'
    '{{ config_get("user.vendor-data", properties.default) }}\n'
    "{%- else -%}\n"
    '{{- config_get("cloud-init.vendor-data", properties.default) }}\n'
    "{%- endif %}\n"
)

_META_DATA = (
    "instance-id: {{ container.name }}\n"
    "local-hostname: {{ container.name }}\n"
    '{{ config_get("user.meta-data", "") }}\n'
)

_NETWORK_CONFIG_DEFAULT = (
    "version: 1\n"
    "config:\n"
    "  - type: physical\n"
    '    name: {% if instance.type == "virtual-machine" %}enp5s0{% else %}eth0{% endif %}\n'
    "    subnets:\n"
    "      - type: dhcp\n"
    "        control: auto"
)


def _network_config(default_value: str) -> str:
    return (
        '{%- if config_get("cloud-init.network-config", "") == "" -%}\n'
        '{%- if config_get("user.network-config", "") == "" -%}\n'
        + default_value
        + "\n"
        "{%- else -%}\n"
        '{{- config_get("user.network-config", "") -}}\n'
        "{%- endif -%}\n"
        "{%- else -%}\n"
        '{{- config_get("cloud-init.network-config", "") -}}\n'
        "{%- endif %}\n"
    )


class _TemplateMixin(Generator):
    """Helpers shared by generators that write LXD template files."""

    def _template_dir(self) -> str:
        path = os.path.join(self.cache_dir, "templates")
        os.makedirs(path, mode=0o755, exist_ok=True)
        return path

    def _register(self, img: Any, template: str) -> None:
        when = list(self.def_file.template.when) or list(_DEFAULT_WHEN)
        img.metadata.templates[self.def_file.path] = ImageMetadataTemplate(
            template=template,
            properties=dict(self.def_file.template.properties),
            when=when,
        )

    def _skip_plain_rootfs(self) -> None:
        _log.debug(
            "%s has nothing to apply to a plain rootfs (path %r)",
            type(self).__name__,
            self.def_file.path,
        )


class CloudInitGenerator(_TemplateMixin):
    """Disable cloud-init for LXC images and create its templates for LXD images."""

    def run_lxc(self, img: Any, target: Any) -> None:
        """Disable cloud-init in the rootfs."""
        runlevels = self._path("etc", "runlevels")
        if os.path.lexists(runlevels):
            for dirpath, dirnames, filenames in os.walk(runlevels):
                links = [d for d in dirnames if os.path.islink(os.path.join(dirpath, d))]
                for name in filenames + links:
                    if name in _CLOUD_INIT_SCRIPTS:
                        os.remove(os.path.join(dirpath, name))

        os.makedirs(self._path("etc", "cloud"), mode=0o755, exist_ok=True)
        with open(self._path("etc", "cloud", "cloud-init.disabled"), "w", encoding="utf-8"):
            pass

    def run_lxd(self, img: Any, target: Any) -> None:
        """Write the cloud-init template and register it in the image metadata."""
        template_dir = self._template_dir()
        name = self.def_file.name
        properties: dict[str, str] = {}

        if name == "user-data":
            content = _USER_DATA
            properties["default"] = _CLOUD_CONFIG_DEFAULT
        elif name == "meta-data":
            content = _META_DATA
        elif name == "vendor-data":
            content = _VENDOR_DATA
            properties["default"] = _CLOUD_CONFIG_DEFAULT
        elif name == "network-config":
            content = _network_config(self.def_file.content or _NETWORK_CONFIG_DEFAULT)
        else:
            raise ValueError(f"Unknown cloud-init configuration: {name}")

        template = f"cloud-init-{name}.tpl"

        if name != "network-config" and self.def_file.content:
            properties["default"] = self.def_file.content

        if not content.endswith("\n"):
            content += "\n"

        with open(os.path.join(template_dir, template), "w", encoding="utf-8") as handle:
            handle.write(content)

        if self.def_file.template.properties:
            properties = dict(self.def_file.template.properties)

        target_path = self.def_file.path or os.path.join("/var/lib/cloud/seed/nocloud-net", name)

        img.metadata.templates[target_path] = ImageMetadataTemplate(
            template=template,
            properties=properties,
            when=list(_DEFAULT_WHEN),
        )

    def run(self) -> None:
        """Leave a plain rootfs unchanged."""
        self._skip_plain_rootfs()


class HostnameGenerator(_TemplateMixin):
    """Turn the hostname file into a template."""

    def run_lxc(self, img: Any, target: Any) -> None:
        """Replace the hostname with the LXC placeholder."""
        path = self._path(self.def_file.path)
        if not os.path.lexists(path):
            return

        with open(path, "w", encoding="utf-8") as handle:
            handle.write("LXC_NAME\n")

        img.add_template(self.def_file.path)

    def run_lxd(self, img: Any, target: Any) -> None:
        """Write a hostname template for LXD."""
        if not os.path.lexists(self._path(self.def_file.path)):
            return

        template_dir = self._template_dir()
        with open(os.path.join(template_dir, "hostname.tpl"), "w", encoding="utf-8") as handle:
            handle.write("{{ container.name }}\n")

        self._register(img, "hostname.tpl")

    def run(self) -> None:
        """Leave a plain rootfs unchanged."""
        self._skip_plain_rootfs()


def _hosts_content(content: str, placeholder: str) -> str:
    content = content.replace("distrobuilder", placeholder)
    if placeholder not in content:
        content = f"127.0.1.1\t{placeholder}\n" + content
    return content


class HostsGenerator(_TemplateMixin):
    """Turn the hosts file into a template."""

    def run_lxc(self, img: Any, target: Any) -> None:
        """Put the LXC placeholder into the hosts file."""
        path = self._path(self.def_file.path)
        if not os.path.lexists(path):
            return

        with open(path, encoding="utf-8") as handle:
            content = handle.read()

        with open(path, "w", encoding="utf-8") as handle:
            handle.write(_hosts_content(content, "LXC_NAME"))

        img.add_template(self.def_file.path)

    def run_lxd(self, img: Any, target: Any) -> None:
        """Write a hosts template for LXD."""
        path = self._path(self.def_file.path)
        if not os.path.lexists(path):
            return

        template_dir = self._template_dir()

        with open(path, encoding="utf-8") as handle:
            content = handle.read()

        with open(os.path.join(template_dir, "hosts.tpl"), "w", encoding="utf-8") as handle:
            handle.write(_hosts_content(content, "{{ container.name }}"))

        self._register(img, "hosts.tpl")

    def run(self) -> None:
        """Leave a plain rootfs unchanged."""
        self._skip_plain_rootfs()


class TemplateGenerator(_TemplateMixin):
    """Write arbitrary content as an LXD template."""

    def run_lxc(self, img: Any, target: Any) -> None:
        """LXC has no template support; leave the rootfs unchanged."""
        self._skip_plain_rootfs()

    def run_lxd(self, img: Any, target: Any) -> None:
        """Write the template file and register it in the image metadata."""
        template_dir = self._template_dir()
        template = f"{self.def_file.name}.tpl"

        content = self.def_file.content
        if not content.endswith("\n"):
            content += "\n"

        if self.def_file.pongo:
            content = render_template(content, {"lxd": target})

        with open(os.path.join(template_dir, template), "w", encoding="utf-8") as handle:
            handle.write(content)

        self._register(img, template)

    def run(self) -> None:
        """Leave a plain rootfs unchanged."""
        self._skip_plain_rootfs()