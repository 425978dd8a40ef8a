"""Lookup of generators by the name used in image definitions."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from rootfsgen.base import DefinitionFile, Generator, UnknownGeneratorError
from rootfsgen.files import CopyGenerator, DumpGenerator, RemoveGenerator
from rootfsgen.system import FstabGenerator, LXDAgentGenerator
from rootfsgen.templates import (
    CloudInitGenerator,
    HostnameGenerator,
    HostsGenerator,
    TemplateGenerator,
)

GENERATORS: Mapping[str, type[Generator]] = MappingProxyType(
    {
        "cloud-init": CloudInitGenerator,
        "copy": CopyGenerator,
        "dump": DumpGenerator,
        "fstab": FstabGenerator,
        "hostname": HostnameGenerator,
        "hosts": HostsGenerator,
        "lxd-agent": LXDAgentGenerator,
        "remove": RemoveGenerator,
        "template": TemplateGenerator,
    }
)


def load(
    name: str,
    cache_dir: str,
    source_dir: str,
    def_file: DefinitionFile,
    definition: Mapping[str, Any] | None = None,
    logger: logging.Logger | None = None,
) -> Generator:
    """Create and initialise the generator registered under ``name``."""
    try:
        generator_class = GENERATORS[name]
    except KeyError:
        raise UnknownGeneratorError() from None

    return generator_class(cache_dir, source_dir, def_file, definition, logger)