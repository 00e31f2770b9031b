"""Textual patches for the shared docker-compose template.

The upstream compose file is foreign and keeps evolving, so it is never
parsed into an object model here. Every change is a :class:`PatchOperation`
(find pattern -> replacement) over the whole document text, which leaves
fields this module does not know about byte-for-byte intact. Each operation
only matches the unpatched form, so re-applying a patch is a no-op.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from typing import TypeAlias
from dataclasses import dataclass
from pathlib import Path

Replacement: TypeAlias = str | Callable[[re.Match[str]], str]


@dataclass(frozen=True, slots=True)
class PatchOperation:
    """One find-pattern -> replacement rewrite."""

    description: str
    pattern: re.Pattern[str]
    replacement: Replacement

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


@dataclass(frozen=True, slots=True)
class PortBinding:
    host_port: int
    container_port: int
    env_var: str


PORT_BINDINGS: tuple[PortBinding, ...] = (
    PortBinding(8000, 8000, "KONG_HTTP_PORT"),
    PortBinding(8443, 8443, "KONG_HTTPS_PORT"),
    PortBinding(3000, 3000, "STUDIO_PORT"),
    PortBinding(4000, 4000, "ANALYTICS_PORT"),
    PortBinding(5432, 5432, "POSTGRES_PORT"),
    PortBinding(6543, 6543, "POOLER_PROXY_PORT_TRANSACTION"),
)

# Generic container names shipped by the template, minus the "supabase-" prefix.
SERVICE_SUFFIXES: tuple[str, ...] = (
    "studio",
    "kong",
    "auth",
    "rest",
    "storage",
    "imgproxy",
    "meta",
    "edge-functions",
    "analytics",
    "db",
    "vector",
    "pooler",
)


def port_operation(binding: PortBinding) -> PatchOperation:
    pattern = re.compile(
        rf"-\s*[\"']?{binding.host_port}:{binding.container_port}(?!\d)[\"']?"
    )
    replacement = f"- ${{{binding.env_var}:-{binding.host_port}}}:{binding.container_port}"
    return PatchOperation(
        description=f"host port {binding.host_port} -> ${binding.env_var}",
        pattern=pattern,
        replacement=lambda _match: replacement,
    )


PORT_OPERATIONS: tuple[PatchOperation, ...] = tuple(port_operation(b) for b in PORT_BINDINGS)


def identity_operations(slug: str) -> list[PatchOperation]:
    """Operations renaming containers and the compose project after ``slug``."""
    operations: list[PatchOperation] = []
    for suffix in SERVICE_SUFFIXES:
        pattern = re.compile(
            rf"(container_name:\s*[\"']?)supabase-{re.escape(suffix)}(?![\w.-])"
        )
        operations.append(
            PatchOperation(
                description=f"container supabase-{suffix} -> {slug}-{suffix}",
                pattern=pattern,
                replacement=lambda match, s=suffix: f"{match.group(1)}{slug}-{s}",
            )
        )
    operations.append(
        PatchOperation(
            description=f"container realtime-dev.supabase-realtime -> {slug}",
            pattern=re.compile(r"(container_name:\s*[\"']?)realtime-dev\.supabase-realtime(?![\w.-])"),
            replacement=lambda match: f"{match.group(1)}realtime-dev.{slug}-realtime",
        )
    )
    operations.append(
        PatchOperation(
            description=f"compose project name -> {slug}",
            pattern=re.compile(r"^name:\s*[\"']?supabase[\"']?\s*$", re.MULTILINE),
            replacement=lambda _match: f"name: {slug}",
        )
    )
    return operations


def apply_operations(text: str, operations: Iterable[PatchOperation]) -> str:
    for operation in operations:
        text = operation.apply(text)
    return text


def inject_port_vars(text: str) -> str:
    """Replace literal host:container bindings with env-driven ones."""
    return apply_operations(text, PORT_OPERATIONS)


def rewrite_identity(text: str, slug: str) -> str:
    return apply_operations(text, identity_operations(slug))


def _patch_file(path: Path, transform: Callable[[str], str]) -> bool:
    content = path.read_text(encoding="utf-8")
    patched = transform(content)
    if patched == content:
        return False
    path.write_text(patched, encoding="utf-8")
    return True


def patch_compose_ports(compose_file: Path) -> bool:
    """Patch port bindings in place; returns whether the file was rewritten."""
    return _patch_file(compose_file, inject_port_vars)


def apply_identity(compose_file: Path, slug: str) -> bool:
    return _patch_file(compose_file, lambda text: rewrite_identity(text, slug))
