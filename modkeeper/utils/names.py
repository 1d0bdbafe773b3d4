"""
Module name helpers.

Puppet module names show up in several spellings: ``puppetlabs/stdlib`` in
a Puppetfile, ``puppetlabs-stdlib`` in Forge API payloads, and arbitrary
capitalisation in hand-written manifests. :func:`normalize_name` folds all
of them into one canonical key (lowercase, dash separated) and is applied
once, when a :class:`~modkeeper.models.module.Module` or a release
dependency is built. Everything downstream compares keys only.
"""

from __future__ import annotations

from typing import List, NamedTuple

UNKNOWN_OWNER = "unknown"


class ModuleNameParts(NamedTuple):
    owner: str
    name: str


def split_module_name(module_name: str) -> ModuleNameParts:
    """Split a module name into owner and short name.

    A ``/`` wins over ``-`` as the separator, and only the first ``-`` is
    used so ``puppet-nginx-extra`` keeps its dashes in the short name.
    Names without an owner get ``unknown``.

    Examples:
        >>> split_module_name("puppetlabs/stdlib")
        ModuleNameParts(owner='puppetlabs', name='stdlib')
        >>> split_module_name("puppet-nginx")
        ModuleNameParts(owner='puppet', name='nginx')
    """
    text = (module_name or "").strip()

    if "/" in text:
        owner, _, name = text.partition("/")
    elif "-" in text:
        owner, _, name = text.partition("-")
    else:
        owner, name = UNKNOWN_OWNER, text

    return ModuleNameParts(owner, name)


def normalize_name(module_name: str) -> str:
    """Return the canonical key for *module_name*.

    Examples:
        >>> normalize_name("Puppetlabs/StdLib")
        'puppetlabs-stdlib'
        >>> normalize_name("puppetlabs-stdlib")
        'puppetlabs-stdlib'
    """
    parts = split_module_name(module_name)
    return f"{parts.owner}-{parts.name}".lower()


def to_slash_format(module_name: str) -> str:
    """Puppetfile spelling: ``owner/name`` (case preserved)."""
    parts = split_module_name(module_name)
    return f"{parts.owner}/{parts.name}"


def to_forge_slug(module_name: str) -> str:
    """Forge API spelling: ``owner-name`` (case preserved)."""
    parts = split_module_name(module_name)
    return f"{parts.owner}-{parts.name}"


def module_name_variants(module_name: str) -> List[str]:
    """Return alternative Forge slugs to try when a lookup 404s.

    Vox Pupuli modules moved from ``puppetlabs/puppet-<x>`` style names to
    ``puppet/<x>``; old manifests still use either spelling.

    Examples:
        >>> module_name_variants("puppet/nginx")
        ['puppet-nginx', 'puppetlabs-puppet-nginx']
    """
    parts = split_module_name(module_name)
    variants = [to_forge_slug(module_name)]

    if parts.owner.lower() == "puppetlabs" and parts.name.lower().startswith("puppet-"):
        variants.append(f"puppet-{parts.name[len('puppet-'):]}")

    if parts.owner.lower() == "puppet":
        variants.append(f"puppetlabs-puppet-{parts.name}")

    return list(dict.fromkeys(variants))


def are_equivalent(name1: str, name2: str) -> bool:
    return normalize_name(name1) == normalize_name(name2)
