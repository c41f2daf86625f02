"""Configuration loader: parse ``.convcheck.yml`` into a RuleSet and project settings."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import yaml

from convcheck.engine.matchers import MATCHERS
from convcheck.engine.model import Category, Rule, Severity
from convcheck.engine.placement import PlacementSchema
from convcheck.engine.ruleset import (
    DEFAULT_PLACEMENT,
    DEFAULT_SUFFIXES,
    ConventionSettings,
    RuleSet,
    RuleSetError,
    default_rules,
)

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_FILENAMES: tuple[str, ...] = (".convcheck.yml", ".convcheck.yaml", "convcheck.yml")
SUPPORTED_CONFIG_VERSIONS: frozenset[int] = frozenset({1})
_VALID_EXTENDS: frozenset[str] = frozenset({"default", "none"})

DEFAULT_IGNORE: tuple[str, ...] = (
    ".*",
    "*/.*",
    "*.md",
    "*.import",
    "*.godot",
    "*.cfg",
    "LICENSE*",
    "addons/*",
)

_RULE_KEYS: frozenset[str] = frozenset(
    {"id", "matcher", "severity", "enabled", "message", "description", "params"}
)

# ---------------------------------------------------------------------------
# Exceptions / data classes
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when the configuration file is present but invalid."""


@dataclass(frozen=True)
class ProjectConfig:
    """Everything the checker needs from configuration."""

    ruleset: RuleSet
    ignore: tuple[str, ...] = DEFAULT_IGNORE
    source: Path | None = None

    @classmethod
    def default(cls) -> ProjectConfig:
        return cls(ruleset=RuleSet(default_rules()))


# ---------------------------------------------------------------------------
# Section parsing
# ---------------------------------------------------------------------------


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        msg = f"'{key}' must be a mapping"
        raise ValueError(msg)
    return value


def _str_list(value: object, context: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list) or not all(isinstance(v, (str, int)) for v in value):
        msg = f"{context} must be a list of strings"
        raise ValueError(msg)
    return tuple(str(v) for v in value)


def _bool(value: object, context: str) -> bool:
    if not isinstance(value, bool):
        msg = f"{context} must be true or false"
        raise ValueError(msg)
    return value


def _parse_settings(data: dict[str, Any]) -> tuple[ConventionSettings, tuple[str, ...]]:
    """Read the ``commit``, ``branch``, ``suffixes`` and ``placement`` sections."""
    defaults = ConventionSettings()
    changes: dict[str, Any] = {}

    commit = _section(data, "commit")
    if "types" in commit:
        types = _str_list(commit["types"], "commit.types")
        if not types:
            msg = "commit.types must not be empty"
            raise ValueError(msg)
        changes["commit_types"] = types
    for key in ("require_space", "allow_breaking", "ignore_merges"):
        if key in commit:
            changes[key] = _bool(commit[key], f"commit.{key}")

    branch = _section(data, "branch")
    if "exempt" in branch:
        changes["exempt_branches"] = _str_list(branch["exempt"], "branch.exempt")

    suffixes_raw = data.get("suffixes")
    if suffixes_raw is not None:
        if isinstance(suffixes_raw, list):
            suffixes = {str(s): str(s) for s in suffixes_raw}
        elif isinstance(suffixes_raw, dict):
            suffixes = {str(k): str(v) for k, v in suffixes_raw.items()}
        else:
            msg = "'suffixes' must be a mapping of suffix to node type or a list"
            raise ValueError(msg)
        if data.get("extend_suffixes", False):
            suffixes = {**DEFAULT_SUFFIXES, **suffixes}
        changes["suffixes"] = suffixes

    ignore = DEFAULT_IGNORE
    placement = _section(data, "placement")
    if "schema" in placement:
        schema = placement["schema"]
        if not isinstance(schema, dict) or not schema:
            msg = "placement.schema must be a non-empty mapping of path to kinds"
            raise ValueError(msg)
        changes["placement"] = {
            str(prefix): _str_list(kinds, f"placement.schema['{prefix}']")
            for prefix, kinds in schema.items()
        }
    else:
        changes["placement"] = dict(DEFAULT_PLACEMENT)
    if "ignore" in placement:
        ignore = _str_list(placement["ignore"], "placement.ignore")

    return dataclasses.replace(defaults, **changes), ignore


def _base_params(rules: list[Rule]) -> dict[Category, dict[str, Any]]:
    """Shared parameters per category, taken from the default rules."""
    base: dict[Category, dict[str, Any]] = {}
    for rule in rules:
        base.setdefault(rule.category, dict(rule.params))
    return base


_SEQUENCE_PARAMS = frozenset({"types", "exempt"})


def _merge_params(current: dict[str, Any], raw: object, context: str) -> dict[str, Any]:
    if raw is None:
        return current
    if not isinstance(raw, dict):
        msg = f"{context}: 'params' must be a mapping"
        raise ValueError(msg)
    merged = dict(current)
    for key, value in raw.items():
        if key == "schema" and isinstance(value, dict):
            merged["schema"] = PlacementSchema.from_mapping(
                {str(p): _str_list(k, f"{context} params.schema") for p, k in value.items()}
            )
        elif key in _SEQUENCE_PARAMS:
            merged[str(key)] = _str_list(value, f"{context} params.{key}")
        elif isinstance(value, list):
            merged[str(key)] = tuple(value)
        else:
            merged[str(key)] = value
    return merged


def _apply_rule_entries(
    rules: list[Rule], entries: object, base: dict[Category, dict[str, Any]]
) -> list[Rule]:
    """Apply the ``rules:`` list: override existing ids, append new ones."""
    if entries is None:
        return rules
    if not isinstance(entries, list):
        msg = "'rules' must be a list"
        raise ValueError(msg)

    by_id = {rule.id: idx for idx, rule in enumerate(rules)}
    result = list(rules)

    for idx, entry in enumerate(entries):
        if not isinstance(entry, dict):
            msg = f"rule at index {idx} must be a mapping"
            raise ValueError(msg)

        rule_id = entry.get("id")
        if not isinstance(rule_id, str) or not rule_id.strip():
            msg = f"rule at index {idx} missing required 'id' field"
            raise ValueError(msg)
        context = f"rule '{rule_id}'"

        extra = sorted(set(entry) - _RULE_KEYS)
        if extra:
            msg = f"{context}: unknown keys {extra}"
            raise ValueError(msg)

        changes: dict[str, Any] = {}
        if "severity" in entry:
            try:
                changes["severity"] = Severity.parse(str(entry["severity"]))
            except ValueError as exc:
                msg = f"{context}: {exc}"
                raise ValueError(msg) from exc
        if "enabled" in entry:
            changes["enabled"] = _bool(entry["enabled"], f"{context}: enabled")
        for key in ("message", "description"):
            if key in entry:
                changes[key] = str(entry[key])

        if rule_id in by_id:
            current = result[by_id[rule_id]]
            if "matcher" in entry and entry["matcher"] != current.matcher:
                msg = f"{context}: cannot change the matcher of an existing rule"
                raise ValueError(msg)
            changes["params"] = _merge_params(dict(current.params), entry.get("params"), context)
            result[by_id[rule_id]] = dataclasses.replace(current, **changes)
            continue

        matcher = entry.get("matcher")
        if not isinstance(matcher, str) or matcher not in MATCHERS:
            msg = f"{context}: new rules need a 'matcher', one of {sorted(MATCHERS)}"
            raise ValueError(msg)
        if "message" not in entry:
            msg = f"{context}: new rules need a 'message' template"
            raise ValueError(msg)

        category = MATCHERS[matcher].category
        params = _merge_params(dict(base.get(category, {})), entry.get("params"), context)
        changes["params"] = params
        # Duplicate new ids are reported by RuleSet construction.
        result.append(Rule(id=rule_id, category=category, matcher=matcher, **changes))

    return result


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_config(data: object) -> tuple[RuleSet, tuple[str, ...]]:
    """Build a RuleSet and ignore globs from already-parsed YAML data.

    Raises ``ValueError`` (including ``RuleSetError``) on schema errors.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        msg = "configuration must be a YAML mapping"
        raise ValueError(msg)

    version = data.get("version", 1)
    if version not in SUPPORTED_CONFIG_VERSIONS:
        expected = sorted(SUPPORTED_CONFIG_VERSIONS)
        msg = f"unsupported version {version}, expected one of {expected}"
        raise ValueError(msg)

    extends = str(data.get("extends", "default"))
    if extends not in _VALID_EXTENDS:
        msg = f"invalid extends '{extends}', must be one of {sorted(_VALID_EXTENDS)}"
        raise ValueError(msg)

    settings, ignore = _parse_settings(data)
    defaults = default_rules(settings)
    base = _base_params(defaults)
    rules = defaults if extends == "default" else []
    rules = _apply_rule_entries(rules, data.get("rules"), base)
    return RuleSet(rules), ignore


def load_config(path: Path) -> ProjectConfig:
    """Load a configuration file.

    Raises ``ConfigError`` when the file cannot be read, is not valid YAML or
    does not describe a valid RuleSet.
    """
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as exc:
        msg = f"{path.name}: cannot read file: {exc}"
        raise ConfigError(msg) from exc
    except yaml.YAMLError as exc:
        msg = f"{path.name}: invalid YAML: {exc}"
        raise ConfigError(msg) from exc

    try:
        ruleset, ignore = parse_config(data)
    except RuleSetError as exc:
        msg = f"{path.name}: invalid rule set: {exc}"
        raise ConfigError(msg) from exc
    except ValueError as exc:
        msg = f"{path.name}: {exc}"
        raise ConfigError(msg) from exc

    logger.debug("Loaded %d rule(s) from %s", len(ruleset), path)
    return ProjectConfig(ruleset=ruleset, ignore=ignore, source=path)


def find_config(project_root: Path) -> Path | None:
    """Return the first configuration file found in *project_root*."""
    for name in CONFIG_FILENAMES:
        candidate = project_root / name
        if candidate.is_file():
            return candidate
    return None


def resolve_config(project_root: Path, explicit: Path | None = None) -> ProjectConfig:
    """Load *explicit* or the project's configuration, falling back to defaults."""
    path = explicit or find_config(project_root)
    if path is None:
        logger.debug("No configuration found in %s, using defaults", project_root)
        return ProjectConfig.default()
    return load_config(path)
