"""Validation engine: apply a RuleSet to requests and aggregate diagnostics."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

from convcheck.engine.matchers import run_matcher
from convcheck.engine.model import Diagnostic, Severity, ValidationResult

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from convcheck.engine.model import Rule, ValidationRequest
    from convcheck.engine.ruleset import RuleSet

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Rule selection and evaluation
# ---------------------------------------------------------------------------


def applicable_rules(ruleset: RuleSet, request: ValidationRequest) -> list[Rule]:
    """Enabled rules whose category the request serves, in registration order."""
    categories = set(request.categories)
    return [rule for rule in ruleset if rule.enabled and rule.category in categories]


def evaluate_rule(rule: Rule, request: ValidationRequest) -> Diagnostic | None:
    """Run one rule's matcher and render its diagnostic, if any.

    A matcher or message template that raises is reported as an ERROR
    diagnostic for that rule so sibling rules are still evaluated.
    """
    try:
        mismatch = run_matcher(rule.matcher, request, rule.params)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Matcher '%s' failed for rule %s: %s", rule.matcher, rule.id, exc)
        return Diagnostic(
            rule_id=rule.id,
            severity=Severity.ERROR,
            message=f"matcher '{rule.matcher}' failed: {exc}",
        )

    if mismatch is None:
        return None

    try:
        message = rule.render(mismatch)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Message template of rule %s failed: %s", rule.id, exc)
        return Diagnostic(
            rule_id=rule.id,
            severity=Severity.ERROR,
            message=f"message template failed: {exc!r} (value '{mismatch.value}')",
            span=mismatch.span,
        )
    return Diagnostic(
        rule_id=rule.id,
        severity=rule.severity,
        message=message,
        span=mismatch.span,
    )


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def aggregate(ruleset: RuleSet, diagnostics: Iterable[Diagnostic]) -> ValidationResult:
    """Merge diagnostics into a result.

    Diagnostics are ordered by rule registration order (stable for equal
    positions) and exact ``(rule_id, span)`` duplicates are dropped, so the
    outcome does not depend on evaluation order.
    """
    ordered = sorted(
        diagnostics,
        key=lambda d: (ruleset.index_of(d.rule_id), d.span or (-1, -1), d.message),
    )

    seen: set[tuple[str, tuple[int, int] | None]] = set()
    unique: list[Diagnostic] = []
    for diag in ordered:
        key = (diag.rule_id, diag.span)
        if key in seen:
            continue
        seen.add(key)
        unique.append(diag)

    ok = not any(d.severity is Severity.ERROR for d in unique)
    return ValidationResult(ok=ok, diagnostics=tuple(unique))


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def validate(ruleset: RuleSet, request: ValidationRequest) -> ValidationResult:
    """Validate a single request against *ruleset*.

    No applicable rule means ``ok=True`` with no diagnostics.
    """
    rules = applicable_rules(ruleset, request)
    logger.debug(
        "Validating %s with %d rule(s)", type(request).__name__, len(rules)
    )

    diagnostics: list[Diagnostic] = []
    for rule in rules:
        diag = evaluate_rule(rule, request)
        if diag is not None:
            diagnostics.append(diag)
    return aggregate(ruleset, diagnostics)


def validate_batch(
    ruleset: RuleSet,
    requests: Sequence[ValidationRequest],
    *,
    max_workers: int | None = None,
) -> list[ValidationResult]:
    """Validate independent requests concurrently.

    Results are returned in the order of *requests*.
    """
    if not requests:
        return []
    if max_workers == 1 or len(requests) == 1:
        return [validate(ruleset, r) for r in requests]

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(lambda r: validate(ruleset, r), requests))
