"""Break-deduction rules: gross minutes to net minutes and back.

Deduction policy (ratchet)
--------------------------
A rule applies once gross time *strictly exceeds* its threshold. When gross
crosses a threshold, net time is held at the value it had at the threshold
until ``gross - deduction`` catches up, so net time never goes down as gross
time grows. With the default rules ``[(360, 30), (540, 50)]``:

    gross 360 -> net 360      gross 390 -> net 360      gross 540 -> net 510
    gross 361 -> net 360      gross 391 -> net 361      gross 560 -> net 510

Formally, for the highest applied rule k,
``floor_k = max(floor_{k-1}, threshold_k - deduction_{k-1})`` and
``net = max(floor_k, gross - deduction_k)``. ``net`` is non-decreasing and
never exceeds ``gross``, which is what ``target_gross_for_net`` relies on.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Any

from worktime.errors import InvalidInput, NegativeDuration, RuleOrder
from worktime.models import DeductionRule, TargetProgress, WorkSummary, parse_rule
from worktime.timeconv import (
    MS_PER_MINUTE,
    is_valid_day_key,
    is_valid_time_of_day,
    minutes_between,
    resolve_local_time,
)

RuleInput = Iterable[DeductionRule | dict[str, Any]] | None


def normalize_rules(rules: RuleInput) -> list[DeductionRule]:
    """Sorted, de-duplicated, non-negative integer rules.

    Entries with a non-numeric field are dropped. On duplicate thresholds
    the entry that came last in the input wins.
    """
    by_threshold: dict[int, DeductionRule] = {}
    for raw in rules or []:
        rule = parse_rule(raw)
        if rule is not None:
            by_threshold[rule.threshold_min] = rule
    return [by_threshold[t] for t in sorted(by_threshold)]


def validate_rule_order(rules: RuleInput) -> list[DeductionRule]:
    """Check rules as entered by a user and return them normalized.

    Raises InvalidInput for entries that are not numeric rules and RuleOrder
    when the thresholds are not strictly increasing in the given order.
    """
    parsed = []
    for raw in rules or []:
        rule = parse_rule(raw)
        if rule is None:
            raise InvalidInput(f"Invalid deduction rule: {raw!r}")
        parsed.append(rule)
    for prev, cur in zip(parsed, parsed[1:]):
        if cur.threshold_min <= prev.threshold_min:
            raise RuleOrder()
    return normalize_rules(parsed)


def net_minutes_from_gross(gross_minutes: float, rules: RuleInput) -> int:
    gross = max(0, math.floor(gross_minutes))
    net = gross
    floor = 0
    prev_deduction = 0
    for rule in normalize_rules(rules):
        if gross <= rule.threshold_min:
            break
        floor = max(floor, rule.threshold_min - prev_deduction)
        net = max(floor, gross - rule.deduction_min)
        prev_deduction = rule.deduction_min
    return max(0, net)


def deduction_minutes(gross_minutes: float, rules: RuleInput) -> int:
    gross = max(0, math.floor(gross_minutes))
    return gross - net_minutes_from_gross(gross, rules)


def summarize_work(start_ms: int, end_ms: int, rules: RuleInput) -> WorkSummary:
    gross = minutes_between(start_ms, end_ms)
    if gross < 0:
        raise NegativeDuration()
    net = net_minutes_from_gross(gross, rules)
    return WorkSummary(gross_minutes=gross, deduction_minutes=gross - net, net_minutes=net)


def target_gross_for_net(target_net_minutes: float, rules: RuleInput) -> int:
    """Smallest gross minute count whose net reaches ``target_net_minutes``."""
    if target_net_minutes <= 0:
        return 0
    target = math.ceil(target_net_minutes)
    normalized = normalize_rules(rules)

    low, high = 0, max(1, target)
    while net_minutes_from_gross(high, normalized) < target:
        high *= 2

    while low < high:
        mid = (low + high) // 2
        if net_minutes_from_gross(mid, normalized) >= target:
            high = mid
        else:
            low = mid + 1
    return low


def target_instant_for_net(check_in_ms: int, target_net_minutes: float, rules: RuleInput) -> int:
    return check_in_ms + target_gross_for_net(target_net_minutes, rules) * MS_PER_MINUTE


def achieved_at(check_in_ms: int, end_ms: int, target_net_minutes: float, rules: RuleInput) -> int | None:
    """Instant the target net time was reached, or None if ``end_ms`` is earlier."""
    reached = target_instant_for_net(check_in_ms, target_net_minutes, rules)
    return reached if end_ms >= reached else None


def target_progress(
    check_in_ms: int,
    end_ms: int,
    targets: Iterable[int],
    rules: RuleInput,
) -> list[TargetProgress]:
    normalized = normalize_rules(rules)
    progress = []
    for target in targets:
        reached = target_instant_for_net(check_in_ms, target, normalized)
        progress.append(TargetProgress(net_minutes=int(target), reached_at_ms=reached, achieved=end_ms >= reached))
    return progress


def summarize_local_span(
    start_day: str,
    start_hm: str,
    end_day: str,
    end_hm: str,
    rules: RuleInput,
) -> WorkSummary:
    """Summarize an arbitrary span given as day/time pairs in the fixed zone."""
    if not (is_valid_day_key(start_day) and is_valid_day_key(end_day)):
        raise InvalidInput()
    if not (is_valid_time_of_day(start_hm) and is_valid_time_of_day(end_hm)):
        raise InvalidInput()
    start_ms = resolve_local_time(start_day, start_hm)
    end_ms = resolve_local_time(end_day, end_hm)
    if end_ms < start_ms:
        raise NegativeDuration()
    return summarize_work(start_ms, end_ms, rules)
