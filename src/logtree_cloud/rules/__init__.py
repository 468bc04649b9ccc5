"""Threshold alert rules over folder log volume."""

from logtree_cloud.rules.engine import (
    create_rule,
    delete_rule,
    execute_triggered_rule,
    get_rule_alert_message,
    get_rules_for_user,
    is_rule_triggered,
    run_all_rules_for_organization,
    run_rules,
)

__all__ = [
    "create_rule",
    "delete_rule",
    "execute_triggered_rule",
    "get_rule_alert_message",
    "get_rules_for_user",
    "is_rule_triggered",
    "run_all_rules_for_organization",
    "run_rules",
]
