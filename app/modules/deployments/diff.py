from typing import Any, Dict

NOT_SET = "(not set)"


def merge_config(old_config: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    """Submitted fields overlay the current config; omitted fields keep their value."""
    return {**(old_config or {}), **(patch or {})}


def compute_diff(
    old_config: Dict[str, Any],
    new_config: Dict[str, Any],
    missing: Any = None,
) -> Dict[str, Dict[str, Any]]:
    """
    Keys whose value differs between the two snapshots, each as {"from", "to"}.
    A key absent on one side is reported with `missing` in its place.
    """
    old_config = old_config or {}
    new_config = new_config or {}
    diff = {}
    for key in sorted(set(old_config) | set(new_config)):
        old_value = old_config.get(key, missing)
        new_value = new_config.get(key, missing)
        if key in old_config and key in new_config and old_value == new_value:
            continue
        diff[key] = {"from": old_value, "to": new_value}
    return diff
