"""Required-by-convention field checks over the raw config document.

The wire format marks every field optional so that old and new configs stay
compatible; the schema table flags the ones the node cannot start without.
This pass reports every absent required field in one go, so a config can be
fixed in a single edit.
"""

from __future__ import annotations

from collections.abc import Mapping

from node_config.config.schema import MessageSpec, join_path, lookup, message_spec, root_spec
from node_config.domain.violations import ConfigViolation, ViolationCollector, ViolationKind


def find_missing_required(document: Mapping[str, object]) -> tuple[ConfigViolation, ...]:
    """Return one ``MissingRequiredField`` violation per absent required path.

    Only present message values are descended into: a missing ``executor``
    yields a single violation, not one per executor field. Values of the
    wrong shape are left for the loader's type checks.
    """

    collector = ViolationCollector()
    _walk(document, root_spec(), "", collector)
    return collector.items()


def _walk(
    payload: Mapping[str, object],
    spec: MessageSpec,
    path: str,
    collector: ViolationCollector,
) -> None:
    for item in spec.fields:
        field_path = join_path(path, item.json_name)
        value = lookup(payload, item)
        if value is None or (item.repeated and isinstance(value, list) and not value):
            if item.required:
                collector.add(
                    ConfigViolation(
                        path=field_path,
                        kind=ViolationKind.MISSING_REQUIRED_FIELD,
                        message=f"missing required field: {item.display_name}",
                        field_name=item.display_name,
                    )
                )
            continue
        if not item.is_message:
            continue

        child = message_spec(item.type)
        if item.repeated:
            if not isinstance(value, list):
                continue
            for index, entry in enumerate(value):
                if isinstance(entry, Mapping):
                    _walk(entry, child, f"{field_path}[{index}]", collector)
        elif isinstance(value, Mapping):
            _walk(value, child, field_path, collector)


__all__ = ["find_missing_required"]
