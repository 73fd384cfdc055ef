"""
Structural equivalence checking between two ResultValues.

Values are classified first and compared by kind. Sequences are compared in
order and never realigned; mappings get a key-set check separate from the
per-key value check; records must declare the same attribute set.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List

from catalog_parity.comparison.result_value import (
    ValueKind,
    classify,
    record_attributes,
    record_type_name,
)


class DivergenceKind(Enum):
    """What kind of leaf mismatch a DivergenceRecord describes."""

    VALUE = "value"
    KIND = "kind"
    LENGTH = "length"
    KEY_SET = "key_set"
    SHAPE = "shape"
    TYPE = "type"


@dataclass
class DivergenceRecord:
    """A single located mismatch between the direct and indirect values."""

    path: str
    direct_value: Any
    indirect_value: Any
    kind: DivergenceKind
    reason: str

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "path": self.path or "<root>",
            "kind": self.kind.value,
            "direct": repr(self.direct_value),
            "indirect": repr(self.indirect_value),
            "reason": self.reason,
        }


@dataclass
class ComparisonOutcome:
    """Equivalent when ``records`` is empty, otherwise the ordered divergences."""

    records: List[DivergenceRecord] = field(default_factory=list)

    @property
    def is_equivalent(self) -> bool:
        return not self.records

    @classmethod
    def equivalent(cls) -> "ComparisonOutcome":
        return cls()


def _join(path: str, suffix: str) -> str:
    if suffix.startswith("["):
        return f"{path}{suffix}"
    return f"{path}.{suffix}" if path else suffix


class EquivalenceChecker:
    """
    Compares two values believed to represent the same logical item.

    Stateless; one instance can be shared across calls.
    """

    def compare(self, direct: Any, indirect: Any) -> ComparisonOutcome:
        """
        Compare ``direct`` against ``indirect``.

        Raises:
            UnclassifiableValueError: If either side holds a value outside the
                closed ResultValue set
        """
        records: List[DivergenceRecord] = []
        self._compare(direct, indirect, "", records)
        return ComparisonOutcome(records=records)

    def _compare(self, direct: Any, indirect: Any, path: str, out: List[DivergenceRecord]) -> None:
        direct_kind = classify(direct)
        indirect_kind = classify(indirect)

        if direct_kind is not indirect_kind:
            out.append(
                DivergenceRecord(
                    path,
                    direct,
                    indirect,
                    DivergenceKind.KIND,
                    f"{direct_kind.value} vs {indirect_kind.value}",
                )
            )
            return

        if direct_kind is ValueKind.SCALAR:
            self._compare_scalars(direct, indirect, path, out)
        elif direct_kind is ValueKind.SEQUENCE:
            self._compare_sequences(direct, indirect, path, out)
        elif direct_kind is ValueKind.MAPPING:
            self._compare_mappings(direct, indirect, path, out)
        else:
            self._compare_records(direct, indirect, path, out)

    def _compare_scalars(self, direct, indirect, path, out) -> None:
        if direct is None and indirect is None:
            return
        # 1 == 1.0 and True == 1 in Python; the backends must agree on type too
        if type(direct) is type(indirect) and direct == indirect:
            return
        out.append(
            DivergenceRecord(
                path,
                direct,
                indirect,
                DivergenceKind.VALUE,
                f"{direct!r} != {indirect!r}",
            )
        )

    def _compare_sequences(self, direct, indirect, path, out) -> None:
        if len(direct) != len(indirect):
            out.append(
                DivergenceRecord(
                    path,
                    len(direct),
                    len(indirect),
                    DivergenceKind.LENGTH,
                    f"Lengths differ: direct {len(direct)}, indirect {len(indirect)}",
                )
            )
            return
        for index, (d_item, i_item) in enumerate(zip(direct, indirect)):
            self._compare(d_item, i_item, _join(path, f"[{index}]"), out)

    def _compare_mappings(self, direct, indirect, path, out) -> None:
        direct_keys = set(direct.keys())
        indirect_keys = set(indirect.keys())

        if direct_keys != indirect_keys:
            only_direct = sorted(direct_keys - indirect_keys, key=repr)
            only_indirect = sorted(indirect_keys - direct_keys, key=repr)
            out.append(
                DivergenceRecord(
                    path,
                    only_direct,
                    only_indirect,
                    DivergenceKind.KEY_SET,
                    f"Key sets differ: only in direct {only_direct}, "
                    f"only in indirect {only_indirect}",
                )
            )

        for key in sorted(direct_keys & indirect_keys, key=repr):
            self._compare(direct[key], indirect[key], _join(path, f"[{key}]"), out)

    def _compare_records(self, direct, indirect, path, out) -> None:
        direct_type = record_type_name(direct)
        indirect_type = record_type_name(indirect)
        if direct_type != indirect_type:
            out.append(
                DivergenceRecord(
                    path,
                    direct_type,
                    indirect_type,
                    DivergenceKind.TYPE,
                    f"Record types differ: {direct_type} vs {indirect_type}",
                )
            )
            return

        direct_attrs = record_attributes(direct)
        indirect_attrs = record_attributes(indirect)

        for name in direct_attrs:
            if name not in indirect_attrs:
                out.append(
                    DivergenceRecord(
                        _join(path, name),
                        direct_attrs[name],
                        None,
                        DivergenceKind.SHAPE,
                        f"Attribute {name} missing from indirect",
                    )
                )
        for name in indirect_attrs:
            if name not in direct_attrs:
                out.append(
                    DivergenceRecord(
                        _join(path, name),
                        None,
                        indirect_attrs[name],
                        DivergenceKind.SHAPE,
                        f"Attribute {name} missing from direct",
                    )
                )

        for name, value in direct_attrs.items():
            if name in indirect_attrs:
                self._compare(value, indirect_attrs[name], _join(path, name), out)
