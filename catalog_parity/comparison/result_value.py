"""
ResultValue classification.

Every backend result is mapped to exactly one ValueKind before it is
compared. The mapping is a closed lookup: scalar and container types are
listed explicitly, composite records are either registered dataclasses
(``@record_type``) or generic ``Record`` instances. Anything else is rejected.
"""

import dataclasses
from collections import OrderedDict, defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Tuple, Type

from catalog_parity.verification.exceptions import UnclassifiableValueError


class ValueKind(Enum):
    """The four ResultValue categories."""

    SCALAR = "scalar"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    RECORD = "record"


@dataclass
class Record:
    """
    Generic composite record: a type name plus named attributes.

    Used by mapping layers that produce loosely shaped records, where an
    attribute may be present on one side only.
    """

    type_name: str
    attributes: Dict[str, Any] = field(default_factory=dict)


_KIND_BY_TYPE: Dict[type, ValueKind] = {
    type(None): ValueKind.SCALAR,
    str: ValueKind.SCALAR,
    bytes: ValueKind.SCALAR,
    bool: ValueKind.SCALAR,
    int: ValueKind.SCALAR,
    float: ValueKind.SCALAR,
    Decimal: ValueKind.SCALAR,
    list: ValueKind.SEQUENCE,
    tuple: ValueKind.SEQUENCE,
    dict: ValueKind.MAPPING,
    OrderedDict: ValueKind.MAPPING,
    defaultdict: ValueKind.MAPPING,
    Record: ValueKind.RECORD,
}

# registered record type -> declared attribute names, in declaration order
_RECORD_TYPES: Dict[type, Tuple[str, ...]] = {}


def record_type(cls: Type) -> Type:
    """
    Class decorator declaring a dataclass as a composite record.

    The declared attribute set is the dataclass's field list.

    Raises:
        TypeError: If ``cls`` is not a dataclass
    """
    if not dataclasses.is_dataclass(cls):
        raise TypeError(f"{cls.__name__} must be a dataclass to be registered as a record")
    _RECORD_TYPES[cls] = tuple(f.name for f in dataclasses.fields(cls))
    return cls


def classify(value: Any) -> ValueKind:
    """
    Map a value to its ValueKind.

    Raises:
        UnclassifiableValueError: If the value's type is not part of the closed set
    """
    kind = _KIND_BY_TYPE.get(type(value))
    if kind is not None:
        return kind
    if isinstance(value, Enum):
        return ValueKind.SCALAR
    if type(value) in _RECORD_TYPES:
        return ValueKind.RECORD
    raise UnclassifiableValueError(
        f"Cannot classify value of type {type(value).__name__}; "
        "register it with @record_type or convert it before comparison"
    )


def record_type_name(value: Any) -> str:
    """Name identifying the record type of a RECORD-kind value."""
    if isinstance(value, Record):
        return value.type_name
    return type(value).__name__


def record_attributes(value: Any) -> Dict[str, Any]:
    """Declared attributes of a RECORD-kind value, in declaration order."""
    if isinstance(value, Record):
        return dict(value.attributes)
    names = _RECORD_TYPES.get(type(value))
    if names is None:
        raise UnclassifiableValueError(f"{type(value).__name__} is not a registered record type")
    return {name: getattr(value, name) for name in names}
