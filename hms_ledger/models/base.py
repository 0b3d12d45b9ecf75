# hms_ledger/models/base.py
from enum import Enum as PyEnum

from sqlalchemy import Enum as SAEnum, Numeric
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all ORM models.
    """

    pass


# Fixed-point column type for every currency field.
Money = Numeric(12, 2)


def enum_column_type(enum_cls: type[PyEnum], name: str) -> SAEnum:
    """
    Enum column that stores the enum *values* (e.g. 'consultation'),
    so raw SQL predicates like partial index filters can use them.
    """
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda e: [m.value for m in e],
        validate_strings=True,
    )
