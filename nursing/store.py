"""
Persistence store over a SQLModel session.

Generic keyed CRUD, lookups by a single field, and ordered offset pagination.
Callers group writes with `transaction()`; nothing here commits on its own.
"""

import logging
import math
from contextlib import contextmanager
from typing import Any, Callable, Generic, Iterator, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import func
from sqlmodel import Session, SQLModel, select

from nursing.exceptions import InvalidArgument

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")
M = TypeVar("M", bound=SQLModel)


class Page(BaseModel, Generic[T]):
    """A bounded slice of an ordered result set plus its metadata."""

    content: List[T]
    total_elements: int
    total_pages: int
    number: int
    size: int

    @property
    def first(self) -> bool:
        return self.number == 0

    @property
    def last(self) -> bool:
        return self.number + 1 >= self.total_pages

    def map(self, fn: Callable[[T], U]) -> "Page[U]":
        return Page(
            content=[fn(item) for item in self.content],
            total_elements=self.total_elements,
            total_pages=self.total_pages,
            number=self.number,
            size=self.size,
        )


class Store:
    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def transaction(self) -> Iterator["Store"]:
        """One atomic unit of work: commit on success, roll back on any error."""
        try:
            yield self
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def get(self, model: Type[M], id: Any) -> Optional[M]:
        return self.session.get(model, id)

    def save(self, record: M) -> M:
        """Insert or replace by primary key."""
        if getattr(record, "id", None) is not None and record not in self.session:
            record = self.session.merge(record)
        else:
            self.session.add(record)
        self.session.flush()
        self.session.refresh(record)
        return record

    def delete(self, record: SQLModel) -> None:
        self.session.delete(record)
        self.session.flush()

    def delete_by_id(self, model: Type[M], id: Any) -> bool:
        record = self.get(model, id)
        if record is None:
            return False
        self.delete(record)
        return True

    def exists_by_field(
        self, model: Type[M], field: str, value: Any, exclude_id: Optional[Any] = None
    ) -> bool:
        """True when some record has `field == value`, ignoring the record `exclude_id`."""
        statement = select(model).where(getattr(model, field) == value)
        if exclude_id is not None:
            statement = statement.where(getattr(model, "id") != exclude_id)
        statement = statement.limit(1)
        return self.session.exec(statement).first() is not None

    def find_all(self, model: Type[M], order_by: Sequence[Any] = ()) -> List[M]:
        return list(self.session.exec(select(model).order_by(*order_by)).all())

    def find_by_field(
        self, model: Type[M], field: str, value: Any, order_by: Sequence[Any] = ()
    ) -> List[M]:
        statement = select(model).where(getattr(model, field) == value).order_by(*order_by)
        return list(self.session.exec(statement).all())

    def delete_by_field(self, model: Type[M], field: str, value: Any) -> int:
        records = self.find_by_field(model, field, value)
        for record in records:
            self.session.delete(record)
        self.session.flush()
        return len(records)

    def page(
        self,
        model: Type[M],
        where: Any = None,
        order_by: Sequence[Any] = (),
        page_number: int = 0,
        page_size: int = 10,
    ) -> Page[M]:
        if page_number < 0:
            raise InvalidArgument("Page index must not be less than zero")
        if page_size < 1:
            raise InvalidArgument("Page size must not be less than one")

        count_statement = select(func.count()).select_from(model)
        statement = select(model)
        if where is not None:
            count_statement = count_statement.where(where)
            statement = statement.where(where)

        total = self.session.exec(count_statement).one()
        content = self.session.exec(
            statement.order_by(*order_by).offset(page_number * page_size).limit(page_size)
        ).all()
        logger.debug(
            f"Paged {model.__name__}: page {page_number} size {page_size}, {total} total"
        )
        return Page(
            content=list(content),
            total_elements=total,
            total_pages=math.ceil(total / page_size),
            number=page_number,
            size=page_size,
        )
