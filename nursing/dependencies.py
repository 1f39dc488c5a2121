from datetime import datetime

from fastapi import Depends, Query
from sqlmodel import Session

from nursing.config import settings
from nursing.database import get_session
from nursing.models import DateRangeRequest, PageRequest
from nursing.queries import QueryEngine
from nursing.services import RelationshipManager
from nursing.store import Store


def get_store(session: Session = Depends(get_session)) -> Store:
    """
    Wrap the request's session in a store.
    """
    return Store(session)


def get_manager(store: Store = Depends(get_store)) -> RelationshipManager:
    return RelationshipManager(store)


def get_queries(store: Store = Depends(get_store)) -> QueryEngine:
    return QueryEngine(store)


def page_request(
    page: int = Query(0, ge=0, description="Zero-based page number"),
    size: int = Query(settings.default_page_size, ge=1, description="Elements per page"),
) -> PageRequest:
    return PageRequest(page=page, size=size)


def date_range_request(
    start_date: datetime = Query(..., description="Earliest observation time, inclusive"),
    end_date: datetime = Query(..., description="Latest observation time, inclusive"),
) -> DateRangeRequest:
    return DateRangeRequest(start_date=start_date, end_date=end_date)
