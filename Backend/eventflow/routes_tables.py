"""
Seating table endpoints.

    GET    /events/{event_id}/tables                   -> by table number
    POST   /events/{event_id}/tables                   -> one table, 409 on a taken number
    POST   /events/{event_id}/tables/bulk              -> count tables numbered max+1 ..
    PATCH  /events/{event_id}/tables/{resource_id}     -> label, capacity
    DELETE /events/{event_id}/tables/{resource_id}
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from .core.db import get_session
from .core.errors import Conflict, InvalidInput
from .core.responses import success_response
from .models import Table
from .resources import TABLES, clean_text, delete_resource, list_resources, update_resource
from .schemas import TableBulkCreate, TableCreate, TableOut, TableUpdate
from .tenancy import EventContext, ResourceContext, get_event_context, max_in_event, scoped_select

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events/{event_id}/tables", tags=["tables"])

require_table = TABLES.dependency

MAX_BULK_TABLES = 100


@router.get("")
async def list_tables(
    ctx: EventContext = Depends(get_event_context),
    session: AsyncSession = Depends(get_session),
):
    tables = await list_resources(session, TABLES, ctx)
    return [TableOut.model_validate(table) for table in tables]


@router.post("", status_code=201)
async def create_table(
    body: TableCreate,
    ctx: EventContext = Depends(get_event_context),
    session: AsyncSession = Depends(get_session),
):
    if not body.table_number:
        raise InvalidInput("Table number is required")

    taken = await session.execute(
        scoped_select(Table, ctx.event_id).where(Table.table_number == body.table_number)
    )
    if taken.scalar_one_or_none() is not None:
        raise Conflict(f"Table {body.table_number} already exists")

    table = Table(
        event_id=ctx.event_id,
        table_number=body.table_number,
        label=clean_text(body.label) or None,
        capacity=body.capacity,
    )
    session.add(table)
    await session.commit()
    await session.refresh(table)

    logger.info(f"Added table {table.table_number} to event {ctx.event_id}")
    return {"table": TableOut.model_validate(table)}


@router.post("/bulk", status_code=201)
async def create_tables_bulk(
    body: TableBulkCreate,
    ctx: EventContext = Depends(get_event_context),
    session: AsyncSession = Depends(get_session),
):
    """
    Append count tables after the highest existing number.

    With M as the current highest number, creates M+1 .. M+count.
    """
    if body.count is None or not 1 <= body.count <= MAX_BULK_TABLES:
        raise InvalidInput(f"Count must be between 1 and {MAX_BULK_TABLES}")

    start_from = await max_in_event(session, Table.table_number, ctx.event_id) + 1
    await session.execute(
        insert(Table),
        [
            {"event_id": ctx.event_id, "table_number": start_from + offset, "capacity": body.seats_per_table}
            for offset in range(body.count)
        ],
    )
    await session.commit()

    logger.info(f"Created tables {start_from}..{start_from + body.count - 1} for event {ctx.event_id}")
    return {"created": body.count, "startFrom": start_from}


@router.patch("/{resource_id}")
async def update_table(
    body: TableUpdate,
    ctx: ResourceContext = Depends(require_table),
    session: AsyncSession = Depends(get_session),
):
    table = await update_resource(session, TABLES, ctx, body.changes())
    return {"table": TableOut.model_validate(table)}


@router.delete("/{resource_id}")
async def delete_table(
    ctx: ResourceContext = Depends(require_table),
    session: AsyncSession = Depends(get_session),
):
    await delete_resource(session, TABLES, ctx)
    return success_response()
