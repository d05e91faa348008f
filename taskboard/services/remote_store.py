from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskboard.core.exceptions import StoreError, RecordNotFoundError, UnknownTableError
from taskboard.models import Project, ProjectProgress, Status, Task
from taskboard.schemas.realtime import ChangeEvent, ChangeEventType
from taskboard.services.change_feed import ChangeFeed, ChangeCallback
from taskboard.logs import debug_logger, api_logger


TABLES = {
    "projects": Project,
    "statuses": Status,
    "tasks": Task,
    "project_progress": ProjectProgress,
}


def row_to_dict(obj) -> Dict[str, Any]:
    """Convert a mapped instance to a plain row dict"""
    return {column.name: getattr(obj, column.name) for column in obj.__table__.columns}


class RemoteStore:
    """
    Table-addressed async access to the relational store plus its change feed.

    Every successful mutation is committed first and then published as a
    row-level ChangeEvent to the subscribers of that table.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], feed: Optional[ChangeFeed] = None):
        self._session_factory = session_factory
        self.feed = feed or ChangeFeed()

    @staticmethod
    def _model(table: str):
        try:
            return TABLES[table]
        except KeyError:
            raise UnknownTableError(f"Unknown table '{table}'", table=table) from None

    @staticmethod
    def _column(model, name: str):
        if name not in model.__table__.columns:
            raise StoreError(f"Unknown column '{name}' in table '{model.__tablename__}'", table=model.__tablename__)
        return getattr(model, name)

    def _clean(self, model, row: Dict[str, Any]) -> Dict[str, Any]:
        for key in row:
            self._column(model, key)
        return {key: value for key, value in row.items()}

    @staticmethod
    def _order_names(order_by: Union[None, str, Iterable[str]]) -> List[str]:
        if order_by is None:
            return []
        if isinstance(order_by, str):
            return [order_by]
        return list(order_by)

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Union[None, str, Iterable[str]] = None,
    ) -> List[Dict[str, Any]]:
        """Filtered read; equality filters, ascending order"""
        model = self._model(table)
        query = select(model)
        for key, value in (filters or {}).items():
            query = query.where(self._column(model, key) == value)
        for name in self._order_names(order_by):
            query = query.order_by(self._column(model, name))

        async with self._session_factory() as session:
            try:
                result = await session.execute(query)
                return [row_to_dict(obj) for obj in result.scalars().all()]
            except SQLAlchemyError as e:
                debug_logger.error(f"Ошибка чтения из {table}: {str(e)}")
                raise StoreError(f"Failed to read {table}: {e}", table=table) from e

    async def get(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Point read by primary key"""
        model = self._model(table)
        async with self._session_factory() as session:
            try:
                obj = await session.get(model, record_id)
            except SQLAlchemyError as e:
                raise StoreError(f"Failed to read {table} {record_id}: {e}", table=table) from e
            return row_to_dict(obj) if obj is not None else None

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        model = self._model(table)
        values = self._clean(model, row)

        async with self._session_factory() as session:
            try:
                obj = model(**values)
                session.add(obj)
                await session.flush()
                created = row_to_dict(obj)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                debug_logger.error(f"Ошибка вставки в {table}: {str(e)}")
                raise StoreError(f"Failed to insert into {table}: {e}", table=table) from e

        debug_logger.info(f"Создана запись {table} ID {created.get('id')}")
        await self.feed.publish(ChangeEvent(table=table, event_type=ChangeEventType.INSERT, new=created))
        return created

    async def update(self, table: str, record_id: str, patch: Dict[str, Any]) -> Dict[str, Any]:
        """Patch one row; RecordNotFoundError if the id does not exist"""
        model = self._model(table)
        values = self._clean(model, patch)
        values.pop("id", None)

        async with self._session_factory() as session:
            try:
                obj = await session.get(model, record_id)
                if obj is None:
                    debug_logger.warning(f"Запись {table} с ID {record_id} не найдена при попытке обновления")
                    raise RecordNotFoundError(table, record_id)

                old = row_to_dict(obj)
                for key, value in values.items():
                    setattr(obj, key, value)
                # updated_at выставляем явно, без onupdate после flush
                if "updated_at" in model.__table__.columns:
                    obj.updated_at = datetime.utcnow()
                await session.flush()
                updated = row_to_dict(obj)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                debug_logger.error(f"Ошибка обновления {table} {record_id}: {str(e)}")
                raise StoreError(f"Failed to update {table} {record_id}: {e}", table=table) from e

        debug_logger.debug(f"Обновлена запись {table} {record_id}: {values}")
        await self.feed.publish(ChangeEvent(table=table, event_type=ChangeEventType.UPDATE, new=updated, old=old))
        return updated

    async def upsert(self, table: str, row: Dict[str, Any], conflict_key: str) -> Dict[str, Any]:
        """Create-or-replace keyed by `conflict_key`; never produces a duplicate row"""
        model = self._model(table)
        values = self._clean(model, row)
        if conflict_key not in values:
            raise StoreError(f"Upsert into {table} requires '{conflict_key}'", table=table)
        key_column = self._column(model, conflict_key)

        async with self._session_factory() as session:
            try:
                result = await session.execute(select(model).where(key_column == values[conflict_key]))
                obj = result.scalars().first()
                old = None
                if obj is None:
                    obj = model(**values)
                    session.add(obj)
                    event_type = ChangeEventType.INSERT
                else:
                    old = row_to_dict(obj)
                    for key, value in values.items():
                        if key != "id":
                            setattr(obj, key, value)
                    event_type = ChangeEventType.UPDATE
                await session.flush()
                stored = row_to_dict(obj)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                debug_logger.error(f"Ошибка upsert в {table}: {str(e)}")
                raise StoreError(f"Failed to upsert into {table}: {e}", table=table) from e

        await self.feed.publish(ChangeEvent(table=table, event_type=event_type, new=stored, old=old))
        return stored

    async def delete(self, table: str, record_id: str) -> Dict[str, Any]:
        """Delete one row and return it; RecordNotFoundError if missing"""
        model = self._model(table)

        async with self._session_factory() as session:
            try:
                obj = await session.get(model, record_id)
                if obj is None:
                    debug_logger.warning(f"Запись {table} с ID {record_id} не найдена при попытке удаления")
                    raise RecordNotFoundError(table, record_id)
                old = row_to_dict(obj)
                # Каскад выполняет сама БД (ondelete=CASCADE)
                await session.execute(delete(model).where(model.id == record_id))
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                debug_logger.error(f"Ошибка удаления {table} {record_id}: {str(e)}")
                raise StoreError(f"Failed to delete {table} {record_id}: {e}", table=table) from e

        debug_logger.info(f"Запись {table} {record_id} удалена")
        await self.feed.publish(ChangeEvent(table=table, event_type=ChangeEventType.DELETE, old=old))
        return old

    def subscribe(
        self,
        table: str,
        filters: Optional[Dict[str, Any]],
        on_change: ChangeCallback,
    ) -> Callable[[], None]:
        """Subscribe to row changes of a table; returns the unsubscribe handle"""
        self._model(table)
        api_logger.info(f"RemoteStore: realtime subscription for {table} with {filters}")
        return self.feed.subscribe(table, filters, on_change)
