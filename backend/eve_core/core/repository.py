# eve_core/core/repository.py

from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, Type, TypeVar
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict
from loguru import logger

from eve_core.core.gateway import Condition, DatabaseError, Filters, OrderBy, QueryGateway

ModelType = TypeVar("ModelType", bound=BaseModel)


class TableRow(BaseModel):
    """Base for rows read from PostgREST; unknown columns are kept."""
    model_config = ConfigDict(extra="allow")


class BaseRepository(Generic[ModelType]):
    """Base class for table repositories backed by the PostgREST query gateway."""

    model: Type[ModelType]
    table_name: str

    def __init__(self, gateway: QueryGateway):
        if not getattr(self, "table_name", None):
            raise AttributeError("Repository subclass must define a 'table_name'")
        if not hasattr(self, "model") or not issubclass(self.model, BaseModel):
            raise AttributeError("Repository subclass must define a Pydantic 'model'")
        self.gateway = gateway

    def _handle_db_exception(self, e: Exception, operation: str, filters: Optional[Filters] = None):
        """Logs and re-raises gateway errors with the table/operation context attached."""
        context = f"op='{operation}' table='{self.table_name}'"
        if filters:
            context += f" filters='{str(dict(filters))[:100]}'"
        if isinstance(e, DatabaseError) and e.status_code == 409:
            logger.error(f"DB conflict during {context}: {e}")
            raise ValueError(f"Duplicate key error: {e.message}") from e
        logger.error(f"DB Error during {context}: {e}")
        raise e

    @staticmethod
    def _prepare_data_for_db(data: Dict[str, Any]) -> Dict[str, Any]:
        """Converts values PostgREST cannot take as-is (datetimes, Decimals, models)."""
        prepared: Dict[str, Any] = {}
        for key, value in data.items():
            if isinstance(value, (datetime, date)):
                prepared[key] = value.isoformat()
            elif isinstance(value, Decimal):
                prepared[key] = str(value)
            elif isinstance(value, BaseModel):
                prepared[key] = value.model_dump(mode="json")
            else:
                prepared[key] = value
        return prepared

    def _to_model(self, row: Dict[str, Any]) -> ModelType:
        return self.model.model_validate(row)

    async def get_by_id(self, id: str) -> Optional[ModelType]:
        if not id:
            return None
        return await self.get_by({"id": id})

    async def get_by(self, filters: Filters) -> Optional[ModelType]:
        """Returns the first row matching the filters."""
        try:
            row = await self.gateway.select_one(self.table_name, filters)
        except DatabaseError as e:
            self._handle_db_exception(e, "get_by", filters)
        return self._to_model(row) if row else None

    async def list_by(
        self,
        filters: Optional[Filters] = None,
        *,
        order: Optional[OrderBy] = None,
        limit: Optional[int] = None,
        or_filters: Optional[Sequence[Tuple[str, Condition]]] = None,
    ) -> List[ModelType]:
        try:
            rows = await self.gateway.select(self.table_name, filters, order=order, limit=limit, or_filters=or_filters)
        except DatabaseError as e:
            self._handle_db_exception(e, "list_by", filters)
        return [self._to_model(row) for row in rows]

    async def create(self, data_in: BaseModel | Dict[str, Any]) -> ModelType:
        if isinstance(data_in, BaseModel):
            data = data_in.model_dump(mode="json", exclude_none=True)
        else:
            data = dict(data_in)
        data.pop("id", None)
        try:
            rows = await self.gateway.insert(self.table_name, self._prepare_data_for_db(data))
        except DatabaseError as e:
            self._handle_db_exception(e, "create")
        if not rows:
            logger.critical(f"Insert into '{self.table_name}' returned no representation.")
            raise DatabaseError(f"Failed to retrieve row after insert into {self.table_name}.")
        return self._to_model(rows[0])

    async def update_by(self, filters: Filters, data_in: BaseModel | Dict[str, Any]) -> List[ModelType]:
        if isinstance(data_in, BaseModel):
            data = data_in.model_dump(mode="json", exclude_unset=True)
        else:
            data = dict(data_in)
        for field in ("id", "created_at"):
            data.pop(field, None)
        if not data:
            logger.debug(f"Update on '{self.table_name}' called with no data; returning current rows.")
            return await self.list_by(filters)
        try:
            rows = await self.gateway.update(self.table_name, filters, self._prepare_data_for_db(data))
        except DatabaseError as e:
            self._handle_db_exception(e, "update", filters)
        return [self._to_model(row) for row in rows]

    async def update(self, id: str, data_in: BaseModel | Dict[str, Any]) -> Optional[ModelType]:
        rows = await self.update_by({"id": id}, data_in)
        if not rows:
            logger.warning(f"Row not found for update: ID {id}, Table: {self.table_name}")
            return None
        return rows[0]

    async def delete_by(self, filters: Filters) -> int:
        try:
            rows = await self.gateway.delete(self.table_name, filters)
        except DatabaseError as e:
            self._handle_db_exception(e, "delete", filters)
        return len(rows)

    async def delete(self, id: str) -> bool:
        deleted = await self.delete_by({"id": id}) > 0
        if deleted:
            logger.info(f"Row deleted: ID {id}, Table: {self.table_name}")
        else:
            logger.warning(f"Row not found for deletion: ID {id}, Table: {self.table_name}")
        return deleted

    async def count(self, filters: Optional[Filters] = None) -> int:
        try:
            return await self.gateway.count(self.table_name, filters)
        except DatabaseError as e:
            self._handle_db_exception(e, "count", filters)
