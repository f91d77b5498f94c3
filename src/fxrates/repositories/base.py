"""Base repository with common CRUD operations.

Provides generic database operations inherited by model-specific
repositories. Uses SQLAlchemy 2.0's async API with proper type hints.

Supports both Pydantic models and dictionaries for create/update operations.
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from fxrates.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Base repository with common CRUD operations.

    Repositories do NOT manage transactions - the caller is responsible for
    commit/rollback (see ``fxrates.db.session.transactional``).

    Type Parameters:
        ModelType: The SQLAlchemy model class

    Example:
        >>> repo = CurrencyRepository(Currency, db)
        >>> usd = await repo.get("USD")
    """

    def __init__(self, model: type[ModelType], db: AsyncSession):
        """Initialize repository.

        Args:
            model: The SQLAlchemy model class
            db: Async database session
        """
        self.model = model
        self.db = db

    @property
    def dialect_name(self) -> str:
        """Name of the bound database dialect ("postgresql", "sqlite", ...)."""
        return self.db.get_bind().dialect.name

    async def get(self, pk: Any) -> ModelType | None:
        """Get a single record by primary key.

        Args:
            pk: Primary key value

        Returns:
            Model instance if found, None otherwise
        """
        return await self.db.get(self.model, pk)

    async def create(self, *, obj_in: BaseModel | dict[str, Any]) -> ModelType:
        """Create a new record.

        Args:
            obj_in: Pydantic model or dictionary of field names and values

        Returns:
            Created model instance (flushed, not yet committed)
        """
        if isinstance(obj_in, BaseModel):
            create_data = obj_in.model_dump(exclude_unset=True)
        else:
            create_data = obj_in

        db_obj = self.model(**create_data)
        self.db.add(db_obj)
        await self.db.flush()
        await self.db.refresh(db_obj)
        return db_obj

    async def update(
        self,
        *,
        db_obj: ModelType,
        obj_in: BaseModel | dict[str, Any],
    ) -> ModelType:
        """Update an existing record (partial updates allowed).

        Args:
            db_obj: Existing model instance to update
            obj_in: Pydantic model or dictionary of fields to update

        Returns:
            Updated model instance (flushed, not yet committed)
        """
        if isinstance(obj_in, BaseModel):
            update_data = obj_in.model_dump(exclude_unset=True)
        else:
            update_data = obj_in

        for field, value in update_data.items():
            setattr(db_obj, field, value)

        await self.db.flush()
        await self.db.refresh(db_obj)
        return db_obj

    async def exists(self, pk: Any) -> bool:
        """Check if a record exists by primary key."""
        return await self.get(pk) is not None
