"""
Category management module.

Category templates (name + NEEDS/WANTS/INVESTMENT group) are shared across
budgets; each budget allocates money to them through budget categories.
"""

import logging
from typing import List, Optional, Union

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from database_ops import BudgetCategory, Category, DatabaseManager, utc_now
from exceptions import DatabaseError, NotFoundError, ValidationError
from models import CategoryGroup, CategoryRecord, parse_enum

# Configure logging
logger = logging.getLogger(__name__)


class CategoryManager:
    """Manages reusable spending category templates."""

    def __init__(self, db_manager: DatabaseManager):
        """
        Initialize the category manager.

        Args:
            db_manager: DatabaseManager instance
        """
        self.db_manager = db_manager
        logger.info("Category manager initialized")

    @staticmethod
    def _normalize_name(name: Optional[str]) -> str:
        normalized = (name or "").strip()
        if not normalized:
            raise ValidationError("Category name cannot be empty")
        return normalized

    @staticmethod
    def _find_by_name(session, name: str, exclude_id: Optional[int] = None) -> Optional[Category]:
        query = session.query(Category).filter(
            func.lower(Category.name) == name.lower(),
            Category.deleted.is_(None)
        )
        if exclude_id is not None:
            query = query.filter(Category.id != exclude_id)
        return query.first()

    def create_category(self, name: str, group: Union[CategoryGroup, str]) -> CategoryRecord:
        """
        Create a category template.

        Args:
            name: Category name (unique among live categories, case-insensitive)
            group: NEEDS, WANTS or INVESTMENT

        Returns:
            Created CategoryRecord

        Raises:
            ValidationError: If the name is empty or taken, or the group is unknown
        """
        name = self._normalize_name(name)
        group = parse_enum(CategoryGroup, group, "group")

        with self.db_manager.session_scope() as session:
            if self._find_by_name(session, name) is not None:
                raise ValidationError(f"Category '{name}' already exists", details={"name": name})
            category = Category(name=name, group=group)
            session.add(category)
            session.flush()
            record = category.to_record()

        logger.info(f"Created category {record.id}: {name} ({group.value})")
        return record

    def get_category(self, category_id: int) -> Optional[CategoryRecord]:
        """
        Get a category template by ID.

        Returns:
            CategoryRecord or None if not found
        """
        with self.db_manager.session_scope() as session:
            category = session.query(Category).filter(
                Category.id == category_id,
                Category.deleted.is_(None)
            ).first()
            return category.to_record() if category is not None else None

    def get_or_create_category(self, name: str, group: Union[CategoryGroup, str]) -> CategoryRecord:
        """Return the live category with this name, creating it when missing."""
        name = self._normalize_name(name)
        with self.db_manager.session_scope() as session:
            existing = self._find_by_name(session, name)
            if existing is not None:
                return existing.to_record()
        return self.create_category(name, group)

    def list_categories(self, group: Optional[Union[CategoryGroup, str]] = None) -> List[CategoryRecord]:
        """
        List live category templates ordered by group and name.

        Args:
            group: Optional group filter
        """
        session = self.db_manager.get_session()
        try:
            query = session.query(Category).filter(Category.deleted.is_(None))
            if group is not None:
                query = query.filter(Category.group == parse_enum(CategoryGroup, group, "group"))
            categories = [c.to_record() for c in query.all()]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list categories: {e}")
            raise DatabaseError("Failed to list categories", original_error=e) from e
        finally:
            session.close()

        order = {g: i for i, g in enumerate(CategoryGroup)}
        return sorted(categories, key=lambda c: (order[c.group], c.name.casefold()))

    def update_category(
        self,
        category_id: int,
        name: Optional[str] = None,
        group: Optional[Union[CategoryGroup, str]] = None
    ) -> CategoryRecord:
        """
        Rename a category or move it to another group.

        A group change applies to every budget that allocates to the
        category, so it is only made when ``group`` is passed explicitly.

        Returns:
            Updated CategoryRecord
        """
        with self.db_manager.session_scope() as session:
            category = session.query(Category).filter(
                Category.id == category_id,
                Category.deleted.is_(None)
            ).first()
            if category is None:
                raise NotFoundError("Category not found", details={"category_id": category_id})

            if name is not None:
                name = self._normalize_name(name)
                if self._find_by_name(session, name, exclude_id=category_id) is not None:
                    raise ValidationError(f"Category '{name}' already exists", details={"name": name})
                category.name = name
            if group is not None:
                new_group = parse_enum(CategoryGroup, group, "group")
                if new_group is not category.group:
                    logger.info(f"Moving category {category_id} from {category.group.value} to {new_group.value}")
                category.group = new_group

            category.updated_at = utc_now()
            session.flush()
            record = category.to_record()

        logger.info(f"Updated category {category_id}")
        return record

    def delete_category(self, category_id: int) -> bool:
        """
        Soft-delete a category template.

        Existing budget allocations keep pointing at the template and continue
        to report under its name.

        Raises:
            NotFoundError: If the category does not exist
        """
        with self.db_manager.session_scope() as session:
            category = session.query(Category).filter(
                Category.id == category_id,
                Category.deleted.is_(None)
            ).first()
            if category is None:
                raise NotFoundError("Category not found", details={"category_id": category_id})
            in_use = session.query(BudgetCategory).filter(
                BudgetCategory.category_id == category_id,
                BudgetCategory.deleted.is_(None)
            ).count()
            category.deleted = utc_now()

        logger.info(f"Deleted category {category_id} (still referenced by {in_use} allocations)")
        return True
