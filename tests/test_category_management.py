"""
Tests for CategoryManager.
"""

import pytest

from exceptions import NotFoundError, ValidationError
from models import CategoryGroup


class TestCategoryManager:
    """Tests for category template CRUD."""

    def test_create_and_list_sorted(self, category_manager):
        category_manager.create_category("Stocks", "INVESTMENT")
        category_manager.create_category("Travel", CategoryGroup.WANTS)
        category_manager.create_category("Rent", CategoryGroup.NEEDS)

        assert [c.name for c in category_manager.list_categories()] == ["Rent", "Travel", "Stocks"]
        assert [c.name for c in category_manager.list_categories("wants")] == ["Travel"]

    def test_duplicate_names_rejected(self, category_manager):
        category_manager.create_category("Rent", CategoryGroup.NEEDS)
        with pytest.raises(ValidationError):
            category_manager.create_category(" rent ", CategoryGroup.WANTS)

    def test_invalid_group(self, category_manager):
        with pytest.raises(ValidationError):
            category_manager.create_category("Rent", "LUXURIES")

    def test_get_or_create(self, category_manager):
        first = category_manager.get_or_create_category("Rent", CategoryGroup.NEEDS)
        second = category_manager.get_or_create_category("RENT", CategoryGroup.WANTS)
        assert first.id == second.id
        assert second.group is CategoryGroup.NEEDS

    def test_update_name_and_group(self, category_manager):
        category = category_manager.create_category("Gym", CategoryGroup.NEEDS)
        updated = category_manager.update_category(category.id, name="Fitness")
        assert (updated.name, updated.group) == ("Fitness", CategoryGroup.NEEDS)
        moved = category_manager.update_category(category.id, group=CategoryGroup.WANTS)
        assert moved.group is CategoryGroup.WANTS

    def test_group_change_reflected_in_budgets(self, category_manager, budget_manager, monthly_budget):
        dining = next(bc for bc in monthly_budget.categories if bc.name == "Dining")
        category_manager.update_category(dining.category.id, group=CategoryGroup.NEEDS)
        record = budget_manager.get_budget(monthly_budget.id)
        assert next(bc for bc in record.categories if bc.name == "Dining").group is CategoryGroup.NEEDS

    def test_delete(self, category_manager, budget_manager, monthly_budget):
        groceries = next(bc for bc in monthly_budget.categories if bc.name == "Groceries")
        assert category_manager.delete_category(groceries.category.id) is True
        assert category_manager.get_category(groceries.category.id) is None
        # allocations keep reporting under the template name
        record = budget_manager.get_budget(monthly_budget.id)
        assert "Groceries" in {bc.name for bc in record.categories}
        with pytest.raises(NotFoundError):
            category_manager.delete_category(groceries.category.id)
