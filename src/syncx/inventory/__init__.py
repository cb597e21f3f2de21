"""Inventory models, loader and project collection exports."""

from .collector import collect_projects, filter_by_group, unique_groups
from .loader import InventoryLoadError, InventoryLoader, LoadedInventory, inventory_fingerprint, load_inventory
from .models import STANDALONE_GROUP, Group, Inventory, InventoryRoot, Project, ProjectRecord

__all__ = [
    "Group",
    "Inventory",
    "InventoryLoadError",
    "InventoryLoader",
    "InventoryRoot",
    "LoadedInventory",
    "Project",
    "ProjectRecord",
    "STANDALONE_GROUP",
    "collect_projects",
    "filter_by_group",
    "inventory_fingerprint",
    "load_inventory",
    "unique_groups",
]
