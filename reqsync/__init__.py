"""Incremental requirement synchronisation for component-based projects."""

from .models import Component, ComponentIndex, Dependency, Project, Requirement, Scope, TestFailure
from .sync import RequirementSync, SyncRequest

__version__ = "0.1.0"

__all__ = [
    "Component",
    "ComponentIndex",
    "Dependency",
    "Project",
    "Requirement",
    "RequirementSync",
    "Scope",
    "SyncRequest",
    "TestFailure",
]
