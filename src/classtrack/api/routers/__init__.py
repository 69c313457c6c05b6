from . import attendance, classes, health, schedule, subjects

__all__ = ["attendance", "classes", "health", "schedule", "subjects"]
