"""Pure computation modules for the Workshop Tracker application."""

__all__ = [
    "attribute_resolver",
    "color_classifier",
    "filter_engine",
    "grouping",
    "stage_tracker",
    "tuning",
    "waiting_time",
]
