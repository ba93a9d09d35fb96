"""
Map view engine.

The engine turns per-category provider data into what the map page shows: a filtered,
viewport-restricted, selection-ordered list and one marker per listed entity that has
coordinates. `MapViewController` is the entry point; the other modules are its parts.
"""
from __future__ import annotations

from engine.controller import MapViewController, MobileSheetView, Navigation, SidebarView
from engine.reconciler import MarkerReconciler, ReconcileEvent, ReconcileStats

__all__ = [
    "MapViewController",
    "MarkerReconciler",
    "MobileSheetView",
    "Navigation",
    "ReconcileEvent",
    "ReconcileStats",
    "SidebarView",
]
