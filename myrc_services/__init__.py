"""
Cross-module services for myRC.

``cloning`` deep-copies fiscal years and responsibility centres across every
module; ``export_import`` moves fiscal-year content in and out as JSON.
"""

from myrc_services.cloning import CloningService
from myrc_services.export_import import EXPORT_VERSION, ExportImportService

__all__ = ["CloningService", "EXPORT_VERSION", "ExportImportService"]
