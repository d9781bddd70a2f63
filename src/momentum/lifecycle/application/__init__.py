"""
Lifecycle Application Layer
===========================
"""

from momentum.lifecycle.application.projectors import (
    CompanyProductReadModelProjector,
    CompanyProductStageFactsProjector,
)

__all__ = [
    "CompanyProductReadModelProjector",
    "CompanyProductStageFactsProjector",
]
