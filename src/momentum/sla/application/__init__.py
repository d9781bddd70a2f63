"""
SLA Application Layer
=====================
"""

from momentum.sla.application.scanner import SCANNER_ACTOR, ScanResult, SLABreachScanner

__all__ = ["SCANNER_ACTOR", "ScanResult", "SLABreachScanner"]
