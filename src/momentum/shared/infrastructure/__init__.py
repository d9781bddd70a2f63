"""
Infrastructure Layer
=====================

Low-level technical concerns shared across contexts:
- Logging setup
- Latency measurement
"""
