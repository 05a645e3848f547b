"""
Manufacturing-execution data ingestion.

Loads JSON array exports (assembly lots, equipment events/status,
final test lots, materials) into PostgreSQL with one transaction per file.
"""

__version__ = "1.0.0"
