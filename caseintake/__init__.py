"""CaseIntake - webhook ingestion and lead qualification for law firm intake."""
__version__ = "1.0.0"
