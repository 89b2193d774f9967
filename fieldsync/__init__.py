"""fieldsync: offline barcode scan queue and sync engine."""

__version__ = "0.1.0"
