"""
InvoiceBook - Source Package

A local-first invoicing engine: address book, offers and invoices, and
financial reporting, all persisted as JSON files on the user's disk.

DESIGN PRINCIPLES:
1. Every persisted byte goes through the atomic writer
2. The database file is versioned and migrated forward, never backward
3. Documents are one file each, never embedded in the database
4. Reports are recomputed from the documents, nothing is cached
5. Every operation either succeeds or raises a specific error
"""

__version__ = "1.3.0"
__author__ = "InvoiceBook Team"
