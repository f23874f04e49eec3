"""
Document store boundary.

All pymongo access goes through MongoProbe, which bounds every call in
time and translates driver errors into IndexSense exceptions.
"""

from indexsense.db.probe import CONNECTIVITY_ERRORS, MongoProbe, as_probe

__all__ = [
    "CONNECTIVITY_ERRORS",
    "MongoProbe",
    "as_probe",
]
