"""
Sensor Data Import

A parallel ingestion pipeline that scans a directory of sensor CSV files
and loads the readings into a relational store, tolerating malformed rows
without aborting the file they belong to.
"""

__version__ = "0.1.0"
