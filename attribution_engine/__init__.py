"""
Marketing Attribution Engine

Matches CRM conversions to marketing spend rows across two datastores and
builds hierarchical attribution reports.
"""

__version__ = "1.0.0"
