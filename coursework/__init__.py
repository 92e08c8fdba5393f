"""
Coursework: course catalog, enrollment, timed assessments, certificates
and analytics for a small learning-management system.
"""

__version__ = "1.0.0"
