"""
proctorwatch - exam and interview proctoring service
"""

__version__ = "1.0.0"
