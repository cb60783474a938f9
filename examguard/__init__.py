"""
ExamGuard - live exam proctoring alerts from camera frames
"""

__version__ = "1.0.0"
