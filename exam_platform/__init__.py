"""
exam_platform
Exam administration backend: timed exam attempts, answer capture and auto-grading.
"""

__version__ = "1.0.0"
