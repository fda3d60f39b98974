"""
HTTP routers. ``routers`` is mounted by main.py in this order.
"""
from exam_platform.routes import student_exams, results, exams

routers = [
    student_exams.router,
    results.router,
    exams.router,
]
