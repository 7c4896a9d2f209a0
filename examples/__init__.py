# examples/__init__.py
"""
Examples for the arm_host joint controller.

Examples:
    01_elbow_loop.py    - Elbow profile, leader/follower motors, fixed-period ticks
"""
