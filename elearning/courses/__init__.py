"""
Course Catalog Package - LearnHub

Read-only view of the course catalog used by the enrollment/payment core.

Structure:
- models.py: Course model with catalog price

Author: LearnHub Development Team
Version: 1.0.0
"""
