"""
Notifications Package - LearnHub

Durable notification event log with post-commit fan-out to subscribers.

Author: LearnHub Development Team
Version: 1.0.0
"""
