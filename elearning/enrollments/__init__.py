"""
Enrollments Package - LearnHub

Owns the enrollment lifecycle (pending -> active -> completed, with
administrative drops) and the server-side enrollment intents that survive
sign-in and payment redirects.

Structure:
- models.py: Enrollment, EnrollmentIntent
- services.py: EnrollmentStateManager
- intents.py: EnrollmentIntentStore
- signals.py: progress_completed signal
- serializers.py / views.py: REST endpoints

Author: LearnHub Development Team
Version: 1.0.0
"""
