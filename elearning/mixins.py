"""
Shared API view helpers.

Author: LearnHub Development Team
Version: 1.0.0
"""

import logging

from rest_framework.response import Response

from .exceptions import EnrollmentFlowError

logger = logging.getLogger(__name__)


class FlowErrorMixin:
    """
    Translates EnrollmentFlowError subclasses raised by services into JSON
    error responses with the exception's status code. Every other exception
    keeps DRF's default handling.
    """

    def handle_exception(self, exc):
        if isinstance(exc, EnrollmentFlowError):
            log = logger.warning if exc.status_code >= 500 else logger.info
            log(
                "%s %s -> %s (%s): %s",
                self.request.method,
                self.request.path,
                exc.status_code,
                exc.error_code,
                exc.message,
            )
            return Response(exc.to_dict(), status=exc.status_code)
        return super().handle_exception(exc)
