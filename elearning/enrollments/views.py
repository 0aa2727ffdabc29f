"""
Enrollment Views

Student endpoints:
- POST enrollments/free/              {courseId}          -> free course, active at once
- POST enrollments/physical/          {courseId}          -> offline transfer, pending
- GET  enrollments/mine/
- POST enrollments/intents/           {courseId, kind}    -> remember before a redirect
- POST enrollments/intents/consume/   {courseId}          -> resume after the redirect

Staff endpoints:
- POST enrollments/<id>/approve/      pending -> active (payment received offline)
- POST enrollments/<id>/drop/         administrative exit
- POST enrollments/<id>/progress/     {progress}

Author: LearnHub Development Team
Version: 1.0.0
"""

from rest_framework import generics, status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from ..mixins import FlowErrorMixin
from .intents import EnrollmentIntentStore
from .models import Enrollment, EnrollmentIntent
from .serializers import (
    CourseRequestSerializer,
    EnrollmentIntentRequestSerializer,
    EnrollmentIntentSerializer,
    EnrollmentSerializer,
    ProgressSerializer,
)
from .services import EnrollmentStateManager


class FreeEnrollmentView(FlowErrorMixin, APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = CourseRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        enrollment = EnrollmentStateManager().enroll_free(request.user, serializer.validated_data["courseId"])
        return Response(EnrollmentSerializer(enrollment).data, status=status.HTTP_201_CREATED)


class PhysicalEnrollmentView(FlowErrorMixin, APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = CourseRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        enrollment = EnrollmentStateManager().enroll_physical(request.user, serializer.validated_data["courseId"])
        return Response(EnrollmentSerializer(enrollment).data, status=status.HTTP_201_CREATED)


class MyEnrollmentsView(generics.ListAPIView):
    serializer_class = EnrollmentSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return Enrollment.objects.filter(student=self.request.user).select_related("course")


class ApproveEnrollmentView(FlowErrorMixin, APIView):
    permission_classes = [IsAdminUser]

    def post(self, request, enrollment_id):
        enrollment = EnrollmentStateManager().approve(enrollment_id, actor=request.user)
        return Response(EnrollmentSerializer(enrollment).data, status=status.HTTP_200_OK)


class DropEnrollmentView(FlowErrorMixin, APIView):
    permission_classes = [IsAdminUser]

    def post(self, request, enrollment_id):
        enrollment = EnrollmentStateManager().drop(enrollment_id, actor=request.user)
        return Response(EnrollmentSerializer(enrollment).data, status=status.HTTP_200_OK)


class EnrollmentProgressView(FlowErrorMixin, APIView):
    permission_classes = [IsAdminUser]

    def post(self, request, enrollment_id):
        serializer = ProgressSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        enrollment = EnrollmentStateManager().update_progress(
            enrollment_id, serializer.validated_data["progress"]
        )
        return Response(EnrollmentSerializer(enrollment).data, status=status.HTTP_200_OK)


class EnrollmentIntentView(FlowErrorMixin, APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = EnrollmentIntentRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        intent = EnrollmentIntentStore().remember(
            request.user,
            serializer.validated_data["courseId"],
            serializer.validated_data["kind"],
        )
        return Response(EnrollmentIntentSerializer(intent).data, status=status.HTTP_201_CREATED)


class ConsumeEnrollmentIntentView(FlowErrorMixin, APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = CourseRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        intent, enrollment = EnrollmentIntentStore().fulfil(request.user, serializer.validated_data["courseId"])
        return Response(
            {
                "courseId": intent.course_id,
                "kind": intent.kind,
                "next": "awaiting_approval" if intent.kind == EnrollmentIntent.Kind.PHYSICAL else "payment",
                "enrollment": EnrollmentSerializer(enrollment).data if enrollment else None,
            },
            status=status.HTTP_200_OK,
        )
