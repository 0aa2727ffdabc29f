from rest_framework import generics, status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from ..mixins import FlowErrorMixin
from .models import CertificateRequest
from .serializers import CertificateRequestSerializer, RejectCertificateSerializer
from .services import CertificateAwarder


class MyCertificatesView(generics.ListAPIView):
    serializer_class = CertificateRequestSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return CertificateRequest.objects.filter(student=self.request.user).select_related("course")


class ApproveCertificateView(FlowErrorMixin, APIView):
    permission_classes = [IsAdminUser]

    def post(self, request, certificate_id):
        certificate = CertificateAwarder().approve(certificate_id, reviewer=request.user)
        return Response(CertificateRequestSerializer(certificate).data, status=status.HTTP_200_OK)


class RejectCertificateView(FlowErrorMixin, APIView):
    permission_classes = [IsAdminUser]

    def post(self, request, certificate_id):
        serializer = RejectCertificateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        certificate = CertificateAwarder().reject(
            certificate_id, reason=serializer.validated_data["reason"], reviewer=request.user
        )
        return Response(CertificateRequestSerializer(certificate).data, status=status.HTTP_200_OK)
