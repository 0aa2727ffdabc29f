from rest_framework import serializers

from .models import Enrollment, EnrollmentIntent


class EnrollmentSerializer(serializers.ModelSerializer):
    course_title = serializers.CharField(source="course.title", read_only=True)

    class Meta:
        model = Enrollment
        fields = [
            "id",
            "course",
            "course_title",
            "status",
            "payment_verified",
            "progress",
            "enrolled_at",
            "completed_at",
        ]
        read_only_fields = fields


class CourseRequestSerializer(serializers.Serializer):
    courseId = serializers.IntegerField(min_value=1)


class EnrollmentIntentRequestSerializer(CourseRequestSerializer):
    kind = serializers.ChoiceField(
        choices=EnrollmentIntent.Kind.choices, default=EnrollmentIntent.Kind.ONLINE
    )


class EnrollmentIntentSerializer(serializers.ModelSerializer):
    class Meta:
        model = EnrollmentIntent
        fields = ["id", "course", "kind", "created_at", "expires_at"]
        read_only_fields = fields


class ProgressSerializer(serializers.Serializer):
    progress = serializers.IntegerField(min_value=0, max_value=100)
