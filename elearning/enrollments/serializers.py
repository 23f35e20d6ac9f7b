from rest_framework import serializers

from .models import CourseEnrollment, LevelEnrollment


class CourseEnrollmentSerializer(serializers.ModelSerializer):
    courseTitle = serializers.CharField(source="course.title", read_only=True)
    orderCode = serializers.IntegerField(source="order_code", read_only=True)
    enrolledAt = serializers.DateTimeField(source="enrolled_at", read_only=True)

    class Meta:
        model = CourseEnrollment
        fields = ["id", "course", "courseTitle", "status", "orderCode", "enrolledAt"]


class LevelEnrollmentSerializer(serializers.ModelSerializer):
    orderCode = serializers.IntegerField(source="order_code", read_only=True)
    enrolledAt = serializers.DateTimeField(source="enrolled_at", read_only=True)
    expiresAt = serializers.DateTimeField(source="expires_at", read_only=True)

    class Meta:
        model = LevelEnrollment
        fields = ["id", "level", "status", "orderCode", "enrolledAt", "expiresAt"]
