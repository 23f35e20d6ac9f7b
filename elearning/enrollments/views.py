"""
Enrollment Views

- ``GET courses/<course_id>/access/``: access decision for the current user
- ``GET courses/<course_id>/``: course details, only for entitled users
- ``GET my-enrollments/``: the user's course and level enrollments
- ``GET levels/<level>/check/``: whether the user is enrolled in a level

Author: Lingua Development Team
Version: 1.0.0
"""

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from elearning.catalog.models import Course

from .access import DENY_TARGET_UNAVAILABLE, authorize
from .models import CourseEnrollment, LevelEnrollment
from .permissions import HasCourseAccess
from .serializers import CourseEnrollmentSerializer, LevelEnrollmentSerializer


class CourseAccessView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, course_id):
        decision = authorize(request.user, course_id)
        if decision.allowed:
            return Response({"success": True, **decision.to_dict()}, status=status.HTTP_200_OK)

        http_status = (
            status.HTTP_404_NOT_FOUND
            if decision.reason == DENY_TARGET_UNAVAILABLE
            else status.HTTP_403_FORBIDDEN
        )
        return Response({"success": False, **decision.to_dict()}, status=http_status)


class CourseDetailView(APIView):
    permission_classes = [IsAuthenticated, HasCourseAccess]

    def get(self, request, course_id):
        course = Course.objects.get(pk=course_id)
        return Response(
            {
                "id": course.id,
                "title": course.title,
                "description": course.description,
                "level": course.level,
                "accessVia": request.access_decision.via,
            },
            status=status.HTTP_200_OK,
        )


class MyEnrollmentsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        courses = CourseEnrollment.objects.filter(buyer=request.user).select_related("course")
        levels = LevelEnrollment.objects.filter(buyer=request.user)
        return Response(
            {
                "courses": CourseEnrollmentSerializer(courses, many=True).data,
                "levels": LevelEnrollmentSerializer(levels, many=True).data,
            },
            status=status.HTTP_200_OK,
        )


class LevelEnrollmentCheckView(APIView):
    """Whether the current user holds an active or paused enrollment for ``level``."""

    permission_classes = [IsAuthenticated]

    def get(self, request, level):
        enrollment = (
            LevelEnrollment.objects.filter(
                buyer=request.user,
                level=level.upper(),
                status__in=LevelEnrollment.ACCESS_STATUSES,
            )
            .order_by("-enrolled_at")
            .first()
        )
        return Response(
            {
                "success": True,
                "isEnrolled": enrollment is not None,
                "enrollment": LevelEnrollmentSerializer(enrollment).data if enrollment else None,
            },
            status=status.HTTP_200_OK,
        )
