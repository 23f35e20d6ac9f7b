"""
Catalog Views

Public, read-only listings of what can be bought:

- ``GET levels/``: active level packages
- ``GET levels/<level>/``: one active package and its published courses
- ``GET courses/``: published courses, optionally filtered with ``?level=B1``

Author: Lingua Development Team
Version: 1.0.0
"""

from rest_framework import generics, status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Course, LevelPackage
from .serializers import CourseSerializer, LevelPackageSerializer


class LevelPackageListView(generics.ListAPIView):
    permission_classes = [AllowAny]
    serializer_class = LevelPackageSerializer

    def get_queryset(self):
        return LevelPackage.objects.filter(status=LevelPackage.Status.ACTIVE)


class CourseListView(generics.ListAPIView):
    permission_classes = [AllowAny]
    serializer_class = CourseSerializer

    def get_queryset(self):
        queryset = Course.objects.filter(is_published=True)
        level = self.request.query_params.get("level")
        if level:
            queryset = queryset.filter(level=level.upper())
        return queryset


class LevelPackageDetailView(APIView):
    """Active package of one level together with its published courses."""

    permission_classes = [AllowAny]

    def get(self, request, level):
        package = LevelPackage.objects.filter(level=level.upper(), status=LevelPackage.Status.ACTIVE).first()
        if package is None:
            return Response(
                {"success": False, "message": f"Level package {level.upper()} not found."},
                status=status.HTTP_404_NOT_FOUND,
            )

        courses = Course.objects.filter(level=package.level, is_published=True)
        return Response(
            {
                "success": True,
                "package": LevelPackageSerializer(package).data,
                "courses": CourseSerializer(courses, many=True).data,
            },
            status=status.HTTP_200_OK,
        )
