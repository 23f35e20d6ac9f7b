from rest_framework import serializers

from .models import Course, LevelPackage


class LevelPackageSerializer(serializers.ModelSerializer):
    originalPrice = serializers.IntegerField(source="original_price", read_only=True)
    studentsCount = serializers.IntegerField(source="students_count", read_only=True)

    class Meta:
        model = LevelPackage
        fields = ["id", "level", "name", "description", "price", "originalPrice", "duration", "studentsCount"]


class CourseSerializer(serializers.ModelSerializer):
    studentsCount = serializers.IntegerField(source="students_count", read_only=True)

    class Meta:
        model = Course
        fields = ["id", "title", "description", "level", "price", "studentsCount"]
