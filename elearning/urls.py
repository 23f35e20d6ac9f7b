"""
E-Learning Application URL Configuration

This module defines the URL routing structure for the Lingua E-Learning
application. Each functional area keeps its own URL list, mounted here under
a common prefix.

URL Structure:
- /api/elearning/levels/: Level package catalog and level enrollment checks
- /api/elearning/courses/: Course catalog and course access checks
- /api/elearning/my-enrollments/: Enrollments of the current user
- /api/elearning/payments/: PayOS checkout, status polling and webhook

Author: Lingua Development Team
Version: 1.0.0
"""

from typing import List
from django.urls import path, include, URLPattern

from .catalog import views as catalog_views
from .enrollments import views as enrollment_views

app_name = 'elearning'

# --- Catalog and Course Access URL Patterns ---

courses_urlpatterns: List[URLPattern] = [
    # Public catalog
    path('', catalog_views.CourseListView.as_view(), name='course-list'),

    # Entitled users only
    path('<int:course_id>/', enrollment_views.CourseDetailView.as_view(), name='course-detail'),
    path('<int:course_id>/access/', enrollment_views.CourseAccessView.as_view(), name='course-access'),
]

levels_urlpatterns: List[URLPattern] = [
    path('', catalog_views.LevelPackageListView.as_view(), name='level-package-list'),
    path('<str:level>/', catalog_views.LevelPackageDetailView.as_view(), name='level-package-detail'),

    # Authenticated users only
    path('<str:level>/check/', enrollment_views.LevelEnrollmentCheckView.as_view(), name='level-enrollment-check'),
]

# --- Main URL Configuration for E-Learning Application ---

urlpatterns: List[URLPattern] = [
    path('levels/', include((levels_urlpatterns, 'levels'))),
    path('courses/', include((courses_urlpatterns, 'courses'))),
    path('my-enrollments/', enrollment_views.MyEnrollmentsView.as_view(), name='my-enrollments'),

    # PayOS purchase flow
    path('payments/', include('elearning.payments.urls')),
]
