from rest_framework.permissions import BasePermission

from .access import DENY_TARGET_UNAVAILABLE, authorize

# ------------------------------------------------------------
# Course access permission backed by the access guard.
# The decision is kept on the request so views can report the
# deny reason without running the guard twice.
# ------------------------------------------------------------


class HasCourseAccess(BasePermission):
    """Allows a request only if the user holds an entitlement for the course in the URL."""

    message = "You do not have access to this course."
    url_kwarg = "course_id"

    def has_permission(self, request, view):
        course_id = view.kwargs.get(self.url_kwarg)
        decision = authorize(request.user, course_id)
        request.access_decision = decision
        if not decision.allowed:
            self.message = {
                "message": (
                    "Course is not available."
                    if decision.reason == DENY_TARGET_UNAVAILABLE
                    else self.__class__.message
                ),
                "reason": decision.reason,
                "level": decision.level or "",
            }
        return decision.allowed
