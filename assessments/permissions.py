from rest_framework import permissions

from .policies import policy_for


class IsStudent(permissions.BasePermission):
    """Only student accounts (exam takers)."""
    message = "Only students can take exams."

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_student)


class IsEvaluator(permissions.BasePermission):
    """
    Allows access to Faculty and Admins.
    Strictly blocks Students.
    """
    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_evaluator)


class IsPortalAdmin(permissions.BasePermission):
    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_portal_admin)


class CanViewAttempt(permissions.BasePermission):
    def has_object_permission(self, request, view, obj):
        return policy_for(request.user).can_view(obj)


class CanEvaluateAttempt(permissions.BasePermission):
    def has_object_permission(self, request, view, obj):
        return policy_for(request.user).can_evaluate(obj)


class CanManageExam(permissions.BasePermission):
    """Read for anyone allowed to see the exam, writes for its owner or an admin."""

    def has_object_permission(self, request, view, obj):
        policy = policy_for(request.user)
        if request.method in permissions.SAFE_METHODS:
            return policy.can_view_exam(obj)
        return policy.can_manage_exam(obj)
