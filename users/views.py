from django.db import transaction
from django.db.models import ProtectedError
from rest_framework import generics, permissions, viewsets
from rest_framework.exceptions import ValidationError
from rest_framework_simplejwt.views import TokenObtainPairView
from django.contrib.auth import get_user_model

from assessments.permissions import IsPortalAdmin
from cores.models import AuditLog

from .serializers import (
    RegisterSerializer,
    CustomTokenObtainPairSerializer,
    ProfileSerializer,
    UserSerializer,
)

User = get_user_model()


# --- User Management (CRUD for Admin) ---
class UserViewSet(viewsets.ModelViewSet):
    """
    Admin-only endpoint to manage all users.
    Every write is recorded in the audit log.
    """
    queryset = User.objects.all().order_by('-date_joined')
    permission_classes = [IsPortalAdmin]

    def get_queryset(self):
        queryset = super().get_queryset()
        role = self.request.query_params.get('role')
        if role:
            queryset = queryset.filter(role=role)
        return queryset

    def get_serializer_class(self):
        if self.action == 'create':
            return RegisterSerializer
        return UserSerializer

    def perform_create(self, serializer):
        user = serializer.save()
        AuditLog.record(
            self.request, AuditLog.Action.CREATE, user,
            f"Created new user: {user.email} (Role: {user.role})",
        )

    def perform_update(self, serializer):
        user = serializer.save()
        if self.request.data.get('password'):
            user.set_password(self.request.data['password'])
            user.save()
        AuditLog.record(self.request, AuditLog.Action.UPDATE, user, f"Updated profile for: {user.email}")

    def perform_destroy(self, instance):
        try:
            with transaction.atomic():
                AuditLog.record(self.request, AuditLog.Action.DELETE, instance, f"Deleted user account: {instance.email}")
                instance.delete()
        except ProtectedError:
            raise ValidationError({"error": "User has created exams and cannot be deleted."})


# --- Authentication Views ---
class RegisterView(generics.CreateAPIView):
    serializer_class = RegisterSerializer
    permission_classes = [permissions.AllowAny]


class CustomLoginView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class UserProfileView(generics.RetrieveUpdateAPIView):
    serializer_class = ProfileSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_object(self):
        return self.request.user
