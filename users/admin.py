from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['email', 'first_name', 'last_name', 'role', 'department', 'semester']
    list_filter = ['role', 'department']
    ordering = ['email']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Portal', {'fields': ('role', 'roll_number', 'department', 'semester', 'phone_number')}),
    )
